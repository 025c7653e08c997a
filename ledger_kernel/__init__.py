"""
Ledger Kernel

Double-entry general-ledger core for a multi-tenant accounting platform:
- Tenant/company scoped chart of accounts, journals and periods
- Balanced, atomic journal writes
- Period state machine (open -> closed -> locked)
- Decimal-only money with per-currency precision
- Trial balance derived from posted lines, never stored
"""

__version__ = "0.1.0"
