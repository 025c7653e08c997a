"""
Ledger Modules.

Thin orchestration layers over the Ledger Kernel and Engines:

- posting: invoices, bills and payments turned into balanced journals
- gl: manual journals, approval and reversal
- fx: exchange-rate ingestion from prioritized sources
- reporting: trial balance, balance sheet, income statement, cash flow

Processing rules live in the kernel and engines; modules sequence them.
"""
