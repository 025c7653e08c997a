"""
Module: ledger_kernel.selectors.base
Responsibility: Abstract base class for read-only, scope-confined query
    selectors.
Architecture position: Kernel > Selectors.  May import from db/ and
    models/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors never add, delete, flush or commit.
    - Every query is confined to one tenant/company scope via ``_scoped``.

Audit relevance:
    Selectors are the canonical read path for balances.  All balances are
    derived from posted JournalLines at query time; nothing is stored.
"""

from abc import ABC

from sqlalchemy.orm import Session

from ledger_kernel.domain.dtos import LedgerScope


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Accepts a Session and a LedgerScope from the caller, performs
        read-only queries, and returns DTOs.
    """

    def __init__(self, session: Session, scope: LedgerScope):
        self.session = session
        self.scope = scope

    def _scoped(self, query, model):
        """Restrict ``query`` to rows of ``model`` in this selector's scope."""
        return query.where(
            model.tenant_id == self.scope.tenant_id,
            model.company_id == self.scope.company_id,
        )
