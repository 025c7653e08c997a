"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every service in the kernel layer.  Concrete services receive a
    SQLAlchemy ``Session`` and a ``LedgerScope`` and persist through
    ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit.  The caller (``session_scope()`` or a
      test fixture) owns commit/rollback.
    - Scope confinement: every read and write carries the tenant/company
      pair of ``self.scope``.
"""

from abc import ABC

from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import LedgerScope


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide aggregate read queries; those belong in
          ``ledger_kernel/selectors/``.
    """

    def __init__(self, session: Session, scope: LedgerScope, clock: Clock | None = None):
        self.session = session
        self.scope = scope
        self._clock = clock or SystemClock()

    def _scoped(self, query, model):
        return query.where(
            model.tenant_id == self.scope.tenant_id,
            model.company_id == self.scope.company_id,
        )

    def _scope_columns(self) -> dict:
        """Keyword arguments stamping a new row with this service's scope."""
        return {"tenant_id": self.scope.tenant_id, "company_id": self.scope.company_id}
