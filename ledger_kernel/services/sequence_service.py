"""
SequenceService -- monotonic document numbering via locked counter rows.

Responsibility:
    Allocates the next number of a named sequence (journal, invoice, bill,
    payment) for one tenant/company and formats it as
    ``{company_code}-{prefix}-{sequence:05d}``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by JournalWriter and the document posting pipeline.

Invariants enforced:
    - The locked DocumentSequence row is the only source of truth for the
      next value; max(number)+1 over document tables is never used.
    - The increment is visible only after the caller's transaction commits.
      A rollback returns the value.

Failure modes:
    - IntegrityError on a concurrent first use of a sequence is absorbed by
      a savepoint and the locked row is re-read.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.sequence import DocumentSequence
from ledger_kernel.services.base import BaseService

logger = get_logger("services.sequence")


class SequenceService(BaseService):
    """
    Transactional sequence allocation per scope.

    Usage:
        number = SequenceService(session, scope).next_number(SequenceService.INVOICE, actor_id)
        # "ACME-INV-00001"
    """

    JOURNAL = "JE"
    INVOICE = "INV"
    BILL = "BILL"
    PAYMENT = "PAY"

    def _locked_counter(self, name: str) -> DocumentSequence | None:
        query = self._scoped(
            select(DocumentSequence).where(DocumentSequence.name == name),
            DocumentSequence,
        )
        return self.session.execute(
            query.with_for_update().execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, name: str, actor_id: UUID) -> int:
        """Lock (or create) the counter row for ``name`` and increment it."""
        counter = self._locked_counter(name)

        if counter is None:
            savepoint = self.session.begin_nested()
            try:
                counter = DocumentSequence(
                    name=name,
                    current_value=1,
                    created_by_id=actor_id,
                    **self._scope_columns(),
                )
                self.session.add(counter)
                self.session.flush()
                savepoint.commit()
                logger.debug("sequence_allocated", extra={"sequence_name": name, "value": 1})
                return 1
            except IntegrityError:
                logger.debug("sequence_counter_race_retry", extra={"sequence_name": name})
                savepoint.rollback()
                counter = self._locked_counter(name)
                if counter is None:
                    raise

        counter.current_value += 1
        self.session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": name, "value": counter.current_value},
        )
        return counter.current_value

    def next_number(self, prefix: str, actor_id: UUID) -> str:
        value = self.next_value(prefix, actor_id)
        return format_number(self.scope.company_code, prefix, value)

    def current_value(self, name: str) -> int:
        query = self._scoped(
            select(DocumentSequence.current_value).where(DocumentSequence.name == name),
            DocumentSequence,
        )
        value = self.session.execute(query).scalar_one_or_none()
        return value or 0


def format_number(company_code: str, prefix: str, value: int) -> str:
    return f"{company_code}-{prefix}-{value:05d}"
