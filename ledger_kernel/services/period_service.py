"""
PeriodService -- fiscal period lifecycle and posting-date validation.

Responsibility:
    Manages the fiscal period state machine (open -> closed -> locked, with
    an authorized reopen of closed periods) and validates that postings
    target an open period before they reach the journal writer.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by the posting pipeline and JournalService to validate the
    journal date, and by PeriodCloseOrchestrator to drive close/lock/reopen.

Invariants enforced:
    - Only ``open`` periods accept postings.
    - locked is terminal; reopen applies to closed periods only.
    - Date ranges within a scope never overlap.
    - Returns frozen ``PeriodInfo`` DTOs, never ORM entities.
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - PeriodNotFoundError: no period with the id, or none covers the date.
    - PeriodNotOpenError: the covering period is closed or locked.
    - PeriodAlreadyClosedError / PeriodAlreadyOpenError / PeriodLockedError /
      InvalidPeriodTransitionError: illegal lifecycle moves.
    - PeriodOverlapError: new range overlaps an existing period.

Audit relevance:
    Creation, close, lock and reopen are logged with period_code and
    actor_id.  Reopen records reopen_reason on the row.
"""

import calendar
from datetime import date, timedelta
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.domain.dtos import PeriodInfo
from ledger_kernel.exceptions import (
    InvalidPeriodTransitionError,
    PeriodAlreadyClosedError,
    PeriodAlreadyOpenError,
    PeriodLockedError,
    PeriodNotFoundError,
    PeriodNotOpenError,
    PeriodOverlapError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.period import Period, PeriodStatus
from ledger_kernel.services.base import BaseService

logger = get_logger("services.period")


class PeriodService(BaseService):
    """
    Service for managing fiscal period lifecycle.

    Contract:
        Accepts period ids or dates and returns frozen ``PeriodInfo`` DTOs.
        Lifecycle methods lock the period row (``SELECT ... FOR UPDATE``)
        so concurrent close/lock/reopen calls serialize.

    Non-goals:
        - Does NOT run close-readiness checks or create reversing entries
          (that is PeriodCloseOrchestrator in ledger_services/).
        - Does NOT check permissions.
    """

    def _to_dto(self, period: Period) -> PeriodInfo:
        return PeriodInfo(
            id=period.id,
            code=period.code,
            name=period.name,
            start_date=period.start_date,
            end_date=period.end_date,
            status=period.status,
            closed_at=period.closed_at,
            closed_by_id=period.closed_by_id,
            close_reason=period.close_reason,
            locked_at=period.locked_at,
            reopened_at=period.reopened_at,
            reopen_reason=period.reopen_reason,
        )

    # =========================================================================
    # Creation and lookup
    # =========================================================================

    def create_period(
        self,
        code: str,
        name: str,
        start_date: date,
        end_date: date,
        actor_id: UUID,
    ) -> PeriodInfo:
        """
        Create a new open fiscal period.

        Raises:
            ValueError: If start_date > end_date.
            PeriodOverlapError: If the range overlaps an existing period.
        """
        if start_date > end_date:
            raise ValueError(
                f"start_date ({start_date}) cannot be after end_date ({end_date})"
            )

        self._validate_no_overlap(code, start_date, end_date)

        period = Period(
            code=code,
            name=name,
            start_date=start_date,
            end_date=end_date,
            status=PeriodStatus.OPEN.value,
            created_by_id=actor_id,
            **self._scope_columns(),
        )
        self.session.add(period)
        self.session.flush()

        logger.info(
            "period_created",
            extra={
                "period_code": code,
                "start_date": str(start_date),
                "end_date": str(end_date),
            },
        )
        return self._to_dto(period)

    def _validate_no_overlap(self, new_code: str, start_date: date, end_date: date) -> None:
        # Two ranges overlap if: start1 <= end2 AND start2 <= end1
        overlapping = self.session.execute(
            self._scoped(
                select(Period).where(
                    Period.start_date <= end_date,
                    Period.end_date >= start_date,
                ),
                Period,
            ).limit(1)
        ).scalar_one_or_none()

        if overlapping is not None:
            raise PeriodOverlapError(new_code, overlapping.code)

    def _get_orm(self, period_id: UUID) -> Period:
        period = self.session.execute(
            self._scoped(select(Period).where(Period.id == period_id), Period)
        ).scalar_one_or_none()
        if period is None:
            raise PeriodNotFoundError(str(period_id))
        return period

    def _get_period_for_update(self, period_id: UUID) -> Period:
        period = self.session.execute(
            self._scoped(select(Period).where(Period.id == period_id), Period)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if period is None:
            raise PeriodNotFoundError(str(period_id))
        return period

    def _find_for_date(self, check_date: date) -> Period | None:
        return self.session.execute(
            self._scoped(
                select(Period).where(
                    Period.start_date <= check_date,
                    Period.end_date >= check_date,
                ),
                Period,
            )
        ).scalar_one_or_none()

    def get_period(self, period_id: UUID) -> PeriodInfo:
        return self._to_dto(self._get_orm(period_id))

    def get_period_by_code(self, code: str) -> PeriodInfo | None:
        period = self.session.execute(
            self._scoped(select(Period).where(Period.code == code), Period)
        ).scalar_one_or_none()
        return self._to_dto(period) if period is not None else None

    def get_period_for_date(self, check_date: date) -> PeriodInfo | None:
        period = self._find_for_date(check_date)
        return self._to_dto(period) if period is not None else None

    def list_periods(self) -> list[PeriodInfo]:
        periods = self.session.execute(
            self._scoped(select(Period), Period).order_by(Period.start_date)
        ).scalars().all()
        return [self._to_dto(p) for p in periods]

    def validate_posting_date(self, posting_date: date) -> PeriodInfo:
        """
        Return the period covering ``posting_date`` if it accepts postings.

        Raises:
            PeriodNotFoundError: No period covers the date.
            PeriodNotOpenError: The covering period is closed or locked.
        """
        period = self._find_for_date(posting_date)
        if period is None:
            logger.warning("posting_date_without_period", extra={"posting_date": str(posting_date)})
            raise PeriodNotFoundError(str(posting_date))

        if period.status != PeriodStatus.OPEN.value:
            logger.warning(
                "posting_to_closed_period_rejected",
                extra={
                    "period_code": period.code,
                    "status": period.status,
                    "posting_date": str(posting_date),
                },
            )
            raise PeriodNotOpenError(period.code, period.status, str(posting_date))

        return self._to_dto(period)

    def next_period(self, period_id: UUID) -> PeriodInfo | None:
        """The period starting soonest after ``period_id`` ends."""
        current = self._get_orm(period_id)
        following = self.session.execute(
            self._scoped(
                select(Period).where(Period.start_date > current.end_date),
                Period,
            )
            .order_by(Period.start_date)
            .limit(1)
        ).scalar_one_or_none()
        return self._to_dto(following) if following is not None else None

    # =========================================================================
    # Transitions
    # =========================================================================

    def close(self, period_id: UUID, actor_id: UUID, reason: str | None = None) -> PeriodInfo:
        """
        Transition open -> closed.

        Raises:
            PeriodAlreadyClosedError: If the period is closed or locked.
        """
        period = self._get_period_for_update(period_id)
        if period.status != PeriodStatus.OPEN.value:
            raise PeriodAlreadyClosedError(period.code, period.status)

        period.status = PeriodStatus.CLOSED.value
        period.closed_at = self._clock.now()
        period.closed_by_id = actor_id
        period.close_reason = reason
        period.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "period_closed",
            extra={"period_code": period.code, "actor_id": str(actor_id)},
        )
        return self._to_dto(period)

    def lock(self, period_id: UUID, actor_id: UUID) -> PeriodInfo:
        """
        Transition closed -> locked.  Locked is terminal.

        Raises:
            PeriodLockedError: Already locked.
            InvalidPeriodTransitionError: The period is still open.
        """
        period = self._get_period_for_update(period_id)
        if period.status == PeriodStatus.LOCKED.value:
            raise PeriodLockedError(period.code, "lock")
        if period.status != PeriodStatus.CLOSED.value:
            raise InvalidPeriodTransitionError(
                period.code, period.status, PeriodStatus.LOCKED.value
            )

        period.status = PeriodStatus.LOCKED.value
        period.locked_at = self._clock.now()
        period.locked_by_id = actor_id
        period.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "period_locked",
            extra={"period_code": period.code, "actor_id": str(actor_id)},
        )
        return self._to_dto(period)

    def reopen(self, period_id: UUID, actor_id: UUID, reason: str) -> PeriodInfo:
        """
        Transition closed -> open.

        Raises:
            PeriodAlreadyOpenError: The period is open.
            PeriodLockedError: The period is locked.
        """
        period = self._get_period_for_update(period_id)
        if period.status == PeriodStatus.OPEN.value:
            raise PeriodAlreadyOpenError(period.code)
        if period.status == PeriodStatus.LOCKED.value:
            raise PeriodLockedError(period.code, "reopen")

        period.status = PeriodStatus.OPEN.value
        period.reopened_at = self._clock.now()
        period.reopen_reason = reason
        period.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "period_reopened",
            extra={
                "period_code": period.code,
                "actor_id": str(actor_id),
                "reason": reason,
            },
        )
        return self._to_dto(period)

    def auto_open_next(self, period_id: UUID, actor_id: UUID) -> PeriodInfo:
        """
        Make sure a period follows ``period_id`` and return it.

        An existing following period is returned untouched.  Otherwise the
        calendar month after the current period's end is created open.
        """
        existing = self.next_period(period_id)
        if existing is not None:
            return existing

        current = self._get_orm(period_id)
        start = current.end_date + timedelta(days=1)
        last_day = calendar.monthrange(start.year, start.month)[1]
        end = date(start.year, start.month, last_day)
        code = start.strftime("%Y-%m")

        logger.info(
            "period_auto_opened",
            extra={"previous_period_code": current.code, "period_code": code},
        )
        return self.create_period(code, start.strftime("%B %Y"), start, end, actor_id)
