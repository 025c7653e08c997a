"""
Typed exception hierarchy for the ledger kernel.

Every failure the core can report is a typed exception with:
  1. a class-level ``code`` (stable, machine-readable, API-safe),
  2. structured attributes describing the failure, and
  3. ``details`` -- a JSON-safe dict the transport layer can render.

Callers catch by type, never by message text:

    try:
        service.post_invoice(...)
    except PeriodNotOpenError as e:
        respond(code=e.code, period=e.period_code)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerError (base)
    |
    +-- LedgerValidationError            -- rejected before any write
    |   +-- InvalidInputError
    |   +-- LineTotalMismatchError
    |   +-- CurrencyMismatchError
    |   +-- UnbalancedJournalError
    |   +-- AmountPrecisionError
    |   +-- AccountNotFoundError
    |   +-- AccountInactiveError
    |   +-- AccountTypeMismatchError
    |   +-- AllocationExceedsOutstandingError
    |   +-- ExchangeRateRequiredError
    |   +-- ReportInputError
    |
    +-- LedgerAuthorizationError
    |   +-- PermissionDeniedError
    |   +-- ApprovalRequiredError
    |   +-- SegregationOfDutiesError
    |
    +-- LedgerStateError
    |   +-- PeriodNotFoundError
    |   +-- PeriodNotOpenError
    |   +-- PeriodAlreadyClosedError
    |   +-- PeriodAlreadyOpenError
    |   +-- PeriodLockedError
    |   +-- PeriodOverlapError
    |   +-- InvalidPeriodTransitionError
    |   +-- PeriodCloseValidationError
    |   +-- ControlAccountPostingError
    |   +-- DuplicateDocumentNumberError
    |   +-- IdempotencyConflictError
    |   +-- DocumentNotFoundError
    |   +-- InvalidDocumentStateError
    |   +-- JournalNotFoundError
    |   +-- InvalidJournalStateError
    |
    +-- LedgerExternalError              -- always retryable
    |   +-- FxIngestError
    |
    +-- LedgerIntegrityError             -- surfaced, never auto-corrected
        +-- TrialBalanceUnbalancedError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                            | When Raised
----------------|---------------------------------|-----------------------------------
Validation      | INVALID_INPUT                   | Required field missing / malformed
                | LINE_TOTAL_MISMATCH             | Header totals != line-derived totals
                | CURRENCY_MISMATCH               | Account currency != journal currency
                | UNBALANCED_JOURNAL              | Debits != credits
                | AMOUNT_PRECISION                | Amount finer than the minor unit
                | ACCOUNTS_NOT_FOUND              | Referenced account ids unknown
                | ACCOUNT_INACTIVE                | Referenced account deactivated
                | ACCOUNT_TYPE_MISMATCH           | e.g. revenue line to an ASSET account
                | ALLOCATION_EXCEEDS_OUTSTANDING  | Payment allocation > open balance
                | EXCHANGE_RATE_REQUIRED          | Foreign document with no rate
                | INVALID_REPORT_INPUT            | Report date range inverted
----------------|---------------------------------|-----------------------------------
Authorization   | PERMISSION_DENIED               | Role lacks permission
                | APPROVAL_REQUIRED               | Action needs a second approver
                | SOD_VIOLATION                   | Same user prepares and approves
----------------|---------------------------------|-----------------------------------
State           | PERIOD_NOT_FOUND                | No period covers the date / id
                | PERIOD_NOT_OPEN                 | Posting into closed/locked period
                | PERIOD_ALREADY_CLOSED           | Close on closed/locked period
                | PERIOD_ALREADY_OPEN             | Reopen on open period
                | PERIOD_LOCKED                   | Mutation of a locked period
                | PERIOD_OVERLAP                  | New period overlaps existing
                | INVALID_PERIOD_TRANSITION       | Transition skips a state
                | PERIOD_CLOSE_VALIDATION_FAILED  | Close readiness failed
                | CONTROL_ACCOUNT_POSTING         | Direct posting to control account
                | DUPLICATE_DOCUMENT_NUMBER       | Number already used in scope
                | IDEMPOTENCY_CONFLICT            | Key already bound to another source
                | DOCUMENT_NOT_FOUND              | Invoice/bill/payment id unknown
                | INVALID_DOCUMENT_STATE          | Lifecycle transition not allowed
                | JOURNAL_NOT_FOUND               | Journal id unknown
                | INVALID_JOURNAL_STATE           | Journal transition not allowed
----------------|---------------------------------|-----------------------------------
External        | FX_INGEST_FAILED                | FX source retries exhausted
----------------|---------------------------------|-----------------------------------
Integrity       | TRIAL_BALANCE_UNBALANCED        | Close-time trial balance check
"""

from decimal import Decimal
from typing import Any


def _json_safe(value: Any) -> Any:
    """Convert a details value into JSON-safe primitives."""
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_json_safe(v) for v in value]
    if value is None or isinstance(value, (str, int, bool)):
        return value
    if isinstance(value, Decimal):
        return str(value)
    return str(value)


class LedgerError(Exception):
    """Base exception for all ledger errors."""

    code: str = "LEDGER_ERROR"
    retryable: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.details = _json_safe(details or {})
        super().__init__(message)

    @property
    def message(self) -> str:
        return str(self)

    def to_dict(self) -> dict[str, Any]:
        """Stable machine-readable rendering for the transport layer."""
        return {"code": self.code, "message": self.message, "details": self.details}


# =============================================================================
# Validation
# =============================================================================


class LedgerValidationError(LedgerError):
    """Input rejected before any write."""

    code: str = "VALIDATION_ERROR"


class InvalidInputError(LedgerValidationError):
    """A required field is missing or malformed."""

    code: str = "INVALID_INPUT"

    def __init__(self, problems: list[str]):
        self.problems = list(problems)
        super().__init__(
            f"Invalid input: {'; '.join(self.problems)}",
            {"problems": self.problems},
        )


class LineTotalMismatchError(LedgerValidationError):
    """Supplied header totals disagree with totals derived from the lines."""

    code: str = "LINE_TOTAL_MISMATCH"

    def __init__(self, field: str, supplied: Decimal, computed: Decimal):
        self.field = field
        self.supplied = str(supplied)
        self.computed = str(computed)
        super().__init__(
            f"Header {field} {supplied} does not match line-derived {computed}",
            {"field": field, "supplied": supplied, "computed": computed},
        )


class CurrencyMismatchError(LedgerValidationError):
    """Referenced accounts are denominated in a different currency."""

    code: str = "CURRENCY_MISMATCH"

    def __init__(self, journal_currency: str, mismatches: list[dict[str, str]]):
        self.journal_currency = journal_currency
        self.mismatches = mismatches
        super().__init__(
            f"{len(mismatches)} account(s) not in journal currency {journal_currency}",
            {"journal_currency": journal_currency, "mismatches": mismatches},
        )


class UnbalancedJournalError(LedgerValidationError):
    """Debits do not equal credits."""

    code: str = "UNBALANCED_JOURNAL"

    def __init__(self, debits: Decimal, credits: Decimal, currency: str):
        self.debits = str(debits)
        self.credits = str(credits)
        self.currency = currency
        super().__init__(
            f"Unbalanced journal in {currency}: debits={debits}, credits={credits}",
            {"debits": debits, "credits": credits, "currency": currency,
             "difference": debits - credits},
        )


class AmountPrecisionError(LedgerValidationError):
    """An amount carries more decimals than its currency's minor unit."""

    code: str = "AMOUNT_PRECISION"

    def __init__(self, field: str, amount: Decimal, currency: str, decimal_places: int):
        self.field = field
        self.amount = str(amount)
        self.currency = currency
        self.decimal_places = decimal_places
        super().__init__(
            f"{field} {amount} has more than {decimal_places} decimal place(s) for {currency}",
            {"field": field, "amount": amount, "currency": currency,
             "decimal_places": decimal_places},
        )


class AccountNotFoundError(LedgerValidationError):
    """One or more referenced accounts do not exist in the scope."""

    code: str = "ACCOUNTS_NOT_FOUND"

    def __init__(self, missing_account_ids: list[str]):
        self.missing_account_ids = [str(a) for a in missing_account_ids]
        super().__init__(
            f"Accounts not found: {', '.join(self.missing_account_ids)}",
            {"missing_account_ids": self.missing_account_ids},
        )


class AccountInactiveError(LedgerValidationError):
    """A referenced account has been deactivated."""

    code: str = "ACCOUNT_INACTIVE"

    def __init__(self, inactive_account_ids: list[str]):
        self.inactive_account_ids = [str(a) for a in inactive_account_ids]
        super().__init__(
            f"Accounts inactive: {', '.join(self.inactive_account_ids)}",
            {"inactive_account_ids": self.inactive_account_ids},
        )


class AccountTypeMismatchError(LedgerValidationError):
    """An account is used in a role its type does not allow."""

    code: str = "ACCOUNT_TYPE_MISMATCH"

    def __init__(self, account_code: str, role: str, actual: str, expected: list[str]):
        self.account_code = account_code
        self.role = role
        self.actual = actual
        self.expected = expected
        super().__init__(
            f"Account {account_code} ({actual}) cannot be used as {role}; "
            f"expected {'/'.join(expected)}",
            {"account_code": account_code, "role": role, "actual": actual,
             "expected": expected},
        )


class AllocationExceedsOutstandingError(LedgerValidationError):
    """A payment allocation is larger than the document's open balance."""

    code: str = "ALLOCATION_EXCEEDS_OUTSTANDING"

    def __init__(self, document_number: str, allocated: Decimal, outstanding: Decimal):
        self.document_number = document_number
        self.allocated = str(allocated)
        self.outstanding = str(outstanding)
        super().__init__(
            f"Allocation {allocated} exceeds outstanding {outstanding} on {document_number}",
            {"document_number": document_number, "allocated": allocated,
             "outstanding": outstanding},
        )


class ExchangeRateRequiredError(LedgerValidationError):
    """A foreign-currency document has no usable exchange rate."""

    code: str = "EXCHANGE_RATE_REQUIRED"

    def __init__(self, from_currency: str, to_currency: str, as_of: str):
        self.from_currency = from_currency
        self.to_currency = to_currency
        self.as_of = as_of
        super().__init__(
            f"No exchange rate {from_currency}->{to_currency} applicable on {as_of}",
            {"from_currency": from_currency, "to_currency": to_currency, "as_of": as_of},
        )


class ReportInputError(LedgerValidationError):
    """Report parameters are inconsistent."""

    code: str = "INVALID_REPORT_INPUT"


# =============================================================================
# Authorization
# =============================================================================


class LedgerAuthorizationError(LedgerError):
    """The caller is not allowed to perform the action."""

    code: str = "AUTHORIZATION_ERROR"


class PermissionDeniedError(LedgerAuthorizationError):
    """Role lacks the permission for this action."""

    code: str = "PERMISSION_DENIED"

    def __init__(self, role: str, permission: str):
        self.role = role
        self.permission = permission
        super().__init__(
            f"Role '{role}' lacks permission '{permission}'",
            {"role": role, "permission": permission},
        )


class ApprovalRequiredError(LedgerAuthorizationError):
    """The action needs approval from a second authorized user."""

    code: str = "APPROVAL_REQUIRED"

    def __init__(self, action: str, reason: str):
        self.action = action
        self.reason = reason
        super().__init__(
            f"{action} requires approval: {reason}",
            {"action": action, "reason": reason},
        )


class SegregationOfDutiesError(LedgerAuthorizationError):
    """The same user may not both prepare and approve/close."""

    code: str = "SOD_VIOLATION"

    def __init__(self, actor_id: str, action: str, reason: str):
        self.actor_id = str(actor_id)
        self.action = action
        self.reason = reason
        super().__init__(
            f"SoD violation on {action}: {reason}",
            {"actor_id": self.actor_id, "action": action, "reason": reason},
        )


# =============================================================================
# State
# =============================================================================


class LedgerStateError(LedgerError):
    """The ledger is not in a state that allows the request."""

    code: str = "STATE_ERROR"


class PeriodNotFoundError(LedgerStateError):
    """No period matches the id, code or date."""

    code: str = "PERIOD_NOT_FOUND"

    def __init__(self, period_ref: str):
        self.period_ref = str(period_ref)
        super().__init__(
            f"Fiscal period not found: {self.period_ref}",
            {"period_ref": self.period_ref},
        )


class PeriodNotOpenError(LedgerStateError):
    """Posting targeted a closed or locked period."""

    code: str = "PERIOD_NOT_OPEN"

    def __init__(self, period_code: str, status: str, posting_date: str):
        self.period_code = period_code
        self.status = status
        self.posting_date = posting_date
        super().__init__(
            f"Period {period_code} is {status}; cannot post on {posting_date}",
            {"period_code": period_code, "status": status, "posting_date": posting_date},
        )


class PeriodAlreadyClosedError(LedgerStateError):
    """Close requested on a period that is already closed or locked."""

    code: str = "PERIOD_ALREADY_CLOSED"

    def __init__(self, period_code: str, status: str):
        self.period_code = period_code
        self.status = status
        super().__init__(
            f"Period {period_code} is already {status}",
            {"period_code": period_code, "status": status},
        )


class PeriodAlreadyOpenError(LedgerStateError):
    """Reopen requested on a period that is open."""

    code: str = "PERIOD_ALREADY_OPEN"

    def __init__(self, period_code: str):
        self.period_code = period_code
        super().__init__(
            f"Period {period_code} is already open", {"period_code": period_code}
        )


class PeriodLockedError(LedgerStateError):
    """Locked periods are terminal."""

    code: str = "PERIOD_LOCKED"

    def __init__(self, period_code: str, action: str):
        self.period_code = period_code
        self.action = action
        super().__init__(
            f"Cannot {action} locked period {period_code}",
            {"period_code": period_code, "action": action},
        )


class PeriodOverlapError(LedgerStateError):
    """New period's date range overlaps an existing period."""

    code: str = "PERIOD_OVERLAP"

    def __init__(self, new_period_code: str, existing_period_code: str):
        self.new_period_code = new_period_code
        self.existing_period_code = existing_period_code
        super().__init__(
            f"Period {new_period_code} overlaps {existing_period_code}",
            {"new_period_code": new_period_code,
             "existing_period_code": existing_period_code},
        )


class InvalidPeriodTransitionError(LedgerStateError):
    """Transition would skip or reverse a state."""

    code: str = "INVALID_PERIOD_TRANSITION"

    def __init__(self, period_code: str, from_status: str, to_status: str):
        self.period_code = period_code
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Period {period_code} cannot move from {from_status} to {to_status}",
            {"period_code": period_code, "from_status": from_status,
             "to_status": to_status},
        )


class PeriodCloseValidationError(LedgerStateError):
    """Close readiness failed and no authorized force was given."""

    code: str = "PERIOD_CLOSE_VALIDATION_FAILED"

    def __init__(self, period_code: str, errors: list[str], validation: dict[str, Any]):
        self.period_code = period_code
        self.errors = list(errors)
        super().__init__(
            f"Period {period_code} cannot be closed: {', '.join(self.errors)}",
            validation,
        )


class ControlAccountPostingError(LedgerStateError):
    """Direct posting to a control (summary) account."""

    code: str = "CONTROL_ACCOUNT_POSTING"

    def __init__(self, violations: list[dict[str, str]]):
        self.violations = violations
        codes = ", ".join(v["account_code"] for v in violations)
        super().__init__(
            f"Cannot post directly to control account(s): {codes}",
            {"violations": violations},
        )


class DuplicateDocumentNumberError(LedgerStateError):
    """Document or journal number already used in this scope."""

    code: str = "DUPLICATE_DOCUMENT_NUMBER"

    def __init__(self, document_type: str, number: str):
        self.document_type = document_type
        self.number = number
        super().__init__(
            f"{document_type} number {number} already exists",
            {"document_type": document_type, "number": number},
        )


class IdempotencyConflictError(LedgerStateError):
    """An idempotency key already produced a journal for a different source."""

    code: str = "IDEMPOTENCY_CONFLICT"

    def __init__(self, idempotency_key: str, journal_number: str, source_id: str | None):
        self.idempotency_key = idempotency_key
        self.journal_number = journal_number
        self.source_id = source_id
        super().__init__(
            f"Idempotency key {idempotency_key} already used by journal {journal_number}",
            {"idempotency_key": idempotency_key, "journal_number": journal_number,
             "source_id": source_id},
        )


class DocumentNotFoundError(LedgerStateError):
    """Invoice, bill or payment id is unknown in this scope."""

    code: str = "DOCUMENT_NOT_FOUND"

    def __init__(self, document_type: str, document_id: str):
        self.document_type = document_type
        self.document_id = str(document_id)
        super().__init__(
            f"{document_type} {self.document_id} not found",
            {"document_type": document_type, "document_id": self.document_id},
        )


class InvalidDocumentStateError(LedgerStateError):
    """Document lifecycle transition not allowed."""

    code: str = "INVALID_DOCUMENT_STATE"

    def __init__(self, document_number: str, status: str, action: str):
        self.document_number = document_number
        self.status = status
        self.action = action
        super().__init__(
            f"Cannot {action} {document_number} in status {status}",
            {"document_number": document_number, "status": status, "action": action},
        )


class JournalNotFoundError(LedgerStateError):
    """Journal id is unknown in this scope."""

    code: str = "JOURNAL_NOT_FOUND"

    def __init__(self, journal_id: str):
        self.journal_id = str(journal_id)
        super().__init__(
            f"Journal {self.journal_id} not found", {"journal_id": self.journal_id}
        )


class InvalidJournalStateError(LedgerStateError):
    """Journal transition not allowed from its current status."""

    code: str = "INVALID_JOURNAL_STATE"

    def __init__(self, journal_number: str, status: str, action: str):
        self.journal_number = journal_number
        self.status = status
        self.action = action
        super().__init__(
            f"Cannot {action} journal {journal_number} in status {status}",
            {"journal_number": journal_number, "status": status, "action": action},
        )


# =============================================================================
# External dependency
# =============================================================================


class LedgerExternalError(LedgerError):
    """An external collaborator failed; the caller may retry."""

    code: str = "EXTERNAL_ERROR"
    retryable: bool = True


class FxIngestError(LedgerExternalError):
    """An FX source exhausted its retries without a usable rate."""

    code: str = "FX_INGEST_FAILED"

    def __init__(self, source: str, attempts: int, reason: str):
        self.source = source
        self.attempts = attempts
        self.reason = reason
        super().__init__(
            f"FX source {source} failed after {attempts} attempt(s): {reason}",
            {"source": source, "attempts": attempts, "reason": reason,
             "retryable": True},
        )


# =============================================================================
# Integrity
# =============================================================================


class LedgerIntegrityError(LedgerError):
    """A ledger-wide invariant does not hold."""

    code: str = "INTEGRITY_ERROR"


class TrialBalanceUnbalancedError(LedgerIntegrityError):
    """Trial balance debits and credits disagree."""

    code: str = "TRIAL_BALANCE_UNBALANCED"

    def __init__(self, total_debits: Decimal, total_credits: Decimal):
        self.total_debits = str(total_debits)
        self.total_credits = str(total_credits)
        super().__init__(
            f"Trial balance out of balance by {total_debits - total_credits}",
            {"total_debits": total_debits, "total_credits": total_credits,
             "difference": total_debits - total_credits},
        )
