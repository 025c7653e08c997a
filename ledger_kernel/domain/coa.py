"""
COA -- Chart-of-accounts validation for journal lines.

Responsibility:
    Decide whether a set of journal lines may be posted against the
    accounts they reference: the accounts exist and are active, none is a
    control account, currencies agree with the journal, and each account
    plays a role its type permits.  Normal-balance contradictions are
    reported as warnings and never block.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Callers load the
    account map (``dict[UUID, AccountInfo]``) for the whole scope first, so
    ``has_children`` sees every potential child.

Invariants enforced:
    - A control account (level 0, or any account with children) never
      receives a direct posting.  The two conditions are checked by
      separate helpers.
    - Accounts in a currency other than the journal's are rejected unless
      an FX conversion policy applies.

Failure modes:
    - AccountNotFoundError, AccountInactiveError
    - ControlAccountPostingError
    - CurrencyMismatchError
    - AccountTypeMismatchError
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from uuid import UUID

from ledger_kernel.domain.dtos import AccountInfo, JournalLineSpec
from ledger_kernel.exceptions import (
    AccountInactiveError,
    AccountNotFoundError,
    AccountTypeMismatchError,
    ControlAccountPostingError,
    CurrencyMismatchError,
)
from ledger_kernel.models.account import AccountType, NormalBalance


@dataclass(frozen=True)
class NormalBalanceWarning:
    """A line posted to the side opposite its account's normal balance."""

    account_id: UUID
    account_code: str
    normal_balance: NormalBalance
    line_side: NormalBalance

    @property
    def message(self) -> str:
        return (
            f"Account {self.account_code} has a {self.normal_balance.value} normal "
            f"balance but the line is a {self.line_side.value}"
        )


def _unique(account_ids: Iterable[UUID]) -> list[UUID]:
    return list(dict.fromkeys(account_ids))


def validate_accounts_exist(
    account_ids: Iterable[UUID],
    accounts: Mapping[UUID, AccountInfo],
) -> None:
    ids = _unique(account_ids)
    missing = [str(account_id) for account_id in ids if account_id not in accounts]
    if missing:
        raise AccountNotFoundError(missing)

    inactive = [str(account_id) for account_id in ids if not accounts[account_id].is_active]
    if inactive:
        raise AccountInactiveError(inactive)


def is_top_level(account: AccountInfo) -> bool:
    """Level 0 marks a top-of-tree control node."""
    return account.level == 0


def has_children(account_id: UUID, accounts: Mapping[UUID, AccountInfo]) -> bool:
    """True if any account in the map names ``account_id`` as its parent."""
    return any(other.parent_id == account_id for other in accounts.values())


def validate_control_accounts(
    account_ids: Iterable[UUID],
    accounts: Mapping[UUID, AccountInfo],
) -> None:
    violations: list[dict[str, str]] = []
    for account_id in _unique(account_ids):
        account = accounts[account_id]
        if is_top_level(account):
            violations.append({
                "account_id": str(account_id),
                "account_code": account.code,
                "reason": "top_level",
            })
        elif has_children(account_id, accounts):
            violations.append({
                "account_id": str(account_id),
                "account_code": account.code,
                "reason": "has_children",
            })
    if violations:
        raise ControlAccountPostingError(violations)


def validate_currency_consistency(
    journal_currency: str,
    accounts: Mapping[UUID, AccountInfo],
    account_ids: Iterable[UUID],
    fx_policy_applies: bool = False,
) -> None:
    """
    Reject accounts denominated in a currency other than the journal's.

    When ``fx_policy_applies`` is true the caller has already converted the
    amounts through an FX policy and mismatches are allowed.
    """
    if fx_policy_applies:
        return

    mismatches = [
        {"account_id": str(account_id), "account_currency": accounts[account_id].currency}
        for account_id in _unique(account_ids)
        if accounts[account_id].currency != journal_currency
    ]
    if mismatches:
        raise CurrencyMismatchError(journal_currency, mismatches)


def validate_normal_balances(
    lines: Sequence[JournalLineSpec],
    accounts: Mapping[UUID, AccountInfo],
) -> list[NormalBalanceWarning]:
    warnings: list[NormalBalanceWarning] = []
    for line in lines:
        account = accounts.get(line.account_id)
        if account is None:
            continue
        side = NormalBalance.DEBIT if line.is_debit else NormalBalance.CREDIT
        if side != account.normal_balance:
            warnings.append(
                NormalBalanceWarning(
                    account_id=account.account_id,
                    account_code=account.code,
                    normal_balance=account.normal_balance,
                    line_side=side,
                )
            )
    return warnings


def validate_account_type(
    account_id: UUID,
    accounts: Mapping[UUID, AccountInfo],
    expected_types: Iterable[AccountType],
    role: str,
) -> AccountInfo:
    """
    Check that ``account_id`` may play ``role`` (e.g. "ar_control").

    Returns the account so callers can keep using it.
    """
    validate_accounts_exist([account_id], accounts)
    account = accounts[account_id]
    expected = list(expected_types)
    if account.account_type not in expected:
        raise AccountTypeMismatchError(
            account_code=account.code,
            role=role,
            actual=account.account_type.value,
            expected=[t.value for t in expected],
        )
    return account


def validate_journal_accounts(
    lines: Sequence[JournalLineSpec],
    accounts: Mapping[UUID, AccountInfo],
    journal_currency: str,
    fx_policy_applies: bool = False,
) -> list[NormalBalanceWarning]:
    """Existence, control, then currency checks; returns normal-balance warnings."""
    account_ids = [line.account_id for line in lines]
    validate_accounts_exist(account_ids, accounts)
    validate_control_accounts(account_ids, accounts)
    validate_currency_consistency(journal_currency, accounts, account_ids, fx_policy_applies)
    return validate_normal_balances(lines, accounts)
