"""
Chart-of-accounts validator tests.

Pure functions over an in-memory account map: no database.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.domain import coa
from ledger_kernel.domain.dtos import AccountInfo, JournalLineSpec
from ledger_kernel.exceptions import (
    AccountInactiveError,
    AccountNotFoundError,
    AccountTypeMismatchError,
    ControlAccountPostingError,
    CurrencyMismatchError,
)
from ledger_kernel.models.account import AccountType, NormalBalance


def _account(code, account_type, parent_id=None, level=1, currency="MYR", is_active=True):
    return AccountInfo(
        account_id=uuid4(),
        code=code,
        name=f"Account {code}",
        account_type=account_type,
        normal_balance=account_type.normal_balance,
        currency=currency,
        parent_id=parent_id,
        level=level,
        is_active=is_active,
    )


@pytest.fixture
def chart():
    assets = _account("1", AccountType.ASSET, level=0)
    bank = _account("1010", AccountType.ASSET, parent_id=assets.account_id)
    receivables = _account("1100", AccountType.ASSET, parent_id=assets.account_id)
    trade = _account("1110", AccountType.ASSET, parent_id=receivables.account_id, level=2)
    usd_bank = _account("1020", AccountType.ASSET, parent_id=assets.account_id, currency="USD")
    revenue = _account("4000", AccountType.REVENUE)
    dormant = _account("4900", AccountType.REVENUE, is_active=False)
    accounts = [assets, bank, receivables, trade, usd_bank, revenue, dormant]
    by_code = {a.code: a for a in accounts}
    return {a.account_id: a for a in accounts}, by_code


class TestAccountsExist:
    def test_unknown_account_lists_missing_ids(self, chart):
        accounts, by_code = chart
        unknown = uuid4()

        with pytest.raises(AccountNotFoundError) as exc_info:
            coa.validate_accounts_exist([by_code["1010"].account_id, unknown], accounts)

        assert exc_info.value.code == "ACCOUNTS_NOT_FOUND"
        assert exc_info.value.details["missing_account_ids"] == [str(unknown)]

    def test_inactive_account_rejected(self, chart):
        accounts, by_code = chart

        with pytest.raises(AccountInactiveError):
            coa.validate_accounts_exist([by_code["4900"].account_id], accounts)


class TestControlAccounts:
    def test_top_level_account_is_control(self, chart):
        _, by_code = chart
        assert coa.is_top_level(by_code["1"])
        assert not coa.is_top_level(by_code["1010"])

    def test_account_with_children_detected(self, chart):
        accounts, by_code = chart
        assert coa.has_children(by_code["1100"].account_id, accounts)
        assert not coa.has_children(by_code["1110"].account_id, accounts)

    def test_posting_to_level_zero_rejected(self, chart):
        accounts, by_code = chart

        with pytest.raises(ControlAccountPostingError) as exc_info:
            coa.validate_control_accounts([by_code["1"].account_id], accounts)

        assert exc_info.value.violations[0]["reason"] == "top_level"

    def test_posting_to_parent_rejected(self, chart):
        accounts, by_code = chart

        with pytest.raises(ControlAccountPostingError) as exc_info:
            coa.validate_control_accounts([by_code["1100"].account_id], accounts)

        assert exc_info.value.violations[0]["account_code"] == "1100"
        assert exc_info.value.violations[0]["reason"] == "has_children"

    def test_leaf_accounts_pass(self, chart):
        accounts, by_code = chart
        coa.validate_control_accounts(
            [by_code["1010"].account_id, by_code["1110"].account_id], accounts
        )


class TestCurrencyConsistency:
    def test_foreign_account_rejected_without_fx_policy(self, chart):
        accounts, by_code = chart

        with pytest.raises(CurrencyMismatchError) as exc_info:
            coa.validate_currency_consistency(
                "MYR", accounts, [by_code["1010"].account_id, by_code["1020"].account_id]
            )

        assert exc_info.value.details["journal_currency"] == "MYR"
        assert exc_info.value.details["mismatches"] == [
            {"account_id": str(by_code["1020"].account_id), "account_currency": "USD"}
        ]

    def test_fx_policy_allows_mismatch(self, chart):
        accounts, by_code = chart
        coa.validate_currency_consistency(
            "MYR", accounts, [by_code["1020"].account_id], fx_policy_applies=True
        )


class TestNormalBalances:
    def test_credit_to_asset_is_a_warning_not_an_error(self, chart):
        accounts, by_code = chart
        lines = [
            JournalLineSpec(account_id=by_code["1010"].account_id, credit=Decimal("10")),
            JournalLineSpec(account_id=by_code["4000"].account_id, debit=Decimal("10")),
        ]

        warnings = coa.validate_normal_balances(lines, accounts)

        assert [w.account_code for w in warnings] == ["1010", "4000"]
        assert warnings[0].normal_balance == NormalBalance.DEBIT
        assert warnings[0].line_side == NormalBalance.CREDIT
        assert "1010" in warnings[0].message


class TestAccountType:
    def test_wrong_type_for_role(self, chart):
        accounts, by_code = chart

        with pytest.raises(AccountTypeMismatchError) as exc_info:
            coa.validate_account_type(
                by_code["4000"].account_id, accounts, (AccountType.ASSET,), "ar_control"
            )

        assert exc_info.value.details["role"] == "ar_control"
        assert exc_info.value.details["actual"] == "REVENUE"

    def test_matching_type_returns_account(self, chart):
        accounts, by_code = chart
        account = coa.validate_account_type(
            by_code["1010"].account_id, accounts, (AccountType.ASSET,), "bank"
        )
        assert account.code == "1010"


class TestJournalAccounts:
    def test_checks_run_existence_before_control(self, chart):
        accounts, by_code = chart
        lines = [
            JournalLineSpec(account_id=uuid4(), debit=Decimal("5")),
            JournalLineSpec(account_id=by_code["1"].account_id, credit=Decimal("5")),
        ]

        with pytest.raises(AccountNotFoundError):
            coa.validate_journal_accounts(lines, accounts, "MYR")

    def test_valid_journal_returns_warnings(self, chart):
        accounts, by_code = chart
        lines = [
            JournalLineSpec(account_id=by_code["1010"].account_id, debit=Decimal("5")),
            JournalLineSpec(account_id=by_code["4000"].account_id, credit=Decimal("5")),
        ]

        assert coa.validate_journal_accounts(lines, accounts, "MYR") == []
