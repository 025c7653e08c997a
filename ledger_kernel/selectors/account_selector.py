"""
Module: ledger_kernel.selectors.account_selector
Responsibility: Load the chart of accounts of one scope as AccountInfo DTOs.
Architecture position: Kernel > Selectors.

The whole scope is loaded at once so control-account checks can see every
potential child of a referenced account.
"""

from uuid import UUID

from sqlalchemy import select

from ledger_kernel.domain.dtos import AccountInfo
from ledger_kernel.models.account import Account
from ledger_kernel.selectors.base import BaseSelector


class AccountSelector(BaseSelector):

    def account_map(self, include_inactive: bool = True) -> dict[UUID, AccountInfo]:
        query = self._scoped(select(Account), Account).order_by(Account.code)
        if not include_inactive:
            query = query.where(Account.is_active.is_(True))
        return {
            account.id: AccountInfo.from_model(account)
            for account in self.session.execute(query).scalars().all()
        }

    def by_code(self, code: str) -> AccountInfo | None:
        account = self.session.execute(
            self._scoped(select(Account).where(Account.code == code), Account)
        ).scalar_one_or_none()
        return AccountInfo.from_model(account) if account is not None else None
