"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for the Chart of Accounts (COA) -- the target
    of every journal line.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - normal_balance is derived from account_type (DEBIT for ASSET/EXPENSE,
      CREDIT for LIABILITY/EQUITY/REVENUE) and never set independently.
    - A node with children or level == 0 is a control account; it never
      receives a direct posting (enforced by domain.coa, not this model).
    - code is unique per tenant/company scope.

Failure modes:
    - IntegrityError on duplicate (tenant_id, company_id, code).

Audit relevance:
    Account rows define the structure of the general ledger.  Reports roll
    header accounts up from their descendants using parent_id and level.
"""

from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, Boolean, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import ScopedBase, UUIDString


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""

    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    REVENUE = "REVENUE"
    EXPENSE = "EXPENSE"

    @property
    def normal_balance(self) -> "NormalBalance":
        if self in (AccountType.ASSET, AccountType.EXPENSE):
            return NormalBalance.DEBIT
        return NormalBalance.CREDIT


class NormalBalance(str, Enum):
    """Normal balance side for an account."""

    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


class AccountCategory(str, Enum):
    """Optional reporting classification hint."""

    CURRENT = "current"
    NON_CURRENT = "non_current"
    CASH = "cash"
    OPERATING = "operating"
    COST_OF_SALES = "cost_of_sales"
    NON_OPERATING = "non_operating"
    RETAINED_EARNINGS = "retained_earnings"


class Account(ScopedBase):
    """
    Chart of Accounts entry -- a single node in the general ledger tree.

    Contract:
        (tenant_id, company_id, code) is unique.  parent_id links to another
        Account in the same scope.  level 0 marks a top/control node.
    """

    __tablename__ = "chart_of_accounts"

    __table_args__ = (
        UniqueConstraint("tenant_id", "company_id", "code", name="uq_account_scope_code"),
        Index("idx_account_scope_type", "tenant_id", "company_id", "account_type"),
        Index("idx_account_parent", "parent_id"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    account_type: Mapped[str] = mapped_column(String(20), nullable=False)

    normal_balance: Mapped[str] = mapped_column(String(10), nullable=False)

    parent_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("chart_of_accounts.id"),
        nullable=True,
    )

    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    category: Mapped[str | None] = mapped_column(String(30), nullable=True)

    tags: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)

    def __init__(self, **kwargs):
        account_type = kwargs.get("account_type")
        if account_type is not None and "normal_balance" not in kwargs:
            kwargs["normal_balance"] = AccountType(account_type).normal_balance.value
        if isinstance(kwargs.get("account_type"), AccountType):
            kwargs["account_type"] = kwargs["account_type"].value
        if isinstance(kwargs.get("normal_balance"), NormalBalance):
            kwargs["normal_balance"] = kwargs["normal_balance"].value
        super().__init__(**kwargs)

    @property
    def is_top_level(self) -> bool:
        return self.level == 0

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"
