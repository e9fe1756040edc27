"""
Module: bilanz_kernel.models.account
Responsibility: ORM persistence for the chart of accounts (SKR03 codes) -- the
    target of every line item.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - code is unique per company.
    - Structural fields (code, account_type, company_id) are immutable once
      the account is referenced by a posted line item.  presentation_rule
      stays editable so a reviewer can resolve a ``needs_review`` tag
      (see db/immutability.py).

Audit relevance:
    account_type drives the sign convention of every reported balance and
    presentation_rule drives the statement side of saldo-dependent accounts.
    Changing either after posting would silently restate history.
"""

from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bilanz_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from bilanz_kernel.models.company import Company
    from bilanz_kernel.models.journal import LineItem


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"


class PresentationRule(str, Enum):
    """
    How an account is placed on the statement.

    Static rules fix the side.  Bidirectional rules pick the side from the
    direction of the account's saldo at computation time.  ``needs_review``
    marks an account whose placement could not be inferred.
    """

    ASSET_ONLY = "asset_only"
    LIABILITY_ONLY = "liability_only"
    EQUITY_ONLY = "equity_only"
    PNL_ONLY = "pnl_only"

    FLL_STANDARD = "fll_standard"  # trade receivables / creditor balances
    VLL_STANDARD = "vll_standard"  # trade payables / debtor balances
    BANK_BIDIRECTIONAL = "bank_bidirectional"  # bank / overdraft
    TAX_STANDARD = "tax_standard"  # tax receivable / payable
    RECEIVABLE_AFFILIATED = "receivable_affiliated"
    PAYABLE_AFFILIATED = "payable_affiliated"

    NEEDS_REVIEW = "needs_review"

    @property
    def is_bidirectional(self) -> bool:
        return self in BIDIRECTIONAL_RULES


BIDIRECTIONAL_RULES: frozenset[PresentationRule] = frozenset({
    PresentationRule.FLL_STANDARD,
    PresentationRule.VLL_STANDARD,
    PresentationRule.BANK_BIDIRECTIONAL,
    PresentationRule.TAX_STANDARD,
    PresentationRule.RECEIVABLE_AFFILIATED,
    PresentationRule.PAYABLE_AFFILIATED,
})


class Account(TrackedBase):
    """
    Chart of accounts entry.

    Contract:
        (company_id, code) is unique.  account_type is stored as a plain
        string: an unrecognized legacy value loads without error and is
        reported with a zero balance instead of crashing the statement.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("company_id", "code", name="uq_account_company_code"),
        Index("idx_account_type", "account_type"),
    )

    company_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("companies.id"),
        nullable=False,
    )

    # SKR03 account code, matched against section ranges
    code: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    account_type: Mapped[AccountType] = mapped_column(
        String(20),
        nullable=False,
    )

    presentation_rule: Mapped[PresentationRule | None] = mapped_column(
        String(30),
        nullable=True,
    )

    company: Mapped["Company"] = relationship(back_populates="accounts")

    line_items: Mapped[list["LineItem"]] = relationship(
        back_populates="account",
        lazy="select",
    )

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"
