"""
Module: bilanz_kernel.selectors.ledger_selector
Responsibility: Read-only ledger queries feeding statement aggregation: the
    chart of accounts of a company and the posted activity of one fiscal
    year, either grouped per account or as individual line items.
Architecture position: Kernel > Selectors.  May import from models/ and
    selectors/base.py.

Invariants enforced:
    - Only line items whose entry is posted (posted_at IS NOT NULL) and of
      not of type CLOSING are visible: NORMAL bookings plus the OPENING
      entry carried forward from the previous year.  CLOSING entries never
      re-enter aggregation.
    - No stored balances; every total is derived at query time.

Failure modes:
    - Returns empty results when the fiscal year has no posted activity.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import case, func, select

from bilanz_kernel.models.account import Account
from bilanz_kernel.models.journal import (
    EntryType,
    JournalEntry,
    LineDirection,
    LineItem,
)
from bilanz_kernel.selectors.base import BaseSelector


def _plain(value):
    """Enum members set in the current session read back as raw values."""
    return value.value if isinstance(value, Enum) else value


@dataclass(frozen=True)
class AccountRow:
    """Chart-of-accounts entry as seen by statement generation."""

    account_id: UUID | None
    code: str
    name: str
    account_type: str
    presentation_rule: str | None = None


@dataclass(frozen=True)
class AccountTotalsRow:
    """Debit and credit totals of one account's posted activity."""

    account_code: str
    total_debit: Decimal
    total_credit: Decimal


@dataclass(frozen=True)
class PostedLineRow:
    """A single posted, non-closing line item."""

    account_code: str
    amount: Decimal
    direction: str


class LedgerSelector(BaseSelector):
    """
    Ledger read path for one company.

    Satisfies ``bilanz_reporting.service.LedgerDataSource``.
    """

    def accounts(self, company_id: UUID) -> list[AccountRow]:
        """All accounts of the company, ordered by code."""
        rows = self.session.execute(
            select(Account)
            .where(Account.company_id == company_id)
            .order_by(Account.code)
        ).scalars()
        return [
            AccountRow(
                account_id=account.id,
                code=account.code,
                name=account.name,
                account_type=_plain(account.account_type),
                presentation_rule=_plain(account.presentation_rule),
            )
            for account in rows
        ]

    def _posted_activity_filter(self, query, company_id: UUID, fiscal_year_id: UUID):
        return (
            query.join(JournalEntry, LineItem.journal_entry_id == JournalEntry.id)
            .join(Account, LineItem.account_id == Account.id)
            .where(JournalEntry.company_id == company_id)
            .where(JournalEntry.fiscal_year_id == fiscal_year_id)
            .where(JournalEntry.posted_at.is_not(None))
            .where(JournalEntry.entry_type != EntryType.CLOSING.value)
        )

    def account_totals(
        self,
        company_id: UUID,
        fiscal_year_id: UUID,
    ) -> dict[str, AccountTotalsRow]:
        """
        Per-account debit and credit totals, grouped in SQL.

        Returns:
            Mapping of account code to AccountTotalsRow.
        """
        debit_sum = func.sum(
            case(
                (LineItem.direction == LineDirection.DEBIT.value, LineItem.amount),
                else_=Decimal("0"),
            )
        ).label("total_debit")

        credit_sum = func.sum(
            case(
                (LineItem.direction == LineDirection.CREDIT.value, LineItem.amount),
                else_=Decimal("0"),
            )
        ).label("total_credit")

        query = self._posted_activity_filter(
            select(Account.code.label("account_code"), debit_sum, credit_sum),
            company_id,
            fiscal_year_id,
        ).group_by(Account.code).order_by(Account.code)

        return {
            row.account_code: AccountTotalsRow(
                account_code=row.account_code,
                total_debit=Decimal(row.total_debit or 0),
                total_credit=Decimal(row.total_credit or 0),
            )
            for row in self.session.execute(query).all()
        }

    def posted_lines(
        self,
        company_id: UUID,
        fiscal_year_id: UUID,
    ) -> list[PostedLineRow]:
        """Posted, non-closing line items of the fiscal year."""
        query = self._posted_activity_filter(
            select(
                Account.code.label("account_code"),
                LineItem.amount,
                LineItem.direction,
            ),
            company_id,
            fiscal_year_id,
        ).order_by(Account.code, LineItem.id)

        return [
            PostedLineRow(
                account_code=row.account_code,
                amount=Decimal(row.amount),
                direction=_plain(row.direction),
            )
            for row in self.session.execute(query).all()
        ]

    def posted_activity(
        self,
        company_id: UUID,
        fiscal_year_id: UUID,
    ) -> dict[str, AccountTotalsRow]:
        """Activity in the shape preferred for aggregation (grouped totals)."""
        return self.account_totals(company_id, fiscal_year_id)
