"""
Statement data models (``bilanz_reporting.models``).

Responsibility
--------------
Frozen dataclasses for every stage of statement generation: account
inputs, aggregated balances, classified and unclassified balances, the
section tree, and the finished balance sheet and profit and loss reports.

Architecture position
---------------------
**Modules layer** -- pure value objects, no I/O and no ORM types.

Invariants enforced
-------------------
* All models are ``frozen=True``; a report cannot change after it is built.
* Monetary amounts are ``Decimal`` at full precision.  Rounding to the
  display precision happens only in ``statements.render_statement``.
* Section totals are derived properties, so a node's total always equals
  the sum of its lines plus the totals of its children.

Audit relevance
---------------
``BalanceSheetReport.unclassified`` keeps accounts that could not be
placed visible next to the statement instead of dropping them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Iterator

from bilanz_config.schema import StatementSide

ZERO = Decimal("0")


# =========================================================================
# Inputs and aggregation
# =========================================================================


@dataclass(frozen=True)
class AccountInfo:
    """Account metadata needed for classification."""

    code: str
    name: str
    account_type: str
    presentation_rule: str | None = None
    account_id: Any = None


@dataclass(frozen=True)
class AccountBalance:
    """Net balance of one account after sign convention."""

    code: str
    name: str
    account_type: str
    balance: Decimal
    total_debit: Decimal = ZERO
    total_credit: Decimal = ZERO
    presentation_rule: str | None = None

    @property
    def saldo(self) -> Decimal:
        """Debit-positive saldo, independent of the account type."""
        return self.total_debit - self.total_credit


@dataclass(frozen=True)
class ClassifiedAccountBalance:
    """An account balance placed in exactly one section."""

    code: str
    name: str
    section_key: str
    balance: Decimal
    account_type: str


@dataclass(frozen=True)
class UnclassifiedAccount:
    """An account that needs manual review before it can be placed."""

    code: str
    name: str
    account_type: str
    balance: Decimal
    reason: str


# =========================================================================
# Section tree
# =========================================================================


@dataclass(frozen=True)
class StatementLine:
    """One account line inside a section."""

    account_code: str
    account_name: str
    balance: Decimal


@dataclass(frozen=True)
class SectionNode:
    """A statement section with its own lines and nested sub-sections."""

    key: str
    label: str
    side: StatementSide
    level: int = 0
    lines: tuple[StatementLine, ...] = ()
    children: tuple[SectionNode, ...] = ()

    @property
    def own_total(self) -> Decimal:
        return sum((line.balance for line in self.lines), ZERO)

    @property
    def total(self) -> Decimal:
        return self.own_total + sum((child.total for child in self.children), ZERO)

    @property
    def account_count(self) -> int:
        return len(self.lines)

    @property
    def total_account_count(self) -> int:
        return self.account_count + sum(child.total_account_count for child in self.children)

    @property
    def is_empty(self) -> bool:
        return self.total_account_count == 0

    def find(self, key: str) -> SectionNode | None:
        """Depth-first search for a section by key."""
        if self.key == key:
            return self
        for child in self.children:
            found = child.find(key)
            if found is not None:
                return found
        return None

    def flattened_lines(self) -> Iterator[StatementLine]:
        """Own lines, then every child's lines, depth-first."""
        yield from self.lines
        for child in self.children:
            yield from child.flattened_lines()


@dataclass(frozen=True)
class StatementSideReport:
    """Aktiva or Passiva: root sections in declaration order plus the total."""

    side: StatementSide
    sections: tuple[SectionNode, ...]

    @property
    def total(self) -> Decimal:
        return sum((section.total for section in self.sections), ZERO)

    def find(self, key: str) -> SectionNode | None:
        for section in self.sections:
            found = section.find(key)
            if found is not None:
                return found
        return None


# =========================================================================
# Reports
# =========================================================================


@dataclass(frozen=True)
class FiscalYearInfo:
    """Fiscal year metadata carried on every statement."""

    id: Any
    year: int
    start_date: date
    end_date: date
    closed: bool = False

    @classmethod
    def from_model(cls, fiscal_year: Any) -> FiscalYearInfo:
        """Build from any object exposing the FiscalYear attributes."""
        if isinstance(fiscal_year, cls):
            return fiscal_year
        return cls(
            id=fiscal_year.id,
            year=fiscal_year.year,
            start_date=fiscal_year.start_date,
            end_date=fiscal_year.end_date,
            closed=bool(fiscal_year.closed),
        )


@dataclass(frozen=True)
class ProfitAndLossSection:
    """A GuV section with its display subtotal."""

    key: str
    label: str
    side: StatementSide
    lines: tuple[StatementLine, ...] = ()

    @property
    def account_count(self) -> int:
        return len(self.lines)

    @property
    def subtotal(self) -> Decimal:
        """
        Revenue sections add, expense sections subtract.

        Both are the plain sum of the natural balances, so a credit balance
        on an expense account (e.g. Skonti received) lowers the section's
        expenses and the subtotals add up to net income.
        """
        total = sum((line.balance for line in self.lines), ZERO)
        if self.side == StatementSide.EXPENSE:
            return -total
        return total


@dataclass(frozen=True)
class ProfitAndLossReport:
    """Gewinn- und Verlustrechnung."""

    sections: tuple[ProfitAndLossSection, ...]
    total_revenue: Decimal
    total_expenses: Decimal
    net_income: Decimal
    net_income_label: str


@dataclass(frozen=True)
class BalanceSheetReport:
    """Bilanz with the profit and loss statement it was derived from."""

    fiscal_year: FiscalYearInfo
    aktiva: StatementSideReport
    passiva: StatementSideReport
    balanced: bool
    net_income: Decimal
    net_income_label: str
    profit_and_loss: ProfitAndLossReport
    unclassified: tuple[UnclassifiedAccount, ...] = field(default_factory=tuple)

    @property
    def difference(self) -> Decimal:
        return self.aktiva.total - self.passiva.total
