"""
Statement building -- pure functions.

Takes aggregated ``AccountBalance`` values and produces the classified
balance sheet (Aktiva / Passiva) and the profit and loss statement (GuV).
No I/O, no ORM access; everything is a function of its arguments.

Pipeline (called by ``StatementService``):

    aggregate_balances()  ->  classify_account_balances()  ->  build_balance_sheet()
                                                                      |
                                                               render_statement()
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from bilanz_config.schema import StatementSide
from bilanz_kernel.models.account import AccountType
from bilanz_reporting.config import ReportingConfig
from bilanz_reporting.models import (
    ZERO,
    AccountBalance,
    BalanceSheetReport,
    ClassifiedAccountBalance,
    FiscalYearInfo,
    ProfitAndLossReport,
    ProfitAndLossSection,
    SectionNode,
    StatementLine,
    StatementSideReport,
    UnclassifiedAccount,
)
from bilanz_reporting.presentation import PresentationRuleResolver
from bilanz_reporting.range_index import RangeIndex


# =========================================================================
# Classification
# =========================================================================


@dataclass(frozen=True)
class Classification:
    """Classified balances grouped by section, plus the ones left over."""

    by_section: Mapping[str, tuple[ClassifiedAccountBalance, ...]]
    unclassified: tuple[UnclassifiedAccount, ...]
    revenue_total: Decimal = ZERO
    expense_total: Decimal = ZERO

    @property
    def net_income(self) -> Decimal:
        return self.revenue_total - self.expense_total

    def balances_for(self, key: str) -> tuple[ClassifiedAccountBalance, ...]:
        return self.by_section.get(key, ())


def classify_account_balances(
    balances: Iterable[AccountBalance],
    index: RangeIndex,
    resolver: PresentationRuleResolver | None = None,
) -> Classification:
    """
    Place every balance in exactly one section or in the unclassified bucket.

    Input order is preserved within each section.  Revenue and expense
    totals are accumulated by account type, so unclassified P&L accounts
    still count towards net income.
    """
    resolver = resolver or PresentationRuleResolver(index)
    grouped: dict[str, list[ClassifiedAccountBalance]] = {}
    unclassified: list[UnclassifiedAccount] = []
    revenue_total = ZERO
    expense_total = ZERO

    for balance in balances:
        if balance.account_type == AccountType.REVENUE.value:
            revenue_total += balance.balance
        elif balance.account_type == AccountType.EXPENSE.value:
            expense_total += balance.balance

        placement = resolver.resolve(balance)
        if placement.section_key is None:
            unclassified.append(
                UnclassifiedAccount(
                    code=balance.code,
                    name=balance.name,
                    account_type=balance.account_type,
                    balance=placement.balance,
                    reason=placement.reason or "",
                )
            )
            continue
        grouped.setdefault(placement.section_key, []).append(
            ClassifiedAccountBalance(
                code=balance.code,
                name=balance.name,
                section_key=placement.section_key,
                balance=placement.balance,
                account_type=balance.account_type,
            )
        )

    return Classification(
        by_section=MappingProxyType({key: tuple(items) for key, items in grouped.items()}),
        unclassified=tuple(unclassified),
        revenue_total=revenue_total,
        expense_total=expense_total,
    )


def compute_net_income(balances: Iterable[AccountBalance]) -> Decimal:
    """Revenue total minus expense total, by account type."""
    revenue = ZERO
    expenses = ZERO
    for balance in balances:
        if balance.account_type == AccountType.REVENUE.value:
            revenue += balance.balance
        elif balance.account_type == AccountType.EXPENSE.value:
            expenses += balance.balance
    return revenue - expenses


# =========================================================================
# Section trees
# =========================================================================


def build_section_tree(
    key: str,
    index: RangeIndex,
    classification: Classification,
    extra_lines: Mapping[str, tuple[StatementLine, ...]] | None = None,
    level: int = 0,
) -> SectionNode:
    """Build the node for ``key`` and, recursively, its children."""
    section = index.section(key)
    lines = tuple(
        StatementLine(account_code=c.code, account_name=c.name, balance=c.balance)
        for c in classification.balances_for(key)
    )
    if extra_lines:
        lines += extra_lines.get(key, ())

    children = tuple(
        build_section_tree(child, index, classification, extra_lines, level + 1)
        for child in index.children(key)
    )
    return SectionNode(
        key=key,
        label=section.label,
        side=section.side,
        level=level,
        lines=lines,
        children=children,
    )


def build_side(
    side: StatementSide,
    index: RangeIndex,
    classification: Classification,
    extra_lines: Mapping[str, tuple[StatementLine, ...]] | None = None,
) -> StatementSideReport:
    return StatementSideReport(
        side=side,
        sections=tuple(
            build_section_tree(key, index, classification, extra_lines)
            for key in index.roots(side)
        ),
    )


# =========================================================================
# Profit and loss
# =========================================================================


def build_profit_and_loss(
    classification: Classification,
    index: RangeIndex,
    net_income: Decimal,
    config: ReportingConfig,
) -> ProfitAndLossReport:
    """GuV sections in declaration order with revenue and expense totals."""
    sections = []
    for key in index.section_keys():
        section = index.section(key)
        if not section.side.is_profit_and_loss:
            continue
        sections.append(
            ProfitAndLossSection(
                key=key,
                label=section.label,
                side=section.side,
                lines=tuple(
                    StatementLine(account_code=c.code, account_name=c.name, balance=c.balance)
                    for c in classification.balances_for(key)
                ),
            )
        )

    total_revenue = sum(
        (line.balance for s in sections if s.side == StatementSide.REVENUE for line in s.lines),
        ZERO,
    )
    total_expenses = sum(
        (line.balance for s in sections if s.side == StatementSide.EXPENSE for line in s.lines),
        ZERO,
    )
    return ProfitAndLossReport(
        sections=tuple(sections),
        total_revenue=total_revenue,
        total_expenses=total_expenses,
        net_income=net_income,
        net_income_label=config.net_income_label(net_income),
    )


# =========================================================================
# Balance sheet
# =========================================================================


def build_balance_sheet(
    balances: Iterable[AccountBalance],
    index: RangeIndex,
    fiscal_year: FiscalYearInfo,
    resolver: PresentationRuleResolver | None = None,
    config: ReportingConfig | None = None,
) -> BalanceSheetReport:
    """
    Build the balance sheet from aggregated balances.

    Net income is injected into the configured equity section as a
    synthetic line.  ``balanced`` is True iff Aktiva and Passiva totals
    differ by less than the balance tolerance.  Unclassified accounts are
    reported separately and are not part of either total.
    """
    config = config or ReportingConfig()
    classification = classify_account_balances(balances, index, resolver)
    net_income = classification.net_income
    net_income_label = config.net_income_label(net_income)

    net_income_line = StatementLine(
        account_code=config.net_income_code,
        account_name=net_income_label,
        balance=net_income,
    )
    extra_lines = {index.configuration.net_income_section: (net_income_line,)}

    aktiva = build_side(StatementSide.AKTIVA, index, classification)
    passiva = build_side(StatementSide.PASSIVA, index, classification, extra_lines)

    return BalanceSheetReport(
        fiscal_year=fiscal_year,
        aktiva=aktiva,
        passiva=passiva,
        balanced=abs(aktiva.total - passiva.total) < config.balance_tolerance,
        net_income=net_income,
        net_income_label=net_income_label,
        profit_and_loss=build_profit_and_loss(classification, index, net_income, config),
        unclassified=classification.unclassified,
    )


# =========================================================================
# Rendering
# =========================================================================


def format_amount(value: Decimal, config: ReportingConfig) -> str:
    """Round half up to the display precision; never renders ``-0.00``."""
    rounded = value.quantize(config.display_quantum, rounding=ROUND_HALF_UP)
    if rounded.is_zero():
        rounded = abs(rounded)
    return str(rounded)


def _render_lines(lines: Iterable[StatementLine], config: ReportingConfig) -> list[dict]:
    return [
        {
            "account_code": line.account_code,
            "account_name": line.account_name,
            "balance": format_amount(line.balance, config),
        }
        for line in lines
    ]


def render_section(node: SectionNode, config: ReportingConfig) -> dict[str, Any]:
    rendered: dict[str, Any] = {
        "section_key": node.key,
        "section_name": node.label,
        "level": node.level,
        "accounts": _render_lines(node.lines, config),
        "own_total": format_amount(node.own_total, config),
        "total": format_amount(node.total, config),
        "account_count": node.account_count,
        "total_account_count": node.total_account_count,
    }
    if node.children:
        rendered["children"] = [render_section(child, config) for child in node.children]
    return rendered


def render_side(side: StatementSideReport, config: ReportingConfig) -> dict[str, Any]:
    return {
        "sections": {node.key: render_section(node, config) for node in side.sections},
        "total": format_amount(side.total, config),
    }


def render_fiscal_year(fiscal_year: FiscalYearInfo) -> dict[str, Any]:
    return {
        "id": str(fiscal_year.id),
        "year": fiscal_year.year,
        "start_date": fiscal_year.start_date.isoformat(),
        "end_date": fiscal_year.end_date.isoformat(),
        "closed": fiscal_year.closed,
    }


def render_profit_and_loss(report: ProfitAndLossReport, config: ReportingConfig) -> dict[str, Any]:
    return {
        "sections": {
            section.key: {
                "section_key": section.key,
                "section_name": section.label,
                "side": section.side.value,
                "accounts": _render_lines(section.lines, config),
                "account_count": section.account_count,
                "subtotal": format_amount(section.subtotal, config),
            }
            for section in report.sections
        },
        "total_revenue": format_amount(report.total_revenue, config),
        "total_expenses": format_amount(report.total_expenses, config),
        "net_income": format_amount(report.net_income, config),
        "net_income_label": report.net_income_label,
    }


def render_statement(report: BalanceSheetReport, config: ReportingConfig | None = None) -> dict[str, Any]:
    """
    JSON-compatible statement document.

    This is the only place where amounts are rounded.  The same document
    shape is persisted as the closing snapshot.
    """
    config = config or ReportingConfig()
    return {
        "fiscal_year": render_fiscal_year(report.fiscal_year),
        "aktiva": render_side(report.aktiva, config),
        "passiva": render_side(report.passiva, config),
        "balanced": report.balanced,
        "net_income": format_amount(report.net_income, config),
        "net_income_label": report.net_income_label,
        "unclassified": [
            {
                "account_code": account.code,
                "account_name": account.name,
                "account_type": account.account_type,
                "balance": format_amount(account.balance, config),
                "reason": account.reason,
            }
            for account in report.unclassified
        ],
        "guv": render_profit_and_loss(report.profit_and_loss, config),
    }
