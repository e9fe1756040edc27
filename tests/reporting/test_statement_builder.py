"""
Pure function unit tests for statements.py.

NO database, NO I/O.  Builds balance sheets and GuV statements from
synthetic balances.
"""

from __future__ import annotations

import json
from decimal import Decimal

import pytest

from bilanz_config.schema import StatementSide
from bilanz_kernel.exceptions import UnknownSectionError
from bilanz_reporting.config import ReportingConfig
from bilanz_reporting.models import StatementLine
from bilanz_reporting.statements import (
    build_balance_sheet,
    build_section_tree,
    classify_account_balances,
    compute_net_income,
    format_amount,
    render_statement,
)
from tests.reporting.conftest import make_balance


def _guv_balances():
    """Revenue 3,000 against expenses of 1,100."""
    return (
        make_balance("2430", "expense", "100.00", "pnl_only"),
        make_balance("3000", "expense", "500.00", "pnl_only"),
        make_balance("4100", "expense", "300.00", "pnl_only"),
        make_balance("4500", "expense", "200.00", "pnl_only"),
        make_balance("8000", "revenue", "1000.00", "pnl_only"),
        make_balance("8100", "revenue", "2000.00", "pnl_only"),
    )


def _balanced_balances():
    """Equity 10,000, bank 11,900, profit 1,900."""
    return (
        make_balance("0800", "equity", "10000.00"),
        make_balance("1200", "asset", "11900.00", "bank_bidirectional"),
        make_balance("4100", "expense", "1100.00", "pnl_only"),
        make_balance("8400", "revenue", "3000.00", "pnl_only"),
    )


class TestClassification:
    def test_groups_by_section(self, range_index, resolver):
        classification = classify_account_balances(_guv_balances(), range_index, resolver)
        assert [b.code for b in classification.balances_for("umsatzerloese")] == ["8000", "8100"]
        assert classification.balances_for("materialaufwand")[0].code == "3000"
        assert classification.balances_for("eigenkapital") == ()
        assert classification.unclassified == ()

    def test_totals_by_account_type(self, range_index):
        classification = classify_account_balances(_guv_balances(), range_index)
        assert classification.revenue_total == Decimal("3000.00")
        assert classification.expense_total == Decimal("1100.00")
        assert classification.net_income == Decimal("1900.00")

    def test_result_is_read_only(self, range_index):
        classification = classify_account_balances(_guv_balances(), range_index)
        with pytest.raises(TypeError):
            classification.by_section["umsatzerloese"] = ()

    def test_unclassified_accounts_collected(self, range_index):
        balances = (
            make_balance("1200", "asset", "50.00", "needs_review"),
            make_balance("5000", "expense", "20.00"),
        )
        classification = classify_account_balances(balances, range_index)
        assert [(u.code, u.reason) for u in classification.unclassified] == [
            ("1200", "needs_review"),
            ("5000", "no_matching_section"),
        ]
        # unclassified P&L accounts still count towards net income
        assert classification.net_income == Decimal("-20.00")


class TestNetIncome:
    def test_profit(self):
        assert compute_net_income(_guv_balances()) == Decimal("1900.00")

    def test_loss(self):
        balances = (
            make_balance("4100", "expense", "500.00"),
            make_balance("8400", "revenue", "200.00"),
        )
        assert compute_net_income(balances) == Decimal("-300.00")

    def test_balance_sheet_accounts_ignored(self):
        assert compute_net_income((make_balance("1200", "asset", "999.00"),)) == 0


class TestProfitAndLoss:
    def test_section_totals(self, range_index, open_year):
        report = build_balance_sheet(_guv_balances(), range_index, open_year)
        guv = report.profit_and_loss
        assert guv.total_revenue == Decimal("3000.00")
        assert guv.total_expenses == Decimal("1100.00")
        assert guv.net_income == Decimal("1900.00")
        assert guv.net_income_label == "Jahresüberschuss"

    def test_expense_subtotals_are_negative(self, range_index, open_year):
        guv = build_balance_sheet(_guv_balances(), range_index, open_year).profit_and_loss
        subtotals = {s.key: s.subtotal for s in guv.sections}
        assert subtotals["umsatzerloese"] == Decimal("3000.00")
        assert subtotals["materialaufwand"] == Decimal("-500.00")
        assert subtotals["personalaufwand"] == Decimal("-300.00")
        assert subtotals["abschreibungen"] == Decimal("-100.00")
        assert subtotals["sonstige_betriebliche_aufwendungen"] == Decimal("-200.00")

    def test_credit_balance_on_expense_account_reduces_subtotal(self, range_index, open_year):
        balances = (
            make_balance("3400", "expense", "500.00"),
            make_balance("3736", "expense", "-50.00", name="Erhaltene Skonti"),
            make_balance("8400", "revenue", "1000.00"),
        )
        guv = build_balance_sheet(balances, range_index, open_year).profit_and_loss
        subtotals = {s.key: s.subtotal for s in guv.sections}

        assert subtotals["materialaufwand"] == Decimal("-450.00")
        assert guv.total_expenses == Decimal("450.00")
        assert sum(subtotals.values()) == guv.net_income == Decimal("550.00")

    def test_expense_section_with_only_credits_is_positive(self, range_index, open_year):
        balances = (make_balance("3736", "expense", "-50.00"),)
        guv = build_balance_sheet(balances, range_index, open_year).profit_and_loss
        subtotals = {s.key: s.subtotal for s in guv.sections}
        assert subtotals["materialaufwand"] == Decimal("50.00")

    def test_sections_in_declaration_order(self, range_index, open_year):
        guv = build_balance_sheet(_guv_balances(), range_index, open_year).profit_and_loss
        keys = [s.key for s in guv.sections]
        assert keys[0] == "umsatzerloese"
        assert all(s.side.is_profit_and_loss for s in guv.sections)


class TestBalanceSheet:
    def test_net_income_injected_into_equity(self, range_index, open_year):
        report = build_balance_sheet(_guv_balances(), range_index, open_year)
        equity = report.passiva.find("eigenkapital")
        assert equity.lines == (
            StatementLine("net_income", "Jahresüberschuss", Decimal("1900.00")),
        )
        assert report.net_income_label == "Jahresüberschuss"

    def test_loss_label(self, range_index, open_year):
        balances = (make_balance("4100", "expense", "500.00"),)
        report = build_balance_sheet(balances, range_index, open_year)
        assert report.net_income == Decimal("-500.00")
        assert report.net_income_label == "Jahresfehlbetrag"
        assert report.passiva.find("eigenkapital").own_total == Decimal("-500.00")

    def test_balanced(self, range_index, open_year):
        report = build_balance_sheet(_balanced_balances(), range_index, open_year)
        assert report.aktiva.total == Decimal("11900.00")
        assert report.passiva.total == Decimal("11900.00")
        assert report.balanced
        assert report.difference == 0

    def test_unbalanced_is_reported_not_raised(self, range_index, open_year):
        balances = _balanced_balances()[:2]
        report = build_balance_sheet(balances, range_index, open_year)
        assert not report.balanced
        assert report.difference == Decimal("1900.00")

    def test_tolerance_boundary(self, range_index, open_year):
        balances = (
            make_balance("0800", "equity", "100.00"),
            make_balance("1200", "asset", "100.009"),
        )
        assert build_balance_sheet(balances, range_index, open_year).balanced
        balances = (
            make_balance("0800", "equity", "100.00"),
            make_balance("1200", "asset", "100.01"),
        )
        assert not build_balance_sheet(balances, range_index, open_year).balanced

    def test_overdraft_moves_to_passiva(self, range_index, open_year):
        balances = (make_balance("1200", "asset", "-450.00", "bank_bidirectional"),)
        report = build_balance_sheet(balances, range_index, open_year)
        section = report.passiva.find("verbindlichkeiten_gegenueber_kreditinstituten")
        assert section.lines[0].balance == Decimal("450.00")
        assert report.aktiva.find("kassenbestand_guthaben_bei_kreditinstituten").is_empty

    def test_nested_totals(self, range_index, open_year):
        balances = (
            make_balance("1200", "asset", "100.00"),
            make_balance("1400", "asset", "40.00"),
            make_balance("1500", "asset", "2.50"),
        )
        report = build_balance_sheet(balances, range_index, open_year)
        current_assets = report.aktiva.find("umlaufvermoegen")
        assert current_assets.own_total == 0
        assert current_assets.total == Decimal("142.50")
        assert current_assets.total_account_count == 3
        receivables = current_assets.find("forderungen_und_sonstige_vermoegensgegenstaende")
        assert receivables.level == 1
        assert receivables.total == Decimal("42.50")

    def test_unclassified_excluded_from_totals(self, range_index, open_year):
        balances = (
            make_balance("1200", "asset", "100.00"),
            make_balance("1210", "asset", "25.00", "needs_review"),
        )
        report = build_balance_sheet(balances, range_index, open_year)
        assert report.aktiva.total == Decimal("100.00")
        assert [u.code for u in report.unclassified] == ["1210"]

    def test_roots_follow_configuration(self, range_index, open_year):
        report = build_balance_sheet((), range_index, open_year)
        assert [s.key for s in report.aktiva.sections] == list(
            range_index.roots(StatementSide.AKTIVA)
        )
        assert [s.key for s in report.passiva.sections] == list(
            range_index.roots(StatementSide.PASSIVA)
        )


class TestSectionTree:
    def test_unknown_section_raises(self, range_index):
        classification = classify_account_balances((), range_index)
        with pytest.raises(UnknownSectionError):
            build_section_tree("no_such_section", range_index, classification)

    def test_flattened_lines_depth_first(self, range_index):
        balances = (
            make_balance("0100", "asset", "1.00"),
            make_balance("0010", "asset", "2.00"),
        )
        classification = classify_account_balances(balances, range_index)
        node = build_section_tree("anlagevermoegen", range_index, classification)
        assert [line.account_code for line in node.flattened_lines()] == ["0010", "0100"]


class TestRendering:
    def test_amounts_rounded_half_up_at_output(self):
        config = ReportingConfig()
        assert format_amount(Decimal("1.005"), config) == "1.01"
        assert format_amount(Decimal("-1.005"), config) == "-1.01"
        assert format_amount(Decimal("7"), config) == "7.00"

    def test_negative_zero_renders_as_zero(self):
        assert format_amount(Decimal("-0.001"), ReportingConfig()) == "0.00"

    def test_document_shape(self, range_index, open_year):
        data = render_statement(build_balance_sheet(_balanced_balances(), range_index, open_year))
        assert data["fiscal_year"] == {
            "id": str(open_year.id),
            "year": 2024,
            "start_date": "2024-01-01",
            "end_date": "2024-12-31",
            "closed": False,
        }
        assert data["balanced"] is True
        assert data["aktiva"]["total"] == "11900.00"
        assert data["passiva"]["total"] == "11900.00"
        assert data["net_income"] == "1900.00"
        assert data["net_income_label"] == "Jahresüberschuss"
        assert data["unclassified"] == []

        equity = data["passiva"]["sections"]["eigenkapital"]
        assert equity["section_name"]
        assert equity["accounts"] == [
            {"account_code": "net_income", "account_name": "Jahresüberschuss", "balance": "1900.00"}
        ]
        assert equity["total"] == "11900.00"
        assert equity["total_account_count"] == 2
        capital = equity["children"][0]
        assert capital["section_key"] == "gezeichnetes_kapital"
        assert capital["accounts"][0]["balance"] == "10000.00"
        assert "children" not in capital

    def test_guv_document(self, range_index, open_year):
        data = render_statement(build_balance_sheet(_guv_balances(), range_index, open_year))
        guv = data["guv"]
        assert guv["total_revenue"] == "3000.00"
        assert guv["total_expenses"] == "1100.00"
        assert guv["net_income"] == "1900.00"
        assert guv["sections"]["umsatzerloese"]["account_count"] == 2
        assert guv["sections"]["materialaufwand"]["subtotal"] == "-500.00"

    def test_rendering_is_deterministic(self, range_index, open_year):
        first = render_statement(build_balance_sheet(_balanced_balances(), range_index, open_year))
        second = render_statement(build_balance_sheet(_balanced_balances(), range_index, open_year))
        assert json.dumps(first) == json.dumps(second)

    def test_full_precision_until_render(self, range_index, open_year):
        balances = (
            make_balance("1200", "asset", "0.004"),
            make_balance("1210", "asset", "0.004"),
            make_balance("1220", "asset", "0.004"),
        )
        report = build_balance_sheet(
            balances, range_index, open_year, config=ReportingConfig(materiality_threshold=Decimal("0"))
        )
        data = render_statement(report)
        section = data["aktiva"]["sections"]["umlaufvermoegen"]["children"][-1]
        assert section["total"] == "0.01"
        assert [a["balance"] for a in section["accounts"]] == ["0.00", "0.00", "0.00"]
