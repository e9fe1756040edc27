"""
Balance aggregator tests.

Sign convention, materiality and closing-prefix filters, and both
accepted activity shapes.
"""

from __future__ import annotations

from decimal import Decimal

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from bilanz_kernel.exceptions import UnknownAccountError
from bilanz_kernel.models.account import AccountType
from bilanz_reporting.aggregation import (
    aggregate_balances,
    compute_natural_balance,
    fold_line_items,
)
from bilanz_reporting.config import ReportingConfig
from tests.reporting.conftest import Line, Totals, make_account_info

amounts = st.decimals(
    min_value=Decimal("0"),
    max_value=Decimal("9999999999.99"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)


class TestNaturalBalance:
    """compute_natural_balance sign convention."""

    @settings(max_examples=100, suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(debit=amounts, credit=amounts)
    def test_debit_normal_types(self, debit, credit):
        for account_type in (AccountType.ASSET, AccountType.EXPENSE):
            assert compute_natural_balance(account_type, debit, credit) == debit - credit

    @settings(max_examples=100, suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(debit=amounts, credit=amounts)
    def test_credit_normal_types(self, debit, credit):
        for account_type in (AccountType.LIABILITY, AccountType.EQUITY, AccountType.REVENUE):
            assert compute_natural_balance(account_type, debit, credit) == credit - debit

    def test_accepts_plain_strings(self):
        assert compute_natural_balance("asset", Decimal("5"), Decimal("2")) == Decimal("3")
        assert compute_natural_balance("revenue", Decimal("5"), Decimal("2")) == Decimal("-3")

    def test_unknown_type_is_zero(self):
        assert compute_natural_balance("statistical", Decimal("100"), Decimal("1")) == 0


class TestFilters:
    """Materiality threshold and closing prefix."""

    @pytest.mark.parametrize(
        ("debit", "credit", "reported"),
        [
            ("0.01", "0", True),
            ("0", "0.01", True),
            ("0.009", "0", False),
            ("100.005", "100", False),
            ("0", "0", False),
        ],
    )
    def test_materiality(self, debit, credit, reported):
        balances = aggregate_balances(
            [make_account_info("1200", "asset")],
            {"1200": Totals(debit, credit)},
        )
        assert (len(balances) == 1) is reported

    def test_exact_threshold_keeps_sign(self):
        (balance,) = aggregate_balances(
            [make_account_info("1200", "asset")],
            {"1200": Totals("0", "0.01")},
        )
        assert balance.balance == Decimal("-0.01")

    def test_closing_prefix_excluded_regardless_of_amount(self):
        balances = aggregate_balances(
            [make_account_info("9000", "equity"), make_account_info("0800", "equity")],
            {"9000": Totals("0", "50000.00"), "0800": Totals("0", "25000.00")},
        )
        assert [b.code for b in balances] == ["0800"]

    def test_custom_threshold(self):
        config = ReportingConfig(materiality_threshold=Decimal("1.00"))
        balances = aggregate_balances(
            [make_account_info("1200", "asset")],
            {"1200": Totals("0.99", "0")},
            config,
        )
        assert balances == ()


class TestAggregateBalances:
    """End-to-end aggregation."""

    def test_sorted_by_code(self):
        accounts = [
            make_account_info("8400", "revenue"),
            make_account_info("0800", "equity"),
            make_account_info("1200", "asset"),
        ]
        activity = {
            "8400": Totals("0", "3000"),
            "0800": Totals("0", "10000"),
            "1200": Totals("13000", "0"),
        }
        assert [b.code for b in aggregate_balances(accounts, activity)] == ["0800", "1200", "8400"]

    def test_line_items_and_totals_agree(self):
        accounts = [make_account_info("1200", "asset"), make_account_info("8400", "revenue")]
        lines = [
            Line("1200", "debit", "500.00"),
            Line("8400", "credit", "500.00"),
            Line("1200", "credit", "120.50"),
            Line("8400", "debit", "120.50"),
        ]
        from_lines = aggregate_balances(accounts, lines)
        from_totals = aggregate_balances(
            accounts,
            {"1200": Totals("500.00", "120.50"), "8400": Totals("120.50", "500.00")},
        )
        assert from_lines == from_totals
        assert [b.balance for b in from_lines] == [Decimal("379.50"), Decimal("379.50")]

    def test_totals_are_carried(self):
        (balance,) = aggregate_balances(
            [make_account_info("1200", "asset", "bank_bidirectional")],
            {"1200": Totals("100.00", "550.00")},
        )
        assert balance.total_debit == Decimal("100.00")
        assert balance.total_credit == Decimal("550.00")
        assert balance.saldo == Decimal("-450.00")
        assert balance.presentation_rule == "bank_bidirectional"

    def test_accounts_without_activity_are_dropped(self):
        balances = aggregate_balances([make_account_info("1200", "asset")], {})
        assert balances == ()

    def test_unknown_account_code_raises(self):
        with pytest.raises(UnknownAccountError) as exc_info:
            aggregate_balances(
                [make_account_info("1200", "asset")],
                {"1200": Totals("1", "0"), "1300": Totals("1", "0")},
            )
        assert exc_info.value.account_code == "1300"

    def test_unknown_type_is_dropped_and_logged(self, captured_logs):
        balances = aggregate_balances(
            [make_account_info("1200", "statistical")],
            {"1200": Totals("100", "0")},
        )
        assert balances == ()
        assert any(r["message"] == "unknown_account_type" for r in captured_logs())

    def test_enum_account_types_normalized(self):
        (balance,) = aggregate_balances(
            [make_account_info("1200", AccountType.ASSET)],
            {"1200": Totals("10", "0")},
        )
        assert balance.account_type == "asset"


class TestFoldLineItems:
    def test_sums_per_account(self):
        totals = fold_line_items([
            Line("1200", "debit", "10"),
            Line("1200", "debit", "5"),
            Line("1200", "credit", "3"),
        ])
        assert totals == {"1200": (Decimal("15"), Decimal("3"))}

    def test_invalid_direction(self):
        with pytest.raises(ValueError, match="Invalid direction"):
            fold_line_items([Line("1200", "sideways", "10")])
