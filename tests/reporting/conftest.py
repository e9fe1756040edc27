"""
Reporting-specific test fixtures.

Provides:
- The default range index and reporting configuration
- Factories for synthetic account data (pure tests, no database)
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from bilanz_config import get_default_configuration
from bilanz_reporting.config import ReportingConfig
from bilanz_reporting.models import AccountBalance, AccountInfo, FiscalYearInfo
from bilanz_reporting.presentation import PresentationRuleResolver
from bilanz_reporting.range_index import RangeIndex


@pytest.fixture
def reporting_config() -> ReportingConfig:
    return ReportingConfig.with_defaults()


@pytest.fixture(scope="session")
def range_index() -> RangeIndex:
    return RangeIndex(get_default_configuration())


@pytest.fixture
def resolver(range_index) -> PresentationRuleResolver:
    return PresentationRuleResolver(range_index)


@pytest.fixture
def open_year() -> FiscalYearInfo:
    return FiscalYearInfo(
        id=uuid4(),
        year=2024,
        start_date=date(2024, 1, 1),
        end_date=date(2024, 12, 31),
    )


# =========================================================================
# Synthetic account data for pure function tests (no DB required)
# =========================================================================


def make_account_info(
    code: str,
    account_type: str,
    presentation_rule: str | None = None,
    name: str | None = None,
) -> AccountInfo:
    return AccountInfo(
        code=code,
        name=name or f"Konto {code}",
        account_type=account_type,
        presentation_rule=presentation_rule,
    )


def make_balance(
    code: str,
    account_type: str,
    balance: str,
    presentation_rule: str | None = None,
    name: str | None = None,
) -> AccountBalance:
    """
    Balance in the natural direction of ``account_type``; debit and credit
    totals are derived so that ``saldo`` agrees with it.
    """
    amount = Decimal(balance)
    debit_normal = account_type in ("asset", "expense")
    if (amount >= 0) == debit_normal:
        total_debit, total_credit = abs(amount), Decimal("0")
    else:
        total_debit, total_credit = Decimal("0"), abs(amount)
    return AccountBalance(
        code=code,
        name=name or f"Konto {code}",
        account_type=account_type,
        balance=amount,
        total_debit=total_debit,
        total_credit=total_credit,
        presentation_rule=presentation_rule,
    )


class Totals:
    """Pre-grouped activity row."""

    def __init__(self, total_debit: str, total_credit: str):
        self.total_debit = Decimal(total_debit)
        self.total_credit = Decimal(total_credit)


class Line:
    """Posted line item row."""

    def __init__(self, account_code: str, direction: str, amount: str):
        self.account_code = account_code
        self.direction = direction
        self.amount = Decimal(amount)
