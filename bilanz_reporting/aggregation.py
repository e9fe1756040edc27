"""
Balance aggregation -- posted activity to signed account balances.

Pure functions.  Input is the chart of accounts of one company together
with the posted, non-closing activity of one fiscal year, either as
individual line items or pre-grouped per account.  Output is a tuple of
``AccountBalance`` sorted by code.

Sign convention:

    asset, expense               balance = debit - credit
    liability, equity, revenue   balance = credit - debit
    anything else                balance = 0

Filters: balances with an absolute value below the materiality threshold
are dropped, as are accounts whose code starts with the closing prefix.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Mapping, Protocol

from bilanz_kernel.exceptions import UnknownAccountError
from bilanz_kernel.logging_config import get_logger
from bilanz_kernel.models.account import AccountType
from bilanz_kernel.models.journal import LineDirection
from bilanz_reporting.config import ReportingConfig
from bilanz_reporting.models import ZERO, AccountBalance, AccountInfo

logger = get_logger("reporting.aggregation")

DEBIT_NORMAL_TYPES = frozenset({AccountType.ASSET.value, AccountType.EXPENSE.value})
CREDIT_NORMAL_TYPES = frozenset({
    AccountType.LIABILITY.value,
    AccountType.EQUITY.value,
    AccountType.REVENUE.value,
})


class AccountTotals(Protocol):
    total_debit: Decimal
    total_credit: Decimal


class PostedLine(Protocol):
    account_code: str
    amount: Decimal
    direction: str


def type_value(account_type) -> str:
    """Plain string value of an account type given as enum member or string."""
    return getattr(account_type, "value", account_type)


def compute_natural_balance(
    account_type: str,
    total_debit: Decimal,
    total_credit: Decimal,
) -> Decimal:
    """
    Balance in the account type's natural direction.

    Unknown account types yield exactly zero; they never raise.
    """
    account_type = type_value(account_type)
    if account_type in DEBIT_NORMAL_TYPES:
        return total_debit - total_credit
    if account_type in CREDIT_NORMAL_TYPES:
        return total_credit - total_debit
    return ZERO


def fold_line_items(lines: Iterable[PostedLine]) -> dict[str, tuple[Decimal, Decimal]]:
    """Sum debit and credit amounts per account code."""
    totals: dict[str, tuple[Decimal, Decimal]] = {}
    for line in lines:
        debit, credit = totals.get(line.account_code, (ZERO, ZERO))
        if line.direction == LineDirection.DEBIT.value:
            debit += line.amount
        elif line.direction == LineDirection.CREDIT.value:
            credit += line.amount
        else:
            raise ValueError(
                f"Invalid direction {line.direction!r} on line for account {line.account_code}"
            )
        totals[line.account_code] = (debit, credit)
    return totals


def _normalize_activity(
    activity: Mapping[str, AccountTotals] | Iterable[PostedLine],
) -> dict[str, tuple[Decimal, Decimal]]:
    if isinstance(activity, Mapping):
        return {
            code: (Decimal(row.total_debit), Decimal(row.total_credit))
            for code, row in activity.items()
        }
    return fold_line_items(activity)


def is_reportable(balance: AccountBalance, config: ReportingConfig) -> bool:
    if balance.code.startswith(config.closing_account_prefix):
        return False
    return abs(balance.balance) >= config.materiality_threshold


def aggregate_balances(
    accounts: Iterable[AccountInfo],
    activity: Mapping[str, AccountTotals] | Iterable[PostedLine],
    config: ReportingConfig | None = None,
) -> tuple[AccountBalance, ...]:
    """
    Compute the reportable balance of every account.

    Args:
        accounts: Chart of accounts of the company.
        activity: Either a mapping ``account code -> totals`` (objects with
            ``total_debit`` / ``total_credit``) or an iterable of posted
            line items (``account_code``, ``amount``, ``direction``).
        config: Thresholds; defaults to ``ReportingConfig()``.

    Returns:
        Balances that pass the filters, stably sorted by code.

    Raises:
        UnknownAccountError: If activity references a code outside
            ``accounts``.
    """
    config = config or ReportingConfig()
    by_code = {account.code: account for account in accounts}
    totals = _normalize_activity(activity)

    unknown = sorted(set(totals) - set(by_code))
    if unknown:
        raise UnknownAccountError(unknown[0])

    balances = []
    for code, account in by_code.items():
        total_debit, total_credit = totals.get(code, (ZERO, ZERO))
        account_type = type_value(account.account_type)
        if (
            account_type not in DEBIT_NORMAL_TYPES
            and account_type not in CREDIT_NORMAL_TYPES
            and (total_debit or total_credit)
        ):
            logger.warning(
                "unknown_account_type",
                extra={"account_code": code, "account_type": account_type},
            )
        balance = AccountBalance(
            code=code,
            name=account.name,
            account_type=account_type,
            balance=compute_natural_balance(account_type, total_debit, total_credit),
            total_debit=total_debit,
            total_credit=total_credit,
            presentation_rule=type_value(account.presentation_rule),
        )
        if is_reportable(balance, config):
            balances.append(balance)

    result = tuple(sorted(balances, key=lambda b: b.code))
    logger.debug(
        "balances_aggregated",
        extra={"account_count": len(by_code), "reported_count": len(result)},
    )
    return result
