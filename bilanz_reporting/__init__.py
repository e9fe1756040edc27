"""
bilanz_reporting -- HGB balance sheet and GuV generation.

Pure pipeline (no I/O):

    aggregation.aggregate_balances()
        -> presentation.PresentationRuleResolver
        -> statements.build_balance_sheet()
        -> statements.render_statement()

Orchestration and persistence:

    service.StatementService          read path, Result contract, snapshot gate
    closing.FiscalYearClosingService  closing entry + snapshot + close
"""

from bilanz_reporting.aggregation import aggregate_balances, compute_natural_balance
from bilanz_reporting.closing import ClosingResult, FiscalYearClosingService
from bilanz_reporting.config import ReportingConfig
from bilanz_reporting.models import (
    AccountBalance,
    AccountInfo,
    BalanceSheetReport,
    FiscalYearInfo,
    ProfitAndLossReport,
    SectionNode,
    StatementLine,
    UnclassifiedAccount,
)
from bilanz_reporting.presentation import Placement, PresentationRuleResolver
from bilanz_reporting.range_index import RangeIndex
from bilanz_reporting.service import StatementResult, StatementService
from bilanz_reporting.snapshot import SnapshotGate
from bilanz_reporting.statements import (
    build_balance_sheet,
    build_profit_and_loss,
    classify_account_balances,
    render_statement,
)

__all__ = [
    "AccountBalance",
    "AccountInfo",
    "BalanceSheetReport",
    "ClosingResult",
    "FiscalYearClosingService",
    "FiscalYearInfo",
    "Placement",
    "PresentationRuleResolver",
    "ProfitAndLossReport",
    "RangeIndex",
    "ReportingConfig",
    "SectionNode",
    "SnapshotGate",
    "StatementLine",
    "StatementResult",
    "StatementService",
    "UnclassifiedAccount",
    "aggregate_balances",
    "build_balance_sheet",
    "build_profit_and_loss",
    "classify_account_balances",
    "compute_natural_balance",
    "render_statement",
]
