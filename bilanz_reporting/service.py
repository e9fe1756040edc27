"""
Statement Service (``bilanz_reporting.service``).

Responsibility
--------------
Orchestrates statement generation for one company and fiscal year:

    snapshot gate -> aggregation -> presentation rules -> statement builder -> render

and converts every outcome into a ``StatementResult``.  Data access is
injected through two narrow protocols (``LedgerDataSource`` and
``SnapshotSource``); ``for_session`` wires the SQLAlchemy selectors.

Architecture position
---------------------
**Reporting layer** -- the sole public entry point for reading statements.
Read-only: nothing is written to the ledger.

Invariants enforced
-------------------
* A result carries either data or a non-empty error tuple, never both and
  never neither.
* A closed fiscal year with a posted closing snapshot is answered from the
  snapshot without recomputation.
* Computation faults never escape as exceptions; they are logged with the
  traceback and returned as a single error reason.

Failure modes
-------------
* Missing company or fiscal year  -> failure result, nothing computed.
* Unknown account code in activity, unknown section key, arithmetic
  faults  -> failure result carrying the exception message.
"""

from __future__ import annotations

from contextlib import ExitStack
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Protocol
from uuid import UUID

from sqlalchemy.orm import Session

from bilanz_config import get_default_configuration
from bilanz_kernel.logging_config import LogContext, get_logger
from bilanz_kernel.selectors.ledger_selector import LedgerSelector
from bilanz_kernel.selectors.snapshot_selector import SnapshotSelector
from bilanz_reporting.aggregation import AccountTotals, aggregate_balances
from bilanz_reporting.config import ReportingConfig
from bilanz_reporting.models import AccountInfo, BalanceSheetReport, FiscalYearInfo
from bilanz_reporting.presentation import PresentationRuleResolver
from bilanz_reporting.range_index import RangeIndex
from bilanz_reporting.snapshot import SnapshotGate, SnapshotSource
from bilanz_reporting.statements import (
    build_balance_sheet,
    render_profit_and_loss,
    render_statement,
)

logger = get_logger("reporting.service")

COMPANY_REQUIRED = "Company is required"
FISCAL_YEAR_REQUIRED = "Fiscal year is required"


@dataclass(frozen=True)
class StatementResult:
    """
    Outcome of a statement request.

    Exactly one of ``data`` and ``errors`` is populated.
    """

    data: dict[str, Any] | None = None
    errors: tuple[str, ...] = ()

    def __post_init__(self):
        if (self.data is None) == (not self.errors):
            raise ValueError("StatementResult needs either data or errors, not both")

    @classmethod
    def ok(cls, data: dict[str, Any]) -> StatementResult:
        return cls(data=data)

    @classmethod
    def failure(cls, *errors: str) -> StatementResult:
        return cls(errors=tuple(errors))

    @property
    def success(self) -> bool:
        return self.data is not None


class LedgerDataSource(Protocol):
    """Read access to the chart of accounts and posted activity."""

    def accounts(self, company_id: UUID) -> Iterable[AccountInfo]: ...

    def posted_activity(
        self, company_id: UUID, fiscal_year_id: UUID
    ) -> Mapping[str, AccountTotals]: ...


class StatementService:
    """
    Balance sheet and profit and loss generation.

    Contract
    --------
    * ``company`` is anything with an ``id``; ``fiscal_year`` is a
      ``FiscalYear`` model or a ``FiscalYearInfo``.
    * Every public method returns a ``StatementResult``.

    Guarantees
    ----------
    * The range index and resolver are built once per service and shared
      by every request; they hold no per-request state.
    * Output is deterministic: identical posted data renders identical
      documents.
    """

    def __init__(
        self,
        ledger: LedgerDataSource,
        snapshots: SnapshotSource,
        index: RangeIndex | None = None,
        config: ReportingConfig | None = None,
    ):
        self._ledger = ledger
        self._gate = SnapshotGate(snapshots)
        self._index = index or RangeIndex(get_default_configuration())
        self._resolver = PresentationRuleResolver(self._index)
        self._config = config or ReportingConfig.with_defaults()

    @classmethod
    def for_session(
        cls,
        session: Session,
        index: RangeIndex | None = None,
        config: ReportingConfig | None = None,
    ) -> StatementService:
        """Service reading from the database through the kernel selectors."""
        return cls(LedgerSelector(session), SnapshotSelector(session), index, config)

    @property
    def index(self) -> RangeIndex:
        return self._index

    @property
    def config(self) -> ReportingConfig:
        return self._config

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def balance_sheet(self, company: Any, fiscal_year: Any) -> StatementResult:
        """Bilanz of ``fiscal_year`` as a rendered document."""
        return self._run("balance_sheet", company, fiscal_year, self._render_balance_sheet)

    def profit_and_loss(self, company: Any, fiscal_year: Any) -> StatementResult:
        """GuV of ``fiscal_year`` as a rendered document."""
        return self._run("profit_and_loss", company, fiscal_year, self._render_profit_and_loss)

    def compute(self, company_id: UUID, fiscal_year: FiscalYearInfo) -> BalanceSheetReport:
        """
        Live computation, bypassing the snapshot gate.

        Raises on faults; ``balance_sheet`` is the non-raising entry point.
        """
        accounts = self._ledger.accounts(company_id)
        activity = self._ledger.posted_activity(company_id, fiscal_year.id)
        balances = aggregate_balances(accounts, activity, self._config)
        return build_balance_sheet(
            balances,
            self._index,
            fiscal_year,
            resolver=self._resolver,
            config=self._config,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _run(self, statement: str, company: Any, fiscal_year: Any, render) -> StatementResult:
        if company is None:
            return StatementResult.failure(COMPANY_REQUIRED)
        if fiscal_year is None:
            return StatementResult.failure(FISCAL_YEAR_REQUIRED)

        with ExitStack() as stack:
            try:
                # Inputs without an id fail here like any other fault
                stack.enter_context(
                    LogContext.bind(company_id=company.id, fiscal_year_id=fiscal_year.id)
                )
                info = FiscalYearInfo.from_model(fiscal_year)
                data = render(company.id, info)
            except Exception as exc:
                logger.error(
                    "statement_generation_failed",
                    extra={"statement": statement, "error": str(exc)},
                    exc_info=True,
                )
                return StatementResult.failure(str(exc))

            logger.info(
                f"{statement}_generated",
                extra={
                    "fiscal_year": info.year,
                    "stored": bool(data.get("stored", False)),
                },
            )
            return StatementResult.ok(data)

    def _render_balance_sheet(self, company_id: UUID, info: FiscalYearInfo) -> dict[str, Any]:
        stored = self._gate.load(info)
        if stored is not None:
            return stored

        report = self.compute(company_id, info)
        if not report.balanced:
            logger.warning(
                "balance_sheet_unbalanced",
                extra={
                    "aktiva_total": report.aktiva.total,
                    "passiva_total": report.passiva.total,
                },
            )
        if report.unclassified:
            logger.warning(
                "unclassified_accounts_reported",
                extra={"account_codes": [a.code for a in report.unclassified]},
            )
        return render_statement(report, self._config)

    def _render_profit_and_loss(self, company_id: UUID, info: FiscalYearInfo) -> dict[str, Any]:
        stored = self._gate.load(info)
        if stored is not None:
            if "guv" not in stored:
                raise ValueError(
                    f"Stored statement of fiscal year {info.year} has no profit and loss section"
                )
            guv = dict(stored["guv"])
            guv["stored"] = stored["stored"]
            guv["posted_at"] = stored["posted_at"]
            return guv

        report = self.compute(company_id, info)
        return render_profit_and_loss(report.profit_and_loss, self._config)
