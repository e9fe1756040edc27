"""
Fiscal year closing (``bilanz_reporting.closing``).

Responsibility
--------------
Finalizes one fiscal year:

1. computes the balance sheet live and refuses to close unless it is
   balanced and every account is classified;
2. posts a CLOSING journal entry that brings every reported account to
   zero against the closing account (SKR03 9000, created if missing);
3. stores the rendered statement as the posted closing snapshot;
4. marks the fiscal year closed;
5. optionally (``carry_forward``) books the closing balances as the
   OPENING entry of the following year, moving the result to the profit
   or loss carryforward account (SKR03 0860 / 0868).

From then on ``StatementService`` answers the year from the snapshot.

Architecture position
---------------------
**Reporting layer** -- the only writer in this package.  Runs inside the
caller's transaction: the service flushes but never commits.

Invariants enforced
-------------------
* The fiscal year row is locked (``SELECT ... FOR UPDATE``) for the whole
  close, so two closes of the same year are serialized.
* The closing entry balances by construction: the closing account takes
  the sum of all account credits as debit and vice versa.
* Closing entries are excluded from aggregation, so the snapshot and any
  later live computation agree.

Failure modes
-------------
Refusals are returned as ``ClosingResult.failure``; the session is left
untouched:

* unknown fiscal year / already closed;
* statement computation fault;
* unbalanced statement;
* unclassified accounts.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from bilanz_config import get_default_configuration
from bilanz_kernel.domain.clock import Clock, SystemClock
from bilanz_kernel.exceptions import (
    FiscalYearClosedError,
    FiscalYearNotFoundError,
    UnbalancedStatementError,
)
from bilanz_kernel.logging_config import LogContext, get_logger
from bilanz_kernel.models.account import Account, AccountType
from bilanz_kernel.models.fiscal_year import FiscalYear
from bilanz_kernel.models.journal import EntryType, JournalEntry, LineDirection, LineItem
from bilanz_kernel.models.statement_snapshot import (
    SheetType,
    SnapshotSource,
    StatementSnapshot,
)
from bilanz_kernel.selectors.ledger_selector import LedgerSelector
from bilanz_reporting.aggregation import aggregate_balances
from bilanz_reporting.config import ReportingConfig
from bilanz_reporting.models import ZERO, AccountBalance, BalanceSheetReport, FiscalYearInfo
from bilanz_reporting.presentation import PresentationRuleResolver
from bilanz_reporting.range_index import RangeIndex
from bilanz_reporting.statements import build_balance_sheet, format_amount, render_statement

logger = get_logger("reporting.closing")


@dataclass(frozen=True)
class ClosingResult:
    """Outcome of a fiscal year close."""

    fiscal_year_id: UUID
    errors: tuple[str, ...] = ()
    journal_entry_id: UUID | None = None
    snapshot_id: UUID | None = None
    # Set only when the close carried balances forward
    next_fiscal_year_id: UUID | None = None
    opening_entry_id: UUID | None = None

    @classmethod
    def ok(
        cls,
        fiscal_year_id: UUID,
        journal_entry_id: UUID,
        snapshot_id: UUID,
        next_fiscal_year_id: UUID | None = None,
        opening_entry_id: UUID | None = None,
    ) -> ClosingResult:
        return cls(
            fiscal_year_id=fiscal_year_id,
            journal_entry_id=journal_entry_id,
            snapshot_id=snapshot_id,
            next_fiscal_year_id=next_fiscal_year_id,
            opening_entry_id=opening_entry_id,
        )

    @classmethod
    def failure(cls, fiscal_year_id: UUID, *errors: str) -> ClosingResult:
        return cls(fiscal_year_id=fiscal_year_id, errors=tuple(errors))

    @property
    def success(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class ClosingLine:
    """One line of the closing entry before persistence."""

    account_code: str
    direction: LineDirection
    amount: Decimal


def _with_counter_lines(
    lines: list[ClosingLine],
    counter_account_code: str,
) -> tuple[ClosingLine, ...]:
    """Append the counter-sides of ``lines`` on one account so the entry balances."""
    debit_total = sum((l.amount for l in lines if l.direction is LineDirection.DEBIT), ZERO)
    credit_total = sum((l.amount for l in lines if l.direction is LineDirection.CREDIT), ZERO)
    if credit_total:
        lines.append(ClosingLine(counter_account_code, LineDirection.DEBIT, credit_total))
    if debit_total:
        lines.append(ClosingLine(counter_account_code, LineDirection.CREDIT, debit_total))
    return tuple(lines)


def closing_lines(
    balances: tuple[AccountBalance, ...],
    closing_account_code: str,
) -> tuple[ClosingLine, ...]:
    """
    Lines that bring every balance to zero.

    Each account's debit saldo is reversed on the account itself; the
    closing account takes the counter-sides as two summary lines.
    """
    lines = []
    for balance in balances:
        saldo = balance.saldo
        if saldo > 0:
            lines.append(ClosingLine(balance.code, LineDirection.CREDIT, saldo))
        elif saldo < 0:
            lines.append(ClosingLine(balance.code, LineDirection.DEBIT, -saldo))
    return _with_counter_lines(lines, closing_account_code)


def opening_lines(
    balances: tuple[AccountBalance, ...],
    balance_sheet_codes: frozenset[str],
    net_income: Decimal,
    closing_account_code: str,
    config: ReportingConfig,
) -> tuple[ClosingLine, ...]:
    """
    Lines of the next year's opening entry (Eröffnungsbilanz).

    Balance sheet accounts get their saldo booked again on the same side.
    The year's result moves to the profit or loss carryforward account,
    since the revenue and expense accounts start the new year at zero.
    The closing account takes the counter-sides.
    """
    lines = []
    for balance in balances:
        if balance.code not in balance_sheet_codes:
            continue
        saldo = balance.saldo
        if saldo > 0:
            lines.append(ClosingLine(balance.code, LineDirection.DEBIT, saldo))
        elif saldo < 0:
            lines.append(ClosingLine(balance.code, LineDirection.CREDIT, -saldo))

    if net_income > 0:
        lines.append(
            ClosingLine(config.profit_carryforward_code, LineDirection.CREDIT, net_income)
        )
    elif net_income < 0:
        lines.append(
            ClosingLine(config.loss_carryforward_code, LineDirection.DEBIT, -net_income)
        )
    return _with_counter_lines(lines, closing_account_code)


def balance_sheet_codes(report: BalanceSheetReport, config: ReportingConfig) -> frozenset[str]:
    """Codes of the real accounts shown on Aktiva or Passiva."""
    return frozenset(
        line.account_code
        for side in (report.aktiva, report.passiva)
        for node in side.sections
        for line in node.flattened_lines()
        if line.account_code != config.net_income_code
    )


def _one_year_later(day: date) -> date:
    try:
        return day.replace(year=day.year + 1)
    except ValueError:
        # 29 February
        return day.replace(year=day.year + 1, day=28)


class FiscalYearClosingService:
    """
    Closes fiscal years.

    Guarantees
    ----------
    * Clock is injectable; ``posted_at`` and ``closed_at`` come from it.
    * Either every effect of a close is flushed or none is.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        index: RangeIndex | None = None,
        config: ReportingConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._index = index or RangeIndex(get_default_configuration())
        self._resolver = PresentationRuleResolver(self._index)
        self._config = config or ReportingConfig.with_defaults()
        self._ledger = LedgerSelector(session)

    def close(self, fiscal_year_id: UUID, carry_forward: bool = False) -> ClosingResult:
        """
        Close one fiscal year.

        With ``carry_forward`` the closing balances are also booked as the
        opening entry of the following year, which is created if missing.
        """
        fiscal_year = self._session.execute(
            select(FiscalYear).where(FiscalYear.id == fiscal_year_id).with_for_update()
        ).scalar_one_or_none()
        if fiscal_year is None:
            return ClosingResult.failure(
                fiscal_year_id, str(FiscalYearNotFoundError(str(fiscal_year_id)))
            )

        with LogContext.bind(company_id=fiscal_year.company_id, fiscal_year_id=fiscal_year.id):
            return self._close(fiscal_year, carry_forward)

    def _close(self, fiscal_year: FiscalYear, carry_forward: bool) -> ClosingResult:
        if fiscal_year.closed:
            logger.warning("fiscal_year_close_refused", extra={"reason": "already_closed"})
            return ClosingResult.failure(
                fiscal_year.id,
                str(FiscalYearClosedError(str(fiscal_year.id), fiscal_year.year)),
            )

        company_id = fiscal_year.company_id
        info = replace(FiscalYearInfo.from_model(fiscal_year), closed=True)

        try:
            accounts = self._ledger.accounts(company_id)
            activity = self._ledger.account_totals(company_id, fiscal_year.id)
            balances = aggregate_balances(accounts, activity, self._config)
            report = build_balance_sheet(
                balances, self._index, info, resolver=self._resolver, config=self._config
            )
        except Exception as exc:
            logger.error(
                "fiscal_year_close_failed",
                extra={"error": str(exc)},
                exc_info=True,
            )
            return ClosingResult.failure(fiscal_year.id, str(exc))

        if not report.balanced:
            error = UnbalancedStatementError(
                format_amount(report.aktiva.total, self._config),
                format_amount(report.passiva.total, self._config),
            )
            logger.warning(
                "fiscal_year_close_refused",
                extra={"reason": "unbalanced", "difference": report.difference},
            )
            return ClosingResult.failure(fiscal_year.id, str(error))

        if report.unclassified:
            codes = [account.code for account in report.unclassified]
            logger.warning(
                "fiscal_year_close_refused",
                extra={"reason": "unclassified", "account_codes": codes},
            )
            return ClosingResult.failure(
                fiscal_year.id,
                f"Accounts need classification before closing: {', '.join(codes)}",
            )

        now = self._clock.now()
        account_ids = {account.code: account.account_id for account in accounts}
        closing_account = self._account(
            company_id, self._config.closing_account_code, self._config.closing_account_name
        )
        account_ids[closing_account.code] = closing_account.id

        document = render_statement(report, self._config)
        entry = self._posted_entry(
            fiscal_year,
            booking_date=fiscal_year.end_date,
            description=f"Jahresabschluss {fiscal_year.year}",
            entry_type=EntryType.CLOSING,
            lines=closing_lines(balances, closing_account.code),
            account_ids=account_ids,
            posted_at=now,
        )
        snapshot = StatementSnapshot(
            company_id=company_id,
            fiscal_year_id=fiscal_year.id,
            sheet_type=SheetType.CLOSING.value,
            source=SnapshotSource.CALCULATED.value,
            balance_date=fiscal_year.end_date,
            data=document,
            posted_at=now,
        )
        self._session.add_all([entry, snapshot])
        fiscal_year.close(now)
        self._session.flush()

        logger.info(
            "fiscal_year_closed",
            extra={
                "fiscal_year": fiscal_year.year,
                "journal_entry_id": entry.id,
                "snapshot_id": snapshot.id,
                "line_count": len(entry.lines),
                "net_income": report.net_income,
            },
        )

        next_year_id = opening_entry_id = None
        if carry_forward:
            next_year, opening_entry = self._carry_forward(
                fiscal_year, balances, report, document, account_ids, now
            )
            next_year_id = next_year.id
            opening_entry_id = opening_entry.id if opening_entry is not None else None

        return ClosingResult.ok(
            fiscal_year.id,
            entry.id,
            snapshot.id,
            next_fiscal_year_id=next_year_id,
            opening_entry_id=opening_entry_id,
        )

    # ------------------------------------------------------------------
    # Carry-forward
    # ------------------------------------------------------------------

    def _carry_forward(
        self,
        fiscal_year: FiscalYear,
        balances: tuple[AccountBalance, ...],
        report: BalanceSheetReport,
        document: dict,
        account_ids: dict[str, UUID],
        now: datetime,
    ) -> tuple[FiscalYear, JournalEntry | None]:
        """Book the closing balances as the opening entry of the next year."""
        next_year = self._next_fiscal_year(fiscal_year)
        if next_year.closed or next_year.has_opening_balance:
            logger.warning(
                "opening_balance_skipped",
                extra={
                    "next_fiscal_year": next_year.year,
                    "reason": "closed" if next_year.closed else "already_posted",
                },
            )
            return next_year, None

        config = self._config
        lines = opening_lines(
            balances,
            balance_sheet_codes(report, config),
            report.net_income,
            config.closing_account_code,
            config,
        )
        for code, name in (
            (config.profit_carryforward_code, config.profit_carryforward_name),
            (config.loss_carryforward_code, config.loss_carryforward_name),
        ):
            if code not in account_ids and any(line.account_code == code for line in lines):
                account_ids[code] = self._account(fiscal_year.company_id, code, name).id

        entry = self._posted_entry(
            next_year,
            booking_date=next_year.start_date,
            description=f"Eröffnungsbilanz {next_year.year}",
            entry_type=EntryType.OPENING,
            lines=lines,
            account_ids=account_ids,
            posted_at=now,
        )
        snapshot = StatementSnapshot(
            company_id=next_year.company_id,
            fiscal_year_id=next_year.id,
            sheet_type=SheetType.OPENING.value,
            source=SnapshotSource.CARRYFORWARD.value,
            balance_date=next_year.start_date,
            data=copy.deepcopy(document),
            posted_at=now,
        )
        self._session.add_all([entry, snapshot])
        next_year.record_opening_balance(now)
        self._session.flush()

        logger.info(
            "opening_balance_carried_forward",
            extra={
                "next_fiscal_year": next_year.year,
                "journal_entry_id": entry.id,
                "line_count": len(entry.lines),
            },
        )
        return next_year, entry

    def _next_fiscal_year(self, fiscal_year: FiscalYear) -> FiscalYear:
        next_year = self._session.execute(
            select(FiscalYear)
            .where(FiscalYear.company_id == fiscal_year.company_id)
            .where(FiscalYear.year == fiscal_year.year + 1)
        ).scalar_one_or_none()
        if next_year is not None:
            return next_year

        next_year = FiscalYear(
            company_id=fiscal_year.company_id,
            year=fiscal_year.year + 1,
            start_date=fiscal_year.end_date + timedelta(days=1),
            end_date=_one_year_later(fiscal_year.end_date),
        )
        self._session.add(next_year)
        self._session.flush()
        logger.info("fiscal_year_created", extra={"fiscal_year": next_year.year})
        return next_year

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _posted_entry(
        fiscal_year: FiscalYear,
        *,
        booking_date: date,
        description: str,
        entry_type: EntryType,
        lines: tuple[ClosingLine, ...],
        account_ids: dict[str, UUID],
        posted_at: datetime,
    ) -> JournalEntry:
        return JournalEntry(
            company_id=fiscal_year.company_id,
            fiscal_year_id=fiscal_year.id,
            booking_date=booking_date,
            description=description,
            entry_type=entry_type.value,
            posted_at=posted_at,
            lines=[
                LineItem(
                    account_id=account_ids[line.account_code],
                    direction=line.direction.value,
                    amount=line.amount,
                )
                for line in lines
            ],
        )

    def _account(self, company_id: UUID, code: str, name: str) -> Account:
        """The company's account ``code``, created as an equity account if missing."""
        account = self._session.execute(
            select(Account)
            .where(Account.company_id == company_id)
            .where(Account.code == code)
        ).scalar_one_or_none()
        if account is not None:
            return account

        account = Account(
            company_id=company_id,
            code=code,
            name=name,
            account_type=AccountType.EQUITY.value,
        )
        self._session.add(account)
        self._session.flush()
        logger.info("account_created", extra={"account_code": code})
        return account
