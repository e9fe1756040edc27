"""
Pytest fixtures for the bilanz test suite.

Provides:
- Structured logging setup and log capture
- Database sessions (in-memory SQLite by default, one database per test)
- A ledger builder for accounts and posted journal entries

Environment Variables:
- DATABASE_URL: SQLAlchemy connection URL.  Defaults to in-memory SQLite.
"""

import json
import logging
import os
from datetime import date
from decimal import Decimal
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy.orm import Session

from bilanz_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from bilanz_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from bilanz_kernel.domain.clock import DeterministicClock
from bilanz_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from bilanz_kernel.models.account import Account, AccountType, PresentationRule
from bilanz_kernel.models.company import Company
from bilanz_kernel.models.fiscal_year import FiscalYear
from bilanz_kernel.models.journal import EntryType, JournalEntry, LineDirection, LineItem

DEFAULT_DATABASE_URL = "sqlite://"


def get_database_url() -> str:
    """Get database URL from environment, or use in-memory SQLite."""
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _suite_logging():
    """JSON logging at DEBUG for the whole run, so every event can be asserted."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _isolated_log_context():
    """No company or fiscal year id leaks from one test into the next."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Records emitted below the ``bilanz`` logger during the test, as dicts.

    Usage::

        def test_gate(captured_logs):
            ...
            assert "snapshot_served" in {r["message"] for r in captured_logs()}
    """
    buffer = StringIO()
    capture = logging.StreamHandler(buffer)
    capture.setFormatter(StructuredFormatter())
    bilanz_logger = logging.getLogger("bilanz")
    bilanz_logger.addHandler(capture)

    yield lambda: [json.loads(line) for line in buffer.getvalue().splitlines() if line]

    bilanz_logger.removeHandler(capture)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture(scope="session")
def _immutability_listeners():
    """Immutability listeners stay registered for the whole run."""
    register_immutability_listeners()
    yield
    unregister_immutability_listeners()


@pytest.fixture
def db_engine(_immutability_listeners):
    """Fresh database per test: create tables, yield, drop tables."""
    engine = init_engine_from_url(get_database_url(), echo=False)
    create_tables()
    yield engine
    drop_tables()
    reset_engine()


@pytest.fixture
def session(db_engine) -> Generator[Session, None, None]:
    """Database session, rolled back and closed at teardown."""
    sess = get_session()
    try:
        yield sess
    finally:
        sess.rollback()
        sess.close()


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock()


# =============================================================================
# Ledger data
# =============================================================================


@pytest.fixture
def company(session) -> Company:
    company = Company(name="Muster GmbH")
    session.add(company)
    session.flush()
    return company


@pytest.fixture
def fiscal_year(session, company) -> FiscalYear:
    fiscal_year = FiscalYear(
        company_id=company.id,
        year=2024,
        start_date=date(2024, 1, 1),
        end_date=date(2024, 12, 31),
    )
    session.add(fiscal_year)
    session.flush()
    return fiscal_year


class LedgerBuilder:
    """Creates accounts and posts journal entries for one fiscal year."""

    def __init__(self, session: Session, company: Company, fiscal_year: FiscalYear, clock):
        self.session = session
        self.company = company
        self.fiscal_year = fiscal_year
        self.clock = clock
        self.accounts: dict[str, Account] = {}

    def account(
        self,
        code: str,
        name: str,
        account_type: AccountType | str,
        presentation_rule: PresentationRule | str | None = None,
    ) -> Account:
        account = Account(
            company_id=self.company.id,
            code=code,
            name=name,
            account_type=getattr(account_type, "value", account_type),
            presentation_rule=getattr(presentation_rule, "value", presentation_rule),
        )
        self.session.add(account)
        self.session.flush()
        self.accounts[code] = account
        return account

    def entry(
        self,
        *lines: tuple[str, str, str],
        posted: bool = True,
        entry_type: EntryType = EntryType.NORMAL,
        booking_date: date | None = None,
        fiscal_year: FiscalYear | None = None,
    ) -> JournalEntry:
        """
        Book ``(account_code, "debit" | "credit", amount)`` lines.

        Posted entries get ``posted_at`` from the clock before the first
        flush, so line items are inserted together with the header.
        """
        fiscal_year = fiscal_year or self.fiscal_year
        entry = JournalEntry(
            company_id=self.company.id,
            fiscal_year_id=fiscal_year.id,
            booking_date=booking_date or fiscal_year.start_date,
            description="test booking",
            entry_type=entry_type.value,
            posted_at=self.clock.now() if posted else None,
            lines=[
                LineItem(
                    account_id=self.accounts[code].id,
                    direction=LineDirection(direction).value,
                    amount=Decimal(amount),
                )
                for code, direction, amount in lines
            ],
        )
        self.session.add(entry)
        self.session.flush()
        return entry

    def transfer(self, debit_code: str, credit_code: str, amount: str, **kwargs) -> JournalEntry:
        """Two-line booking: ``debit_code`` an ``credit_code``."""
        return self.entry(
            (debit_code, "debit", amount),
            (credit_code, "credit", amount),
            **kwargs,
        )


@pytest.fixture
def ledger(session, company, fiscal_year, deterministic_clock) -> LedgerBuilder:
    return LedgerBuilder(session, company, fiscal_year, deterministic_clock)


@pytest.fixture
def balanced_ledger(ledger) -> LedgerBuilder:
    """
    A small balanced GmbH year:

        0800 Gezeichnetes Kapital   10,000.00 paid into the bank
        8400 Erlöse                  3,000.00 received
        4100 Löhne                   1,100.00 paid

    Bank 1200 ends at 11,900.00; equity 10,000.00 plus a profit of 1,900.00.
    """
    ledger.account("0800", "Gezeichnetes Kapital", AccountType.EQUITY)
    ledger.account("1200", "Bank", AccountType.ASSET, PresentationRule.BANK_BIDIRECTIONAL)
    ledger.account("8400", "Erlöse 19 % USt", AccountType.REVENUE, PresentationRule.PNL_ONLY)
    ledger.account("4100", "Löhne und Gehälter", AccountType.EXPENSE, PresentationRule.PNL_ONLY)
    ledger.transfer("1200", "0800", "10000.00")
    ledger.transfer("1200", "8400", "3000.00")
    ledger.transfer("4100", "1200", "1100.00")
    return ledger
