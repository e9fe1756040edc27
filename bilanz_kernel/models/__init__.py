"""ORM models for the bilanz kernel."""

from bilanz_kernel.models.account import (
    BIDIRECTIONAL_RULES,
    Account,
    AccountType,
    PresentationRule,
)
from bilanz_kernel.models.company import Company
from bilanz_kernel.models.fiscal_year import FiscalYear
from bilanz_kernel.models.journal import (
    EntryType,
    JournalEntry,
    LineDirection,
    LineItem,
)
from bilanz_kernel.models.statement_snapshot import (
    SheetType,
    SnapshotSource,
    StatementSnapshot,
)

__all__ = [
    "Account",
    "AccountType",
    "PresentationRule",
    "BIDIRECTIONAL_RULES",
    "Company",
    "FiscalYear",
    "EntryType",
    "JournalEntry",
    "LineDirection",
    "LineItem",
    "SheetType",
    "SnapshotSource",
    "StatementSnapshot",
]
