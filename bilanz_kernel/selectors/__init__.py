"""Selectors for the bilanz kernel (read side)."""

from bilanz_kernel.selectors.ledger_selector import (
    AccountRow,
    AccountTotalsRow,
    LedgerSelector,
    PostedLineRow,
)
from bilanz_kernel.selectors.snapshot_selector import SnapshotRow, SnapshotSelector

__all__ = [
    "LedgerSelector",
    "AccountRow",
    "AccountTotalsRow",
    "PostedLineRow",
    "SnapshotSelector",
    "SnapshotRow",
]
