"""
Snapshot gate for closed fiscal years.

A closed fiscal year with a posted closing snapshot is final: the stored
document is returned verbatim, with ``stored`` and ``posted_at`` attached,
and nothing is recomputed or re-checked.  A closed year without a
snapshot falls through to live computation (logged, not an error).  Open
years are always computed live.
"""

from __future__ import annotations

import copy
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from bilanz_kernel.logging_config import get_logger
from bilanz_reporting.models import FiscalYearInfo

logger = get_logger("reporting.snapshot")


class StoredSnapshot(Protocol):
    data: dict[str, Any]
    posted_at: datetime


class SnapshotSource(Protocol):
    """Where closing snapshots come from (e.g. ``SnapshotSelector``)."""

    def closing_snapshot(self, fiscal_year_id: UUID) -> StoredSnapshot | None: ...


class SnapshotGate:
    """Short-circuits statement requests for closed fiscal years."""

    def __init__(self, snapshots: SnapshotSource):
        self.snapshots = snapshots

    def load(self, fiscal_year: FiscalYearInfo) -> dict[str, Any] | None:
        """
        The stored statement of a closed year, or None to compute live.

        The returned document is a deep copy; callers may not mutate the
        stored one through it.
        """
        if not fiscal_year.closed:
            return None

        snapshot = self.snapshots.closing_snapshot(fiscal_year.id)
        if snapshot is None:
            logger.warning(
                "closed_year_snapshot_missing",
                extra={"fiscal_year": fiscal_year.year},
            )
            return None

        data = copy.deepcopy(snapshot.data)
        data["stored"] = True
        data["posted_at"] = snapshot.posted_at.isoformat()

        logger.info(
            "snapshot_served",
            extra={"fiscal_year": fiscal_year.year, "posted_at": snapshot.posted_at},
        )
        return data
