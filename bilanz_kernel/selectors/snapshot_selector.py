"""
Module: bilanz_kernel.selectors.snapshot_selector
Responsibility: Read-only access to frozen statement snapshots.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Only posted CLOSING snapshots are returned.  Drafts are invisible.
    - When several posted closing snapshots exist, the earliest posted one
      is authoritative.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select

from bilanz_kernel.models.statement_snapshot import SheetType, StatementSnapshot
from bilanz_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class SnapshotRow:
    """A posted statement snapshot."""

    snapshot_id: UUID
    fiscal_year_id: UUID
    balance_date: date
    data: dict[str, Any]
    posted_at: datetime


class SnapshotSelector(BaseSelector):
    """Satisfies ``bilanz_reporting.snapshot.SnapshotSource``."""

    def closing_snapshot(self, fiscal_year_id: UUID) -> SnapshotRow | None:
        snapshot = self.session.execute(
            select(StatementSnapshot)
            .where(StatementSnapshot.fiscal_year_id == fiscal_year_id)
            .where(StatementSnapshot.sheet_type == SheetType.CLOSING.value)
            .where(StatementSnapshot.posted_at.is_not(None))
            .order_by(StatementSnapshot.posted_at, StatementSnapshot.created_at)
            .limit(1)
        ).scalar_one_or_none()

        if snapshot is None:
            return None

        return SnapshotRow(
            snapshot_id=snapshot.id,
            fiscal_year_id=snapshot.fiscal_year_id,
            balance_date=snapshot.balance_date,
            data=snapshot.data,
            posted_at=snapshot.posted_at,
        )
