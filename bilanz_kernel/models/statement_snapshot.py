"""
Module: bilanz_kernel.models.statement_snapshot
Responsibility: ORM persistence for frozen balance sheet documents.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - ``data`` uses the same field names as a live-computed statement, so
      loading a snapshot yields the identical document shape.
    - A posted snapshot is immutable (see db/immutability.py).
    - The earliest posted CLOSING snapshot of a closed fiscal year is the
      authoritative statement for that year.
"""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, Date, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from bilanz_kernel.db.base import TrackedBase, UTCDateTime, UUIDString


class SheetType(str, Enum):
    """Which point of the fiscal year the snapshot describes."""

    CLOSING = "closing"
    OPENING = "opening"


class SnapshotSource(str, Enum):
    """How the snapshot document was produced."""

    CALCULATED = "calculated"
    MANUAL = "manual"
    CARRYFORWARD = "carryforward"


class StatementSnapshot(TrackedBase):
    """Persisted statement document of one fiscal year."""

    __tablename__ = "statement_snapshots"

    __table_args__ = (
        Index("idx_snapshot_fiscal_year", "fiscal_year_id", "sheet_type"),
    )

    company_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("companies.id"),
        nullable=False,
    )

    fiscal_year_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("fiscal_years.id"),
        nullable=False,
    )

    sheet_type: Mapped[SheetType] = mapped_column(
        String(20),
        default=SheetType.CLOSING.value,
        nullable=False,
    )

    source: Mapped[SnapshotSource] = mapped_column(
        String(20),
        default=SnapshotSource.CALCULATED.value,
        nullable=False,
    )

    balance_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    data: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
    )

    # Null = draft
    posted_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<StatementSnapshot {self.sheet_type} {self.balance_date}>"

    @property
    def is_posted(self) -> bool:
        return self.posted_at is not None
