"""
Module: bilanz_kernel.models.journal
Responsibility: ORM persistence for journal entries (Buchungssätze) and their
    line items.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - posted_at is None for drafts and set once when the entry is posted.
      After that the entry and every line item are immutable
      (see db/immutability.py).
    - Line item amounts are non-negative with two-decimal precision; the
      direction column carries the sign.
    - Only posted NORMAL and OPENING entries feed statement aggregation.
      CLOSING entries zero accounts at year end and are never read back as
      ordinary activity (see selectors/ledger_selector.py).
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Numeric,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bilanz_kernel.db.base import TrackedBase, UTCDateTime, UUIDString

if TYPE_CHECKING:
    from bilanz_kernel.models.account import Account


class EntryType(str, Enum):
    """Kind of journal entry."""

    NORMAL = "normal"
    CLOSING = "closing"
    # Carried-forward balances at the start of the next fiscal year
    OPENING = "opening"


class LineDirection(str, Enum):
    """Which side of the entry a line item is on."""

    DEBIT = "debit"
    CREDIT = "credit"


class JournalEntry(TrackedBase):
    """
    Journal entry header.

    Non-goals:
        - Debit/credit balance is not enforced here.  ``is_balanced`` is a
          read-side convenience.
    """

    __tablename__ = "journal_entries"

    __table_args__ = (
        Index("idx_journal_fiscal_year", "fiscal_year_id"),
        Index("idx_journal_posted", "posted_at"),
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

    booking_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    entry_type: Mapped[EntryType] = mapped_column(
        String(20),
        default=EntryType.NORMAL.value,
        nullable=False,
    )

    # Null = draft
    posted_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
    )

    lines: Mapped[list["LineItem"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        state = "posted" if self.is_posted else "draft"
        return f"<JournalEntry {self.id} {self.entry_type} {state}>"

    @property
    def is_posted(self) -> bool:
        return self.posted_at is not None

    def side_total(self, direction: LineDirection) -> Decimal:
        """Sum of the line amounts booked on one side."""
        return sum(
            (line.amount for line in self.lines if line.direction == direction.value),
            Decimal("0"),
        )

    @property
    def is_balanced(self) -> bool:
        """Soll equals Haben.  Informational; posting does not require it."""
        return self.side_total(LineDirection.DEBIT) == self.side_total(LineDirection.CREDIT)

    def post(self, posted_at: datetime) -> None:
        """Mark the entry as posted.

        Raises: ValueError if the entry is already posted.
        """
        if self.is_posted:
            raise ValueError(f"Journal entry {self.id} is already posted")
        self.posted_at = posted_at


class LineItem(TrackedBase):
    """
    One debit or credit posting against one account.

    Immutable after the parent entry is posted.
    """

    __tablename__ = "line_items"

    __table_args__ = (
        Index("idx_line_entry", "journal_entry_id"),
        Index("idx_line_account", "account_id"),
        CheckConstraint("amount >= 0", name="ck_line_amount_non_negative"),
    )

    journal_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    direction: Mapped[LineDirection] = mapped_column(
        String(10),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(15, 2),
        nullable=False,
    )

    entry: Mapped["JournalEntry"] = relationship(back_populates="lines")

    account: Mapped["Account"] = relationship(back_populates="line_items")

    def __repr__(self) -> str:
        return f"<LineItem {self.direction} {self.amount}>"
