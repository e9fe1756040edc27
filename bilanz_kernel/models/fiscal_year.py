"""
Module: bilanz_kernel.models.fiscal_year
Responsibility: ORM persistence for the fiscal year (Geschäftsjahr) lifecycle.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - (company_id, year) is unique.
    - A closed fiscal year never reopens and is not edited afterwards
      (see db/immutability.py).
    - A closed year with a posted closing snapshot is always served from
      that snapshot (see bilanz_reporting.snapshot).
"""

from datetime import date, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bilanz_kernel.db.base import TrackedBase, UTCDateTime, UUIDString

if TYPE_CHECKING:
    from bilanz_kernel.models.company import Company


class FiscalYear(TrackedBase):
    """
    Fiscal year of one company.

    Guarantees:
        - close() requires a clock-injected timestamp.
    """

    __tablename__ = "fiscal_years"

    __table_args__ = (
        UniqueConstraint("company_id", "year", name="uq_fiscal_year_company_year"),
    )

    company_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("companies.id"),
        nullable=False,
    )

    year: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    # Boundaries (inclusive)
    start_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    end_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    closed: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    closed_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
    )

    # Set once the carried-forward opening entry is posted
    opening_balance_posted_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
    )

    company: Mapped["Company"] = relationship(back_populates="fiscal_years")

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"<FiscalYear {self.year}: {state}>"

    def close(self, closed_at: datetime) -> None:
        """Close the fiscal year.

        Raises: ValueError if the year is already closed.
        """
        if self.closed:
            raise ValueError(f"Fiscal year {self.year} is already closed")
        self.closed = True
        self.closed_at = closed_at

    @property
    def has_opening_balance(self) -> bool:
        return self.opening_balance_posted_at is not None

    def record_opening_balance(self, posted_at: datetime) -> None:
        """Mark the opening balance as posted.

        Raises: ValueError if the year already has one.
        """
        if self.has_opening_balance:
            raise ValueError(f"Fiscal year {self.year} already has an opening balance")
        self.opening_balance_posted_at = posted_at
