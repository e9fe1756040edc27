"""
Module: bilanz_kernel.models.company
Responsibility: ORM persistence for the legal entity that owns a chart of
    accounts, its fiscal years and its journal.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from typing import TYPE_CHECKING

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bilanz_kernel.db.base import TrackedBase

if TYPE_CHECKING:
    from bilanz_kernel.models.account import Account
    from bilanz_kernel.models.fiscal_year import FiscalYear


class Company(TrackedBase):
    """A bookkeeping entity.  Every account and fiscal year belongs to one."""

    __tablename__ = "companies"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    accounts: Mapped[list["Account"]] = relationship(
        back_populates="company",
        lazy="select",
    )

    fiscal_years: Mapped[list["FiscalYear"]] = relationship(
        back_populates="company",
        lazy="select",
    )

    def __repr__(self) -> str:
        return f"<Company {self.name}>"
