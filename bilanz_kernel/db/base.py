"""
Module: bilanz_kernel.db.base
Responsibility: Declarative base and shared column types of the ledger
    tables.
Architecture position: Kernel > DB.  Imported by every model; imports
    nothing from models/, selectors/ or outer layers.

Invariants enforced:
    - Primary keys are uuid4 values, stored as 36-character strings so the
      same schema runs on SQLite and PostgreSQL.
    - Amount columns are declared explicitly as Numeric(15, 2) on the
      models.  Floats are never used for money.
    - Audit timestamps are set by the database, not by application code.
    - Timestamps are read back as timezone-aware UTC on every backend.
"""

from datetime import UTC, datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """``uuid.UUID`` in Python, ``VARCHAR(36)`` in the database."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware ``datetime`` normalized to UTC.

    SQLite drops the offset on storage, so values read back are naive; they
    are tagged as UTC here and every backend returns aware datetimes.
    Naive values written by application code are taken as UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    @staticmethod
    def _as_utc(value: datetime | None) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_bind_param(self, value, dialect):
        return self._as_utc(value)

    def process_result_value(self, value, dialect):
        return self._as_utc(value)


class Base(DeclarativeBase):
    """Declarative base; every table has a uuid4 ``id``."""

    id: Mapped[UUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Base for ledger tables with creation and modification timestamps.

    The timestamps are bookkeeping of the row, not of the books: the
    immutability listeners ignore ``updated_at``.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
