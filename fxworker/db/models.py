"""
SQLAlchemy database models.
Defines the tube queue and exchange rate tables.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    DateTime,
    Enum,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from fxworker.constants import DEFAULT_TTR_SECONDS, EntryState

# SQLite only autoincrements INTEGER PRIMARY KEY columns
Identifier = BigInteger().with_variant(Integer, "sqlite")


def utcnow() -> datetime:
    """Naive UTC timestamp, the representation stored in every table."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class QueueEntry(Base):
    """
    One entry in a tube.

    The primary key is the entry's queue handle. Entries are never updated in
    place by workers: a requeue deletes the entry and inserts a new one.

    Visibility rules:
    - READY entries are reservable once ``available_at`` has passed
    - RESERVED entries become reservable again once ``reserved_until`` passes
    - BURIED entries are never reserved
    """

    __tablename__ = "queue_entries"

    id: Mapped[int] = mapped_column(Identifier, primary_key=True, autoincrement=True)

    tube: Mapped[str] = mapped_column(String(200), nullable=False)
    priority: Mapped[int] = mapped_column(Integer, nullable=False)
    payload: Mapped[str] = mapped_column(Text, nullable=False)

    state: Mapped[EntryState] = mapped_column(
        Enum(EntryState, name="entry_state", create_constraint=True, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=EntryState.READY,
    )
    ttr_seconds: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=DEFAULT_TTR_SECONDS,
    )

    # Scheduling
    available_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    reserved_until: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    reserved_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        # Reservation order within a tube
        Index("ix_queue_entries_reserve", "tube", "state", "priority", "id"),
    )

    def __repr__(self) -> str:
        return (
            f"QueueEntry(id={self.id}, tube={self.tube}, "
            f"state={self.state}, priority={self.priority})"
        )


class ExchangeRate(Base):
    """
    A fetched exchange rate.

    The primary key is the record reference handed back to the pipeline.
    """

    __tablename__ = "exchange_rates"

    id: Mapped[int] = mapped_column(Identifier, primary_key=True, autoincrement=True)

    task_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    from_currency: Mapped[str] = mapped_column(String(3), nullable=False)
    to_currency: Mapped[str] = mapped_column(String(3), nullable=False)
    rate: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return (
            f"ExchangeRate(id={self.id}, task={self.task_id}, "
            f"{self.from_currency}->{self.to_currency}={self.rate})"
        )
