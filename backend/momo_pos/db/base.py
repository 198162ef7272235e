"""SQLAlchemy declarative base and common utilities."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class TimestampMixin:
    """Mixin for created_at and updated_at timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class VersionMixin:
    """Optimistic locking via a version counter.

    Stock rows carry a ``version`` column starting at 1. Writers read the
    row, compute the new balance and issue
    ``UPDATE ... SET version = version + 1 WHERE version = <read version>``;
    zero affected rows means another writer got there first and the caller
    must re-read and retry (see ``services.stock_ledger``).
    """

    version: Mapped[int] = mapped_column(Integer, default=1, server_default="1", nullable=False)
