"""Station (branch) and user models."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Boolean, Enum, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from momo_pos.core.rbac import UserRole
from momo_pos.db.base import Base, TimestampMixin


class Station(Base, TimestampMixin):
    """A branch / momo station. ``name`` is the branch key used by stock and orders."""

    __tablename__ = "stations"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)


class User(Base, TimestampMixin):
    """User account for authentication and RBAC."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole),
        default=UserRole.STORE_MANAGER,
        nullable=False,
    )
    station_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("stations.id", ondelete="SET NULL"), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    station: Mapped[Optional["Station"]] = relationship("Station")

    @property
    def station_name(self) -> Optional[str]:
        return self.station.name if self.station else None
