"""Two-tier stock models: the central hub and per-branch stores."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from momo_pos.db.base import Base, TimestampMixin, VersionMixin


class MaterialCategory(str, Enum):
    """Raw material categories."""

    MOMO = "MOMO"  # bulk momos, tracked in pieces
    PACKET = "PACKET"  # packaged consumables (oil, mayo, fries)
    INGREDIENT = "INGREDIENT"


class CentralMaterial(Base, TimestampMixin, VersionMixin):
    """Hub-wide stock row, one per material.

    ``current_stock`` is signed and never floored.
    """

    __tablename__ = "central_inventory"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    unit: Mapped[str] = mapped_column(String(20), nullable=False)
    category: Mapped[MaterialCategory] = mapped_column(SAEnum(MaterialCategory), nullable=False)
    current_stock: Mapped[Decimal] = mapped_column(Numeric(14, 4), default=0, nullable=False)
    is_finished: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    last_purchase_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    last_purchase_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class BranchMaterial(Base, TimestampMixin, VersionMixin):
    """Per-branch stock row keyed by (material id, branch name).

    Rows are created lazily, on first allocation into the branch or on
    first consumption there, copying name/unit/category from the hub row.
    """

    __tablename__ = "branch_inventory"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    branch_name: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    unit: Mapped[str] = mapped_column(String(20), nullable=False)
    category: Mapped[MaterialCategory] = mapped_column(SAEnum(MaterialCategory), nullable=False)
    current_stock: Mapped[Decimal] = mapped_column(Numeric(14, 4), default=0, nullable=False)
    is_finished: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    request_pending: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
