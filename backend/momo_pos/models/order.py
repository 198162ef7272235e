"""Sales order models: order header, line items and the bill number sequence."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from momo_pos.db.base import Base
from momo_pos.models.menu import Preparation, Size


class OrderType(str, Enum):
    """How the order is served."""

    DINE_IN = "DINE_IN"
    TAKEAWAY = "TAKEAWAY"
    DELIVERY = "DELIVERY"


class OrderStatus(str, Enum):
    """Kitchen lifecycle of an order.

    COMPLETED and CANCELLED are only reachable by direct assignment, never
    through ``advance``.
    """

    ORDERED = "ORDERED"
    PREPARING = "PREPARING"
    READY = "READY"
    SERVED = "SERVED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class PaymentMethod(str, Enum):
    """Accepted payment methods."""

    CASH = "Cash"
    UPI = "UPI"
    CARD = "Card"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Order(Base):
    """A finalized sale.

    Voiding sets ``deletion_reason``/``deleted_at`` once; the order then only
    shows up in deleted-order queries.
    """

    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(primary_key=True)
    bill_number: Mapped[int] = mapped_column(Integer, unique=True, nullable=False, index=True)
    type: Mapped[OrderType] = mapped_column(SAEnum(OrderType), nullable=False)
    status: Mapped[OrderStatus] = mapped_column(SAEnum(OrderStatus), default=OrderStatus.ORDERED, nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)
    payment_method: Mapped[Optional[PaymentMethod]] = mapped_column(SAEnum(PaymentMethod), nullable=True)
    branch_name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    table_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    deletion_reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, index=True)

    items: Mapped[List["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )

    @property
    def is_voided(self) -> bool:
        return self.deleted_at is not None


class OrderItem(Base):
    """One sold line. ``size`` is fixed when the order is created.

    ``parent_item_id`` marks a nested add-on; it only matters for cart
    display, every line consumes stock on its own.
    """

    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    menu_item_id: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    preparation: Mapped[Optional[Preparation]] = mapped_column(SAEnum(Preparation), nullable=True)
    size: Mapped[Optional[Size]] = mapped_column(SAEnum(Size), nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    parent_item_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    order: Mapped["Order"] = relationship("Order", back_populates="items")


class BillSequence(Base):
    """Counter row owning bill number assignment.

    Incremented with a single UPDATE inside the order's insert transaction,
    so two concurrent saves can never compute the same number.
    """

    __tablename__ = "bill_sequences"

    name: Mapped[str] = mapped_column(String(50), primary_key=True)
    last_value: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
