"""Sales order schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from momo_pos.models.menu import Preparation, Size
from momo_pos.models.order import OrderStatus, OrderType, PaymentMethod


class OrderItemCreate(BaseModel):
    """A cart line. Name, price and cost default to the menu's values."""

    menu_item_id: str = Field(min_length=1)
    quantity: int = Field(ge=1)
    size: Optional[Size] = None
    preparation: Optional[Preparation] = None
    name: Optional[str] = Field(default=None, max_length=255)
    price: Optional[Decimal] = Field(default=None, ge=0)
    cost: Optional[Decimal] = Field(default=None, ge=0)
    parent_item_id: Optional[str] = None


class OrderCreate(BaseModel):
    """Finalized cart."""

    items: List[OrderItemCreate] = Field(min_length=1)
    type: OrderType
    status: OrderStatus = OrderStatus.ORDERED
    payment_method: Optional[PaymentMethod] = None
    branch_name: Optional[str] = None
    table_id: Optional[str] = None
    total: Optional[Decimal] = Field(default=None, ge=0)


class OrderItemResponse(BaseModel):
    """Order line response schema."""

    id: int
    menu_item_id: str
    name: str
    preparation: Optional[Preparation] = None
    size: Optional[Size] = None
    price: Decimal
    cost: Optional[Decimal] = None
    quantity: int
    parent_item_id: Optional[str] = None

    model_config = {"from_attributes": True}


class OrderResponse(BaseModel):
    """Order response schema."""

    id: int
    bill_number: int
    type: OrderType
    status: OrderStatus
    total: Decimal
    date: datetime
    payment_method: Optional[PaymentMethod] = None
    branch_name: str
    table_id: Optional[str] = None
    deletion_reason: Optional[str] = None
    deleted_at: Optional[datetime] = None
    items: List[OrderItemResponse] = []

    model_config = {"from_attributes": True}


class ConsumptionSummary(BaseModel):
    """Outcome of stock deduction for a saved order."""

    success: bool
    deductions: int
    skipped_items: List[dict] = []
    untracked_materials: List[dict] = []
    failed_items: List[dict] = []


class SavedOrderResponse(BaseModel):
    """Response for a newly saved order."""

    bill_number: int
    order: OrderResponse
    consumption: ConsumptionSummary


class VoidRequest(BaseModel):
    """Void (soft-delete) a bill."""

    reason: str = Field(min_length=1, max_length=500)


class StatusUpdate(BaseModel):
    """Direct status assignment."""

    status: OrderStatus
