"""Inventory, procurement and allocation schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field

from momo_pos.models.inventory import MaterialCategory


class CentralMaterialResponse(BaseModel):
    """Hub stock row."""

    id: str
    name: str
    unit: str
    category: MaterialCategory
    current_stock: Decimal
    is_finished: bool
    last_purchase_cost: Optional[Decimal] = None
    last_purchase_date: Optional[datetime] = None
    version: int

    model_config = {"from_attributes": True}


class BranchMaterialResponse(BaseModel):
    """Branch stock row."""

    id: str
    branch_name: str
    name: str
    unit: str
    category: MaterialCategory
    current_stock: Decimal
    is_finished: bool
    request_pending: bool
    version: int

    model_config = {"from_attributes": True}


class CentralItemCreate(BaseModel):
    """New hub material."""

    name: str = Field(min_length=1, max_length=255)
    unit: str = Field(min_length=1, max_length=20)
    initial_qty: Decimal = Decimal("0")
    cost_per_unit: Decimal = Field(default=Decimal("0"), ge=0)
    category: MaterialCategory
    id: Optional[str] = Field(default=None, max_length=100)


class PurchaseRequest(BaseModel):
    """Hub restock."""

    material_id: str
    quantity: Decimal = Field(gt=0)
    total_cost: Decimal = Field(ge=0)


class AllocationRequest(BaseModel):
    """Hub to branch transfer."""

    material_id: str
    branch_name: str = Field(min_length=1, max_length=100)
    quantity: Decimal = Field(gt=0)


class FinishedFlagRequest(BaseModel):
    """Manual finished / available override."""

    scope: Literal["central", "branch"]
    material_id: str
    finished: bool
    branch_name: Optional[str] = None


class RestockRequest(BaseModel):
    """Branch restock request."""

    material_id: str
    branch_name: Optional[str] = None


class ProcurementCreate(BaseModel):
    """Purchase log entry."""

    material_id: str
    quantity: Decimal = Field(gt=0)
    total_cost: Decimal = Field(ge=0)
    vendor: Optional[str] = Field(default=None, max_length=255)


class ProcurementResponse(BaseModel):
    """Purchase log entry response."""

    id: int
    item_id: str
    item_name: str
    quantity: Decimal
    unit: str
    total_cost: Decimal
    vendor: Optional[str] = None
    date: datetime

    model_config = {"from_attributes": True}


class AllocationResponse(BaseModel):
    """Transfer log entry response."""

    id: int
    material_id: str
    material_name: str
    station_name: str
    quantity: Decimal
    unit: str
    date: datetime

    model_config = {"from_attributes": True}
