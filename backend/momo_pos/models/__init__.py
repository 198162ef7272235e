"""SQLAlchemy models."""

from momo_pos.models.user import Station, User
from momo_pos.models.menu import MenuCategory, MenuItem, Preparation, RecipeLine, Size
from momo_pos.models.inventory import BranchMaterial, CentralMaterial, MaterialCategory
from momo_pos.models.ledger import ProcurementEntry, StockAllocation
from momo_pos.models.order import (
    BillSequence,
    Order,
    OrderItem,
    OrderStatus,
    OrderType,
    PaymentMethod,
)

__all__ = [
    "Station",
    "User",
    "MenuCategory",
    "MenuItem",
    "Preparation",
    "RecipeLine",
    "Size",
    "BranchMaterial",
    "CentralMaterial",
    "MaterialCategory",
    "ProcurementEntry",
    "StockAllocation",
    "BillSequence",
    "Order",
    "OrderItem",
    "OrderStatus",
    "OrderType",
    "PaymentMethod",
]
