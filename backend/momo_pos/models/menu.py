"""Menu catalog models: sellable items and their bill of materials."""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from sqlalchemy import Enum as SAEnum, ForeignKey, JSON, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from momo_pos.db.base import Base, TimestampMixin


class MenuCategory(str, Enum):
    """Menu item categories."""

    MOMO = "momo"
    SIDE = "side"
    DRINK = "drink"
    COMBO = "combo"


class Size(str, Enum):
    """Portion sizes a menu item is sold in."""

    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class Preparation(str, Enum):
    """Ways a menu item can be prepared."""

    STEAMED = "steamed"
    FRIED = "fried"
    PAN_FRIED = "pan-fried"
    NORMAL = "normal"
    PERI_PERI = "peri-peri"
    CHILLI = "chilli"


class MenuItem(Base, TimestampMixin):
    """A sellable item with price/cost matrices keyed by preparation and size.

    ``preparations`` and ``costs`` are stored as ``{prep: {size: amount}}``.
    """

    __tablename__ = "menu_items"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    image: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    category: Mapped[MenuCategory] = mapped_column(SAEnum(MenuCategory), nullable=False)
    preparations: Mapped[Dict[str, Dict[str, float]]] = mapped_column(JSON, default=dict, nullable=False)
    costs: Mapped[Dict[str, Dict[str, float]]] = mapped_column(JSON, default=dict, nullable=False)

    recipe_lines: Mapped[List["RecipeLine"]] = relationship(
        "RecipeLine",
        back_populates="menu_item",
        cascade="all, delete-orphan",
        order_by="RecipeLine.id",
    )

    @property
    def recipe(self) -> List["RecipeLine"]:
        """Global recipe lines (apply to every size)."""
        return [line for line in self.recipe_lines if line.size is None]

    @property
    def size_recipes(self) -> Dict[Size, List["RecipeLine"]]:
        """Per-size recipe overrides."""
        grouped: Dict[Size, List[RecipeLine]] = {}
        for line in self.recipe_lines:
            if line.size is not None:
                grouped.setdefault(line.size, []).append(line)
        return grouped


class RecipeLine(Base):
    """One raw-material requirement of a menu item.

    A NULL ``size`` belongs to the global recipe; a set ``size`` belongs to
    that size's override recipe.
    """

    __tablename__ = "recipe_lines"

    id: Mapped[int] = mapped_column(primary_key=True)
    menu_item_id: Mapped[str] = mapped_column(
        ForeignKey("menu_items.id", ondelete="CASCADE"), nullable=False, index=True
    )
    material_id: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    size: Mapped[Optional[Size]] = mapped_column(SAEnum(Size), nullable=True)

    menu_item: Mapped["MenuItem"] = relationship("MenuItem", back_populates="recipe_lines")
