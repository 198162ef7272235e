"""Menu item schemas."""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from momo_pos.models.menu import MenuCategory, Size


class RecipeRequirementSchema(BaseModel):
    """One material requirement per unit sold."""

    material_id: str = Field(min_length=1)
    quantity: Decimal = Field(gt=0)


class MenuItemBase(BaseModel):
    """Base menu item schema."""

    name: str = Field(min_length=1, max_length=255)
    category: MenuCategory
    image: Optional[str] = None
    preparations: Dict[str, Dict[str, float]] = {}
    costs: Dict[str, Dict[str, float]] = {}
    recipe: List[RecipeRequirementSchema] = []
    size_recipes: Dict[Size, List[RecipeRequirementSchema]] = {}


class MenuItemUpsert(MenuItemBase):
    """Create or replace a menu item. The id comes from the path."""


class MenuItemResponse(MenuItemBase):
    """Menu item response schema."""

    id: str

    @classmethod
    def from_model(cls, item) -> "MenuItemResponse":
        return cls(
            id=item.id,
            name=item.name,
            category=item.category,
            image=item.image,
            preparations=item.preparations or {},
            costs=item.costs or {},
            recipe=[
                RecipeRequirementSchema(material_id=line.material_id, quantity=line.quantity)
                for line in item.recipe
            ],
            size_recipes={
                size: [
                    RecipeRequirementSchema(material_id=line.material_id, quantity=line.quantity)
                    for line in lines
                ]
                for size, lines in item.size_recipes.items()
            },
        )
