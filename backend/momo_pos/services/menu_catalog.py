"""Menu catalog - recipe resolution and price/cost lookups for menu items.

Recipe resolution rules:
1. A non-empty per-size recipe is authoritative for that size and already
   expressed in consumed units (multiplier 1).
2. Otherwise the global recipe applies. For momo items it is a per-piece
   requirement and is scaled by the plate's piece count (small=4,
   medium=6, large=8 by default).
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.orm import Session, selectinload

from momo_pos.core.config import settings
from momo_pos.core.exceptions import NotFoundError, ValidationError
from momo_pos.models.menu import MenuCategory, MenuItem, Preparation, RecipeLine, Size

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecipeRequirement:
    """Quantity of one raw material consumed per unit sold."""

    material_id: str
    quantity: Decimal


@dataclass
class RecipeResolution:
    """The recipe in force for a (menu item, size) pair."""

    menu_item_id: str
    category: MenuCategory
    size: Size
    requirements: List[RecipeRequirement] = field(default_factory=list)
    from_size_recipe: bool = False

    @property
    def size_multiplier(self) -> int:
        return size_multiplier(self.category, self.size, self.from_size_recipe)


def parse_size_from_name(name: str) -> Size:
    """Derive a size from a display name: "(Small)", "(Large)", else medium.

    Only used for order lines that arrive without an explicit size.
    """
    if "(Small)" in name:
        return Size.SMALL
    if "(Large)" in name:
        return Size.LARGE
    return Size.MEDIUM


def size_multiplier(category: MenuCategory, size: Size, from_size_recipe: bool) -> int:
    """Piece-count scaling for momo items on the global recipe, else 1."""
    if from_size_recipe or category != MenuCategory.MOMO:
        return 1
    return settings.momo_piece_counts[Size(size).value]


def format_preparation(prep: str) -> str:
    """'pan-fried' -> 'Pan-Fried', 'peri-peri' -> 'Peri-Peri'."""
    return "-".join(part.capitalize() for part in prep.split("-"))


def _lines_to_requirements(lines: List[RecipeLine]) -> List[RecipeRequirement]:
    return [RecipeRequirement(material_id=line.material_id, quantity=line.quantity) for line in lines]


class MenuCatalog:
    """Read-mostly access to menu items and their bill of materials."""

    def __init__(self, db: Session):
        self.db = db

    # ===== LOOKUPS =====

    def get_item(self, menu_item_id: str) -> MenuItem:
        item = (
            self.db.query(MenuItem)
            .options(selectinload(MenuItem.recipe_lines))
            .filter(MenuItem.id == menu_item_id)
            .first()
        )
        if item is None:
            raise NotFoundError("Menu item", menu_item_id)
        return item

    def list_items(self, category: Optional[MenuCategory] = None) -> List[MenuItem]:
        query = self.db.query(MenuItem).options(selectinload(MenuItem.recipe_lines))
        if category is not None:
            query = query.filter(MenuItem.category == category)
        return query.order_by(MenuItem.name).all()

    def resolve_recipe(self, menu_item_id: str, size: Size) -> RecipeResolution:
        """Return the recipe in force for ``size``.

        Raises:
            NotFoundError: If the menu item does not exist.
        """
        item = self.get_item(menu_item_id)
        size = Size(size)
        override = item.size_recipes.get(size)
        if override:
            return RecipeResolution(
                menu_item_id=item.id,
                category=item.category,
                size=size,
                requirements=_lines_to_requirements(override),
                from_size_recipe=True,
            )
        return RecipeResolution(
            menu_item_id=item.id,
            category=item.category,
            size=size,
            requirements=_lines_to_requirements(item.recipe),
            from_size_recipe=False,
        )

    @staticmethod
    def price_for(item: MenuItem, preparation: str, size: Size) -> Decimal:
        """Selling price from the matrix, 0 when the variant is not offered."""
        value = (item.preparations or {}).get(preparation, {}).get(Size(size).value)
        return Decimal(str(value)) if value is not None else Decimal("0")

    @staticmethod
    def cost_for(item: MenuItem, preparation: str, size: Size) -> Decimal:
        """Internal cost from the matrix, 0 when the variant has no cost."""
        value = (item.costs or {}).get(preparation, {}).get(Size(size).value)
        return Decimal(str(value)) if value is not None else Decimal("0")

    @staticmethod
    def build_variant_name(item: MenuItem, preparation: str, size: Size) -> str:
        """Display name for a variant.

        Items with a single (prep, size) combination keep their plain name.
        Items with several preparations get "<Prep> <Name> (<Size>)"; items
        with one preparation get "<Name> (<Size>)".
        """
        preparations = item.preparations or {}
        variants = sum(len(sizes) for sizes in preparations.values())
        if variants <= 1:
            return item.name
        size_text = Size(size).value.capitalize()
        if len(preparations) > 1:
            return f"{format_preparation(preparation)} {item.name} ({size_text})"
        return f"{item.name} ({size_text})"

    # ===== ADMINISTRATION =====

    def upsert_item(
        self,
        menu_item_id: str,
        name: str,
        category: MenuCategory,
        preparations: Dict[str, Dict[str, float]],
        costs: Dict[str, Dict[str, float]],
        recipe: List[RecipeRequirement],
        size_recipes: Dict[Size, List[RecipeRequirement]],
        image: Optional[str] = None,
    ) -> MenuItem:
        """Create or replace a menu item together with all its recipe lines."""
        if not menu_item_id or not menu_item_id.strip():
            raise ValidationError("Menu item id is required", field="id")
        if not name or not name.strip():
            raise ValidationError("Menu item name is required", field="name")
        self._validate_matrix(preparations, "preparations")
        self._validate_matrix(costs, "costs")

        lines: List[RecipeLine] = []
        for requirement in recipe:
            lines.append(self._make_line(requirement, None))
        for size, requirements in size_recipes.items():
            for requirement in requirements:
                lines.append(self._make_line(requirement, Size(size)))

        item = self.db.query(MenuItem).filter(MenuItem.id == menu_item_id).first()
        if item is None:
            item = MenuItem(id=menu_item_id)
            self.db.add(item)
            logger.info(f"Creating menu item '{menu_item_id}'")
        else:
            logger.info(f"Replacing menu item '{menu_item_id}'")

        item.name = name.strip()
        item.category = MenuCategory(category)
        item.image = image
        item.preparations = preparations
        item.costs = costs
        item.recipe_lines = lines
        self.db.commit()
        self.db.refresh(item)
        return item

    def delete_item(self, menu_item_id: str) -> None:
        item = self.get_item(menu_item_id)
        self.db.delete(item)
        self.db.commit()
        logger.info(f"Deleted menu item '{menu_item_id}'")

    @staticmethod
    def _make_line(requirement: RecipeRequirement, size: Optional[Size]) -> RecipeLine:
        if not requirement.material_id:
            raise ValidationError("Recipe material id is required", field="material_id")
        if requirement.quantity <= 0:
            raise ValidationError(
                f"Recipe quantity for '{requirement.material_id}' must be positive",
                field="quantity",
            )
        return RecipeLine(material_id=requirement.material_id, quantity=requirement.quantity, size=size)

    @staticmethod
    def _validate_matrix(matrix: Dict[str, Dict[str, float]], field_name: str) -> None:
        valid_preps = {p.value for p in Preparation}
        valid_sizes = {s.value for s in Size}
        for prep, sizes in (matrix or {}).items():
            if prep not in valid_preps:
                raise ValidationError(f"Unknown preparation '{prep}' in {field_name}", field=field_name)
            for size, amount in sizes.items():
                if size not in valid_sizes:
                    raise ValidationError(f"Unknown size '{size}' in {field_name}", field=field_name)
                if amount is None or amount < 0:
                    raise ValidationError(f"{field_name}[{prep}][{size}] must be zero or more", field=field_name)
