"""Menu routes."""

from typing import List, Optional

from fastapi import APIRouter, Request

from momo_pos.core.rate_limit import limiter
from momo_pos.core.rbac import CurrentUser, RequireAdmin
from momo_pos.db.session import DbSession
from momo_pos.models.menu import MenuCategory
from momo_pos.schemas.menu import MenuItemResponse, MenuItemUpsert
from momo_pos.services.menu_catalog import MenuCatalog, RecipeRequirement

router = APIRouter()


@router.get("/", response_model=List[MenuItemResponse])
@limiter.limit("60/minute")
def list_menu_items(
    request: Request,
    db: DbSession,
    current_user: CurrentUser,
    category: Optional[MenuCategory] = None,
):
    """List menu items, optionally filtered by category."""
    items = MenuCatalog(db).list_items(category)
    return [MenuItemResponse.from_model(item) for item in items]


@router.get("/{menu_item_id}", response_model=MenuItemResponse)
@limiter.limit("60/minute")
def get_menu_item(request: Request, menu_item_id: str, db: DbSession, current_user: CurrentUser):
    """Get a menu item with its recipes."""
    return MenuItemResponse.from_model(MenuCatalog(db).get_item(menu_item_id))


@router.put("/{menu_item_id}", response_model=MenuItemResponse)
@limiter.limit("30/minute")
def upsert_menu_item(
    request: Request,
    menu_item_id: str,
    body: MenuItemUpsert,
    db: DbSession,
    current_user: RequireAdmin,
):
    """Create or replace a menu item and its recipe lines."""
    item = MenuCatalog(db).upsert_item(
        menu_item_id=menu_item_id,
        name=body.name,
        category=body.category,
        preparations=body.preparations,
        costs=body.costs,
        recipe=[RecipeRequirement(r.material_id, r.quantity) for r in body.recipe],
        size_recipes={
            size: [RecipeRequirement(r.material_id, r.quantity) for r in reqs]
            for size, reqs in body.size_recipes.items()
        },
        image=body.image,
    )
    return MenuItemResponse.from_model(item)


@router.delete("/{menu_item_id}")
@limiter.limit("30/minute")
def delete_menu_item(request: Request, menu_item_id: str, db: DbSession, current_user: RequireAdmin):
    """Delete a menu item. Past orders keep their copied name and price."""
    MenuCatalog(db).delete_item(menu_item_id)
    return {"status": "deleted", "id": menu_item_id}
