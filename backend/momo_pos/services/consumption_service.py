"""Order consumption - deducts branch stock for a finalized order.

Flow, for every line of the order (add-ons included, they are plain lines):
1. Resolve the menu item; unknown items are skipped.
2. Take the line's size (legacy lines without one fall back to parsing
   "(Small)" / "(Large)" out of the display name).
3. Pick the per-size recipe if one exists, else the global recipe.
4. Multiply by the plate's piece count for momo items on the global recipe.
5. For each requirement deduct ``quantity * multiplier * line.quantity``
   from the ordering branch, provisioning the branch row from hub metadata
   when the branch has never held the material.

Stock bookkeeping must never block a sale: each line is committed on its
own and a failing line is rolled back, logged and reported, not raised.
There is no dedup key; applying the same order twice deducts twice.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List

from sqlalchemy.orm import Session

from momo_pos.core.exceptions import NotFoundError
from momo_pos.models.menu import Size
from momo_pos.models.order import Order, OrderItem
from momo_pos.services.menu_catalog import MenuCatalog, parse_size_from_name
from momo_pos.services.stock_ledger import StockLedger

logger = logging.getLogger(__name__)


@dataclass
class Deduction:
    order_item_id: int
    material_id: str
    branch_name: str
    quantity: Decimal
    new_stock: Decimal
    created_row: bool = False


@dataclass
class ConsumptionReport:
    """What happened to each line, for operator reconciliation."""

    order_id: int
    branch_name: str
    deductions: List[Deduction] = field(default_factory=list)
    skipped_items: List[dict] = field(default_factory=list)
    untracked_materials: List[dict] = field(default_factory=list)
    failed_items: List[dict] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failed_items


def line_size(item: OrderItem) -> Size:
    """Size recorded on the line, or the legacy name-derived size."""
    if item.size is not None:
        return Size(item.size)
    return parse_size_from_name(item.name)


class OrderConsumptionResolver:
    """Applies recipe consumption for an order to branch stock."""

    def __init__(self, db: Session):
        self.db = db
        self.catalog = MenuCatalog(db)
        self.ledger = StockLedger(db)

    def apply_consumption(self, order: Order) -> ConsumptionReport:
        """Deduct stock for every line of ``order`` at ``order.branch_name``."""
        report = ConsumptionReport(order_id=order.id, branch_name=order.branch_name)
        # Snapshot the lines; a rollback on a failing line expires the ORM objects
        lines = [
            {
                "id": item.id,
                "menu_item_id": item.menu_item_id,
                "name": item.name,
                "size": line_size(item),
                "quantity": item.quantity,
            }
            for item in order.items
        ]
        branch_name = order.branch_name

        for line in lines:
            try:
                deductions = self._apply_line(line, branch_name, report)
                self.db.commit()
                report.deductions.extend(deductions)
            except Exception as e:
                self.db.rollback()
                logger.error(
                    f"Stock deduction failed for order {report.order_id} line {line['id']} "
                    f"('{line['name']}'): {e}",
                    exc_info=True,
                )
                report.failed_items.append({
                    "order_item_id": line["id"],
                    "name": line["name"],
                    "error": str(e),
                })

        logger.info(
            f"Consumption for order {report.order_id} at {branch_name}: "
            f"{len(report.deductions)} deductions, {len(report.skipped_items)} skipped, "
            f"{len(report.untracked_materials)} untracked, {len(report.failed_items)} failed"
        )
        return report

    def _apply_line(self, line: dict, branch_name: str, report: ConsumptionReport) -> List[Deduction]:
        try:
            resolution = self.catalog.resolve_recipe(line["menu_item_id"], line["size"])
        except NotFoundError:
            logger.warning(
                f"Menu item '{line['menu_item_id']}' not found; no stock deducted for '{line['name']}'"
            )
            report.skipped_items.append({
                "order_item_id": line["id"],
                "menu_item_id": line["menu_item_id"],
                "reason": "menu_item_not_found",
            })
            return []

        multiplier = resolution.size_multiplier
        deductions = []
        for requirement in resolution.requirements:
            total_consumption = requirement.quantity * multiplier * line["quantity"]
            result = self.ledger.apply_branch_delta(requirement.material_id, branch_name, -total_consumption)
            if result is None:
                # Material unknown at the branch and at the hub: consumption is lost
                logger.warning(
                    f"untracked_material: '{requirement.material_id}' is not stocked at "
                    f"{branch_name} or the hub; {total_consumption} not recorded "
                    f"(order {report.order_id}, line {line['id']})"
                )
                report.untracked_materials.append({
                    "order_item_id": line["id"],
                    "material_id": requirement.material_id,
                    "quantity": total_consumption,
                })
                continue
            deductions.append(Deduction(
                order_item_id=line["id"],
                material_id=requirement.material_id,
                branch_name=branch_name,
                quantity=total_consumption,
                new_stock=result["new_stock"],
                created_row=result["created"],
            ))
        return deductions
