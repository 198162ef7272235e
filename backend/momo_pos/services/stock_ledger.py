"""Stock ledger - the two-tier inventory store (central hub -> branch stores).

Every change to a stock row goes through an optimistic compare-and-swap on
the row's ``version`` column:

1. Read the row (bypassing the identity map).
2. Compute the new values.
3. ``UPDATE ... SET ..., version = version + 1 WHERE <key> AND version = <read>``
4. Zero rows affected means a concurrent writer won; re-read and retry,
   up to ``settings.stock_update_max_retries`` attempts, then raise
   ConcurrencyConflictError.

Balances are signed and never floored: negative stock is a signal for the
operator, not an error. The only blocking check is on allocation, which
refuses to move more than the hub holds.

Public operations (purchase, allocate, mark_finished, request_restock,
create_central_item, ...) own their transaction and commit. Methods whose
docstring says "does not commit" leave the transaction to the caller.
"""

import logging
import re
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from momo_pos.core.config import settings
from momo_pos.core.exceptions import (
    ConcurrencyConflictError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from momo_pos.models.inventory import BranchMaterial, CentralMaterial, MaterialCategory
from momo_pos.models.ledger import StockAllocation

logger = logging.getLogger(__name__)

# Standard raw materials every new hub starts with
STANDARD_MATERIALS = [
    # Bulk momos (units in pieces)
    {"id": "momo-veg", "name": "Veg Momo (Bulk)", "unit": "pcs", "category": MaterialCategory.MOMO},
    {"id": "momo-chicken", "name": "Chicken Momo (Bulk)", "unit": "pcs", "category": MaterialCategory.MOMO},
    {"id": "momo-paneer", "name": "Paneer Momo (Bulk)", "unit": "pcs", "category": MaterialCategory.MOMO},
    {"id": "momo-chicken-cheese", "name": "Chicken Cheese Momo (Bulk)", "unit": "pcs", "category": MaterialCategory.MOMO},
    {"id": "momo-corn-cheese", "name": "Corn Cheese Momo (Bulk)", "unit": "pcs", "category": MaterialCategory.MOMO},
    {"id": "momo-kurkure", "name": "Kurkure Momo (Bulk)", "unit": "pcs", "category": MaterialCategory.MOMO},
    {"id": "momo-tandoori", "name": "Tandoori Momo (Bulk)", "unit": "pcs", "category": MaterialCategory.MOMO},
    # Consumables
    {"id": "pkt-oil", "name": "Refined Cooking Oil", "unit": "ltr", "category": MaterialCategory.PACKET},
    {"id": "pkt-mayo", "name": "Mayonnaise", "unit": "pkt", "category": MaterialCategory.PACKET},
    {"id": "pkt-fries", "name": "French Fries (Bulk)", "unit": "pkt", "category": MaterialCategory.PACKET},
]

CENTRAL = "central"
BRANCH = "branch"


def to_decimal(value: Any) -> Decimal:
    """Convert ints/floats/strings to Decimal without float artefacts."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def slugify_material_id(name: str) -> str:
    """'Refined Cooking Oil' -> 'refined-cooking-oil'."""
    slug = re.sub(r"\s+", "-", name.lower().strip())
    return re.sub(r"[^a-z0-9-]", "", slug)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StockLedger:
    """Central and branch stock operations."""

    def __init__(self, db: Session, max_retries: Optional[int] = None):
        self.db = db
        self.max_retries = settings.stock_update_max_retries if max_retries is None else max_retries
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {self.max_retries}")

    # ===== READS =====

    def get_central(self, material_id: str) -> Optional[CentralMaterial]:
        return (
            self.db.query(CentralMaterial)
            .filter(CentralMaterial.id == material_id)
            .populate_existing()
            .first()
        )

    def get_branch(self, material_id: str, branch_name: str) -> Optional[BranchMaterial]:
        return (
            self.db.query(BranchMaterial)
            .filter(
                BranchMaterial.id == material_id,
                BranchMaterial.branch_name == branch_name,
            )
            .populate_existing()
            .first()
        )

    def list_central(self) -> List[CentralMaterial]:
        return self.db.query(CentralMaterial).order_by(CentralMaterial.name).all()

    def list_branch(self, branch_name: str) -> List[BranchMaterial]:
        return (
            self.db.query(BranchMaterial)
            .filter(BranchMaterial.branch_name == branch_name)
            .order_by(BranchMaterial.name)
            .all()
        )

    # ===== OPTIMISTIC UPDATE PRIMITIVES =====

    def _compare_and_swap(self, row, values: Dict[str, Any]) -> bool:
        """Write ``values`` only if ``row.version`` is still current. Does not commit."""
        model = type(row)
        key_filters = [model.id == row.id]
        if model is BranchMaterial:
            key_filters.append(BranchMaterial.branch_name == row.branch_name)
        stmt = (
            update(model)
            .where(*key_filters, model.version == row.version)
            .values(**values, version=model.version + 1)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        return result.rowcount == 1

    def _update_with_retry(
        self,
        load: Callable[[], Any],
        compute: Callable[[Any], Dict[str, Any]],
        table: str,
        key,
    ):
        """Read-modify-write loop around ``_compare_and_swap``. Does not commit.

        ``load`` returns the current row (or None); ``compute`` returns the
        column values to write and may raise to abort.
        """
        for attempt in range(1, self.max_retries + 1):
            row = load()
            if row is None:
                raise NotFoundError(table, key)
            values = compute(row)
            if self._compare_and_swap(row, values):
                self.db.refresh(row)
                return row
            logger.warning(
                f"Version conflict on {table} {key} (attempt {attempt}/{self.max_retries}), retrying"
            )
        raise ConcurrencyConflictError(table, key, self.max_retries)

    def _update_central(self, material_id: str, compute: Callable[[CentralMaterial], Dict[str, Any]]) -> CentralMaterial:
        return self._update_with_retry(
            lambda: self.get_central(material_id), compute, "Central material", material_id,
        )

    def _update_branch(
        self, material_id: str, branch_name: str, compute: Callable[[BranchMaterial], Dict[str, Any]]
    ) -> BranchMaterial:
        return self._update_with_retry(
            lambda: self.get_branch(material_id, branch_name),
            compute,
            "Branch material",
            f"{material_id}@{branch_name}",
        )

    def _insert_branch_row(self, source: CentralMaterial, branch_name: str, **values) -> BranchMaterial:
        """Create a branch row from hub metadata. Does not commit.

        A concurrent creation of the same (material, branch) key surfaces as
        a ConcurrencyConflictError after rolling back the transaction.
        """
        row = BranchMaterial(
            id=source.id,
            branch_name=branch_name,
            name=source.name,
            unit=source.unit,
            category=source.category,
            **values,
        )
        self.db.add(row)
        try:
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            raise ConcurrencyConflictError("Branch material", f"{source.id}@{branch_name}", 1)
        return row

    # ===== HUB =====

    def create_central_item(
        self,
        name: str,
        unit: str,
        initial_qty,
        cost_per_unit,
        category: MaterialCategory,
        manual_id: Optional[str] = None,
    ) -> CentralMaterial:
        """Create a hub material, or overwrite an existing one with the same id."""
        if not name or not name.strip():
            raise ValidationError("Material name is required", field="name")
        if not unit or not unit.strip():
            raise ValidationError("Material unit is required", field="unit")
        material_id = manual_id or slugify_material_id(name)
        if not material_id:
            raise ValidationError("Material id could not be derived from the name", field="id")
        qty = to_decimal(initial_qty)
        cost = to_decimal(cost_per_unit)
        if cost < 0:
            raise ValidationError("Cost per unit cannot be negative", field="cost_per_unit")

        values = {
            "name": name.strip(),
            "unit": unit.strip(),
            "category": MaterialCategory(category),
            "current_stock": qty,
            "last_purchase_cost": cost,
            "last_purchase_date": _utcnow(),
            "is_finished": False,
        }
        try:
            if self.get_central(material_id) is None:
                row = CentralMaterial(id=material_id, **values)
                self.db.add(row)
                logger.info(f"Created central material '{material_id}' with {qty} {unit}")
            else:
                row = self._update_central(material_id, lambda _row: values)
                logger.info(f"Overwrote central material '{material_id}'")
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(row)
        return row

    def seed_standard_inventory(self) -> List[str]:
        """Insert the standard raw materials that are not in the hub yet.

        Existing rows are left untouched. Returns the ids that were created.
        """
        created = []
        for spec in STANDARD_MATERIALS:
            if self.get_central(spec["id"]) is not None:
                continue
            self.db.add(CentralMaterial(current_stock=Decimal("0"), is_finished=False, **spec))
            created.append(spec["id"])
        self.db.commit()
        if created:
            logger.info(f"Seeded {len(created)} standard materials: {', '.join(created)}")
        return created

    def apply_purchase(self, material_id: str, qty, total_cost) -> CentralMaterial:
        """Increase hub stock for a purchase. Does not commit."""
        qty = to_decimal(qty)
        total_cost = to_decimal(total_cost)
        if qty <= 0:
            raise ValidationError("Purchase quantity must be positive", field="quantity")
        if total_cost < 0:
            raise ValidationError("Purchase cost cannot be negative", field="total_cost")

        return self._update_central(
            material_id,
            lambda row: {
                "current_stock": row.current_stock + qty,
                "last_purchase_cost": total_cost,
                "last_purchase_date": _utcnow(),
                "is_finished": False,
            },
        )

    def purchase(self, material_id: str, qty, total_cost) -> CentralMaterial:
        """Record a hub restock: stock += qty, remember cost/date, clear finished.

        Raises:
            NotFoundError: If the material is not in the hub.
        """
        try:
            row = self.apply_purchase(material_id, qty, total_cost)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"Purchase of {qty} {row.unit} '{material_id}' recorded; hub now {row.current_stock}")
        return row

    # ===== HUB -> BRANCH =====

    def allocate(self, material_id: str, branch_name: str, qty) -> StockAllocation:
        """Transfer ``qty`` from the hub to ``branch_name``.

        Decrements the hub row, upserts the branch row (+qty, clearing its
        finished and restock-pending flags) and appends one StockAllocation,
        all in one transaction: either all three land or none does.

        Raises:
            NotFoundError: If the material is not in the hub.
            InsufficientStockError: If the hub holds less than ``qty``.
        """
        qty = to_decimal(qty)
        if qty <= 0:
            raise ValidationError("Allocation quantity must be positive", field="quantity")
        if not branch_name or not branch_name.strip():
            raise ValidationError("Branch name is required", field="branch_name")

        def take_from_hub(row: CentralMaterial) -> Dict[str, Any]:
            if row.current_stock < qty:
                raise InsufficientStockError(row.id, row.name, row.current_stock, qty, row.unit)
            return {"current_stock": row.current_stock - qty}

        try:
            central = self._update_central(material_id, take_from_hub)

            if self.get_branch(material_id, branch_name) is None:
                self._insert_branch_row(
                    central, branch_name,
                    current_stock=qty, is_finished=False, request_pending=False,
                )
            else:
                self._update_branch(
                    material_id, branch_name,
                    lambda row: {
                        "current_stock": row.current_stock + qty,
                        "is_finished": False,
                        "request_pending": False,
                    },
                )

            allocation = StockAllocation(
                material_id=central.id,
                material_name=central.name,
                station_name=branch_name,
                quantity=qty,
                unit=central.unit,
                date=_utcnow(),
            )
            self.db.add(allocation)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(allocation)
        logger.info(f"Allocated {qty} {central.unit} of '{material_id}' to {branch_name}")
        return allocation

    # ===== BRANCH =====

    def apply_branch_delta(self, material_id: str, branch_name: str, delta) -> Optional[Dict[str, Any]]:
        """Add ``delta`` (negative for consumption) to a branch row. Does not commit.

        When the branch has no row yet, one is created from the hub's
        metadata with ``current_stock = delta``. When the hub does not know
        the material either, nothing is written and None is returned.

        Returns:
            Dict with ``material_id``, ``branch_name``, ``new_stock`` and
            ``created`` (True when the branch row was provisioned here).
        """
        delta = to_decimal(delta)
        if self.get_branch(material_id, branch_name) is not None:
            row = self._update_branch(
                material_id, branch_name,
                lambda r: {"current_stock": r.current_stock + delta},
            )
            return {
                "material_id": material_id,
                "branch_name": branch_name,
                "new_stock": row.current_stock,
                "created": False,
            }

        central = self.get_central(material_id)
        if central is None:
            return None

        row = self._insert_branch_row(
            central, branch_name,
            current_stock=delta, is_finished=False, request_pending=False,
        )
        return {
            "material_id": material_id,
            "branch_name": branch_name,
            "new_stock": row.current_stock,
            "created": True,
        }

    def mark_finished(
        self,
        scope: str,
        material_id: str,
        finished: bool,
        branch_name: Optional[str] = None,
    ):
        """Manual "ran out" / "got more" override.

        Sets ``is_finished`` and forces the balance to 0 (finished) or 1
        (placeholder), regardless of the computed stock.
        """
        values = {"is_finished": finished, "current_stock": Decimal("0") if finished else Decimal("1")}
        try:
            if scope == CENTRAL:
                row = self._update_central(material_id, lambda _row: values)
            elif scope == BRANCH:
                if not branch_name:
                    raise ValidationError("Branch name is required for branch scope", field="branch_name")
                row = self._update_branch(material_id, branch_name, lambda _row: values)
            else:
                raise ValidationError(f"Unknown stock scope '{scope}'", field="scope")
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"Marked {scope} '{material_id}' as {'finished' if finished else 'available'}")
        return row

    def request_restock(self, material_id: str, branch_name: str) -> BranchMaterial:
        """Flag a branch row as waiting for a restock."""
        return self._set_request_pending(material_id, branch_name, True)

    def clear_restock_request(self, material_id: str, branch_name: str) -> BranchMaterial:
        """Manually drop a pending restock flag."""
        return self._set_request_pending(material_id, branch_name, False)

    def _set_request_pending(self, material_id: str, branch_name: str, pending: bool) -> BranchMaterial:
        if not branch_name:
            raise ValidationError("Branch name is required", field="branch_name")
        try:
            row = self._update_branch(material_id, branch_name, lambda _row: {"request_pending": pending})
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"Restock request for '{material_id}' at {branch_name} set to {pending}")
        return row
