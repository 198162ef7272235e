"""Procurement and allocation logs - append-only reads and writes."""

import logging
from datetime import date, datetime, time, timezone
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from momo_pos.core.exceptions import NotFoundError, ValidationError
from momo_pos.models.ledger import ProcurementEntry, StockAllocation
from momo_pos.services.stock_ledger import StockLedger, to_decimal

logger = logging.getLogger(__name__)


def day_range(start: date, end: date) -> Tuple[datetime, datetime]:
    """Inclusive UTC bounds covering every instant from ``start`` 00:00 to ``end`` 23:59:59."""
    if end < start:
        raise ValidationError("End date is before start date", field="end_date")
    return (
        datetime.combine(start, time.min, tzinfo=timezone.utc),
        datetime.combine(end, time.max, tzinfo=timezone.utc),
    )


class ProcurementService:
    """Hub purchase log. Entries are never updated or deleted."""

    def __init__(self, db: Session):
        self.db = db
        self.ledger = StockLedger(db)

    def record_procurement(
        self,
        material_id: str,
        quantity,
        total_cost,
        vendor: Optional[str] = None,
    ) -> ProcurementEntry:
        """Append a purchase entry and raise hub stock by the same quantity.

        Both writes share one transaction.

        Raises:
            NotFoundError: If the material is not in the hub.
            ValidationError: On non-positive quantity or negative cost.
        """
        central = self.ledger.get_central(material_id)
        if central is None:
            raise NotFoundError("Central material", material_id)

        try:
            central = self.ledger.apply_purchase(material_id, quantity, total_cost)
            entry = ProcurementEntry(
                item_id=central.id,
                item_name=central.name,
                quantity=to_decimal(quantity),
                unit=central.unit,
                total_cost=to_decimal(total_cost),
                vendor=(vendor or "").strip() or None,
                date=datetime.now(timezone.utc),
            )
            self.db.add(entry)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(entry)
        logger.info(
            f"Procurement #{entry.id}: {entry.quantity} {entry.unit} of '{entry.item_id}' "
            f"for {entry.total_cost} from {entry.vendor or 'unknown vendor'}"
        )
        return entry

    def list_procurements(self, start: date, end: date) -> List[ProcurementEntry]:
        lower, upper = day_range(start, end)
        return (
            self.db.query(ProcurementEntry)
            .filter(ProcurementEntry.date >= lower, ProcurementEntry.date <= upper)
            .order_by(ProcurementEntry.date.desc(), ProcurementEntry.id.desc())
            .all()
        )

    def list_allocations(
        self, start: date, end: date, station_name: Optional[str] = None
    ) -> List[StockAllocation]:
        lower, upper = day_range(start, end)
        query = self.db.query(StockAllocation).filter(
            StockAllocation.date >= lower, StockAllocation.date <= upper
        )
        if station_name:
            query = query.filter(StockAllocation.station_name == station_name)
        return query.order_by(StockAllocation.date.desc(), StockAllocation.id.desc()).all()
