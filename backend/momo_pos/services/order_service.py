"""Order repository - persists sales, assigns bill numbers, voids and status changes.

Bill numbers come from a counter row (``bill_sequences``) that is bumped by
a single UPDATE in the same transaction as the order insert, so concurrent
saves serialize on that row and never share a number. Peeking the next
number is advisory only. Numbers are strictly increasing; a rolled back
save may leave a gap.

After the order is committed, stock consumption runs. Its failures are
logged and reported but never undo or fail the sale.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from momo_pos.core.exceptions import NotFoundError, OrderAlreadyVoidedError, ValidationError
from momo_pos.models.menu import Preparation, Size
from momo_pos.models.order import (
    BillSequence,
    Order,
    OrderItem,
    OrderStatus,
    OrderType,
    PaymentMethod,
)
from momo_pos.services.consumption_service import ConsumptionReport, OrderConsumptionResolver
from momo_pos.services.menu_catalog import MenuCatalog, parse_size_from_name
from momo_pos.services.procurement_service import day_range
from momo_pos.services.stock_ledger import to_decimal

logger = logging.getLogger(__name__)

BILL_SEQUENCE = "orders"

# Kitchen display shows orders that still need work
KITCHEN_STATUSES = (OrderStatus.ORDERED, OrderStatus.PREPARING, OrderStatus.READY)

_NEXT_STATUS = {
    OrderStatus.ORDERED: OrderStatus.PREPARING,
    OrderStatus.PREPARING: OrderStatus.READY,
    OrderStatus.READY: OrderStatus.SERVED,
    OrderStatus.SERVED: OrderStatus.SERVED,
}


def advance(status: OrderStatus) -> OrderStatus:
    """ORDERED -> PREPARING -> READY -> SERVED (terminal).

    COMPLETED and CANCELLED are outside this flow and stay where they are.
    """
    status = OrderStatus(status)
    return _NEXT_STATUS.get(status, status)


@dataclass
class SavedOrder:
    order: Order
    consumption: ConsumptionReport

    @property
    def bill_number(self) -> int:
        return self.order.bill_number


class OrderService:
    """Order persistence and queries."""

    def __init__(self, db: Session):
        self.db = db
        self.catalog = MenuCatalog(db)

    # ===== BILL NUMBERS =====

    def peek_next_bill_number(self) -> int:
        """Number the next save will probably get. Reserves nothing."""
        sequence = self.db.get(BillSequence, BILL_SEQUENCE, populate_existing=True)
        return (sequence.last_value if sequence else 0) + 1

    def _assign_bill_number(self) -> int:
        """Bump the counter inside the current transaction. Does not commit."""
        if self.db.get(BillSequence, BILL_SEQUENCE) is None:
            self.db.add(BillSequence(name=BILL_SEQUENCE, last_value=0))
            self.db.flush()
        self.db.execute(
            update(BillSequence)
            .where(BillSequence.name == BILL_SEQUENCE)
            .values(last_value=BillSequence.last_value + 1)
            .execution_options(synchronize_session=False)
        )
        sequence = self.db.get(BillSequence, BILL_SEQUENCE, populate_existing=True)
        return sequence.last_value

    # ===== SAVE =====

    def save_order(
        self,
        items: List[Dict[str, Any]],
        branch_name: str,
        order_type: OrderType,
        status: OrderStatus = OrderStatus.ORDERED,
        payment_method: Optional[PaymentMethod] = None,
        table_id: Optional[str] = None,
        total=None,
    ) -> SavedOrder:
        """Persist an order with its lines, then deduct stock for it.

        Each item dict needs ``menu_item_id`` and ``quantity``; ``size``,
        ``preparation``, ``name``, ``price``, ``cost`` and
        ``parent_item_id`` are optional. Missing price/cost/name are filled
        from the menu matrices. ``total`` defaults to the sum of
        price x quantity.

        Raises:
            ValidationError: Before any write, on an empty cart, a missing
                branch, an unknown order type or a bad line.
        """
        if not branch_name or not branch_name.strip():
            raise ValidationError("Branch name is required", field="branch_name")
        if not items:
            raise ValidationError("An order needs at least one item", field="items")
        try:
            order_type = OrderType(order_type)
            status = OrderStatus(status)
            payment_method = PaymentMethod(payment_method) if payment_method else None
        except ValueError as e:
            raise ValidationError(str(e))

        lines = [self._build_line(raw) for raw in items]
        order_total = to_decimal(total) if total is not None else sum(
            (line.price * line.quantity for line in lines), Decimal("0")
        )
        if order_total < 0:
            raise ValidationError("Order total cannot be negative", field="total")

        try:
            bill_number = self._assign_bill_number()
            order = Order(
                bill_number=bill_number,
                type=order_type,
                status=status,
                total=order_total,
                date=datetime.now(timezone.utc),
                payment_method=payment_method,
                branch_name=branch_name.strip(),
                table_id=table_id,
                items=lines,
            )
            self.db.add(order)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.error("Order save failed", exc_info=True)
            raise

        self.db.refresh(order)
        logger.info(
            f"Saved bill #{order.bill_number} at {order.branch_name}: "
            f"{len(lines)} lines, total {order.total}"
        )

        consumption = OrderConsumptionResolver(self.db).apply_consumption(order)
        order = self.get_by_bill_number(bill_number)
        return SavedOrder(order=order, consumption=consumption)

    def _build_line(self, raw: Dict[str, Any]) -> OrderItem:
        menu_item_id = raw.get("menu_item_id")
        if not menu_item_id:
            raise ValidationError("Order item is missing menu_item_id", field="menu_item_id")
        quantity = raw.get("quantity")
        if quantity is None or int(quantity) < 1:
            raise ValidationError(f"Quantity for '{menu_item_id}' must be at least 1", field="quantity")

        try:
            preparation = Preparation(raw["preparation"]) if raw.get("preparation") else None
            size = Size(raw["size"]) if raw.get("size") else None
        except ValueError as e:
            raise ValidationError(str(e))

        name = raw.get("name")
        price = raw.get("price")
        cost = raw.get("cost")

        if name is None or price is None or cost is None:
            try:
                menu_item = self.catalog.get_item(menu_item_id)
            except NotFoundError:
                menu_item = None
            if menu_item is not None:
                if preparation is not None:
                    prep = preparation.value
                elif menu_item.preparations:
                    prep = next(iter(menu_item.preparations))
                else:
                    prep = Preparation.NORMAL.value
                variant_size = size or Size.MEDIUM
                if name is None:
                    name = MenuCatalog.build_variant_name(menu_item, prep, variant_size)
                if price is None:
                    price = MenuCatalog.price_for(menu_item, prep, variant_size)
                if cost is None:
                    cost = MenuCatalog.cost_for(menu_item, prep, variant_size)

        if not name:
            raise ValidationError(f"Order item '{menu_item_id}' needs a name", field="name")
        if price is None:
            raise ValidationError(f"Order item '{menu_item_id}' needs a price", field="price")
        price = to_decimal(price)
        if price < 0:
            raise ValidationError("Item price cannot be negative", field="price")

        return OrderItem(
            menu_item_id=menu_item_id,
            name=name,
            preparation=preparation,
            # The size is fixed here, once, so stock logic never reparses names
            size=size or parse_size_from_name(name),
            price=price,
            cost=to_decimal(cost) if cost is not None else None,
            quantity=int(quantity),
            parent_item_id=raw.get("parent_item_id"),
        )

    # ===== QUERIES =====

    def _base_query(self):
        return self.db.query(Order).options(selectinload(Order.items))

    def get_by_bill_number(self, bill_number: int) -> Order:
        """Look up a bill, voided or not."""
        order = self._base_query().filter(Order.bill_number == bill_number).populate_existing().first()
        if order is None:
            raise NotFoundError("Bill", bill_number)
        return order

    def get_by_id(self, order_id: int) -> Order:
        order = self._base_query().filter(Order.id == order_id).first()
        if order is None:
            raise NotFoundError("Order", order_id)
        return order

    def list_active(self, start: date, end: date, branch_name: Optional[str] = None) -> List[Order]:
        """Non-voided orders in the day range, newest bill first."""
        return self._list(start, end, branch_name, deleted=False)

    def list_deleted(self, start: date, end: date, branch_name: Optional[str] = None) -> List[Order]:
        """Voided orders in the day range, newest bill first."""
        return self._list(start, end, branch_name, deleted=True)

    def _list(self, start: date, end: date, branch_name: Optional[str], deleted: bool) -> List[Order]:
        lower, upper = day_range(start, end)
        query = self._base_query().filter(Order.date >= lower, Order.date <= upper)
        if deleted:
            query = query.filter(Order.deleted_at.isnot(None))
        else:
            query = query.filter(Order.deleted_at.is_(None))
        if branch_name:
            query = query.filter(Order.branch_name == branch_name)
        return query.order_by(Order.bill_number.desc()).all()

    def kitchen_queue(self, branch_name: Optional[str] = None) -> List[Order]:
        """Open, non-voided orders oldest first."""
        query = self._base_query().filter(
            Order.status.in_(KITCHEN_STATUSES),
            Order.deleted_at.is_(None),
        )
        if branch_name:
            query = query.filter(Order.branch_name == branch_name)
        return query.order_by(Order.date.asc(), Order.id.asc()).all()

    # ===== MUTATIONS =====

    def void_order(self, bill_number: int, reason: str) -> Order:
        """Soft-delete a bill. Final: a second void is rejected.

        Stock consumed by the order is not returned.
        """
        if not reason or not reason.strip():
            raise ValidationError("A reason is required to void a bill", field="reason")
        order = self.get_by_bill_number(bill_number)
        if order.is_voided:
            raise OrderAlreadyVoidedError(bill_number)

        # Guarded update: only the first of two racing voids matches
        result = self.db.execute(
            update(Order)
            .where(Order.id == order.id, Order.deleted_at.is_(None))
            .values(deletion_reason=reason.strip(), deleted_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            raise OrderAlreadyVoidedError(bill_number)
        self.db.commit()
        logger.info(f"Voided bill #{bill_number}: {reason.strip()}")
        return self.get_by_bill_number(bill_number)

    def advance_order_status(self, order_id: int) -> Order:
        """Move an order one step along the kitchen flow."""
        order = self.get_by_id(order_id)
        new_status = advance(order.status)
        if new_status != order.status:
            order.status = new_status
            self.db.commit()
            logger.info(f"Order {order_id} (bill #{order.bill_number}) -> {new_status.value}")
        return order

    def set_order_status(self, order_id: int, status: OrderStatus) -> Order:
        """Direct assignment, the only way to reach COMPLETED or CANCELLED."""
        try:
            status = OrderStatus(status)
        except ValueError as e:
            raise ValidationError(str(e), field="status")
        order = self.get_by_id(order_id)
        order.status = status
        self.db.commit()
        logger.info(f"Order {order_id} (bill #{order.bill_number}) set to {status.value}")
        return order
