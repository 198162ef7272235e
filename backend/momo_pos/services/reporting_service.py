"""Reporting - revenue, COGS, P&L, store comparison and item velocity.

The aggregation functions are pure: they take already-loaded orders,
procurements and hub materials and never touch the database.
``ReportingService`` loads the inputs and applies the caller's role:
store managers only ever see their own branch, and the hub-wide views
(P&L, store comparison) are admin-only.

Formulas:
    revenue        = sum(order.total)
    order COGS     = sum(item.cost * item.quantity)   (missing cost counts as 0)
    gross profit   = revenue - order COGS
    indirect COGS  = sum(procurement.total_cost) for PACKET / INGREDIENT materials
                     (MOMO purchases are already in order COGS)
    days           = max(1, ceil((end - start) / 1 day) + 1)
    fixed costs    = days * (daily salary + daily rent)
    net profit     = gross profit - indirect COGS - fixed costs
"""

import logging
import math
from dataclasses import asdict, dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from momo_pos.core.config import settings
from momo_pos.core.exceptions import ValidationError
from momo_pos.core.rbac import SessionContext
from momo_pos.models.inventory import CentralMaterial, MaterialCategory
from momo_pos.models.ledger import ProcurementEntry
from momo_pos.models.order import Order, OrderItem, PaymentMethod
from momo_pos.services.order_service import OrderService
from momo_pos.services.procurement_service import ProcurementService
from momo_pos.services.stock_ledger import StockLedger, to_decimal

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
INDIRECT_COGS_CATEGORIES = (MaterialCategory.PACKET, MaterialCategory.INGREDIENT)
ITEM_SORT_KEYS = ("name", "quantity", "revenue", "cogs", "profit")


@dataclass
class FinancialSummary:
    total_revenue: Decimal
    total_cogs: Decimal
    gross_profit: Decimal
    profit_margin: Decimal
    average_order_value: Decimal
    payment_breakdown: Dict[str, Decimal]
    total_orders: int


@dataclass
class ProfitAndLoss:
    revenue: Decimal
    order_cogs: Decimal
    gross_profit: Decimal
    indirect_cogs: Decimal
    salary: Decimal
    rent: Decimal
    fixed_costs: Decimal
    net_profit: Decimal
    days: int


@dataclass
class StoreStats:
    name: str
    revenue: Decimal = ZERO
    orders: int = 0
    profit: Decimal = ZERO


@dataclass
class ItemSales:
    name: str
    quantity: int = 0
    revenue: Decimal = ZERO
    cogs: Decimal = ZERO
    profit: Decimal = ZERO


def line_cogs(item: OrderItem) -> Decimal:
    return to_decimal(item.cost if item.cost is not None else 0) * item.quantity


def order_cogs(order: Order) -> Decimal:
    return sum((line_cogs(item) for item in order.items), ZERO)


def days_in_range(start: date, end: date) -> int:
    """Inclusive day count, never below 1."""
    delta = (end - start) / timedelta(days=1)
    return max(1, math.ceil(delta) + 1)


def financial_summary(orders: Iterable[Order]) -> FinancialSummary:
    orders = list(orders)
    revenue = ZERO
    cogs = ZERO
    breakdown = {method.value: ZERO for method in PaymentMethod}

    for order in orders:
        total = to_decimal(order.total)
        revenue += total
        cogs += order_cogs(order)
        if order.payment_method is not None:
            breakdown[PaymentMethod(order.payment_method).value] += total

    gross_profit = revenue - cogs
    count = len(orders)
    return FinancialSummary(
        total_revenue=revenue,
        total_cogs=cogs,
        gross_profit=gross_profit,
        profit_margin=(gross_profit / revenue * 100) if revenue > 0 else ZERO,
        average_order_value=(revenue / count) if count else ZERO,
        payment_breakdown=breakdown,
        total_orders=count,
    )


def indirect_cogs(
    procurements: Iterable[ProcurementEntry],
    central_materials: Iterable[CentralMaterial],
) -> Decimal:
    """Purchases of packets and ingredients; momo purchases are excluded."""
    categories = {material.id: material.category for material in central_materials}
    total = ZERO
    for entry in procurements:
        if categories.get(entry.item_id) in INDIRECT_COGS_CATEGORIES:
            total += to_decimal(entry.total_cost or 0)
    return total


def profit_and_loss(
    orders: Iterable[Order],
    procurements: Iterable[ProcurementEntry],
    central_materials: Iterable[CentralMaterial],
    start: date,
    end: date,
    daily_salary_rate,
    daily_rent_rate,
) -> ProfitAndLoss:
    summary = financial_summary(orders)
    indirect = indirect_cogs(procurements, central_materials)
    days = days_in_range(start, end)
    salary = days * to_decimal(daily_salary_rate)
    rent = days * to_decimal(daily_rent_rate)
    fixed_costs = salary + rent
    return ProfitAndLoss(
        revenue=summary.total_revenue,
        order_cogs=summary.total_cogs,
        gross_profit=summary.gross_profit,
        indirect_cogs=indirect,
        salary=salary,
        rent=rent,
        fixed_costs=fixed_costs,
        net_profit=summary.gross_profit - indirect - fixed_costs,
        days=days,
    )


def store_comparison(orders: Iterable[Order]) -> List[StoreStats]:
    """Per-branch revenue, order count and profit, highest revenue first."""
    stores: Dict[str, StoreStats] = {}
    for order in orders:
        stats = stores.setdefault(order.branch_name, StoreStats(name=order.branch_name))
        total = to_decimal(order.total)
        stats.revenue += total
        stats.orders += 1
        stats.profit += total - order_cogs(order)
    return sorted(stores.values(), key=lambda s: s.revenue, reverse=True)


def item_sales(
    orders: Iterable[Order],
    sort_key: str = "profit",
    descending: bool = True,
) -> List[ItemSales]:
    """Line items grouped by display name, so each size/prep variant is its own row."""
    if sort_key not in ITEM_SORT_KEYS:
        raise ValidationError(f"Unknown sort key '{sort_key}'", field="sort_key")

    grouped: Dict[str, ItemSales] = {}
    for order in orders:
        for item in order.items:
            row = grouped.setdefault(item.name, ItemSales(name=item.name))
            row.quantity += item.quantity
            row.revenue += to_decimal(item.price) * item.quantity
            row.cogs += line_cogs(item)

    rows = list(grouped.values())
    for row in rows:
        row.profit = row.revenue - row.cogs
    return sorted(rows, key=lambda r: getattr(r, sort_key), reverse=descending)


class ReportingService:
    """Loads report inputs for a date range and applies role rules."""

    def __init__(self, db: Session, context: SessionContext):
        self.db = db
        self.context = context
        self.orders = OrderService(db)

    def _orders(self, start: date, end: date, branch_name: Optional[str]) -> List[Order]:
        return self.orders.list_active(start, end, self.context.scope_branch(branch_name))

    def summary(self, start: date, end: date, branch_name: Optional[str] = None) -> dict:
        result = asdict(financial_summary(self._orders(start, end, branch_name)))
        result["branch_name"] = self.context.scope_branch(branch_name)
        return result

    def item_sales(
        self,
        start: date,
        end: date,
        branch_name: Optional[str] = None,
        sort_key: str = "profit",
        descending: bool = True,
    ) -> List[dict]:
        rows = item_sales(self._orders(start, end, branch_name), sort_key, descending)
        return [asdict(row) for row in rows]

    def profit_and_loss(
        self,
        start: date,
        end: date,
        branch_name: Optional[str] = None,
        daily_salary_rate=None,
        daily_rent_rate=None,
    ) -> dict:
        self.context.require_admin("Profit and loss")
        salary_rate = settings.daily_salary_rate if daily_salary_rate is None else daily_salary_rate
        rent_rate = settings.daily_rent_rate if daily_rent_rate is None else daily_rent_rate
        if to_decimal(salary_rate) < 0 or to_decimal(rent_rate) < 0:
            raise ValidationError("Daily rates cannot be negative")

        pnl = profit_and_loss(
            orders=self._orders(start, end, branch_name),
            procurements=ProcurementService(self.db).list_procurements(start, end),
            central_materials=StockLedger(self.db).list_central(),
            start=start,
            end=end,
            daily_salary_rate=salary_rate,
            daily_rent_rate=rent_rate,
        )
        logger.info(f"P&L {start}..{end} ({branch_name or 'all branches'}): net {pnl.net_profit}")
        return asdict(pnl)

    def store_comparison(self, start: date, end: date) -> List[dict]:
        self.context.require_admin("Store comparison")
        orders = self.orders.list_active(start, end)
        return [asdict(stats) for stats in store_comparison(orders)]
