"""Order routes - checkout, bill lookup, voids and the kitchen flow."""

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Query, Request

from momo_pos.core.exceptions import PermissionDeniedError
from momo_pos.core.rate_limit import limiter
from momo_pos.core.rbac import CurrentUser, SessionContext
from momo_pos.db.session import DbSession
from momo_pos.models.order import Order
from momo_pos.schemas.order import (
    ConsumptionSummary,
    OrderCreate,
    OrderResponse,
    SavedOrderResponse,
    StatusUpdate,
    VoidRequest,
)
from momo_pos.services.order_service import OrderService

logger = logging.getLogger(__name__)

router = APIRouter()


def _check_branch(current_user: SessionContext, order: Order) -> None:
    """Store managers may only touch orders of their own station."""
    if current_user.is_admin:
        return
    if order.branch_name != current_user.scope_branch(None):
        raise PermissionDeniedError(f"Bill #{order.bill_number} belongs to another branch")


@router.post("/", response_model=SavedOrderResponse, status_code=201)
@limiter.limit("120/minute")
def create_order(request: Request, body: OrderCreate, db: DbSession, current_user: CurrentUser):
    """Save a finalized cart and deduct its stock at the ordering branch."""
    branch_name = current_user.scope_branch(body.branch_name)
    saved = OrderService(db).save_order(
        items=[item.model_dump() for item in body.items],
        branch_name=branch_name,
        order_type=body.type,
        status=body.status,
        payment_method=body.payment_method,
        table_id=body.table_id,
        total=body.total,
    )
    report = saved.consumption
    if not report.success:
        logger.warning(
            f"Bill #{saved.bill_number} saved with {len(report.failed_items)} failed stock deductions"
        )
    return SavedOrderResponse(
        bill_number=saved.bill_number,
        order=OrderResponse.model_validate(saved.order),
        consumption=ConsumptionSummary(
            success=report.success,
            deductions=len(report.deductions),
            skipped_items=report.skipped_items,
            untracked_materials=report.untracked_materials,
            failed_items=report.failed_items,
        ),
    )


@router.get("/next-bill-number")
@limiter.limit("60/minute")
def peek_next_bill_number(request: Request, db: DbSession, current_user: CurrentUser):
    """Bill number the next save will probably get (advisory)."""
    return {"next_bill_number": OrderService(db).peek_next_bill_number()}


@router.get("/", response_model=List[OrderResponse])
@limiter.limit("60/minute")
def list_orders(
    request: Request,
    db: DbSession,
    current_user: CurrentUser,
    start: date = Query(...),
    end: date = Query(...),
    branch_name: Optional[str] = None,
):
    """Active (non-voided) orders in a date range."""
    return OrderService(db).list_active(start, end, current_user.scope_branch(branch_name))


@router.get("/deleted", response_model=List[OrderResponse])
@limiter.limit("60/minute")
def list_deleted_orders(
    request: Request,
    db: DbSession,
    current_user: CurrentUser,
    start: date = Query(...),
    end: date = Query(...),
    branch_name: Optional[str] = None,
):
    """Voided orders in a date range."""
    return OrderService(db).list_deleted(start, end, current_user.scope_branch(branch_name))


@router.get("/kitchen", response_model=List[OrderResponse])
@limiter.limit("120/minute")
def kitchen_queue(
    request: Request,
    db: DbSession,
    current_user: CurrentUser,
    branch_name: Optional[str] = None,
):
    """Orders still being worked on, oldest first."""
    return OrderService(db).kitchen_queue(current_user.scope_branch(branch_name))


@router.get("/bill/{bill_number}", response_model=OrderResponse)
@limiter.limit("60/minute")
def get_bill(request: Request, bill_number: int, db: DbSession, current_user: CurrentUser):
    """Look up a bill by number, voided or not."""
    order = OrderService(db).get_by_bill_number(bill_number)
    _check_branch(current_user, order)
    return order


@router.post("/bill/{bill_number}/void", response_model=OrderResponse)
@limiter.limit("30/minute")
def void_bill(
    request: Request,
    bill_number: int,
    body: VoidRequest,
    db: DbSession,
    current_user: CurrentUser,
):
    """Void a bill with a reason. Consumed stock is not returned."""
    service = OrderService(db)
    _check_branch(current_user, service.get_by_bill_number(bill_number))
    order = service.void_order(bill_number, body.reason)
    logger.info(f"Bill #{bill_number} voided by {current_user.username}")
    return order


@router.post("/{order_id}/advance", response_model=OrderResponse)
@limiter.limit("120/minute")
def advance_order(request: Request, order_id: int, db: DbSession, current_user: CurrentUser):
    """Move an order one step along ORDERED -> PREPARING -> READY -> SERVED."""
    service = OrderService(db)
    _check_branch(current_user, service.get_by_id(order_id))
    return service.advance_order_status(order_id)


@router.put("/{order_id}/status", response_model=OrderResponse)
@limiter.limit("60/minute")
def set_order_status(
    request: Request,
    order_id: int,
    body: StatusUpdate,
    db: DbSession,
    current_user: CurrentUser,
):
    """Set an order's status directly."""
    service = OrderService(db)
    _check_branch(current_user, service.get_by_id(order_id))
    return service.set_order_status(order_id, body.status)
