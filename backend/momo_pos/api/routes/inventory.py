"""Inventory routes - hub stock, branch stock and allocations.

Hub (central) writes are admin-only. Store managers read and flag stock
for their own branch; the branch is taken from the session, never the
request.
"""

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Query, Request

from momo_pos.core.rate_limit import limiter
from momo_pos.core.rbac import CurrentUser, RequireAdmin
from momo_pos.core.exceptions import NotFoundError
from momo_pos.db.session import DbSession
from momo_pos.schemas.inventory import (
    AllocationRequest,
    AllocationResponse,
    BranchMaterialResponse,
    CentralItemCreate,
    CentralMaterialResponse,
    FinishedFlagRequest,
    PurchaseRequest,
    RestockRequest,
)
from momo_pos.services.procurement_service import ProcurementService
from momo_pos.services.stock_ledger import BRANCH, CENTRAL, StockLedger

logger = logging.getLogger(__name__)

router = APIRouter()


# ==================== CENTRAL (HUB) ====================

@router.get("/central", response_model=List[CentralMaterialResponse])
@limiter.limit("60/minute")
def list_central_stock(request: Request, db: DbSession, current_user: CurrentUser):
    """List hub stock."""
    return StockLedger(db).list_central()


@router.get("/central/{material_id}", response_model=CentralMaterialResponse)
@limiter.limit("60/minute")
def get_central_stock(request: Request, material_id: str, db: DbSession, current_user: CurrentUser):
    """Get a single hub material."""
    row = StockLedger(db).get_central(material_id)
    if row is None:
        raise NotFoundError("Central material", material_id)
    return row


@router.post("/central", response_model=CentralMaterialResponse, status_code=201)
@limiter.limit("30/minute")
def create_central_item(request: Request, body: CentralItemCreate, db: DbSession, current_user: RequireAdmin):
    """Register a hub material (overwrites an existing row with the same id)."""
    return StockLedger(db).create_central_item(
        name=body.name,
        unit=body.unit,
        initial_qty=body.initial_qty,
        cost_per_unit=body.cost_per_unit,
        category=body.category,
        manual_id=body.id,
    )


@router.post("/central/seed")
@limiter.limit("10/minute")
def seed_standard_inventory(request: Request, db: DbSession, current_user: RequireAdmin):
    """Add any missing standard materials at zero stock."""
    created = StockLedger(db).seed_standard_inventory()
    return {"created": created}


@router.post("/central/purchase", response_model=CentralMaterialResponse)
@limiter.limit("30/minute")
def purchase_central_stock(request: Request, body: PurchaseRequest, db: DbSession, current_user: RequireAdmin):
    """Raise hub stock and record the latest unit cost."""
    return StockLedger(db).purchase(body.material_id, body.quantity, body.total_cost)


@router.post("/allocate", response_model=AllocationResponse)
@limiter.limit("30/minute")
def allocate_stock(request: Request, body: AllocationRequest, db: DbSession, current_user: RequireAdmin):
    """Move stock from the hub to a branch."""
    return StockLedger(db).allocate(body.material_id, body.branch_name, body.quantity)


@router.get("/allocations", response_model=List[AllocationResponse])
@limiter.limit("60/minute")
def list_allocations(
    request: Request,
    db: DbSession,
    current_user: CurrentUser,
    start: date = Query(...),
    end: date = Query(...),
    branch_name: Optional[str] = None,
):
    """Transfer history for a date range."""
    station = current_user.scope_branch(branch_name)
    return ProcurementService(db).list_allocations(start, end, station)


# ==================== BRANCH ====================

@router.get("/branch", response_model=List[BranchMaterialResponse])
@limiter.limit("60/minute")
def list_branch_stock(
    request: Request,
    db: DbSession,
    current_user: CurrentUser,
    branch_name: Optional[str] = None,
):
    """List stock at a branch (store managers always see their own)."""
    station = current_user.scope_branch(branch_name)
    if not station:
        return []
    return StockLedger(db).list_branch(station)


@router.post("/finished")
@limiter.limit("30/minute")
def mark_finished(request: Request, body: FinishedFlagRequest, db: DbSession, current_user: CurrentUser):
    """Manually mark a material as finished or available again."""
    if body.scope == CENTRAL:
        current_user.require_admin("Changing hub stock")
        row = StockLedger(db).mark_finished(CENTRAL, body.material_id, body.finished)
        return CentralMaterialResponse.model_validate(row)

    station = current_user.scope_branch(body.branch_name)
    row = StockLedger(db).mark_finished(BRANCH, body.material_id, body.finished, station)
    return BranchMaterialResponse.model_validate(row)


@router.post("/branch/request-restock", response_model=BranchMaterialResponse)
@limiter.limit("30/minute")
def request_restock(request: Request, body: RestockRequest, db: DbSession, current_user: CurrentUser):
    """Flag a branch material as waiting for a hub restock."""
    station = current_user.scope_branch(body.branch_name)
    return StockLedger(db).request_restock(body.material_id, station)


@router.post("/branch/clear-request", response_model=BranchMaterialResponse)
@limiter.limit("30/minute")
def clear_restock_request(request: Request, body: RestockRequest, db: DbSession, current_user: RequireAdmin):
    """Drop a pending restock flag without allocating."""
    return StockLedger(db).clear_restock_request(body.material_id, body.branch_name)
