"""Procurement (hub purchase log) routes."""

from datetime import date
from typing import List

from fastapi import APIRouter, Query, Request

from momo_pos.core.rate_limit import limiter
from momo_pos.core.rbac import RequireAdmin
from momo_pos.db.session import DbSession
from momo_pos.schemas.inventory import ProcurementCreate, ProcurementResponse
from momo_pos.services.procurement_service import ProcurementService

router = APIRouter()


@router.post("/", response_model=ProcurementResponse, status_code=201)
@limiter.limit("30/minute")
def create_procurement(request: Request, body: ProcurementCreate, db: DbSession, current_user: RequireAdmin):
    """Log a purchase and add it to hub stock."""
    return ProcurementService(db).record_procurement(
        body.material_id, body.quantity, body.total_cost, body.vendor
    )


@router.get("/", response_model=List[ProcurementResponse])
@limiter.limit("60/minute")
def list_procurements(
    request: Request,
    db: DbSession,
    current_user: RequireAdmin,
    start: date = Query(...),
    end: date = Query(...),
):
    """Purchase log for a date range, newest first."""
    return ProcurementService(db).list_procurements(start, end)
