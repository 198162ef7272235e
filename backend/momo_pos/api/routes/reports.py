"""Reporting routes - sales summary, P&L, store comparison and item sales."""

from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Query, Request

from momo_pos.core.rate_limit import limiter
from momo_pos.core.rbac import CurrentUser
from momo_pos.db.session import DbSession
from momo_pos.services.reporting_service import ReportingService

router = APIRouter()


@router.get("/summary")
@limiter.limit("30/minute")
def sales_summary(
    request: Request,
    db: DbSession,
    current_user: CurrentUser,
    start: date = Query(...),
    end: date = Query(...),
    branch_name: Optional[str] = None,
):
    """Revenue, COGS, gross profit and order count."""
    return ReportingService(db, current_user).summary(start, end, branch_name)


@router.get("/profit-and-loss")
@limiter.limit("30/minute")
def profit_and_loss(
    request: Request,
    db: DbSession,
    current_user: CurrentUser,
    start: date = Query(...),
    end: date = Query(...),
    branch_name: Optional[str] = None,
    daily_salary_rate: Optional[Decimal] = Query(None, ge=0),
    daily_rent_rate: Optional[Decimal] = Query(None, ge=0),
):
    """Net profit after indirect COGS and day-prorated fixed costs (admin only)."""
    return ReportingService(db, current_user).profit_and_loss(
        start, end, branch_name, daily_salary_rate, daily_rent_rate
    )


@router.get("/store-comparison")
@limiter.limit("30/minute")
def store_comparison(
    request: Request,
    db: DbSession,
    current_user: CurrentUser,
    start: date = Query(...),
    end: date = Query(...),
):
    """Per-branch revenue, COGS and margin (admin only)."""
    return ReportingService(db, current_user).store_comparison(start, end)


@router.get("/item-sales")
@limiter.limit("30/minute")
def item_sales(
    request: Request,
    db: DbSession,
    current_user: CurrentUser,
    start: date = Query(...),
    end: date = Query(...),
    branch_name: Optional[str] = None,
    sort_by: str = "profit",
    descending: bool = True,
):
    """Quantity, revenue, COGS and profit per item name."""
    return ReportingService(db, current_user).item_sales(start, end, branch_name, sort_by, descending)
