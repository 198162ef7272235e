"""API routes."""

import logging
from fastapi import APIRouter

logger = logging.getLogger(__name__)

from momo_pos.api.routes import (
    auth, menu, inventory, procurements, orders, reports, stations,
)

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(menu.router, prefix="/menu", tags=["menu"])
api_router.include_router(inventory.router, prefix="/inventory", tags=["inventory"])
api_router.include_router(procurements.router, prefix="/procurements", tags=["procurements"])
api_router.include_router(orders.router, prefix="/orders", tags=["orders"])
api_router.include_router(reports.router, prefix="/reports", tags=["reports"])
api_router.include_router(stations.router, prefix="/stations", tags=["stations"])
