"""Station and staff account routes (admin only)."""

import logging
from typing import List

from fastapi import APIRouter, HTTPException, Request, status

from momo_pos.core.rate_limit import limiter
from momo_pos.core.rbac import RequireAdmin, UserRole
from momo_pos.core.security import get_password_hash
from momo_pos.db.session import DbSession
from momo_pos.models.user import Station, User
from momo_pos.schemas.auth import StationCreate, StationResponse, UserCreate, UserResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=List[StationResponse])
@limiter.limit("60/minute")
def list_stations(request: Request, db: DbSession, current_user: RequireAdmin):
    """List branches."""
    return db.query(Station).order_by(Station.name).all()


@router.post("/", response_model=StationResponse, status_code=201)
@limiter.limit("30/minute")
def create_station(request: Request, body: StationCreate, db: DbSession, current_user: RequireAdmin):
    """Register a branch."""
    name = body.name.strip()
    if db.query(Station).filter(Station.name == name).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Station '{name}' already exists")
    station = Station(name=name, location=body.location)
    db.add(station)
    db.commit()
    db.refresh(station)
    logger.info(f"Created station '{name}'")
    return station


@router.get("/users", response_model=List[UserResponse])
@limiter.limit("60/minute")
def list_users(request: Request, db: DbSession, current_user: RequireAdmin):
    """List staff accounts."""
    return db.query(User).order_by(User.username).all()


@router.post("/users", response_model=UserResponse, status_code=201)
@limiter.limit("30/minute")
def create_user(request: Request, body: UserCreate, db: DbSession, current_user: RequireAdmin):
    """Create a staff account. Store managers must be assigned to a station."""
    if db.query(User).filter(User.username == body.username).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already taken")
    if body.role == UserRole.STORE_MANAGER and body.station_id is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Store managers need a station",
        )
    if body.station_id is not None and db.get(Station, body.station_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Station not found")

    user = User(
        username=body.username,
        password_hash=get_password_hash(body.password),
        role=body.role,
        station_id=body.station_id,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Created user '{user.username}' ({user.role.value})")
    return user
