"""Authentication routes."""

import logging

from fastapi import APIRouter, HTTPException, Request, status

from momo_pos.core.rate_limit import limiter
from momo_pos.core.rbac import CurrentUser
from momo_pos.core.security import create_access_token, verify_password
from momo_pos.db.session import DbSession
from momo_pos.models.user import User
from momo_pos.schemas.auth import LoginRequest, SessionResponse, Token

logger = logging.getLogger("auth")

router = APIRouter()


@router.post("/login", response_model=Token)
@limiter.limit("5/minute")
def login(request: Request, login_request: LoginRequest, db: DbSession):
    """Authenticate user and return JWT token."""
    client_ip = request.client.host if request.client else "unknown"
    user = db.query(User).filter(User.username == login_request.username).first()

    if not user or not verify_password(login_request.password, user.password_hash):
        logger.warning(f"Failed login attempt for user: {login_request.username} from IP: {client_ip}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
        )
    if not user.is_active:
        logger.warning(f"Login attempt for inactive user: {user.username} (ID: {user.id}) from IP: {client_ip}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User account is inactive",
        )

    logger.info(f"Successful login: {user.username} (ID: {user.id}, role: {user.role.value}) from IP: {client_ip}")
    token = create_access_token(
        data={"sub": str(user.id), "username": user.username, "role": user.role.value}
    )
    return Token(access_token=token)


@router.get("/me", response_model=SessionResponse)
@limiter.limit("60/minute")
def get_me(request: Request, current_user: CurrentUser):
    """Return the authenticated caller."""
    return SessionResponse(
        user_id=current_user.user_id,
        username=current_user.username,
        role=current_user.role,
        station_name=current_user.station_name,
    )
