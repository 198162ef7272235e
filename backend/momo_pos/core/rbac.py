"""Role-Based Access Control (RBAC) utilities and the per-request session context."""

from enum import Enum
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status

from momo_pos.core.exceptions import PermissionDeniedError
from momo_pos.core.security import decode_access_token
from momo_pos.db.session import DbSession


class UserRole(str, Enum):
    """User roles for RBAC."""

    ADMIN = "ADMIN"
    STORE_MANAGER = "STORE_MANAGER"


class SessionContext:
    """The authenticated caller, passed explicitly into services.

    Created from the bearer token at the start of every request and dropped
    when the request ends; nothing about the caller is kept in module state.

    Attributes:
        user_id: The user's database ID.
        username: Login name.
        role: ADMIN or STORE_MANAGER.
        station_name: Branch the user works at (None for hub admins).
    """

    def __init__(self, user_id: int, username: str, role: UserRole,
                 station_name: Optional[str] = None):
        self.user_id = user_id
        self.username = username
        self.role = role
        self.station_name = station_name

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def require_admin(self, action: str) -> None:
        """Raise PermissionDeniedError unless the caller is an admin."""
        if not self.is_admin:
            raise PermissionDeniedError(f"{action} requires the ADMIN role")

    def scope_branch(self, requested: Optional[str]) -> Optional[str]:
        """Branch filter the caller is allowed to use.

        Admins get what they asked for (None means all branches); store
        managers are always pinned to their own station.
        """
        if self.is_admin:
            return requested
        if not self.station_name:
            raise PermissionDeniedError("Store manager has no station assigned")
        return self.station_name


async def get_current_user(request: Request, db: DbSession) -> SessionContext:
    """Get the current authenticated user from the Authorization bearer token."""
    payload = None
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header.split(" ", 1)[1]
        if token:
            payload = decode_access_token(token)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("sub")
    if user_id is None or not str(user_id).isdigit():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    # Role and station come from the row, not the token, so a demotion
    # takes effect on the next request
    from momo_pos.models.user import User
    user = db.query(User).filter(User.id == int(user_id)).first()
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User account is disabled",
        )

    return SessionContext(
        user_id=user.id,
        username=user.username,
        role=UserRole(user.role),
        station_name=user.station_name,
    )


def require_role(required: UserRole):
    """Dependency to require a specific role."""

    async def role_checker(
        current_user: Annotated[SessionContext, Depends(get_current_user)]
    ) -> SessionContext:
        if current_user.role != required:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires role {required.value}",
            )
        return current_user

    return role_checker


# Common role dependencies
RequireAdmin = Annotated[SessionContext, Depends(require_role(UserRole.ADMIN))]
CurrentUser = Annotated[SessionContext, Depends(get_current_user)]
