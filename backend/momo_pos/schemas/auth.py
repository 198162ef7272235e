"""Authentication, station and user schemas."""

from typing import Optional

from pydantic import BaseModel, Field

from momo_pos.core.rbac import UserRole


class LoginRequest(BaseModel):
    """Login request body."""

    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1, max_length=128)


class Token(BaseModel):
    """JWT token response."""

    access_token: str
    token_type: str = "bearer"


class SessionResponse(BaseModel):
    """The authenticated caller."""

    user_id: int
    username: str
    role: UserRole
    station_name: Optional[str] = None


class StationCreate(BaseModel):
    """New branch."""

    name: str = Field(min_length=1, max_length=100)
    location: Optional[str] = Field(default=None, max_length=255)


class StationResponse(BaseModel):
    """Branch response schema."""

    id: int
    name: str
    location: Optional[str] = None

    model_config = {"from_attributes": True}


class UserCreate(BaseModel):
    """New staff account."""

    username: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=8, max_length=128)
    role: UserRole = UserRole.STORE_MANAGER
    station_id: Optional[int] = None


class UserResponse(BaseModel):
    """Staff account response schema."""

    id: int
    username: str
    role: UserRole
    station_id: Optional[int] = None
    station_name: Optional[str] = None
    is_active: bool

    model_config = {"from_attributes": True}
