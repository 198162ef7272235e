"""Shared rate limiter instance for use across route files.

Every till at a station usually sits behind the same address, so
authenticated requests are limited per user and only anonymous ones
(login, health) per IP.
"""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from momo_pos.core.config import settings


def user_or_ip(request: Request) -> str:
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        from momo_pos.core.security import decode_access_token
        payload = decode_access_token(auth.split(" ", 1)[1])
        if payload and payload.get("sub"):
            return f"user:{payload['sub']}"
    return get_remote_address(request)


limiter = Limiter(key_func=user_or_ip, enabled=settings.rate_limit_enabled)
