# app/api/v1/rate_limit.py
"""
Per-client limits on the booking admission routes.

Limits are read from config on every check, so the module can be imported
before `initialize_config()` has run. Counters live in process memory.
"""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from common import get_config


def client_key(request: Request) -> str:
    """The gateway-supplied user when present, else the peer address."""
    user_id = request.headers.get("X-User-Id")
    if user_id:
        return f"user:{user_id}"
    return get_remote_address(request)


def booking_create_limit() -> str:
    return get_config().rate_limit.booking_create


limiter = Limiter(key_func=client_key)


__all__ = ["limiter", "client_key", "booking_create_limit"]
