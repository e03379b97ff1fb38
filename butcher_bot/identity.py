"""
Caller identity helpers.

Authentication is handled upstream of this service; an authenticated
customer arrives with an ``X-User-ID`` header. Everyone else is a guest keyed
by client address.
"""

from typing import Optional

from fastapi import Request
from slowapi.util import get_remote_address


def caller_user_id(request: Request) -> Optional[int]:
    raw = request.headers.get("X-User-ID", "").strip()
    if raw.isdigit():
        return int(raw)
    return None


def caller_identity(request: Request) -> str:
    """Stable key for rate limiting: the user id if known, else the IP."""
    user_id = caller_user_id(request)
    if user_id is not None:
        return f"user:{user_id}"
    return f"ip:{get_remote_address(request)}"


def guest_identity(request: Request) -> str:
    return f"guest:{get_remote_address(request)}"[:64]
