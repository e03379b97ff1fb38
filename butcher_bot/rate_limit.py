"""
Rate limiter shared by the chat and voice routes.

Uses slowapi with in-memory storage (use Redis for multi-worker prod).
Limits are looked up per request through config.get_rate_limit_chat /
get_rate_limit_voice, so tests can change them at runtime.
"""

from slowapi import Limiter

from .config import RATE_LIMIT_ENABLED
from .identity import caller_identity

limiter = Limiter(key_func=caller_identity, enabled=RATE_LIMIT_ENABLED)
