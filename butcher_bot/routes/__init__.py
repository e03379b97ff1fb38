"""
Routes Package for Butcher Bot
==============================

API route definitions organized by domain. Each module defines a FastAPI
APIRouter with related endpoints grouped together.

**Customer-Facing Routes:**
- chat.py: Conversational ordering (sessions, messages, confirm, cancel)
- voice.py: Voice order transcription behind the admission gate
- orders.py: Order placement, lookup and pickup codes
- public.py: Catalog listing (no auth required)

**Staff Routes (require authentication):**
- staff.py: Order list, status transitions, pickup redemption, stock

Router Registration:
--------------------
All routers are registered in main.py under two prefixes:
1. /api/v1/* - Versioned API (recommended)
2. /* - Unversioned paths for browser clients
"""

from .chat import chat_router
from .voice import voice_router
from .orders import orders_router
from .staff import staff_router
from .public import public_router

__all__ = [
    "chat_router",
    "voice_router",
    "orders_router",
    "staff_router",
    "public_router",
]
