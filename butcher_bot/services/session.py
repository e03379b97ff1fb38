"""
Session Management Service for Butcher Bot
==========================================

This module manages conversation session state with a two-tier storage
strategy:
1. **In-Memory Cache**: Fast access for active sessions
2. **Database Persistence**: Durable storage for session recovery

Session Data Structure:
-----------------------
Each session's ``state`` contains:
- history: List of conversation turns [{speaker, text, timestamp}]
- cart: The held cart in wire format ({items, total, estimatedMinutes})
- confirmation_state: "accumulating" | "awaiting_confirmation" | "confirmed"
- category: Catalog category the conversation is scoped to (or None)
- user_id / guest_id: Identity orders are placed under

Turn Serialization:
-------------------
Turns for one session must never interleave. Within a process,
``session_lock(session_id)`` hands out one lock per session and routes hold
it for the whole load-process-save cycle. Across processes, saves are
compare-and-swap on ``ChatSession.version``: an update that finds a different
version than it loaded raises SessionConflictError instead of overwriting.

Cache Eviction Strategy:
------------------------
1. **TTL-based**: Sessions not accessed within SESSION_TTL_SECONDS are
   dropped from the cache. Checked probabilistically (~1% of reads).
2. **LRU-based**: When the cache reaches SESSION_MAX_CACHE_SIZE, the oldest
   10% of sessions (by last access time) are evicted.

Evicted sessions stay in the database and are reloaded on next access.

Usage:
------
    from butcher_bot.services.session import get_session, save_session, session_lock

    with session_lock(session_id):
        record = get_session(db, session_id)
        if record is None:
            raise HTTPException(404, "Session not found")
        record.data["confirmation_state"] = "accumulating"
        save_session(db, session_id, record.data, record.version)
"""

import copy
import logging
import random
import threading
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..config import SESSION_TTL_SECONDS, SESSION_MAX_CACHE_SIZE
from ..errors import SessionConflictError
from ..models import ChatSession
from ..tasks.models import Cart
from ..tasks.schemas import ConfirmationState


logger = logging.getLogger(__name__)


@dataclass
class SessionRecord:
    """A private copy of a session's state plus the version it was read at."""
    session_id: str
    data: Dict[str, Any]
    version: int


# =============================================================================
# Session Cache
# =============================================================================
# {session_id: {"data": {...}, "version": int, "last_access": timestamp}}

SESSION_CACHE: Dict[str, Dict[str, Any]] = {}
_cache_lock = threading.Lock()

# One lock per session id, created on demand
_session_locks: Dict[str, threading.Lock] = {}
_session_locks_guard = threading.Lock()


# =============================================================================
# Cache Maintenance Functions
# =============================================================================

def _cleanup_expired_sessions() -> int:
    """
    Remove sessions not accessed within SESSION_TTL_SECONDS from the cache.

    Also drops the per-session locks of expired sessions that nobody holds.

    Returns:
        int: Number of sessions removed from cache
    """
    now = time.time()

    with _cache_lock:
        expired = [
            sid for sid, entry in SESSION_CACHE.items()
            if now - entry.get("last_access", 0) > SESSION_TTL_SECONDS
        ]
        for sid in expired:
            del SESSION_CACHE[sid]

    with _session_locks_guard:
        for sid in expired:
            lock = _session_locks.get(sid)
            if lock is not None and not lock.locked():
                del _session_locks[sid]

    if expired:
        logger.debug("Cleaned up %d expired sessions from cache", len(expired))

    return len(expired)


def _evict_oldest_locked(count: int) -> None:
    """LRU eviction. Caller must hold _cache_lock."""
    if len(SESSION_CACHE) < SESSION_MAX_CACHE_SIZE:
        return

    sorted_sessions = sorted(
        SESSION_CACHE.items(),
        key=lambda x: x[1].get("last_access", 0)
    )
    to_remove = sorted_sessions[:max(count, 1)]
    for sid, _ in to_remove:
        del SESSION_CACHE[sid]

    logger.debug("Evicted %d oldest sessions from cache", len(to_remove))


def _cache_put(session_id: str, data: Dict[str, Any], version: int) -> None:
    with _cache_lock:
        if session_id not in SESSION_CACHE:
            _evict_oldest_locked(SESSION_MAX_CACHE_SIZE // 10)
        SESSION_CACHE[session_id] = {
            "data": copy.deepcopy(data),
            "version": version,
            "last_access": time.time(),
        }


def _cache_drop(session_id: str) -> None:
    with _cache_lock:
        SESSION_CACHE.pop(session_id, None)


# =============================================================================
# Locking
# =============================================================================

@contextmanager
def session_lock(session_id: str) -> Iterator[None]:
    """Serialize load-process-save cycles for one session within this process."""
    with _session_locks_guard:
        lock = _session_locks.setdefault(session_id, threading.Lock())
    with lock:
        yield


# =============================================================================
# Public Session Management Functions
# =============================================================================

def new_session_state(
    category: Optional[str] = None,
    user_id: Optional[int] = None,
    guest_id: Optional[str] = None,
) -> Dict[str, Any]:
    return {
        "history": [],
        "cart": Cart.empty().to_wire(),
        "confirmation_state": ConfirmationState.ACCUMULATING.value,
        "category": category,
        "user_id": user_id,
        "guest_id": guest_id,
    }


def create_session(db: Session, data: Dict[str, Any]) -> SessionRecord:
    """Insert a new session at version 0 and cache it."""
    session_id = str(uuid.uuid4())
    db.add(ChatSession(session_id=session_id, state=data, version=0))
    db.commit()
    _cache_put(session_id, data, 0)
    logger.debug("Created chat session %s", session_id)
    return SessionRecord(session_id=session_id, data=copy.deepcopy(data), version=0)


def get_session(db: Session, session_id: str) -> Optional[SessionRecord]:
    """
    Get a session from cache or database.

    Returns a private copy; mutating it has no effect until save_session.
    Returns None if the session does not exist.
    """
    # Runs roughly once per 100 calls
    if random.randint(1, 100) == 1:
        _cleanup_expired_sessions()

    with _cache_lock:
        entry = SESSION_CACHE.get(session_id)
        if entry is not None:
            entry["last_access"] = time.time()
            return SessionRecord(session_id, copy.deepcopy(entry["data"]), entry["version"])

    db_session = db.query(ChatSession).filter(
        ChatSession.session_id == session_id
    ).first()

    if db_session is None:
        return None

    data = dict(db_session.state or {})
    version = db_session.version
    _cache_put(session_id, data, version)
    return SessionRecord(session_id, copy.deepcopy(data), version)


def save_session(
    db: Session,
    session_id: str,
    data: Dict[str, Any],
    expected_version: int,
) -> int:
    """
    Compare-and-swap the session state. Returns the new version.

    Raises:
        SessionConflictError: the stored version is no longer
            ``expected_version`` (another worker saved first). The cache
            entry is dropped so the next read goes to the database.
    """
    new_version = expected_version + 1
    updated = (
        db.query(ChatSession)
        .filter(
            ChatSession.session_id == session_id,
            ChatSession.version == expected_version,
        )
        .update(
            {
                ChatSession.state: data,
                ChatSession.version: new_version,
                ChatSession.updated_at: func.now(),
            },
            synchronize_session=False,
        )
    )

    if updated == 0:
        db.rollback()
        _cache_drop(session_id)
        logger.warning(
            "Session %s save rejected: version %d is stale", session_id, expected_version
        )
        raise SessionConflictError(session_id, expected_version)

    db.commit()
    _cache_put(session_id, data, new_version)
    return new_version


def clear_cache() -> int:
    """
    Clear all sessions from the in-memory cache.

    Useful for testing and maintenance. Does NOT affect database storage.

    Returns:
        int: Number of sessions that were in cache before clearing
    """
    with _cache_lock:
        count = len(SESSION_CACHE)
        SESSION_CACHE.clear()
    logger.info("Cleared %d sessions from cache", count)
    return count
