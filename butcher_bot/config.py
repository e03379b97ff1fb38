"""
Configuration Module for Butcher Bot
====================================

This module centralizes the configuration settings, environment variables and
constants used throughout the Butcher Bot application. Every value is read
once at import time from the environment, with a sensible default for local
development.

Configuration Categories:
-------------------------
- **Database**: Connection URL for the relational store (products, orders,
  chat sessions).

- **Conversational AI**: Model names and wall-clock timeouts for the text and
  voice paths. A missing OPENAI_API_KEY is not fatal: the interpreter degrades
  to an apologetic reply instead of crashing the process.

- **Admission Control**: Capacity and queue timeout of the gate that bounds
  concurrent audio transcriptions.

- **Input Validation**: Ceilings for utterance length, audio payload size,
  accepted audio types and cart size.

- **Orders**: Defaults and retry policy for order commits.

- **Rate Limiting / Sessions / CORS / Staff auth**: Same knobs as the rest of
  the HTTP layer.

Environment Variables:
----------------------
- DATABASE_URL: SQLAlchemy URL (default: "sqlite:///./butcher_bot.db")
- LOG_LEVEL / LOG_FORMAT: Logging level (default: INFO) and line format
- OPENAI_MODEL: Text turn model (default: "gpt-4o-mini")
- OPENAI_VOICE_MODEL: Voice intent extraction model (default: "gpt-4o-mini")
- OPENAI_TRANSCRIBE_MODEL: Audio transcription model (default: "whisper-1")
- TEXT_LLM_TIMEOUT_SECONDS: Text turn timeout (default: 20)
- AUDIO_LLM_TIMEOUT_SECONDS: Transcription timeout (default: 45)
- TRANSCRIBE_MAX_CONCURRENT: Concurrent transcriptions (default: 5)
- TRANSCRIBE_QUEUE_TIMEOUT_SECONDS: Admission queue wait (default: 30)
- MAX_AUDIO_BYTES: Audio payload ceiling (default: 10 MB)
- MAX_MESSAGE_LENGTH: Max utterance length (default: 2000)
- MAX_CART_LINES: Max lines accepted on commit (default: 50)
- RATE_LIMIT_CHAT / RATE_LIMIT_VOICE / RATE_LIMIT_ENABLED
- SESSION_TTL_SECONDS / SESSION_MAX_CACHE_SIZE
- CORS_ORIGINS: Comma-separated allowed origins (default: "*")
- STAFF_USERNAME / STAFF_PASSWORD: Staff dashboard credentials

Usage:
------
    from butcher_bot.config import (
        MAX_AUDIO_BYTES,
        TRANSCRIBE_MAX_CONCURRENT,
        TRANSCRIBE_QUEUE_TIMEOUT_SECONDS,
    )
"""

import os
from typing import FrozenSet, List


# =============================================================================
# Database Configuration
# =============================================================================

DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./butcher_bot.db")


# =============================================================================
# Logging Configuration
# =============================================================================
# Every line carries the request id set by RequestIDMiddleware ("-" outside a
# request).

LOG_FORMAT: str = os.getenv(
    "LOG_FORMAT",
    "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s",
)
LOG_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"


def get_log_level() -> str:
    """Return LOG_LEVEL as read now (tests change it at runtime)."""
    return os.getenv("LOG_LEVEL", "INFO")


# =============================================================================
# Conversational AI Configuration
# =============================================================================
# The text path asks the model for a single JSON object per turn. The voice
# path transcribes first, then extracts intent and items from the transcript.

OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
OPENAI_VOICE_MODEL: str = os.getenv("OPENAI_VOICE_MODEL", "gpt-4o-mini")
OPENAI_TRANSCRIBE_MODEL: str = os.getenv("OPENAI_TRANSCRIBE_MODEL", "whisper-1")

# Hard wall-clock bounds on upstream calls. The underlying HTTP request is
# cancelled when these expire.
TEXT_LLM_TIMEOUT_SECONDS: float = float(os.getenv("TEXT_LLM_TIMEOUT_SECONDS", "20"))
AUDIO_LLM_TIMEOUT_SECONDS: float = float(os.getenv("AUDIO_LLM_TIMEOUT_SECONDS", "45"))

# Number of previous turns forwarded to the model as context
HISTORY_WINDOW: int = int(os.getenv("HISTORY_WINDOW", "10"))


# =============================================================================
# Admission Control Configuration
# =============================================================================
# Audio transcription is the expensive upstream call. At most
# TRANSCRIBE_MAX_CONCURRENT run at once; the rest queue in FIFO order for up to
# TRANSCRIBE_QUEUE_TIMEOUT_SECONDS before the caller gets a "server busy".
# Worst case a voice request spends queue wait + AUDIO_LLM_TIMEOUT_SECONDS.

TRANSCRIBE_MAX_CONCURRENT: int = int(os.getenv("TRANSCRIBE_MAX_CONCURRENT", "5"))
TRANSCRIBE_QUEUE_TIMEOUT_SECONDS: float = float(
    os.getenv("TRANSCRIBE_QUEUE_TIMEOUT_SECONDS", "30")
)


# =============================================================================
# Input Validation Configuration
# =============================================================================

MAX_MESSAGE_LENGTH: int = int(os.getenv("MAX_MESSAGE_LENGTH", "2000"))

MAX_AUDIO_BYTES: int = int(os.getenv("MAX_AUDIO_BYTES", str(10 * 1024 * 1024)))

# MIME subtypes accepted under audio/* (parameters such as codecs are ignored)
ALLOWED_AUDIO_TYPES: FrozenSet[str] = frozenset(
    t.strip().lower()
    for t in os.getenv("ALLOWED_AUDIO_TYPES", "webm,mp4,mpeg,mp3,wav,ogg").split(",")
    if t.strip()
)

MAX_CART_LINES: int = int(os.getenv("MAX_CART_LINES", "50"))


# =============================================================================
# Order Configuration
# =============================================================================

DEFAULT_ESTIMATED_MINUTES: int = int(os.getenv("DEFAULT_ESTIMATED_MINUTES", "15"))

# How many fresh order numbers to try when the insert hits the unique constraint
ORDER_NUMBER_MAX_ATTEMPTS: int = int(os.getenv("ORDER_NUMBER_MAX_ATTEMPTS", "3"))


# =============================================================================
# Rate Limiting Configuration
# =============================================================================
# Uses slowapi with in-memory storage (use Redis for multi-worker prod).

RATE_LIMIT_CHAT: str = os.getenv("RATE_LIMIT_CHAT", "30 per minute")
RATE_LIMIT_VOICE: str = os.getenv("RATE_LIMIT_VOICE", "10 per minute")
RATE_LIMIT_ENABLED: bool = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"


def get_rate_limit_chat() -> str:
    """Return the current chat rate limit (allows dynamic override in tests)."""
    return RATE_LIMIT_CHAT


def get_rate_limit_voice() -> str:
    """Return the current voice rate limit (allows dynamic override in tests)."""
    return RATE_LIMIT_VOICE


# =============================================================================
# Session Management Configuration
# =============================================================================

SESSION_TTL_SECONDS: int = int(os.getenv("SESSION_TTL_SECONDS", "3600"))  # 1 hour
SESSION_MAX_CACHE_SIZE: int = int(os.getenv("SESSION_MAX_CACHE_SIZE", "1000"))


# =============================================================================
# CORS Configuration
# =============================================================================

_cors_origins_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS: List[str] = [
    origin.strip()
    for origin in _cors_origins_env.split(",")
    if origin.strip()
] or ["*"]


# =============================================================================
# Staff Authentication Configuration
# =============================================================================
# Credentials for HTTP Basic Auth on the staff fulfillment endpoints.
# STAFF_PASSWORD must be set in production for staff access to work.

STAFF_USERNAME: str = os.getenv("STAFF_USERNAME", "staff")
STAFF_PASSWORD: str = os.getenv("STAFF_PASSWORD", "")
