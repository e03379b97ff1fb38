# Load environment variables FIRST, before any module imports that need them
from dotenv import load_dotenv
load_dotenv()

import logging
from contextlib import asynccontextmanager
from typing import Dict

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from . import db
from .admission import AdmissionGate
from .config import (
    CORS_ORIGINS,
    TRANSCRIBE_MAX_CONCURRENT,
    TRANSCRIBE_QUEUE_TIMEOUT_SECONDS,
)
from .logging_config import setup_logging
from .middleware import RequestIDMiddleware
from .rate_limit import limiter
from .routes import chat_router, orders_router, public_router, staff_router, voice_router

# Configure logging at module load time
setup_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    db.init_db()
    logger.info(
        "Butcher Bot ready (transcription gate: %d concurrent, %.0fs queue)",
        TRANSCRIBE_MAX_CONCURRENT, TRANSCRIBE_QUEUE_TIMEOUT_SECONDS,
    )
    yield


app = FastAPI(
    title="Butcher Bot API",
    description="Conversational ordering for a butcher shop",
    version="1.0.0",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Health", "description": "Health check endpoints"},
        {"name": "Chat", "description": "Conversational ordering"},
        {"name": "Voice", "description": "Voice order transcription"},
        {"name": "Orders", "description": "Order placement and lookup"},
        {"name": "Staff", "description": "Fulfillment endpoints for shop staff"},
        {"name": "Public", "description": "Catalog"},
    ],
)

# One gate per process; shared by every voice request
app.state.transcription_gate = AdmissionGate(
    max_concurrent=TRANSCRIBE_MAX_CONCURRENT,
    queue_timeout=TRANSCRIBE_QUEUE_TIMEOUT_SECONDS,
    name="transcription",
)

app.add_middleware(RequestIDMiddleware)

# Add rate limit exception handler
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# In production, set CORS_ORIGINS to restrict allowed origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------- Health ----------


@app.get("/health", tags=["Health"])
def health() -> Dict[str, str]:
    """Health check endpoint. Returns ok if the service is running."""
    return {"status": "ok"}


# ---------- Routers ----------

api_v1_router = APIRouter(prefix="/api/v1")
api_v1_router.include_router(chat_router)
api_v1_router.include_router(voice_router)
api_v1_router.include_router(orders_router)
api_v1_router.include_router(staff_router)
api_v1_router.include_router(public_router)

app.include_router(api_v1_router)

# Also mount at root for browser clients
app.include_router(chat_router)
app.include_router(voice_router)
app.include_router(orders_router)
app.include_router(staff_router)
app.include_router(public_router)


if __name__ == "__main__":
    import os

    import uvicorn

    uvicorn.run(
        "butcher_bot.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        # Worst case a voice request waits in the queue and then transcribes
        timeout_keep_alive=int(TRANSCRIBE_QUEUE_TIMEOUT_SECONDS + 60),
    )
