"""
Voice Routes for Butcher Bot
============================

Endpoints:
----------
- POST /voice/transcribe: Transcribe a voice order and extract items

Request Pipeline:
-----------------
1. Read at most MAX_AUDIO_BYTES + 1 bytes and validate size, then MIME type
   (413 / 415 / 400, no upstream call made)
2. Load the inventory facts for the optional category
3. Wait for a slot in the transcription admission gate (503 server_busy
   with Retry-After when the queue wait runs out)
4. Transcribe + extract under the audio deadline (504 on timeout, 502 on
   upstream failure)

The transcript is not run through the reconciliation engine here; the
client sends it back as a normal chat message.
"""

import logging
import math
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..admission import AdmissionGate
from ..config import MAX_AUDIO_BYTES, get_rate_limit_voice
from ..db import get_db
from ..errors import AdmissionTimeout, AudioValidationError, TranscriptionError
from ..identity import caller_identity
from ..inventory import build_inventory_context, known_product_ids, load_inventory_facts
from ..rate_limit import limiter
from ..tasks.interpreter import UtteranceInterpreter, validate_audio
from ..tasks.models import TranscriptionResult
from .chat import get_interpreter

logger = logging.getLogger(__name__)

# Router definition
voice_router = APIRouter(prefix="/voice", tags=["Voice"])

AUDIO_ERRORS = {
    "too_large": (413, "audio_too_large"),
    "unsupported_type": (415, "unsupported_audio_type"),
    "empty": (400, "empty_audio"),
}


def get_transcription_gate(request: Request) -> AdmissionGate:
    """Dependency: the process-wide transcription gate created at startup."""
    return request.app.state.transcription_gate


@voice_router.post("/transcribe", response_model=TranscriptionResult)
@limiter.limit(get_rate_limit_voice)
async def transcribe_voice(
    request: Request,
    audio: UploadFile = File(...),
    category: Optional[str] = Form(default=None),
    db: Session = Depends(get_db),
    gate: AdmissionGate = Depends(get_transcription_gate),
    interpreter: UtteranceInterpreter = Depends(get_interpreter),
):
    """Transcribe a voice message and extract the products it mentions."""
    caller = caller_identity(request)
    data = await audio.read(MAX_AUDIO_BYTES + 1)
    content_type = audio.content_type or ""

    try:
        validate_audio(len(data), content_type)
    except AudioValidationError as e:
        status_code, error = AUDIO_ERRORS[e.kind]
        logger.info("Rejected audio from %s: %s", caller, e)
        return JSONResponse(status_code=status_code, content={"error": error, "message": str(e)})

    try:
        facts = await run_in_threadpool(load_inventory_facts, db, category)
    except SQLAlchemyError:
        logger.error("Could not load inventory for voice request", exc_info=True)
        return JSONResponse(
            status_code=503,
            content={"error": "inventory_unavailable", "message": "Error al consultar los productos. Intenta de nuevo."},
        )

    try:
        async with gate.admit():
            result = await interpreter.transcribe(
                data,
                audio.filename or "audio.webm",
                content_type,
                build_inventory_context(facts),
                known_product_ids(facts),
            )
    except AdmissionTimeout:
        return JSONResponse(
            status_code=503,
            content={"error": "server_busy", "message": "Hay mucha demanda ahora mismo. Inténtalo de nuevo en unos segundos."},
            headers={"Retry-After": str(max(1, math.ceil(gate.queue_timeout / 6)))},
        )
    except TranscriptionError as e:
        if e.timed_out:
            return JSONResponse(status_code=504, content={"error": "transcription_timeout", "message": str(e)})
        return JSONResponse(status_code=502, content={"error": "transcription_failed", "message": str(e)})

    logger.info(
        "Voice order from %s: intent=%s, %d items",
        caller, result.intent.value, len(result.extracted_items),
    )
    return result
