"""
Utterance Interpreter.

Sends an utterance, recent history and inventory facts to the model and turns
the answer into a TurnResult. On the text path it never raises: any upstream
failure becomes a degraded result with an apologetic reply, so the
conversation stays alive.

The voice path validates the upload, transcribes it and extracts intent and
items, all under one wall-clock deadline. Timeouts cancel the in-flight HTTP
request.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, List, Optional

from ..config import (
    ALLOWED_AUDIO_TYPES,
    AUDIO_LLM_TIMEOUT_SECONDS,
    HISTORY_WINDOW,
    MAX_AUDIO_BYTES,
    TEXT_LLM_TIMEOUT_SECONDS,
)
from ..errors import AudioValidationError, TranscriptionError, UpstreamUnavailableError
from .. import llm_client
from .models import Cart, ConversationTurn, TranscriptionResult, TurnResult
from .parsing import parse_turn_response

logger = logging.getLogger(__name__)

UPSTREAM_UNAVAILABLE_REPLY = (
    "Lo siento, el servicio de IA no responde en este momento. "
    "Intenta de nuevo en unos segundos."
)
INVENTORY_UNAVAILABLE_REPLY = "Error al consultar los productos. Intenta de nuevo."

CompletionFn = Callable[..., str]
TranscribeFn = Callable[[bytes, str, str], Awaitable[str]]
ExtractFn = Callable[[str, str], Awaitable["llm_client.VoiceOrderExtraction"]]


def degraded_result(reply: str = UPSTREAM_UNAVAILABLE_REPLY) -> TurnResult:
    """An apologetic TurnResult with no structured content."""
    return TurnResult(reply=reply, degraded=True)


def validate_audio(size: int, content_type: Optional[str]) -> str:
    """Check an upload before it costs anything. Returns the normalized subtype.

    Size is checked first so an oversized file is always reported as such.
    """
    if size > MAX_AUDIO_BYTES:
        raise AudioValidationError(
            f"Audio is {size} bytes; the limit is {MAX_AUDIO_BYTES}", kind="too_large"
        )
    if size <= 0:
        raise AudioValidationError("Audio file is empty", kind="empty")

    base = (content_type or "").split(";")[0].strip().lower()
    major, _, subtype = base.partition("/")
    if subtype.startswith("x-"):
        subtype = subtype[2:]
    if major != "audio" or subtype not in ALLOWED_AUDIO_TYPES:
        raise AudioValidationError(
            f"Unsupported audio type: {content_type or '(none)'}", kind="unsupported_type"
        )
    return subtype


class UtteranceInterpreter:
    """
    Wraps the model calls for one deployment.

    The completion, transcription and extraction callables default to the
    OpenAI-backed functions in llm_client and can be replaced (tests inject
    fakes).
    """

    def __init__(
        self,
        complete: Optional[CompletionFn] = None,
        transcribe_fn: Optional[TranscribeFn] = None,
        extract_fn: Optional[ExtractFn] = None,
        history_window: int = HISTORY_WINDOW,
        text_timeout: float = TEXT_LLM_TIMEOUT_SECONDS,
        audio_timeout: float = AUDIO_LLM_TIMEOUT_SECONDS,
    ):
        self._complete = complete or llm_client.call_butcher_bot
        self._transcribe = transcribe_fn or llm_client.transcribe_audio
        self._extract = extract_fn or llm_client.extract_voice_order
        self.history_window = history_window
        self.text_timeout = text_timeout
        self.audio_timeout = audio_timeout

    def interpret(
        self,
        utterance: str,
        history: List[ConversationTurn],
        inventory_context: str,
        cart: Optional[Cart] = None,
        category: Optional[str] = None,
    ) -> TurnResult:
        """Interpret one text utterance. Never raises."""
        system_prompt = llm_client.build_system_prompt(inventory_context, cart, category)
        recent = history[-self.history_window:] if self.history_window > 0 else []
        messages = llm_client.build_messages(system_prompt, recent, utterance)

        try:
            raw = self._complete(messages, timeout=self.text_timeout)
        except UpstreamUnavailableError as e:
            logger.warning("Conversational AI unavailable: %s", e)
            return degraded_result()
        except Exception:
            logger.exception("Unexpected failure calling the conversational AI")
            return degraded_result()

        return parse_turn_response(raw)

    async def transcribe(
        self,
        audio: bytes,
        filename: str,
        content_type: str,
        inventory_context: str,
        known_product_ids: Iterable[int],
    ) -> TranscriptionResult:
        """Transcribe and extract a voice order within the audio deadline.

        Raises TranscriptionError (``timed_out`` set on deadline expiry).
        """
        validate_audio(len(audio), content_type)
        try:
            return await asyncio.wait_for(
                self._voice_pipeline(audio, filename, content_type, inventory_context, set(known_product_ids)),
                timeout=self.audio_timeout,
            )
        except asyncio.TimeoutError as e:
            logger.warning("Transcription exceeded %.0fs and was cancelled", self.audio_timeout)
            raise TranscriptionError("Transcription timed out", timed_out=True) from e
        except UpstreamUnavailableError as e:
            logger.warning("Transcription upstream failure: %s", e)
            raise TranscriptionError(str(e)) from e

    async def _voice_pipeline(
        self,
        audio: bytes,
        filename: str,
        content_type: str,
        inventory_context: str,
        known_ids: set,
    ) -> TranscriptionResult:
        text = await self._transcribe(audio, filename, content_type)
        if not text:
            return TranscriptionResult(text="")

        extraction = await self._extract(text, inventory_context)

        items = []
        for item in extraction.extracted_items:
            if item.product_id is not None and item.product_id not in known_ids:
                logger.info("Voice item '%s' referenced unknown product %s", item.name, item.product_id)
                item = item.model_copy(update={"product_id": None})
            items.append(item)

        return TranscriptionResult(text=text, intent=extraction.intent, extracted_items=items)
