import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import instructor
import openai
from dotenv import load_dotenv
from instructor.core import InstructorRetryException
from openai import AsyncOpenAI, OpenAI
from pydantic import BaseModel, Field

from .config import (
    OPENAI_MODEL,
    OPENAI_TRANSCRIBE_MODEL,
    OPENAI_VOICE_MODEL,
    TEXT_LLM_TIMEOUT_SECONDS,
)
from .errors import UpstreamUnavailableError
from .tasks.models import Cart, ConversationTurn, ExtractedItem, Speaker, VoiceIntent

logger = logging.getLogger(__name__)

# --------------------------------------------------------------------------------------
# Load .env explicitly from the project root (one level above butcher_bot/)
# --------------------------------------------------------------------------------------
BASE_DIR = Path(__file__).resolve().parent.parent  # project root (where .env lives)
env_path = BASE_DIR / ".env"
load_dotenv(dotenv_path=env_path)

# Log configuration at DEBUG level (no sensitive data in INFO or higher)
logger.debug("OpenAI API key configured: %s", "Yes" if os.getenv("OPENAI_API_KEY") else "No")
logger.debug("Using models: text=%s voice=%s", OPENAI_MODEL, OPENAI_VOICE_MODEL)

# Clients are created on first use. A missing key degrades the chat instead of
# stopping the process at import.
_client: Optional[OpenAI] = None
_async_client: Optional[AsyncOpenAI] = None


def _api_key() -> str:
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise UpstreamUnavailableError(
            f"OPENAI_API_KEY not found in environment or {env_path}"
        )
    return api_key


def get_client() -> OpenAI:
    global _client
    if _client is None:
        _client = OpenAI(api_key=_api_key())
    return _client


def get_async_client() -> AsyncOpenAI:
    global _async_client
    if _async_client is None:
        _async_client = AsyncOpenAI(api_key=_api_key())
    return _async_client


def get_instructor_client():
    """Get instructor-wrapped async OpenAI client."""
    return instructor.from_openai(get_async_client())


SYSTEM_PROMPT_BASE = """
Eres un carnicero experto y amable que atiende a clientes en una carnicería premium.
Tu nombre es "Carnicero IA".

INVENTARIO DISPONIBLE (categoría: {category}):
{inventory}

{cart_context}

REGLAS FUNDAMENTALES:
1. Responde SIEMPRE en español, de forma natural y amigable.
2. Cuando el cliente pida un producto, busca coincidencias en el inventario.
3. Si no encuentras el producto exacto, sugiere alternativas del inventario.
4. Si el producto no está en stock, infórmalo amablemente.
5. TODAS las cantidades DEBEN estar en KILOGRAMOS (kg). NUNCA uses libras (lb). Ejemplo: "0.5kg", "1kg", "2kg".
6. En el campo "reply" usa texto plano, sin markdown ni asteriscos. Puedes usar emojis.
7. Sugiere productos complementarios SOLO si aparecen en el inventario. NUNCA inventes productos.

REGLAS DEL CARRITO Y orderProposal:
8. El CARRITO ACTUAL contiene lo que el cliente YA ha pedido en esta conversación.
9. Cuando el cliente pida algo NUEVO, devuelve un orderProposal con TODOS los items anteriores MÁS los nuevos.
10. Si el cliente MODIFICA una cantidad, actualiza ese item y mantén los demás.
11. Si el cliente ELIMINA un item, quítalo y mantén los demás. Si quiere vaciar el pedido, devuelve "items": [].
12. Mientras haya al menos un item, devuelve siempre orderProposal con los items acumulados.
13. "showConfirmation": false mientras el cliente siga pidiendo. Pregunta "¿Algo más?".
14. "showConfirmation": true SOLO cuando el cliente indique que ha terminado ("eso es todo", "cuánto es", "nada más", "listo").
15. "autoConfirm": true SOLO si el cliente pide expresamente que se confirme el pedido ya, sin revisarlo.
16. En una conversación casual sin pedido, pon orderProposal en null.
""".strip()

RESPONSE_SCHEMA: Dict[str, Any] = {
    "reply": "Tu mensaje al cliente",
    "suggestedProducts": [{"id": 1, "name": "Nombre", "price": "12.50", "unit": "kg"}],
    "orderProposal": {
        "items": [
            {"productId": 1, "name": "Solomillo", "qty": "0.5kg", "unitPrice": "48.90", "subtotal": "24.45"}
        ],
        "total": "24.45",
        "estimatedMinutes": 10,
    },
    "showConfirmation": False,
    "autoConfirm": False,
}

RESPONSE_FORMAT_INSTRUCTIONS = """
FORMATO DE RESPUESTA: responde SOLO con un objeto JSON válido, sin texto antes ni después:
{schema}
""".strip()


def render_cart_context(cart: Optional[Cart]) -> str:
    if cart is None or cart.is_empty:
        return "CARRITO ACTUAL DEL CLIENTE: vacío (no ha pedido nada todavía)"
    lines = json.dumps([line.to_wire() for line in cart.lines], indent=2, ensure_ascii=False)
    return f"CARRITO ACTUAL DEL CLIENTE (estos items YA están en el pedido):\n{lines}"


def build_system_prompt(inventory_context: str, cart: Optional[Cart] = None, category: Optional[str] = None) -> str:
    """Role framing + inventory facts + held cart + output contract."""
    prompt = SYSTEM_PROMPT_BASE.format(
        category=category or "todas",
        inventory=inventory_context,
        cart_context=render_cart_context(cart),
    )
    schema = RESPONSE_FORMAT_INSTRUCTIONS.format(
        schema=json.dumps(RESPONSE_SCHEMA, indent=2, ensure_ascii=False)
    )
    return f"{prompt}\n\n{schema}"


def build_messages(
    system_prompt: str,
    history: List[ConversationTurn],
    user_message: str,
) -> List[Dict[str, str]]:
    """System message, then history as proper user/assistant messages, then the new utterance."""
    messages = [{"role": "system", "content": system_prompt}]
    for turn in history:
        role = "user" if turn.speaker == Speaker.CUSTOMER else "assistant"
        messages.append({"role": role, "content": turn.text})
    messages.append({"role": "user", "content": user_message})
    return messages


def call_butcher_bot(
    messages: List[Dict[str, str]],
    model: str = None,
    timeout: float = None,
) -> str:
    """
    Run one chat completion in JSON mode and return the raw content.

    The request is bounded by ``timeout`` seconds; the HTTP call is aborted
    when it expires. Any upstream failure is raised as
    UpstreamUnavailableError.
    """
    if model is None:
        model = OPENAI_MODEL
    if timeout is None:
        timeout = TEXT_LLM_TIMEOUT_SECONDS

    client = get_client().with_options(timeout=timeout, max_retries=0)
    try:
        completion = client.chat.completions.create(
            model=model,
            messages=messages,
            response_format={"type": "json_object"},
            temperature=0.2,
        )
    except openai.OpenAIError as e:
        raise UpstreamUnavailableError(f"Chat completion failed: {type(e).__name__}") from e

    return completion.choices[0].message.content or ""


# --------------------------------------------------------------------------------------
# Voice
# --------------------------------------------------------------------------------------

class VoiceOrderExtraction(BaseModel):
    """Intent and items heard in a transcribed voice message."""

    intent: VoiceIntent = Field(
        description="order: wants to buy; question: asks something; greeting: says hello; other: anything else"
    )
    extracted_items: List[ExtractedItem] = Field(
        default_factory=list,
        description="Products the customer asked for. productId only when it matches an inventory ID, else null.",
    )


VOICE_EXTRACTION_PROMPT = """Actúa como un experto carnicero.

Inventario disponible:
{inventory}

El cliente ha dicho: "{transcript}"

1. Analiza la intención (order, question, greeting, other).
2. Si es un pedido, extrae los productos buscando coincidencia con el inventario.
   - Devuelve "productId" (el ID numérico) si encuentras coincidencia exacta o muy cercana.
   - Si no encuentras el producto en el inventario, deja "productId" en null.
   - Expresa "qty" en kilogramos o gramos ("500g", "1kg")."""


async def transcribe_audio(
    audio: bytes,
    filename: str,
    content_type: str,
    model: str = None,
) -> str:
    """Speech-to-text for one audio upload."""
    if model is None:
        model = OPENAI_TRANSCRIBE_MODEL
    client = get_async_client().with_options(max_retries=0)
    try:
        transcription = await client.audio.transcriptions.create(
            model=model,
            file=(filename, audio, content_type),
            language="es",
        )
    except openai.OpenAIError as e:
        raise UpstreamUnavailableError(f"Transcription failed: {type(e).__name__}") from e
    return transcription.text.strip()


async def extract_voice_order(
    transcript: str,
    inventory_context: str,
    model: str = None,
) -> VoiceOrderExtraction:
    """Structured intent/item extraction from a transcript via instructor."""
    if model is None:
        model = OPENAI_VOICE_MODEL
    client = get_instructor_client()
    prompt = VOICE_EXTRACTION_PROMPT.format(inventory=inventory_context, transcript=transcript)
    try:
        return await client.chat.completions.create(
            model=model,
            response_model=VoiceOrderExtraction,
            messages=[{"role": "user", "content": prompt}],
            max_retries=1,
        )
    except (openai.OpenAIError, InstructorRetryException) as e:
        raise UpstreamUnavailableError(f"Voice extraction failed: {type(e).__name__}") from e
