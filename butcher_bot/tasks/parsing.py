"""
Parsing of raw model output into a TurnResult.

The model is told to answer with one JSON object, but it does not always
comply. Recovery goes in three steps:
1. strict parse of the whole response
2. parse of the largest balanced {...} substring (handles code fences and
   chatter around the object)
3. the cleaned response text becomes the reply, with no suggestions and no
   proposal

Nothing here raises on bad output.
"""

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from .models import Cart, SuggestedProduct, TurnResult

logger = logging.getLogger(__name__)

DEFAULT_REPLY = "¿En qué más te puedo ayudar?"

_FENCE_PATTERN = re.compile(r"```(?:json)?", re.IGNORECASE)
_BULLET_PATTERN = re.compile(r"^\s*\* ", re.MULTILINE)


def clean_reply_text(raw: str) -> str:
    """Strip markdown the chat bubble cannot render."""
    text = _FENCE_PATTERN.sub("", raw)
    text = text.replace("**", "")
    text = _BULLET_PATTERN.sub("• ", text)
    return text.strip()


def _balanced_objects(text: str) -> list[str]:
    """Every top-level balanced {...} span in ``text``, largest first.

    Braces inside JSON string literals do not count.
    """
    spans = []
    depth = 0
    start = None
    in_string = False
    escaped = False

    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"' and depth > 0:
            in_string = True
        elif ch == "{":
            if depth == 0:
                start = i
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                spans.append(text[start:i + 1])

    return sorted(spans, key=len, reverse=True)


def extract_json_object(raw: str) -> dict | None:
    """Return the response as a dict if any part of it is a JSON object."""
    try:
        parsed = json.loads(raw)
        if isinstance(parsed, dict):
            return parsed
    except json.JSONDecodeError:
        pass

    for candidate in _balanced_objects(raw):
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return value is True


def _suggestions(raw: Any) -> list[SuggestedProduct]:
    if not isinstance(raw, list):
        return []
    suggestions = []
    for item in raw:
        try:
            suggestions.append(SuggestedProduct.model_validate(item))
        except ValidationError:
            logger.debug("Dropping unusable suggestion %r", item)
    return suggestions


def turn_result_from_dict(data: dict) -> TurnResult:
    """Build a TurnResult from an already-parsed response object."""
    reply = data.get("reply")
    if not isinstance(reply, str) or not reply.strip():
        reply = DEFAULT_REPLY

    return TurnResult(
        reply=clean_reply_text(reply),
        suggested_products=_suggestions(data.get("suggestedProducts")),
        order_proposal=Cart.from_upstream(data.get("orderProposal")),
        show_confirmation=_flag(data.get("showConfirmation")),
        auto_confirm=_flag(data.get("autoConfirm")),
    )


def parse_turn_response(raw: str | None) -> TurnResult:
    """Turn whatever the model sent back into a valid TurnResult."""
    if raw is None or not raw.strip():
        logger.warning("Model returned an empty response")
        return TurnResult(reply=DEFAULT_REPLY)

    data = extract_json_object(raw)
    if data is not None:
        return turn_result_from_dict(data)

    logger.warning("Model response was not JSON; using it as plain text")
    logger.debug("Raw model response: %s", raw[:500])
    cleaned = clean_reply_text(raw)
    return TurnResult(reply=cleaned or DEFAULT_REPLY)
