"""
Shared test doubles and canned data.

Nothing here touches the network: the chat completion, transcription and
extraction calls are replaced by in-memory fakes.
"""

import json

from butcher_bot.llm_client import VoiceOrderExtraction
from butcher_bot.tasks.models import Cart, ExtractedItem, VoiceIntent

# Seeded catalog ids, in insertion order (see conftest.seed_catalog)
SOLOMILLO_ID = 1
PICADA_ID = 2
CHORIZO_ID = 3
PINCHOS_ID = 4
SECRETO_ID = 5

SOLOMILLO_LINE = {
    "productId": SOLOMILLO_ID,
    "name": "Solomillo de ternera",
    "qty": "0.5kg",
    "unitPrice": "48.90",
    "subtotal": "24.45",
}
CHORIZO_LINE = {
    "productId": CHORIZO_ID,
    "name": "Chorizo de León",
    "qty": "250g",
    "unitPrice": "14.90",
    "subtotal": "3.73",
}


def llm_json(reply, items=None, show_confirmation=False, auto_confirm=False, suggested=None, **extra):
    """Raw model output in the shape the system prompt asks for.

    ``items=None`` means no proposal at all (orderProposal: null). The
    declared total is deliberately wrong; it must never be used.
    """
    data = {
        "reply": reply,
        "suggestedProducts": suggested or [],
        "orderProposal": None if items is None else {"items": items, "total": "999.00"},
        "showConfirmation": show_confirmation,
        "autoConfirm": auto_confirm,
    }
    data.update(extra)
    return json.dumps(data, ensure_ascii=False)


def cart_of(*lines):
    return Cart.model_validate({"items": list(lines)})


class ScriptedCompletion:
    """Replaces the chat completion call; replays queued raw responses.

    A queued exception is raised instead of returned. With nothing queued it
    answers with a plain "¿Algo más?" and no proposal.
    """

    def __init__(self):
        self.responses = []
        self.calls = []

    def queue(self, *responses):
        self.responses.extend(responses)
        return self

    def __call__(self, messages, **kwargs):
        self.calls.append({"messages": messages, **kwargs})
        if not self.responses:
            return llm_json("¿Algo más?")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeVoice:
    """Async transcription and extraction doubles with call counters."""

    def __init__(self, transcript="Quiero medio kilo de solomillo", items=None, intent=VoiceIntent.ORDER):
        self.transcript = transcript
        self.items = items if items is not None else [
            ExtractedItem(product_id=SOLOMILLO_ID, name="Solomillo de ternera", qty="500g"),
        ]
        self.intent = intent
        self.transcribe_calls = 0
        self.extract_calls = 0

    async def transcribe(self, audio, filename, content_type):
        self.transcribe_calls += 1
        return self.transcript

    async def extract(self, transcript, inventory_context):
        self.extract_calls += 1
        return VoiceOrderExtraction(intent=self.intent, extracted_items=self.items)
