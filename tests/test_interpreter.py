"""
Tests for the utterance interpreter: text turns, upstream failure handling
and the voice pipeline.
"""

import asyncio

import pytest

from butcher_bot.errors import AudioValidationError, TranscriptionError, UpstreamUnavailableError
from butcher_bot.tasks.interpreter import (
    UPSTREAM_UNAVAILABLE_REPLY,
    UtteranceInterpreter,
    validate_audio,
)
from butcher_bot.tasks.models import ConversationTurn, ExtractedItem, Speaker, VoiceIntent
from tests.helpers import SOLOMILLO_ID, SOLOMILLO_LINE, FakeVoice, ScriptedCompletion, cart_of, llm_json

INVENTORY = "- Solomillo de ternera | Precio: 48.90€/kg | ID: 1 | En stock: Sí | Descripción: N/A"


# =============================================================================
# Text path
# =============================================================================

class TestInterpret:
    def test_parses_model_answer(self):
        llm = ScriptedCompletion().queue(llm_json("Medio kilo, ¿algo más?", items=[SOLOMILLO_LINE]))
        result = UtteranceInterpreter(complete=llm).interpret("medio kilo de solomillo", [], INVENTORY)

        assert result.reply_text == "Medio kilo, ¿algo más?"
        assert result.order_proposal.lines[0].product_id == SOLOMILLO_ID
        assert result.degraded is False

    def test_passes_text_timeout(self):
        llm = ScriptedCompletion()
        UtteranceInterpreter(complete=llm, text_timeout=7).interpret("hola", [], INVENTORY)
        assert llm.calls[0]["timeout"] == 7

    def test_prompt_carries_inventory_cart_and_category(self):
        llm = ScriptedCompletion()
        cart = cart_of(SOLOMILLO_LINE)
        UtteranceInterpreter(complete=llm).interpret("y chorizo", [], INVENTORY, cart=cart, category="carnes")

        system = llm.calls[0]["messages"][0]
        assert system["role"] == "system"
        assert INVENTORY in system["content"]
        assert "Solomillo de ternera" in system["content"]
        assert "categoría: carnes" in system["content"]
        assert llm.calls[0]["messages"][-1] == {"role": "user", "content": "y chorizo"}

    def test_history_is_windowed(self):
        llm = ScriptedCompletion()
        history = [
            ConversationTurn(speaker=Speaker.CUSTOMER if i % 2 == 0 else Speaker.ASSISTANT, text=f"turno {i}")
            for i in range(15)
        ]
        UtteranceInterpreter(complete=llm, history_window=4).interpret("hola", history, INVENTORY)

        messages = llm.calls[0]["messages"]
        # system + 4 history turns + the new utterance
        assert len(messages) == 6
        assert messages[1]["content"] == "turno 11"
        assert messages[1]["role"] == "assistant"

    def test_upstream_unavailable_degrades(self):
        llm = ScriptedCompletion().queue(UpstreamUnavailableError("no key"))
        result = UtteranceInterpreter(complete=llm).interpret("hola", [], INVENTORY)

        assert result.degraded is True
        assert result.reply_text == UPSTREAM_UNAVAILABLE_REPLY
        assert result.order_proposal is None
        assert result.suggested_products == []

    def test_unexpected_error_degrades(self):
        llm = ScriptedCompletion().queue(RuntimeError("socket closed"))
        result = UtteranceInterpreter(complete=llm).interpret("hola", [], INVENTORY)
        assert result.degraded is True

    def test_malformed_answer_does_not_raise(self):
        llm = ScriptedCompletion().queue("```json\n{\"reply\":\"Hola\"}\n```")
        result = UtteranceInterpreter(complete=llm).interpret("hola", [], INVENTORY)

        assert result.reply_text == "Hola"
        assert result.suggested_products == []
        assert result.order_proposal is None
        assert result.degraded is False


# =============================================================================
# Audio validation
# =============================================================================

class TestValidateAudio:
    def test_oversized_audio_is_rejected_by_size(self):
        with pytest.raises(AudioValidationError) as exc_info:
            validate_audio(11 * 1024 * 1024, "audio/webm")
        assert exc_info.value.kind == "too_large"

    def test_size_checked_before_type(self):
        with pytest.raises(AudioValidationError) as exc_info:
            validate_audio(11 * 1024 * 1024, "video/quicktime")
        assert exc_info.value.kind == "too_large"

    def test_empty_audio(self):
        with pytest.raises(AudioValidationError) as exc_info:
            validate_audio(0, "audio/webm")
        assert exc_info.value.kind == "empty"

    @pytest.mark.parametrize("content_type", ["text/plain", "video/webm", "audio/flac", "", None])
    def test_unsupported_types(self, content_type):
        with pytest.raises(AudioValidationError) as exc_info:
            validate_audio(1000, content_type)
        assert exc_info.value.kind == "unsupported_type"

    @pytest.mark.parametrize("content_type,subtype", [
        ("audio/webm", "webm"),
        ("audio/webm;codecs=opus", "webm"),
        ("audio/x-wav", "wav"),
        ("AUDIO/MPEG", "mpeg"),
    ])
    def test_accepted_types(self, content_type, subtype):
        assert validate_audio(1000, content_type) == subtype


# =============================================================================
# Voice path
# =============================================================================

class TestTranscribe:
    def _interpreter(self, voice, **kwargs):
        return UtteranceInterpreter(
            complete=ScriptedCompletion(),
            transcribe_fn=voice.transcribe,
            extract_fn=voice.extract,
            **kwargs,
        )

    def test_transcribes_and_extracts(self):
        voice = FakeVoice()
        result = asyncio.run(
            self._interpreter(voice).transcribe(b"abc", "a.webm", "audio/webm", INVENTORY, {SOLOMILLO_ID})
        )
        assert result.text == "Quiero medio kilo de solomillo"
        assert result.intent == VoiceIntent.ORDER
        assert result.extracted_items[0].product_id == SOLOMILLO_ID
        assert result.to_wire()["extractedItems"][0]["productId"] == SOLOMILLO_ID

    def test_unknown_product_id_becomes_null(self):
        voice = FakeVoice(items=[
            ExtractedItem(product_id=999, name="Wagyu", qty="1kg"),
            ExtractedItem(product_id=None, name="Morcilla", qty="200g"),
        ])
        result = asyncio.run(
            self._interpreter(voice).transcribe(b"abc", "a.webm", "audio/webm", INVENTORY, {SOLOMILLO_ID})
        )
        assert [item.product_id for item in result.extracted_items] == [None, None]
        assert [item.name for item in result.extracted_items] == ["Wagyu", "Morcilla"]

    def test_empty_transcript_skips_extraction(self):
        voice = FakeVoice(transcript="")
        result = asyncio.run(
            self._interpreter(voice).transcribe(b"abc", "a.webm", "audio/webm", INVENTORY, [])
        )
        assert result.text == ""
        assert result.intent == VoiceIntent.OTHER
        assert voice.extract_calls == 0

    def test_invalid_audio_never_reaches_upstream(self):
        voice = FakeVoice()
        with pytest.raises(AudioValidationError):
            asyncio.run(
                self._interpreter(voice).transcribe(
                    b"x" * (11 * 1024 * 1024), "a.webm", "audio/webm", INVENTORY, [],
                )
            )
        assert voice.transcribe_calls == 0

    def test_deadline_cancels_transcription(self):
        cancelled = []

        async def slow_transcribe(audio, filename, content_type):
            try:
                await asyncio.sleep(5)
            except asyncio.CancelledError:
                cancelled.append(True)
                raise
            return "tarde"

        interpreter = UtteranceInterpreter(
            complete=ScriptedCompletion(),
            transcribe_fn=slow_transcribe,
            extract_fn=FakeVoice().extract,
            audio_timeout=0.05,
        )
        with pytest.raises(TranscriptionError) as exc_info:
            asyncio.run(interpreter.transcribe(b"abc", "a.webm", "audio/webm", INVENTORY, []))

        assert exc_info.value.timed_out is True
        assert cancelled == [True]

    def test_upstream_failure_is_transcription_error(self):
        async def failing_transcribe(audio, filename, content_type):
            raise UpstreamUnavailableError("Transcription failed: APIConnectionError")

        interpreter = UtteranceInterpreter(
            complete=ScriptedCompletion(),
            transcribe_fn=failing_transcribe,
            extract_fn=FakeVoice().extract,
        )
        with pytest.raises(TranscriptionError) as exc_info:
            asyncio.run(interpreter.transcribe(b"abc", "a.webm", "audio/webm", INVENTORY, []))
        assert exc_info.value.timed_out is False


def test_voice_extraction_failures_use_instructor_core_exception():
    import instructor.core

    from butcher_bot import llm_client

    assert llm_client.InstructorRetryException is instructor.core.InstructorRetryException
