"""
Tests for logging configuration.
"""
import logging


class TestLoggingConfiguration:
    """Test logging setup and configuration."""

    def test_setup_logging_default_level(self, monkeypatch):
        """Test that setup_logging defaults to INFO level."""
        monkeypatch.delenv("LOG_LEVEL", raising=False)

        from butcher_bot.logging_config import setup_logging
        setup_logging()

        logger = logging.getLogger("butcher_bot")
        assert logger.level == logging.INFO

    def test_setup_logging_respects_env_var(self, monkeypatch):
        """Test that LOG_LEVEL env var is respected."""
        monkeypatch.setenv("LOG_LEVEL", "warning")

        from butcher_bot.logging_config import setup_logging
        setup_logging()

        logger = logging.getLogger("butcher_bot")
        assert logger.level == logging.WARNING

    def test_setup_logging_explicit_level(self):
        """Test that explicit level parameter works."""
        from butcher_bot.logging_config import setup_logging
        setup_logging(level="ERROR")

        logger = logging.getLogger("butcher_bot")
        assert logger.level == logging.ERROR

    def test_setup_logging_invalid_level_defaults_to_info(self):
        """Test that invalid level falls back to INFO."""
        from butcher_bot.logging_config import setup_logging
        setup_logging(level="INVALID_LEVEL")

        logger = logging.getLogger("butcher_bot")
        assert logger.level == logging.INFO

    def test_sdk_loggers_quietened_outside_debug(self):
        from butcher_bot.logging_config import setup_logging
        setup_logging(level="INFO")

        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("openai").level == logging.WARNING
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING


class TestNoSensitiveDataInLogs:
    """Test that sensitive data is not logged at INFO level or higher."""

    def test_missing_api_key_degrades_without_leaking(self, monkeypatch, caplog):
        """A missing key becomes an UpstreamUnavailableError, never a crash."""
        monkeypatch.setenv("OPENAI_API_KEY", "")
        from butcher_bot import llm_client
        from butcher_bot.tasks.interpreter import UtteranceInterpreter

        monkeypatch.setattr(llm_client, "_client", None)

        with caplog.at_level(logging.INFO):
            result = UtteranceInterpreter().interpret("hola", [], "(vacío)")

        assert result.degraded is True
        for record in caplog.records:
            assert "sk-" not in record.getMessage()


class TestRequestIDTagging:
    """Log lines carry the id of the request that produced them."""

    def test_filter_stamps_current_request_id(self):
        from butcher_bot.logging_config import RequestIDFilter, request_id_var

        record = logging.LogRecord("butcher_bot.test", logging.INFO, __file__, 1, "hola", None, None)
        token = request_id_var.set("req-42")
        try:
            RequestIDFilter().filter(record)
        finally:
            request_id_var.reset(token)

        assert record.request_id == "req-42"

    def test_filter_outside_request_uses_dash(self):
        from butcher_bot.logging_config import RequestIDFilter

        record = logging.LogRecord("butcher_bot.test", logging.INFO, __file__, 1, "hola", None, None)
        RequestIDFilter().filter(record)

        assert record.request_id == "-"

    def test_default_format_includes_request_id(self):
        from butcher_bot.config import LOG_FORMAT

        assert "%(request_id)s" in LOG_FORMAT

    def test_route_logs_carry_request_id(self, client, caplog):
        from butcher_bot.logging_config import setup_logging

        with caplog.at_level(logging.INFO, logger="butcher_bot"):
            setup_logging(level="INFO")
            client.post("/chat/start", headers={"X-Request-ID": "chat-start-123"})

        started = [r for r in caplog.records if r.getMessage().startswith("Chat session")]
        assert started
        assert started[0].request_id == "chat-start-123"
