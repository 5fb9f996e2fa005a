# tests/unit/test_logging.py
"""Tests for structured logging configuration."""

import io
import json
import logging

import pytest
from starlette.responses import PlainTextResponse
from starlette.testclient import TestClient

from httpsim.config import Config, DurRange, Effect, Resource
from httpsim.durations import SECOND
from httpsim.effects import RecordingSleeper
from httpsim.logging import configure_logging, get_logger
from httpsim.middleware import HTTPSimMiddleware


def _json_lines(out: str) -> list[dict[str, object]]:
    return [json.loads(line) for line in out.strip().split("\n") if line.startswith("{")]


class TestLoggingConfig:
    """Tests for logging configuration."""

    def test_get_logger_returns_logger(self) -> None:
        """get_logger returns a bound logger."""
        logger = get_logger("test")
        assert hasattr(logger, "info")
        assert hasattr(logger, "error")
        assert hasattr(logger, "bind")

    def test_logger_outputs_structured(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Logger outputs structured JSON."""
        configure_logging(json_output=True)
        logger = get_logger("test")

        logger.info("test message", key="value")

        data = _json_lines(capsys.readouterr().out)[-1]
        assert data["event"] == "test message"
        assert data["key"] == "value"
        assert data["level"] == "info"
        assert "timestamp" in data

    def test_logger_console_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Logger outputs human-readable text in console mode."""
        configure_logging(json_output=False)

        get_logger("test").info("test message", key="value")

        captured = capsys.readouterr()
        assert "test message" in captured.out
        assert not captured.out.strip().startswith("{")

    def test_stdlib_loggers_emit_json(self, capsys: pytest.CaptureFixture[str]) -> None:
        """stdlib loggers (uvicorn, httpx) share the JSON format."""
        configure_logging(json_output=True)

        logging.getLogger("test.stdlib.module").info("message from stdlib logger")

        data = _json_lines(capsys.readouterr().out)[-1]
        assert data["event"] == "message from stdlib logger"
        assert "level" in data

    def test_level_applied(self) -> None:
        configure_logging(level="debug")
        assert logging.getLogger().level == logging.DEBUG

    def test_noisy_third_party_loggers_silenced(self) -> None:
        """HTTP client and access loggers stay at WARNING even in DEBUG mode."""
        configure_logging(level="DEBUG")

        for name in ("httpx", "httpcore", "uvicorn.access"):
            assert logging.getLogger(name).getEffectiveLevel() >= logging.WARNING

    def test_invalid_level_rejected(self) -> None:
        with pytest.raises(ValueError, match="unknown log level"):
            configure_logging(level="LOUD")

    def test_custom_stream_and_logger_name(self) -> None:
        """Events go to the given stream and carry the logger name."""
        stream = io.StringIO()
        configure_logging(json_output=True, stream=stream)

        get_logger("httpsim.test", component="unit").warning("custom stream")

        data = _json_lines(stream.getvalue())[-1]
        assert data["event"] == "custom stream"
        assert data["logger"] == "httpsim.test"
        assert data["component"] == "unit"
        assert data["level"] == "warning"


class TestMiddlewareEvents:
    """Tests for events emitted by the middleware."""

    @pytest.fixture
    def middleware(self) -> HTTPSimMiddleware:
        async def app(scope, receive, send):  # type: ignore[no-untyped-def]
            await PlainTextResponse("ok")(scope, receive, send)

        config = Config(resources=(Resource(effect=Effect(delay=DurRange(min=SECOND))),))
        return HTTPSimMiddleware(app, config, sleeper=RecordingSleeper())

    def test_config_published_event(self, middleware: HTTPSimMiddleware, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(json_output=True)

        middleware.set_config(Config())

        events = _json_lines(capsys.readouterr().out)
        assert {"event": "httpsim config published", "resources": 0, "level": "info"}.items() <= events[-1].items()

    def test_request_matched_is_debug(self, middleware: HTTPSimMiddleware, capsys: pytest.CaptureFixture[str]) -> None:
        """Per-request events are only visible at DEBUG."""
        configure_logging(json_output=True, level="INFO")
        TestClient(middleware).get("/x")
        assert not [e for e in _json_lines(capsys.readouterr().out) if e["event"] == "httpsim request matched"]

        configure_logging(json_output=True, level="DEBUG")
        TestClient(middleware).get("/x")
        [event] = [e for e in _json_lines(capsys.readouterr().out) if e["event"] == "httpsim request matched"]
        assert event["resource"] == 0
        assert event["delay"] == "1s"
        assert event["replaced"] is False
        assert event["path"] == "/x"
