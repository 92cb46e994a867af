import json
import logging

import pytest

from core.errors import AllBackendsExhausted, ConfigError, OrchestratorError, ProviderError, RateLimitExceeded
from core.logging import JsonFormatter, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


# --- Logging Tests ---

def test_json_formatter_includes_query_payload():
    record = logging.LogRecord("orchestrator", logging.INFO, __file__, 1, "Query completed", None, None)
    record.query = {"provider": "groq", "tier": 2}

    data = json.loads(JsonFormatter().format(record))

    assert data["level"] == "INFO"
    assert data["name"] == "orchestrator"
    assert data["message"] == "Query completed"
    assert data["query"] == {"provider": "groq", "tier": 2}


def test_setup_logging_writes_json_file(tmp_path, restore_root_logger):
    log_file = tmp_path / "logs" / "orchestrator.log"

    logger = setup_logging("debug", str(log_file))
    logger.debug("hello", extra={"query": {"cached": True}})
    for handler in logging.getLogger().handlers:
        handler.flush()

    line = log_file.read_text(encoding="utf-8").strip().splitlines()[-1]
    assert json.loads(line)["query"] == {"cached": True}
    assert logging.getLogger().level == logging.DEBUG


def test_setup_logging_console_only(restore_root_logger):
    setup_logging("WARNING")

    handlers = logging.getLogger().handlers
    assert len(handlers) == 1
    assert isinstance(handlers[0], logging.StreamHandler)


# --- Error Tests ---

def test_error_hierarchy():
    for exc in (ConfigError("x"), ProviderError("groq", "x"), RateLimitExceeded("groq", 1), AllBackendsExhausted({})):
        assert isinstance(exc, OrchestratorError)


def test_provider_error_message():
    error = ProviderError("gemini", "HTTP 429", status_code=429)
    assert str(error) == "gemini: HTTP 429"
    assert error.message == "HTTP 429"
    assert error.status_code == 429


def test_all_backends_exhausted_lists_failures_in_order():
    error = AllBackendsExhausted({"perplexity": "HTTP 500", "groq": "timed out after 30.0s"})

    assert error.backends == ["perplexity", "groq"]
    assert str(error) == (
        "AI service unavailable. Tried 2 backend(s): perplexity: HTTP 500; groq: timed out after 30.0s"
    )
