"""
Unit tests for configuration, the exception hierarchy and JSON logging.
"""

import importlib
import json
import logging

import pytest

from permaweave.core import config
from permaweave.core.exceptions import (
    ConfigurationError,
    ContractLoadError,
    GatewayError,
    GatewayTimeoutError,
    InvalidInputError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    ValidationError,
    WeaveError,
    get_error_context,
    is_recoverable_error,
)
from permaweave.core.logging_config import CustomJsonFormatter, get_logger, setup_logging


@pytest.fixture
def reload_config(monkeypatch):
    """Reload the config module under a patched environment, restoring it afterwards."""
    yield lambda: importlib.reload(config)
    monkeypatch.undo()
    importlib.reload(config)


class TestConfig:
    """Environment-driven settings"""

    def test_defaults(self, monkeypatch, reload_config):
        for name in ("PERMAWEAVE_GATEWAY_URL", "PERMAWEAVE_HTTP_TIMEOUT", "PERMAWEAVE_CONTRACT_CACHE"):
            monkeypatch.delenv(name, raising=False)
        reload_config()
        assert config.GATEWAY_URL == "https://arweave.net"
        assert config.HTTP_TIMEOUT == 30
        assert config.CONTRACT_CACHE_ENABLED is True

    def test_overrides(self, monkeypatch, reload_config):
        monkeypatch.setenv("PERMAWEAVE_GATEWAY_URL", "http://localhost:1984/")
        monkeypatch.setenv("PERMAWEAVE_HTTP_TIMEOUT", "5")
        monkeypatch.setenv("PERMAWEAVE_SANDBOX_UTILS", "false")
        reload_config()
        assert config.GATEWAY_URL == "http://localhost:1984"
        assert config.HTTP_TIMEOUT == 5
        assert config.SANDBOX_UTILS_ENABLED is False

    def test_invalid_integer_rejected(self, monkeypatch, reload_config):
        monkeypatch.setenv("PERMAWEAVE_HTTP_TIMEOUT", "soon")
        with pytest.raises(ConfigurationError):
            reload_config()

    def test_below_minimum_rejected(self, monkeypatch, reload_config):
        monkeypatch.setenv("PERMAWEAVE_HTTP_TIMEOUT", "0")
        with pytest.raises(ConfigurationError):
            reload_config()

    def test_invalid_log_level_rejected(self, monkeypatch, reload_config):
        monkeypatch.setenv("PERMAWEAVE_LOG_LEVEL", "loud")
        with pytest.raises(ConfigurationError):
            reload_config()


class TestExceptions:
    """Error hierarchy helpers"""

    def test_hierarchy(self):
        assert issubclass(InvalidInputError, ValidationError)
        assert issubclass(GatewayTimeoutError, NetworkError)
        assert issubclass(ContractLoadError, WeaveError)

    def test_recoverable_defaults(self):
        assert is_recoverable_error(NetworkError("down"))
        assert is_recoverable_error(RateLimitError("slow down", retry_after=3))
        assert not is_recoverable_error(ValidationError("bad"))
        assert is_recoverable_error(ConnectionError())
        assert not is_recoverable_error(KeyError("x"))

    def test_recoverable_override(self):
        assert is_recoverable_error(GatewayError("busy", status=503, recoverable=True))
        assert not is_recoverable_error(GatewayError("bad", status=400))

    def test_error_context(self):
        context = get_error_context(
            NotFoundError("missing", transaction_id="tx1", details={"status": 404})
        )
        assert context["error_type"] == "NotFoundError"
        assert context["transaction_id"] == "tx1"
        assert context["details"] == {"status": 404}
        assert context["recoverable"] is False

    def test_error_context_for_contract(self):
        context = get_error_context(ContractLoadError("broken", contract_id="c1"))
        assert context["contract_id"] == "c1"


class TestLogging:
    """Structured JSON logging"""

    def test_setup_logging_emits_json(self, capsys):
        logger = setup_logging(name="permaweave.test_json", level="INFO", environment="test")
        logger.info("Contract loaded", extra={"event": "contract.loaded", "contract_id": "c1"})

        record = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert record["message"] == "Contract loaded"
        assert record["event"] == "contract.loaded"
        assert record["contract_id"] == "c1"
        assert record["environment"] == "test"
        assert record["service"] == "permaweave"
        assert record["level"] == "info"
        assert record["source"]["function"] == "test_setup_logging_emits_json"
        assert record["timestamp"].endswith("Z")

    def test_setup_logging_writes_file(self, tmp_path):
        log_file = tmp_path / "logs" / "permaweave.json"
        logger = setup_logging(
            name="permaweave.test_file", log_file=str(log_file), level="DEBUG", enable_console=False
        )
        logger.debug("written", extra={"event": "test.file"})
        for handler in logger.handlers:
            handler.flush()

        record = json.loads(log_file.read_text().strip().splitlines()[-1])
        assert record["event"] == "test.file"

    def test_setup_logging_replaces_handlers(self):
        logger = setup_logging(name="permaweave.test_handlers", level="INFO")
        logger = setup_logging(name="permaweave.test_handlers", level="INFO")
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, CustomJsonFormatter)

    def test_get_logger_keeps_existing_configuration(self):
        configured = setup_logging(name="permaweave.test_existing", level="WARNING")
        assert get_logger("permaweave.test_existing") is configured
        assert configured.level == logging.WARNING
