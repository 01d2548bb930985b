"""
Unit tests for structured JSON logging setup.
"""

import json
import logging

import pytest

from tgevest.core.config import VestingSettings
from tgevest.core.logging_config import VaultJsonFormatter, configure_logging, setup_logging


def _read_records(path):
    return [json.loads(line) for line in path.read_text().splitlines() if line.strip()]


class TestSetupLogging:
    def test_writes_json_lines(self, tmp_path):
        log_file = tmp_path / "logs" / "vault.json"
        logger = setup_logging(
            name="tgevest.test_json",
            log_file=str(log_file),
            network="mainnet",
            environment="test",
            console=False,
        )

        logger.info("Vested tokens claimed", extra={"event": "vesting.claimed", "amount": 100})
        for handler in logger.handlers:
            handler.flush()

        record = _read_records(log_file)[-1]
        assert record["message"] == "Vested tokens claimed"
        assert record["event"] == "vesting.claimed"
        assert record["amount"] == 100
        assert record["network"] == "mainnet"
        assert record["environment"] == "test"
        assert record["level"] == "info"
        assert record["timestamp"]

    def test_replaces_existing_handlers(self):
        name = "tgevest.test_handlers"
        setup_logging(name=name)
        logger = setup_logging(name=name)
        assert len(logger.handlers) == 1

    def test_level_applied(self):
        logger = setup_logging(name="tgevest.test_level", level="warning", console=False)
        assert logger.level == logging.WARNING

    def test_unknown_level(self):
        with pytest.raises(ValueError):
            setup_logging(name="tgevest.test_bad_level", level="verbose")


class TestConfigureLogging:
    def test_uses_settings(self, tmp_path):
        log_file = tmp_path / "vault.json"
        settings = VestingSettings(
            network="mainnet",
            log_level="debug",
            log_file=str(log_file),
            environment="staging",
        )

        logger = configure_logging(settings, console=False)
        logging.getLogger("tgevest.core.defi.vesting").debug(
            "Vault event", extra={"event": "vesting.test"}
        )
        for handler in logger.handlers:
            handler.flush()

        assert logger.level == logging.DEBUG
        record = _read_records(log_file)[-1]
        assert record["event"] == "vesting.test"
        assert record["environment"] == "staging"

        setup_logging(console=False)


class TestFormatter:
    def test_source_location(self):
        formatter = VaultJsonFormatter(environment="test")
        record = logging.LogRecord("tgevest", logging.ERROR, __file__, 12, "boom", None, None)
        payload = json.loads(formatter.format(record))
        assert payload["source"].endswith(":12")
        assert payload["level"] == "error"
        assert payload["network"] == "testnet"
