"""
JSON logging for the vesting vault.

Every record carries the vault's network and environment so logs from
several deployments can share one sink. Structured fields passed through
``extra`` (``event``, ``program_id``, ``amount``, ...) land as top-level keys.

Usage:
    from tgevest.core.config import load_settings
    from tgevest.core.logging_config import configure_logging

    configure_logging(load_settings("vesting.yaml"))
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pythonjsonlogger import jsonlogger

if TYPE_CHECKING:
    from .config import VestingSettings

LOG_FORMAT = "%(timestamp)s %(level)s %(name)s %(message)s"

# Rotate at 50MB, keep five files
DEFAULT_MAX_BYTES = 50 * 1024 * 1024
DEFAULT_BACKUP_COUNT = 5


class VaultJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter stamping each record with deployment context."""

    def __init__(self, network: str = "testnet", environment: str = "development"):
        super().__init__(fmt=LOG_FORMAT)
        self.network = network
        self.environment = environment

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        log_record["level"] = record.levelname.lower()
        log_record["network"] = self.network
        log_record["environment"] = self.environment
        log_record["source"] = f"{record.module}:{record.funcName}:{record.lineno}"


def setup_logging(
    name: str = "tgevest",
    level: str = "INFO",
    log_file: str | None = None,
    network: str = "testnet",
    environment: str = "development",
    console: bool = True,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
) -> logging.Logger:
    """
    Attach JSON handlers to the ``name`` logger, replacing any it had.

    Args:
        name: Logger to configure; child loggers propagate to it
        level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path for a size-rotated JSON log
        network: Network tag written on every record
        environment: Environment tag written on every record
        console: Whether to also log to stdout
        max_bytes: Rotation threshold for the file handler
        backup_count: Rotated files to keep

    Returns:
        The configured logger
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    logger = logging.getLogger(name)
    logger.setLevel(numeric_level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = VaultJsonFormatter(network=network, environment=environment)

    if console:
        stream = logging.StreamHandler(sys.stdout)
        stream.setFormatter(formatter)
        logger.addHandler(stream)

    if log_file:
        try:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            rotating = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=max_bytes,
                backupCount=backup_count,
            )
        except OSError as e:
            logger.warning(
                "Log file unavailable, continuing without it",
                extra={"event": "logging.file_unavailable", "path": log_file, "error": str(e)},
            )
        else:
            rotating.setFormatter(formatter)
            logger.addHandler(rotating)

    return logger


def configure_logging(settings: "VestingSettings", console: bool = True) -> logging.Logger:
    """Configure the package logger from vault settings."""
    return setup_logging(
        level=settings.log_level,
        log_file=settings.log_file,
        network=settings.network,
        environment=settings.environment,
        console=console,
    )
