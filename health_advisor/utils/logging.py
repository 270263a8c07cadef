"""Logging configuration."""

import logging
import os
import sys
from collections.abc import MutableMapping
from typing import Any

from pydantic import BaseModel


class LogConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"


class ContextAdapter(logging.LoggerAdapter):
    """Logger adapter that appends key=value context to every record.

    Chat operations log the same identifiers (user, conversation) on every
    line, so they are bound once and rendered as a trailing ``[k=v ...]``.
    """

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        fields = " ".join(f"{key}={value}" for key, value in self.extra.items() if value is not None)
        if fields:
            msg = f"{msg} [{fields}]"
        return msg, kwargs

    def bind(self, **fields: Any) -> "ContextAdapter":
        """Return a new adapter with additional context fields."""
        return ContextAdapter(self.logger, {**self.extra, **fields})


def setup_logging(config: LogConfig | None = None) -> None:
    """Set up logging configuration for the application."""
    if config is None:
        config = LogConfig(level=os.getenv("LOG_LEVEL", "INFO"))

    logging.basicConfig(
        level=getattr(logging, config.level.upper()),
        format=config.format,
        datefmt=config.date_format,
        stream=sys.stdout,
        force=True,
    )

    logging.getLogger("anthropic").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str, level: str | None = None) -> logging.Logger:
    """Get a logger for a specific module.

    Args:
        name: Module name (typically __name__)
        level: Level override, defaults to the LOG_LEVEL env var

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    log_level = level if level else os.getenv("LOG_LEVEL", "INFO")
    logger.setLevel(log_level.upper())

    return logger


def get_context_logger(name: str, **fields: Any) -> ContextAdapter:
    """Get a logger that tags every message with the given context fields."""
    return ContextAdapter(get_logger(name), fields)
