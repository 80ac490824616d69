"""Logging for the recipe RAG service.

One stdout handler per named logger, text or JSON, chosen by environment:
- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
- LOG_TYPE: text, json (default: text)

Pipeline context travels through ``extra=`` and both formatters render it:

    logger.info("💾 Recipe stored", extra={"dish_name": name, "duration_ms": 812})

Text output appends ``dish_name=... duration_ms=...``; JSON output adds the
same keys at top level so log shippers can filter on provider or user.
"""

import json
import logging
import os
import sys
from typing import Any, Iterable, Optional

# extra= keys the formatters know how to render, in output order
CONTEXT_FIELDS = ("dish_name", "user_id", "provider", "attempt", "error_kind", "duration_ms")

# SDK loggers that log every HTTP request at INFO
NOISY_SDK_LOGGERS = ("google.genai", "httpx", "openai", "chromadb")

SERVICE_LOGGER_NAME = "chef_rag"


def _context_from_record(record: logging.LogRecord) -> dict[str, Any]:
    return {field: getattr(record, field) for field in CONTEXT_FIELDS if hasattr(record, field)}


class JSONFormatter(logging.Formatter):
    """One JSON object per line; Vietnamese text is kept unescaped."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context_from_record(record),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class RichTextFormatter(logging.Formatter):
    """Coloured single-line output with a level icon and trailing context."""

    RESET = "\033[0m"

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }

    ICONS = {
        "DEBUG": "🔍",
        "INFO": "ℹ️",
        "WARNING": "⚠️",
        "ERROR": "❌",
        "CRITICAL": "🔥",
    }

    def format(self, record: logging.LogRecord) -> str:
        """Render ``<icon> <time> <LEVEL> <logger> <message> key=value ...``.

        The traceback, if any, follows on the next lines without colour.
        """
        level = record.levelname
        parts = [
            self.ICONS.get(level, ""),
            self.formatTime(record, "%Y-%m-%d %H:%M:%S"),
            f"{level:<8}",
            f"{record.name:<20}",
            record.getMessage(),
        ]
        parts += [f"{key}={value}" for key, value in _context_from_record(record).items()]
        line = f"{self.COLORS.get(level, '')}{' '.join(parts)}{self.RESET}"

        if record.exc_info:
            line += f"\n{self.formatException(record.exc_info)}"
        return line


def build_formatter(log_type: str) -> logging.Formatter:
    return JSONFormatter() if log_type.lower() == "json" else RichTextFormatter()


def get_logger(name: str, level: Optional[str] = None, log_type: Optional[str] = None) -> logging.Logger:
    """Return the named logger, attaching a stdout handler on first use.

    Args:
        name: Logger name.
        level: Overrides LOG_LEVEL. Unknown names fall back to INFO.
        log_type: Overrides LOG_TYPE ("text" or "json").

    Returns:
        The configured logger. Later calls return it unchanged.
    """
    instance = logging.getLogger(name)
    if instance.handlers:
        return instance

    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_level = getattr(logging, level_name, logging.INFO)
    if not isinstance(log_level, int):
        log_level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(build_formatter(log_type or os.getenv("LOG_TYPE", "text")))

    instance.setLevel(log_level)
    instance.addHandler(handler)
    return instance


def quiet_sdk_loggers(names: Iterable[str] = NOISY_SDK_LOGGERS) -> None:
    for name in names:
        logging.getLogger(name).setLevel(logging.WARNING)


logger = get_logger(SERVICE_LOGGER_NAME)
quiet_sdk_loggers()
