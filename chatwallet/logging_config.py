"""
Structured logging configuration using structlog.

JSON lines by default, colored console output when ``LOG_FORMAT=console``.
Every record, including stdlib ``logging`` calls, passes through
``redact_secrets`` first: this process holds custodial keys and a bot token
that is part of every Bot API URL.
"""

import logging
import re
import sys
from typing import Any, MutableMapping, Optional

import structlog

from .config import settings

REDACTED = "[redacted]"

_SECRET_KEYS = {"private_key", "secret", "password", "api_key", "bot_token", "authorization"}
_SECRET_SUFFIXES = ("_secret", "_token", "_key")
_BOT_TOKEN_IN_URL = re.compile(r"/bot\d+:[A-Za-z0-9_-]+")
_KEY_ARRAY = re.compile(r"\[\s*\d{1,3}(?:\s*,\s*\d{1,3}){31,}\s*\]")


def _scrub(text: str) -> str:
    text = _BOT_TOKEN_IN_URL.sub(f"/bot{REDACTED}", text)
    return _KEY_ARRAY.sub(REDACTED, text)


def redact_secrets(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Mask secret-looking fields and bot tokens or key arrays inside strings."""
    for key, value in list(event_dict.items()):
        if value is None:
            continue
        name = key.lower()
        if name in _SECRET_KEYS or name.endswith(_SECRET_SUFFIXES):
            event_dict[key] = REDACTED
        elif isinstance(value, str):
            event_dict[key] = _scrub(value)
    return event_dict


def setup_logging(log_level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """Configure structlog and route stdlib loggers through it.

    Args:
        log_level: Override log level (default: settings.log_level)
        log_format: "json" or "console" (default: settings.log_format)
    """
    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)
    console = (log_format or settings.log_format).lower() == "console"

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.ExtraAdder(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if console:
        renderer: structlog.types.Processor = structlog.dev.ConsoleRenderer()
    else:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Redaction runs after %-args are merged into the event text
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            redact_secrets,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # httpx logs full request URLs, which include the bot token
    for name in ("uvicorn.access", "httpcore", "httpx"):
        logging.getLogger(name).setLevel(logging.WARNING)
