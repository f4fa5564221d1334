"""Structured logging setup using structlog."""

from __future__ import annotations

import logging
import re
import sys
from typing import Any

import structlog

REDACTED = "***REDACTED***"

# Bot tokens are three base64url segments: user id, timestamp, HMAC
_BOT_TOKEN = re.compile(r"[\w-]{23,28}\.[\w-]{6,7}\.[\w-]{27,40}")
_AUTH_HEADER = re.compile(r"\b(Bot|Bearer)\s+\S+")
_KEY_VALUE = re.compile(
    r"(token|secret|password|authorization)([\"']?\s*[:=]\s*[\"']?)[^\s\"',}]+",
    re.IGNORECASE,
)
# Discord CDN attachment links are signed; the signature grants read access
_CDN_SIGNATURE = re.compile(r"([?&](?:ex|is|hm)=)[0-9a-f]+", re.IGNORECASE)

_SENSITIVE_KEYS = frozenset({"token", "bot_token", "authorization", "password", "secret"})

# Libraries whose INFO output is mostly gateway and connection chatter
NOISY_LOGGERS = ("discord", "discord.gateway", "httpx", "httpcore", "aiosqlite")


def redact(value: str) -> str:
    value = _AUTH_HEADER.sub(lambda m: f"{m.group(1)} {REDACTED}", value)
    value = _KEY_VALUE.sub(lambda m: f"{m.group(1)}{m.group(2)}{REDACTED}", value)
    value = _BOT_TOKEN.sub(REDACTED, value)
    return _CDN_SIGNATURE.sub(lambda m: f"{m.group(1)}{REDACTED}", value)


def _redact_value(key: str, value: Any) -> Any:
    if key.lower() in _SENSITIVE_KEYS and value:
        return REDACTED
    if isinstance(value, str):
        return redact(value)
    if isinstance(value, dict):
        return {k: _redact_value(str(k), v) for k, v in value.items()}
    return value


def _filter_sensitive(
    _logger: structlog.types.WrappedLogger,
    _method: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    for key, value in list(event_dict.items()):
        event_dict[key] = _redact_value(key, value)
    return event_dict


def event_context(**context: Any) -> Any:
    """Context manager attaching ``context`` (channel id, event id...) to every log line inside it."""
    return structlog.contextvars.bound_contextvars(**context)


def setup_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Configure structlog with optional JSON output."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    if numeric_level <= logging.DEBUG:
        print(
            "WARNING: DEBUG logging is enabled. Message text, usernames and "
            "attachment URLs of Discord users will appear in logs.",
            file=sys.stderr,
        )

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        _filter_sensitive,
    ]

    if json_output:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # discord.py and httpx log through stdlib; route them through the same renderer
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
