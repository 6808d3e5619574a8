"""
Logging for smart-session.

Library modules log through the standard ``logging`` module; the CLI calls
``setup_logging`` once to render those records with structlog. Every line
emitted while a session is active carries the account and network bound by
the session controller, and secret-bearing fields are masked before
rendering.
"""

import logging
import sys
from typing import Any, Iterable, MutableMapping, Optional

import structlog

from .config import settings

REDACTED = "***"

SECRET_FIELDS = frozenset({
    "private_key",
    "auth_private_key",
    "api_key",
    "jiffyscan_api_key",
    "x-api-key",
})

QUIET_LOGGERS = ("httpcore", "httpx")


def redact_secrets(_: Any, __: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    """Mask key material and API keys passed as log fields."""
    for key in event_dict:
        if key.lower() in SECRET_FIELDS and event_dict[key]:
            event_dict[key] = REDACTED
    return event_dict


def _pre_chain(json_output: bool) -> list:
    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        redact_secrets,
    ]
    if json_output:
        processors.append(structlog.processors.format_exc_info)
    return processors


def setup_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    stream: Any = None,
) -> None:
    """Route stdlib logging through structlog.

    Args:
        log_level: Level name; defaults to settings.log_level.
        log_format: "json", "console" or "auto" (console at DEBUG, JSON
            otherwise); defaults to settings.log_format.
        stream: Output stream. stderr by default so stdout stays free for
            CLI output.
    """
    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)
    fmt = (log_format or settings.log_format).lower()
    json_output = fmt == "json" or (fmt == "auto" and level != logging.DEBUG)

    pre_chain = _pre_chain(json_output)
    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    _quiet(QUIET_LOGGERS)


def _quiet(names: Iterable[str]) -> None:
    for name in names:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_session_context(**fields: Any) -> None:
    """Tag subsequent log lines with session fields."""
    structlog.contextvars.bind_contextvars(**fields)


def clear_session_context() -> None:
    structlog.contextvars.clear_contextvars()
