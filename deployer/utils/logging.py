"""structlog setup for the deployer.

Events go through stdlib logging so uvicorn and httpx records share the
same handlers. Credentials must never reach a handler, so every event
passes through ``redact_secrets`` before rendering.
"""

import logging
import re
import sys
from pathlib import Path
from typing import Any

import structlog
from structlog.typing import EventDict, Processor, WrappedLogger

from deployer.config import Settings, settings as default_settings

REDACTED = "***"

# Matched case-insensitively against event keys
SECRET_KEY_PATTERN = re.compile(r"token|authorization|api_key|apikey|secret|password", re.I)
BEARER_PATTERN = re.compile(r"(Bearer\s+)[^\s\"',]+", re.I)


def _redact_value(value: Any) -> Any:
    if isinstance(value, str):
        return BEARER_PATTERN.sub(rf"\1{REDACTED}", value)
    if isinstance(value, dict):
        return {
            k: REDACTED if SECRET_KEY_PATTERN.search(str(k)) else _redact_value(v)
            for k, v in value.items()
        }
    return value


def redact_secrets(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """Mask credential-looking keys and inline bearer tokens."""
    for key, value in list(event_dict.items()):
        if key == "event":
            continue
        if SECRET_KEY_PATTERN.search(key):
            event_dict[key] = REDACTED
        else:
            event_dict[key] = _redact_value(value)
    return event_dict


def log_file_path(settings: Settings) -> Path:
    """Resolve the log file, relative paths being taken from the project root."""
    log_dir = Path(settings.log_directory)
    if not log_dir.is_absolute():
        log_dir = Path(__file__).resolve().parents[2] / log_dir
    return log_dir / settings.log_file_name


def _handlers(settings: Settings) -> list[logging.Handler]:
    log_file = log_file_path(settings)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    return [
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(log_file, encoding="utf-8"),
    ]


def build_processors(settings: Settings) -> list[Processor]:
    renderer: Processor
    if settings.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        redact_secrets,
        renderer,
    ]


def configure_logging(settings: Settings | None = None) -> None:
    """Route structlog through stdlib logging with stdout and file output."""
    settings = settings or default_settings

    logging.basicConfig(
        format="%(message)s",
        level=settings.log_level,
        handlers=_handlers(settings),
        force=True,
    )
    # httpx logs every outgoing request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    structlog.configure(
        processors=build_processors(settings),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
