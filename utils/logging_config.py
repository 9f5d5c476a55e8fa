"""
Structured logging for GetStocks Relay.
structlog renders events; the standard logging module carries them.
"""

import logging
import re
import sys

import structlog


# Third-party loggers that are too chatty at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "telegram", "telegram.ext", "aiohttp.access")

# Provider URLs carry the API token as a query parameter
TOKEN_QUERY_PATTERN = re.compile(r"(token=)[^&\s'\"]+")


def redact_tokens(logger, method_name, event_dict):
    """structlog processor: mask ``token=`` query values in string fields."""
    for key, value in event_dict.items():
        if isinstance(value, str) and "token=" in value:
            event_dict[key] = TOKEN_QUERY_PATTERN.sub(r"\1***", value)
    return event_dict


def configure_logging(log_level: str = "INFO", json_format: bool = False) -> None:
    """
    Configure logging for the bot and web server.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_format: Emit one JSON object per line instead of console output
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        redact_tokens,
    ]
    if json_format:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_context(**kwargs) -> None:
    """Attach key-value pairs (chat_id, user_id) to every log call in this task."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
