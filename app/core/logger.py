"""
Logging and Sentry setup.

Every component gets its own rotating log file and console output. Raw
invitation tokens grant membership to whoever holds them and appear in
request paths such as ``/api/invitations/<token>/accept``, so they are
masked in every log record and in every event sent to Sentry.
"""

import logging
from logging.handlers import RotatingFileHandler
import os
import re
from typing import Any, Optional

import sentry_sdk
from sentry_sdk.integrations.asyncio import AsyncioIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
MAX_LOG_BYTES = 5 * 1024 * 1024

# Tokens are 43 url-safe characters; invitation ids are dashed UUIDs and stay visible
_TOKEN_PATTERN = re.compile(r"(/invitations/)[A-Za-z0-9_-]{40,}")
REDACTED = "[redacted]"

_sentry_initialized = False


def redact_invitation_tokens(text: str) -> str:
    """Replace invitation tokens embedded in URLs or paths."""
    return _TOKEN_PATTERN.sub(rf"\g<1>{REDACTED}", text)


class TokenRedactingFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        return redact_invitation_tokens(super().format(record))


def _scrub_event(event: dict[str, Any], hint: dict[str, Any]) -> dict[str, Any]:
    request = event.get("request") or {}
    if isinstance(request.get("url"), str):
        request["url"] = redact_invitation_tokens(request["url"])
    for breadcrumb in (event.get("breadcrumbs") or {}).get("values", []):
        if isinstance(breadcrumb.get("message"), str):
            breadcrumb["message"] = redact_invitation_tokens(breadcrumb["message"])
    logentry = event.get("logentry") or {}
    if isinstance(logentry.get("message"), str):
        logentry["message"] = redact_invitation_tokens(logentry["message"])
    return event


def init_sentry(
    dsn: str,
    environment: str = "development",
    traces_sample_rate: float = 1.0,
) -> bool:
    """
    Initialize the Sentry SDK once per process.

    Args:
        dsn (str): Sentry DSN; an empty DSN leaves Sentry disabled.
        environment (str): Sentry environment name.
        traces_sample_rate (float): Performance monitoring sample rate (0.0 to 1.0).

    Returns:
        bool: True if this call initialized Sentry.
    """
    global _sentry_initialized

    if _sentry_initialized or not dsn:
        return False

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        traces_sample_rate=traces_sample_rate,
        before_send=_scrub_event,
        integrations=[
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
            AsyncioIntegration(),
        ],
    )
    _sentry_initialized = True
    return True


def setup_logger(
    name: str,
    log_file: str,
    level: int = logging.INFO,
    sentry_tag: Optional[str] = None,
) -> logging.Logger:
    """
    Configure a named logger writing to a rotating file and the console.

    Calling it again for the same name returns the already configured
    logger instead of stacking duplicate handlers.

    Args:
        name (str): The name of the logger.
        log_file (str): The file path where the log messages will be written.
        level (int, optional): The logging level. Defaults to logging.INFO.
        sentry_tag (str, optional): Component tag attached to Sentry events.

    Returns:
        logging.Logger: The configured logger instance.
    """
    if sentry_tag and _sentry_initialized:
        sentry_sdk.set_tag("component", sentry_tag)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    if logger.handlers:
        return logger

    formatter = TokenRedactingFormatter(LOG_FORMAT)

    log_dir = os.path.dirname(log_file)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    file_handler = RotatingFileHandler(
        log_file, maxBytes=MAX_LOG_BYTES, backupCount=3, encoding="utf-8"
    )
    console_handler = logging.StreamHandler()

    for handler in (file_handler, console_handler):
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


__all__ = [
    "REDACTED",
    "TokenRedactingFormatter",
    "init_sentry",
    "redact_invitation_tokens",
    "setup_logger",
]
