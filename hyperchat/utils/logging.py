"""
Structured JSON logging for Hyperchat.

Provides standardized logging with:
- JSON formatted output to stderr
- UTC timestamps with timezone info
- Structured context fields and the owning window id
- Secret redaction (session cookies and tokens never logged in full)

All logs use Python's standard logging module with custom formatting.
Log level defaults to INFO, use setup_logging(verbose=True) for DEBUG.

Examples:
    >>> from hyperchat.utils.logging import setup_logging, get_logger
    >>> setup_logging(verbose=True)
    >>> logger = get_logger("hyperchat.orchestrator")
    >>> logger.info("Session ready", extra={"context": {"service": "chatgpt"}})

Security:
    - Session cookies and bearer tokens are redacted before output
    - Only stderr is used (stdout reserved for user output)
"""

import json
import logging
import re
import sys
from typing import Any

from hyperchat.utils.time import utc_timestamp


class JSONFormatter(logging.Formatter):
    """
    Custom formatter that outputs logs as JSON with structured fields.

    Each log record is formatted as a JSON object with:
    - timestamp: ISO 8601 UTC timestamp
    - level: Log level (INFO, WARNING, ERROR, DEBUG)
    - component: Module/component name (from logger name)
    - message: Human-readable log message
    - context: Additional structured data (from 'context' in extra)
    - window_id: Owning conversation window (from 'window_id' in extra)
    """

    def format(self, record: logging.LogRecord) -> str:
        """
        Format log record as JSON string.

        Args:
            record: LogRecord instance from Python logging

        Returns:
            JSON string representing the log entry
        """
        log_entry = {
            "timestamp": utc_timestamp(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "context") and isinstance(record.context, dict):
            log_entry["context"] = record.context

        if hasattr(record, "window_id"):
            log_entry["window_id"] = record.window_id

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class SecretRedactingFilter(logging.Filter):
    """
    Logging filter that redacts session secrets from log messages.

    Browser sessions carry login cookies, and page URLs can embed tokens.
    Matches are replaced with redacted versions showing only the last 4
    characters:
    "session-token=abcdef1234567890" -> "session-token=***7890"
    "Bearer abc123xyz789..." -> "Bearer ***z789"
    """

    SECRET_PATTERNS = [
        (
            re.compile(r"\b((?:session|auth|access|refresh)[-_]?token=)([^\s&;]{8,})"),
            None,
        ),
        (re.compile(r"\bBearer\s+[a-zA-Z0-9._-]{20,}\b"), "Bearer ***{last4}"),
        (re.compile(r"\bsk-[a-zA-Z0-9_-]{20,}\b"), "sk-...{last4}"),
        (re.compile(r"\b[a-zA-Z0-9_-]{40,}\b"), "***{last4}"),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        """
        Redact secrets from log record message, args and context.

        Args:
            record: LogRecord to filter

        Returns:
            True (always allow record, but with redacted content)
        """
        record.msg = self._redact_secrets(str(record.msg))

        if record.args:
            if isinstance(record.args, dict):
                record.args = {
                    k: self._redact_secrets(str(v)) for k, v in record.args.items()
                }
            elif isinstance(record.args, tuple):
                record.args = tuple(
                    self._redact_secrets(str(arg)) for arg in record.args
                )

        if hasattr(record, "context") and isinstance(record.context, dict):
            record.context = self._redact_dict(record.context)

        return True

    def _redact_secrets(self, text: str) -> str:
        """
        Redact secrets in text, keeping only last 4 characters.

        Args:
            text: Input string potentially containing secrets

        Returns:
            String with secrets replaced by redacted versions
        """
        for pattern, template in self.SECRET_PATTERNS:

            def redact_match(match: re.Match, template: str | None = template) -> str:
                if template is None:
                    # Keep the "name=" prefix, redact the value
                    return f"{match.group(1)}***{match.group(2)[-4:]}"
                return template.format(last4=match.group(0)[-4:])

            text = pattern.sub(redact_match, text)

        return text

    def _redact_dict(self, data: dict[str, Any]) -> dict[str, Any]:
        """Recursively redact secrets in dictionary values."""
        result = {}
        for key, value in data.items():
            if isinstance(value, str):
                result[key] = self._redact_secrets(value)
            elif isinstance(value, dict):
                result[key] = self._redact_dict(value)
            elif isinstance(value, list):
                result[key] = [
                    self._redact_secrets(v) if isinstance(v, str) else v for v in value
                ]
            else:
                result[key] = value
        return result


def setup_logging(verbose: bool = False) -> None:
    """
    Configure structured JSON logging for the application.

    Sets up:
    - JSON formatter for structured output
    - Secret redaction filter
    - stderr output (stdout reserved for user-facing content)
    - Log level: DEBUG if verbose=True, INFO otherwise

    Playwright's own loggers are capped at WARNING so that driver chatter
    does not drown out session events.

    Args:
        verbose: If True, set log level to DEBUG. Otherwise, use INFO.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    # Remove any existing handlers (prevents duplicate logs)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    handler.setFormatter(JSONFormatter())
    handler.addFilter(SecretRedactingFilter())
    root_logger.addHandler(handler)

    for noisy in ("playwright", "asyncio", "httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(component: str) -> logging.Logger:
    """
    Get a logger instance for a specific component.

    Args:
        component: Component name (e.g., "hyperchat.session")

    Returns:
        Logger instance configured for JSON output
    """
    return logging.getLogger(component)


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    context: dict[str, Any] | None = None,
    window_id: str | None = None,
) -> None:
    """
    Log a message with structured context and optional window id.

    Equivalent to logger.log(level, message, extra={'context': {...}, 'window_id': '...'})

    Args:
        logger: Logger instance (from get_logger)
        level: Log level (logging.INFO, logging.WARNING, etc.)
        message: Human-readable log message
        context: Optional dict with additional structured data
        window_id: Optional window identifier to include in log

    Example:
        >>> log_with_context(
        ...     logger,
        ...     logging.INFO,
        ...     "Prompt dispatched",
        ...     context={"sessions": 3},
        ...     window_id="window-1",
        ... )
    """
    extra = {}

    if context is not None:
        extra["context"] = context

    if window_id is not None:
        extra["window_id"] = window_id

    logger.log(level, message, extra=extra if extra else None)
