"""
Logging utilities for the FastAPI application.

Provides a consistent logging format and keeps OAuth secrets out of log output.
"""

import logging
import re
import sys

_REDACTIONS = (
    (re.compile(r"(?i)(bearer\s+)[A-Za-z0-9._~+/=-]+"), r"\1[redacted]"),
    (
        re.compile(r"(?i)\b((?:access|refresh|id)_token|client_secret|code)=([^&\s]+)"),
        r"\1=[redacted]",
    ),
    (
        re.compile(r'(?i)("(?:access|refresh|id)_token"\s*:\s*")[^"]*(")'),
        r"\1[redacted]\2",
    ),
)


def redact(message: str) -> str:
    """Mask bearer tokens and token-looking values in ``message``."""
    for pattern, replacement in _REDACTIONS:
        message = pattern.sub(replacement, message)
    return message


class TokenRedactionFilter(logging.Filter):
    """Rewrite log records so tokens never reach a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        rendered = record.getMessage()
        cleaned = redact(rendered)
        if cleaned != rendered:
            record.msg = cleaned
            record.args = None
        return True


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with a sensible default format."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, TokenRedactionFilter) for f in handler.filters):
            handler.addFilter(TokenRedactionFilter())


__all__ = ["TokenRedactionFilter", "configure_logging", "redact"]
