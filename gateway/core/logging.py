"""
Logging utilities for the HTTP layer and background rotation timers.

Provides a consistent logging format and keeps bearer credentials out of
log output.
"""

import logging
import re
import sys

_BEARER = re.compile(r"(Bearer\s+)[A-Za-z0-9._~+/=-]+")


class RedactBearerFilter(logging.Filter):
    """Mask anything that looks like an ``Authorization: Bearer`` value."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = _BEARER.sub(r"\1***", message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with a sensible default format."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    root = logging.getLogger()
    for handler in root.handlers:
        if not any(isinstance(f, RedactBearerFilter) for f in handler.filters):
            handler.addFilter(RedactBearerFilter())
    # httpx logs every request line at INFO, including token endpoint URLs.
    logging.getLogger("httpx").setLevel(logging.WARNING)


__all__ = ["RedactBearerFilter", "configure_logging"]
