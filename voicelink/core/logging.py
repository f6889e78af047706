"""
Logging utilities for the FastAPI application and the background expiry sweep.

Provides a consistent logging format and a helper for keeping credentials out
of log records.
"""

import logging
import sys
from typing import Optional

_REDACTED_PREFIX_LENGTH = 8


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with a sensible default format."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )


def redact(secret: Optional[str]) -> str:
    """Return a short prefix of a code or token that is safe to log."""
    if not secret:
        return "<none>"
    return f"{secret[:_REDACTED_PREFIX_LENGTH]}..."


__all__ = ["configure_logging", "redact"]
