"""
Logging utilities for the FastAPI application and command line tools.

Provides a consistent logging format and configuration.
"""

import logging
import sys


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with a sensible default format."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    # httpx logs full request URLs at INFO, which include authorization codes.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def mask_identifier(value: str | None, visible: int = 8) -> str:
    """Shorten an identifier such as a client id for log output."""
    if not value:
        return "<unset>"
    if len(value) <= visible:
        return value
    return f"{value[:visible]}..."


__all__ = ["configure_logging", "mask_identifier"]
