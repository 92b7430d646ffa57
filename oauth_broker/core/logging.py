"""
Logging utilities for the OAuth broker.

Provides a consistent logging format and a helper for keeping secrets out of
log lines.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with a sensible default format."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )


def mask_secret(value: Optional[str], visible_chars: int = 4) -> str:
    """Mask a secret, keeping only a short prefix and its length."""
    if not value:
        return "<not_set>"
    if len(value) <= visible_chars:
        return "***"
    return f"{value[:visible_chars]}...({len(value)} chars)"


__all__ = ["configure_logging", "mask_secret"]
