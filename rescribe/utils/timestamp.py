"""Timestamp formatting utilities."""

import time
from datetime import datetime


def now() -> str:
    """Second-resolution timestamp for directory names (e.g., 20251114_123456)."""
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def now_exact() -> str:
    """Microsecond-resolution timestamp (e.g., 20251114_123456_123456)."""
    return datetime.now().strftime("%Y%m%d_%H%M%S_%f")


def epoch_ms() -> int:
    """Milliseconds since the epoch, used for cache-busting query parameters."""
    return int(time.time() * 1000)
