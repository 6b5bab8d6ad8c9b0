"""
Shared utilities for rescribe.

Common functionality used across contexts:
- LaTeX sanitation
- Logging setup
- Retry helpers
- Timestamps
"""

from rescribe.utils.timestamp import epoch_ms, now, now_exact

__all__ = ["epoch_ms", "now", "now_exact"]
