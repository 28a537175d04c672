"""Process-level facts for status commands."""

from __future__ import annotations

import platform
import resource
import time

_STARTED_AT = time.monotonic()


def process_uptime() -> float:
    return time.monotonic() - _STARTED_AT


def memory_mb() -> int:
    """Peak resident memory of this process."""
    # ru_maxrss is KiB on Linux, bytes on macOS
    rss = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    divisor = 1024 * 1024 if platform.system() == "Darwin" else 1024
    return round(rss / divisor)
