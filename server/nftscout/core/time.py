"""Clock helpers.

Cache expiry uses the monotonic clock. Values written to the session store use
wall-clock epoch milliseconds so they stay comparable across process restarts.
"""

import time


def monotonic() -> float:
    """Seconds from the monotonic clock."""
    return time.monotonic()


def now_ms() -> int:
    """Current wall-clock time as epoch milliseconds."""
    return int(time.time() * 1000)
