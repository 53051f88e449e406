"""Entity key generation and timestamp helpers.

Keys have the form ``{unixTimeMillis}_{random128bitHex}``. The millisecond
prefix keeps keys roughly time-ordered; the 128-bit random suffix makes two
keys generated in the same millisecond differ with overwhelming probability
(collision odds for n keys within one millisecond are about n**2 / 2**129).
Keys are not checked against the store; inserts fail on an existing key.
"""

import secrets
import time
from collections.abc import Callable
from datetime import datetime, timezone

RANDOM_BYTES = 16


def _now_millis() -> int:
    return time.time_ns() // 1_000_000


def new_id(clock: Callable[[], int] = _now_millis) -> str:
    """Generate a new entity key.

    >>> key = new_id(clock=lambda: 1700000000000)
    >>> key.startswith("1700000000000_") and len(key.split("_")[1]) == 32
    True
    """
    return f"{clock()}_{secrets.token_hex(RANDOM_BYTES)}"


def utc_now() -> datetime:
    """Return current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


def now_iso() -> str:
    """Return current UTC time as an ISO 8601 string."""
    return utc_now().isoformat()
