"""Wall-clock helpers shared by the limiters.

Limiter state is persisted as epoch milliseconds, matching the values a
browser or another process would write for the same key.
"""

import time
from typing import Callable

Clock = Callable[[], int]


def system_clock_ms() -> int:
    """Current wall-clock time in whole epoch milliseconds."""
    return int(time.time() * 1000)


def ceil_seconds(milliseconds: int) -> int:
    """Round a positive millisecond span up to whole seconds."""
    return max(0, -(-milliseconds // 1000))
