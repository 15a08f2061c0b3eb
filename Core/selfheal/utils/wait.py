from __future__ import annotations

import time
from typing import Callable, TypeVar

T = TypeVar("T")


def poll_until(predicate: Callable[[], T | None], timeout: float | None, interval: float = 0.1) -> T | None:
    """Polls a probe until it returns something other than ``None`` or the timeout elapses.

    A missing or non-positive timeout evaluates the probe exactly once. Results
    are compared against ``None`` rather than tested for truthiness, because
    parsed elements without children are falsy.
    """

    if not timeout or timeout <= 0:
        return predicate()
    deadline = time.monotonic() + timeout
    while True:
        result = predicate()
        if result is not None:
            return result
        if time.monotonic() >= deadline:
            return None
        time.sleep(interval)
