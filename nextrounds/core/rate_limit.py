"""
In-process sliding window rate limiter.

Used for the contact form (per email) and question generation (per client IP).
State lives in memory, so limits are per worker process.
"""

import threading
import time
from collections import deque
from typing import Callable, Dict, Deque, Tuple


class SlidingWindowLimiter:
    """
    Allow at most `max_calls` per `window_seconds` for each key.

    Unlike a blocking limiter this never sleeps: `check` answers
    immediately so the caller can return 429.
    """

    def __init__(self, max_calls: int, window_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.max_calls = max_calls
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._calls: Dict[str, Deque[float]] = {}

    def check(self, key: str) -> Tuple[bool, int]:
        """
        Register a call for `key` if allowed.

        Returns:
            (allowed, retry_after_seconds). retry_after is 0 when allowed.
        """
        with self._lock:
            now = self._clock()
            calls = self._calls.setdefault(key, deque())

            # Remove old calls outside the window
            while calls and calls[0] <= now - self.window_seconds:
                calls.popleft()

            if len(calls) >= self.max_calls:
                retry_after = int(calls[0] + self.window_seconds - now) + 1
                return False, max(1, retry_after)

            calls.append(now)
            return True, 0

    def reset(self, key: str = None):
        """Forget recorded calls for one key, or for all keys."""
        with self._lock:
            if key is None:
                self._calls.clear()
            else:
                self._calls.pop(key, None)
