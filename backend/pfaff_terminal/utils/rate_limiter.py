"""
Per-address request limiting.

Each limiter keeps a fixed window per client key: the first hit opens a
window of `window_seconds`, and up to `max_requests` hits are allowed inside
it. The login limiter and the general API limiter are separate instances.
"""

import threading
from typing import Dict, Tuple
import logging

from .clock import SystemClock
from ..errors import RateLimitError

logger = logging.getLogger(__name__)


class RateLimiter:
    def __init__(self, max_requests: int, window_seconds: int, message: str, clock=None):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.message = message
        self.clock = clock or SystemClock()
        self.windows: Dict[str, Tuple[float, int]] = {}  # key -> (window start, hits)
        self.lock = threading.Lock()

    def hit(self, key: str) -> int:
        """
        Count one request for key

        Returns:
            Requests remaining in the current window

        Raises:
            RateLimitError: once the window's allowance is used up
        """
        now = self.clock.timestamp()
        with self.lock:
            started, hits = self.windows.get(key, (now, 0))
            if now - started >= self.window_seconds:
                started, hits = now, 0

            if hits >= self.max_requests:
                retry_after = int(self.window_seconds - (now - started)) + 1
                logger.warning(f"Rate limit exceeded for {key} ({hits}/{self.max_requests})")
                raise RateLimitError(self.message, retry_after=retry_after)

            hits += 1
            self.windows[key] = (started, hits)
            self._prune(now)
            return self.max_requests - hits

    def reset(self, key: str = None) -> None:
        with self.lock:
            if key is None:
                self.windows.clear()
            else:
                self.windows.pop(key, None)

    def _prune(self, now: float) -> None:
        expired = [key for key, (started, _) in self.windows.items() if now - started >= self.window_seconds]
        for key in expired:
            del self.windows[key]
