# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""In-memory sliding-window rate limiter keyed by client identity.

Each identity owns an ordered log of the timestamps of its admitted
requests. On every check the log is pruned of entries older than the
window, then the request is admitted only if fewer than ``capacity``
entries remain. Rejected requests are not recorded.

The table lives for the whole process and is never swept: an identity
that stops sending keeps its (empty) bucket. With the spoofable
``X-Forwarded-For`` identity this means the number of buckets is bounded
only by the variety of header values clients send.

Example:
    Admission check before sending::

        limiter = SlidingWindowRateLimiter()
        if not await limiter.check_and_record(identity):
            raise RateLimitedError(identity)
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable

from .logger import get_logger

DEFAULT_CAPACITY = 10
DEFAULT_WINDOW_SECONDS = 60.0

logger = get_logger("RateLimiter")


class SlidingWindowRateLimiter:
    """Per-identity sliding-window limiter guarded by a single asyncio lock.

    The read-prune-check-append sequence for any identity runs inside one
    critical section, so concurrent requests sharing an identity are
    serialized and can never exceed ``capacity`` admissions per window.

    Attributes:
        capacity: Maximum admitted requests per identity inside the window.
        window: Length of the trailing window, in seconds.
        clock: Callable returning the current time in seconds.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        window: float = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        if capacity < 1:
            raise ValueError("capacity must be a positive integer")
        if window <= 0:
            raise ValueError("window must be a positive number of seconds")
        self.capacity = capacity
        self.window = window
        self.clock = clock
        self._requests: dict[str, list[float]] = {}
        self._lock = asyncio.Lock()

    def _prune(self, log: list[float], now: float) -> None:
        # A timestamp from the future yields a negative age, clamped to zero.
        log[:] = [ts for ts in log if max(now - ts, 0.0) < self.window]

    async def check_and_record(self, identity: str) -> bool:
        """Admit or reject one request for ``identity``.

        Args:
            identity: Rate-limit bucket key for the calling client.

        Returns:
            True when the request is admitted and recorded, False when the
            identity already has ``capacity`` requests inside the window.
        """
        async with self._lock:
            now = self.clock()
            log = self._requests.setdefault(identity, [])
            self._prune(log, now)
            if len(log) >= self.capacity:
                logger.warning("Rate limit exceeded for %s", identity)
                return False
            log.append(now)
            logger.debug("Request allowed for %s (count: %d)", identity, len(log))
            return True

    async def request_count(self, identity: str) -> int:
        """Return how many requests of ``identity`` are inside the window now."""
        async with self._lock:
            log = self._requests.get(identity)
            if log is None:
                return 0
            self._prune(log, self.clock())
            return len(log)

    @property
    def tracked_identities(self) -> int:
        """Number of identity buckets created since startup."""
        return len(self._requests)
