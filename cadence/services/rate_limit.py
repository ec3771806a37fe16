"""Per-client request throttling over a sliding time window."""

import logging
import math
import threading
from collections import defaultdict, deque
from dataclasses import dataclass
from datetime import datetime, timedelta

from cadence.core.security import Clock, utc_now

logger = logging.getLogger(__name__)

RATE_LIMIT_WINDOW = timedelta(minutes=1)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after: int = 0


class SlidingWindowLimiter:
    """
    Allows at most ``max_requests`` hits per key within ``window``.

    Refused hits are not counted, so a client that keeps hammering is let
    back in as soon as its oldest accepted hit leaves the window. A
    ``max_requests`` of 0 disables the limiter.
    """

    def __init__(
        self,
        max_requests: int,
        window: timedelta = RATE_LIMIT_WINDOW,
        clock: Clock = utc_now,
    ) -> None:
        if max_requests < 0:
            raise ValueError("max_requests must be >= 0")
        self.max_requests = max_requests
        self.window = window
        self._clock = clock
        self._hits: dict[str, deque[datetime]] = defaultdict(deque)
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self.max_requests > 0

    def hit(self, key: str) -> RateLimitDecision:
        if not self.enabled:
            return RateLimitDecision(allowed=True)
        now = self._clock()
        with self._lock:
            hits = self._hits[key]
            self._prune(hits, now)
            if len(hits) >= self.max_requests:
                wait = (hits[0] + self.window - now).total_seconds()
                return RateLimitDecision(allowed=False, retry_after=max(1, math.ceil(wait)))
            hits.append(now)
            return RateLimitDecision(allowed=True)

    def purge_expired(self) -> int:
        """Drop keys whose hits have all left the window."""
        now = self._clock()
        with self._lock:
            stale = []
            for key, hits in self._hits.items():
                self._prune(hits, now)
                if not hits:
                    stale.append(key)
            for key in stale:
                del self._hits[key]
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._hits)

    def _prune(self, hits: deque[datetime], now: datetime) -> None:
        cutoff = now - self.window
        while hits and hits[0] <= cutoff:
            hits.popleft()
