# mailslot/core/rate_limiter.py

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable

from mailslot.core.security import hash_origin
from mailslot.infra.kv import KeyValueStore

logger = logging.getLogger(__name__)

KEY_PREFIX = "ratelimit:"


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after_seconds: int = 0


class RateLimiter:
    """
    One accepted submission per origin per window.

    ``check`` only reads; ``mark`` starts the window and is called once the
    submission has been durably stored, so rejected submissions cost nothing.
    """

    def __init__(self, kv: KeyValueStore, window_seconds: int, clock: Callable[[], float] = time.time):
        self.kv = kv
        self.window_seconds = window_seconds
        self._clock = clock

    def _key(self, origin_id: str) -> str:
        return KEY_PREFIX + hash_origin(origin_id)

    def check(self, origin_id: str) -> RateLimitDecision:
        raw = self.kv.get(self._key(origin_id))
        if raw is None:
            return RateLimitDecision(allowed=True)

        try:
            marked_at = float(raw)
        except ValueError:
            logger.warning("Discarding unreadable rate-limit marker for %s", hash_origin(origin_id))
            return RateLimitDecision(allowed=True)

        elapsed = self._clock() - marked_at
        if elapsed >= self.window_seconds:
            return RateLimitDecision(allowed=True)

        retry_after = max(1, math.ceil(self.window_seconds - elapsed))
        return RateLimitDecision(allowed=False, retry_after_seconds=retry_after)

    def mark(self, origin_id: str) -> None:
        self.kv.put(self._key(origin_id), repr(self._clock()), ttl_seconds=self.window_seconds)
