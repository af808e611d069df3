from __future__ import annotations

import asyncio
import logging
import math
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

from .config import RateLimitConfig
from .errors import RateLimitedError

logger = logging.getLogger("postproxy.rate_limit")

UNKNOWN_CLIENT = "unknown"


@dataclass
class WindowCounter:
    window_start: float
    count: int


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    count: int
    retry_after: int


def client_id_from_headers(headers: Mapping[str, str], header_name: str, trusted_hops: int = 1) -> str:
    """Client address appended by the trusted proxies, or "unknown".

    Proxies append to the right of the header, so the entry ``trusted_hops``
    places from the right is the one the outermost trusted proxy saw. Entries
    further left are caller-supplied.
    """
    raw = headers.get(header_name) or ""
    entries = [entry.strip() for entry in raw.split(",") if entry.strip()]
    if not entries:
        return UNKNOWN_CLIENT
    return entries[-min(trusted_hops, len(entries))]


class FixedWindowRateLimiter:
    """Per-client fixed-window counter kept in process memory.

    The map is bounded by ``max_tracked_clients``: on overflow, expired windows
    are swept first and then the least recently seen clients are dropped.
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        max_tracked_clients: int = 10_000,
        clock: Callable[[], float] = time.time,
    ):
        self.limit = limit
        self.window_seconds = window_seconds
        self.max_tracked_clients = max_tracked_clients
        self._clock = clock
        self._counters: "OrderedDict[str, WindowCounter]" = OrderedDict()
        self._lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: RateLimitConfig) -> "FixedWindowRateLimiter":
        return cls(
            limit=config.limit,
            window_seconds=config.window_seconds,
            max_tracked_clients=config.max_tracked_clients,
        )

    def __len__(self) -> int:
        return len(self._counters)

    def hit(self, client_id: str) -> RateDecision:
        now = self._clock()
        counter = self._counters.get(client_id)
        if counter is None or now - counter.window_start > self.window_seconds:
            counter = WindowCounter(window_start=now, count=1)
            self._counters[client_id] = counter
        else:
            counter.count += 1
        self._counters.move_to_end(client_id)
        self._evict(now)

        allowed = counter.count <= self.limit
        retry_after = 0
        if not allowed:
            remaining = counter.window_start + self.window_seconds - now
            retry_after = max(1, math.ceil(remaining))
        return RateDecision(allowed=allowed, count=counter.count, retry_after=retry_after)

    async def check(self, client_id: str) -> None:
        async with self._lock:
            decision = self.hit(client_id)
        if not decision.allowed:
            logger.info("rate limited", extra={"client": client_id, "count": decision.count})
            raise RateLimitedError(retry_after=decision.retry_after)

    def _evict(self, now: float) -> None:
        if len(self._counters) <= self.max_tracked_clients:
            return
        expired = [
            key for key, counter in self._counters.items()
            if now - counter.window_start > self.window_seconds
        ]
        for key in expired:
            del self._counters[key]
        while len(self._counters) > self.max_tracked_clients:
            self._counters.popitem(last=False)


def build_rate_limiter(config: RateLimitConfig) -> Optional[FixedWindowRateLimiter]:
    if not config.enabled:
        return None
    return FixedWindowRateLimiter.from_config(config)
