"""Single-slot in-memory cache for the feed snapshot.

Each worker process has its own slot. Concurrent misses may both fetch
upstream; the last write wins.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class FeedSnapshot:
    captured_at: float
    payload: Dict[str, Any]

    def is_fresh(self, now: float, ttl_seconds: float) -> bool:
        return now - self.captured_at < ttl_seconds


class FeedCache:
    def __init__(self) -> None:
        self._snapshot: Optional[FeedSnapshot] = None

    def get(self) -> Optional[FeedSnapshot]:
        return self._snapshot

    def set(self, snapshot: FeedSnapshot) -> None:
        self._snapshot = snapshot

    def clear(self) -> None:
        self._snapshot = None
