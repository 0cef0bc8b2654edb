"""
Result cache with time-based expiry.

Entries older than the TTL are treated as absent on read and removed. A
background sweep (started with start(), stopped with destroy()) purges
expired entries once per TTL interval so memory does not grow with keys
that are never read again.
"""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import re
import time
from typing import Any, Callable, Generic, TypeVar

import structlog

logger = structlog.stdlib.get_logger(component=__name__)

DEFAULT_CACHE_TTL = 300.0
MAX_KEY_LENGTH = 200

_KEY_UNSAFE_RE = re.compile(r"[^a-z0-9_.:-]")

T = TypeVar("T")


def generate_key(prefix: str, *parts: Any) -> str:
    """Build a deterministic, normalized cache key from arbitrary parts."""
    raw = ":".join(str(part) for part in (prefix, *parts)).lower()
    return _KEY_UNSAFE_RE.sub("_", raw)[:MAX_KEY_LENGTH]


@dataclasses.dataclass
class CacheEntry(Generic[T]):
    value: T
    timestamp: float


class TTLCache(Generic[T]):
    def __init__(
        self,
        ttl: float = DEFAULT_CACHE_TTL,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl <= 0:
            raise ValueError(f"Cache TTL must be positive, got {ttl}")
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry[T]] = {}
        self._sweeper: asyncio.Task[None] | None = None

    generate_key = staticmethod(generate_key)

    def _is_expired(self, entry: CacheEntry[T], now: float) -> bool:
        return now - entry.timestamp > self.ttl

    def get(self, key: str) -> T | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._is_expired(entry, self._clock()):
            del self._entries[key]
            logger.debug("cache_entry_expired", key=key)
            return None
        return entry.value

    def set(self, key: str, value: T) -> None:
        self._entries[key] = CacheEntry(value, self._clock())

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def size(self) -> int:
        return len(self._entries)

    __len__ = size

    def stats(self) -> dict[str, Any]:
        return {
            "size": self.size(),
            "ttl": self.ttl,
            "keys": list(self._entries),
        }

    def sweep(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if self._is_expired(entry, now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("cache_swept", removed=len(expired), remaining=len(self._entries))
        return len(expired)

    async def _sweep_periodically(self) -> None:
        while True:
            await asyncio.sleep(self.ttl)
            self.sweep()

    @property
    def running(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    def start(self) -> None:
        """Start the periodic sweep. Must be called from a running event loop."""
        if self.running:
            return
        self._sweeper = asyncio.get_running_loop().create_task(
            self._sweep_periodically(), name="cache-sweeper"
        )

    async def destroy(self) -> None:
        """Stop the periodic sweep and drop every entry."""
        sweeper, self._sweeper = self._sweeper, None
        if sweeper is not None:
            sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweeper
        self.clear()
