"""
Usage quota for scans.

The counters live in an external store behind the ``QuotaStore`` port.
``QuotaGate`` layers the reservation protocol on top: a scan reserves a
unit before it starts, commits it when it succeeds, and releases it when it
fails, so concurrent requests from one client cannot all slip past the
limit before any of them is counted.
"""

import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from secureapi.core.exceptions import QuotaStoreError
from secureapi.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_LIMIT = 3
DEFAULT_WINDOW_SECONDS = 30 * 24 * 60 * 60
DEFAULT_RESERVATION_TTL_SECONDS = 15 * 60
KEY_PREFIX = "secureapi:quota"


class QuotaStore(ABC):
    """
    Counter store interface.

    Implementations raise ``QuotaStoreError`` when the backend is unreachable.
    """

    @abstractmethod
    async def get(self, key: str) -> int:
        """Current value of a counter (0 when missing or expired)."""
        pass

    @abstractmethod
    async def incr(self, key: str, ttl_ms: Optional[int] = None) -> int:
        """
        Increment a counter and return its new value.

        When the counter does not exist yet it is created with ``ttl_ms``;
        an existing counter keeps its expiry.
        """
        pass

    @abstractmethod
    async def decr(self, key: str) -> int:
        """
        Decrement a counter and return its new value.

        A missing, expired or zero counter is left alone and reads 0, so a
        late release can never push a counter below zero.
        """
        pass

    @abstractmethod
    async def ping(self) -> bool:
        """Check that the store is reachable."""
        pass


class InMemoryQuotaStore(QuotaStore):
    """
    Process-local store for development and tests.

    Counters are not shared between workers, so production deployments
    should use ``RedisQuotaStore``.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._counters: Dict[str, Tuple[int, Optional[float]]] = {}
        self._lock = threading.Lock()

    def _live(self, key: str) -> Optional[Tuple[int, Optional[float]]]:
        entry = self._counters.get(key)
        if entry is None:
            return None
        _, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._counters[key]
            return None
        return entry

    async def get(self, key: str) -> int:
        with self._lock:
            entry = self._live(key)
            return entry[0] if entry else 0

    async def incr(self, key: str, ttl_ms: Optional[int] = None) -> int:
        with self._lock:
            entry = self._live(key)
            if entry is None:
                expires_at = self._clock() + ttl_ms / 1000 if ttl_ms else None
                entry = (0, expires_at)
            value = entry[0] + 1
            self._counters[key] = (value, entry[1])
            return value

    async def decr(self, key: str) -> int:
        with self._lock:
            entry = self._live(key)
            if entry is None or entry[0] <= 0:
                return 0
            value = entry[0] - 1
            self._counters[key] = (value, entry[1])
            return value

    async def ping(self) -> bool:
        return True


@dataclass(frozen=True)
class QuotaDecision:
    """Result of a quota check."""

    allowed: bool
    count: int
    limit: int
    degraded: bool = False

    @property
    def remaining(self) -> int:
        return max(self.limit - self.count, 0)


class QuotaGate:
    """
    Per-client scan quota over a rolling window.

    Args:
        store: Counter backend
        limit: Scans allowed per window
        window_seconds: Lifetime of a client's counter, starting at its first scan
        reservation_ttl_seconds: How long an unfinished reservation may hold a unit
        fail_open: Allow scans when the store is unreachable instead of
            raising ``QuotaStoreError``
    """

    def __init__(
        self,
        store: QuotaStore,
        limit: int = DEFAULT_LIMIT,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        reservation_ttl_seconds: int = DEFAULT_RESERVATION_TTL_SECONDS,
        fail_open: bool = False,
    ):
        self.store = store
        self.limit = limit
        self.window_ms = window_seconds * 1000
        self.reservation_ttl_ms = reservation_ttl_seconds * 1000
        self.fail_open = fail_open

    @staticmethod
    def count_key(client_key: str) -> str:
        return f"{KEY_PREFIX}:{client_key}"

    @staticmethod
    def pending_key(client_key: str) -> str:
        return f"{KEY_PREFIX}:{client_key}:pending"

    async def check_and_reserve(self, client_key: str) -> QuotaDecision:
        """
        Reserve one scan for ``client_key`` if the quota allows it.

        A denied check leaves the counters as they were.
        """
        try:
            pending = await self.store.incr(self.pending_key(client_key), ttl_ms=self.reservation_ttl_ms)
            count = await self.store.get(self.count_key(client_key))
            if count + pending > self.limit:
                await self.store.decr(self.pending_key(client_key))
                logger.info(f"Quota exhausted for {client_key}: {count}/{self.limit}")
                return QuotaDecision(allowed=False, count=count, limit=self.limit)
        except QuotaStoreError as e:
            return self._degraded(client_key, e)

        return QuotaDecision(allowed=True, count=count, limit=self.limit)

    async def commit(self, client_key: str) -> int:
        """Count a successful scan and release its reservation. Returns the new count."""
        try:
            count = await self.store.incr(self.count_key(client_key), ttl_ms=self.window_ms)
            await self.store.decr(self.pending_key(client_key))
        except QuotaStoreError as e:
            if not self.fail_open:
                raise
            logger.warning(f"Could not record scan for {client_key}: {e.message}")
            return 1
        return count

    async def release(self, client_key: str) -> None:
        """Drop a reservation without counting a scan."""
        try:
            await self.store.decr(self.pending_key(client_key))
        except QuotaStoreError as e:
            # The reservation expires with its TTL
            logger.warning(f"Could not release reservation for {client_key}: {e.message}")

    def _degraded(self, client_key: str, error: QuotaStoreError) -> QuotaDecision:
        if not self.fail_open:
            logger.error(f"Quota store unavailable, denying scan for {client_key}: {error.message}")
            raise error
        logger.warning(f"Quota store unavailable, allowing scan for {client_key}: {error.message}")
        return QuotaDecision(allowed=True, count=0, limit=self.limit, degraded=True)
