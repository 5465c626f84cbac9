"""Response Cache - TTL cache with single-flight computation."""

import asyncio
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, UTC
from typing import Any, Awaitable, Callable, Dict, Optional

from fingate.cache.models import CacheEntry, CacheLookup


logger = logging.getLogger(__name__)


@dataclass
class _Flight:
    """One in-flight upstream computation and the callers awaiting it."""

    task: asyncio.Task
    waiters: int = 0


class ResponseCache:
    """
    In-memory response cache keyed by request fingerprint.

    Features:
    - TTL expiry checked lazily on read (``purge_expired`` reclaims memory)
    - Last-writer-wins ``store``
    - Single-flight ``get_or_compute``: concurrent misses for the same
      fingerprint share one upstream computation

    The in-flight table is only touched from the event loop. Entries are
    guarded by a lock so ``store``/``lookup`` are safe from worker threads.
    """

    def __init__(
        self,
        default_ttl_seconds: float = 300.0,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ):
        """
        Initialize the response cache.

        Args:
            default_ttl_seconds: TTL used when ``store`` is called without one
            clock: Time source (injectable for tests)
        """
        self.default_ttl = default_ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._inflight: Dict[str, _Flight] = {}

        self.hits = 0
        self.misses = 0

        logger.info(f"Response Cache initialized (default_ttl={default_ttl_seconds}s)")

    def lookup(self, fingerprint: str, count: bool = True) -> CacheLookup:
        """
        Return a hit for a live entry, otherwise a miss.

        Args:
            fingerprint: Request fingerprint
            count: Record the result in ``hits``/``misses``
        """
        now = self._clock()
        with self._lock:
            entry = self._entries.get(fingerprint)
            if entry is not None and entry.is_expired(now):
                del self._entries[fingerprint]
                entry = None

            if entry is None:
                if count:
                    self.misses += 1
                return CacheLookup(hit=False)

            if count:
                self.hits += 1
            return CacheLookup(hit=True, response=entry.response)

    def store(self, fingerprint: str, response: Any, ttl: Optional[float] = None) -> CacheEntry:
        """Store a response, replacing any existing entry for the fingerprint."""
        ttl = self.default_ttl if ttl is None else ttl
        now = self._clock()
        entry = CacheEntry(
            fingerprint=fingerprint,
            response=response,
            created_at=now,
            expires_at=now + timedelta(seconds=ttl),
        )
        with self._lock:
            self._entries[fingerprint] = entry

        logger.debug(f"Cached response for {fingerprint[:12]} (ttl={ttl}s)")
        return entry

    def invalidate(self, fingerprint: str) -> bool:
        """Remove an entry. Returns True if one existed."""
        with self._lock:
            return self._entries.pop(fingerprint, None) is not None

    def purge_expired(self) -> int:
        """Physically remove expired entries. Returns the number removed."""
        now = self._clock()
        with self._lock:
            expired = [fp for fp, e in self._entries.items() if e.is_expired(now)]
            for fp in expired:
                del self._entries[fp]

        if expired:
            logger.debug(f"Purged {len(expired)} expired cache entries")
        return len(expired)

    def in_flight(self, fingerprint: str) -> bool:
        return fingerprint in self._inflight

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    async def get_or_compute(
        self,
        fingerprint: str,
        compute: Callable[[], Awaitable[Any]],
        ttl: Optional[float] = None,
        wait_timeout: float = 30.0,
        miss_recorded: bool = False,
    ) -> CacheLookup:
        """
        Serve from cache, or run ``compute`` at most once per fingerprint.

        The first caller to miss starts the computation; concurrent callers
        for the same fingerprint await the same result. A follower that
        waits longer than ``wait_timeout`` computes independently.

        The computation result is cached even if the caller that started
        it was cancelled. The computation itself is cancelled only once no
        caller is waiting on it. Failures are not cached and propagate to
        every waiter.

        Pass ``miss_recorded=True`` when the caller has already looked the
        fingerprint up, so the re-check is not counted twice.
        """
        cached = self.lookup(fingerprint, count=not miss_recorded)
        if cached.hit:
            return cached

        flight = self._inflight.get(fingerprint)
        leader = flight is None
        if leader:
            task = asyncio.ensure_future(self._run_flight(fingerprint, compute, ttl))
            flight = _Flight(task=task)
            self._inflight[fingerprint] = flight
        else:
            logger.debug(f"Joining in-flight computation for {fingerprint[:12]}")

        flight.waiters += 1
        timed_out = False
        try:
            if leader:
                response = await asyncio.shield(flight.task)
            else:
                try:
                    response = await asyncio.wait_for(asyncio.shield(flight.task), wait_timeout)
                except TimeoutError:
                    # The leader may finish in the same tick the wait expires
                    if flight.task.done():
                        response = flight.task.result()
                    else:
                        timed_out = True
        finally:
            flight.waiters -= 1
            if flight.waiters == 0 and not flight.task.done():
                logger.info(f"No callers left for {fingerprint[:12]}, cancelling computation")
                flight.task.cancel()

        if timed_out:
            logger.warning(
                f"Single-flight wait exceeded {wait_timeout}s for {fingerprint[:12]}, "
                f"computing independently"
            )
            response = await compute()
            self.store(fingerprint, response, ttl)
            return CacheLookup(hit=False, response=response)

        return CacheLookup(hit=False, response=response, shared=not leader)

    async def _run_flight(
        self,
        fingerprint: str,
        compute: Callable[[], Awaitable[Any]],
        ttl: Optional[float],
    ) -> Any:
        try:
            response = await compute()
            self.store(fingerprint, response, ttl)
            return response
        finally:
            flight = self._inflight.get(fingerprint)
            if flight is not None and flight.task is asyncio.current_task():
                del self._inflight[fingerprint]
