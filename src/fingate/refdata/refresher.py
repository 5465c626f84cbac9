"""Background Refresher - periodic reference snapshot refresh."""

import asyncio
import logging
from typing import Optional

from fingate.ledger.models import EventType
from fingate.refdata.sources import ReferenceDataSource
from fingate.refdata.store import ReferenceDataStore


logger = logging.getLogger(__name__)


class BackgroundRefresher:
    """
    Periodically fetches a reference snapshot and swaps it into the store.

    Runs independently of request handling. A failed fetch is logged and
    retried on the next interval; the previous snapshot stays in place.
    Cancellation aborts an in-flight fetch and exits the loop without
    leaving a pending wake-up behind.
    """

    def __init__(
        self,
        source: ReferenceDataSource,
        store: ReferenceDataStore,
        interval_seconds: float = 60.0,
        ledger=None,
    ):
        """
        Initialize the refresher.

        Args:
            source: External reference-data collaborator
            store: Snapshot holder read by the request path
            interval_seconds: Delay between refreshes
            ledger: Optional AuditLedger for refresh events
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

        self.source = source
        self.store = store
        self.interval = interval_seconds
        self.ledger = ledger

        self.successes = 0
        self.failures = 0

        self._task: Optional[asyncio.Task] = None
        self._cancel: Optional[asyncio.Event] = None

    async def refresh_once(self) -> bool:
        """Fetch and install one snapshot. Returns True on success."""
        try:
            snapshot = await self.source.fetch_snapshot()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.failures += 1
            logger.error(f"Reference refresh failed, keeping previous snapshot: {e}")
            return False

        self.store.swap(snapshot)
        self.successes += 1

        if self.ledger:
            self.ledger.log_event(
                event_type=EventType.SNAPSHOT_REFRESHED,
                payload={
                    "as_of": snapshot.as_of.isoformat(),
                    "version": self.store.version,
                },
            )
        return True

    async def run(self, cancel_event: asyncio.Event, delay_first: bool = False) -> None:
        """
        Refresh until ``cancel_event`` is set.

        Args:
            cancel_event: Stops the loop when set
            delay_first: Wait one interval before the first fetch
        """
        logger.info(f"Background refresher started (interval={self.interval}s)")

        fetch_now = not delay_first
        while not cancel_event.is_set():
            if fetch_now:
                await self._refresh_unless_cancelled(cancel_event)
                if cancel_event.is_set():
                    break
            fetch_now = True

            try:
                await asyncio.wait_for(cancel_event.wait(), timeout=self.interval)
            except TimeoutError:
                continue

        logger.info("Background refresher stopped")

    async def _refresh_unless_cancelled(self, cancel_event: asyncio.Event) -> None:
        fetch = asyncio.ensure_future(self.refresh_once())
        cancelled = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait({fetch, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (fetch, cancelled):
                if not task.done():
                    task.cancel()
            await asyncio.gather(fetch, cancelled, return_exceptions=True)

    def start(self, delay_first: bool = False) -> asyncio.Task:
        """Start the refresh loop as an owned task."""
        if self._task is not None and not self._task.done():
            return self._task

        self._cancel = asyncio.Event()
        self._task = asyncio.create_task(
            self.run(self._cancel, delay_first=delay_first),
            name="reference-refresher",
        )
        return self._task

    async def stop(self) -> None:
        """Signal cancellation and wait for the loop to exit."""
        if self._task is None:
            return

        self._cancel.set()
        try:
            await self._task
        finally:
            self._task = None
            self._cancel = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
