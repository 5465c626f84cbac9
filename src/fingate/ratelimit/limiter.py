"""Sliding-window rate limiter partitioned by caller."""

import logging
import threading
from collections import deque
from datetime import datetime, timedelta, UTC
from typing import Callable, Deque, Dict

from fingate.ratelimit.models import AdmitDecision, RateBudget


logger = logging.getLogger(__name__)


class _CallerWindow:
    """Admission log for one caller. Guarded by its own lock."""

    __slots__ = ("lock", "admitted")

    def __init__(self):
        self.lock = threading.Lock()
        self.admitted: Deque[datetime] = deque()


class RateLimiter:
    """
    Per-caller sliding-window rate limiter.

    Each caller keeps a log of admission timestamps. A request is admitted
    only if fewer than ``limit`` admissions fall inside the trailing
    ``window``, so no window of that length ever holds more than ``limit``
    admitted requests. Rejected requests are not recorded.

    Locks are partitioned by caller; distinct callers never contend.
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ):
        """
        Initialize the rate limiter.

        Args:
            limit: Maximum admissions per window
            window_seconds: Window length in seconds
            clock: Time source (injectable for tests)
        """
        if limit <= 0:
            raise ValueError("limit must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.limit = limit
        self.window = timedelta(seconds=window_seconds)
        self._clock = clock
        self._windows: Dict[str, _CallerWindow] = {}
        self._registry_lock = threading.Lock()

        logger.info(f"Rate Limiter initialized ({limit} per {window_seconds}s)")

    def admit(self, caller_id: str) -> AdmitDecision:
        """Check and consume one unit of the caller's budget atomically."""
        caller_window = self._window_for(caller_id)

        with caller_window.lock:
            now = self._clock()
            self._prune(caller_window, now)

            if len(caller_window.admitted) >= self.limit:
                oldest = caller_window.admitted[0]
                retry_after = max(0.0, (oldest + self.window - now).total_seconds())
                logger.warning(
                    f"Rate limit reached for {caller_id} "
                    f"({self.limit}/{self.window.total_seconds()}s), retry in {retry_after:.2f}s"
                )
                return AdmitDecision(
                    allowed=False,
                    caller_id=caller_id,
                    retry_after_seconds=retry_after,
                    remaining=0,
                )

            caller_window.admitted.append(now)
            return AdmitDecision(
                allowed=True,
                caller_id=caller_id,
                remaining=self.limit - len(caller_window.admitted),
            )

    def budget(self, caller_id: str) -> RateBudget:
        """Current budget snapshot for a caller."""
        caller_window = self._window_for(caller_id)
        with caller_window.lock:
            self._prune(caller_window, self._clock())
            return RateBudget(
                caller_id=caller_id,
                window_start=caller_window.admitted[0] if caller_window.admitted else None,
                count=len(caller_window.admitted),
                limit=self.limit,
            )

    def reset(self, caller_id: str) -> None:
        """Forget a caller's admission history."""
        with self._registry_lock:
            self._windows.pop(caller_id, None)

    def _window_for(self, caller_id: str) -> _CallerWindow:
        caller_window = self._windows.get(caller_id)
        if caller_window is None:
            with self._registry_lock:
                caller_window = self._windows.setdefault(caller_id, _CallerWindow())
        return caller_window

    def _prune(self, caller_window: _CallerWindow, now: datetime) -> None:
        cutoff = now - self.window
        while caller_window.admitted and caller_window.admitted[0] <= cutoff:
            caller_window.admitted.popleft()
