"""Holder for the current reference snapshot."""

import logging
import threading
from typing import Optional

from fingate.refdata.models import ReferenceSnapshot


logger = logging.getLogger(__name__)


class ReferenceDataStore:
    """
    Atomically swappable reference snapshot.

    Readers get whichever complete snapshot is current; a swap never
    exposes a partially updated one.
    """

    def __init__(self, initial: Optional[ReferenceSnapshot] = None):
        self._snapshot = initial
        self._lock = threading.Lock()
        self.version = 0 if initial is None else 1

    @property
    def current(self) -> Optional[ReferenceSnapshot]:
        return self._snapshot

    def swap(self, snapshot: ReferenceSnapshot) -> Optional[ReferenceSnapshot]:
        """Install a new snapshot and return the previous one."""
        with self._lock:
            previous = self._snapshot
            self._snapshot = snapshot
            self.version += 1

        logger.debug(f"Reference snapshot swapped (version {self.version}, as_of {snapshot.as_of})")
        return previous
