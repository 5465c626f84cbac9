"""
Reference Data Sources

Narrow interface over the external reference-data feed. The gateway
never depends on a concrete vendor.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from fingate.refdata.models import ReferenceSnapshot


logger = logging.getLogger(__name__)


class ReferenceDataSource(ABC):
    """External collaborator that produces reference snapshots."""

    @abstractmethod
    async def fetch_snapshot(self) -> ReferenceSnapshot:
        """Fetch the latest snapshot. Raises on failure."""


class HttpReferenceSource(ReferenceDataSource):
    """
    Fetches snapshots from an HTTP reference-data service.

    Expects ``GET {base_url}/reference/snapshot`` to return a
    ReferenceSnapshot JSON document.
    """

    def __init__(self, base_url: str, timeout: float = 5.0, client: Optional[httpx.AsyncClient] = None):
        """
        Initialize the HTTP source.

        Args:
            base_url: Base URL of the reference-data service
            timeout: Per-request timeout in seconds
            client: Optional shared client (a short-lived one is used otherwise)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    async def fetch_snapshot(self) -> ReferenceSnapshot:
        url = f"{self.base_url}/reference/snapshot"
        try:
            if self._client is not None:
                response = await self._client.get(url, timeout=self.timeout)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.get(url, timeout=self.timeout)
            response.raise_for_status()

            snapshot = ReferenceSnapshot(**response.json())
            logger.info(f"Fetched reference snapshot as of {snapshot.as_of.isoformat()}")
            return snapshot

        except httpx.HTTPError as e:
            logger.error(f"Failed to fetch reference snapshot: {e}")
            raise
