"""Response cache module for FinGate."""

from fingate.cache.models import CacheEntry, CacheLookup
from fingate.cache.store import ResponseCache

__all__ = [
    "CacheEntry",
    "CacheLookup",
    "ResponseCache",
]
