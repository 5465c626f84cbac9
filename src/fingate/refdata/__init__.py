"""Reference data module - market snapshot refresh for FinGate."""

from fingate.refdata.models import ReferenceSnapshot
from fingate.refdata.store import ReferenceDataStore
from fingate.refdata.sources import (
    ReferenceDataSource,
    HttpReferenceSource,
)
from fingate.refdata.refresher import BackgroundRefresher

__all__ = [
    "ReferenceSnapshot",
    "ReferenceDataStore",
    "ReferenceDataSource",
    "HttpReferenceSource",
    "BackgroundRefresher",
]
