"""
Mock Reference Data

Provides realistic reference snapshots for development and demos when no
reference-data service is configured.
"""

import random
from datetime import datetime, UTC

from fingate.refdata.models import ReferenceSnapshot
from fingate.refdata.sources import ReferenceDataSource


MOCK_FX_RATES = {
    "USD": 1.0,
    "EUR": 1.08,
    "GBP": 1.27,
    "INR": 0.012,
    "JPY": 0.0067,
    "SGD": 0.74,
    "CHF": 1.12,
}

MOCK_INDICATORS = {
    "SPX": 5210.0,
    "VIX": 14.2,
    "US10Y": 4.31,
    "DXY": 104.6,
    "BRENT": 82.4,
}

MOCK_HEADLINES = [
    "Central bank holds rates steady, signals data-dependent path",
    "Credit spreads tighten as issuance picks up",
    "Regional lenders report higher deposit costs",
    "Oil edges higher on supply concerns",
]


def get_default_snapshot() -> ReferenceSnapshot:
    """Static snapshot with the baseline mock values."""
    return ReferenceSnapshot(
        as_of=datetime.now(UTC),
        fx_rates=dict(MOCK_FX_RATES),
        market_indicators=dict(MOCK_INDICATORS),
        headlines=list(MOCK_HEADLINES),
    )


class MockReferenceSource(ReferenceDataSource):
    """Snapshot source that jitters indicators around the mock baseline."""

    def __init__(self, volatility: float = 0.002, seed: int | None = None):
        self.volatility = volatility
        self._random = random.Random(seed)
        self.fetch_count = 0

    async def fetch_snapshot(self) -> ReferenceSnapshot:
        self.fetch_count += 1
        indicators = {
            name: round(value * (1 + self._random.gauss(0, self.volatility)), 4)
            for name, value in MOCK_INDICATORS.items()
        }
        return ReferenceSnapshot(
            as_of=datetime.now(UTC),
            fx_rates=dict(MOCK_FX_RATES),
            market_indicators=indicators,
            headlines=list(MOCK_HEADLINES),
        )
