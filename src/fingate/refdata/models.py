"""Reference data models."""

from datetime import datetime, UTC
from typing import Dict, List
from pydantic import BaseModel, ConfigDict, Field


class ReferenceSnapshot(BaseModel):
    """
    Point-in-time market and reference data.

    Consumed by prompt construction (indicators, headlines) and the fraud
    scorer (FX normalisation). Replaced wholesale, never mutated.
    """

    model_config = ConfigDict(frozen=True)

    as_of: datetime = Field(default_factory=lambda: datetime.now(UTC))
    base_currency: str = Field(default="USD")
    fx_rates: Dict[str, float] = Field(
        default_factory=dict,
        description="Value of one unit of each currency in base currency",
    )
    market_indicators: Dict[str, float] = Field(default_factory=dict)
    headlines: List[str] = Field(default_factory=list)

    def fx_rate(self, currency: str | None) -> float:
        """Conversion rate to the base currency (1.0 when unknown)."""
        if not currency or currency == self.base_currency:
            return 1.0
        rate = self.fx_rates.get(currency)
        return rate if rate and rate > 0 else 1.0
