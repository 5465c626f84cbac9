"""Fraud scoring models."""

import threading
from collections import deque
from typing import Iterable, List, Optional
from pydantic import BaseModel, Field


class FraudAssessment(BaseModel):
    """Result of scoring one transaction against a caller's history."""

    is_anomalous: bool = Field(description="Deviation reached the z-score threshold")
    confidence: float = Field(ge=0.0, le=1.0, description="Confidence the observation is anomalous")
    magnitude: Optional[float] = Field(default=None, description="Observation in base currency")
    z_score: float = Field(default=0.0, ge=0.0)
    baseline_mean: Optional[float] = Field(default=None)
    observations: int = Field(default=0, ge=0, description="History size used for scoring")
    scored: bool = Field(default=True, description="False when the request carried no magnitude")


class AnomalySeries:
    """
    Bounded FIFO of recent transaction magnitudes for one caller.

    The oldest observation is evicted first once ``maxlen`` is reached.
    ``lock`` serializes score-then-append for the owning caller.
    """

    def __init__(self, maxlen: int, initial: Optional[Iterable[float]] = None):
        if maxlen <= 0:
            raise ValueError("maxlen must be positive")
        self._values = deque(initial or (), maxlen=maxlen)
        self.lock = threading.Lock()

    @property
    def maxlen(self) -> int:
        return self._values.maxlen

    def append(self, value: float) -> None:
        self._values.append(float(value))

    def values(self) -> List[float]:
        return list(self._values)

    def __len__(self) -> int:
        return len(self._values)
