"""Fraud Scorer - windowed z-score anomaly detection.

Deterministic and local: given the same series and snapshot the score is
always the same, and no network state is consulted.
"""

import logging
import math
import threading
from typing import Dict, Optional

import numpy as np

from fingate.fraud.models import AnomalySeries, FraudAssessment
from fingate.refdata.store import ReferenceDataStore
from fingate.schema import GatewayRequest


logger = logging.getLogger(__name__)


class FraudScorer:
    """
    Scores transactional requests against each caller's recent history.

    Scoring:
    - magnitude = payload amount converted to base currency
    - fewer than ``min_history`` observations: not anomalous, confidence 0
    - z = |x - mean| / max(std, relative_floor * |mean|, 1e-9)
    - anomalous when z >= z_threshold, confidence = 1 - exp(-z / z_threshold)

    The relative floor keeps a perfectly flat history from turning tiny
    deviations into infinite z-scores.
    """

    def __init__(
        self,
        series_length: int = 50,
        min_history: int = 5,
        z_threshold: float = 3.0,
        relative_floor: float = 0.1,
        reference: Optional[ReferenceDataStore] = None,
    ):
        """
        Initialize the fraud scorer.

        Args:
            series_length: Bound of each caller's AnomalySeries
            min_history: Observations required before anything is flagged
            z_threshold: Deviation (in sigmas) considered anomalous
            relative_floor: Minimum sigma as a fraction of the mean
            reference: Snapshot store used for FX normalisation
        """
        if min_history < 1 or min_history > series_length:
            raise ValueError("min_history must be between 1 and series_length")

        self.series_length = series_length
        self.min_history = min_history
        self.z_threshold = z_threshold
        self.relative_floor = relative_floor
        self.reference = reference

        self._series: Dict[str, AnomalySeries] = {}
        self._registry_lock = threading.Lock()

        logger.info(
            f"Fraud Scorer initialized (window={series_length}, "
            f"min_history={min_history}, z_threshold={z_threshold})"
        )

    def series_for(self, caller_id: str) -> AnomalySeries:
        """Get or create the caller's series."""
        series = self._series.get(caller_id)
        if series is None:
            with self._registry_lock:
                series = self._series.setdefault(caller_id, AnomalySeries(self.series_length))
        return series

    def score(self, request: GatewayRequest, series: Optional[AnomalySeries] = None) -> FraudAssessment:
        """
        Score a transactional request, then append its magnitude to the series.

        Args:
            request: FRAUD_CHECK request, or RISK_ASSESSMENT carrying an amount
            series: History to score against (the caller's own by default)

        Raises:
            ValueError: If the request is not transactional
        """
        if not request.is_transactional:
            raise ValueError(f"{request.operation_type.value} requests are not fraud-scored")

        magnitude = self.magnitude_of(request)
        if magnitude is None:
            logger.warning(f"Request {request.request_id} carries no numeric amount, not scored")
            return FraudAssessment(is_anomalous=False, confidence=0.0, scored=False)

        series = series if series is not None else self.series_for(request.caller_id)

        with series.lock:
            assessment = self.assess(magnitude, series.values())
            series.append(magnitude)

        if assessment.is_anomalous:
            logger.warning(
                f"Anomalous transaction for {request.caller_id}: {magnitude:.2f} "
                f"(z={assessment.z_score:.2f}, confidence={assessment.confidence:.2f})"
            )
        return assessment

    def assess(self, magnitude: float, history: list[float]) -> FraudAssessment:
        """Pure scoring of one magnitude against a history."""
        if len(history) < self.min_history:
            return FraudAssessment(
                is_anomalous=False,
                confidence=0.0,
                magnitude=magnitude,
                observations=len(history),
            )

        values = np.asarray(history, dtype=float)
        mean = float(values.mean())
        sigma = max(float(values.std()), self.relative_floor * abs(mean), 1e-9)
        z = abs(magnitude - mean) / sigma

        is_anomalous = z >= self.z_threshold
        confidence = 1.0 - math.exp(-z / self.z_threshold) if is_anomalous else 0.0

        return FraudAssessment(
            is_anomalous=is_anomalous,
            confidence=min(1.0, confidence),
            magnitude=magnitude,
            z_score=z,
            baseline_mean=mean,
            observations=len(history),
        )

    def magnitude_of(self, request: GatewayRequest) -> Optional[float]:
        """Payload amount converted to the snapshot's base currency."""
        amount = request.amount
        if amount is None:
            return None

        snapshot = self.reference.current if self.reference else None
        if snapshot is None:
            return amount
        return amount * snapshot.fx_rate(request.payload.get("currency"))
