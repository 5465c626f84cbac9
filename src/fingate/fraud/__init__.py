"""Fraud scoring module for FinGate."""

from fingate.fraud.models import AnomalySeries, FraudAssessment
from fingate.fraud.scorer import FraudScorer

__all__ = [
    "AnomalySeries",
    "FraudAssessment",
    "FraudScorer",
]
