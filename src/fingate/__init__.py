"""FinGate - AI-request orchestration gateway for financial analysis."""

__version__ = "0.3.0"
