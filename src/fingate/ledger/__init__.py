"""Ledger module for FinGate - append-only, hash-chained audit trail."""

from fingate.ledger.ledger import AuditLedger
from fingate.ledger.models import LedgerEntry, EventType, ChainValidationResult

__all__ = [
    "AuditLedger",
    "LedgerEntry",
    "EventType",
    "ChainValidationResult",
]
