"""Reconciliation ledger, import pipeline and service API."""

from .ledger import ReconciliationLedger
from .orchestrator import ImportOrchestrator
from .service import ReconciliationService

__all__ = ["ReconciliationLedger", "ImportOrchestrator", "ReconciliationService"]
