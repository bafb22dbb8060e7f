"""
Pipeline services.

- access: event membership gate
- cutoff: ceremony-end lock
- reconciliation: stored transactions → gift ledger
- ingestion: end-to-end orchestrator
- bank_link: scrape account lifecycle
- ledger_summary: report figures
"""

from .access import Membership, MembershipGate
from .bank_link import BankLinkService, LinkResult
from .cutoff import CutoffGuard, compute_cutoff
from .ingestion import IngestionRequest, IngestionResult, IngestionService
from .ledger_summary import LedgerSummary, summarize_ledger
from .reconciliation import LedgerReconciler, ReconcileResult

__all__ = [
    "Membership",
    "MembershipGate",
    "BankLinkService",
    "LinkResult",
    "CutoffGuard",
    "compute_cutoff",
    "IngestionRequest",
    "IngestionResult",
    "IngestionService",
    "LedgerSummary",
    "summarize_ledger",
    "LedgerReconciler",
    "ReconcileResult",
]
