"""
Schemas for bank transactions, fingerprints and ledger entries.
"""

from .fingerprint import compute_transaction_fingerprint, fingerprint_components
from .ledger import CreatedSource, GiftMethod, LedgerEntry
from .provenance import (
    MEMO_MARKER_PREFIX,
    build_reconciled_memo,
    extract_fingerprint_from_memo,
)
from .transaction import Direction, NormalizedTransaction, StoredTransaction

__all__ = [
    "compute_transaction_fingerprint",
    "fingerprint_components",
    "CreatedSource",
    "GiftMethod",
    "LedgerEntry",
    "MEMO_MARKER_PREFIX",
    "build_reconciled_memo",
    "extract_fingerprint_from_memo",
    "Direction",
    "NormalizedTransaction",
    "StoredTransaction",
]
