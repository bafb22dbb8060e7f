"""
Wedding guestbook → bank statement ingestion → gift ledger reconciliation.

A deterministic, idempotent pipeline that takes bank-statement data for a
wedding event, deduplicates it by content fingerprint, and folds inbound
transfers into the event's gift ledger exactly once, until the ceremony ends.
"""

__version__ = "0.1.0"
