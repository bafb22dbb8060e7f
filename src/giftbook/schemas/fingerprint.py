"""
Transaction fingerprint generation (CRITICAL).

This module defines THE deterministic dedup key for bank transactions.
This is the ONLY way to generate transaction fingerprints in the system.

Fingerprint format:
    SHA256(account|date|time|direction|amount|balance|memo|counterparty|cp_account)
    rendered as 64 lowercase hex characters.

The fingerprint must be:
- Stable: Same inputs always produce same output
- Scoped: The scrape account is part of the hash, so identical lines on two
  accounts never collide
- Sensitive: Any field difference, including an optional field being absent
  versus present, yields a different fingerprint
"""

import hashlib

from .transaction import NormalizedTransaction, format_amount

# Separator between hashed fields
FIELD_SEPARATOR = "|"

FINGERPRINT_LENGTH = 64


def _clean(value: str | None) -> str:
    """Trim free-text fields; absent becomes empty string."""
    if value is None:
        return ""
    return str(value).strip()


def fingerprint_components(scrape_account_id: str, tx: NormalizedTransaction) -> list[str]:
    """
    The ordered field list that is hashed.

    Exposed separately so the exact hashed content can be logged or audited.
    """
    return [
        str(scrape_account_id),
        tx.tx_date.isoformat(),
        tx.tx_time.isoformat() if tx.tx_time else "",
        tx.direction.value,
        format_amount(tx.amount),
        format_amount(tx.balance),
        _clean(tx.memo),
        _clean(tx.counterparty),
        _clean(tx.counterparty_account),
    ]


def compute_transaction_fingerprint(scrape_account_id: str, tx: NormalizedTransaction) -> str:
    """
    Compute the dedup fingerprint for a transaction.

    Args:
        scrape_account_id: Owning scrape account
        tx: Normalized transaction

    Returns:
        64-character lowercase hex SHA256 digest
    """
    content = FIELD_SEPARATOR.join(fingerprint_components(scrape_account_id, tx))
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def is_fingerprint(value: str | None) -> bool:
    """Check whether a string looks like a transaction fingerprint."""
    if not value or len(value) != FINGERPRINT_LENGTH:
        return False
    return all(c in "0123456789abcdef" for c in value)
