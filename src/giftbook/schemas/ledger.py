"""
Gift ledger records.
"""

import sqlite3
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


class CreatedSource(str, Enum):
    """Who created a ledger entry."""

    MANUAL = "manual"
    RECONCILED = "reconciled"


class GiftMethod(str, Enum):
    """How the gift was given."""

    QR = "qr"  # Bank transfer via the event's QR account
    CASH = "cash"
    UNKNOWN = "unknown"


@dataclass
class LedgerEntry:
    """One row of the event's gift/attendance ledger."""

    event_id: str
    owner_member_id: str
    gift_amount: Decimal | None
    gift_method: GiftMethod
    created_source: CreatedSource
    guest_name: str | None = None
    gift_occurred_at: str | None = None  # ISO timestamp with offset
    account_label: str | None = None
    memo: str | None = None
    source_fingerprint: str | None = None
    id: int | None = None
    created_at: str | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "LedgerEntry":
        """Create from database row."""
        return cls(
            id=row["id"],
            event_id=row["event_id"],
            owner_member_id=row["owner_member_id"],
            guest_name=row["guest_name"],
            gift_amount=Decimal(row["gift_amount"]) if row["gift_amount"] is not None else None,
            gift_method=GiftMethod(row["gift_method"]),
            gift_occurred_at=row["gift_occurred_at"],
            account_label=row["account_label"],
            memo=row["memo"],
            created_source=CreatedSource(row["created_source"]),
            source_fingerprint=row["source_fingerprint"],
            created_at=row["created_at"],
        )
