"""
Canonical bank-statement transaction records.

A NormalizedTransaction is what every upstream format is reduced to before
fingerprinting. Amounts are always non-negative magnitudes; the sign lives in
the direction.
"""

import json
import sqlite3
from dataclasses import dataclass, field
from datetime import date, time
from decimal import Decimal
from enum import Enum
from typing import Any


class Direction(str, Enum):
    """Money flow relative to the linked account."""

    IN = "IN"
    OUT = "OUT"


def format_amount(amount: Decimal | None) -> str:
    """
    Render an amount for storage and hashing.

    Whole won and cent values get two decimals ("1000" -> "1000.00"). Finer
    fractions are kept in full, never rounded ("1000.001" -> "1000.001").
    """
    if amount is None:
        return ""
    normalized = amount.normalize()
    if normalized.as_tuple().exponent >= -2:
        return f"{amount:.2f}"
    return format(normalized, "f")


@dataclass
class NormalizedTransaction:
    """A single bank-statement line."""

    tx_date: date
    amount: Decimal
    direction: Direction = Direction.IN
    tx_time: time | None = None
    balance: Decimal | None = None
    memo: str | None = None
    counterparty: str | None = None
    counterparty_account: str | None = None
    raw: dict[str, Any] | None = field(default=None, compare=False)

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-compatible dictionary."""
        return {
            "tx_date": self.tx_date.isoformat(),
            "tx_time": self.tx_time.isoformat() if self.tx_time else None,
            "amount": format_amount(self.amount),
            "direction": self.direction.value,
            "balance": format_amount(self.balance) if self.balance is not None else None,
            "memo": self.memo,
            "counterparty": self.counterparty,
            "counterparty_account": self.counterparty_account,
        }


@dataclass
class StoredTransaction:
    """A persisted transaction row."""

    id: int
    event_id: str
    scrape_account_id: str
    fingerprint: str
    transaction: NormalizedTransaction
    is_reflected: bool
    created_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "StoredTransaction":
        """Create from database row."""
        raw = json.loads(row["raw_json"]) if row["raw_json"] else None
        tx = NormalizedTransaction(
            tx_date=date.fromisoformat(row["tx_date"]),
            tx_time=time.fromisoformat(row["tx_time"]) if row["tx_time"] else None,
            amount=Decimal(row["amount"]),
            direction=Direction(row["direction"]),
            balance=Decimal(row["balance"]) if row["balance"] is not None else None,
            memo=row["memo"],
            counterparty=row["counterparty"],
            counterparty_account=row["counterparty_account"],
            raw=raw,
        )
        return cls(
            id=row["id"],
            event_id=row["event_id"],
            scrape_account_id=row["scrape_account_id"],
            fingerprint=row["fingerprint"],
            transaction=tx,
            is_reflected=bool(row["is_reflected"]),
            created_at=row["created_at"],
        )
