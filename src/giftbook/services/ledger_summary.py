"""Ledger report figures."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from giftbook.schemas.ledger import CreatedSource, GiftMethod, LedgerEntry
from giftbook.schemas.transaction import format_amount


def is_qr_gift(entry: LedgerEntry) -> bool:
    """QR gifts are bank transfers: recorded as qr or created by reconciliation."""
    return entry.gift_method == GiftMethod.QR or entry.created_source == CreatedSource.RECONCILED


@dataclass
class LedgerSummary:
    """Totals shown on the event's result report."""

    total_amount: Decimal = Decimal("0")
    qr_amount: Decimal = Decimal("0")
    total_entries: int = 0
    qr_entries: int = 0
    reconciled_entries: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalAmount": format_amount(self.total_amount),
            "qrAmount": format_amount(self.qr_amount),
            "totalEntries": self.total_entries,
            "qrEntries": self.qr_entries,
            "reconciledEntries": self.reconciled_entries,
        }


def summarize_ledger(entries: list[LedgerEntry]) -> LedgerSummary:
    """Aggregate ledger entries; entries without an amount count as zero."""
    summary = LedgerSummary()
    for entry in entries:
        amount = entry.gift_amount or Decimal("0")
        summary.total_entries += 1
        summary.total_amount += amount
        if is_qr_gift(entry):
            summary.qr_entries += 1
            summary.qr_amount += amount
        if entry.created_source == CreatedSource.RECONCILED:
            summary.reconciled_entries += 1
    return summary
