"""Ledger reconciliation service.

Folds stored inbound bank transactions into the event's gift ledger:
- Reads unreflected inbound transactions of one account and date range
- Skips fingerprints the owning member's ledger already reflects
- Inserts one reconciled ledger entry per remaining fingerprint, as a batch
- Marks every reflected fingerprint on the transaction rows
- Stamps the account's last-scraped time

Per transaction: unseen → stored(unreflected) → stored(reflected). The
transition to reflected is one-way.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import TYPE_CHECKING

from giftbook.schemas.ledger import CreatedSource, GiftMethod, LedgerEntry
from giftbook.schemas.provenance import build_reconciled_memo

if TYPE_CHECKING:
    from giftbook.config import Config
    from giftbook.schemas.transaction import StoredTransaction
    from giftbook.services.access import Membership
    from giftbook.state_store import ScrapeAccountRecord, StateStore

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    """Result of a reconciliation pass."""

    candidates: int = 0
    created: int = 0
    already_reflected: int = 0
    marked: int = 0
    reflected_total: int = 0


class LedgerReconciler:
    """Creates ledger entries for newly seen inbound transfers, exactly once.

    Safe to run repeatedly (idempotent):
    - Transactions already flagged reflected are never read as candidates
    - Fingerprints present in the member's reconciled entries are skipped
    - The store refuses a second reconciled entry for the same
      (member, fingerprint), so concurrent passes cannot double count

    Usage:
        reconciler = LedgerReconciler(state_store, config)
        result = reconciler.reconcile(event_id, account, membership, start, end)
    """

    def __init__(self, state_store: StateStore, config: Config) -> None:
        self.store = state_store
        self.config = config
        self.tz = config.cutoff.tzinfo()
        self.batch_size = config.ingestion.reflect_batch_size

    def reconcile(
        self,
        event_id: str,
        account: ScrapeAccountRecord,
        membership: Membership,
        start_date: date,
        end_date: date,
    ) -> ReconcileResult:
        """Run one reconciliation pass over an account and date range.

        Args:
            event_id: Event whose ledger receives the entries.
            account: Scrape account being reconciled.
            membership: Caller membership; its member owns the new entries.
            start_date: First day of the range (inclusive).
            end_date: Last day of the range (inclusive).

        Returns:
            ReconcileResult with counts.

        Raises:
            StorageError: Any database rejection. Nothing from the ledger
                batch is committed in that case.
        """
        result = ReconcileResult()
        owner_member_id = membership.member_id

        candidates = self.store.list_unreflected_inbound(account.id, start_date, end_date)
        result.candidates = len(candidates)

        reflected = self.store.list_reconciled_fingerprints(owner_member_id)

        new_entries: list[LedgerEntry] = []
        for stored in candidates:
            if stored.fingerprint in reflected:
                result.already_reflected += 1
                continue
            new_entries.append(self._build_entry(event_id, owner_member_id, account, stored))
            # Guards against the same fingerprint twice within one batch
            reflected.add(stored.fingerprint)

        if new_entries:
            result.created = self.store.insert_reconciled_entries(new_entries)
            if result.created < len(new_entries):
                logger.warning(
                    "%d ledger entries were already present for member %s (concurrent run?)",
                    len(new_entries) - result.created,
                    owner_member_id,
                )

        result.marked = self.store.mark_reflected(
            account.id,
            [c.fingerprint for c in candidates],
            batch_size=self.batch_size,
        )
        self.store.touch_last_scraped(account.id)

        result.reflected_total = self.store.count_reflected(account.id, start_date, end_date)

        logger.info(
            "Reconciled account %s %s..%s: %d candidates, %d new entries, %d reflected in range",
            account.id,
            start_date.isoformat(),
            end_date.isoformat(),
            result.candidates,
            result.created,
            result.reflected_total,
        )
        return result

    def _build_entry(
        self,
        event_id: str,
        owner_member_id: str,
        account: ScrapeAccountRecord,
        stored: StoredTransaction,
    ) -> LedgerEntry:
        """Ledger entry for one inbound transaction."""
        tx = stored.transaction
        occurred_at = datetime.combine(tx.tx_date, tx.tx_time or time(0, 0), tzinfo=self.tz)

        return LedgerEntry(
            event_id=event_id,
            owner_member_id=owner_member_id,
            guest_name=tx.counterparty,
            gift_amount=tx.amount,
            gift_method=GiftMethod.QR,
            gift_occurred_at=occurred_at.isoformat(),
            account_label=account.label,
            memo=build_reconciled_memo(stored.fingerprint, tx.memo),
            created_source=CreatedSource.RECONCILED,
            source_fingerprint=stored.fingerprint,
        )
