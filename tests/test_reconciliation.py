"""Tests for ledger reconciliation."""

from datetime import date, time
from decimal import Decimal

import pytest

from giftbook.schemas.fingerprint import compute_transaction_fingerprint
from giftbook.schemas.ledger import CreatedSource, GiftMethod, LedgerEntry
from giftbook.schemas.provenance import build_reconciled_memo, extract_fingerprint_from_memo
from giftbook.schemas.transaction import Direction
from giftbook.services.access import MembershipGate
from giftbook.services.reconciliation import LedgerReconciler

DAY = date(2025, 5, 10)


class TestLedgerReconciler:
    """Tests for folding stored transactions into the ledger."""

    @pytest.fixture
    def membership(self, store, seeded):
        return MembershipGate(store).check(seeded["user_id"], seeded["event_id"], seeded["account_id"])

    @pytest.fixture
    def reconciler(self, store, config):
        return LedgerReconciler(store, config)

    @pytest.fixture
    def stored(self, store, seeded):
        """Upsert transactions and return their fingerprints."""

        def _stored(*txs):
            items = [(compute_transaction_fingerprint(seeded["account_id"], tx), tx) for tx in txs]
            store.upsert_transactions(seeded["event_id"], seeded["account_id"], items)
            return [fp for fp, _ in items]

        return _stored

    def _run(self, reconciler, seeded, membership, start=DAY, end=DAY):
        return reconciler.reconcile(seeded["event_id"], membership.account, membership, start, end)

    def test_creates_entry_per_inbound(self, reconciler, store, seeded, membership, stored, make_tx):
        [fp] = stored(make_tx(amount="100000", memo="축하합니다", counterparty="김철수", tx_time=time(12, 15, 3)))

        result = self._run(reconciler, seeded, membership)

        assert result.created == 1
        assert result.reflected_total == 1
        [entry] = store.list_ledger_entries(seeded["event_id"])
        assert entry.owner_member_id == seeded["member_id"]
        assert entry.created_source == CreatedSource.RECONCILED
        assert entry.gift_method == GiftMethod.QR
        assert entry.gift_amount == Decimal("100000")
        assert entry.guest_name == "김철수"
        assert entry.account_label == "국민은행 123-***-456"
        assert entry.gift_occurred_at == "2025-05-10T12:15:03+09:00"
        assert entry.source_fingerprint == fp
        assert entry.memo == build_reconciled_memo(fp, "축하합니다")
        assert extract_fingerprint_from_memo(entry.memo) == fp

    def test_missing_time_is_midnight(self, reconciler, store, seeded, membership, stored, make_tx):
        stored(make_tx())
        self._run(reconciler, seeded, membership)
        [entry] = store.list_ledger_entries(seeded["event_id"])
        assert entry.gift_occurred_at == "2025-05-10T00:00:00+09:00"

    def test_outbound_and_zero_never_ledgered(self, reconciler, store, seeded, membership, stored, make_tx):
        stored(make_tx(direction=Direction.OUT), make_tx(amount="0", memo="zero"))

        for _ in range(3):
            result = self._run(reconciler, seeded, membership)
            assert result.created == 0

        assert store.list_ledger_entries(seeded["event_id"]) == []

    def test_repeated_runs_create_once(self, reconciler, store, seeded, membership, stored, make_tx):
        stored(make_tx(memo="a"), make_tx(memo="b"))

        first = self._run(reconciler, seeded, membership)
        second = self._run(reconciler, seeded, membership)

        assert first.created == 2
        assert second.created == 0
        assert second.candidates == 0
        assert second.reflected_total == 2
        assert len(store.list_ledger_entries(seeded["event_id"])) == 2

    def test_already_in_ledger_is_marked_not_duplicated(
        self, reconciler, store, seeded, membership, stored, make_tx
    ):
        [fp] = stored(make_tx())
        # Entry exists but the flag update never happened (interrupted run)
        store.insert_reconciled_entries(
            [
                LedgerEntry(
                    event_id=seeded["event_id"],
                    owner_member_id=seeded["member_id"],
                    gift_amount=Decimal("50000"),
                    gift_method=GiftMethod.QR,
                    created_source=CreatedSource.RECONCILED,
                    memo=build_reconciled_memo(fp),
                    source_fingerprint=fp,
                )
            ]
        )

        result = self._run(reconciler, seeded, membership)

        assert result.created == 0
        assert result.already_reflected == 1
        assert result.marked == 1
        assert store.get_transaction(seeded["account_id"], fp).is_reflected is True
        assert len(store.list_ledger_entries(seeded["event_id"])) == 1

    def test_legacy_memo_marker_counts_as_reflected(
        self, reconciler, store, seeded, membership, stored, make_tx
    ):
        [fp] = stored(make_tx())
        conn = store._get_connection()
        try:
            conn.execute(
                """
                INSERT INTO ledger_entries
                (event_id, owner_member_id, gift_amount, gift_method, memo, created_source, created_at)
                VALUES (?, ?, '50000.00', 'qr', ?, 'reconciled', '2025-05-10T00:00:00Z')
            """,
                (seeded["event_id"], seeded["member_id"], build_reconciled_memo(fp)),
            )
            conn.commit()
        finally:
            conn.close()

        result = self._run(reconciler, seeded, membership)
        assert result.created == 0
        assert len(store.list_ledger_entries(seeded["event_id"])) == 1

    def test_range_limits_candidates(self, reconciler, store, seeded, membership, stored, make_tx):
        stored(make_tx(day=date(2025, 5, 9)), make_tx(day=DAY), make_tx(day=date(2025, 5, 11)))

        result = self._run(reconciler, seeded, membership)

        assert result.created == 1
        assert result.reflected_total == 1

    def test_batches_larger_than_batch_size(self, reconciler, store, seeded, membership, stored, make_tx):
        # config fixture uses reflect_batch_size=2
        stored(*[make_tx(memo=f"guest {i}") for i in range(5)])

        result = self._run(reconciler, seeded, membership)

        assert result.created == 5
        assert result.marked == 5
        assert result.reflected_total == 5

    def test_updates_last_scraped(self, reconciler, store, seeded, membership):
        self._run(reconciler, seeded, membership)
        assert store.get_scrape_account(seeded["account_id"]).last_scraped_at is not None
