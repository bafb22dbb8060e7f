"""Tests for the ingestion pipeline orchestrator."""

import json
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from giftbook.errors import (
    AccountMismatch,
    Forbidden,
    InvalidDate,
    InvalidInput,
    Locked,
    MissingFields,
    StorageError,
    Unauthorized,
)
from giftbook.schemas.fingerprint import compute_transaction_fingerprint
from giftbook.services.access import Membership
from giftbook.services.ingestion import IngestionRequest, IngestionService

KST = timezone(timedelta(hours=9))


def _body(seeded, **overrides):
    body = {
        "eventId": seeded["event_id"],
        "scrapeAccountId": seeded["account_id"],
        "startDate": "2025-05-10",
        "endDate": "2025-05-10",
    }
    body.update(overrides)
    return body


class TestIngestionRequest:
    """Tests for request validation."""

    def test_valid(self, seeded):
        request = IngestionRequest.from_payload(_body(seeded, transactions=[]))
        assert request.start_date == date(2025, 5, 10)
        assert request.transactions == []
        assert request.provider_payload is None

    def test_missing_fields(self):
        with pytest.raises(MissingFields) as exc_info:
            IngestionRequest.from_payload({"eventId": "e", "startDate": ""})
        assert exc_info.value.fields == ["scrapeAccountId", "startDate", "endDate"]
        assert exc_info.value.status == 400
        assert exc_info.value.to_dict()["error"] == "missing_fields"

    @pytest.mark.parametrize("value", ["2025-02-30", "20250510", "2025-5-1", "yesterday"])
    def test_invalid_date(self, seeded, value):
        with pytest.raises(InvalidDate):
            IngestionRequest.from_payload(_body(seeded, startDate=value))

    def test_reversed_range(self, seeded):
        with pytest.raises(InvalidDate):
            IngestionRequest.from_payload(_body(seeded, startDate="2025-05-11"))

    def test_not_an_object(self):
        with pytest.raises(InvalidInput):
            IngestionRequest.from_payload(["eventId"])

    def test_transactions_must_be_list(self, seeded):
        with pytest.raises(InvalidInput):
            IngestionRequest.from_payload(_body(seeded, transactions={"a": 1}))

    @pytest.mark.parametrize("key", ["providerOutput", "cooconOutput"])
    def test_provider_payload_keys(self, seeded, key):
        request = IngestionRequest.from_payload(_body(seeded, **{key: {"rows": []}}))
        assert request.provider_payload == {"rows": []}


class TestIngestionService:
    """End-to-end pipeline tests against a temporary store."""

    @pytest.fixture
    def service(self, store, config, before_cutoff):
        return IngestionService(store, config, clock=before_cutoff)

    def _ingest(self, service, seeded, user_id=None, **overrides):
        request = IngestionRequest.from_payload(_body(seeded, **overrides))
        return service.ingest(user_id or seeded["user_id"], request)

    def test_provider_payload(self, service, store, seeded, sample_provider_output):
        result = self._ingest(service, seeded, providerOutput=sample_provider_output)

        assert result.fetched == 3
        assert result.inserted_tx == 3
        # The withdrawal is stored but never ledgered
        assert result.reflected_ledger_new == 2
        assert result.reflected_ledger_total == 2
        assert result.to_dict() == {
            "ok": True,
            "fetched": 3,
            "insertedTx": 3,
            "reflectedLedgerNew": 2,
            "reflectedLedgerTotal": 2,
            "skipped": 0,
            "startDate": "2025-05-10",
            "endDate": "2025-05-10",
        }
        guests = sorted(e.guest_name for e in store.list_ledger_entries(seeded["event_id"]))
        assert guests == ["김철수", "이영희"]

    def test_resubmission_is_idempotent(self, service, store, seeded, sample_provider_output):
        self._ingest(service, seeded, cooconOutput=sample_provider_output)
        second = self._ingest(service, seeded, cooconOutput=sample_provider_output)

        assert second.inserted_tx == 0
        assert second.reflected_ledger_new == 0
        assert second.reflected_ledger_total == 2
        assert len(store.list_ledger_entries(seeded["event_id"])) == 2

    def test_five_rows_twice_in_january(self, store, config, seeded):
        store.set_event_settings(seeded["event_id"], "2026-03-01", "12:00", "18:00")
        clock = lambda: datetime(2026, 2, 1, 9, 0, tzinfo=KST)  # noqa: E731
        service = IngestionService(store, config, clock=clock)
        rows = [
            {"date": f"2026-01-{day:02d}", "amount": "50000", "counterparty": f"guest {day}"}
            for day in (1, 5, 12, 20, 31)
        ]
        range_ = {"startDate": "2026-01-01", "endDate": "2026-01-31"}

        first = self._ingest(service, seeded, transactions=rows, **range_)
        second = self._ingest(service, seeded, transactions=rows, **range_)

        assert (first.inserted_tx, first.reflected_ledger_new) == (5, 5)
        assert (second.inserted_tx, second.reflected_ledger_new, second.reflected_ledger_total) == (
            0,
            0,
            5,
        )

    def test_memo_distinguishes_otherwise_identical_rows(self, service, store, seeded):
        payload = {
            "Result": {
                "ResultList": [
                    {"TRN_DT": "20250510", "TRN_TM": "120000", "입금액": "50000", "입금자명": "박"},
                    {
                        "TRN_DT": "20250510",
                        "TRN_TM": "120000",
                        "입금액": "50000",
                        "입금자명": "박",
                        "적요": "축하합니다",
                    },
                ]
            }
        }
        result = self._ingest(service, seeded, providerOutput=payload)

        assert result.inserted_tx == 2
        assert result.reflected_ledger_new == 2
        fingerprints = {e.source_fingerprint for e in store.list_ledger_entries(seeded["event_id"])}
        assert len(fingerprints) == 2

    def test_skipped_rows_reported(self, service, seeded):
        rows = [{"date": "2025-05-10", "amount": "1000"}, {"amount": "1000"}, {"date": "bad"}]
        result = self._ingest(service, seeded, transactions=rows)
        assert result.fetched == 1
        assert result.skipped == 2

    def test_non_finite_amount_does_not_poison_account(self, service, store, seeded):
        rows = json.loads('[{"tx_date": "2025-05-10", "amount": NaN}, {"tx_date": "2025-05-10", "amount": Infinity}]')
        first = self._ingest(service, seeded, transactions=rows)
        assert first.fetched == 0
        assert first.skipped == 2

        second = self._ingest(service, seeded, transactions=[{"tx_date": "2025-05-10", "amount": 50000}])
        assert second.inserted_tx == 1
        assert second.reflected_ledger_new == 1
        amounts = [e.gift_amount for e in store.list_ledger_entries(seeded["event_id"])]
        assert amounts == [Decimal("50000")]

    def test_no_data_still_reconciles(self, service, store, seeded, make_tx):
        # Stored earlier but never reflected (e.g. a run that failed after the upsert)
        tx = make_tx()
        fp = compute_transaction_fingerprint(seeded["account_id"], tx)
        store.upsert_transactions(seeded["event_id"], seeded["account_id"], [(fp, tx)])

        result = self._ingest(service, seeded)

        assert result.fetched == 0
        assert result.reflected_ledger_new == 1

    def test_outbound_never_ledgered(self, service, store, seeded):
        rows = [{"date": "2025-05-10", "amount": "30000", "direction": "OUT"}]
        for _ in range(3):
            result = self._ingest(service, seeded, transactions=rows)
            assert result.reflected_ledger_new == 0
        assert store.list_ledger_entries(seeded["event_id"]) == []

    def test_locked_makes_no_mutation(self, store, config, seeded, after_cutoff, sample_provider_output):
        service = IngestionService(store, config, clock=after_cutoff)
        before = store.get_stats()

        with pytest.raises(Locked):
            self._ingest(service, seeded, providerOutput=sample_provider_output)

        assert store.get_stats() == before
        assert store.list_ingestion_runs() == []
        assert store.get_scrape_account(seeded["account_id"]).last_scraped_at is None

    def test_non_member_rejected_before_side_effects(self, service, store, seeded, sample_provider_output):
        with pytest.raises(Forbidden):
            self._ingest(service, seeded, user_id="stranger", providerOutput=sample_provider_output)
        assert store.get_stats()["transactions_total"] == 0

    def test_other_members_account_rejected(self, service, seeded):
        with pytest.raises(AccountMismatch):
            self._ingest(service, seeded, user_id=seeded["other_user_id"])

    def test_membership_without_account_rejected(self, service, store, seeded, monkeypatch):
        member = store.get_member(seeded["event_id"], seeded["user_id"])
        monkeypatch.setattr(service.gate, "check", lambda *args: Membership(member=member))
        with pytest.raises(AccountMismatch):
            self._ingest(service, seeded)
        assert store.list_ingestion_runs() == []

    def test_no_identity(self, service, seeded):
        request = IngestionRequest.from_payload(_body(seeded))
        with pytest.raises(Unauthorized):
            service.ingest(None, request)

    def test_run_recorded(self, service, store, seeded, sample_provider_output):
        self._ingest(service, seeded, providerOutput=sample_provider_output)
        [run] = store.list_ingestion_runs(seeded["account_id"])
        assert run.status == "COMPLETED"
        assert (run.fetched, run.inserted_tx, run.ledger_created, run.ledger_total) == (3, 3, 2, 2)
        assert run.duration_ms is not None

    def test_storage_failure_recorded_and_raised(self, service, store, seeded, monkeypatch, make_tx):
        def broken_upsert(*args, **kwargs):
            raise StorageError("disk I/O error")

        monkeypatch.setattr(store, "upsert_transactions", broken_upsert)

        with pytest.raises(StorageError):
            self._ingest(service, seeded, transactions=[{"date": "2025-05-10", "amount": "1"}])

        [run] = store.list_ingestion_runs(seeded["account_id"])
        assert run.status == "FAILED"
        assert run.error_message == "disk I/O error"
