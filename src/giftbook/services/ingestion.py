"""Ingestion pipeline orchestrator.

One request runs the stages strictly in sequence:

    Membership Gate → Cutoff Guard → Normalizer → Fingerprinter
                    → Transaction Store (upsert) → Ledger Reconciler

Input and authorization failures happen before any side effect. A storage
failure aborts the request; retrying is safe because every write is
idempotent.
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from giftbook.errors import (
    AccountMismatch,
    InvalidDate,
    InvalidInput,
    MissingFields,
    StorageError,
)
from giftbook.normalizer import TransactionNormalizer
from giftbook.schemas.fingerprint import compute_transaction_fingerprint
from giftbook.services.access import MembershipGate
from giftbook.services.cutoff import CutoffGuard
from giftbook.services.reconciliation import LedgerReconciler

if TYPE_CHECKING:
    from giftbook.config import Config
    from giftbook.state_store import StateStore

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("eventId", "scrapeAccountId", "startDate", "endDate")
PROVIDER_PAYLOAD_KEYS = ("providerOutput", "cooconOutput")

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

RUN_COMPLETED = "COMPLETED"
RUN_FAILED = "FAILED"


def parse_request_date(name: str, value: Any) -> date:
    """Parse a strict YYYY-MM-DD calendar date or raise InvalidDate."""
    text = str(value).strip()
    if not _ISO_DATE.match(text):
        raise InvalidDate(f"{name} must be YYYY-MM-DD, got {value!r}")
    try:
        return date.fromisoformat(text)
    except ValueError:
        raise InvalidDate(f"{name} is not a calendar date: {value!r}") from None


@dataclass
class IngestionRequest:
    """A validated ingestion request."""

    event_id: str
    scrape_account_id: str
    start_date: date
    end_date: date
    transactions: list[Any] | None = None
    provider_payload: Any = None

    @classmethod
    def from_payload(cls, payload: Any) -> IngestionRequest:
        """Validate a JSON request body.

        Raises:
            InvalidInput: Body is not a JSON object or transactions is not a list.
            MissingFields: A required field is absent or empty.
            InvalidDate: A date is malformed or start is after end.
        """
        if not isinstance(payload, dict):
            raise InvalidInput("Request body must be a JSON object")

        missing = [name for name in REQUIRED_FIELDS if payload.get(name) in (None, "")]
        if missing:
            raise MissingFields(missing)

        start = parse_request_date("startDate", payload["startDate"])
        end = parse_request_date("endDate", payload["endDate"])
        if start > end:
            raise InvalidDate("startDate must not be after endDate")

        transactions = payload.get("transactions")
        if transactions is not None and not isinstance(transactions, list):
            raise InvalidInput("transactions must be a list")

        provider_payload = None
        for key in PROVIDER_PAYLOAD_KEYS:
            if payload.get(key) is not None:
                provider_payload = payload[key]
                break

        return cls(
            event_id=str(payload["eventId"]),
            scrape_account_id=str(payload["scrapeAccountId"]),
            start_date=start,
            end_date=end,
            transactions=transactions,
            provider_payload=provider_payload,
        )


@dataclass
class IngestionResult:
    """Counts reported back to the caller."""

    start_date: date
    end_date: date
    fetched: int = 0
    skipped: int = 0
    inserted_tx: int = 0
    reflected_ledger_new: int = 0
    reflected_ledger_total: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": True,
            "fetched": self.fetched,
            "insertedTx": self.inserted_tx,
            "reflectedLedgerNew": self.reflected_ledger_new,
            "reflectedLedgerTotal": self.reflected_ledger_total,
            "skipped": self.skipped,
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
        }


class IngestionService:
    """Runs the ingestion pipeline for one request at a time.

    Usage:
        service = IngestionService(state_store, config)
        result = service.ingest(user_id, IngestionRequest.from_payload(body))
    """

    def __init__(
        self,
        state_store: StateStore,
        config: Config,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = state_store
        self.config = config
        self.gate = MembershipGate(state_store)
        self.cutoff = CutoffGuard(state_store, config, clock=clock)
        self.normalizer = TransactionNormalizer(keep_raw=config.ingestion.keep_raw_payload)
        self.reconciler = LedgerReconciler(state_store, config)

    def ingest(self, user_id: str | None, request: IngestionRequest) -> IngestionResult:
        """Run the full pipeline.

        Raises:
            Unauthorized, Forbidden, AccountMismatch: Gate refused the caller.
            Locked: The ceremony cutoff has passed.
            StorageError: The store rejected a write. The failure is recorded
                in the ingestion run trail before re-raising.
        """
        membership = self.gate.check(user_id, request.event_id, request.scrape_account_id)
        account = membership.account
        if account is None:
            raise AccountMismatch("Scrape account does not belong to this caller and event")

        self.cutoff.ensure_open(request.event_id)

        started = time.time()
        result = IngestionResult(start_date=request.start_date, end_date=request.end_date)

        normalized = self.normalizer.normalize(
            transactions=request.transactions,
            raw_payload=request.provider_payload,
        )
        result.fetched = len(normalized.transactions)
        result.skipped = normalized.skipped
        logger.info(
            "Normalized %d transactions (%d skipped) from %s input for account %s",
            result.fetched,
            result.skipped,
            normalized.source,
            account.id,
        )

        items = [
            (compute_transaction_fingerprint(account.id, tx), tx)
            for tx in normalized.transactions
        ]

        try:
            result.inserted_tx = self.store.upsert_transactions(request.event_id, account.id, items)
            reconciled = self.reconciler.reconcile(
                request.event_id,
                account,
                membership,
                request.start_date,
                request.end_date,
            )
        except StorageError as e:
            self._record_run(user_id, request, result, started, RUN_FAILED, error=e.detail)
            raise

        result.reflected_ledger_new = reconciled.created
        result.reflected_ledger_total = reconciled.reflected_total

        self._record_run(user_id, request, result, started, RUN_COMPLETED)
        logger.info(
            "Ingestion for account %s: fetched=%d inserted=%d ledger_new=%d ledger_total=%d",
            account.id,
            result.fetched,
            result.inserted_tx,
            result.reflected_ledger_new,
            result.reflected_ledger_total,
        )
        return result

    def _record_run(
        self,
        user_id: str | None,
        request: IngestionRequest,
        result: IngestionResult,
        started: float,
        status: str,
        error: str | None = None,
    ) -> None:
        duration_ms = int((time.time() - started) * 1000)
        try:
            self.store.record_ingestion_run(
                event_id=request.event_id,
                scrape_account_id=request.scrape_account_id,
                user_id=user_id or "",
                start_date=request.start_date.isoformat(),
                end_date=request.end_date.isoformat(),
                status=status,
                fetched=result.fetched,
                skipped=result.skipped,
                inserted_tx=result.inserted_tx,
                ledger_created=result.reflected_ledger_new,
                ledger_total=result.reflected_ledger_total,
                error_message=error,
                duration_ms=duration_ms,
            )
        except StorageError as e:
            # The audit row must never mask the request outcome
            logger.error("Failed to record ingestion run: %s", e.detail)
