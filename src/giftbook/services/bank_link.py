"""Scrape account linking.

A member links the event's bank account in two steps: `start` reserves a
pending ScrapeAccount (reusing the caller's latest one when present), and
`finish` records the verified bank details once the provider handshake
succeeds. `fail` marks an aborted handshake.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from giftbook.errors import MissingFields, StorageError
from giftbook.services.access import MembershipGate
from giftbook.state_store import AccountStatus

if TYPE_CHECKING:
    from giftbook.config import Config
    from giftbook.state_store import ScrapeAccountRecord, StateStore

logger = logging.getLogger(__name__)


@dataclass
class LinkResult:
    """Outcome of a link step."""

    account: ScrapeAccountRecord
    reused: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": True,
            "reused": self.reused,
            "scrapeAccountId": self.account.id,
            "status": self.account.status.value,
            "bankCode": self.account.bank_code,
            "bankName": self.account.bank_name,
            "accountMasked": self.account.account_masked,
            "verifiedAt": self.account.verified_at,
        }


class BankLinkService:
    """ScrapeAccount lifecycle: pending → connected | failed."""

    def __init__(self, state_store: StateStore, config: Config) -> None:
        self.store = state_store
        self.provider = config.ingestion.provider
        self.gate = MembershipGate(state_store)

    def start(self, user_id: str | None, event_id: str, bank_code: str | None = None) -> LinkResult:
        """Begin linking. Reuses the caller's latest account for this provider."""
        self.gate.check(user_id, event_id)

        existing = self.store.find_latest_scrape_account(
            event_id, user_id, self.provider, bank_code=bank_code
        )
        if existing is not None:
            self.store.update_scrape_account(existing.id, AccountStatus.PENDING, bank_code=bank_code)
            logger.info("Reusing scrape account %s for user %s", existing.id, user_id)
            return LinkResult(account=self._reload(existing.id), reused=True)

        account_id = self.store.create_scrape_account(
            event_id, user_id, self.provider, bank_code=bank_code
        )
        logger.info("Created scrape account %s for user %s on event %s", account_id, user_id, event_id)
        return LinkResult(account=self._reload(account_id))

    def finish(
        self,
        user_id: str | None,
        event_id: str,
        scrape_account_id: str,
        bank_code: str,
        account_masked: str,
        bank_name: str | None = None,
    ) -> LinkResult:
        """Record verified bank details and mark the account connected."""
        missing = [
            name
            for name, value in (
                ("scrapeAccountId", scrape_account_id),
                ("bankCode", bank_code),
                ("accountMasked", account_masked),
            )
            if not value
        ]
        if missing:
            raise MissingFields(missing)

        self.gate.check(user_id, event_id, scrape_account_id)
        self.store.update_scrape_account(
            scrape_account_id,
            AccountStatus.CONNECTED,
            bank_code=bank_code,
            bank_name=bank_name,
            account_masked=account_masked,
            verified=True,
        )
        logger.info("Scrape account %s connected (%s %s)", scrape_account_id, bank_code, account_masked)
        return LinkResult(account=self._reload(scrape_account_id))

    def fail(
        self,
        user_id: str | None,
        event_id: str,
        scrape_account_id: str,
        reason: str | None = None,
    ) -> LinkResult:
        """Mark an aborted link attempt."""
        if not scrape_account_id:
            raise MissingFields(["scrapeAccountId"])

        self.gate.check(user_id, event_id, scrape_account_id)
        self.store.update_scrape_account(scrape_account_id, AccountStatus.FAILED)
        logger.warning("Scrape account %s link failed: %s", scrape_account_id, reason or "no reason given")
        return LinkResult(account=self._reload(scrape_account_id))

    def _reload(self, account_id: str) -> ScrapeAccountRecord:
        account = self.store.get_scrape_account(account_id)
        if account is None:
            raise StorageError(f"scrape account {account_id} vanished after write")
        return account
