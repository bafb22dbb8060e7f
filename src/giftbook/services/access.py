"""Event membership gate.

The only authorization this system performs: the caller must be a member of
the event, and a referenced scrape account must belong to both the caller
and the event. Pure precondition check, no side effects.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from giftbook.errors import AccountMismatch, Forbidden, Unauthorized

if TYPE_CHECKING:
    from giftbook.state_store import MemberRecord, ScrapeAccountRecord, StateStore

logger = logging.getLogger(__name__)


@dataclass
class Membership:
    """Resolved caller membership, optionally with the account it may act on."""

    member: MemberRecord
    account: ScrapeAccountRecord | None = None

    @property
    def member_id(self) -> str:
        return self.member.id

    @property
    def side(self) -> str | None:
        """Which side of the guest list the caller represents."""
        return self.member.side


class MembershipGate:
    """Verifies that a caller may act on an event (and one of its accounts)."""

    def __init__(self, state_store: StateStore) -> None:
        self.store = state_store

    def check(
        self,
        user_id: str | None,
        event_id: str,
        scrape_account_id: str | None = None,
    ) -> Membership:
        """Resolve the caller's membership or refuse.

        Args:
            user_id: Caller identity resolved from the bearer credential.
            event_id: Event being acted on.
            scrape_account_id: Optional account that must be owned by the
                caller and belong to the event.

        Returns:
            Membership of the caller.

        Raises:
            Unauthorized: No caller identity.
            Forbidden: Caller is not a member of the event.
            AccountMismatch: Account unknown or not owned by caller and event.
        """
        if not user_id:
            raise Unauthorized("Caller identity could not be established")

        member = self.store.get_member(event_id, user_id)
        if member is None:
            logger.info("User %s is not a member of event %s", user_id, event_id)
            raise Forbidden("Not a member of this event")

        if scrape_account_id is None:
            return Membership(member=member)

        account = self.store.get_scrape_account(scrape_account_id)
        if account is None or account.owner_user_id != user_id or account.event_id != event_id:
            logger.info(
                "Scrape account %s rejected for user %s on event %s",
                scrape_account_id,
                user_id,
                event_id,
            )
            raise AccountMismatch("Scrape account does not belong to this caller and event")

        return Membership(member=member, account=account)
