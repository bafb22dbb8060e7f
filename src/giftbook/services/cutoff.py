"""Ceremony cutoff guard.

Once the ceremony ends the gift ledger freezes so the final report stays an
accurate record. The cutoff instant is the ceremony date plus end time,
interpreted in one fixed civil timezone.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date, datetime, time, timezone, tzinfo
from typing import TYPE_CHECKING

from giftbook.errors import Locked
from giftbook.normalizer.fields import parse_time

if TYPE_CHECKING:
    from giftbook.config import Config
    from giftbook.state_store import StateStore

logger = logging.getLogger(__name__)


def compute_cutoff(
    ceremony_date: str | None,
    ceremony_end_time: str | None,
    tz: tzinfo,
) -> datetime | None:
    """Cutoff instant for a ceremony, or None when the schedule is unusable.

    Args:
        ceremony_date: YYYY-MM-DD.
        ceremony_end_time: HH:MM or HH:MM:SS local time.
        tz: Civil timezone the values are expressed in.
    """
    if not ceremony_date or not ceremony_end_time:
        return None
    try:
        day = date.fromisoformat(str(ceremony_date).strip())
    except ValueError:
        return None

    end: time | None = parse_time(ceremony_end_time)
    if end is None:
        return None

    return datetime.combine(day, end, tzinfo=tz)


class CutoffGuard:
    """Rejects reconciliation requests made at or after the ceremony end."""

    def __init__(
        self,
        state_store: StateStore,
        config: Config,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the guard.

        Args:
            state_store: Store holding event settings.
            config: Application configuration (timezone, enforce switch).
            clock: Returns the current aware datetime; defaults to UTC now.
        """
        self.store = state_store
        self.config = config
        self.tz = config.cutoff.tzinfo()
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def cutoff_for(self, event_id: str) -> datetime | None:
        """Cutoff instant of an event, None if no usable schedule is set."""
        settings = self.store.get_event_settings(event_id)
        if settings is None:
            return None
        return compute_cutoff(settings.ceremony_date, settings.ceremony_end_time, self.tz)

    def ensure_open(self, event_id: str) -> datetime | None:
        """Raise Locked if the event's cutoff has passed.

        Missing or malformed schedules never lock: the event is treated as
        still open.

        Returns:
            The cutoff instant, or None when no cutoff applies.
        """
        if not self.config.cutoff.enforce:
            return None

        cutoff = self.cutoff_for(event_id)
        if cutoff is None:
            logger.debug("No usable ceremony schedule for event %s; cutoff not enforced", event_id)
            return None

        now = self.clock()
        if now >= cutoff:
            logger.info("Event %s locked since %s (now %s)", event_id, cutoff.isoformat(), now.isoformat())
            raise Locked(cutoff)
        return cutoff
