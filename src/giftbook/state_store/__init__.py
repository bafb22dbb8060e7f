"""
State Store (SQLite-based).

Persistent store for:
- Event settings and memberships
- Linked scrape accounts
- Normalized bank transactions (unique per account and fingerprint)
- Gift ledger entries
- Ingestion run audit trail
"""

from .sqlite_store import (
    AccountStatus,
    EventSettings,
    IngestionRunRecord,
    MemberRecord,
    ScrapeAccountRecord,
    StateStore,
)

__all__ = [
    "AccountStatus",
    "EventSettings",
    "IngestionRunRecord",
    "MemberRecord",
    "ScrapeAccountRecord",
    "StateStore",
]
