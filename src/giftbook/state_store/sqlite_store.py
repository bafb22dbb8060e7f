"""
SQLite-based state store implementation.

Tables:
- events / event_settings / event_members: event collaborators (read mostly)
- scrape_accounts: linked bank accounts, one event and one member each
- scrape_transactions: normalized bank lines, unique on (account, fingerprint)
- ledger_entries: the human-facing gift ledger (manual and reconciled rows)
- ingestion_runs: audit trail of ingestion requests (created by migration 002)
"""

import json
import logging
import sqlite3
import uuid
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from ..errors import StorageError
from ..schemas.ledger import CreatedSource, LedgerEntry
from ..schemas.provenance import extract_fingerprint_from_memo
from ..schemas.transaction import (
    Direction,
    NormalizedTransaction,
    StoredTransaction,
    format_amount,
)

logger = logging.getLogger(__name__)


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _chunks(items: list[str], size: int) -> Iterator[list[str]]:
    for i in range(0, len(items), size):
        yield items[i : i + size]


class AccountStatus(str, Enum):
    """Connection status of a scrape account."""

    PENDING = "pending"
    CONNECTED = "connected"
    FAILED = "failed"


@dataclass
class EventSettings:
    """Ceremony schedule for an event (local wall-clock values)."""

    event_id: str
    ceremony_date: str | None  # YYYY-MM-DD
    ceremony_start_time: str | None  # HH:MM
    ceremony_end_time: str | None  # HH:MM

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "EventSettings":
        """Create from database row."""
        return cls(
            event_id=row["event_id"],
            ceremony_date=row["ceremony_date"],
            ceremony_start_time=row["ceremony_start_time"],
            ceremony_end_time=row["ceremony_end_time"],
        )


@dataclass
class MemberRecord:
    """A user's membership in an event."""

    id: str
    event_id: str
    user_id: str
    email: str | None
    role: str
    side: str | None  # groom / bride

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "MemberRecord":
        """Create from database row."""
        return cls(
            id=row["id"],
            event_id=row["event_id"],
            user_id=row["user_id"],
            email=row["email"],
            role=row["role"],
            side=row["side"],
        )


@dataclass
class ScrapeAccountRecord:
    """A linked bank account."""

    id: str
    event_id: str
    owner_user_id: str
    provider: str
    bank_code: str | None
    bank_name: str | None
    account_masked: str | None
    status: AccountStatus
    verified_at: str | None
    last_scraped_at: str | None
    created_at: str

    @property
    def label(self) -> str | None:
        """Human-facing account label, e.g. "국민은행 123-***-456"."""
        parts = [p for p in (self.bank_name, self.account_masked) if p]
        return " ".join(parts) or None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "ScrapeAccountRecord":
        """Create from database row."""
        return cls(
            id=row["id"],
            event_id=row["event_id"],
            owner_user_id=row["owner_user_id"],
            provider=row["provider"],
            bank_code=row["bank_code"],
            bank_name=row["bank_name"],
            account_masked=row["account_masked"],
            status=AccountStatus(row["status"]),
            verified_at=row["verified_at"],
            last_scraped_at=row["last_scraped_at"],
            created_at=row["created_at"],
        )


@dataclass
class IngestionRunRecord:
    """Audit record of one ingestion request."""

    id: int
    event_id: str
    scrape_account_id: str
    user_id: str
    start_date: str
    end_date: str
    status: str
    fetched: int
    skipped: int
    inserted_tx: int
    ledger_created: int
    ledger_total: int
    error_message: str | None
    duration_ms: int | None
    created_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "IngestionRunRecord":
        """Create from database row."""
        return cls(**{k: row[k] for k in row.keys()})


class StateStore:
    """
    SQLite-based state store for the ingestion pipeline.

    Every sqlite3 failure leaves this class as a StorageError carrying the
    driver's message. Each public method runs in its own transaction.
    """

    SCHEMA_VERSION = 1

    def __init__(self, db_path: Path | str, run_migrations: bool = True):
        """
        Initialize state store.

        Args:
            db_path: Path to SQLite database file
            run_migrations: Whether to run pending migrations (default True)
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()
        if run_migrations:
            self._run_migrations()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection with row factory."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database transactions."""
        try:
            conn = self._get_connection()
        except sqlite3.Error as e:
            raise StorageError(str(e)) from e
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageError(str(e)) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY
                )
            """
            )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS events (
                    id TEXT PRIMARY KEY,
                    title TEXT,
                    created_at TEXT NOT NULL
                )
            """
            )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS event_settings (
                    event_id TEXT PRIMARY KEY,
                    ceremony_date TEXT,  -- YYYY-MM-DD, local
                    ceremony_start_time TEXT,  -- HH:MM, local
                    ceremony_end_time TEXT,  -- HH:MM, local
                    updated_at TEXT NOT NULL,
                    FOREIGN KEY (event_id) REFERENCES events(id)
                )
            """
            )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS event_members (
                    id TEXT PRIMARY KEY,
                    event_id TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    email TEXT,
                    role TEXT NOT NULL DEFAULT 'member',  -- owner, member
                    side TEXT,  -- groom, bride
                    created_at TEXT NOT NULL,
                    FOREIGN KEY (event_id) REFERENCES events(id),
                    UNIQUE(event_id, user_id)
                )
            """
            )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS scrape_accounts (
                    id TEXT PRIMARY KEY,
                    event_id TEXT NOT NULL,
                    owner_user_id TEXT NOT NULL,
                    provider TEXT NOT NULL,
                    bank_code TEXT,
                    bank_name TEXT,
                    account_masked TEXT,
                    status TEXT NOT NULL DEFAULT 'pending',
                    verified_at TEXT,
                    last_scraped_at TEXT,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY (event_id) REFERENCES events(id)
                )
            """
            )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS scrape_transactions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    event_id TEXT NOT NULL,
                    scrape_account_id TEXT NOT NULL,
                    fingerprint TEXT NOT NULL,
                    tx_date TEXT NOT NULL,  -- YYYY-MM-DD
                    tx_time TEXT,  -- HH:MM:SS
                    amount TEXT NOT NULL,  -- non-negative, 2 decimals
                    direction TEXT NOT NULL,  -- IN, OUT
                    balance TEXT,
                    memo TEXT,
                    counterparty TEXT,
                    counterparty_account TEXT,
                    raw_json TEXT,
                    is_reflected INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY (scrape_account_id) REFERENCES scrape_accounts(id),
                    UNIQUE(scrape_account_id, fingerprint)
                )
            """
            )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS ledger_entries (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    event_id TEXT NOT NULL,
                    owner_member_id TEXT NOT NULL,
                    guest_name TEXT,
                    gift_amount TEXT,
                    gift_method TEXT NOT NULL DEFAULT 'unknown',
                    gift_occurred_at TEXT,
                    account_label TEXT,
                    memo TEXT,
                    created_source TEXT NOT NULL,  -- manual, reconciled
                    created_at TEXT NOT NULL,
                    FOREIGN KEY (event_id) REFERENCES events(id),
                    FOREIGN KEY (owner_member_id) REFERENCES event_members(id)
                )
            """
            )

            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_scrape_tx_account_date "
                "ON scrape_transactions(scrape_account_id, tx_date)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_ledger_owner_source "
                "ON ledger_entries(owner_member_id, created_source)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_ledger_event ON ledger_entries(event_id)"
            )

            conn.execute(
                "INSERT OR REPLACE INTO schema_version (version) VALUES (?)", (self.SCHEMA_VERSION,)
            )

    def _run_migrations(self) -> None:
        """Run pending database migrations."""
        from .migrations import MigrationRunner

        conn = self._get_connection()
        try:
            runner = MigrationRunner(conn)
            runner.run_pending()
        except sqlite3.Error as e:
            raise StorageError(f"migration failed: {e}") from e
        finally:
            conn.close()

    # Event methods

    def create_event(self, title: str | None = None, event_id: str | None = None) -> str:
        """Create an event. Returns its ID."""
        event_id = event_id or str(uuid.uuid4())
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO events (id, title, created_at) VALUES (?, ?, ?)",
                (event_id, title, _utcnow()),
            )
        return event_id

    def set_event_settings(
        self,
        event_id: str,
        ceremony_date: str | None,
        ceremony_start_time: str | None = None,
        ceremony_end_time: str | None = None,
    ) -> None:
        """Insert or replace the ceremony schedule of an event."""
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO event_settings
                (event_id, ceremony_date, ceremony_start_time, ceremony_end_time, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(event_id) DO UPDATE SET
                    ceremony_date = excluded.ceremony_date,
                    ceremony_start_time = excluded.ceremony_start_time,
                    ceremony_end_time = excluded.ceremony_end_time,
                    updated_at = excluded.updated_at
            """,
                (event_id, ceremony_date, ceremony_start_time, ceremony_end_time, _utcnow()),
            )

    def get_event_settings(self, event_id: str) -> EventSettings | None:
        """Get the ceremony schedule of an event."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM event_settings WHERE event_id = ?", (event_id,)
            ).fetchone()
            return EventSettings.from_row(row) if row else None

    # Member methods

    def add_member(
        self,
        event_id: str,
        user_id: str,
        email: str | None = None,
        role: str = "member",
        side: str | None = None,
    ) -> str:
        """Register a user as member of an event. Returns the member ID."""
        member_id = str(uuid.uuid4())
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO event_members (id, event_id, user_id, email, role, side, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
                (member_id, event_id, user_id, email, role, side, _utcnow()),
            )
        return member_id

    def get_member(self, event_id: str, user_id: str) -> MemberRecord | None:
        """Get a user's membership in an event."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM event_members WHERE event_id = ? AND user_id = ?",
                (event_id, user_id),
            ).fetchone()
            return MemberRecord.from_row(row) if row else None

    # Scrape account methods

    def create_scrape_account(
        self,
        event_id: str,
        owner_user_id: str,
        provider: str,
        bank_code: str | None = None,
        status: AccountStatus = AccountStatus.PENDING,
    ) -> str:
        """Create a scrape account. Returns its ID."""
        account_id = str(uuid.uuid4())
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO scrape_accounts
                (id, event_id, owner_user_id, provider, bank_code, status, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
                (account_id, event_id, owner_user_id, provider, bank_code, status.value, _utcnow()),
            )
        return account_id

    def get_scrape_account(self, account_id: str) -> ScrapeAccountRecord | None:
        """Get a scrape account by ID."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM scrape_accounts WHERE id = ?", (account_id,)
            ).fetchone()
            return ScrapeAccountRecord.from_row(row) if row else None

    def find_latest_scrape_account(
        self,
        event_id: str,
        owner_user_id: str,
        provider: str,
        bank_code: str | None = None,
    ) -> ScrapeAccountRecord | None:
        """
        Latest account of a member for an event and provider.

        Verified accounts sort first, newest verification first; then newest
        creation. bank_code narrows the search when given.
        """
        query = (
            "SELECT * FROM scrape_accounts "
            "WHERE event_id = ? AND owner_user_id = ? AND provider = ?"
        )
        params: list[Any] = [event_id, owner_user_id, provider]
        if bank_code:
            query += " AND bank_code = ?"
            params.append(bank_code)
        query += (
            " ORDER BY verified_at IS NULL, verified_at DESC, created_at DESC, rowid DESC LIMIT 1"
        )

        with self._transaction() as conn:
            row = conn.execute(query, params).fetchone()
            return ScrapeAccountRecord.from_row(row) if row else None

    def update_scrape_account(
        self,
        account_id: str,
        status: AccountStatus,
        bank_code: str | None = None,
        bank_name: str | None = None,
        account_masked: str | None = None,
        verified: bool = False,
    ) -> bool:
        """Transition a scrape account's status, optionally recording bank details.

        Returns:
            True if updated, False if the account does not exist.
        """
        updates = ["status = ?"]
        params: list[Any] = [status.value]

        if bank_code is not None:
            updates.append("bank_code = ?")
            params.append(bank_code)
        if bank_name is not None:
            updates.append("bank_name = ?")
            params.append(bank_name)
        if account_masked is not None:
            updates.append("account_masked = ?")
            params.append(account_masked)
        if verified:
            updates.append("verified_at = ?")
            params.append(_utcnow())

        params.append(account_id)

        with self._transaction() as conn:
            cursor = conn.execute(
                f"UPDATE scrape_accounts SET {', '.join(updates)} WHERE id = ?",
                params,
            )
            return cursor.rowcount > 0

    def touch_last_scraped(self, account_id: str) -> None:
        """Record a successful reconciliation on the account."""
        with self._transaction() as conn:
            conn.execute(
                "UPDATE scrape_accounts SET last_scraped_at = ? WHERE id = ?",
                (_utcnow(), account_id),
            )

    # Transaction methods

    def upsert_transactions(
        self,
        event_id: str,
        scrape_account_id: str,
        items: Iterable[tuple[str, NormalizedTransaction]],
    ) -> int:
        """
        Persist fingerprinted transactions, skipping keys that already exist.

        First write wins: an existing (account, fingerprint) row is never
        updated.

        Args:
            event_id: Owning event
            scrape_account_id: Owning scrape account
            items: (fingerprint, transaction) pairs

        Returns:
            Number of newly inserted rows
        """
        now = _utcnow()
        inserted = 0

        with self._transaction() as conn:
            for fingerprint, tx in items:
                cursor = conn.execute(
                    """
                    INSERT INTO scrape_transactions
                    (event_id, scrape_account_id, fingerprint, tx_date, tx_time, amount,
                     direction, balance, memo, counterparty, counterparty_account,
                     raw_json, is_reflected, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0, ?)
                    ON CONFLICT(scrape_account_id, fingerprint) DO NOTHING
                """,
                    (
                        event_id,
                        scrape_account_id,
                        fingerprint,
                        tx.tx_date.isoformat(),
                        tx.tx_time.isoformat() if tx.tx_time else None,
                        format_amount(tx.amount),
                        tx.direction.value,
                        format_amount(tx.balance) if tx.balance is not None else None,
                        tx.memo,
                        tx.counterparty,
                        tx.counterparty_account,
                        json.dumps(tx.raw, ensure_ascii=False, default=str) if tx.raw else None,
                        now,
                    ),
                )
                inserted += cursor.rowcount

        return inserted

    def get_transaction(self, scrape_account_id: str, fingerprint: str) -> StoredTransaction | None:
        """Get a stored transaction by its key."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM scrape_transactions WHERE scrape_account_id = ? AND fingerprint = ?",
                (scrape_account_id, fingerprint),
            ).fetchone()
            return StoredTransaction.from_row(row) if row else None

    def list_transactions(
        self,
        scrape_account_id: str,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[StoredTransaction]:
        """List stored transactions of an account, optionally within a date range."""
        query = "SELECT * FROM scrape_transactions WHERE scrape_account_id = ?"
        params: list[Any] = [scrape_account_id]
        if start_date:
            query += " AND tx_date >= ?"
            params.append(start_date.isoformat())
        if end_date:
            query += " AND tx_date <= ?"
            params.append(end_date.isoformat())
        query += " ORDER BY tx_date, tx_time, id"

        with self._transaction() as conn:
            rows = conn.execute(query, params).fetchall()
            return [StoredTransaction.from_row(r) for r in rows]

    def list_unreflected_inbound(
        self,
        scrape_account_id: str,
        start_date: date,
        end_date: date,
    ) -> list[StoredTransaction]:
        """Inbound, positive, not-yet-reflected transactions in range (inclusive)."""
        with self._transaction() as conn:
            rows = conn.execute(
                """
                SELECT * FROM scrape_transactions
                WHERE scrape_account_id = ?
                  AND tx_date >= ? AND tx_date <= ?
                  AND direction = ?
                  AND is_reflected = 0
                ORDER BY tx_date, tx_time, id
            """,
                (
                    scrape_account_id,
                    start_date.isoformat(),
                    end_date.isoformat(),
                    Direction.IN.value,
                ),
            ).fetchall()
            stored = [StoredTransaction.from_row(r) for r in rows]

        return [s for s in stored if s.transaction.amount > 0]

    def mark_reflected(
        self,
        scrape_account_id: str,
        fingerprints: Iterable[str],
        batch_size: int = 200,
    ) -> int:
        """
        Set is_reflected on the given fingerprints, in bounded batches.

        Reflected never goes back to unreflected.

        Returns:
            Number of rows that changed from unreflected to reflected
        """
        unique = sorted(set(fingerprints))
        if not unique:
            return 0

        changed = 0
        with self._transaction() as conn:
            for batch in _chunks(unique, batch_size):
                placeholders = ", ".join("?" for _ in batch)
                cursor = conn.execute(
                    f"""
                    UPDATE scrape_transactions
                    SET is_reflected = 1
                    WHERE scrape_account_id = ?
                      AND is_reflected = 0
                      AND fingerprint IN ({placeholders})
                """,
                    [scrape_account_id, *batch],
                )
                changed += cursor.rowcount
        return changed

    def count_reflected(self, scrape_account_id: str, start_date: date, end_date: date) -> int:
        """Number of reflected inbound transactions of an account in range."""
        with self._transaction() as conn:
            row = conn.execute(
                """
                SELECT COUNT(*) FROM scrape_transactions
                WHERE scrape_account_id = ?
                  AND tx_date >= ? AND tx_date <= ?
                  AND direction = ?
                  AND is_reflected = 1
            """,
                (
                    scrape_account_id,
                    start_date.isoformat(),
                    end_date.isoformat(),
                    Direction.IN.value,
                ),
            ).fetchone()
            return row[0]

    # Ledger methods

    def add_ledger_entry(self, entry: LedgerEntry) -> int:
        """Insert a single ledger entry (manual input). Returns its ID."""
        with self._transaction() as conn:
            return self._insert_ledger_entry(conn, entry)

    def insert_reconciled_entries(self, entries: list[LedgerEntry]) -> int:
        """
        Insert machine-reconciled ledger entries as one batch.

        An entry whose (owner_member_id, source_fingerprint) already exists is
        treated as already reflected and skipped. Any other database error
        rolls back the whole batch.

        Returns:
            Number of entries actually inserted
        """
        inserted = 0
        with self._transaction() as conn:
            for entry in entries:
                if entry.created_source != CreatedSource.RECONCILED or not entry.source_fingerprint:
                    raise ValueError("reconciled entries need created_source=reconciled and a fingerprint")
                if self._insert_ledger_entry(conn, entry, skip_conflicts=True):
                    inserted += 1
        return inserted

    def _insert_ledger_entry(
        self,
        conn: sqlite3.Connection,
        entry: LedgerEntry,
        skip_conflicts: bool = False,
    ) -> int:
        conflict_clause = " ON CONFLICT DO NOTHING" if skip_conflicts else ""
        cursor = conn.execute(
            f"""
            INSERT INTO ledger_entries
            (event_id, owner_member_id, guest_name, gift_amount, gift_method,
             gift_occurred_at, account_label, memo, created_source, source_fingerprint,
             created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?){conflict_clause}
        """,
            (
                entry.event_id,
                entry.owner_member_id,
                entry.guest_name,
                format_amount(entry.gift_amount) if entry.gift_amount is not None else None,
                entry.gift_method.value,
                entry.gift_occurred_at,
                entry.account_label,
                entry.memo,
                entry.created_source.value,
                entry.source_fingerprint,
                _utcnow(),
            ),
        )
        if cursor.rowcount == 0:
            return 0
        return cursor.lastrowid or 0

    def list_reconciled_fingerprints(self, owner_member_id: str) -> set[str]:
        """
        Fingerprints already represented in a member's reconciled entries.

        Uses the source_fingerprint column, falling back to the memo marker
        for rows written before the column existed.
        """
        with self._transaction() as conn:
            rows = conn.execute(
                """
                SELECT source_fingerprint, memo FROM ledger_entries
                WHERE owner_member_id = ? AND created_source = ?
            """,
                (owner_member_id, CreatedSource.RECONCILED.value),
            ).fetchall()

        fingerprints: set[str] = set()
        for row in rows:
            fingerprint = row["source_fingerprint"] or extract_fingerprint_from_memo(row["memo"])
            if fingerprint:
                fingerprints.add(fingerprint)
        return fingerprints

    def list_ledger_entries(
        self,
        event_id: str,
        owner_member_id: str | None = None,
    ) -> list[LedgerEntry]:
        """List ledger entries of an event, newest first."""
        query = "SELECT * FROM ledger_entries WHERE event_id = ?"
        params: list[Any] = [event_id]
        if owner_member_id:
            query += " AND owner_member_id = ?"
            params.append(owner_member_id)
        query += " ORDER BY created_at DESC, id DESC"

        with self._transaction() as conn:
            rows = conn.execute(query, params).fetchall()
            return [LedgerEntry.from_row(r) for r in rows]

    # Ingestion run methods

    def record_ingestion_run(
        self,
        event_id: str,
        scrape_account_id: str,
        user_id: str,
        start_date: str,
        end_date: str,
        status: str,
        fetched: int = 0,
        skipped: int = 0,
        inserted_tx: int = 0,
        ledger_created: int = 0,
        ledger_total: int = 0,
        error_message: str | None = None,
        duration_ms: int | None = None,
    ) -> int:
        """Record the outcome of an ingestion request. Returns the run ID."""
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO ingestion_runs
                (event_id, scrape_account_id, user_id, start_date, end_date, status,
                 fetched, skipped, inserted_tx, ledger_created, ledger_total,
                 error_message, duration_ms, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    event_id,
                    scrape_account_id,
                    user_id,
                    start_date,
                    end_date,
                    status,
                    fetched,
                    skipped,
                    inserted_tx,
                    ledger_created,
                    ledger_total,
                    error_message,
                    duration_ms,
                    _utcnow(),
                ),
            )
            return cursor.lastrowid or 0

    def list_ingestion_runs(
        self,
        scrape_account_id: str | None = None,
        limit: int = 50,
    ) -> list[IngestionRunRecord]:
        """Most recent ingestion runs, optionally for one account."""
        query = "SELECT * FROM ingestion_runs"
        params: list[Any] = []
        if scrape_account_id:
            query += " WHERE scrape_account_id = ?"
            params.append(scrape_account_id)
        query += " ORDER BY id DESC LIMIT ?"
        params.append(limit)

        with self._transaction() as conn:
            rows = conn.execute(query, params).fetchall()
            return [IngestionRunRecord.from_row(r) for r in rows]

    # Statistics

    def get_stats(self) -> dict[str, int]:
        """Row counts for the status command."""
        with self._transaction() as conn:
            stats = {}
            for table in ("events", "event_members", "scrape_accounts", "ledger_entries"):
                stats[table] = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
            stats["transactions_total"] = conn.execute(
                "SELECT COUNT(*) FROM scrape_transactions"
            ).fetchone()[0]
            stats["transactions_reflected"] = conn.execute(
                "SELECT COUNT(*) FROM scrape_transactions WHERE is_reflected = 1"
            ).fetchone()[0]
            stats["ledger_reconciled"] = conn.execute(
                "SELECT COUNT(*) FROM ledger_entries WHERE created_source = ?",
                (CreatedSource.RECONCILED.value,),
            ).fetchone()[0]
            return stats
