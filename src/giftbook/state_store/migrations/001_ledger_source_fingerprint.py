"""
Migration 001: Explicit provenance column on ledger entries.

Adds ledger_entries.source_fingerprint, backfills it from the memo marker of
existing reconciled rows, and enforces at most one reconciled entry per
(owner_member_id, source_fingerprint). Manual entries are not constrained.

When legacy data already holds duplicates, only the oldest row of each pair
gets the fingerprint; the others keep NULL so the index can be built.
"""

import sqlite3

from giftbook.schemas.provenance import extract_fingerprint_from_memo

VERSION = 1
NAME = "ledger_source_fingerprint"


def upgrade(conn: sqlite3.Connection) -> None:
    """Add, backfill and index source_fingerprint."""
    columns = {row[1] for row in conn.execute("PRAGMA table_info(ledger_entries)")}
    if "source_fingerprint" not in columns:
        conn.execute("ALTER TABLE ledger_entries ADD COLUMN source_fingerprint TEXT")

    rows = conn.execute(
        """
        SELECT id, owner_member_id, memo FROM ledger_entries
        WHERE created_source = 'reconciled' AND source_fingerprint IS NULL
        ORDER BY id
    """
    ).fetchall()

    seen: set[tuple[str, str]] = set()
    for entry_id, owner_member_id, memo in rows:
        fingerprint = extract_fingerprint_from_memo(memo)
        if not fingerprint or (owner_member_id, fingerprint) in seen:
            continue
        seen.add((owner_member_id, fingerprint))
        conn.execute(
            "UPDATE ledger_entries SET source_fingerprint = ? WHERE id = ?",
            (fingerprint, entry_id),
        )

    conn.execute(
        """
        CREATE UNIQUE INDEX IF NOT EXISTS idx_ledger_reconciled_fingerprint
        ON ledger_entries(owner_member_id, source_fingerprint)
        WHERE created_source = 'reconciled' AND source_fingerprint IS NOT NULL
    """
    )
