"""
Migration 002: Add ingestion_runs table.

Audit trail for every ingestion request that reached the pipeline, with the
counts it reported or the storage error it failed with.
"""

import sqlite3

VERSION = 2
NAME = "ingestion_runs"


def upgrade(conn: sqlite3.Connection) -> None:
    """Create ingestion_runs table."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS ingestion_runs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            event_id TEXT NOT NULL,
            scrape_account_id TEXT NOT NULL,
            user_id TEXT NOT NULL,
            start_date TEXT NOT NULL,
            end_date TEXT NOT NULL,
            status TEXT NOT NULL,  -- COMPLETED, FAILED

            fetched INTEGER NOT NULL DEFAULT 0,
            skipped INTEGER NOT NULL DEFAULT 0,
            inserted_tx INTEGER NOT NULL DEFAULT 0,
            ledger_created INTEGER NOT NULL DEFAULT 0,
            ledger_total INTEGER NOT NULL DEFAULT 0,

            error_message TEXT,
            duration_ms INTEGER,
            created_at TEXT NOT NULL
        )
    """
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_ingestion_runs_account "
        "ON ingestion_runs(scrape_account_id)"
    )
