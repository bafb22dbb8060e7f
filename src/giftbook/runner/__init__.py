"""
CLI runner module.

Provides commands:
- init / status: Config template and state store overview
- create-event / add-member: Seed events and memberships
- ingest: Run the ingestion pipeline on a JSON request
- link-start / link-finish: Bank account linking
- summary: Ledger totals
- issue-token / serve: JSON API credentials and server
"""

from .main import create_cli, main

__all__ = [
    "create_cli",
    "main",
]
