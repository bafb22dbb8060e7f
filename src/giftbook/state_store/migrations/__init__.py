"""
Database migrations module.

Versioned, ordered migrations for the SQLite state store, applied on top of
the base schema and tracked in a migrations table.
"""

from .runner import MigrationRunner, get_all_migrations

__all__ = ["MigrationRunner", "get_all_migrations"]
