"""Relational persistence for modkeeper.

Submodules:
    pool: Thread-safe SQLite connection pool
    schema: Prefixed table definitions
    rows: Row types and the stored expiry sum type
    repository: StateRepository load/save/bulk scan
    worker: Off-thread execution with retries
"""

from __future__ import annotations

from modkeeper.storage.pool import ConnectionPool, transaction
from modkeeper.storage.repository import StateRepository
from modkeeper.storage.rows import (
    ExpiresAt,
    KeyValueRow,
    ModifierRow,
    Permanent,
    Remaining,
    StoredExpiry,
)
from modkeeper.storage.schema import TableCreator, Tables
from modkeeper.storage.worker import StorageWorker


__all__ = [
    "ConnectionPool",
    "transaction",
    "StateRepository",
    "ExpiresAt",
    "KeyValueRow",
    "ModifierRow",
    "Permanent",
    "Remaining",
    "StoredExpiry",
    "TableCreator",
    "Tables",
    "StorageWorker",
]
