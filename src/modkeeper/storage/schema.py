"""Prefixed relational schema.

Every table name carries a configurable prefix so that several deployments
can share one database. The prefix is validated as an SQL identifier by
:class:`~modkeeper.core.config.StorageSettings` before it reaches here.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass

from modkeeper.core.constants import DEFAULT_TABLE_PREFIX
from modkeeper.core.exceptions import StorageError
from modkeeper.core.logging import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class Tables:
    """Resolved table names for one prefix."""

    prefix: str = DEFAULT_TABLE_PREFIX

    @property
    def users(self) -> str:
        return f"{self.prefix}users"

    @property
    def skill_levels(self) -> str:
        return f"{self.prefix}skill_levels"

    @property
    def modifiers(self) -> str:
        return f"{self.prefix}modifiers"

    @property
    def key_values(self) -> str:
        return f"{self.prefix}key_values"

    @property
    def logs(self) -> str:
        return f"{self.prefix}logs"

    def user_owned(self) -> tuple[str, ...]:
        """Tables holding rows keyed by ``user_id``, dependents first."""
        return (self.key_values, self.modifiers, self.skill_levels, self.users)


class TableCreator:
    """Creates the schema if it does not exist yet."""

    SCHEMA_VERSION = 1

    def __init__(self, tables: Tables) -> None:
        self.tables = tables

    def statements(self) -> list[str]:
        t = self.tables
        return [
            f"""
            CREATE TABLE IF NOT EXISTS {t.users} (
                user_id INTEGER PRIMARY KEY AUTOINCREMENT,
                player_uuid TEXT NOT NULL UNIQUE,
                locale TEXT,
                mana REAL NOT NULL DEFAULT 0
            )
            """,
            f"""
            CREATE TABLE IF NOT EXISTS {t.skill_levels} (
                user_id INTEGER NOT NULL REFERENCES {t.users}(user_id),
                skill_name TEXT NOT NULL,
                skill_level INTEGER NOT NULL,
                skill_xp REAL NOT NULL DEFAULT 0,
                PRIMARY KEY (user_id, skill_name)
            )
            """,
            f"""
            CREATE TABLE IF NOT EXISTS {t.modifiers} (
                user_id INTEGER NOT NULL REFERENCES {t.users}(user_id),
                modifier_type TEXT NOT NULL,
                type_id TEXT NOT NULL,
                modifier_name TEXT NOT NULL,
                modifier_value REAL NOT NULL,
                modifier_operation INTEGER NOT NULL,
                expiration_time INTEGER,
                remaining_duration INTEGER,
                metadata TEXT,
                PRIMARY KEY (user_id, modifier_type, modifier_name)
            )
            """,
            f"""
            CREATE TABLE IF NOT EXISTS {t.key_values} (
                user_id INTEGER NOT NULL REFERENCES {t.users}(user_id),
                data_id INTEGER NOT NULL,
                category_id TEXT NOT NULL DEFAULT '',
                key_name TEXT NOT NULL,
                value TEXT,
                PRIMARY KEY (user_id, data_id, category_id, key_name)
            )
            """,
            f"""
            CREATE TABLE IF NOT EXISTS {t.logs} (
                log_id INTEGER PRIMARY KEY AUTOINCREMENT,
                log_type TEXT NOT NULL,
                log_time INTEGER NOT NULL,
                log_level INTEGER NOT NULL,
                log_message TEXT NOT NULL DEFAULT '',
                player_uuid TEXT NOT NULL,
                player_coords TEXT,
                world_name TEXT,
                UNIQUE (log_type, log_time, player_uuid, log_message)
            )
            """,
            f"""
            CREATE INDEX IF NOT EXISTS {t.prefix}idx_logs_player
            ON {t.logs}(player_uuid, log_type)
            """,
        ]

    def create(self, conn: sqlite3.Connection) -> None:
        """Create every table and index.

        Raises:
            StorageError: If any statement fails.
        """
        try:
            for statement in self.statements():
                conn.execute(statement)
        except sqlite3.Error as exc:
            raise StorageError(
                f"Failed to create tables with prefix {self.tables.prefix!r}: {exc}",
                details={"prefix": self.tables.prefix},
            ) from exc
        logger.debug("Schema ready", prefix=self.tables.prefix, version=self.SCHEMA_VERSION)


__all__ = ["Tables", "TableCreator"]
