"""Tests for the connection pool and schema creation."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from modkeeper.core.exceptions import ConnectionAcquisitionError
from modkeeper.storage.pool import ConnectionPool, transaction
from modkeeper.storage.schema import TableCreator, Tables


class TestConnectionPool:
    """Tests for borrowing and returning connections."""

    def test_connection_returned_after_error(self, tmp_path: Path) -> None:
        pool = ConnectionPool(tmp_path / "db.sqlite", size=1, acquire_timeout=0.1)

        with pytest.raises(RuntimeError):
            with pool.connection():
                raise RuntimeError("boom")

        with pool.connection() as conn:
            assert conn.execute("SELECT 1").fetchone()[0] == 1
        pool.close()

    def test_exhausted_pool_times_out(self, tmp_path: Path) -> None:
        pool = ConnectionPool(tmp_path / "db.sqlite", size=1, acquire_timeout=0.05)

        with pool.connection():
            with pytest.raises(ConnectionAcquisitionError):
                with pool.connection():
                    pass
        pool.close()

    def test_closed_pool_refuses(self, tmp_path: Path) -> None:
        pool = ConnectionPool(tmp_path / "db.sqlite", size=1)
        pool.close()

        with pytest.raises(ConnectionAcquisitionError):
            with pool.connection():
                pass


class TestTransaction:
    """Tests for explicit transactions on autocommit connections."""

    def test_rollback_on_error(self, tmp_path: Path) -> None:
        pool = ConnectionPool(tmp_path / "db.sqlite", size=1)
        with pool.connection() as conn:
            conn.execute("CREATE TABLE t (x INTEGER)")
            with pytest.raises(sqlite3.OperationalError):
                with transaction(conn):
                    conn.execute("INSERT INTO t VALUES (1)")
                    conn.execute("INSERT INTO missing VALUES (1)")

            assert conn.execute("SELECT COUNT(*) FROM t").fetchone()[0] == 0
        pool.close()


class TestTableCreator:
    """Tests for prefixed schema creation."""

    def test_tables_are_prefixed(self, tmp_path: Path) -> None:
        pool = ConnectionPool(tmp_path / "db.sqlite", size=1)
        tables = Tables("tenant_")
        with pool.connection() as conn:
            TableCreator(tables).create(conn)
            TableCreator(tables).create(conn)
            names = {
                row["name"]
                for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
            }
        pool.close()

        assert {
            "tenant_users",
            "tenant_skill_levels",
            "tenant_modifiers",
            "tenant_key_values",
            "tenant_logs",
        } <= names
