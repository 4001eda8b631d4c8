"""Tests for DatabaseService (SQLite backend) and the SQL builders."""

import sqlite3
import threading

import pytest

from bulkload import create_service
from bulkload.sql import insert_sql, upsert_sql
from bulkload.sqlite_service import SQLiteDatabaseService


class TestCreateService:
    def test_sqlite_url(self, tmp_path):
        service = create_service(f"sqlite:///{tmp_path / 'x.db'}")
        assert isinstance(service, SQLiteDatabaseService)
        assert service.backend == "sqlite"
        assert service.db_path == str(tmp_path / "x.db")

    def test_sqlite_memory(self):
        service = create_service("sqlite:///:memory:")
        service.connect()
        try:
            service.execute_ddl("CREATE TABLE t (id INTEGER PRIMARY KEY)")
            with service.transaction():
                service.execute("INSERT INTO t (id) VALUES (?)", (1,))
            with service.transaction():
                rows = service.execute("SELECT * FROM t")
            assert rows == [{"id": 1}]
        finally:
            service.close()

    def test_unsupported_scheme(self):
        with pytest.raises(ValueError, match="Unsupported database URL scheme"):
            create_service("mysql://localhost/db")


class TestSqlBuilders:
    def test_insert(self):
        assert insert_sql("t", ["a", "b"], "?") == "INSERT INTO t (a, b) VALUES (?, ?)"

    def test_upsert_updates_non_key_columns(self):
        sql = upsert_sql("t", ["id", "val"], ["id"], "%s", excluded="EXCLUDED")
        assert sql == (
            "INSERT INTO t (id, val) VALUES (%s, %s) "
            "ON CONFLICT (id) DO UPDATE SET val = EXCLUDED.val"
        )

    def test_upsert_all_key_columns(self):
        sql = upsert_sql("t", ["id"], ["id"], "?")
        assert sql.endswith("ON CONFLICT (id) DO NOTHING")


class TestDatabaseService:
    def test_execute_ddl_and_insert(self, db_service):
        db_service.execute_ddl("CREATE TABLE t (id INTEGER PRIMARY KEY, name TEXT)")
        with db_service.transaction():
            db_service.execute("INSERT INTO t (id, name) VALUES (?, ?)", (1, "alice"))
            rows = db_service.execute("SELECT * FROM t")
        assert rows == [{"id": 1, "name": "alice"}]

    def test_batch_insert(self, db_service):
        db_service.execute_ddl("CREATE TABLE t (id INTEGER PRIMARY KEY, val TEXT)")
        with db_service.transaction():
            db_service.batch_insert("t", ["id", "val"], [(1, "x"), (2, "y")])
            rows = db_service.execute("SELECT * FROM t ORDER BY id")
        assert len(rows) == 2

    def test_upsert_insert_and_update(self, db_service):
        db_service.execute_ddl("CREATE TABLE t (id INTEGER PRIMARY KEY, val TEXT)")
        with db_service.transaction():
            db_service.upsert("t", ["id", "val"], [(1, "old")], ["id"])
        with db_service.transaction():
            db_service.upsert("t", ["id", "val"], [(1, "new"), (2, "fresh")], ["id"])
            rows = db_service.execute("SELECT * FROM t ORDER BY id")
        assert rows == [{"id": 1, "val": "new"}, {"id": 2, "val": "fresh"}]

    def test_delete_all(self, db_service):
        db_service.execute_ddl("CREATE TABLE t (id INTEGER PRIMARY KEY)")
        with db_service.transaction():
            db_service.batch_insert("t", ["id"], [(1,), (2,)])
        with db_service.transaction():
            db_service.delete_all("t")
            rows = db_service.execute("SELECT * FROM t")
        assert rows == []

    def test_probe_missing_table(self, db_service):
        with pytest.raises(db_service.driver_errors):
            with db_service.transaction():
                db_service.probe_table("missing")

    def test_driver_errors(self, db_service):
        assert db_service.driver_errors == (sqlite3.Error,)

    def test_transaction_rollback_on_error(self, db_service):
        db_service.execute_ddl("CREATE TABLE t (id INTEGER PRIMARY KEY, val TEXT)")
        with pytest.raises(ValueError):
            with db_service.transaction():
                db_service.execute("INSERT INTO t (id, val) VALUES (?, ?)", (1, "x"))
                raise ValueError("simulated failure")

        with db_service.transaction():
            rows = db_service.execute("SELECT * FROM t")
        assert rows == []

    def test_rollback_after_failed_batch(self, db_service):
        db_service.execute_ddl("CREATE TABLE t (id INTEGER PRIMARY KEY)")
        with pytest.raises(sqlite3.IntegrityError):
            with db_service.transaction():
                db_service.batch_insert("t", ["id"], [(1,), (2,)])
                db_service.batch_insert("t", ["id"], [(3,), (1,)])

        with db_service.transaction():
            rows = db_service.execute("SELECT * FROM t")
        assert rows == []

    def test_requires_transaction(self, db_service):
        db_service.execute_ddl("CREATE TABLE t (id INTEGER PRIMARY KEY)")
        with pytest.raises(RuntimeError, match="No active transaction"):
            db_service.execute("SELECT 1")

    def test_concurrent_transactions(self, db_service):
        db_service.execute_ddl("CREATE TABLE t (id INTEGER PRIMARY KEY, val INTEGER)")
        errors = []

        def worker(n):
            try:
                with db_service.transaction():
                    db_service.execute("INSERT INTO t (id, val) VALUES (?, ?)", (n, n * 10))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert not errors
        with db_service.transaction():
            rows = db_service.execute("SELECT * FROM t ORDER BY id")
        assert len(rows) == 4

    def test_upsert_empty_rows(self, db_service):
        db_service.execute_ddl("CREATE TABLE t (id INTEGER PRIMARY KEY, val TEXT)")
        with db_service.transaction():
            db_service.upsert("t", ["id", "val"], [], ["id"])
            rows = db_service.execute("SELECT * FROM t")
        assert rows == []
