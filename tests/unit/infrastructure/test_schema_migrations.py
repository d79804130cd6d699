from pathlib import Path

import pytest

import src.infrastructure.postgres_migrations as migrations_module
from src.infrastructure.postgres_migrations import (
    SchemaMigration,
    apply_postgres_migrations,
    discover_migrations,
    migration_lock_key,
)


class _FakeCursor:
    def __init__(self, rows=None):
        self._rows = rows or []

    def fetchall(self):
        return list(self._rows)


class _FakeConnection:
    def __init__(self):
        self.schema_migrations: dict[tuple[str, str], str] = {}
        self.applied_statements: list[str] = []
        self.commit_count = 0
        self.rollback_count = 0
        self.lock_calls: list[int] = []
        self.unlock_calls: list[int] = []

    def execute(self, query, args=None):
        sql = " ".join(str(query).split())
        if sql == "SELECT pg_advisory_lock(%s::bigint)":
            self.lock_calls.append(int(args[0]))
            return _FakeCursor()
        if sql == "SELECT pg_advisory_unlock(%s::bigint)":
            self.unlock_calls.append(int(args[0]))
            return _FakeCursor()
        if sql.startswith("CREATE TABLE IF NOT EXISTS schema_migrations"):
            return _FakeCursor()
        if "FROM schema_migrations" in sql:
            rows = [
                {"version": version, "checksum": checksum}
                for (namespace, version), checksum in self.schema_migrations.items()
                if namespace == args[0]
            ]
            return _FakeCursor(rows=sorted(rows, key=lambda row: row["version"]))
        if "INSERT INTO schema_migrations" in sql:
            self.schema_migrations[(args[1], args[0])] = args[2]
            return _FakeCursor()
        self.applied_statements.append(sql)
        return _FakeCursor()

    def commit(self):
        self.commit_count += 1

    def rollback(self):
        self.rollback_count += 1


def test_assessment_migrations_are_discovered_in_order():
    migrations = discover_migrations("assessments")

    assert [migration.version for migration in migrations] == ["0001", "0002"]
    assert migrations[0].ledger_version == "assessments:0001"
    assert any("assessment_records" in s for s in migrations[0].statements())


def test_apply_is_forward_only_and_idempotent():
    connection = _FakeConnection()

    assert apply_postgres_migrations(connection=connection, namespace="assessments") == [
        "0001",
        "0002",
    ]
    first_count = len(connection.applied_statements)
    statements = connection.applied_statements
    assert any(s.startswith("CREATE TABLE IF NOT EXISTS assessment_records") for s in statements)
    assert any("ADD COLUMN IF NOT EXISTS confidence_scale" in s for s in statements)
    assert ("assessments", "assessments:0002") in connection.schema_migrations
    assert connection.lock_calls == [migration_lock_key("assessments")]
    assert connection.unlock_calls == [migration_lock_key("assessments")]

    assert apply_postgres_migrations(connection=connection, namespace="assessments") == []
    assert len(connection.applied_statements) == first_count
    assert connection.commit_count == 2


def test_checksum_mismatch_rolls_back_and_releases_lock(monkeypatch, tmp_path: Path):
    sql_path = tmp_path / "0001_sample.sql"
    sql_path.write_text("CREATE TABLE IF NOT EXISTS sample (id TEXT PRIMARY KEY);")
    migration = SchemaMigration(
        namespace="custom", version="0001", path=sql_path, checksum="checksum-new"
    )
    monkeypatch.setattr(migrations_module, "discover_migrations", lambda namespace: [migration])

    connection = _FakeConnection()
    connection.schema_migrations[("custom", "custom:0001")] = "checksum-old"

    with pytest.raises(RuntimeError) as exc:
        apply_postgres_migrations(connection=connection, namespace="custom")
    assert str(exc.value) == "POSTGRES_MIGRATION_CHECKSUM_MISMATCH:custom:0001"
    assert connection.rollback_count == 1
    assert connection.unlock_calls == [migration_lock_key("custom")]


def test_unknown_namespace_is_rejected():
    with pytest.raises(RuntimeError, match="POSTGRES_MIGRATIONS_NAMESPACE_NOT_FOUND:missing"):
        discover_migrations("missing")


def test_lock_key_is_stable_and_namespace_scoped():
    assert migration_lock_key("assessments") == migration_lock_key("assessments")
    assert migration_lock_key("assessments") != migration_lock_key("portfolios")
