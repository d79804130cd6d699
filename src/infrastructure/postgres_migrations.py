"""
FILE: src/infrastructure/postgres_migrations.py

Forward-only SQL migrations. Each store owns one directory under postgres_migrations/ and
its files apply in file-name order; applied versions are recorded in schema_migrations
with the checksum of the file that was run.
"""

from __future__ import annotations

import hashlib
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

MIGRATIONS_ROOT = Path(__file__).with_name("postgres_migrations")


@dataclass(frozen=True)
class SchemaMigration:
    namespace: str
    version: str
    path: Path
    checksum: str

    @property
    def ledger_version(self) -> str:
        return f"{self.namespace}:{self.version}"

    def statements(self) -> list[str]:
        sql = self.path.read_text(encoding="utf-8")
        return [statement.strip() for statement in sql.split(";") if statement.strip()]


def discover_migrations(namespace: str) -> list[SchemaMigration]:
    directory = MIGRATIONS_ROOT / namespace
    if not directory.is_dir():
        raise RuntimeError(f"POSTGRES_MIGRATIONS_NAMESPACE_NOT_FOUND:{namespace}")
    migrations = []
    for path in sorted(directory.glob("*.sql")):
        migrations.append(
            SchemaMigration(
                namespace=namespace,
                version=path.stem.split("_", maxsplit=1)[0],
                path=path,
                checksum=hashlib.sha256(path.read_bytes()).hexdigest(),
            )
        )
    return migrations


def migration_lock_key(namespace: str) -> int:
    digest = hashlib.sha256(namespace.encode("utf-8")).digest()[:8]
    return int.from_bytes(digest, byteorder="big", signed=True)


def apply_postgres_migrations(*, connection: Any, namespace: str) -> list[str]:
    """Applies pending migrations for one namespace and returns the versions it ran."""
    with _advisory_lock(connection, namespace):
        try:
            applied = _apply_pending(connection, namespace)
        except Exception:
            connection.rollback()
            raise
    return applied


@contextmanager
def _advisory_lock(connection: Any, namespace: str) -> Iterator[None]:
    key = migration_lock_key(namespace)
    connection.execute("SELECT pg_advisory_lock(%s::bigint)", (key,))
    try:
        yield
    finally:
        connection.execute("SELECT pg_advisory_unlock(%s::bigint)", (key,))


def _apply_pending(connection: Any, namespace: str) -> list[str]:
    migrations = discover_migrations(namespace)
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version TEXT PRIMARY KEY,
            namespace TEXT NOT NULL,
            checksum TEXT NOT NULL,
            applied_at TEXT NOT NULL
        )
        """
    )
    recorded = _recorded_checksums(connection, namespace)

    applied: list[str] = []
    for migration in migrations:
        checksum = recorded.get(migration.version)
        if checksum is not None:
            if checksum != migration.checksum:
                raise RuntimeError(
                    f"POSTGRES_MIGRATION_CHECKSUM_MISMATCH:{namespace}:{migration.version}"
                )
            continue
        for statement in migration.statements():
            connection.execute(statement)
        connection.execute(
            """
            INSERT INTO schema_migrations (version, namespace, checksum, applied_at)
            VALUES (%s, %s, %s, %s)
            """,
            (
                migration.ledger_version,
                namespace,
                migration.checksum,
                datetime.now(timezone.utc).isoformat(),
            ),
        )
        applied.append(migration.version)
    connection.commit()
    return applied


def _recorded_checksums(connection: Any, namespace: str) -> dict[str, str]:
    rows = connection.execute(
        """
        SELECT version, checksum
        FROM schema_migrations
        WHERE namespace = %s
        ORDER BY version ASC
        """,
        (namespace,),
    ).fetchall()
    prefix = f"{namespace}:"
    recorded: dict[str, str] = {}
    for row in rows:
        version = str(row["version"])
        if version.startswith(prefix):
            version = version[len(prefix) :]
        recorded[version] = str(row["checksum"])
    return recorded
