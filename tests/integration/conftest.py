"""Integration test fixtures.

Applies the url_rewrite migration against an ephemeral PostgreSQL database
provided by pytest-postgresql. Integration tests are skipped when no local
PostgreSQL server binaries are available (or when running as root, which
initdb refuses).
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path

import psycopg
import pytest
from pytest_postgresql import factories

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

PROJECT_ROOT = Path(__file__).parent.parent.parent
MIGRATIONS = [
    PROJECT_ROOT / "migrations" / "0001_url_rewrite.sql",
]

# ---------------------------------------------------------------------------
# pytest-postgresql process fixture
# ---------------------------------------------------------------------------

postgresql_proc = factories.postgresql_proc()
postgresql = factories.postgresql("postgresql_proc")


def _postgres_unavailable() -> str | None:
    if shutil.which("pg_ctl") is None and shutil.which("pg_config") is None:
        return "PostgreSQL server binaries not found"
    if hasattr(os, "geteuid") and os.geteuid() == 0:
        return "initdb cannot run as root"
    return None


def pytest_collection_modifyitems(config, items):
    reason = _postgres_unavailable()
    if reason is None:
        return
    marker = pytest.mark.skip(reason=reason)
    here = Path(__file__).parent
    for item in items:
        if here in Path(item.path).parents:
            item.add_marker(marker)


# ---------------------------------------------------------------------------
# Schema fixture
# ---------------------------------------------------------------------------

@pytest.fixture(scope="function")
def db_conn(postgresql):
    """Return (conn, dsn) with the schema applied; conn is in autocommit mode
    like the CLI's, so each gateway call commits on its own."""
    dsn = (
        f"host={postgresql.info.host} "
        f"port={postgresql.info.port} "
        f"dbname={postgresql.info.dbname} "
        f"user={postgresql.info.user} "
        f"password={postgresql.info.password or ''}"
    )
    conn = psycopg.connect(dsn, autocommit=True)
    try:
        for migration in MIGRATIONS:
            conn.execute(migration.read_text(encoding="utf-8"))
        yield conn, dsn
    finally:
        conn.close()
