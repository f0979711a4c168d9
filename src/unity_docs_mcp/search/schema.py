"""Document store schema and versioned migrations.

Migrations run statement by statement inside one explicit transaction so
that a failure leaves the database at its previous schema version.
``executescript`` is avoided on purpose: it commits any open transaction.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
import logging
import sqlite3


logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2

DOCUMENTS_TABLE = "documents"
FTS_TABLE = "documents_fts"
SCHEMA_VERSION_TABLE = "schema_version"
VERSION_INFO_TABLE = "version_info"

DOCUMENT_TYPES = ("manual", "script-reference", "package-docs")

_V1_STATEMENTS = (
    f"""
    CREATE TABLE IF NOT EXISTS {SCHEMA_VERSION_TABLE} (
        version INTEGER PRIMARY KEY,
        applied_at TEXT NOT NULL
    )
    """,
    # pk is declared explicitly so VACUUM cannot renumber the rowids the
    # FTS index points at.
    f"""
    CREATE TABLE IF NOT EXISTS {DOCUMENTS_TABLE} (
        pk INTEGER PRIMARY KEY,
        id TEXT NOT NULL UNIQUE,
        unity_version TEXT NOT NULL,
        type TEXT NOT NULL CHECK (type IN ({", ".join(f"'{t}'" for t in DOCUMENT_TYPES)})),
        title TEXT NOT NULL,
        file_path TEXT NOT NULL,
        url TEXT,
        content TEXT NOT NULL,
        html TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    f"CREATE INDEX IF NOT EXISTS idx_documents_unity_version ON {DOCUMENTS_TABLE}(unity_version)",
    f"CREATE INDEX IF NOT EXISTS idx_documents_type ON {DOCUMENTS_TABLE}(type)",
    f"CREATE INDEX IF NOT EXISTS idx_documents_title ON {DOCUMENTS_TABLE}(title)",
    f"""
    CREATE VIRTUAL TABLE IF NOT EXISTS {FTS_TABLE} USING fts5(
        title,
        content,
        content='{DOCUMENTS_TABLE}',
        content_rowid='pk',
        tokenize='porter ascii'
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {VERSION_INFO_TABLE} (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
)

_V2_STATEMENTS = (
    f"ALTER TABLE {DOCUMENTS_TABLE} ADD COLUMN package_name TEXT",
    f"ALTER TABLE {DOCUMENTS_TABLE} ADD COLUMN package_version TEXT",
    f"CREATE INDEX IF NOT EXISTS idx_documents_package ON {DOCUMENTS_TABLE}(package_name, package_version)",
    f"""
    CREATE UNIQUE INDEX IF NOT EXISTS ux_documents_version_path
    ON {DOCUMENTS_TABLE}(unity_version, file_path) WHERE package_name IS NULL
    """,
    f"""
    CREATE UNIQUE INDEX IF NOT EXISTS ux_documents_package_path
    ON {DOCUMENTS_TABLE}(package_name, package_version, file_path) WHERE package_name IS NOT NULL
    """,
)


def _run_statements(statements: tuple[str, ...]) -> Callable[[sqlite3.Connection], None]:
    def apply(conn: sqlite3.Connection) -> None:
        for statement in statements:
            conn.execute(statement)

    return apply


MIGRATIONS: dict[int, Callable[[sqlite3.Connection], None]] = {
    1: _run_statements(_V1_STATEMENTS),
    2: _run_statements(_V2_STATEMENTS),
}


def current_version(conn: sqlite3.Connection) -> int:
    """Return the applied schema version (0 for an empty database)."""
    row = conn.execute(
        "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?",
        (SCHEMA_VERSION_TABLE,),
    ).fetchone()
    if row is None:
        return 0
    version = conn.execute(f"SELECT MAX(version) FROM {SCHEMA_VERSION_TABLE}").fetchone()[0]
    return int(version or 0)


def migrate(conn: sqlite3.Connection) -> int:
    """Bring the schema up to ``SCHEMA_VERSION``.

    The connection must be in autocommit mode (``isolation_level=None``);
    this function owns the transaction.

    Returns:
        The schema version after migration.
    """
    start = current_version(conn)
    if start >= SCHEMA_VERSION:
        logger.debug("Schema is up to date (version %d)", start)
        return start

    conn.execute("BEGIN IMMEDIATE")
    try:
        for version in range(start + 1, SCHEMA_VERSION + 1):
            logger.info("Running schema migration to version %d", version)
            MIGRATIONS[version](conn)
            conn.execute(
                f"INSERT OR REPLACE INTO {SCHEMA_VERSION_TABLE} (version, applied_at) VALUES (?, ?)",
                (version, datetime.now(timezone.utc).isoformat()),
            )
    except sqlite3.Error:
        conn.execute("ROLLBACK")
        logger.exception("Schema migration from version %d failed", start)
        raise
    conn.execute("COMMIT")
    logger.info("Schema migrated from version %d to %d", start, SCHEMA_VERSION)
    return SCHEMA_VERSION
