"""SQLite document store with an FTS5 full-text index.

``documents_fts`` is an external-content FTS5 table over ``documents``.
There are no triggers: every write goes through ``SqliteDocumentStore``,
which updates the row and its index entry inside the same transaction, so
a failed batch leaves neither table touched.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from datetime import datetime, timezone
import logging
from pathlib import Path
import sqlite3
import threading
from typing import Any, Self

from unity_docs_mcp.domain.model import Document, DocumentInput, DocumentType
from unity_docs_mcp.errors import StorageError
from unity_docs_mcp.search import schema
from unity_docs_mcp.search.sqlite_pragmas import apply_connection_pragmas, database_size_bytes


logger = logging.getLogger(__name__)

_DOCUMENT_COLUMNS = (
    "pk",
    "id",
    "unity_version",
    "type",
    "title",
    "file_path",
    "url",
    "content",
    "html",
    "package_name",
    "package_version",
    "created_at",
    "updated_at",
)

_SELECT_DOCUMENT = f"SELECT {', '.join(_DOCUMENT_COLUMNS)} FROM {schema.DOCUMENTS_TABLE}"

_FTS_INSERT = f"INSERT INTO {schema.FTS_TABLE} (rowid, title, content) VALUES (?, ?, ?)"
_FTS_DELETE = (
    f"INSERT INTO {schema.FTS_TABLE} ({schema.FTS_TABLE}, rowid, title, content) VALUES ('delete', ?, ?, ?)"
)

SNIPPET_OPEN = "<mark>"
SNIPPET_CLOSE = "</mark>"
SNIPPET_ELLIPSIS = "..."
SNIPPET_TOKENS = 64


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _row_to_document(row: sqlite3.Row) -> Document:
    return Document(
        id=row["id"],
        version=row["unity_version"],
        type=DocumentType(row["type"]),
        title=row["title"],
        content=row["content"],
        raw_markup=row["html"],
        file_path=row["file_path"],
        url=row["url"],
        package_name=row["package_name"],
        package_version=row["package_version"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


class SqliteDocumentStore:
    """Persistent documents table plus its full-text index.

    The connection runs in autocommit mode; ``transaction()`` issues the
    BEGIN/COMMIT itself and nested calls become savepoints, so a caller can
    batch many ``upsert_document`` calls into one atomic unit.
    """

    def __init__(
        self,
        db_path: Path | str,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.db_path = Path(db_path) if str(db_path) != ":memory:" else db_path
        self._clock = clock or _utc_now
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        self._depth = 0

    # -- lifecycle ---------------------------------------------------------

    def open(self) -> Self:
        if self._conn is not None:
            return self
        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            conn = sqlite3.connect(str(self.db_path), isolation_level=None, check_same_thread=False)
            conn.row_factory = sqlite3.Row
            apply_connection_pragmas(conn)
            schema.migrate(conn)
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to open document store at {self.db_path}: {exc}") from exc
        self._conn = conn
        logger.info("Opened document store at %s", self.db_path)
        return self

    def close(self) -> None:
        with self._lock:
            if self._conn is None:
                return
            self._conn.close()
            self._conn = None
            self._depth = 0
        logger.info("Closed document store at %s", self.db_path)

    def __enter__(self) -> Self:
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StorageError("Document store is not open")
        return self._conn

    @contextmanager
    def _guard(self, action: str) -> Iterator[sqlite3.Connection]:
        """Serialize access and translate driver errors into ``StorageError``."""
        with self._lock:
            conn = self.connection
            try:
                yield conn
            except sqlite3.Error as exc:
                raise StorageError(f"{action} failed: {exc}") from exc

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Run the enclosed writes atomically.

        The outermost call owns BEGIN IMMEDIATE / COMMIT; inner calls use a
        savepoint. Any exception rolls back to where the block started and
        is re-raised (``sqlite3.Error`` as ``StorageError``).
        """
        with self._lock:
            conn = self.connection
            depth = self._depth
            savepoint = f"sp_{depth}"
            try:
                conn.execute("BEGIN IMMEDIATE" if depth == 0 else f"SAVEPOINT {savepoint}")
            except sqlite3.Error as exc:
                raise StorageError(f"Could not start transaction: {exc}") from exc
            self._depth += 1
            try:
                yield
            except BaseException as exc:
                self._depth -= 1
                self._rollback(conn, depth, savepoint)
                if isinstance(exc, sqlite3.Error):
                    raise StorageError(f"Transaction rolled back: {exc}") from exc
                raise
            self._depth -= 1
            try:
                conn.execute("COMMIT" if depth == 0 else f"RELEASE {savepoint}")
            except sqlite3.Error as exc:
                self._rollback(conn, depth, savepoint)
                raise StorageError(f"Commit failed: {exc}") from exc

    def _rollback(self, conn: sqlite3.Connection, depth: int, savepoint: str) -> None:
        """Undo the current block, unless SQLite already ended the transaction.

        A failed rollback is logged; the error that triggered it is the one
        callers see.
        """
        if not conn.in_transaction:
            logger.warning("Transaction already rolled back by SQLite (depth %d)", depth)
            return
        try:
            if depth == 0:
                conn.execute("ROLLBACK")
            else:
                conn.execute(f"ROLLBACK TO {savepoint}")
                conn.execute(f"RELEASE {savepoint}")
        except sqlite3.Error as exc:
            logger.error("Rollback at depth %d failed: %s", depth, exc)

    # -- writes ------------------------------------------------------------

    def upsert_document(self, document: DocumentInput) -> Document:
        """Insert or replace a document by id, keeping its FTS entry in step.

        ``created_at`` survives replacement; ``updated_at`` is always reset.
        """
        now = self._clock().isoformat()
        with self.transaction(), self._guard(f"Upsert of {document.id}") as conn:
            existing = conn.execute(
                f"SELECT pk, title, content, created_at FROM {schema.DOCUMENTS_TABLE} WHERE id = ?",
                (document.id,),
            ).fetchone()
            values = (
                document.version,
                document.type.value,
                document.title,
                document.file_path,
                document.url,
                document.content,
                document.raw_markup,
                document.package_name,
                document.package_version,
            )
            if existing is None:
                created_at = now
                cursor = conn.execute(
                    f"""
                    INSERT INTO {schema.DOCUMENTS_TABLE} (
                        unity_version, type, title, file_path, url, content, html,
                        package_name, package_version, id, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (*values, document.id, created_at, now),
                )
                pk = cursor.lastrowid
            else:
                pk = existing["pk"]
                created_at = existing["created_at"]
                conn.execute(_FTS_DELETE, (pk, existing["title"], existing["content"]))
                conn.execute(
                    f"""
                    UPDATE {schema.DOCUMENTS_TABLE} SET
                        unity_version = ?, type = ?, title = ?, file_path = ?, url = ?,
                        content = ?, html = ?, package_name = ?, package_version = ?,
                        updated_at = ?
                    WHERE pk = ?
                    """,
                    (*values, now, pk),
                )
            conn.execute(_FTS_INSERT, (pk, document.title, document.content))

        return Document(
            **document.model_dump(),
            created_at=datetime.fromisoformat(created_at),
            updated_at=datetime.fromisoformat(now),
        )

    def delete_document(self, document_id: str) -> bool:
        with self.transaction(), self._guard(f"Delete of {document_id}") as conn:
            row = conn.execute(
                f"SELECT pk, title, content FROM {schema.DOCUMENTS_TABLE} WHERE id = ?",
                (document_id,),
            ).fetchone()
            if row is None:
                return False
            conn.execute(_FTS_DELETE, (row["pk"], row["title"], row["content"]))
            conn.execute(f"DELETE FROM {schema.DOCUMENTS_TABLE} WHERE pk = ?", (row["pk"],))
        return True

    def _delete_where(self, where: str, params: tuple[Any, ...], action: str) -> int:
        with self.transaction(), self._guard(action) as conn:
            conn.execute(
                f"""
                INSERT INTO {schema.FTS_TABLE} ({schema.FTS_TABLE}, rowid, title, content)
                SELECT 'delete', pk, title, content FROM {schema.DOCUMENTS_TABLE} WHERE {where}
                """,
                params,
            )
            cursor = conn.execute(f"DELETE FROM {schema.DOCUMENTS_TABLE} WHERE {where}", params)
            return cursor.rowcount

    def delete_version(self, version: str) -> int:
        """Remove every non-package document of a Unity version."""
        return self._delete_where(
            "unity_version = ? AND package_name IS NULL",
            (version,),
            f"Purge of version {version}",
        )

    def delete_package(self, package_name: str, package_version: str) -> int:
        return self._delete_where(
            "package_name = ? AND package_version = ?",
            (package_name, package_version),
            f"Purge of package {package_name}@{package_version}",
        )

    # -- reads -------------------------------------------------------------

    def get_document(self, document_id: str) -> Document | None:
        with self._guard(f"Lookup of {document_id}") as conn:
            row = conn.execute(f"{_SELECT_DOCUMENT} WHERE id = ?", (document_id,)).fetchone()
        return _row_to_document(row) if row else None

    def get_document_by_path(
        self,
        file_path: str,
        version: str,
        package_name: str | None = None,
    ) -> Document | None:
        """Exact path lookup within a version.

        Without ``package_name`` the version's own page wins over a package
        page that happens to share the same relative path.
        """
        with self._guard(f"Lookup of {file_path}") as conn:
            if package_name:
                row = conn.execute(
                    f"""
                    {_SELECT_DOCUMENT}
                    WHERE file_path = ? AND unity_version = ? AND package_name = ?
                    ORDER BY package_version DESC LIMIT 1
                    """,
                    (file_path, version, package_name),
                ).fetchone()
            else:
                row = conn.execute(
                    f"""
                    {_SELECT_DOCUMENT}
                    WHERE file_path = ? AND unity_version = ?
                    ORDER BY package_name IS NOT NULL, package_name, package_version DESC LIMIT 1
                    """,
                    (file_path, version),
                ).fetchone()
        return _row_to_document(row) if row else None

    def match(
        self,
        expression: str,
        *,
        version: str,
        document_type: str | None = None,
        package_name: str | None = None,
        package_version: str | None = None,
        limit: int = 10,
        offset: int = 0,
    ) -> list[sqlite3.Row]:
        """Ranked FTS5 query.

        ``expression`` must already be a valid MATCH expression. Rows carry
        the document columns plus ``snippet`` and the raw FTS5 ``rank``
        (more negative is better).
        """
        clauses = [f"{schema.FTS_TABLE} MATCH ?", "d.unity_version = ?"]
        params: list[Any] = [expression, version]
        if document_type:
            clauses.append("d.type = ?")
            params.append(document_type)
        if package_name:
            clauses.append("d.package_name = ?")
            params.append(package_name)
        if package_version:
            clauses.append("d.package_version = ?")
            params.append(package_version)
        params.extend((limit, offset))

        sql = f"""
            SELECT
                d.id, d.title, d.type, d.file_path, d.url,
                d.package_name, d.package_version,
                snippet({schema.FTS_TABLE}, 1, '{SNIPPET_OPEN}', '{SNIPPET_CLOSE}',
                        '{SNIPPET_ELLIPSIS}', {SNIPPET_TOKENS}) AS snippet,
                {schema.FTS_TABLE}.rank AS rank
            FROM {schema.FTS_TABLE}
            JOIN {schema.DOCUMENTS_TABLE} AS d ON d.pk = {schema.FTS_TABLE}.rowid
            WHERE {" AND ".join(clauses)}
            ORDER BY {schema.FTS_TABLE}.rank
            LIMIT ? OFFSET ?
        """
        with self._guard("Full-text query") as conn:
            return conn.execute(sql, params).fetchall()

    def count_by_type(self, version: str | None = None) -> dict[str, int]:
        sql = f"SELECT type, COUNT(*) AS n FROM {schema.DOCUMENTS_TABLE}"
        params: tuple[Any, ...] = ()
        if version:
            sql += " WHERE unity_version = ?"
            params = (version,)
        sql += " GROUP BY type ORDER BY type"
        with self._guard("Count by type") as conn:
            return {row["type"]: row["n"] for row in conn.execute(sql, params)}

    def count_documents(self, version: str | None = None) -> int:
        return sum(self.count_by_type(version).values())

    def indexed_packages(self) -> dict[str, dict[str, int]]:
        """Map package name -> {package version: document count}."""
        with self._guard("Package listing") as conn:
            rows = conn.execute(
                f"""
                SELECT package_name, package_version, COUNT(*) AS n
                FROM {schema.DOCUMENTS_TABLE}
                WHERE package_name IS NOT NULL
                GROUP BY package_name, package_version
                ORDER BY package_name, package_version
                """
            ).fetchall()
        packages: dict[str, dict[str, int]] = {}
        for row in rows:
            packages.setdefault(row["package_name"], {})[row["package_version"]] = row["n"]
        return packages

    def database_size_bytes(self) -> int:
        with self._guard("Size query") as conn:
            return database_size_bytes(conn)

    def last_updated_at(self) -> str | None:
        with self._guard("Last update query") as conn:
            row = conn.execute(f"SELECT MAX(updated_at) FROM {schema.DOCUMENTS_TABLE}").fetchone()
        return row[0] if row else None

    # -- corpus metadata ---------------------------------------------------

    def get_metadata(self, key: str) -> str | None:
        with self._guard(f"Metadata read of {key}") as conn:
            row = conn.execute(f"SELECT value FROM {schema.VERSION_INFO_TABLE} WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None

    def set_metadata(self, key: str, value: str) -> None:
        now = self._clock().isoformat()
        with self.transaction(), self._guard(f"Metadata write of {key}") as conn:
            conn.execute(
                f"""
                INSERT INTO {schema.VERSION_INFO_TABLE} (key, value, created_at, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                """,
                (key, value, now, now),
            )

    def seed_metadata(self, defaults: Mapping[str, str]) -> None:
        """Insert metadata keys that are not present yet; existing values win."""
        now = self._clock().isoformat()
        with self.transaction(), self._guard("Metadata seed") as conn:
            conn.executemany(
                f"INSERT OR IGNORE INTO {schema.VERSION_INFO_TABLE} (key, value, created_at, updated_at) "
                "VALUES (?, ?, ?, ?)",
                [(key, value, now, now) for key, value in defaults.items()],
            )

    def all_metadata(self) -> dict[str, str]:
        with self._guard("Metadata read") as conn:
            rows = conn.execute(f"SELECT key, value FROM {schema.VERSION_INFO_TABLE} ORDER BY key").fetchall()
        return {row["key"]: row["value"] for row in rows}

    # -- index maintenance -------------------------------------------------

    def optimize_index(self) -> None:
        """Merge FTS5 b-tree segments after a bulk load."""
        with self._guard("FTS optimize") as conn:
            conn.execute(f"INSERT INTO {schema.FTS_TABLE} ({schema.FTS_TABLE}) VALUES ('optimize')")

    def integrity_check(self) -> bool:
        """Verify the FTS index against the documents table.

        Returns:
            True when every indexed row matches its source row.
        """
        with self._lock:
            conn = self.connection
            try:
                conn.execute(
                    f"INSERT INTO {schema.FTS_TABLE} ({schema.FTS_TABLE}) VALUES ('integrity-check')"
                )
            except sqlite3.DatabaseError as exc:
                logger.warning("FTS integrity check failed: %s", exc)
                return False
        return True
