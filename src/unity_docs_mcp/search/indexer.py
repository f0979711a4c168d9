"""Bulk indexing of extracted documentation trees into the document store.

A run covers exactly one scope, either a Unity version's own pages or one
package version. Within one transaction the scope is purged and every
``*.html`` file under the root is parsed and inserted, so re-running an
index never leaves duplicate or stale rows. Files that cannot be read or
parsed are skipped and counted. A storage fault rolls back the whole run
and propagates as ``StorageError``; a failing FTS optimize raises
``IndexingError``.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
import hashlib
import logging
from pathlib import Path
import time

from unity_docs_mcp.domain.model import DocumentInput, DocumentType
from unity_docs_mcp.errors import IndexingError, StorageError
from unity_docs_mcp.observability.metrics import INDEX_FAILURES, INDEXED_DOCUMENTS
from unity_docs_mcp.observability.tracing import create_span
from unity_docs_mcp.parsing.html_parser import UnityHtmlParser
from unity_docs_mcp.search.sqlite_storage import SqliteDocumentStore


logger = logging.getLogger(__name__)

DOCUMENT_ID_LENGTH = 16
PACKAGE_DOCS_BASE_URL = "https://docs.unity3d.com/Packages"
LAST_INDEXED_KEY = "last_indexed"


def compute_document_id(scope_key: str) -> str:
    """Deterministic 16-hex-digit id for a scope-qualified path."""
    return hashlib.sha256(scope_key.encode("utf-8")).hexdigest()[:DOCUMENT_ID_LENGTH]


def version_document_id(version: str, relative_path: str) -> str:
    return compute_document_id(f"{version}:{relative_path}")


def package_document_id(package_name: str, relative_path: str) -> str:
    # Package version is not part of the key, matching previously indexed corpora.
    return compute_document_id(f"{package_name}/{relative_path}")


def iter_html_files(root: Path) -> Iterator[tuple[Path, str]]:
    """Yield ``(absolute path, POSIX relative path)`` for every HTML file, sorted."""
    for path in sorted(root.rglob("*.html")):
        if path.is_file():
            yield path, path.relative_to(root).as_posix()


@dataclass
class IndexRunResult:
    """Outcome of one indexing run."""

    scope: str
    processed: int = 0
    failed: int = 0
    purged: int = 0
    errors: list[tuple[str, str]] = field(default_factory=list)
    counts_by_type: dict[str, int] = field(default_factory=dict)
    duration_seconds: float = 0.0

    @property
    def total_files(self) -> int:
        return self.processed + self.failed

    def to_dict(self) -> dict:
        return {
            "scope": self.scope,
            "processed": self.processed,
            "failed": self.failed,
            "purged": self.purged,
            "total_files": self.total_files,
            "counts_by_type": dict(self.counts_by_type),
            "duration_seconds": round(self.duration_seconds, 2),
            "errors": [{"file": path, "error": message} for path, message in self.errors],
        }


class DocumentIndexer:
    """Index extracted documentation trees into a ``SqliteDocumentStore``."""

    def __init__(
        self,
        store: SqliteDocumentStore,
        parser: UnityHtmlParser | None = None,
        progress_interval: int = 100,
    ) -> None:
        self.store = store
        self.parser = parser or UnityHtmlParser()
        self.progress_interval = max(1, progress_interval)

    def index_version(self, root: Path, version: str) -> IndexRunResult:
        """Replace a Unity version's documents with the pages under ``root``."""
        scope = f"unity-{version}"

        def build(relative_path: str, html: str) -> DocumentInput:
            parsed = self.parser.parse(html, relative_path)
            return DocumentInput(
                id=version_document_id(version, relative_path),
                version=version,
                type=parsed.type,
                title=parsed.title,
                content=parsed.content,
                raw_markup=html,
                file_path=relative_path,
                url=f"unity://{version}/{relative_path}",
            )

        return self._run(scope, Path(root), purge=lambda: self.store.delete_version(version), build=build)

    def index_package(
        self,
        root: Path,
        package_name: str,
        package_version: str,
        unity_version: str,
    ) -> IndexRunResult:
        """Replace one package version's documents with the pages under ``root``.

        Package pages are always typed ``package-docs`` and are attributed to
        ``unity_version`` so they are searchable next to that version's pages.
        """
        scope = f"{package_name}@{package_version}"

        def build(relative_path: str, html: str) -> DocumentInput:
            parsed = self.parser.parse(html, relative_path)
            return DocumentInput(
                id=package_document_id(package_name, relative_path),
                version=unity_version,
                type=DocumentType.PACKAGE_DOCS,
                title=parsed.title,
                content=parsed.content,
                raw_markup=html,
                file_path=relative_path,
                url=f"{PACKAGE_DOCS_BASE_URL}/{package_name}@{package_version}/{relative_path}",
                package_name=package_name,
                package_version=package_version,
            )

        return self._run(
            scope,
            Path(root),
            purge=lambda: self.store.delete_package(package_name, package_version),
            build=build,
        )

    def _run(self, scope, root: Path, *, purge, build) -> IndexRunResult:
        if not root.is_dir():
            raise IndexingError(f"Documentation directory not found: {root}")

        result = IndexRunResult(scope=scope)
        started = time.perf_counter()
        logger.info("Indexing %s from %s", scope, root)

        with create_span("indexer.run", attributes={"index.scope": scope, "index.root": str(root)}) as span:
            with self.store.transaction():
                result.purged = purge()
                logger.info("Cleared %d existing documents for %s", result.purged, scope)

                for path, relative_path in iter_html_files(root):
                    try:
                        html = path.read_text(encoding="utf-8")
                        document = self.store.upsert_document(build(relative_path, html))
                    except (OSError, UnicodeDecodeError, ValueError) as exc:
                        result.failed += 1
                        result.errors.append((relative_path, str(exc)))
                        INDEX_FAILURES.labels(scope=scope).inc()
                        logger.error("Failed to index %s: %s", relative_path, exc)
                        continue

                    result.processed += 1
                    result.counts_by_type[document.type.value] = result.counts_by_type.get(document.type.value, 0) + 1
                    if result.processed % self.progress_interval == 0:
                        logger.info("Indexed %d documents for %s", result.processed, scope)

                self.store.set_metadata(LAST_INDEXED_KEY, datetime.now(timezone.utc).isoformat())

            try:
                self.store.optimize_index()
            except StorageError as exc:
                raise IndexingError(f"FTS optimize failed after indexing {scope}: {exc}") from exc

            result.duration_seconds = time.perf_counter() - started
            span.set_attribute("index.processed", result.processed)
            span.set_attribute("index.failed", result.failed)

        INDEXED_DOCUMENTS.labels(scope=scope).set(result.processed)
        logger.info(
            "Indexing of %s completed: processed=%d failed=%d duration=%.2fs",
            scope,
            result.processed,
            result.failed,
            result.duration_seconds,
        )
        return result
