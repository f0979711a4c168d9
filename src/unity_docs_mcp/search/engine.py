"""Full-text search and exact lookups over the document store."""

from __future__ import annotations

import logging
import re

from unity_docs_mcp.domain.model import Document, DocumentType, SearchResult, SearchTypeFilter
from unity_docs_mcp.observability.metrics import SEARCH_LATENCY, track_latency
from unity_docs_mcp.observability.tracing import create_span
from unity_docs_mcp.search.sanitizer import sanitize_query, to_match_expression
from unity_docs_mcp.search.sqlite_storage import SqliteDocumentStore


logger = logging.getLogger(__name__)

_TITLE_WORD = re.compile(r"\s+")
_SIMILAR_MIN_WORD_LENGTH = 4
_SIMILAR_MAX_WORDS = 3


class DocumentSearch:
    """Search, lookup and related-page discovery for one store.

    Queries never carry raw user text to SQLite: they are sanitized and
    turned into quoted FTS5 phrases first. An empty sanitized query
    returns no results without touching storage.
    """

    def __init__(self, store: SqliteDocumentStore, default_version: str) -> None:
        self.store = store
        self.default_version = default_version

    def search(
        self,
        query: str,
        limit: int = 10,
        offset: int = 0,
        type_filter: SearchTypeFilter = "all",
        version: str | None = None,
        package_name: str | None = None,
        package_version: str | None = None,
    ) -> list[SearchResult]:
        """Rank documents matching ``query``.

        Args:
            query: Free-text query; sanitized before use.
            limit: Maximum results, applied after ranking.
            offset: Ranked results to skip.
            type_filter: ``all`` or a single document type.
            version: Corpus version; defaults to the engine's default.
            package_name: Restrict to one package.
            package_version: Restrict to one package version.

        Returns:
            Best-first results; empty when nothing matches or nothing
            searchable remains after sanitization.

        Raises:
            StorageError: The underlying query failed.
        """
        sanitized = sanitize_query(query)
        expression = to_match_expression(sanitized)
        if not expression:
            logger.debug("Query %r sanitized to nothing searchable", query)
            return []

        target_version = version or self.default_version
        document_type = None if type_filter == "all" else DocumentType(type_filter).value

        with (
            track_latency(SEARCH_LATENCY),
            create_span(
                "search.fts_match",
                attributes={
                    "search.query": sanitized,
                    "search.version": target_version,
                    "search.type": document_type,
                    "search.limit": limit,
                },
            ) as span,
        ):
            rows = self.store.match(
                expression,
                version=target_version,
                document_type=document_type,
                package_name=package_name,
                package_version=package_version,
                limit=limit,
                offset=offset,
            )
            span.set_attribute("search.result_count", len(rows))

        return [
            SearchResult(
                id=row["id"],
                title=row["title"],
                type=DocumentType(row["type"]),
                file_path=row["file_path"],
                url=row["url"],
                package_name=row["package_name"],
                package_version=row["package_version"],
                snippet=row["snippet"] or "",
                score=abs(row["rank"] or 0.0),
            )
            for row in rows
        ]

    def get_document(self, document_id: str) -> Document | None:
        return self.store.get_document(document_id)

    def get_document_by_path(
        self,
        file_path: str,
        version: str | None = None,
        package_name: str | None = None,
    ) -> Document | None:
        return self.store.get_document_by_path(file_path, version or self.default_version, package_name)

    def find_similar(self, document_id: str, limit: int = 5) -> list[SearchResult]:
        """Pages that look related to a document, judged by title words.

        The first three title words longer than three characters are
        searched within the document's type and version; the document
        itself is excluded. Best-effort: any failure is logged and yields
        an empty list.
        """
        try:
            document = self.store.get_document(document_id)
            if document is None:
                return []

            words = [word for word in _TITLE_WORD.split(document.title) if len(word) >= _SIMILAR_MIN_WORD_LENGTH]
            query = " ".join(words[:_SIMILAR_MAX_WORDS])
            if not query:
                return []

            results = self.search(
                query,
                limit=limit + 1,
                type_filter=document.type.value,
                version=document.version,
                package_name=document.package_name,
            )
            return [result for result in results if result.id != document_id][:limit]
        except Exception:
            logger.exception("Failed to find documents similar to %s", document_id)
            return []
