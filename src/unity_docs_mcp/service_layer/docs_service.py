"""Tool-facing operations rendered as Markdown text.

``UnityDocsService`` owns no storage of its own; it composes the search
engine, the section and pagination helpers, the package catalog and the
indexer, and turns their results into the text each MCP tool returns.
"Not found" outcomes are ordinary responses here, never exceptions.
"""

from __future__ import annotations

import logging
from pathlib import Path

from unity_docs_mcp.config import Settings
from unity_docs_mcp.domain.model import Document, Page, SearchResult, VersionInfo
from unity_docs_mcp.packages import CATEGORY_ORDER, PackageCatalog
from unity_docs_mcp.parsing.html_parser import UnityHtmlParser
from unity_docs_mcp.search.engine import DocumentSearch
from unity_docs_mcp.search.indexer import DocumentIndexer
from unity_docs_mcp.search.pagination import paginate
from unity_docs_mcp.search.sections import extract_sections, find_section
from unity_docs_mcp.search.sqlite_storage import SqliteDocumentStore
from unity_docs_mcp.service_layer.requests import (
    DownloadPackageRequest,
    FindRelatedRequest,
    ListSectionsRequest,
    ReadDocRequest,
    ReadSectionRequest,
    SearchDocsRequest,
)
from unity_docs_mcp.utils.downloader import LAST_DOWNLOAD_KEY, ArchiveDownloader, download_package_docs


logger = logging.getLogger(__name__)


def corpus_metadata_defaults(settings: Settings) -> dict[str, str]:
    """Initial ``version_info`` rows for a fresh store."""
    return {
        "unity_version": settings.default_version,
        "release_date": settings.release_date,
        "documentation_source": settings.documentation_source,
        LAST_DOWNLOAD_KEY: "",
    }


def _format_size(size_bytes: int) -> str:
    return f"{size_bytes / (1024 * 1024):.2f} MB"


def _not_found(path: str) -> str:
    return f"Documentation file not found: {path}"


def _render_page(page: Page) -> str:
    if page.has_more:
        return (
            f"{page.text}\n\n... (content truncated)"
            "\n\n**Pagination Info:**"
            f"\n- Total length: {page.total_length} characters"
            f"\n- Current position: {page.offset}-{page.offset + page.limit}"
            f"\n- Next offset: {page.next_offset}"
        )
    return f"{page.text}\n\n**Complete content shown** ({page.total_length} characters)"


def _render_result_list(results: list[SearchResult]) -> str:
    lines: list[str] = []
    for index, result in enumerate(results, start=1):
        lines.append(f"{index}. **{result.title}** ({result.type.value})")
        lines.append(f"   Path: {result.file_path}")
        if result.package_name:
            lines.append(f"   Package: {result.package_name}@{result.package_version}")
        lines.append(f"   {result.snippet}")
        lines.append("")
    return "\n".join(lines)


class UnityDocsService:
    """Business logic behind the MCP tools."""

    def __init__(
        self,
        settings: Settings,
        store: SqliteDocumentStore,
        *,
        search: DocumentSearch | None = None,
        parser: UnityHtmlParser | None = None,
        catalog: PackageCatalog | None = None,
        downloader: ArchiveDownloader | None = None,
        indexer: DocumentIndexer | None = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.search = search or DocumentSearch(store, settings.default_version)
        self.parser = parser or UnityHtmlParser()
        self.catalog = catalog or PackageCatalog(settings.packages_dir)
        self.downloader = downloader or ArchiveDownloader(timeout=settings.http_timeout)
        self.indexer = indexer or DocumentIndexer(store, self.parser, settings.progress_interval)

    # -- search ------------------------------------------------------------

    def search_docs(self, request: SearchDocsRequest) -> str:
        logger.info("Searching Unity docs: query=%r limit=%d type=%s", request.query, request.limit, request.type)
        results = self.search.search(
            request.query,
            limit=request.limit,
            offset=request.offset,
            type_filter=request.type,
            version=request.version,
            package_name=request.package_name,
        )
        if not results:
            return f'No results found for "{request.query}"'
        return f'Found {len(results)} results for "{request.query}":\n\n' + _render_result_list(results)

    def find_related(self, request: FindRelatedRequest) -> str:
        document = self._lookup(request.path, request.package_name)
        if document is None:
            return _not_found(request.path)
        results = self.search.find_similar(document.id, limit=request.limit)
        if not results:
            return f"No related documents found for {request.path}"
        return f"# Related to {document.title}\n\n" + _render_result_list(results)

    # -- reading -----------------------------------------------------------

    def read_doc(self, request: ReadDocRequest) -> str:
        logger.info("Reading Unity doc: path=%s offset=%d limit=%d", request.path, request.offset, request.limit)
        document = self._lookup(request.path, request.package_name)
        if document is None:
            return self._read_from_disk(request)

        page = paginate(document.content, request.offset, request.limit)
        response = (
            f"# {document.title}\n\n"
            f"**Type:** {document.type.value}\n"
            f"**Path:** {document.file_path}\n\n"
            f"{_render_page(page)}"
        )

        code_blocks = self.parser.extract_code_blocks(document.raw_markup)[: self.settings.max_code_examples]
        if code_blocks:
            response += "\n\n## Code Examples:\n\n"
            response += "".join(f"```csharp\n{code}\n```\n\n" for code in code_blocks)
        return response

    def _read_from_disk(self, request: ReadDocRequest) -> str:
        """Serve a page that was extracted but never indexed."""
        base = self.settings.version_docs_dir().resolve()
        candidate = (base / request.path).resolve()
        if base not in candidate.parents or not candidate.is_file():
            return _not_found(request.path)

        html = candidate.read_text(encoding="utf-8")
        parsed = self.parser.parse(html, request.path)
        page = paginate(parsed.content, request.offset, request.limit)
        logger.info("Served %s from extracted files (not indexed)", request.path)
        return f"# {parsed.title}\n\n**Type:** {parsed.type.value}\n\n{_render_page(page)}"

    def list_sections(self, request: ListSectionsRequest) -> str:
        document = self._lookup(request.path, request.package_name)
        if document is None:
            return _not_found(request.path)

        sections = extract_sections(document.raw_markup)
        lines = [
            f"# Sections in {document.title}",
            "",
            f"**Path:** {request.path}",
            f"**Total sections:** {len(sections)}",
            "",
        ]
        for index, section in enumerate(sections, start=1):
            indent = "  " * (section.level - 1)
            lines.append(f"{index}. {indent}**{section.title}** (Level {section.level})")
            lines.append(f"   {indent}ID: `{section.id}`")
            lines.append(f"   {indent}Content length: {len(section.content)} characters")
            lines.append("")
        return "\n".join(lines)

    def read_section(self, request: ReadSectionRequest) -> str:
        document = self._lookup(request.path, request.package_name)
        if document is None:
            return _not_found(request.path)

        sections = extract_sections(document.raw_markup)
        section = find_section(sections, request.section_id)
        if section is None:
            available = ", ".join(s.id for s in sections)
            return f"Section not found: {request.section_id}. Available sections: {available}"

        return (
            f"# {section.title}\n\n"
            f"**Document:** {document.title}\n"
            f"**Path:** {request.path}\n"
            f"**Section ID:** {section.id}\n"
            f"**Level:** {section.level}\n\n"
            "---\n\n"
            f"{section.content}"
        )

    def _lookup(self, path: str, package_name: str | None) -> Document | None:
        return self.search.get_document_by_path(path, package_name=package_name)

    # -- corpus info -------------------------------------------------------

    def get_version_info(self) -> VersionInfo:
        metadata = {**corpus_metadata_defaults(self.settings), **self.store.all_metadata()}
        version = metadata["unity_version"] or self.settings.default_version
        counts = self.store.count_by_type(version)
        return VersionInfo(
            unity_version=version,
            release_date=metadata.get("release_date") or None,
            documentation_source=metadata.get("documentation_source") or None,
            last_download=metadata.get(LAST_DOWNLOAD_KEY) or None,
            counts_by_type=counts,
            total_documents=sum(counts.values()),
            package_count=len(self.store.indexed_packages()),
            database_size_bytes=self.store.database_size_bytes(),
            last_updated=self.store.last_updated_at(),
        )

    def version_info(self) -> str:
        info = self.get_version_info()
        lines = [
            "# Unity Documentation Info",
            "",
            f"**Unity Version:** {info.unity_version}",
            f"**Release Date:** {info.release_date or 'unknown'}",
            f"**Documentation Source:** {info.documentation_source or 'unknown'}",
            f"**Last Download:** {info.last_download or 'never'}",
            f"**Last Updated:** {info.last_updated or 'never'}",
            "",
            "## Indexed Documents",
            "",
        ]
        if info.counts_by_type:
            lines.extend(f"- {doc_type}: {count}" for doc_type, count in sorted(info.counts_by_type.items()))
        else:
            lines.append("- No documents indexed")
        lines.extend(
            [
                "",
                f"**Total Documents:** {info.total_documents}",
                f"**Indexed Packages:** {info.package_count}",
                f"**Database Size:** {_format_size(info.database_size_bytes)}",
            ]
        )
        return "\n".join(lines)

    # -- packages ----------------------------------------------------------

    def list_packages(self) -> str:
        indexed = self.store.indexed_packages()
        stats = self.catalog.download_statistics()
        lines = [
            "# Unity Packages",
            "",
            f"**Downloaded:** {stats['downloaded']}/{stats['total']} "
            f"(estimated total size {stats['estimated_total_size']})",
        ]
        for category in CATEGORY_ORDER:
            lines.extend(["", f"## {category.capitalize()}", ""])
            for package in self.catalog.by_category(category):
                indexed_count = indexed.get(package.name, {}).get(package.version, 0)
                downloaded = "yes" if self.catalog.is_downloaded(package.name) else "no"
                lines.append(f"- **{package.display_name}** (`{package.name}` {package.version}) - {package.description}")
                lines.append(
                    f"  Size: {package.estimated_size} | Downloaded: {downloaded} | Indexed documents: {indexed_count}"
                )
        return "\n".join(lines)

    async def download_package(self, request: DownloadPackageRequest) -> str:
        package = self.catalog.require(request.package_name)
        path: Path = await download_package_docs(self.catalog, self.downloader, package.name)
        lines = [f"Documentation for {package.display_name} ({package.name}@{package.version}) is available at {path}"]
        if request.index:
            result = self.indexer.index_package(path, package.name, package.version, self.settings.default_version)
            lines.append(
                f"Indexed {result.processed} documents ({result.failed} failed) in {result.duration_seconds:.2f}s"
            )
        return "\n".join(lines)
