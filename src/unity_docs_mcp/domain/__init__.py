"""Domain layer - pure data types with no infrastructure dependencies.

The store, search engine and tool service all exchange these models; none
of them import SQLite, HTTP or HTML libraries.
"""

from .model import (
    Document,
    DocumentInput,
    DocumentType,
    PackageCategory,
    PackageInfo,
    Page,
    SearchResult,
    SearchTypeFilter,
    Section,
    VersionInfo,
)


__all__ = [
    "Document",
    "DocumentInput",
    "DocumentType",
    "PackageCategory",
    "PackageInfo",
    "Page",
    "SearchResult",
    "SearchTypeFilter",
    "Section",
    "VersionInfo",
]
