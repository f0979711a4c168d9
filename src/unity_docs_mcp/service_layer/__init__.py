"""Service layer - tool use cases rendered as text.

The MCP server adapts tool arguments into request models and hands them
to ``UnityDocsService``; nothing here knows about the wire protocol.
"""

from .docs_service import UnityDocsService, corpus_metadata_defaults
from .requests import (
    DownloadPackageRequest,
    FindRelatedRequest,
    ListSectionsRequest,
    ReadDocRequest,
    ReadSectionRequest,
    SearchDocsRequest,
)


__all__ = [
    "DownloadPackageRequest",
    "FindRelatedRequest",
    "ListSectionsRequest",
    "ReadDocRequest",
    "ReadSectionRequest",
    "SearchDocsRequest",
    "UnityDocsService",
    "corpus_metadata_defaults",
]
