"""Exception hierarchy shared by the store, indexer, downloader and CLI."""

from __future__ import annotations


class UnityDocsError(Exception):
    """Base class for errors raised by unity-docs-mcp."""


class StorageError(UnityDocsError):
    """The document store could not complete a read or write."""


class IndexingError(UnityDocsError):
    """An indexing run failed as a whole (per-file failures are counted, not raised)."""


class DownloadError(UnityDocsError):
    """Fetching or extracting a documentation archive failed."""


class UnknownPackageError(UnityDocsError):
    """The requested package is not part of the known package catalog."""

    def __init__(self, package_name: str) -> None:
        super().__init__(f"Unknown package: {package_name}")
        self.package_name = package_name
