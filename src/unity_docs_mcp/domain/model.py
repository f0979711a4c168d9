"""Domain model - documents, sections, search hits and corpus metadata.

Value objects are immutable pydantic models so rows coming out of SQLite
are validated once at the store boundary and can be passed around freely.
"""

from datetime import datetime
from enum import StrEnum
from typing import Literal, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator


class DocumentType(StrEnum):
    """Closed set of document kinds stored in the corpus."""

    MANUAL = "manual"
    SCRIPT_REFERENCE = "script-reference"  # Scripting API reference pages
    PACKAGE_DOCS = "package-docs"


SearchTypeFilter = Literal["all", "manual", "script-reference", "package-docs"]
PackageCategory = Literal["core", "popular", "specialized"]


class DocumentInput(BaseModel):
    """Write-side shape of a document; timestamps are owned by the store."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    version: str = Field(min_length=1)
    type: DocumentType
    title: str
    content: str
    raw_markup: str
    file_path: str = Field(min_length=1)
    url: str | None = None
    package_name: str | None = None
    package_version: str | None = None

    @model_validator(mode="after")
    def _check_package_fields(self) -> Self:
        is_package = self.type is DocumentType.PACKAGE_DOCS
        has_package = bool(self.package_name and self.package_version)
        if is_package and not has_package:
            raise ValueError("package-docs documents require package_name and package_version")
        if not is_package and (self.package_name or self.package_version):
            raise ValueError(f"{self.type.value} documents must not carry package metadata")
        return self


class Document(DocumentInput):
    """A persisted documentation page."""

    created_at: datetime
    updated_at: datetime


class Section(BaseModel):
    """Heading-delimited slice of a document, derived on demand."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    level: int = Field(ge=1, le=6)
    content: str


class SearchResult(BaseModel):
    """Single ranked hit.

    ``score`` is the magnitude of the FTS5 rank: non-negative, and results
    arrive best-first.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    type: DocumentType
    file_path: str
    url: str | None = None
    package_name: str | None = None
    package_version: str | None = None
    snippet: str
    score: float = Field(ge=0.0)


class Page(BaseModel):
    """One character window of a document's plain-text content."""

    model_config = ConfigDict(frozen=True)

    text: str
    offset: int = Field(ge=0)
    limit: int = Field(ge=1)
    total_length: int = Field(ge=0)
    has_more: bool
    next_offset: int | None = None

    @property
    def end(self) -> int:
        return self.offset + len(self.text)


class VersionInfo(BaseModel):
    """Snapshot of corpus metadata and store statistics."""

    model_config = ConfigDict(frozen=True)

    unity_version: str
    release_date: str | None = None
    documentation_source: str | None = None
    last_download: str | None = None
    counts_by_type: dict[str, int] = Field(default_factory=dict)
    total_documents: int = 0
    package_count: int = 0
    database_size_bytes: int = 0
    last_updated: str | None = None


class PackageInfo(BaseModel):
    """Catalog entry for a Unity package whose docs can be downloaded."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: str
    display_name: str
    category: PackageCategory
    priority: int = Field(ge=1, le=10)
    estimated_size: str
    description: str
    documentation_url: str | None = None
    offline_url: str | None = None

    @property
    def estimated_size_mb(self) -> int:
        digits = "".join(ch for ch in self.estimated_size if ch.isdigit())
        return int(digits) if digits else 0
