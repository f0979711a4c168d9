"""Validated tool arguments.

Every tool builds one of these before touching the store, so malformed
input (negative offsets, unknown document types, stray fields) is rejected
with a ``pydantic.ValidationError`` instead of reaching SQLite.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from unity_docs_mcp.domain.model import SearchTypeFilter


MAX_SEARCH_LIMIT = 100
MAX_PAGE_SIZE = 100_000


class _Request(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True, str_strip_whitespace=True)


class SearchDocsRequest(_Request):
    query: str
    limit: int = Field(default=10, ge=1)
    offset: int = Field(default=0, ge=0)
    type: SearchTypeFilter = "all"
    version: str | None = None
    package_name: str | None = None

    @field_validator("limit")
    @classmethod
    def _cap_limit(cls, value: int, info: ValidationInfo) -> int:
        # Servers pass their configured ceiling as validation context.
        ceiling = (info.context or {}).get("max_limit", MAX_SEARCH_LIMIT)
        if value > ceiling:
            raise ValueError(f"limit must be at most {ceiling}")
        return value


class ReadDocRequest(_Request):
    path: str = Field(min_length=1)
    offset: int = Field(default=0, ge=0)
    limit: int = Field(default=2000, ge=1, le=MAX_PAGE_SIZE)
    package_name: str | None = None


class ListSectionsRequest(_Request):
    path: str = Field(min_length=1)
    package_name: str | None = None


class ReadSectionRequest(_Request):
    path: str = Field(min_length=1)
    section_id: str = Field(min_length=1)
    package_name: str | None = None


class FindRelatedRequest(_Request):
    path: str = Field(min_length=1)
    limit: int = Field(default=5, ge=1, le=20)
    package_name: str | None = None


class DownloadPackageRequest(_Request):
    package_name: str = Field(min_length=1)
    index: bool = True
