"""Centralized configuration for unity-docs-mcp using Pydantic Settings."""

from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_UNITY_VERSION = "6000.1"


class Settings(BaseSettings):
    """Strictly typed configuration loaded from environment variables.

    Built once by the process entry point and passed into every component
    that needs it; nothing in the package reads the environment on its own.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",  # Ignore extra env vars not defined in model
    )

    # Storage
    data_dir: Path = Field(default=Path("data"), description="Root directory for archives, extracted docs and the database")
    database_path: str = Field(default="", description="SQLite database file (defaults to <data_dir>/unity.db)")

    # Unity documentation corpus
    default_version: str = Field(default=DEFAULT_UNITY_VERSION, description="Corpus version used when none is requested")
    supported_versions: str = Field(
        default="6000.0,6000.1,6000.2,6000.3",
        description="Comma-separated Unity documentation versions that may be downloaded and indexed",
    )
    download_url_template: str = Field(
        default="https://cloudmedia-docs.unity3d.com/docscloudstorage/en/{version}/UnityDocumentation.zip",
        description="Offline documentation archive URL; {version} is substituted",
    )
    release_date: str = Field(default="2024-11-20", description="Release date recorded for the default version")
    documentation_source: str = Field(
        default="https://docs.unity3d.com/6000.1/Documentation/",
        description="Human-facing documentation root recorded in corpus metadata",
    )

    # HTTP settings
    http_timeout: int = Field(default=30, ge=1, description="HTTP request timeout in seconds")

    # Retrieval settings
    read_page_size: int = Field(default=2000, ge=1, description="Default character page size for read_unity_doc")
    search_default_limit: int = Field(default=10, ge=1, description="Default number of search results")
    search_max_limit: int = Field(default=100, ge=1, description="Upper bound accepted for search limit")
    max_code_examples: int = Field(default=3, ge=0, description="Code blocks appended to read_unity_doc output")

    # Indexing
    progress_interval: int = Field(default=100, ge=1, description="Log indexing progress every N files")

    # Logging
    log_level: str = Field(default="info", description="Logging level")
    log_json: bool = Field(default=True, description="Emit structured JSON logs")
    mcp_mode: Literal["stdio", "debug"] = Field(
        default="stdio",
        description="stdio keeps logging at error level so it never competes with protocol traffic",
    )

    @model_validator(mode="after")
    def _check_consistency(self) -> "Settings":
        if self.default_version not in self.get_supported_versions():
            raise ValueError(
                f"DEFAULT_VERSION {self.default_version!r} is not listed in SUPPORTED_VERSIONS "
                f"({', '.join(self.get_supported_versions())})"
            )
        if self.search_default_limit > self.search_max_limit:
            raise ValueError(
                f"SEARCH_DEFAULT_LIMIT ({self.search_default_limit}) exceeds SEARCH_MAX_LIMIT ({self.search_max_limit})"
            )
        return self

    def get_supported_versions(self) -> list[str]:
        """Get list of supported documentation versions (comma-separated)."""
        if not self.supported_versions:
            return []
        return [version.strip() for version in self.supported_versions.split(",") if version.strip()]

    def resolved_database_path(self) -> Path:
        if self.database_path:
            return Path(self.database_path).expanduser()
        return self.data_dir / "unity.db"

    @property
    def zips_dir(self) -> Path:
        return self.data_dir / "unity-zips"

    @property
    def extracted_dir(self) -> Path:
        return self.data_dir / "extracted"

    @property
    def packages_dir(self) -> Path:
        return self.data_dir / "unity-packages"

    def version_docs_dir(self, version: str | None = None) -> Path:
        """Directory holding the extracted HTML tree for a documentation version."""
        return self.extracted_dir / f"unity-{version or self.default_version}"

    def download_url(self, version: str) -> str:
        return self.download_url_template.format(version=version)

    def effective_log_level(self) -> str:
        """Log level honoring stdio mode.

        Returns:
            "error" while serving over stdio, otherwise the configured level
        """
        if self.mcp_mode == "stdio":
            return "error"
        return self.log_level
