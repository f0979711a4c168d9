"""Fetch and unpack offline documentation archives.

Downloads are streamed to a ``.part`` file and renamed on success;
extraction goes to a staging directory that is renamed into place, so an
existing target directory always holds a complete tree. There is no
retry: a timeout or HTTP error aborts with ``DownloadError``.
"""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from pathlib import Path
import shutil
import zipfile

import httpx

from unity_docs_mcp.config import Settings
from unity_docs_mcp.errors import DownloadError
from unity_docs_mcp.packages import PackageCatalog
from unity_docs_mcp.search.sqlite_storage import SqliteDocumentStore


logger = logging.getLogger(__name__)

LAST_DOWNLOAD_KEY = "last_download"
_CHUNK_SIZE = 1 << 16


class ArchiveDownloader:
    """Stream a URL to disk with httpx."""

    def __init__(
        self,
        timeout: float = 30.0,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        user_agent: str = "unity-docs-mcp",
    ) -> None:
        self.timeout = timeout
        self._transport = transport
        self._headers = {"User-Agent": user_agent}

    def _client(self) -> httpx.AsyncClient:
        timeout = httpx.Timeout(self.timeout, connect=min(self.timeout, 30.0))
        return httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers=self._headers,
            transport=self._transport,
        )

    async def download(self, url: str, destination: Path) -> Path:
        """Download ``url`` to ``destination``.

        Raises:
            DownloadError: Timeout, connection failure or non-2xx status.
        """
        destination.parent.mkdir(parents=True, exist_ok=True)
        partial = destination.with_name(destination.name + ".part")
        logger.info("Downloading %s to %s", url, destination)

        written = 0
        try:
            async with self._client() as client, client.stream("GET", url) as response:
                response.raise_for_status()
                with partial.open("wb") as handle:
                    async for chunk in response.aiter_bytes(_CHUNK_SIZE):
                        handle.write(chunk)
                        written += len(chunk)
        except httpx.TimeoutException as exc:
            partial.unlink(missing_ok=True)
            raise DownloadError(f"Timed out downloading {url}") from exc
        except httpx.HTTPStatusError as exc:
            partial.unlink(missing_ok=True)
            raise DownloadError(f"Failed to download {url}: HTTP {exc.response.status_code}") from exc
        except (httpx.HTTPError, OSError) as exc:
            partial.unlink(missing_ok=True)
            raise DownloadError(f"Failed to download {url}: {exc}") from exc

        partial.replace(destination)
        logger.info("Downloaded %d bytes from %s", written, url)
        return destination


def extract_zip(archive: Path, destination: Path) -> int:
    """Extract ``archive`` into ``destination`` and return the file count.

    Entries that would land outside ``destination`` (absolute paths or
    ``..`` segments) reject the whole archive before anything is written.
    """
    destination = Path(destination)
    staging = destination.with_name(destination.name + ".extracting")
    shutil.rmtree(staging, ignore_errors=True)

    try:
        with zipfile.ZipFile(archive) as bundle:
            root = staging.resolve()
            members = bundle.infolist()
            for member in members:
                target = (root / member.filename).resolve()
                if target != root and root not in target.parents:
                    raise DownloadError(f"Refusing to extract {member.filename!r} outside {destination}")
            staging.mkdir(parents=True, exist_ok=True)
            bundle.extractall(staging)
    except zipfile.BadZipFile as exc:
        shutil.rmtree(staging, ignore_errors=True)
        raise DownloadError(f"Invalid archive {archive}: {exc}") from exc
    except OSError as exc:
        shutil.rmtree(staging, ignore_errors=True)
        raise DownloadError(f"Failed to extract {archive}: {exc}") from exc

    if destination.exists():
        shutil.rmtree(destination)
    staging.replace(destination)
    file_count = sum(1 for member in members if not member.is_dir())
    logger.info("Extracted %d files from %s to %s", file_count, archive, destination)
    return file_count


async def download_package_docs(
    catalog: PackageCatalog,
    downloader: ArchiveDownloader,
    package_name: str,
) -> Path:
    """Make a package's documentation available on disk.

    Returns the extraction directory. Nothing is fetched when it already
    exists; the archive is removed once extracted.

    Raises:
        UnknownPackageError: Package not in the catalog.
        DownloadError: Download or extraction failed.
    """
    package = catalog.require(package_name)
    extract_path = catalog.extract_path(package.name, package.version)
    if extract_path.exists():
        logger.info("Package documentation already exists: %s@%s", package.name, package.version)
        return extract_path
    if not package.offline_url:
        raise DownloadError(f"No offline documentation available for package: {package.name}")

    archive = catalog.packages_dir / f"{package.name}-{package.version}.zip"
    await downloader.download(package.offline_url, archive)
    try:
        extract_zip(archive, extract_path)
    finally:
        archive.unlink(missing_ok=True)
    logger.info("Package documentation ready: %s@%s at %s", package.name, package.version, extract_path)
    return extract_path


async def download_packages(
    catalog: PackageCatalog,
    downloader: ArchiveDownloader,
    package_names: list[str],
) -> tuple[list[str], list[tuple[str, str]]]:
    """Download several packages in order; one failure does not stop the rest.

    Returns:
        ``(successful names, [(failed name, error message), ...])``
    """
    successful: list[str] = []
    failed: list[tuple[str, str]] = []
    for index, name in enumerate(package_names, start=1):
        logger.info("Downloading package %d/%d: %s", index, len(package_names), name)
        try:
            await download_package_docs(catalog, downloader, name)
        except Exception as exc:
            logger.error("Failed to download %s: %s", name, exc)
            failed.append((name, str(exc)))
            continue
        successful.append(name)
    return successful, failed


async def download_unity_docs(
    settings: Settings,
    downloader: ArchiveDownloader,
    version: str,
    store: SqliteDocumentStore | None = None,
) -> Path:
    """Download and extract a Unity version's offline manual.

    An archive or extraction directory already on disk is reused. When a
    store is given the ``last_download`` metadata key is refreshed.
    """
    if version not in settings.get_supported_versions():
        raise DownloadError(
            f"Unsupported Unity version {version!r}; expected one of {', '.join(settings.get_supported_versions())}"
        )

    archive = settings.zips_dir / f"unity-{version}.zip"
    extract_path = settings.version_docs_dir(version)

    if archive.exists():
        logger.info("Archive already present, skipping download: %s", archive)
    else:
        await downloader.download(settings.download_url(version), archive)

    if extract_path.exists():
        logger.info("Documentation already extracted, skipping: %s", extract_path)
    else:
        extract_zip(archive, extract_path)

    if store is not None:
        store.set_metadata(LAST_DOWNLOAD_KEY, datetime.now(timezone.utc).isoformat())
    logger.info("Unity %s documentation ready at %s", version, extract_path)
    return extract_path
