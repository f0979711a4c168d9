"""Operator CLI: prepare the database, fetch documentation and build the index.

Every subcommand returns 0 on success and 1 on an unrecoverable failure.
An indexing run in which some files failed to parse still succeeds; the
failures are listed in the summary.
"""

# ruff: noqa: T201  # CLI intentionally prints operator feedback

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Sequence
from pathlib import Path
import sys
import textwrap

from prometheus_client import generate_latest
from pydantic import ValidationError

from unity_docs_mcp.config import Settings
from unity_docs_mcp.errors import UnityDocsError
from unity_docs_mcp.observability import configure_logging
from unity_docs_mcp.observability.metrics import REGISTRY
from unity_docs_mcp.packages import PackageCatalog
from unity_docs_mcp.search import schema
from unity_docs_mcp.search.indexer import DocumentIndexer, IndexRunResult
from unity_docs_mcp.search.sqlite_storage import SqliteDocumentStore
from unity_docs_mcp.service_layer.docs_service import UnityDocsService, corpus_metadata_defaults
from unity_docs_mcp.utils.downloader import (
    ArchiveDownloader,
    download_package_docs,
    download_packages,
    download_unity_docs,
)


BATCH_TARGETS = ("core", "popular", "specialized", "recommended")
_ERROR_PREVIEW = 5


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="unity-docs",
        description="Manage the local Unity documentation index",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent(
            """
            Examples:
              unity-docs init-db
              unity-docs download-docs 6000.1
              unity-docs index-docs 6000.1
              unity-docs download-package-batch core --index
              unity-docs index-package-docs com.unity.inputsystem
              unity-docs stats --check
              unity-docs --metrics index-docs 6000.1
            """
        ).strip(),
    )
    parser.add_argument("--data-dir", type=Path, help="Override DATA_DIR for this invocation")
    parser.add_argument("--database", help="Override DATABASE_PATH for this invocation")
    parser.add_argument(
        "--metrics",
        action="store_true",
        help="Print Prometheus metrics collected during the command to stdout",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create or migrate the database and seed corpus metadata")

    index_docs = commands.add_parser("index-docs", help="Index an extracted Unity documentation version")
    index_docs.add_argument("version", nargs="?", help="Unity version (default: DEFAULT_VERSION)")
    index_docs.add_argument("--root", type=Path, help="Directory to index instead of the extracted docs folder")

    index_packages = commands.add_parser("index-package-docs", help="Index downloaded package documentation")
    index_packages.add_argument("package", nargs="?", help="Package name (default: every downloaded package)")

    download_docs = commands.add_parser("download-docs", help="Download and extract a Unity documentation archive")
    download_docs.add_argument("version", nargs="?", help="Unity version (default: DEFAULT_VERSION)")

    download_package = commands.add_parser("download-package-docs", help="Download one package's documentation")
    download_package.add_argument("package", help="Package name, e.g. com.unity.inputsystem")
    download_package.add_argument("--index", action="store_true", help="Index the package after downloading")

    download_batch = commands.add_parser("download-package-batch", help="Download a group of packages")
    download_batch.add_argument("target", choices=BATCH_TARGETS, help="Package category or 'recommended'")
    download_batch.add_argument("--index", action="store_true", help="Index each package after downloading")

    stats = commands.add_parser("stats", help="Show corpus metadata and document counts")
    stats.add_argument("--check", action="store_true", help="Also verify the full-text index against the table")
    return parser


def _load_settings(args: argparse.Namespace) -> Settings:
    overrides: dict[str, object] = {}
    if args.data_dir is not None:
        overrides["data_dir"] = args.data_dir
    if args.database:
        overrides["database_path"] = args.database
    return Settings(**overrides)


def _print_run(result: IndexRunResult) -> None:
    print(
        f"- {result.scope:<45} indexed {result.processed} docs (failed {result.failed}, "
        f"replaced {result.purged}) in {result.duration_seconds:.2f}s"
    )
    for doc_type, count in sorted(result.counts_by_type.items()):
        print(f"    {doc_type}: {count}")
    for path, message in result.errors[:_ERROR_PREVIEW]:
        print(f"  error: {path}: {message}")
    remaining = len(result.errors) - _ERROR_PREVIEW
    if remaining > 0:
        print(f"  ... {remaining} more error(s)")


def _cmd_init_db(settings: Settings, store: SqliteDocumentStore, args: argparse.Namespace) -> int:
    version = schema.current_version(store.connection)
    print(f"Database ready: {settings.resolved_database_path()} (schema version {version})")
    for key, value in store.all_metadata().items():
        print(f"  {key}: {value or '-'}")
    return 0


def _cmd_index_docs(settings: Settings, store: SqliteDocumentStore, args: argparse.Namespace) -> int:
    version = args.version or settings.default_version
    root = args.root or settings.version_docs_dir(version)
    indexer = DocumentIndexer(store, progress_interval=settings.progress_interval)
    _print_run(indexer.index_version(root, version))
    return 0


def _cmd_index_package_docs(settings: Settings, store: SqliteDocumentStore, args: argparse.Namespace) -> int:
    catalog = PackageCatalog(settings.packages_dir)
    if args.package:
        package = catalog.require(args.package)
        targets = [package] if catalog.is_downloaded(package.name) else []
        if not targets:
            print(f"Package documentation not downloaded: {package.name}. Run download-package-docs first.")
            return 1
    else:
        targets = [package for package in catalog.list_packages() if catalog.is_downloaded(package.name)]
        if not targets:
            print("No downloaded package documentation found.")
            return 1

    indexer = DocumentIndexer(store, progress_interval=settings.progress_interval)
    for package in targets:
        path = catalog.extract_path(package.name, package.version)
        _print_run(indexer.index_package(path, package.name, package.version, settings.default_version))
    return 0


def _cmd_download_docs(settings: Settings, store: SqliteDocumentStore, args: argparse.Namespace) -> int:
    version = args.version or settings.default_version
    downloader = ArchiveDownloader(timeout=settings.http_timeout)
    path = asyncio.run(download_unity_docs(settings, downloader, version, store))
    print(f"Unity {version} documentation ready at {path}")
    return 0


def _cmd_download_package_docs(settings: Settings, store: SqliteDocumentStore, args: argparse.Namespace) -> int:
    catalog = PackageCatalog(settings.packages_dir)
    package = catalog.require(args.package)
    downloader = ArchiveDownloader(timeout=settings.http_timeout)
    path = asyncio.run(download_package_docs(catalog, downloader, package.name))
    print(f"{package.display_name} ({package.name}@{package.version}) documentation ready at {path}")
    if args.index:
        indexer = DocumentIndexer(store, progress_interval=settings.progress_interval)
        _print_run(indexer.index_package(path, package.name, package.version, settings.default_version))
    return 0


def _cmd_download_package_batch(settings: Settings, store: SqliteDocumentStore, args: argparse.Namespace) -> int:
    catalog = PackageCatalog(settings.packages_dir)
    if args.target == "recommended":
        packages = catalog.recommended()
    else:
        packages = catalog.by_category(args.target)

    print(f"Downloading {len(packages)} package(s): {', '.join(p.name for p in packages)}")
    downloader = ArchiveDownloader(timeout=settings.http_timeout)
    successful, failed = asyncio.run(download_packages(catalog, downloader, [p.name for p in packages]))

    if args.index and successful:
        indexer = DocumentIndexer(store, progress_interval=settings.progress_interval)
        for name in successful:
            package = catalog.require(name)
            path = catalog.extract_path(package.name, package.version)
            _print_run(indexer.index_package(path, package.name, package.version, settings.default_version))

    print(f"Downloaded: {len(successful)}/{len(packages)}")
    if failed:
        print("Failures detected:")
        for name, message in failed:
            print(f"  - {name}: {message}")
        return 1
    return 0


def _cmd_stats(settings: Settings, store: SqliteDocumentStore, args: argparse.Namespace) -> int:
    service = UnityDocsService(settings, store)
    print(service.version_info())
    if args.check:
        healthy = store.integrity_check()
        print(f"\nFull-text index integrity: {'ok' if healthy else 'FAILED'}")
        return 0 if healthy else 1
    return 0


COMMANDS = {
    "init-db": _cmd_init_db,
    "index-docs": _cmd_index_docs,
    "index-package-docs": _cmd_index_package_docs,
    "download-docs": _cmd_download_docs,
    "download-package-docs": _cmd_download_package_docs,
    "download-package-batch": _cmd_download_package_batch,
    "stats": _cmd_stats,
}


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_argument_parser()
    args = parser.parse_args(argv)

    try:
        settings = _load_settings(args)
    except ValidationError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 1

    configure_logging(settings.log_level, json_output=settings.log_json)

    try:
        with SqliteDocumentStore(settings.resolved_database_path()) as store:
            store.seed_metadata(corpus_metadata_defaults(settings))
            exit_code = COMMANDS[args.command](settings, store, args)
    except (UnityDocsError, OSError) as exc:
        print(f"{args.command} failed: {exc}", file=sys.stderr)
        exit_code = 1

    if args.metrics:
        print(generate_latest(REGISTRY).decode("utf-8"), end="")
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
