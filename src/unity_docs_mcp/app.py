"""Process entry point for the stdio MCP server."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from unity_docs_mcp.config import Settings
from unity_docs_mcp.errors import UnityDocsError
from unity_docs_mcp.observability import configure_logging, init_tracing
from unity_docs_mcp.search.sqlite_storage import SqliteDocumentStore
from unity_docs_mcp.server import create_server
from unity_docs_mcp.service_layer.docs_service import UnityDocsService, corpus_metadata_defaults


logger = logging.getLogger(__name__)


def main() -> int:
    """Serve the Unity documentation tools over stdio until the client disconnects.

    The store is opened here and closed on every exit path. Returns 1 when
    configuration or the store cannot be set up.
    """
    try:
        settings = Settings()
    except ValidationError as exc:
        configure_logging("ERROR", json_output=True)
        logger.error("Configuration is invalid: %s", exc)
        return 1

    configure_logging(settings.effective_log_level(), json_output=settings.log_json)
    init_tracing()

    docs_dir = settings.version_docs_dir()
    if not docs_dir.exists():
        logger.warning("Unity documentation not found at %s; run: unity-docs download-docs", docs_dir)

    try:
        with SqliteDocumentStore(settings.resolved_database_path()) as store:
            store.seed_metadata(corpus_metadata_defaults(settings))
            service = UnityDocsService(settings, store)
            mcp = create_server(service)
            logger.info("Unity Documentation MCP server running (version %s)", settings.default_version)
            mcp.run(transport="stdio")
    except UnityDocsError as exc:
        logger.error("Server startup failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
