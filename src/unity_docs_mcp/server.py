"""FastMCP server exposing the Unity documentation tools."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
import inspect
import logging
from typing import Annotated, Any

from fastmcp import FastMCP
from opentelemetry.trace import SpanKind
from pydantic import ValidationError

from unity_docs_mcp.domain.model import SearchTypeFilter
from unity_docs_mcp.observability import REQUEST_COUNT, REQUEST_LATENCY, bind_tool_call, track_latency
from unity_docs_mcp.observability.tracing import create_span
from unity_docs_mcp.service_layer.docs_service import UnityDocsService
from unity_docs_mcp.service_layer.requests import (
    DownloadPackageRequest,
    FindRelatedRequest,
    ListSectionsRequest,
    ReadDocRequest,
    ReadSectionRequest,
    SearchDocsRequest,
)


logger = logging.getLogger(__name__)

SERVER_NAME = "unity-docs"

MANUAL_RESOURCE_URI = "unity://docs/manual"
SCRIPT_REFERENCE_RESOURCE_URI = "unity://docs/script-reference"

MANUAL_RESOURCE_TEXT = (
    "Unity Manual - Available sections:\n- Getting Started\n- Graphics\n- Physics\n"
    "- Scripting\n- UI\n- Animation\n- Audio\n- and more..."
)
SCRIPT_REFERENCE_RESOURCE_TEXT = (
    "Unity Script Reference - Available namespaces:\n- UnityEngine\n- UnityEngine.UI\n"
    "- UnityEngine.Rendering\n- UnityEngine.Physics\n- and more..."
)


def _describe_validation_error(exc: ValidationError) -> str:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "request"
        problems.append(f"{location}: {error['msg']}")
    return "Invalid arguments - " + "; ".join(problems)


async def run_tool(
    tool_name: str,
    call: Callable[[], str | Awaitable[str]],
    **attributes: Any,
) -> str:
    """Execute one tool call behind the error boundary.

    Metrics, a span and a fresh trace id wrap the call. Invalid arguments
    and unexpected failures are logged, counted and returned as
    ``Error: <message>`` text rather than raised to the client.
    """
    with (
        bind_tool_call(tool_name),
        track_latency(REQUEST_LATENCY, tool=tool_name),
        create_span(
            f"mcp.tool.{tool_name}",
            kind=SpanKind.INTERNAL,
            attributes={"mcp.tool.name": tool_name, **attributes},
        ) as span,
    ):
        try:
            result = call()
            if inspect.isawaitable(result):
                result = await result
        except ValidationError as exc:
            message = _describe_validation_error(exc)
            span.set_attribute("error", True)
            logger.warning("%s rejected invalid arguments: %s", tool_name, message)
            REQUEST_COUNT.labels(tool=tool_name, status="invalid").inc()
            return f"Error: {message}"
        except Exception as exc:
            span.set_attribute("error", True)
            span.record_exception(exc)
            logger.exception("Tool execution failed: %s", tool_name)
            REQUEST_COUNT.labels(tool=tool_name, status="error").inc()
            return f"Error: {exc}"

        REQUEST_COUNT.labels(tool=tool_name, status="ok").inc()
        return result


def create_server(service: UnityDocsService) -> FastMCP:
    """Build the MCP server with every tool and resource registered."""
    mcp = FastMCP(
        name=SERVER_NAME,
        instructions=(
            f"Unity {service.settings.default_version} documentation. Use search_unity_docs to find pages, "
            "then read_unity_doc (paginated) or list_unity_doc_sections/read_unity_doc_section to read them."
        ),
    )
    register_tools(mcp, service)
    register_resources(mcp)
    return mcp


def register_tools(mcp: FastMCP, service: UnityDocsService) -> None:
    settings = service.settings
    search_limit_context = {"max_limit": settings.search_max_limit}

    @mcp.tool(name="search_unity_docs", annotations={"title": "Search Unity Docs", "readOnlyHint": True})
    async def search_unity_docs(
        query: Annotated[str, "Search query (e.g., 'Rigidbody', 'Input System', 'particle system')"],
        limit: Annotated[
            int, "Maximum number of results to return (default: SEARCH_DEFAULT_LIMIT, max: SEARCH_MAX_LIMIT)"
        ] = settings.search_default_limit,
        type: Annotated[SearchTypeFilter, "Documentation type to search (default: all)"] = "all",
        package_name: Annotated[str | None, "Restrict results to one package (e.g., 'com.unity.entities')"] = None,
    ) -> str:
        """Search Unity documentation for features, APIs and components.

        Returns ranked results with title, type, path and a highlighted snippet.
        Pass a result's path to read_unity_doc to read the page.
        """
        return await run_tool(
            "search_unity_docs",
            lambda: service.search_docs(
                SearchDocsRequest.model_validate(
                    {"query": query, "limit": limit, "type": type, "package_name": package_name},
                    context=search_limit_context,
                )
            ),
            **{"search.query": query[:100]},
        )

    @mcp.tool(name="read_unity_doc", annotations={"title": "Read Unity Doc", "readOnlyHint": True})
    async def read_unity_doc(
        path: Annotated[str, "Path to the documentation file (e.g., 'Manual/RigidbodiesOverview.html')"],
        offset: Annotated[int, "Character offset to start reading from (default: 0)"] = 0,
        limit: Annotated[
            int, "Maximum number of characters to return (default: READ_PAGE_SIZE)"
        ] = settings.read_page_size,
    ) -> str:
        """Read a documentation page by path, one character window at a time.

        When more content remains the response ends with a Next offset;
        call again with that offset to continue.
        """
        return await run_tool(
            "read_unity_doc",
            lambda: service.read_doc(ReadDocRequest(path=path, offset=offset, limit=limit)),
            **{"doc.path": path},
        )

    @mcp.tool(name="list_unity_doc_sections", annotations={"title": "List Doc Sections", "readOnlyHint": True})
    async def list_unity_doc_sections(
        path: Annotated[str, "Path to the documentation file (e.g., 'Manual/RigidbodiesOverview.html')"],
    ) -> str:
        """List the heading sections of a documentation page with their ids."""
        return await run_tool(
            "list_unity_doc_sections",
            lambda: service.list_sections(ListSectionsRequest(path=path)),
            **{"doc.path": path},
        )

    @mcp.tool(name="read_unity_doc_section", annotations={"title": "Read Doc Section", "readOnlyHint": True})
    async def read_unity_doc_section(
        path: Annotated[str, "Path to the documentation file (e.g., 'Manual/RigidbodiesOverview.html')"],
        section_id: Annotated[str, "Section id from list_unity_doc_sections (e.g., 'section-2')"],
    ) -> str:
        """Read one section of a documentation page."""
        return await run_tool(
            "read_unity_doc_section",
            lambda: service.read_section(ReadSectionRequest(path=path, section_id=section_id)),
            **{"doc.path": path, "doc.section_id": section_id},
        )

    @mcp.tool(name="find_related_unity_docs", annotations={"title": "Find Related Docs", "readOnlyHint": True})
    async def find_related_unity_docs(
        path: Annotated[str, "Path of the page to find related pages for"],
        limit: Annotated[int, "Maximum number of related pages (default: 5, max: 20)"] = 5,
    ) -> str:
        """Find pages related to a documentation page by its title."""
        return await run_tool(
            "find_related_unity_docs",
            lambda: service.find_related(FindRelatedRequest(path=path, limit=limit)),
            **{"doc.path": path},
        )

    @mcp.tool(name="get_unity_version_info", annotations={"title": "Unity Docs Info", "readOnlyHint": True})
    async def get_unity_version_info() -> str:
        """Report the indexed Unity version, document counts and store size."""
        return await run_tool("get_unity_version_info", service.version_info)

    @mcp.tool(name="list_unity_packages", annotations={"title": "List Unity Packages", "readOnlyHint": True})
    async def list_unity_packages() -> str:
        """List known Unity packages with their download and index status."""
        return await run_tool("list_unity_packages", service.list_packages)

    @mcp.tool(name="download_unity_package_docs", annotations={"title": "Download Package Docs"})
    async def download_unity_package_docs(
        package_name: Annotated[str, "Package name from list_unity_packages (e.g., 'com.unity.inputsystem')"],
    ) -> str:
        """Download a package's offline documentation and index it for search."""
        return await run_tool(
            "download_unity_package_docs",
            lambda: service.download_package(DownloadPackageRequest(package_name=package_name)),
            **{"package.name": package_name},
        )


def register_resources(mcp: FastMCP) -> None:
    @mcp.resource(
        MANUAL_RESOURCE_URI,
        name="Unity Manual",
        description="Unity 6 user manual and guides",
        mime_type="text/plain",
    )
    def unity_manual() -> str:
        return MANUAL_RESOURCE_TEXT

    @mcp.resource(
        SCRIPT_REFERENCE_RESOURCE_URI,
        name="Unity Script Reference",
        description="Unity 6 API documentation",
        mime_type="text/plain",
    )
    def unity_script_reference() -> str:
        return SCRIPT_REFERENCE_RESOURCE_TEXT
