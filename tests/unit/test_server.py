"""Unit tests for MCP tool registration and the tool error boundary."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any
from unittest.mock import MagicMock

from fastmcp import FastMCP
import pytest

from unity_docs_mcp.observability.metrics import REGISTRY
from unity_docs_mcp.server import (
    MANUAL_RESOURCE_TEXT,
    MANUAL_RESOURCE_URI,
    SCRIPT_REFERENCE_RESOURCE_URI,
    SERVER_NAME,
    create_server,
    register_resources,
    register_tools,
    run_tool,
)
from unity_docs_mcp.service_layer.docs_service import UnityDocsService


TOOL_NAMES = {
    "search_unity_docs",
    "read_unity_doc",
    "list_unity_doc_sections",
    "read_unity_doc_section",
    "find_related_unity_docs",
    "get_unity_version_info",
    "list_unity_packages",
    "download_unity_package_docs",
}


class ToolCaptureMCP:
    """Minimal FastMCP stub that records registered tools and resources."""

    def __init__(self) -> None:
        self.tools: dict[str, dict[str, Any]] = {}
        self.resources: dict[str, dict[str, Any]] = {}

    def tool(
        self, name: str, annotations: dict[str, Any] | None = None
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self.tools[name] = {"func": func, "annotations": annotations or {}}
            return func

        return decorator

    def resource(self, uri: str, **kwargs: Any) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self.resources[uri] = {"func": func, **kwargs}
            return func

        return decorator


def _calls(tool: str, status: str) -> float:
    return REGISTRY.get_sample_value("unity_docs_tool_calls_total", {"tool": tool, "status": status}) or 0


@pytest.fixture
def service(settings, store, docs_tree):
    docs_service = UnityDocsService(settings, store)
    docs_service.indexer.index_version(docs_tree, "6000.1")
    return docs_service


@pytest.fixture
def tools(service):
    mcp = ToolCaptureMCP()
    register_tools(mcp, service)
    return mcp.tools


def test_every_tool_is_registered(tools):
    assert set(tools) == TOOL_NAMES


def test_read_tools_are_marked_read_only(tools):
    for name, entry in tools.items():
        if name == "download_unity_package_docs":
            assert "readOnlyHint" not in entry["annotations"]
        else:
            assert entry["annotations"]["readOnlyHint"] is True
        assert entry["annotations"]["title"]


async def test_search_tool_returns_results(tools):
    before = _calls("search_unity_docs", "ok")

    text = await tools["search_unity_docs"]["func"](query="Rigidbody", limit=3)

    assert text.startswith("Found ")
    assert _calls("search_unity_docs", "ok") == before + 1


async def test_read_tool_paginates(tools):
    text = await tools["read_unity_doc"]["func"](path="Manual/RigidbodiesOverview.html", offset=0, limit=10)
    assert "- Next offset: 10" in text


async def test_section_tools(tools):
    listing = await tools["list_unity_doc_sections"]["func"](path="Manual/RigidbodiesOverview.html")
    section = await tools["read_unity_doc_section"]["func"](
        path="Manual/RigidbodiesOverview.html", section_id="section-1"
    )

    assert "**Total sections:** 3" in listing
    assert section.startswith("# Mass and drag")


async def test_invalid_arguments_become_error_text(tools):
    before = _calls("search_unity_docs", "invalid")

    text = await tools["search_unity_docs"]["func"](query="Rigidbody", limit=0)

    assert text.startswith("Error: Invalid arguments - limit:")
    assert _calls("search_unity_docs", "invalid") == before + 1


async def test_negative_offset_is_rejected(tools):
    text = await tools["read_unity_doc"]["func"](path="Manual/Colliders.html", offset=-1)
    assert text.startswith("Error: Invalid arguments - offset:")


async def test_unknown_type_is_rejected(tools):
    text = await tools["search_unity_docs"]["func"](query="Rigidbody", type="api-reference")
    assert text.startswith("Error: Invalid arguments - type:")


async def test_limits_follow_settings(settings, store, docs_tree):
    tuned = settings.model_copy(update={"search_default_limit": 2, "search_max_limit": 3, "read_page_size": 15})
    docs_service = UnityDocsService(tuned, store)
    docs_service.indexer.index_version(docs_tree, "6000.1")
    mcp = ToolCaptureMCP()
    register_tools(mcp, docs_service)

    search = await mcp.tools["search_unity_docs"]["func"](query="Rigidbody")
    too_many = await mcp.tools["search_unity_docs"]["func"](query="Rigidbody", limit=4)
    page = await mcp.tools["read_unity_doc"]["func"](path="Manual/RigidbodiesOverview.html")

    assert search.startswith('Found 2 results for "Rigidbody"')
    assert too_many == "Error: Invalid arguments - limit: Value error, limit must be at most 3"
    assert "- Next offset: 15" in page


async def test_search_limit_ceiling_defaults_to_one_hundred(tools):
    text = await tools["search_unity_docs"]["func"](query="Rigidbody", limit=101)
    assert text == "Error: Invalid arguments - limit: Value error, limit must be at most 100"


async def test_service_failure_becomes_error_text(settings):
    broken = MagicMock(spec=UnityDocsService)
    broken.settings = settings
    broken.version_info.side_effect = RuntimeError("boom")
    mcp = ToolCaptureMCP()
    register_tools(mcp, broken)
    before = _calls("get_unity_version_info", "error")

    text = await mcp.tools["get_unity_version_info"]["func"]()

    assert text == "Error: boom"
    assert _calls("get_unity_version_info", "error") == before + 1


async def test_download_unknown_package(tools):
    text = await tools["download_unity_package_docs"]["func"](package_name="com.unity.bogus")
    assert text == "Error: Unknown package: com.unity.bogus"


async def test_info_tools(tools):
    assert (await tools["get_unity_version_info"]["func"]()).startswith("# Unity Documentation Info")
    assert (await tools["list_unity_packages"]["func"]()).startswith("# Unity Packages")


async def test_run_tool_awaits_coroutines():
    async def produce():
        return "async result"

    assert await run_tool("echo_async", produce) == "async result"
    assert await run_tool("echo_sync", lambda: "sync result") == "sync result"


def test_resources_are_registered():
    mcp = ToolCaptureMCP()
    register_resources(mcp)

    assert set(mcp.resources) == {MANUAL_RESOURCE_URI, SCRIPT_REFERENCE_RESOURCE_URI}
    manual = mcp.resources[MANUAL_RESOURCE_URI]
    assert manual["name"] == "Unity Manual"
    assert manual["mime_type"] == "text/plain"
    assert manual["func"]() == MANUAL_RESOURCE_TEXT
    assert "UnityEngine" in mcp.resources[SCRIPT_REFERENCE_RESOURCE_URI]["func"]()


def test_create_server_builds_fastmcp(service):
    mcp = create_server(service)
    assert isinstance(mcp, FastMCP)
    assert mcp.name == SERVER_NAME
