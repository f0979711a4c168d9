"""Observability module: structured logging, spans and Prometheus metrics."""

from unity_docs_mcp.observability.context import bind_tool_call, get_trace_context, request_context
from unity_docs_mcp.observability.logging import JsonFormatter, configure_logging
from unity_docs_mcp.observability.metrics import (
    INDEX_FAILURES,
    INDEXED_DOCUMENTS,
    REQUEST_COUNT,
    REQUEST_LATENCY,
    SEARCH_LATENCY,
    track_latency,
)
from unity_docs_mcp.observability.tracing import create_span, get_tracer, init_tracing


__all__ = [
    "INDEXED_DOCUMENTS",
    "INDEX_FAILURES",
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "SEARCH_LATENCY",
    "JsonFormatter",
    "bind_tool_call",
    "configure_logging",
    "create_span",
    "get_trace_context",
    "get_tracer",
    "init_tracing",
    "request_context",
    "track_latency",
]
