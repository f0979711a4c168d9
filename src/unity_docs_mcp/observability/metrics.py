"""Prometheus instruments for tool traffic, search latency and indexing."""

from __future__ import annotations

from contextlib import contextmanager
import time
from typing import TYPE_CHECKING

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram


if TYPE_CHECKING:
    from collections.abc import Generator


REGISTRY = CollectorRegistry(auto_describe=True)

REQUEST_LATENCY = Histogram(
    "unity_docs_tool_latency_seconds",
    "Tool call latency in seconds",
    ["tool"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
    registry=REGISTRY,
)

REQUEST_COUNT = Counter(
    "unity_docs_tool_calls_total",
    "Total tool calls",
    ["tool", "status"],
    registry=REGISTRY,
)

SEARCH_LATENCY = Histogram(
    "unity_docs_search_latency_seconds",
    "Full-text query latency",
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5),
    registry=REGISTRY,
)

INDEXED_DOCUMENTS = Gauge(
    "unity_docs_indexed_documents",
    "Documents written by the most recent indexing run",
    ["scope"],
    registry=REGISTRY,
)

INDEX_FAILURES = Counter(
    "unity_docs_index_failures_total",
    "Source files that failed to parse during indexing",
    ["scope"],
    registry=REGISTRY,
)


@contextmanager
def track_latency(histogram: Histogram, **labels: str) -> Generator[None, None, None]:
    """Context manager to track operation latency."""
    start = time.perf_counter()
    try:
        yield
    finally:
        target = histogram.labels(**labels) if labels else histogram
        target.observe(time.perf_counter() - start)

