"""Per-request correlation ids shared by log records and spans."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from uuid import uuid4


request_context: ContextVar[dict | None] = ContextVar("request_context", default=None)


def generate_trace_id() -> str:
    """Generate a 32-char hex trace ID."""
    return uuid4().hex


def generate_span_id() -> str:
    """Generate a 16-char hex span ID."""
    return uuid4().hex[:16]


def get_trace_context() -> dict:
    """Return the active context, creating ids on first use."""
    ctx = request_context.get()
    if ctx is None or not ctx.get("trace_id"):
        ctx = {"trace_id": generate_trace_id(), "span_id": generate_span_id()}
        request_context.set(ctx)
    return ctx


def update_span_id(span_id: str) -> None:
    """Update span_id while preserving trace_id and any bound fields."""
    ctx = request_context.get() or {}
    request_context.set({**ctx, "span_id": span_id})


@contextmanager
def bind_tool_call(tool: str, **fields: object) -> Iterator[dict]:
    """Scope a fresh trace id to one tool invocation.

    Every log line emitted while the block runs carries ``tool`` plus the
    extra ``fields`` (for example the document path being read).
    """
    ctx = {"trace_id": generate_trace_id(), "span_id": generate_span_id(), "tool": tool, **fields}
    token = request_context.set(ctx)
    try:
        yield ctx
    finally:
        request_context.reset(token)
