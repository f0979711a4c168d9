"""Character-window pagination over document content."""

from __future__ import annotations

from unity_docs_mcp.domain.model import Page


DEFAULT_PAGE_SIZE = 2000


def paginate(content: str, offset: int = 0, limit: int = DEFAULT_PAGE_SIZE) -> Page:
    """Cut ``content[offset:offset + limit]``.

    Concatenating the pages obtained by following ``next_offset`` from 0
    reproduces ``content`` exactly.

    Raises:
        ValueError: ``offset`` is negative or ``limit`` is not positive.
    """
    if offset < 0:
        raise ValueError(f"offset must be >= 0, got {offset}")
    if limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")

    total = len(content)
    text = content[offset : offset + limit]
    has_more = offset + limit < total
    return Page(
        text=text,
        offset=offset,
        limit=limit,
        total_length=total,
        has_more=has_more,
        next_offset=offset + limit if has_more else None,
    )
