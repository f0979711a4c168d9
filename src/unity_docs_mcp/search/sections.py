"""Split stored page markup into heading-delimited sections."""

from __future__ import annotations

from bs4 import BeautifulSoup, Tag

from unity_docs_mcp.domain.model import Section


HEADING_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6")


def _level(heading: Tag) -> int:
    return int(heading.name[1])


def extract_sections(html: str) -> list[Section]:
    """Return one section per heading, in document order.

    A section runs from its heading to the next heading at the same or a
    higher level. Content is accumulated from the heading's element
    siblings and any heading met on the way ends it early, so a nested
    subsection is never folded into its parent. Content is the heading
    title, a blank line, then each non-empty sibling text on its own line.

    Ids are positional (``section-0``, ``section-1``, ...) across all
    levels, so they are stable only for unchanged markup.
    """
    soup = BeautifulSoup(html or "", "html.parser")
    headings = soup.find_all(HEADING_TAGS)
    sections: list[Section] = []

    for index, heading in enumerate(headings):
        level = _level(heading)
        title = heading.get_text().strip()
        boundary = next((h for h in headings[index + 1 :] if _level(h) <= level), None)

        lines: list[str] = []
        for sibling in heading.find_next_siblings():
            if sibling is boundary or sibling.name in HEADING_TAGS:
                break
            text = sibling.get_text().strip()
            if text:
                lines.append(text)

        content = f"{title}\n\n" + "\n".join(lines)
        sections.append(Section(id=f"section-{index}", title=title, level=level, content=content.strip()))

    return sections


def find_section(sections: list[Section], section_id: str) -> Section | None:
    return next((section for section in sections if section.id == section_id), None)
