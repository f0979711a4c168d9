"""Turn Unity offline documentation pages into indexable text."""

from __future__ import annotations

from dataclasses import dataclass
import html as html_lib
import logging
import re

from bs4 import BeautifulSoup

from unity_docs_mcp.domain.model import DocumentType


logger = logging.getLogger(__name__)

UNTITLED = "Untitled"

# Page chrome that never carries documentation text.
_CHROME_SELECTORS = ("script", "style", "nav", "header", "footer", ".toolbar", ".sidebar")

# Tried in order; the first selector with any match supplies the text.
_CONTENT_SELECTORS = (
    ".content",
    ".section",
    "#content",
    "article",
    "main",
    ".documentation-content",
    ".reference-content",
)

_CODE_SELECTORS = "pre code, .code-block, .highlight"

_TITLE_VERSION_SUFFIX = re.compile(r"\s*-\s*Unity\s*\d+\.\d+.*$")
_TITLE_SITE_SUFFIX = re.compile(r"\s*\|\s*Unity\s*Documentation.*$")
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class ParsedDocument:
    title: str
    content: str
    type: DocumentType


def detect_document_type(file_path: str) -> DocumentType:
    """Classify a page by the documentation tree it lives in."""
    if "Manual/" in file_path:
        return DocumentType.MANUAL
    if "ScriptReference/" in file_path:
        return DocumentType.SCRIPT_REFERENCE
    return DocumentType.MANUAL


class UnityHtmlParser:
    """Extract title, plain-text content and code samples from a page.

    Stateless; one instance can be shared by every indexing run.
    """

    def parse(self, html: str, file_path: str) -> ParsedDocument:
        soup = BeautifulSoup(html, "html.parser")
        title = self._extract_title(soup)
        content = self._extract_content(soup)
        doc_type = detect_document_type(file_path)
        logger.debug("Parsed %s: title=%r type=%s length=%d", file_path, title, doc_type.value, len(content))
        return ParsedDocument(title=title, content=content, type=doc_type)

    def extract_code_blocks(self, html: str) -> list[str]:
        """Non-empty code samples in document order."""
        soup = BeautifulSoup(html or "", "html.parser")
        blocks = []
        for element in soup.select(_CODE_SELECTORS):
            code = element.get_text().strip()
            if code:
                blocks.append(code)
        return blocks

    def _extract_title(self, soup: BeautifulSoup) -> str:
        title = ""
        for candidate in (soup.find("h1"), soup.find("title"), soup.select_one(".heading")):
            if candidate is not None:
                title = candidate.get_text().strip()
            if title:
                break

        title = _TITLE_VERSION_SUFFIX.sub("", title)
        title = _TITLE_SITE_SUFFIX.sub("", title)
        title = html_lib.unescape(title).strip()
        return title or UNTITLED

    def _extract_content(self, soup: BeautifulSoup) -> str:
        for selector in _CHROME_SELECTORS:
            for element in soup.select(selector):
                element.decompose()

        text = ""
        for selector in _CONTENT_SELECTORS:
            matches = soup.select(selector)
            if matches:
                text = "".join(match.get_text() for match in matches)
                break

        if not text.strip():
            body = soup.body or soup
            text = body.get_text()

        return html_lib.unescape(_WHITESPACE.sub(" ", text)).replace("\xa0", " ").strip()
