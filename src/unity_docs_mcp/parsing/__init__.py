"""HTML parsing for Unity offline documentation pages."""

from .html_parser import ParsedDocument, UnityHtmlParser, detect_document_type


__all__ = ["ParsedDocument", "UnityHtmlParser", "detect_document_type"]
