"""Query sanitization for the SQLite FTS5 query grammar.

FTS5 treats dots, parentheses, asterisks and brackets as operators, so a
plain query such as ``Unity 6.0`` or ``Input System (2.0)`` would raise a
syntax error if passed through untouched. ``sanitize_query`` reduces any
free-text input to ASCII letters, digits, underscore, hyphen and single
spaces. Version-like tokens lose their dots (``6.0`` -> ``60``), trading
precision for a query that always parses.
"""

from __future__ import annotations

from collections.abc import Callable
import re


_DOTS = re.compile(r"[.]")
_PARENS = re.compile(r"[()]")
_ASTERISKS = re.compile(r"[*]")
_QUESTION_MARKS = re.compile(r"[?]")
_BRACES = re.compile(r"[{}]")
_BRACKETS = re.compile(r"[\[\]]")
_UNSAFE = re.compile(r"[^A-Za-z0-9 _-]")
_WHITESPACE_RUN = re.compile(r"\s+")
_SEARCHABLE = re.compile(r"[A-Za-z0-9]")


def _strip(pattern: re.Pattern[str]) -> Callable[[str], str]:
    return lambda text: pattern.sub("", text)


# Ordered; each step consumes the previous step's output.
SANITIZE_STEPS: tuple[tuple[str, Callable[[str], str]], ...] = (
    ("strip_dots", _strip(_DOTS)),
    ("strip_parentheses", _strip(_PARENS)),
    ("strip_asterisks", _strip(_ASTERISKS)),
    ("strip_question_marks", _strip(_QUESTION_MARKS)),
    ("strip_braces", _strip(_BRACES)),
    ("strip_brackets", _strip(_BRACKETS)),
    ("replace_unsafe", lambda text: _UNSAFE.sub(" ", text)),
    ("collapse_whitespace", lambda text: _WHITESPACE_RUN.sub(" ", text)),
    ("trim", str.strip),
)


def sanitize_query(query: str) -> str:
    """Normalize a free-text query into FTS5-safe tokens.

    Args:
        query: Raw user query.

    Returns:
        Space-separated tokens drawn from ``[A-Za-z0-9_-]``; empty when
        nothing searchable remains.
    """
    text = query or ""
    for _name, step in SANITIZE_STEPS:
        text = step(text)
    return text


def to_match_expression(sanitized: str) -> str:
    """Build an FTS5 MATCH expression from sanitized tokens.

    Each token becomes a quoted string so that words FTS5 reserves as
    operators (``AND``, ``OR``, ``NOT``, ``NEAR``) and hyphenated tokens are
    matched as text. Quoted strings are implicitly ANDed, the same as
    bare words. Tokens made only of ``-``/``_`` are dropped because the
    ascii tokenizer would reduce them to an empty phrase.
    """
    return " ".join(f'"{token}"' for token in sanitized.split() if _SEARCHABLE.search(token))
