"""
Boolean and phrase search over annotated text.

Query syntax: words separated by whitespace, ``+word`` required, ``-word``
excluded, ``"two words"`` an exact phrase, and every bare word implicitly
matches longer inflected forms (``glaube`` finds ``glauben``). A trailing
``*`` is accepted and means the same thing.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass
from typing import List, Optional, Pattern, Tuple

import renderer

# Letters that may follow a bare term, so "faith" also matches "faithful".
SUFFIX_LETTERS = "[a-zäöüßàáâãåçèéêëìíîïñòóôõøùúûýÿæœ]"

_TOKEN_RE = re.compile(r'[+-]*"[^"]+"\*?|\S+')


@dataclass(frozen=True)
class CompiledQuery:
    required: Tuple[Pattern[str], ...] = ()
    optional: Tuple[Pattern[str], ...] = ()
    excluded: Tuple[Pattern[str], ...] = ()
    case_sensitive: bool = False

    @property
    def highlight_patterns(self) -> Tuple[Pattern[str], ...]:
        return self.required + self.optional

    @property
    def is_empty(self) -> bool:
        """True when nothing could ever be highlighted or required."""
        return not self.required and not self.optional


def tokenize(query: str) -> List[str]:
    return _TOKEN_RE.findall(query or "")


def _term_source(token: str) -> Optional[str]:
    if len(token) >= 2 and token.startswith('"') and token.endswith('"'):
        words = token[1:-1].split()
        if not words:
            return None
        return r"\s+".join(re.escape(word) for word in words)
    if not token:
        return None
    return f"{re.escape(token)}{SUFFIX_LETTERS}*"


def compile_query(query: str, case_sensitive: bool = False) -> CompiledQuery:
    required: List[Pattern[str]] = []
    optional: List[Pattern[str]] = []
    excluded: List[Pattern[str]] = []
    flags = 0 if case_sensitive else re.IGNORECASE

    for token in tokenize(query):
        is_required = is_excluded = False
        if token.startswith("+"):
            is_required = True
            token = token[1:]
        if token.startswith("-"):
            is_excluded = True
            token = token[1:]
        if token.endswith("*"):
            token = token[:-1]

        term = _term_source(token)
        if term is None:
            continue
        pattern = re.compile(rf"(^|\W)({term})\b", flags)

        if is_excluded:
            excluded.append(pattern)
        elif is_required:
            required.append(pattern)
        else:
            optional.append(pattern)

    return CompiledQuery(
        required=tuple(required),
        optional=tuple(optional),
        excluded=tuple(excluded),
        case_sensitive=case_sensitive,
    )


def matches(case_sensitive_text: str, case_insensitive_text: str, query: CompiledQuery) -> bool:
    """Evaluate the query; callers must not pass a query with no terms."""
    text = case_sensitive_text if query.case_sensitive else case_insensitive_text
    text = text or ""

    if any(pattern.search(text) for pattern in query.excluded):
        return False
    if not all(pattern.search(text) for pattern in query.required):
        return False
    if query.optional and not any(pattern.search(text) for pattern in query.optional):
        return False
    return True


def _term_ranges(text: str, patterns: Tuple[Pattern[str], ...]) -> List[Tuple[int, int]]:
    found = sorted(
        {(m.start(2), m.end(2)) for p in patterns for m in p.finditer(text) if m.end(2) > m.start(2)},
        key=lambda r: (r[0], -r[1]),
    )
    ranges: List[Tuple[int, int]] = []
    for start, end in found:
        if ranges and start < ranges[-1][1]:
            continue
        ranges.append((start, end))
    return ranges


def highlight(
    text: str, query: CompiledQuery, snippet_length: int = 200, context: int = 30
) -> str:
    """Excerpt around the earliest hit with every term wrapped in ``<mark>``."""
    if not text:
        return ""

    first: Optional[re.Match] = None
    for pattern in query.highlight_patterns:
        match = pattern.search(text)
        if match and (first is None or match.start() < first.start()):
            first = match

    if first is None:
        excerpt = html.escape(text[:snippet_length], quote=False)
        return excerpt + ("..." if len(text) > snippet_length else "")

    start = max(0, first.start() - context)
    if start > 0:
        space = text.rfind(" ", 0, start + 1)
        if space != -1:
            start = space + 1
    end = min(len(text), start + snippet_length)

    window = text[start:end]
    marked = renderer.highlight(window, _term_ranges(window, query.highlight_patterns))
    prefix = "..." if start > 0 else ""
    suffix = "..." if end < len(text) else ""
    return prefix + marked + suffix
