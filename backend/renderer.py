"""Turns recognized spans into hover-able HTML elements."""

from __future__ import annotations

import html
import json
from typing import List, Sequence

from bs4 import BeautifulSoup, NavigableString, PageElement, Tag

from recognizer import Span, SpanKind

VERSE_CLASS = "verse-mention-hover"
CHAPTER_CLASS = "chapter-mention-hover"
LEXICON_CLASS = "strongs-mention-hover"
DICTIONARY_CLASS = "dictionary-mention-hover"

MENTION_CLASSES = (VERSE_CLASS, CHAPTER_CLASS, LEXICON_CLASS, DICTIONARY_CLASS)


def verse_data(span: Span) -> str:
    return json.dumps(
        [{"b": m.book_number, "c": m.chapter, "v": m.verse} for m in span.payload],
        separators=(",", ":"),
    )


def mention_tag(soup: BeautifulSoup, span: Span, text: str) -> Tag:
    """Build the element for one mention span, keeping ``text`` as its label."""
    mention = span.payload[0]
    if span.kind == SpanKind.VERSE:
        attrs = {"class": VERSE_CLASS, "data-verses": verse_data(span)}
    elif span.kind == SpanKind.CHAPTER:
        attrs = {
            "class": CHAPTER_CLASS,
            "data-book-number": str(mention.book_number),
            "data-chapter": str(mention.chapter),
        }
    elif span.kind == SpanKind.LEXICON:
        attrs = {"class": LEXICON_CLASS, "data-strong-id": mention.lexicon_id}
    else:
        attrs = {
            "class": DICTIONARY_CLASS,
            "data-topic": mention.topic,
            "data-source": mention.source_id,
        }
    tag = soup.new_tag("span", attrs=attrs)
    tag.string = text
    return tag


def render_spans(soup: BeautifulSoup, text: str, spans: Sequence[Span]) -> List[PageElement]:
    elements: List[PageElement] = []
    for span in spans:
        piece = text[span.start : span.end]
        if span.kind == SpanKind.TEXT:
            elements.append(NavigableString(piece))
        else:
            elements.append(mention_tag(soup, span, piece))
    return elements


def replace_text_node(soup: BeautifulSoup, node: NavigableString, spans: Sequence[Span]) -> None:
    """Splice rendered spans in place of ``node`` when any mention was found."""
    if not any(span.is_mention for span in spans):
        return
    node.replace_with(*render_spans(soup, str(node), spans))


def lexicon_marker_html(lexicon_id: str, label: str) -> str:
    return (
        f'<sup><span class="{LEXICON_CLASS}" data-strong-id="{html.escape(lexicon_id)}">'
        f"{html.escape(label)}</span></sup>"
    )


def highlight(text: str, ranges: Sequence[tuple], tag: str = "mark") -> str:
    """Wrap non-overlapping ``(start, end)`` ranges of ``text`` in ``tag``."""
    parts: List[str] = []
    cursor = 0
    for start, end in ranges:
        parts.append(html.escape(text[cursor:start], quote=False))
        parts.append(f"<{tag}>{html.escape(text[start:end], quote=False)}</{tag}>")
        cursor = end
    parts.append(html.escape(text[cursor:], quote=False))
    return "".join(parts)
