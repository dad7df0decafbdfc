"""
Lexicon and dictionary linking for Lectern.

Two independent passes live here:

- Structured links already present in markup (``<a href="B:470 3:16">`` for a
  verse jump, ``<a href="S:Gnade">`` for a topic jump) are rewritten into
  mention spans or navigable dictionary links.
- Free text is scanned word by word for dictionary topics. Words are matched
  against the dictionary word index exactly or after stripping one of a few
  inflection suffixes.
"""

from __future__ import annotations

import re
import urllib.parse
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Set

from bs4 import BeautifulSoup

from models import DictionaryMention, DictionarySource, LexiconMention, VerseMention
from recognizer import Span, SpanKind
from references import ChapterBounds, lexicon_prefix, parse_verse_list
import renderer

STOP_WORDS: FrozenSet[str] = frozenset(
    {
        # German
        "der", "die", "das", "ein", "eine", "einer", "eines", "einem", "einen",
        "und", "oder", "aber", "sondern", "als", "dass", "wenn", "weil",
        "ich", "du", "er", "sie", "es", "wir", "ihr",
        "sich", "mich", "dich", "uns", "euch",
        "mein", "dein", "sein", "unser", "euer",
        "bin", "bist", "ist", "sind", "seid", "war", "warst", "waren", "wart",
        "habe", "hast", "hat", "haben", "habt",
        "in", "an", "auf", "für", "von", "zu", "mit", "nach", "bei", "seit",
        "aus", "durch", "gegen", "ohne", "um", "während",
        "nicht", "auch", "noch", "schon", "sehr", "nur", "so", "wie",
        "hier", "dort", "da", "wo", "was", "wer", "wen", "wem", "wessen",
        # English
        "the", "and", "but", "for", "with", "from", "that", "this", "these",
        "those", "was", "were", "are", "has", "have", "had", "not", "his",
        "her", "its", "our", "their", "who", "whom", "which", "what",
    }
)

INFLECTION_SUFFIXES = ("es", "en", "er", "em", "e", "s")

_LEXICON_ID_RE = re.compile(r"^[GH]\d{1,5}$", re.IGNORECASE)
_TOPIC_SPLIT_RE = re.compile(r"[,;]")
_WORD_RE = re.compile(r"[^\s.,;!?():\"“„”«»]+")

_BOOK_HREF_RE = re.compile(r"B:(\d+)[:\s](\d+)(?::(\d+))?")
_TRAILING_VERSES_RE = re.compile(r"([\d\-–—.,;\s]+)$")

_EDITORIAL_RE = re.compile(r"〈.*?〉|\[.*?\]")
_PAGE_BREAK_RE = re.compile(r"<pb/?>|<br/?>")
_LEXICON_MARKER_RE = re.compile(r"<S>(\d+)</S>")
_WORDS_OF_JESUS_RE = re.compile(r"<J>(.*?)</J>", re.DOTALL)


def split_topic(topic: str) -> List[str]:
    """Split a multi-alias topic string into lower-cased words."""
    return [part.strip().lower() for part in _TOPIC_SPLIT_RE.split(topic or "") if part.strip()]


def is_lexicon_id(value: str) -> bool:
    return bool(_LEXICON_ID_RE.match((value or "").strip()))


# ---------------------------------------------------------------------------
# Dictionary sources
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TopicLink:
    topic: str
    source_id: str
    found: bool

    @property
    def href(self) -> str:
        return f"/dictionary/{self.source_id}/{urllib.parse.quote(self.topic.lower())}"


class DictionaryCatalog:
    """Resolves topic text to the dictionary source that defines it."""

    def __init__(self, sources: Sequence[DictionarySource], default_source: str = "jma"):
        self.sources = list(sources)
        self.default_source = self.sources[0].id if self.sources else default_source
        if any(source.id == default_source for source in self.sources):
            self.default_source = default_source

        self._by_topic: Dict[str, str] = {}
        self._by_word: Dict[str, str] = {}
        for source in self.sources:
            for item in source.topics:
                self._by_topic.setdefault(item.topic.strip().lower(), source.id)
                for word in split_topic(item.topic):
                    self._by_word.setdefault(word, source.id)

    def source_for(self, topic: str) -> Optional[str]:
        """First source defining ``topic``, compared case-insensitively."""
        wanted = (topic or "").strip().lower()
        return self._by_topic.get(wanted) or self._by_word.get(wanted)

    def resolve(self, topic: str) -> TopicLink:
        source_id = self.source_for(topic)
        if source_id is None:
            return TopicLink(topic=topic, source_id=self.default_source, found=False)
        return TopicLink(topic=topic, source_id=source_id, found=True)


class DictionaryMatcher:
    """Detects dictionary words in free text with light suffix stripping."""

    def __init__(
        self,
        word_index: Iterable[str],
        catalog: Optional[DictionaryCatalog] = None,
        stop_words: FrozenSet[str] = STOP_WORDS,
    ):
        self.word_index: Set[str] = set(word_index)
        self.catalog = catalog
        self.stop_words = stop_words

    def match(self, word: str) -> Optional[str]:
        """Return the indexed topic word for ``word``, or ``None``.

        A suffix is only stripped when the remaining stem is longer than two
        characters. For two-letter suffixes starting with ``e`` the stem plus
        ``e`` is tried as well, so ``gnaden`` finds ``gnade``.
        """
        cleaned = (word or "").strip().lower()
        if len(cleaned) < 3 or cleaned in self.stop_words:
            return None
        if cleaned in self.word_index:
            return cleaned

        for suffix in INFLECTION_SUFFIXES:
            if not cleaned.endswith(suffix):
                continue
            stem = cleaned[: -len(suffix)]
            if len(stem) <= 2:
                continue
            if stem in self.word_index:
                return stem
            if len(suffix) == 2 and suffix[0] == "e" and stem + "e" in self.word_index:
                return stem + "e"
        return None

    def scan(self, text: str) -> List[Span]:
        """Split ``text`` into literal runs and dictionary-word spans."""
        if not text:
            return []
        spans: List[Span] = []
        cursor = 0
        for match in _WORD_RE.finditer(text):
            topic = self.match(match.group(0))
            if topic is None:
                continue
            source_id = self.catalog.source_for(topic) if self.catalog else ""
            if source_id is None:
                continue
            if match.start() > cursor:
                spans.append(Span(SpanKind.TEXT, cursor, match.start()))
            mention = DictionaryMention(topic=topic, source_id=source_id, matched_text=match.group(0))
            spans.append(Span(SpanKind.DICTIONARY, match.start(), match.end(), (mention,)))
            cursor = match.end()
        if cursor < len(text):
            spans.append(Span(SpanKind.TEXT, cursor, len(text)))
        return spans


# ---------------------------------------------------------------------------
# Structured links
# ---------------------------------------------------------------------------


def resolve_book_link(
    href: str, text: str, bounds: Optional[ChapterBounds] = None
) -> List[VerseMention]:
    """Turn a ``B:<book> <chapter>[:<verse>]`` link into verse mentions.

    The verse list comes from the link text when it repeats the chapter, then
    from a trailing verse list in the text, then from a verse in the href,
    and finally defaults to verse 1.
    """
    href = urllib.parse.unquote(href or "")
    href_match = _BOOK_HREF_RE.search(href)
    if not href_match:
        return []
    book_number = int(href_match.group(1))
    chapter = int(href_match.group(2))
    visible = (text or "").strip()

    verse_list = ""
    in_text = re.search(rf"\b{chapter}\s*[,.:]?\s*([\d\-–—.,;\s]+)\b", visible)
    if in_text and in_text.group(1):
        verse_list = in_text.group(1)
    elif not re.search(rf"\b{chapter}\s*$", visible):
        trailing = _TRAILING_VERSES_RE.search(visible)
        if trailing:
            verse_list = trailing.group(1)
    if not verse_list.strip():
        verse_list = href_match.group(3) or "1"

    limit = bounds.max_verse(book_number, chapter) if bounds is not None else None
    verses = parse_verse_list(verse_list, limit=limit) or [1]
    if bounds is not None:
        verses = [v for v in verses if bounds.contains(book_number, chapter, v)]
    return [VerseMention(book_number, chapter, verse, visible) for verse in verses]


def rewrite_structured_links(
    soup: BeautifulSoup,
    catalog: Optional[DictionaryCatalog] = None,
    bounds: Optional[ChapterBounds] = None,
) -> List[VerseMention]:
    """Rewrite ``B:`` and ``S:`` anchors in place; return the verse mentions.

    ``B:`` anchors whose verses all fall outside ``bounds`` are left alone.
    """
    mentions: List[VerseMention] = []

    for anchor in soup.select("a[href^='B:']"):
        text = anchor.get_text()
        verses = resolve_book_link(anchor.get("href", ""), text, bounds)
        if not verses:
            continue
        span = Span(SpanKind.VERSE, 0, len(text), tuple(verses))
        anchor.replace_with(renderer.mention_tag(soup, span, text))
        mentions.extend(verses)

    for anchor in soup.select("a[href^='S:']"):
        topic = urllib.parse.unquote(anchor.get("href", "")[2:])
        text = anchor.get_text()
        if is_lexicon_id(topic):
            mention = LexiconMention(lexicon_id=topic.strip().upper(), matched_text=text)
            span = Span(SpanKind.LEXICON, 0, len(text), (mention,))
            anchor.replace_with(renderer.mention_tag(soup, span, text))
            continue
        link = catalog.resolve(topic) if catalog else TopicLink(topic, "", False)
        anchor["href"] = link.href
        anchor["data-link"] = ""

    return mentions


# ---------------------------------------------------------------------------
# Verse text with lexicon markers
# ---------------------------------------------------------------------------


def lexicon_ids_in_verse(raw: str, book_number: int, new_testament_start: int = 470) -> List[str]:
    """Lexicon ids embedded as ``<S>n</S>`` markers, in order of appearance."""
    if not isinstance(raw, str):
        return []
    prefix = lexicon_prefix(book_number, new_testament_start)
    return [f"{prefix}{number}" for number in _LEXICON_MARKER_RE.findall(raw)]


def format_verse_text(raw: str, book_number: int, new_testament_start: int = 470) -> str:
    """Render raw verse markup with lexicon markers as mention spans."""
    if not raw:
        return ""
    prefix = lexicon_prefix(book_number, new_testament_start)
    text = _EDITORIAL_RE.sub("", raw)
    text = _PAGE_BREAK_RE.sub("", text)
    text = _LEXICON_MARKER_RE.sub(
        lambda m: renderer.lexicon_marker_html(f"{prefix}{m.group(1)}", m.group(1)), text
    )
    text = _WORDS_OF_JESUS_RE.sub(r'<span class="words-of-jesus">\1</span>', text)
    return text.strip()


def strip_lexicon_markers(raw: str) -> str:
    """Plain-text projection of a verse: markers, editorial notes and tags removed."""
    if not raw:
        return ""
    text = _LEXICON_MARKER_RE.sub("", raw)
    text = _EDITORIAL_RE.sub("", text)
    text = _PAGE_BREAK_RE.sub(" ", text)
    plain = BeautifulSoup(text, "html.parser").get_text()
    return re.sub(r"\s+", " ", plain).strip()
