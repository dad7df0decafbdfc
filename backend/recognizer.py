"""
Reference recognizer for Lectern.

Scans free text and splits it into literal runs and typed reference spans:
verse citations, chapter citations and lexicon (Strong's) identifiers.
Implicit citations ("verse 3", "next chapter") are resolved against the book
and chapter of the most recent explicit citation in the same scan.
"""

from __future__ import annotations

import functools
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from models import Book, ChapterMention, LexiconMention, VerseMention
from references import BookRegistry, ChapterBounds, parse_verse_list

_DASH_CLASS = r"\-–—"


class SpanKind(str, Enum):
    TEXT = "text"
    VERSE = "verse"
    CHAPTER = "chapter"
    LEXICON = "lexicon"
    DICTIONARY = "dictionary"


@dataclass(frozen=True)
class Span:
    """A half-open ``[start, end)`` slice of the scanned string.

    ``payload`` is empty for literal text, holds every resolved
    :class:`VerseMention` for verse spans, and a single mention otherwise.
    """

    kind: SpanKind
    start: int
    end: int
    payload: Tuple[object, ...] = ()

    @property
    def is_mention(self) -> bool:
        return self.kind != SpanKind.TEXT


@dataclass(frozen=True)
class ReferenceVocabulary:
    """Trigger words for implicit references; matched case-insensitively."""

    verse_words: Tuple[str, ...]
    chapter_words: Tuple[str, ...]
    next_words: Tuple[str, ...]
    previous_words: Tuple[str, ...]
    lead_words: Tuple[str, ...] = ()

    @classmethod
    def german(cls) -> "ReferenceVocabulary":
        return cls(
            verse_words=("Vers", "Verse"),
            chapter_words=("Kapitel",),
            next_words=("nächsten", "nächste", "folgenden"),
            previous_words=("vorherigen", "vorigen", "vorhergehenden"),
            lead_words=("in", "im"),
        )

    @classmethod
    def english(cls) -> "ReferenceVocabulary":
        return cls(
            verse_words=("verse", "verses"),
            chapter_words=("chapter",),
            next_words=("next", "following"),
            previous_words=("previous", "preceding"),
            lead_words=("in", "in the", "the"),
        )

    @classmethod
    def preset(cls, name: str) -> "ReferenceVocabulary":
        if name == "de":
            return cls.german()
        if name == "en":
            return cls.english()
        return cls.german().merged(cls.english())

    def merged(self, other: "ReferenceVocabulary") -> "ReferenceVocabulary":
        def union(a: Tuple[str, ...], b: Tuple[str, ...]) -> Tuple[str, ...]:
            return tuple(dict.fromkeys((*a, *b)))

        return ReferenceVocabulary(
            verse_words=union(self.verse_words, other.verse_words),
            chapter_words=union(self.chapter_words, other.chapter_words),
            next_words=union(self.next_words, other.next_words),
            previous_words=union(self.previous_words, other.previous_words),
            lead_words=union(self.lead_words, other.lead_words),
        )

    def is_next(self, word: str) -> bool:
        lowered = word.lower()
        return any(lowered == candidate.lower() for candidate in self.next_words)


def _word_alternation(words: Sequence[str]) -> str:
    if not words:
        return "(?!)"
    ordered = sorted({w for w in words if w}, key=lambda w: (-len(w), w))
    return "|".join(re.escape(word).replace(r"\ ", r"\s+") for word in ordered)


@functools.lru_cache(maxsize=32)
def build_reference_pattern(
    aliases: Tuple[str, ...], vocabulary: ReferenceVocabulary
) -> "re.Pattern[str]":
    """Compile the combined reference pattern.

    ``aliases`` are regex sources already ordered longest-first. Families are
    tried left to right at each position: lexicon id, explicit citation,
    relative verse, relative chapter, chapter-only citation.
    """
    books = "|".join(aliases) if aliases else "(?!)"
    verse_words = _word_alternation(vocabulary.verse_words)
    chapter_words = _word_alternation(vocabulary.chapter_words)
    shift_words = _word_alternation((*vocabulary.next_words, *vocabulary.previous_words))
    lead = (
        rf"(?:\b(?:{_word_alternation(vocabulary.lead_words)})\s+)?"
        if vocabulary.lead_words
        else ""
    )

    lexicon = r"\b(?P<lexicon>[GH]\d{1,5})\b"
    explicit = (
        rf"\b(?:(?P<book>{books})\s*)?(?P<chapter>\d+)(?::|,|\s)\s*"
        rf"(?P<verses>[\d{_DASH_CLASS}.,;f]+)\b"
    )
    relative_verse = rf"{lead}\b(?:{verse_words})\s+(?P<rel_verses>[\d{_DASH_CLASS}]+)\b"
    relative_chapter = (
        rf"{lead}\b(?P<shift>{shift_words})\s+(?:{chapter_words})"
        rf"(?:(?:,\s*(?:(?:{verse_words})\s+)?|\s+(?:{verse_words})\s+|\s)\s*"
        rf"(?P<shift_verses>[\d{_DASH_CLASS}]+))?\b"
    )
    chapter_only = rf"\b(?P<chapter_book>{books})\s+(?P<chapter_only>\d+)\b(?!\s*[:,])"

    combined = "|".join(
        f"(?:{family})"
        for family in (lexicon, explicit, relative_verse, relative_chapter, chapter_only)
    )
    return re.compile(combined, re.IGNORECASE)


@dataclass
class ScanState:
    """Carried context for one entry's scan; never shared across entries."""

    last_book: Optional[Book] = None
    last_chapter: Optional[int] = None


class ReferenceRecognizer:
    """Finds reference spans in text using the current book registry."""

    def __init__(
        self,
        registry: BookRegistry,
        bounds: ChapterBounds,
        vocabulary: Optional[ReferenceVocabulary] = None,
    ):
        self.registry = registry
        self.bounds = bounds
        self.vocabulary = vocabulary or ReferenceVocabulary.preset("all")

    @property
    def pattern(self) -> "re.Pattern[str]":
        return build_reference_pattern(self.registry.alias_patterns(), self.vocabulary)

    def scan(self, text: str, state: Optional[ScanState] = None) -> List[Span]:
        """Split ``text`` into literal and mention spans covering all of it."""
        if not text:
            return []
        state = state if state is not None else ScanState()

        spans: List[Span] = []
        cursor = 0
        for match in self.pattern.finditer(text):
            span = self._resolve(match, state)
            if span is None:
                continue
            if match.start() > cursor:
                spans.append(Span(SpanKind.TEXT, cursor, match.start()))
            spans.append(span)
            cursor = match.end()

        if cursor < len(text):
            spans.append(Span(SpanKind.TEXT, cursor, len(text)))
        return spans

    def scan_fragments(self, fragments: Iterable[str]) -> List[List[Span]]:
        """Scan consecutive fragments of one entry with a shared context."""
        state = ScanState()
        return [self.scan(fragment, state) for fragment in fragments]

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------
    def _resolve(self, match: "re.Match[str]", state: ScanState) -> Optional[Span]:
        matched = match.group(0)
        groups = match.groupdict()

        if groups["lexicon"]:
            mention = LexiconMention(lexicon_id=groups["lexicon"].upper(), matched_text=matched)
            return Span(SpanKind.LEXICON, match.start(), match.end(), (mention,))

        if groups["chapter_only"]:
            return self._resolve_chapter(match, state)

        book = state.last_book
        chapter = state.last_chapter
        verse_list: Optional[str] = None

        if groups["chapter"]:
            if groups["book"]:
                book = self.registry.find_by_alias(groups["book"])
            chapter = int(groups["chapter"])
            verse_list = groups["verses"]
        elif groups["rel_verses"]:
            verse_list = groups["rel_verses"]
        elif groups["shift"]:
            if chapter is not None:
                chapter += 1 if self.vocabulary.is_next(groups["shift"]) else -1
            verse_list = groups["shift_verses"] or "1"

        if book is None or chapter is None or chapter < 1:
            return None

        limit = self.bounds.max_verse(book.book_number, chapter)
        mentions = tuple(
            VerseMention(book.book_number, chapter, verse, matched)
            for verse in parse_verse_list(verse_list, limit=limit)
            if self.bounds.contains(book.book_number, chapter, verse)
        )
        if not mentions:
            return None

        state.last_book = book
        state.last_chapter = chapter
        return Span(SpanKind.VERSE, match.start(), match.end(), mentions)

    def _resolve_chapter(self, match: "re.Match[str]", state: ScanState) -> Optional[Span]:
        book = self.registry.find_by_alias(match.group("chapter_book"))
        if book is None:
            return None
        chapter = int(match.group("chapter_only"))
        if not self.bounds.has_chapter(book.book_number, chapter):
            return None
        mention = ChapterMention(book.book_number, chapter, match.group(0))
        return Span(SpanKind.CHAPTER, match.start(), match.end(), (mention,))


@dataclass
class LinkCollector:
    """Entry-scoped, first-seen-wins collection of verse and chapter links."""

    _verses: Dict[str, VerseMention] = field(default_factory=dict)
    _chapters: Dict[str, ChapterMention] = field(default_factory=dict)

    def add(self, spans: Iterable[Span]) -> None:
        for span in spans:
            if span.kind == SpanKind.VERSE:
                for mention in span.payload:
                    self._verses.setdefault(mention.key, mention)
            elif span.kind == SpanKind.CHAPTER:
                for mention in span.payload:
                    self._chapters.setdefault(mention.key, mention)

    def add_verses(self, mentions: Iterable[VerseMention]) -> None:
        for mention in mentions:
            self._verses.setdefault(mention.key, mention)

    @property
    def internal_links(self) -> List[VerseMention]:
        return list(self._verses.values())

    @property
    def chapter_links(self) -> List[ChapterMention]:
        return list(self._chapters.values())
