"""
Book registry and reference primitives for Lectern.

Holds the alias lookup used to resolve citations, the per-chapter verse
bounds used to validate them, and the verse-list parser that turns strings
such as ``"3-5,7,9ff"`` into verse numbers.
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from models import Book, Verse, VerseCoordinate

DASHES = "-–—"

_VERSE_LIST_SPLIT_RE = re.compile(r"[;.,]")
_VERSE_RANGE_RE = re.compile(rf"^(\d+)\s*[{DASHES}]\s*(\d+)$")
_LEADING_INT_RE = re.compile(r"^(\d+)")
_LEADING_DIGIT_SPACE_RE = re.compile(r"^(\d)\s+")
_WHITESPACE_RE = re.compile(r"\s+")
_CHAPTER_VERSE_RE = re.compile(r"^(\d+)\s*[,:\s]\s*(\d+)")
_LETTER_RE = re.compile(r"[^\W\d_]")


def parse_verse_list(verse_list: Optional[str], limit: Optional[int] = None) -> List[int]:
    """Expand a verse-list string into sorted, unique verse numbers.

    Tokens are split on ``;``, ``.`` and ``,``. A ``start-end`` token (any
    dash) contributes the whole range; any other token contributes its leading
    integer, so trailing markers like ``ff`` are ignored. Tokens that yield
    nothing are skipped. When ``limit`` is given, ranges stop at ``limit``.
    """
    if not verse_list:
        return []

    verses: Set[int] = set()
    for part in _VERSE_LIST_SPLIT_RE.split(verse_list):
        token = part.strip()
        if not token:
            continue
        range_match = _VERSE_RANGE_RE.match(token)
        if range_match:
            start, end = int(range_match.group(1)), int(range_match.group(2))
            if limit is not None:
                end = min(end, limit)
            if start <= end:
                verses.update(range(start, end + 1))
            continue
        single = _LEADING_INT_RE.match(token)
        if single:
            verses.add(int(single.group(1)))
    return sorted(verses)


def normalize_alias(alias: str) -> str:
    """Case-fold an alias so that ``"1 Mo"`` and ``"1mo"`` compare equal."""
    cleaned = _WHITESPACE_RE.sub(" ", (alias or "").strip().lower())
    return _LEADING_DIGIT_SPACE_RE.sub(r"\1", cleaned)


def alias_pattern(alias: str) -> str:
    """Regex source for one alias; a leading digit may be followed by a space."""
    escaped = re.escape(alias)
    return re.sub(r"(\d)", r"\1\\s?", escaped, count=1)


def lexicon_prefix(book_number: int, new_testament_start: int = 470) -> str:
    return "G" if book_number >= new_testament_start else "H"


class ChapterBounds:
    """Maximum verse number observed per book and chapter."""

    def __init__(self, bounds: Optional[Dict[int, Dict[int, int]]] = None):
        self._bounds: Dict[int, Dict[int, int]] = bounds or {}

    @classmethod
    def from_verses(cls, verses: Iterable[Verse]) -> "ChapterBounds":
        bounds: Dict[int, Dict[int, int]] = {}
        for verse in verses:
            chapters = bounds.setdefault(verse.book_number, {})
            if verse.verse > chapters.get(verse.chapter, 0):
                chapters[verse.chapter] = verse.verse
        return cls(bounds)

    def max_verse(self, book_number: int, chapter: int) -> int:
        return self._bounds.get(book_number, {}).get(chapter, 0)

    def has_chapter(self, book_number: int, chapter: int) -> bool:
        return chapter in self._bounds.get(book_number, {})

    def contains(self, book_number: int, chapter: int, verse: int) -> bool:
        return 0 < verse <= self.max_verse(book_number, chapter)

    def single_chapter_books(self) -> Set[int]:
        return {book for book, chapters in self._bounds.items() if len(chapters) == 1}

    def as_dict(self) -> Dict[int, Dict[int, int]]:
        return {book: dict(chapters) for book, chapters in self._bounds.items()}


class BookRegistry:
    """Read-only book list with alias lookup.

    ``version`` increases whenever the book list is replaced, so compiled
    patterns built from :meth:`alias_patterns` can be cached per version.
    """

    def __init__(self, books: Optional[Sequence[Book]] = None):
        self.version = 0
        self._books: List[Book] = []
        self._by_number: Dict[int, Book] = {}
        self._by_alias: Dict[str, Book] = {}
        self._aliases_longest_first: List[Tuple[str, Book]] = []
        self._patterns: Tuple[str, ...] = ()
        self.set_books(books or [])

    def set_books(self, books: Sequence[Book]) -> None:
        self._books = sorted(books, key=lambda b: b.book_number)
        self._by_number = {book.book_number: book for book in self._books}

        by_alias: Dict[str, Book] = {}
        raw_aliases: Dict[str, str] = {}
        for book in self._books:
            for name in (*book.short_names, book.long_name):
                key = normalize_alias(name)
                if key and key not in by_alias:
                    by_alias[key] = book
                    raw_aliases[key] = name.strip()
        self._by_alias = by_alias

        # Longest first so a short alias never pre-empts a longer one.
        ordered = sorted(by_alias.items(), key=lambda item: (-len(item[0]), item[0]))
        self._aliases_longest_first = ordered
        self._patterns = tuple(
            alias_pattern(raw_aliases[key])
            for key, _ in sorted(
                raw_aliases.items(), key=lambda item: (-len(item[1]), item[1].lower())
            )
        )
        self.version += 1

    @property
    def books(self) -> List[Book]:
        return list(self._books)

    def get(self, book_number: int) -> Optional[Book]:
        return self._by_number.get(book_number)

    def alias_patterns(self) -> Tuple[str, ...]:
        return self._patterns

    def find_by_alias(self, alias: str) -> Optional[Book]:
        return self._by_alias.get(normalize_alias(alias))

    def find_prefix_match(self, text: str) -> Optional[Tuple[Book, str]]:
        """Longest alias that starts ``text`` and is not followed by a letter.

        Returns the book and the matched prefix as it appears in ``text``.
        """
        stripped = (text or "").strip()
        lowered = stripped.lower()
        for alias, book in self._aliases_longest_first:
            candidates = [alias]
            spaced = re.sub(r"^(\d)", r"\1 ", alias)
            if spaced != alias:
                candidates.append(spaced)
            for candidate in candidates:
                if not lowered.startswith(candidate):
                    continue
                rest = lowered[len(candidate):]
                if rest and _LETTER_RE.match(rest[0]):
                    continue
                return book, stripped[: len(candidate)]
        return None

    def parse_verse_string(self, verse_string: str) -> Optional[VerseCoordinate]:
        """Parse a single citation such as ``"Röm 8,28"``."""
        if not verse_string or not isinstance(verse_string, str):
            return None
        found = self.find_prefix_match(verse_string)
        if found is None:
            return None
        book, matched = found
        remaining = verse_string.strip()[len(matched):].strip()
        numbers = _CHAPTER_VERSE_RE.match(remaining)
        if not numbers:
            return None
        return VerseCoordinate(
            book=book.book_number,
            chapter=int(numbers.group(1)),
            verse=int(numbers.group(2)),
        )
