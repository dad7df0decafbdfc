"""Shared backend models for Lectern."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class EntryKind(str, Enum):
    NOTE = "note"
    JOURNAL = "journal"
    BOOK = "book"
    CHAPTER = "chapter"
    SERMON = "sermon"
    COMMENTARY = "commentary"
    DICTIONARY = "dictionary"


def _timestamp() -> float:
    return time.time()


# ---------------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Book:
    """A canonical book with its long name and short-name aliases."""

    book_number: int
    long_name: str
    short_names: Tuple[str, ...] = ()

    @property
    def primary_short_name(self) -> str:
        return self.short_names[0] if self.short_names else ""

    @classmethod
    def from_source(cls, data: Dict) -> "Book":
        """Build a book from a source row whose aliases are comma separated."""
        raw = str(data.get("short_name") or "")
        raw = raw.replace("[", "").replace("]", "")
        aliases = tuple(name.strip() for name in raw.split(",") if name.strip())
        return cls(
            book_number=int(data["book_number"]),
            long_name=str(data.get("long_name") or "").strip(),
            short_names=aliases,
        )


@dataclass(frozen=True)
class Verse:
    book_number: int
    chapter: int
    verse: int
    text: str = ""

    @property
    def key(self) -> str:
        return f"{self.book_number}-{self.chapter}-{self.verse}"


@dataclass
class Translation:
    id: str
    name: str
    has_lexicon: bool = False
    verses: List[Verse] = field(default_factory=list)


@dataclass(frozen=True)
class LexiconEntry:
    id: str
    lexeme: str = ""
    transliteration: str = ""
    definition: str = ""


@dataclass(frozen=True)
class DictionaryTopic:
    topic: str
    source_id: str
    definition: str = ""


@dataclass
class DictionarySource:
    id: str
    name: str
    topics: List[DictionaryTopic] = field(default_factory=list)

    def defines(self, topic: str) -> bool:
        wanted = topic.lower()
        return any(item.topic.lower() == wanted for item in self.topics)


# ---------------------------------------------------------------------------
# Authored entries
# ---------------------------------------------------------------------------


@dataclass
class Entry:
    """Any authored unit: note, journal item, sermon, commentary, definition.

    ``anchor`` ties the entry to the text it was written against: a verse key
    (``"B-C-V"``) for notes, a chapter key for chapter notes, a book number
    for book notes, or the journal name for journal items.
    """

    id: str
    content: str = ""
    title: str = ""
    kind: EntryKind = EntryKind.JOURNAL
    tags: List[str] = field(default_factory=list)
    anchor: Optional[str] = None
    bible_verses: List[str] = field(default_factory=list)
    timestamp: float = field(default_factory=_timestamp)


# ---------------------------------------------------------------------------
# Mentions and annotation output
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VerseMention:
    book_number: int
    chapter: int
    verse: int
    matched_text: str = ""

    @property
    def key(self) -> str:
        return f"{self.book_number}-{self.chapter}-{self.verse}"


@dataclass(frozen=True)
class ChapterMention:
    book_number: int
    chapter: int
    matched_text: str = ""

    @property
    def key(self) -> str:
        return f"{self.book_number}-{self.chapter}"


@dataclass(frozen=True)
class LexiconMention:
    lexicon_id: str
    matched_text: str = ""


@dataclass(frozen=True)
class DictionaryMention:
    topic: str
    source_id: str
    matched_text: str = ""


@dataclass(frozen=True)
class VerseCoordinate:
    book: int
    chapter: int
    verse: int

    @property
    def key(self) -> str:
        return f"{self.book}-{self.chapter}-{self.verse}"


@dataclass
class AnnotationFlags:
    has_youtube: bool = False
    has_audio: bool = False
    has_video: bool = False
    has_cross_reference: bool = False

    @property
    def has_media(self) -> bool:
        return self.has_youtube or self.has_audio or self.has_video


@dataclass(frozen=True)
class Resource:
    url: str
    name: str
    size: int = 0


@dataclass
class AnnotationBundle:
    """Derived representation of one entry; recomputed only when it changes."""

    processed_content: str
    flags: AnnotationFlags
    internal_links: List[VerseMention] = field(default_factory=list)
    chapter_links: List[ChapterMention] = field(default_factory=list)
    resources: List[Resource] = field(default_factory=list)
    plain_text_content: str = ""
    searchable_text_case_sensitive: str = ""
    searchable_text_case_insensitive: str = ""


@dataclass(frozen=True)
class SourceRef:
    """One reverse-index record pointing back at the referencing entry."""

    ref: str
    link: str
    snippet: str


# API payloads

class BookPayload(BaseModel):
    book_number: int
    long_name: str
    short_names: List[str] = Field(default_factory=list)


class EntryPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    content: str = ""
    title: str = ""
    kind: EntryKind = EntryKind.JOURNAL
    tags: List[str] = Field(default_factory=list)
    anchor: Optional[str] = None
    bible_verses: List[str] = Field(default_factory=list, alias="bibleVerses")
    timestamp: Optional[float] = None


class EntriesResponsePayload(BaseModel):
    entries: List[EntryPayload] = Field(default_factory=list)


class SaveEntryRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content: str = ""
    title: str = ""
    kind: EntryKind = EntryKind.JOURNAL
    tags: List[str] = Field(default_factory=list)
    anchor: Optional[str] = None
    bible_verses: List[str] = Field(default_factory=list, alias="bibleVerses")


class VerseLinkPayload(BaseModel):
    book_number: int
    chapter: int
    verse: int
    matched_text: str = ""


class ChapterLinkPayload(BaseModel):
    book_number: int
    chapter: int
    matched_text: str = ""


class ResourcePayload(BaseModel):
    url: str
    name: str
    size: int = 0


class FlagsPayload(BaseModel):
    has_youtube: bool = False
    has_audio: bool = False
    has_video: bool = False
    has_cross_reference: bool = False


class AnnotationPayload(BaseModel):
    entry_id: str
    processed_content: str
    flags: FlagsPayload
    internal_links: List[VerseLinkPayload] = Field(default_factory=list)
    chapter_links: List[ChapterLinkPayload] = Field(default_factory=list)
    resources: List[ResourcePayload] = Field(default_factory=list)
    plain_text_content: str = ""


class AnnotateTextRequest(BaseModel):
    text: str
    definition: bool = False


class AnnotateTextResponsePayload(BaseModel):
    processed_content: str
    internal_links: List[VerseLinkPayload] = Field(default_factory=list)
    chapter_links: List[ChapterLinkPayload] = Field(default_factory=list)


class SourceRefPayload(BaseModel):
    ref: str
    link: str
    snippet: str


class ReferenceLookupPayload(BaseModel):
    key: str
    references: List[SourceRefPayload] = Field(default_factory=list)
    sermons: List[str] = Field(default_factory=list)


class VerseCoordinatePayload(BaseModel):
    book: int
    chapter: int
    verse: int


class LexiconLookupPayload(BaseModel):
    id: str
    lexeme: str = ""
    transliteration: str = ""
    definition: str = ""
    occurrences: Dict[str, List[VerseCoordinatePayload]] = Field(default_factory=dict)


class DictionaryResolutionPayload(BaseModel):
    topic: str
    source_id: str
    link: str
    found: bool


class SearchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str
    scope: str = "all"
    testament: Optional[str] = None
    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=10, ge=1, le=100)
    case_sensitive: bool = False


class SearchHitPayload(BaseModel):
    kind: str
    ref: str
    link: str
    snippet: str


class SearchResponsePayload(BaseModel):
    total: int = 0
    page: int = 1
    total_pages: int = 0
    results: List[SearchHitPayload] = Field(default_factory=list)
