"""Service layer coordinating storage, annotation, indexing and search."""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from annotator import Annotator, render_markdown
from config import LecternSettings
from indexer import ReferenceIndexer, ReferenceIndices, VerseMetadata, describe_entry
from linker import TopicLink, format_verse_text, strip_lexicon_markers
from models import (
    AnnotationBundle,
    ChapterMention,
    Entry,
    EntryKind,
    LexiconEntry,
    SaveEntryRequest,
    SearchHitPayload,
    SearchResponsePayload,
    SourceRef,
    Translation,
    Verse,
    VerseCoordinate,
    VerseMention,
)
from recognizer import ReferenceRecognizer, ReferenceVocabulary
from references import BookRegistry, ChapterBounds
from search import compile_query, highlight, matches
from storage import LibraryStorage

ENTRY_SCOPES = {
    "notes": EntryKind.NOTE,
    "sermons": EntryKind.SERMON,
    "journals": EntryKind.JOURNAL,
    "booknotes": EntryKind.BOOK,
    "chapternotes": EntryKind.CHAPTER,
}
SEARCH_SCOPES = ("all", "bible", *ENTRY_SCOPES)


class QueryTooShortError(ValueError):
    """Raised for queries that cannot be searched meaningfully."""


@dataclass(frozen=True)
class _VerseRow:
    verse: Verse
    ref: str
    link: str
    plain: str
    searchable: str
    searchable_lower: str


class LibraryService:
    """Owns the loaded library and the derived reference indices."""

    def __init__(
        self,
        storage: LibraryStorage | None = None,
        settings: LecternSettings | None = None,
    ):
        self.settings = settings or LecternSettings.from_env()
        self.storage = storage or LibraryStorage(self.settings.storage_dir)
        self._lock = threading.RLock()

        self.registry = BookRegistry()
        self.recognizer = ReferenceRecognizer(
            self.registry,
            ChapterBounds(),
            ReferenceVocabulary.preset(self.settings.reference_locale),
        )
        self.annotator = Annotator(self.recognizer)
        self.indexer = ReferenceIndexer(
            self.annotator,
            self.registry,
            default_dictionary=self.settings.default_dictionary,
            snippet_length=self.settings.reference_snippet_length,
            new_testament_start=self.settings.new_testament_start,
        )

        self.indices = ReferenceIndices()
        self.translations: List[Translation] = []
        self.dictionaries = []
        self.lexicon: Dict[str, LexiconEntry] = {}
        self._entries: Dict[str, Entry] = {}
        self._verse_rows: List[_VerseRow] = []
        self._verses_by_key: Dict[str, Verse] = {}

        self.reload()

    # ------------------------------------------------------------------
    # Loading and rebuilding
    # ------------------------------------------------------------------
    def reload(self) -> ReferenceIndices:
        """Re-read every collection from storage and rebuild from scratch."""
        with self._lock:
            self.registry.set_books(self.storage.load_books())
            self.translations = self.storage.load_translations()
            self.dictionaries = self.storage.load_dictionaries()
            self.lexicon = self.storage.load_lexicon()
            self._entries = {entry.id: entry for entry in self.storage.load_entries()}

            verses = self.default_translation.verses if self.default_translation else []
            self.recognizer.bounds = ChapterBounds.from_verses(verses)
            self._verses_by_key = {verse.key: verse for verse in verses}
            self._verse_rows = [row for row in (self._verse_row(v) for v in verses) if row]
            self.annotator.clear()
            print(
                f"Loaded {len(self._entries)} entries, {len(self.translations)} translations, "
                f"{len(self.dictionaries)} dictionaries"
            )
            return self.rebuild_indices()

    def rebuild_indices(self) -> ReferenceIndices:
        with self._lock:
            self.indices = self.indexer.rebuild(
                list(self._entries.values()), self.translations, self.dictionaries
            )
            return self.indices

    @property
    def default_translation(self) -> Optional[Translation]:
        return self.translations[0] if self.translations else None

    def _verse_row(self, verse: Verse) -> Optional[_VerseRow]:
        book = self.registry.get(verse.book_number)
        if book is None:
            return None
        ref = f"{book.long_name} {verse.chapter}:{verse.verse}"
        plain = strip_lexicon_markers(verse.text)
        searchable = f"{ref} {plain}"
        return _VerseRow(
            verse=verse,
            ref=ref,
            link=f"/bible/{book.primary_short_name}/{verse.chapter}/{verse.verse}",
            plain=plain,
            searchable=searchable,
            searchable_lower=searchable.lower(),
        )

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------
    def list_entries(self, kind: EntryKind | None = None) -> List[Entry]:
        entries = list(self._entries.values())
        if kind is not None:
            entries = [entry for entry in entries if entry.kind == kind]
        return entries

    def get_entry(self, entry_id: str) -> Entry:
        entry = self._entries.get(entry_id)
        if entry is None:
            raise FileNotFoundError(entry_id)
        return entry

    def save_entry(self, entry_id: str, request: SaveEntryRequest) -> Entry:
        with self._lock:
            entry = Entry(
                id=entry_id,
                content=request.content,
                title=request.title,
                kind=request.kind,
                tags=list(request.tags),
                anchor=request.anchor,
                bible_verses=list(request.bible_verses),
                timestamp=time.time(),
            )
            self._entries[entry_id] = entry
            if not self.storage.save_entries(list(self._entries.values())):
                print(f"Entry {entry_id} kept in memory only")
            self.annotator.invalidate(entry_id)
            self.rebuild_indices()
            return entry

    def delete_entry(self, entry_id: str) -> Entry:
        with self._lock:
            entry = self.get_entry(entry_id)
            del self._entries[entry_id]
            self.storage.save_entries(list(self._entries.values()))
            self.annotator.invalidate(entry_id)
            self.rebuild_indices()
            return entry

    # ------------------------------------------------------------------
    # Annotation
    # ------------------------------------------------------------------
    def annotation(self, entry_id: str) -> AnnotationBundle:
        entry = self.get_entry(entry_id)
        ref, _ = describe_entry(entry, self.registry)
        return self.annotator.annotate(entry, ref)

    def annotate_text(
        self, text: str, definition: bool = False
    ) -> Tuple[str, List[VerseMention], List[ChapterMention]]:
        """Annotate ad-hoc text; definitions are already rich text."""
        if definition:
            return self.annotator.annotate_definition(text), [], []
        processed, collector = self.annotator.annotate_fragment(render_markdown(text))
        return processed, collector.internal_links, collector.chapter_links

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def verse_references(self, book: int, chapter: int, verse: int) -> Tuple[List[SourceRef], List[str]]:
        indices = self.indices
        key = f"{book}-{chapter}-{verse}"
        return indices.references_to_verse(book, chapter, verse), list(indices.sermon_refs.get(key, []))

    def chapter_references(self, book: int, chapter: int) -> List[SourceRef]:
        return self.indices.references_to_chapter(book, chapter)

    def lexicon_lookup(self, lexicon_id: str) -> Tuple[LexiconEntry, Dict[str, List[VerseCoordinate]]]:
        lexicon_id = (lexicon_id or "").strip().upper()
        entry = self.lexicon.get(lexicon_id)
        if entry is None:
            raise FileNotFoundError(lexicon_id)
        presented = LexiconEntry(
            id=entry.id,
            lexeme=entry.lexeme,
            transliteration=entry.transliteration,
            definition=self.annotator.annotate_definition(entry.definition),
        )
        return presented, self.indices.lexicon_occurrences_for(lexicon_id)

    def resolve_topic(self, topic: str) -> TopicLink:
        return self.annotator.catalog.resolve(topic)

    def verse_metadata(self, book: int, chapter: int, verse: int) -> VerseMetadata:
        return self.indexer.verse_metadata(
            self.indices, f"{book}-{chapter}-{verse}", self._entries.values()
        )

    def format_verse(self, book: int, chapter: int, verse: int) -> Tuple[str, str]:
        """Display markup and plain text for one verse of the default translation."""
        found = self._verses_by_key.get(f"{book}-{chapter}-{verse}")
        if found is None:
            raise FileNotFoundError(f"{book}-{chapter}-{verse}")
        return (
            format_verse_text(found.text, book, self.settings.new_testament_start),
            strip_lexicon_markers(found.text),
        )

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------
    def search(
        self,
        query: str,
        scope: str = "all",
        testament: str | None = None,
        page: int = 1,
        per_page: int = 10,
        case_sensitive: bool = False,
    ) -> SearchResponsePayload:
        stripped = (query or "").strip()
        if len(stripped) < self.settings.min_query_length and '"' not in stripped:
            raise QueryTooShortError(
                f"Query must be at least {self.settings.min_query_length} characters"
            )
        if scope not in SEARCH_SCOPES:
            raise ValueError(f"Unknown search scope: {scope}")

        compiled = compile_query(stripped, case_sensitive=case_sensitive)
        if compiled.is_empty:
            raise QueryTooShortError("Query has no searchable terms")

        hits: List[Tuple[str, str, str, str]] = []
        if scope in ("all", "bible"):
            for row in self._verse_rows:
                if not self._in_testament(row.verse.book_number, testament):
                    continue
                if matches(row.searchable, row.searchable_lower, compiled):
                    hits.append(("bible", row.ref, row.link, row.plain))

        wanted = ENTRY_SCOPES.get(scope)
        if scope != "bible":
            for entry in list(self._entries.values()):
                if wanted is not None and entry.kind != wanted:
                    continue
                ref, link = describe_entry(entry, self.registry)
                bundle = self.annotator.annotate(entry, ref)
                if matches(
                    bundle.searchable_text_case_sensitive,
                    bundle.searchable_text_case_insensitive,
                    compiled,
                ):
                    hits.append((entry.kind.value, ref, link, bundle.plain_text_content))

        total = len(hits)
        total_pages = math.ceil(total / per_page) if per_page else 0
        start = (page - 1) * per_page
        results = [
            SearchHitPayload(
                kind=kind,
                ref=ref,
                link=link,
                snippet=highlight(
                    text, compiled, self.settings.snippet_length, self.settings.snippet_context
                ),
            )
            for kind, ref, link, text in hits[start : start + per_page]
        ]
        return SearchResponsePayload(total=total, page=page, total_pages=total_pages, results=results)

    def _in_testament(self, book_number: int, testament: str | None) -> bool:
        if not testament:
            return True
        is_new = book_number >= self.settings.new_testament_start
        return is_new if testament.upper() == "NT" else not is_new
