"""
Indexer module for Lectern.

Builds the reverse lookup tables derived from the library: which entries
mention a verse or chapter, where each lexicon id occurs per translation,
which sermons preach on a verse, and the word index used for dictionary
mentions. Indices are never patched; every rebuild produces a fresh
:class:`ReferenceIndices` from the full data set.
"""

import re
import urllib.parse
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence, Set, Tuple

from annotator import Annotator
from linker import DictionaryCatalog, lexicon_ids_in_verse, split_topic
from models import (
    DictionarySource,
    Entry,
    EntryKind,
    SourceRef,
    Translation,
    VerseCoordinate,
)
from references import BookRegistry

_WHITESPACE_RE = re.compile(r"\s+")


@dataclass
class ReferenceIndices:
    """One consistent snapshot of every reverse index."""

    verse_refs: Dict[str, List[SourceRef]] = field(default_factory=dict)
    chapter_refs: Dict[str, List[SourceRef]] = field(default_factory=dict)
    # translation id -> lexicon id -> coordinates
    lexicon_occurrences: Dict[str, Dict[str, List[VerseCoordinate]]] = field(default_factory=dict)
    dictionary_words: Set[str] = field(default_factory=set)
    sermon_refs: Dict[str, List[str]] = field(default_factory=dict)
    # book -> chapter -> highest verse
    chapter_bounds: Dict[int, Dict[int, int]] = field(default_factory=dict)

    def references_to_verse(self, book: int, chapter: int, verse: int) -> List[SourceRef]:
        return list(self.verse_refs.get(f"{book}-{chapter}-{verse}", []))

    def references_to_chapter(self, book: int, chapter: int) -> List[SourceRef]:
        return list(self.chapter_refs.get(f"{book}-{chapter}", []))

    def lexicon_occurrences_for(self, lexicon_id: str) -> Dict[str, List[VerseCoordinate]]:
        lexicon_id = lexicon_id.upper()
        return {
            translation_id: list(per_id[lexicon_id])
            for translation_id, per_id in self.lexicon_occurrences.items()
            if lexicon_id in per_id
        }


@dataclass(frozen=True)
class VerseMetadata:
    has_note: bool = False
    has_sermon: bool = False
    has_cross_reference: bool = False
    has_youtube: bool = False
    has_audio: bool = False
    has_video: bool = False
    has_resource: bool = False

    @property
    def has_media(self) -> bool:
        return self.has_youtube or self.has_audio or self.has_video


def describe_entry(entry: Entry, registry: BookRegistry) -> Tuple[str, str]:
    """Display reference and navigation link for an entry."""
    anchor = entry.anchor or ""
    parts = anchor.split("-")

    if entry.kind == EntryKind.NOTE and len(parts) == 3 and parts[0].isdigit():
        book = registry.get(int(parts[0]))
        if book is not None:
            return (
                f"{book.long_name} {parts[1]}:{parts[2]}",
                f"/bible/{book.primary_short_name}/{parts[1]}/{parts[2]}",
            )
    if entry.kind == EntryKind.BOOK and anchor.isdigit():
        book = registry.get(int(anchor))
        title = entry.title or (book.long_name if book else anchor)
        return f"Book note: {title}", f"/journal/book/{anchor}/entry/{entry.id}"
    if entry.kind == EntryKind.CHAPTER and len(parts) == 2 and parts[0].isdigit():
        book = registry.get(int(parts[0]))
        fallback = f"{book.long_name} {parts[1]}" if book else anchor
        return f"Chapter note: {entry.title or fallback}", f"/journal/chapter/{anchor}/entry/{entry.id}"
    if entry.kind == EntryKind.SERMON:
        return f"Sermon: {entry.title}", f"/sermons/view/{entry.id}"
    if entry.kind == EntryKind.JOURNAL:
        journal = urllib.parse.quote(anchor or "journal")
        return entry.title or anchor or entry.id, f"/journal/view/{journal}/entry/{entry.id}"
    if entry.kind == EntryKind.COMMENTARY:
        return entry.title or f"Commentary {anchor}".strip(), f"/commentary/{entry.id}"
    if entry.kind == EntryKind.DICTIONARY:
        return entry.title or entry.id, f"/dictionary/entry/{entry.id}"
    return entry.title or entry.id, ""


def build_dictionary_word_index(sources: Iterable[DictionarySource]) -> Set[str]:
    """Lower-cased topic words longer than two characters from every source."""
    words: Set[str] = set()
    for source in sources:
        for item in source.topics:
            words.update(word for word in split_topic(item.topic) if len(word) > 2)
    return words


def build_lexicon_index(
    translations: Iterable[Translation], new_testament_start: int = 470
) -> Dict[str, Dict[str, List[VerseCoordinate]]]:
    """Scan lexicon-annotated translations for embedded lexicon markers."""
    index: Dict[str, Dict[str, List[VerseCoordinate]]] = {}
    for translation in translations:
        if not translation.has_lexicon or not translation.verses:
            continue
        per_id: Dict[str, List[VerseCoordinate]] = {}
        for verse in translation.verses:
            coordinate = VerseCoordinate(verse.book_number, verse.chapter, verse.verse)
            for lexicon_id in lexicon_ids_in_verse(verse.text, verse.book_number, new_testament_start):
                per_id.setdefault(lexicon_id, []).append(coordinate)
        index[translation.id] = per_id
    return index


class ReferenceIndexer:
    """Rebuilds :class:`ReferenceIndices` from entries, translations and dictionaries."""

    def __init__(
        self,
        annotator: Annotator,
        registry: BookRegistry,
        default_dictionary: str = "jma",
        snippet_length: int = 100,
        new_testament_start: int = 470,
    ):
        """
        Initialize the indexer.

        Args:
            annotator: Annotation cache used to obtain each entry's links
            registry: Book registry used for entry descriptors and sermon verses
            default_dictionary: Source id used when a topic has no defining source
            snippet_length: Characters of plain text kept per reverse-index record
            new_testament_start: First book number that takes the ``G`` prefix
        """
        self.annotator = annotator
        self.registry = registry
        self.default_dictionary = default_dictionary
        self.snippet_length = snippet_length
        self.new_testament_start = new_testament_start

    def rebuild(
        self,
        entries: Sequence[Entry],
        translations: Sequence[Translation] = (),
        dictionary_sources: Sequence[DictionarySource] = (),
    ) -> ReferenceIndices:
        """Build every index from scratch.

        The dictionary word index is built first because entry annotation
        depends on it.
        """
        words = build_dictionary_word_index(dictionary_sources)
        catalog = DictionaryCatalog(dictionary_sources, self.default_dictionary)
        self.annotator.set_dictionary(catalog, words)

        indices = ReferenceIndices(
            dictionary_words=words,
            chapter_bounds=self.annotator.recognizer.bounds.as_dict(),
        )
        for entry in entries:
            self._index_entry(entry, indices)
        indices.lexicon_occurrences = build_lexicon_index(translations, self.new_testament_start)

        print(
            f"Rebuilt reference indices: {len(entries)} entries, "
            f"{len(indices.verse_refs)} verses, {len(indices.chapter_refs)} chapters, "
            f"{len(indices.dictionary_words)} dictionary words"
        )
        return indices

    def snippet(self, plain: str) -> str:
        text = _WHITESPACE_RE.sub(" ", plain or "").strip()
        if len(text) <= self.snippet_length:
            return text
        return text[: self.snippet_length] + "..."

    def _index_entry(self, entry: Entry, indices: ReferenceIndices) -> None:
        ref, link = describe_entry(entry, self.registry)
        bundle = self.annotator.annotate(entry, ref)
        source = SourceRef(ref=ref, link=link, snippet=self.snippet(bundle.plain_text_content))

        for mention in bundle.internal_links:
            indices.verse_refs.setdefault(mention.key, []).append(source)
        for mention in bundle.chapter_links:
            indices.chapter_refs.setdefault(mention.key, []).append(source)

        if entry.kind == EntryKind.SERMON:
            for verse_string in entry.bible_verses:
                coordinate = self.registry.parse_verse_string(verse_string)
                if coordinate is not None:
                    indices.sermon_refs.setdefault(coordinate.key, []).append(entry.id)

    def verse_metadata(
        self, indices: ReferenceIndices, verse_key: str, entries: Iterable[Entry]
    ) -> VerseMetadata:
        """Summarize what is attached to one verse, for verse list decorations."""
        notes = [e for e in entries if e.kind == EntryKind.NOTE and e.anchor == verse_key]
        bundles = [self.annotator.annotate(n, describe_entry(n, self.registry)[0]) for n in notes]
        return VerseMetadata(
            has_note=bool(notes),
            has_sermon=verse_key in indices.sermon_refs,
            has_cross_reference=verse_key in indices.verse_refs,
            has_youtube=any(b.flags.has_youtube for b in bundles),
            has_audio=any(b.flags.has_audio for b in bundles),
            has_video=any(b.flags.has_video for b in bundles),
            has_resource=any(b.resources for b in bundles),
        )
