"""Filesystem-backed storage for the library's reference data and entries."""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from models import (
    Book,
    DictionarySource,
    DictionaryTopic,
    Entry,
    EntryKind,
    LexiconEntry,
    Translation,
    Verse,
)

COLLECTIONS = ("books", "translations", "entries", "dictionaries", "lexicon")


class LibraryStorage:
    """Local JSON storage; every collection is read and written whole."""

    def __init__(self, root: Optional[Path] = None):
        base_dir = Path(root) if root else Path(__file__).resolve().parent / "storage" / "library"
        base_dir.mkdir(parents=True, exist_ok=True)
        self.root = base_dir

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def read_collection(self, category: str) -> List[Dict[str, Any]]:
        path = self._path(category)
        try:
            if not path.exists():
                return []
            with open(path, "r", encoding="utf-8") as handle:
                data = json.load(handle)
            if not isinstance(data, list):
                print(f"Ignoring {category}: expected a list in {path}")
                return []
            return data
        except Exception as exc:
            print(f"Failed to load {category}: {exc}")
            return []

    def write_collection(self, category: str, items: List[Dict[str, Any]]) -> bool:
        path = self._path(category)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = path.with_suffix(".json.tmp")
            with open(tmp_path, "w", encoding="utf-8") as handle:
                json.dump(items, handle, indent=2, ensure_ascii=False)
            tmp_path.replace(path)
            return True
        except Exception as exc:
            print(f"Failed to save {category}: {exc}")
            return False

    def load_books(self) -> List[Book]:
        books = []
        for row in self.read_collection("books"):
            try:
                books.append(Book.from_source(row))
            except (KeyError, TypeError, ValueError):
                continue
        print(f"Loaded {len(books)} books")
        return books

    def load_translations(self) -> List[Translation]:
        translations = []
        for row in self.read_collection("translations"):
            verses = [
                verse
                for verse in (self._verse_from_json(v) for v in row.get("verses", []))
                if verse is not None
            ]
            translations.append(
                Translation(
                    id=str(row.get("id") or "default"),
                    name=str(row.get("name") or row.get("id") or ""),
                    has_lexicon=bool(row.get("has_lexicon") or row.get("hasStrongs")),
                    verses=verses,
                )
            )
        return translations

    def load_entries(self) -> List[Entry]:
        return [self._entry_from_json(row) for row in self.read_collection("entries") if row.get("id")]

    def save_entries(self, entries: List[Entry]) -> bool:
        return self.write_collection("entries", [self._entry_to_json(e) for e in entries])

    def load_dictionaries(self) -> List[DictionarySource]:
        sources = []
        for row in self.read_collection("dictionaries"):
            source_id = str(row.get("id") or "")
            if not source_id:
                continue
            topics = [
                DictionaryTopic(
                    topic=str(item.get("topic") or ""),
                    source_id=source_id,
                    definition=str(item.get("definition") or ""),
                )
                for item in row.get("data", [])
                if item.get("topic")
            ]
            sources.append(DictionarySource(id=source_id, name=str(row.get("name") or source_id), topics=topics))
        return sources

    def load_lexicon(self) -> Dict[str, LexiconEntry]:
        lexicon: Dict[str, LexiconEntry] = {}
        for row in self.read_collection("lexicon"):
            lexicon_id = str(row.get("id") or row.get("topic") or "").upper()
            if not lexicon_id:
                continue
            lexicon[lexicon_id] = LexiconEntry(
                id=lexicon_id,
                lexeme=str(row.get("lexeme") or ""),
                transliteration=str(row.get("transliteration") or ""),
                definition=str(row.get("definition") or ""),
            )
        return lexicon

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _path(self, category: str) -> Path:
        if category not in COLLECTIONS:
            raise ValueError(f"Unknown collection: {category}")
        return self.root / f"{category}.json"

    def _verse_from_json(self, row: Dict[str, Any]) -> Optional[Verse]:
        try:
            return Verse(
                book_number=int(row["book_number"]),
                chapter=int(row["chapter"]),
                verse=int(row["verse"]),
                text=str(row.get("text") or ""),
            )
        except (KeyError, TypeError, ValueError):
            return None

    def _entry_from_json(self, row: Dict[str, Any]) -> Entry:
        try:
            kind = EntryKind(row.get("kind") or row.get("type") or EntryKind.JOURNAL.value)
        except ValueError:
            kind = EntryKind.JOURNAL
        return Entry(
            id=str(row["id"]),
            content=str(row.get("content") or ""),
            title=str(row.get("title") or ""),
            kind=kind,
            tags=list(row.get("tags") or []),
            anchor=row.get("anchor"),
            bible_verses=list(row.get("bible_verses") or row.get("bibleVerses") or []),
            timestamp=float(row.get("timestamp") or time.time()),
        )

    def _entry_to_json(self, entry: Entry) -> Dict[str, Any]:
        return {
            "id": entry.id,
            "kind": entry.kind.value,
            "title": entry.title,
            "content": entry.content,
            "tags": entry.tags,
            "anchor": entry.anchor,
            "bible_verses": entry.bible_verses,
            "timestamp": entry.timestamp,
        }
