"""FastAPI entrypoint for the Lectern backend."""

from __future__ import annotations

import asyncio
import os
import traceback
from typing import Optional

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from config import LecternSettings
from models import (
    AnnotateTextRequest,
    AnnotateTextResponsePayload,
    AnnotationPayload,
    ChapterLinkPayload,
    DictionaryResolutionPayload,
    EntriesResponsePayload,
    EntryKind,
    EntryPayload,
    FlagsPayload,
    LexiconLookupPayload,
    ReferenceLookupPayload,
    ResourcePayload,
    SaveEntryRequest,
    SearchRequest,
    SearchResponsePayload,
    SourceRefPayload,
    VerseCoordinatePayload,
    VerseLinkPayload,
)
from services import LibraryService
from storage import LibraryStorage

app = FastAPI(title="Lectern Backend", description="Scripture study notes and reference index API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

settings = LecternSettings.from_env()
storage = LibraryStorage(root=settings.storage_dir)
library_service = LibraryService(storage=storage, settings=settings)


def _entry_payload(entry) -> EntryPayload:
    return EntryPayload(
        id=entry.id,
        content=entry.content,
        title=entry.title,
        kind=entry.kind,
        tags=entry.tags,
        anchor=entry.anchor,
        bible_verses=entry.bible_verses,
        timestamp=entry.timestamp,
    )


def _verse_links(mentions):
    return [
        VerseLinkPayload(
            book_number=m.book_number, chapter=m.chapter, verse=m.verse, matched_text=m.matched_text
        )
        for m in mentions
    ]


def _chapter_links(mentions):
    return [
        ChapterLinkPayload(book_number=m.book_number, chapter=m.chapter, matched_text=m.matched_text)
        for m in mentions
    ]


def _source_refs(refs):
    return [SourceRefPayload(ref=r.ref, link=r.link, snippet=r.snippet) for r in refs]


@app.get("/", tags=["health"])
async def root():
    return {"status": "ok", "message": "Lectern backend is running"}


@app.get("/health", tags=["health"])
async def health():
    return {"status": "ok", "message": "Lectern backend is running"}


@app.get("/entries", response_model=EntriesResponsePayload, tags=["entries"])
async def entries(kind: Optional[EntryKind] = None):
    try:
        return EntriesResponsePayload(
            entries=[_entry_payload(e) for e in library_service.list_entries(kind)]
        )
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@app.get("/entries/{entry_id}", response_model=EntryPayload, tags=["entries"])
async def get_entry(entry_id: str):
    try:
        return _entry_payload(library_service.get_entry(entry_id))
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="Entry not found")
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@app.put("/entries/{entry_id}", tags=["entries"])
async def save_entry(entry_id: str, request: SaveEntryRequest):
    try:
        entry = await asyncio.to_thread(library_service.save_entry, entry_id, request)
        return {"success": True, "entry_id": entry.id}
    except Exception as exc:
        traceback.print_exc()
        raise HTTPException(status_code=500, detail=str(exc))


@app.delete("/entries/{entry_id}", tags=["entries"])
async def delete_entry(entry_id: str):
    try:
        entry = await asyncio.to_thread(library_service.delete_entry, entry_id)
        return {"success": True, "deleted": entry.id}
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="Entry not found")
    except Exception as exc:
        traceback.print_exc()
        raise HTTPException(status_code=500, detail=str(exc))


@app.get("/entries/{entry_id}/annotation", response_model=AnnotationPayload, tags=["entries"])
async def entry_annotation(entry_id: str):
    try:
        bundle = await asyncio.to_thread(library_service.annotation, entry_id)
        return AnnotationPayload(
            entry_id=entry_id,
            processed_content=bundle.processed_content,
            flags=FlagsPayload(
                has_youtube=bundle.flags.has_youtube,
                has_audio=bundle.flags.has_audio,
                has_video=bundle.flags.has_video,
                has_cross_reference=bundle.flags.has_cross_reference,
            ),
            internal_links=_verse_links(bundle.internal_links),
            chapter_links=_chapter_links(bundle.chapter_links),
            resources=[ResourcePayload(url=r.url, name=r.name, size=r.size) for r in bundle.resources],
            plain_text_content=bundle.plain_text_content,
        )
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="Entry not found")
    except Exception as exc:
        traceback.print_exc()
        raise HTTPException(status_code=500, detail=str(exc))


@app.post("/annotate-text", response_model=AnnotateTextResponsePayload, tags=["annotation"])
async def annotate_text(request: AnnotateTextRequest):
    try:
        processed, verse_links, chapter_links = await asyncio.to_thread(
            library_service.annotate_text, request.text, request.definition
        )
        return AnnotateTextResponsePayload(
            processed_content=processed,
            internal_links=_verse_links(verse_links),
            chapter_links=_chapter_links(chapter_links),
        )
    except Exception as exc:
        traceback.print_exc()
        raise HTTPException(status_code=500, detail=str(exc))


@app.get("/verses/{book}/{chapter}/{verse}", tags=["references"])
async def verse_detail(book: int, chapter: int, verse: int):
    try:
        html, plain = library_service.format_verse(book, chapter, verse)
        metadata = library_service.verse_metadata(book, chapter, verse)
        return {
            "key": f"{book}-{chapter}-{verse}",
            "html": html,
            "text": plain,
            "has_note": metadata.has_note,
            "has_sermon": metadata.has_sermon,
            "has_cross_reference": metadata.has_cross_reference,
            "has_media": metadata.has_media,
            "has_resource": metadata.has_resource,
        }
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="Verse not found")
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@app.get("/references/verse/{book}/{chapter}/{verse}", response_model=ReferenceLookupPayload, tags=["references"])
async def verse_references(book: int, chapter: int, verse: int):
    try:
        refs, sermons = library_service.verse_references(book, chapter, verse)
        return ReferenceLookupPayload(
            key=f"{book}-{chapter}-{verse}", references=_source_refs(refs), sermons=sermons
        )
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@app.get("/references/chapter/{book}/{chapter}", response_model=ReferenceLookupPayload, tags=["references"])
async def chapter_references(book: int, chapter: int):
    try:
        refs = library_service.chapter_references(book, chapter)
        return ReferenceLookupPayload(key=f"{book}-{chapter}", references=_source_refs(refs))
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@app.get("/lexicon/{lexicon_id}", response_model=LexiconLookupPayload, tags=["references"])
async def lexicon(lexicon_id: str):
    try:
        entry, occurrences = await asyncio.to_thread(library_service.lexicon_lookup, lexicon_id)
        return LexiconLookupPayload(
            id=entry.id,
            lexeme=entry.lexeme,
            transliteration=entry.transliteration,
            definition=entry.definition,
            occurrences={
                translation_id: [
                    VerseCoordinatePayload(book=c.book, chapter=c.chapter, verse=c.verse) for c in coordinates
                ]
                for translation_id, coordinates in occurrences.items()
            },
        )
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="Lexicon entry not found")
    except Exception as exc:
        traceback.print_exc()
        raise HTTPException(status_code=500, detail=str(exc))


@app.get("/dictionary/resolve/{topic}", response_model=DictionaryResolutionPayload, tags=["references"])
async def resolve_topic(topic: str):
    try:
        link = library_service.resolve_topic(topic)
        return DictionaryResolutionPayload(
            topic=link.topic, source_id=link.source_id, link=link.href, found=link.found
        )
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@app.post("/search", response_model=SearchResponsePayload, tags=["search"])
async def search(request: SearchRequest):
    try:
        return await asyncio.to_thread(
            library_service.search,
            request.query,
            request.scope,
            request.testament,
            request.page,
            request.per_page,
            request.case_sensitive,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except Exception as exc:
        traceback.print_exc()
        raise HTTPException(status_code=500, detail=str(exc))


@app.post("/admin/rebuild-index", tags=["admin"])
async def rebuild_index():
    try:
        indices = await asyncio.to_thread(library_service.reload)
        return {
            "success": True,
            "entries_indexed": len(library_service.list_entries()),
            "verses_referenced": len(indices.verse_refs),
            "chapters_referenced": len(indices.chapter_refs),
        }
    except Exception as exc:
        traceback.print_exc()
        raise HTTPException(status_code=500, detail=str(exc))


if __name__ == "__main__":
    uvicorn.run(
        app,
        host=os.environ.get("LECTERN_HOST", "127.0.0.1"),
        port=int(os.environ.get("LECTERN_PORT", "8000")),
    )
