"""
Annotation cache for Lectern entries.

Turns an entry's authoring markup into its annotation bundle: rendered rich
text with embedded media and hover-able reference spans, the verse and
chapter links it mentions, attached resources, and the plain and searchable
text projections. Bundles are cached per entry id and reused until the
entry's content, title, tags or the dictionary index change.
"""

from __future__ import annotations

import hashlib
import json
import re
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import markdown
from bs4 import BeautifulSoup, NavigableString
from bs4.element import CData, Comment, Declaration, Doctype, ProcessingInstruction

import renderer
from linker import DictionaryCatalog, DictionaryMatcher, rewrite_structured_links
from models import AnnotationBundle, AnnotationFlags, Entry, Resource
from recognizer import LinkCollector, ReferenceRecognizer, ScanState

_YOUTUBE_RE = re.compile(
    r"(?:<p>)?(?<![=\"'/.\w])(?:https?://)?(?:www\.)?"
    r"(?:youtube\.com/(?:watch\?v=|embed/)|youtu\.be/)([a-zA-Z0-9_-]{11})(?:</p>)?"
)
_MEDIA_FILE_RE = re.compile(r"(?:<p>)?(?<![=\"'/.\w])(https?://[^\s<\"]+\.(?:mp4|mp3))(?:</p>)?")

_SKIPPED_TAGS = {"a", "button", "script", "style"}
_SKIPPED_CLASSES = {"file-resource", *renderer.MENTION_CLASSES}
_NON_TEXT_NODES = (Comment, CData, Declaration, Doctype, ProcessingInstruction)


def render_markdown(content: str) -> str:
    return markdown.markdown(content or "", extensions=["extra", "sane_lists"])


def _youtube_block(video_id: str) -> str:
    watch = f"https://www.youtube.com/watch?v={video_id}"
    return (
        '<div class="media-container auto-embedded"><div class="media-wrapper">'
        f'<iframe src="https://www.youtube-nocookie.com/embed/{video_id}" '
        'title="YouTube video player" frameborder="0" allowfullscreen></iframe></div>'
        '<div class="media-source"><i class="fa-brands fa-youtube"></i>'
        f'<a href="{watch}" target="_blank" rel="noopener noreferrer">{watch}</a></div></div>'
    )


def _media_file_block(url: str) -> str:
    is_video = url.endswith(".mp4")
    media = f'<video controls src="{url}"></video>' if is_video else f'<audio controls src="{url}"></audio>'
    icon = "fa-solid fa-file-video" if is_video else "fa-solid fa-file-audio"
    return (
        f'<div class="media-container auto-embedded"><div class="media-wrapper">{media}</div>'
        f'<div class="media-source"><i class="{icon}"></i>'
        f'<a href="{url}" target="_blank" rel="noopener noreferrer">{url}</a></div></div>'
    )


def embed_media(rich_text: str) -> Tuple[str, AnnotationFlags]:
    """Replace bare YouTube and audio/video URLs with embedded players."""
    flags = AnnotationFlags()
    if _YOUTUBE_RE.search(rich_text):
        flags.has_youtube = True
        rich_text = _YOUTUBE_RE.sub(lambda m: _youtube_block(m.group(1)), rich_text)

    def replace_file(match: "re.Match[str]") -> str:
        url = match.group(1)
        if url.endswith(".mp4"):
            flags.has_video = True
        else:
            flags.has_audio = True
        return _media_file_block(url)

    rich_text = _MEDIA_FILE_RE.sub(replace_file, rich_text)
    return rich_text, flags


def extract_resources(rich_text: str) -> List[Resource]:
    if not rich_text:
        return []
    soup = BeautifulSoup(rich_text, "html.parser")
    resources: List[Resource] = []
    for element in soup.select(".file-resource"):
        size = str(element.get("data-filesize") or "0")
        resources.append(
            Resource(
                url=str(element.get("data-url") or ""),
                name=str(element.get("data-filename") or ""),
                size=int(size) if size.isdigit() else 0,
            )
        )
    return resources


def plain_text(rich_text: str) -> str:
    """Rich text with markup and attached resources removed."""
    if not rich_text:
        return ""
    soup = BeautifulSoup(rich_text, "html.parser")
    for element in soup.select(".file-resource"):
        element.decompose()
    return soup.get_text()


def _is_scannable(node: NavigableString) -> bool:
    if isinstance(node, _NON_TEXT_NODES) or not str(node).strip():
        return False
    for parent in node.parents:
        if parent.name in _SKIPPED_TAGS:
            return False
        classes = parent.get("class") or []
        if _SKIPPED_CLASSES.intersection(classes):
            return False
    return True


def _text_nodes(soup: BeautifulSoup) -> List[NavigableString]:
    return [node for node in soup.find_all(string=True) if _is_scannable(node)]


class Annotator:
    """Computes and caches annotation bundles keyed by entry id."""

    def __init__(
        self,
        recognizer: ReferenceRecognizer,
        catalog: Optional[DictionaryCatalog] = None,
        dictionary_words: Iterable[str] = (),
        markup_renderer: Callable[[str], str] = render_markdown,
    ):
        self.recognizer = recognizer
        self.markup_renderer = markup_renderer
        self._cache: Dict[str, Tuple[str, AnnotationBundle]] = {}
        self._dictionary_version = 0
        self.catalog = catalog or DictionaryCatalog([])
        self.matcher = DictionaryMatcher(dictionary_words, self.catalog)

    # ------------------------------------------------------------------
    # Cache management
    # ------------------------------------------------------------------
    def set_dictionary(self, catalog: DictionaryCatalog, words: Iterable[str]) -> None:
        """Swap the dictionary index; cached bundles become stale."""
        words = set(words)
        if words == self.matcher.word_index and catalog.sources == self.catalog.sources:
            return
        self.catalog = catalog
        self.matcher = DictionaryMatcher(words, catalog)
        self._dictionary_version += 1

    def invalidate(self, entry_id: str) -> None:
        self._cache.pop(entry_id, None)

    def clear(self) -> None:
        self._cache.clear()

    def cached(self, entry_id: str) -> Optional[AnnotationBundle]:
        hit = self._cache.get(entry_id)
        return hit[1] if hit else None

    def _fingerprint(self, entry: Entry, ref: str) -> str:
        digest = hashlib.sha1()
        for part in (entry.content or "", ref, "\x1f".join(entry.tags), str(self._dictionary_version)):
            digest.update(part.encode("utf-8"))
            digest.update(b"\x00")
        return digest.hexdigest()

    # ------------------------------------------------------------------
    # Annotation
    # ------------------------------------------------------------------
    def annotate(self, entry: Entry, ref: Optional[str] = None) -> AnnotationBundle:
        """Return the entry's bundle, computing it only on a cache miss."""
        ref = entry.title if ref is None else ref
        fingerprint = self._fingerprint(entry, ref)
        hit = self._cache.get(entry.id)
        if hit is not None and hit[0] == fingerprint:
            return hit[1]

        bundle = self._build(entry, ref)
        self._cache[entry.id] = (fingerprint, bundle)
        return bundle

    def annotate_fragment(self, rich_text: str) -> Tuple[str, LinkCollector]:
        """Annotate already-rendered rich text; return it with its links."""
        soup = BeautifulSoup(rich_text or "", "html.parser")
        collector = self._annotate_soup(soup)
        return str(soup), collector

    def annotate_definition(self, rich_text: str) -> str:
        """Prepare a lexicon or dictionary definition for display."""
        if not rich_text:
            return ""
        processed, _ = self.annotate_fragment(rich_text)
        return processed

    def _build(self, entry: Entry, ref: str) -> AnnotationBundle:
        rich = self.markup_renderer(entry.content or "")
        resources = extract_resources(rich)
        processed, flags = embed_media(rich)

        processed, collector = self.annotate_fragment(processed)
        internal_links = collector.internal_links
        chapter_links = collector.chapter_links
        flags.has_cross_reference = bool(internal_links or chapter_links)

        plain = plain_text(processed)
        searchable = f"{ref} {plain} {' '.join(entry.tags)}"
        return AnnotationBundle(
            processed_content=processed,
            flags=flags,
            internal_links=internal_links,
            chapter_links=chapter_links,
            resources=resources,
            plain_text_content=plain,
            searchable_text_case_sensitive=searchable,
            searchable_text_case_insensitive=searchable.lower(),
        )

    def _annotate_soup(self, soup: BeautifulSoup) -> LinkCollector:
        collector = LinkCollector()
        collector.add_verses(
            rewrite_structured_links(soup, self.catalog, self.recognizer.bounds)
        )

        # Text nodes and rewritten B: links share one scan state, in document order.
        state = ScanState()
        for node in soup.find_all(string=True):
            if _is_scannable(node):
                spans = self.recognizer.scan(str(node), state)
                collector.add(spans)
                renderer.replace_text_node(soup, node, spans)
            else:
                self._carry_structured_link(node, state)

        if self.matcher.word_index:
            for node in _text_nodes(soup):
                renderer.replace_text_node(soup, node, self.matcher.scan(str(node)))
        return collector

    def _carry_structured_link(self, node: NavigableString, state: ScanState) -> None:
        parent = node.parent
        if parent is None or renderer.VERSE_CLASS not in (parent.get("class") or []):
            return
        try:
            verses = json.loads(parent.get("data-verses") or "[]")
            book_number, chapter = int(verses[-1]["b"]), int(verses[-1]["c"])
        except (ValueError, TypeError, KeyError, IndexError):
            return
        book = self.recognizer.registry.get(book_number)
        if book is not None:
            state.last_book = book
            state.last_chapter = chapter
