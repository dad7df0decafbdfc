"""
Unit tests for structured link rewriting, dictionary matching and verse text helpers.
"""

import json
import os
import sys

import pytest
from bs4 import BeautifulSoup

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../backend"))

from linker import (
    DictionaryCatalog,
    DictionaryMatcher,
    format_verse_text,
    is_lexicon_id,
    lexicon_ids_in_verse,
    resolve_book_link,
    rewrite_structured_links,
    split_topic,
    strip_lexicon_markers,
)
from models import DictionarySource, DictionaryTopic, Verse
from recognizer import SpanKind
from references import ChapterBounds


def _source(source_id, *topics):
    return DictionarySource(
        id=source_id,
        name=source_id.upper(),
        topics=[DictionaryTopic(topic=t, source_id=source_id) for t in topics],
    )


class TestDictionaryMatcher:
    """Test suite for suffix-stripped dictionary word matching."""

    def setup_method(self):
        catalog = DictionaryCatalog([_source("jma", "Gnade", "Gott")])
        self.matcher = DictionaryMatcher({"gnade", "gott", "glaube"}, catalog)

    def test_exact_match(self):
        assert self.matcher.match("Gnade") == "gnade"

    def test_inflected_form_resolves_to_topic(self):
        assert self.matcher.match("gnaden") == "gnade"
        assert self.matcher.match("Gottes") == "gott"
        assert self.matcher.match("Glauben") == "glaube"

    def test_short_words_never_match(self):
        assert self.matcher.match("ab") is None

    def test_stop_words_never_match(self):
        matcher = DictionaryMatcher({"die", "und"})
        assert matcher.match("die") is None
        assert matcher.match("Und") is None

    def test_stem_must_stay_longer_than_two(self):
        matcher = DictionaryMatcher({"ge"})
        assert matcher.match("ges") is None

    def test_unknown_word(self):
        assert self.matcher.match("Brot") is None

    def test_scan_produces_dictionary_spans(self):
        text = "Die Gnaden Gottes"
        spans = self.matcher.scan(text)

        assert [s.kind for s in spans] == [
            SpanKind.TEXT,
            SpanKind.DICTIONARY,
            SpanKind.TEXT,
            SpanKind.DICTIONARY,
        ]
        mention = spans[1].payload[0]
        assert mention.topic == "gnade"
        assert mention.source_id == "jma"
        assert mention.matched_text == "Gnaden"
        assert text[spans[3].start : spans[3].end] == "Gottes"


class TestDictionaryCatalog:
    """Test suite for topic source resolution."""

    def setup_method(self):
        self.catalog = DictionaryCatalog(
            [_source("jma", "Gnade"), _source("bdl", "Liebe, Agape", "Gnade")],
            default_source="jma",
        )

    def test_first_defining_source_wins(self):
        assert self.catalog.source_for("gnade") == "jma"

    def test_alias_words_resolve(self):
        link = self.catalog.resolve("Agape")
        assert link.found
        assert link.source_id == "bdl"
        assert link.href == "/dictionary/bdl/agape"

    def test_unknown_topic_falls_back_to_default(self):
        link = self.catalog.resolve("Unbekannt")
        assert not link.found
        assert link.source_id == "jma"


class TestStructuredLinks:
    """Test suite for B: and S: link rewriting."""

    def setup_method(self):
        verses = [Verse(500, 3, v) for v in range(1, 37)]
        verses += [Verse(520, 8, v) for v in range(1, 40)]
        self.bounds = ChapterBounds.from_verses(verses)
        self.catalog = DictionaryCatalog([_source("jma", "Gnade")])

    def test_verses_from_link_text(self):
        mentions = resolve_book_link("B:520 8", "Röm 8,28", self.bounds)
        assert [m.key for m in mentions] == ["520-8-28"]

    def test_chapter_only_link_defaults_to_first_verse(self):
        mentions = resolve_book_link("B:520 8", "Römer 8", self.bounds)
        assert [m.key for m in mentions] == ["520-8-1"]

    def test_verse_from_href(self):
        mentions = resolve_book_link("B:500 3:16", "hier", self.bounds)
        assert [m.key for m in mentions] == ["500-3-16"]

    def test_trailing_verse_list(self):
        mentions = resolve_book_link("B:500 3", "siehe 16-18", self.bounds)
        assert [m.key for m in mentions] == ["500-3-16", "500-3-17", "500-3-18"]

    def test_out_of_bounds_link_yields_nothing(self):
        assert resolve_book_link("B:500 3", "Joh 3,99", self.bounds) == []

    def test_huge_range_in_link_text_is_clamped(self):
        mentions = resolve_book_link("B:520 8", "Röm 8,38-999999999", self.bounds)
        assert [m.key for m in mentions] == ["520-8-38", "520-8-39"]

    def test_rewrite_replaces_anchors(self):
        soup = BeautifulSoup(
            '<p><a href="B:520 8">Röm 8,28</a> und <a href="S:Gnade">Gnade</a>'
            ' und <a href="S:G26">Liebe</a></p>',
            "html.parser",
        )
        mentions = rewrite_structured_links(soup, self.catalog, self.bounds)

        assert [m.key for m in mentions] == ["520-8-28"]
        verse = soup.select_one("span.verse-mention-hover")
        assert verse.get_text() == "Röm 8,28"
        assert json.loads(verse["data-verses"]) == [{"b": 520, "c": 8, "v": 28}]

        topic = soup.find("a", string="Gnade")
        assert topic["href"] == "/dictionary/jma/gnade"
        assert topic.has_attr("data-link")

        lexicon = soup.select_one("span.strongs-mention-hover")
        assert lexicon["data-strong-id"] == "G26"
        assert lexicon.get_text() == "Liebe"

    def test_rewrite_leaves_invalid_verse_link(self):
        soup = BeautifulSoup('<a href="B:500 3">Joh 3,99</a>', "html.parser")
        assert rewrite_structured_links(soup, self.catalog, self.bounds) == []
        assert soup.find("a")["href"] == "B:500 3"


@pytest.mark.unit
def test_split_topic_and_lexicon_shape():
    assert split_topic("Liebe, Agape; Barmherzigkeit") == ["liebe", "agape", "barmherzigkeit"]
    assert is_lexicon_id("g26")
    assert is_lexicon_id("H430")
    assert not is_lexicon_id("G123456")
    assert not is_lexicon_id("Gnade")


@pytest.mark.unit
def test_lexicon_ids_in_verse_use_testament_prefix():
    assert lexicon_ids_in_verse("Gott<S>430</S> sprach<S>559</S>", 10) == ["H430", "H559"]
    assert lexicon_ids_in_verse("Liebe<S>26</S>", 500) == ["G26"]
    assert lexicon_ids_in_verse(None, 500) == []


@pytest.mark.unit
def test_format_verse_text():
    raw = "Im Anfang<S>7225</S> schuf〈Anm.〉 Gott<pb/> [Randnotiz]"
    html = format_verse_text(raw, 10)

    assert 'data-strong-id="H7225"' in html
    assert "〈" not in html
    assert "Randnotiz" not in html
    assert "<pb" not in html


@pytest.mark.unit
def test_format_verse_text_words_of_jesus():
    html = format_verse_text("<J>Ich bin das Licht</J>", 500)
    assert html == '<span class="words-of-jesus">Ich bin das Licht</span>'


@pytest.mark.unit
def test_strip_lexicon_markers():
    raw = "Im Anfang<S>7225</S> schuf <pb/>Gott [x]"
    assert strip_lexicon_markers(raw) == "Im Anfang schuf Gott"
    assert strip_lexicon_markers("") == ""
