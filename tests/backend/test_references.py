"""
Unit tests for the book registry and verse-list parsing.
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../backend"))

from models import Book, Verse, VerseCoordinate
from references import (
    BookRegistry,
    ChapterBounds,
    lexicon_prefix,
    normalize_alias,
    parse_verse_list,
)


@pytest.mark.unit
def test_parse_verse_list_ranges_and_singles():
    assert parse_verse_list("3-5,7,9") == [3, 4, 5, 7, 9]


@pytest.mark.unit
def test_parse_verse_list_is_sorted_and_unique():
    assert parse_verse_list("9;3.3,1–2") == [1, 2, 3, 9]


@pytest.mark.unit
def test_parse_verse_list_ignores_trailing_markers():
    assert parse_verse_list("16ff") == [16]
    assert parse_verse_list("4f") == [4]


@pytest.mark.unit
def test_parse_verse_list_skips_malformed_tokens():
    assert parse_verse_list("") == []
    assert parse_verse_list(None) == []
    assert parse_verse_list("abc,,5") == [5]
    # A reversed range contributes nothing.
    assert parse_verse_list("5-3") == []


@pytest.mark.unit
def test_parse_verse_list_clamps_ranges_to_limit():
    assert parse_verse_list("3-999999999", limit=5) == [3, 4, 5]
    assert parse_verse_list("7,9-12", limit=5) == [7]
    assert parse_verse_list("1-3", limit=0) == []


@pytest.mark.unit
def test_lexicon_prefix_splits_testaments():
    assert lexicon_prefix(10) == "H"
    assert lexicon_prefix(460) == "H"
    assert lexicon_prefix(470) == "G"
    assert lexicon_prefix(520) == "G"
    assert lexicon_prefix(400, new_testament_start=390) == "G"


@pytest.mark.unit
def test_normalize_alias_folds_digit_space():
    assert normalize_alias("1 Mo") == normalize_alias("1mo") == "1mo"
    assert normalize_alias("  Röm ") == "röm"


class TestChapterBounds:
    """Test suite for ChapterBounds."""

    def setup_method(self):
        verses = [Verse(500, 3, v) for v in range(1, 37)]
        verses += [Verse(500, 4, v) for v in range(1, 55)]
        verses += [Verse(650, 1, v) for v in range(1, 26)]
        self.bounds = ChapterBounds.from_verses(verses)

    def test_max_verse(self):
        assert self.bounds.max_verse(500, 3) == 36
        assert self.bounds.max_verse(500, 4) == 54
        assert self.bounds.max_verse(500, 99) == 0

    def test_contains(self):
        assert self.bounds.contains(500, 3, 36)
        assert not self.bounds.contains(500, 3, 37)
        assert not self.bounds.contains(500, 3, 0)
        assert not self.bounds.contains(999, 1, 1)

    def test_has_chapter(self):
        assert self.bounds.has_chapter(500, 4)
        assert not self.bounds.has_chapter(500, 5)

    def test_single_chapter_books(self):
        assert self.bounds.single_chapter_books() == {650}


class TestBookRegistry:
    """Test suite for BookRegistry alias handling."""

    def setup_method(self):
        self.registry = BookRegistry(
            [
                Book(10, "1. Mose", ("1Mo", "Gen")),
                Book(290, "Joel", ("Jo", "Joel")),
                Book(500, "Johannes", ("Joh", "John")),
                Book(520, "Römer", ("Röm", "Rom")),
            ]
        )

    def test_books_sorted_by_number(self):
        assert [b.book_number for b in self.registry.books] == [10, 290, 500, 520]

    def test_version_increases_on_reload(self):
        version = self.registry.version
        self.registry.set_books(self.registry.books)
        assert self.registry.version == version + 1

    def test_find_by_alias_is_case_insensitive(self):
        assert self.registry.find_by_alias("rom").book_number == 520
        assert self.registry.find_by_alias("RÖMER").book_number == 520
        assert self.registry.find_by_alias("unknown") is None

    def test_find_by_alias_tolerates_digit_space(self):
        assert self.registry.find_by_alias("1 Mo").book_number == 10
        assert self.registry.find_by_alias("1mo").book_number == 10

    def test_alias_patterns_are_longest_first(self):
        lengths = [len(p.replace("\\s?", "").replace("\\", "")) for p in self.registry.alias_patterns()]
        assert lengths == sorted(lengths, reverse=True)

    def test_find_prefix_match_prefers_longest_alias(self):
        book, matched = self.registry.find_prefix_match("Joh 3,16")
        assert book.book_number == 500
        assert matched == "Joh"

    def test_find_prefix_match_requires_word_end(self):
        book, matched = self.registry.find_prefix_match("Joel 2,28")
        assert book.book_number == 290
        assert matched == "Joel"
        assert self.registry.find_prefix_match("Romans 8") is None

    def test_parse_verse_string(self):
        assert self.registry.parse_verse_string("Röm 8,28") == VerseCoordinate(520, 8, 28)
        assert self.registry.parse_verse_string("1 Mo 1:1") == VerseCoordinate(10, 1, 1)
        assert self.registry.parse_verse_string("Johannes 3 16") == VerseCoordinate(500, 3, 16)

    def test_parse_verse_string_rejects_incomplete(self):
        assert self.registry.parse_verse_string("Röm") is None
        assert self.registry.parse_verse_string("Nowhere 1,1") is None
        assert self.registry.parse_verse_string("") is None
