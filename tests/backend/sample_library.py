"""
Small on-disk library used by the service and API tests.
"""

import json
import os

BOOKS = [
    {"book_number": 10, "long_name": "1. Mose", "short_name": "[1Mo, Gen]"},
    {"book_number": 500, "long_name": "Johannes", "short_name": "[Joh, John]"},
    {"book_number": 520, "long_name": "Römer", "short_name": "[Röm, Rom]"},
]

VERSES = [
    (10, 1, 1, "Im Anfang<S>7225</S> schuf Gott<S>430</S> die Himmel und die Erde."),
    (500, 3, 16, "Denn so hat Gott<S>2316</S> die Welt geliebt<S>25</S>, dass er seinen Sohn gab."),
    (500, 3, 17, "Denn Gott hat seinen Sohn nicht gesandt."),
    (520, 8, 1, "So gibt es nun keine Verdammnis."),
    (520, 8, 28, "Wir wissen aber, dass denen, die Gott lieben, alle Dinge zum Guten mitwirken."),
]

ENTRIES = [
    {
        "id": "n1",
        "kind": "note",
        "anchor": "500-3-16",
        "title": "",
        "content": "Gottes Liebe, vgl. Röm 8,28",
        "tags": ["liebe"],
        "timestamp": 1700000000.0,
    },
    {
        "id": "j1",
        "kind": "journal",
        "anchor": "Daily",
        "title": "Morning",
        "content": "Gnade und Sohn",
        "tags": [],
        "timestamp": 1700000100.0,
    },
    {
        "id": "s1",
        "kind": "sermon",
        "title": "Hope",
        "content": "Predigt über Rom 8:28",
        "tags": [],
        "bibleVerses": ["Röm 8,28"],
        "timestamp": 1700000200.0,
    },
]

DICTIONARIES = [
    {"id": "jma", "name": "JMA", "data": [{"topic": "Gnade", "definition": "Unverdiente Gunst"}]},
]

LEXICON = [
    {"id": "G25", "lexeme": "ἀγαπάω", "transliteration": "agapao", "definition": "lieben, siehe Joh 3,16"},
]


def seed_library(root):
    """Write every collection of the sample library below ``root``."""
    translations = [
        {
            "id": "elb",
            "name": "Elberfelder",
            "has_lexicon": True,
            "verses": [
                {"book_number": b, "chapter": c, "verse": v, "text": text}
                for b, c, v, text in VERSES
            ],
        }
    ]
    collections = {
        "books": BOOKS,
        "translations": translations,
        "entries": ENTRIES,
        "dictionaries": DICTIONARIES,
        "lexicon": LEXICON,
    }
    os.makedirs(root, exist_ok=True)
    for name, data in collections.items():
        with open(os.path.join(root, f"{name}.json"), "w", encoding="utf-8") as handle:
            json.dump(data, handle, ensure_ascii=False)
