"""
Integration tests for the FastAPI backend API.
"""

import os
import shutil
import sys
import tempfile
from pathlib import Path
from unittest.mock import patch

from fastapi.testclient import TestClient

# Add backend to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../backend"))
sys.path.insert(0, os.path.dirname(__file__))

# Keep the module-level service away from the real data directory
os.environ.setdefault("LECTERN_STORAGE_DIR", tempfile.mkdtemp())

import main
from config import LecternSettings
from sample_library import seed_library
from services import LibraryService
from storage import LibraryStorage


class TestFastAPIEndpoints:
    """Test suite for FastAPI endpoints."""

    def setup_method(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        seed_library(self.temp_dir)
        settings = LecternSettings(storage_dir=Path(self.temp_dir))
        self.service = LibraryService(storage=LibraryStorage(root=settings.storage_dir), settings=settings)

        self.service_patch = patch.object(main, "library_service", self.service)
        self.service_patch.start()
        self.client = TestClient(main.app)

    def teardown_method(self):
        """Clean up test fixtures."""
        self.service_patch.stop()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_health(self):
        response = self.client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_list_entries(self):
        response = self.client.get("/entries")
        assert response.status_code == 200

        entries = response.json()["entries"]
        assert [e["id"] for e in entries] == ["n1", "j1", "s1"]
        assert entries[2]["bibleVerses"] == ["Röm 8,28"]

    def test_list_entries_by_kind(self):
        response = self.client.get("/entries", params={"kind": "note"})
        assert [e["id"] for e in response.json()["entries"]] == ["n1"]

    def test_get_entry(self):
        response = self.client.get("/entries/j1")
        assert response.status_code == 200
        assert response.json()["title"] == "Morning"

    def test_get_entry_not_found(self):
        response = self.client.get("/entries/missing")
        assert response.status_code == 404

    def test_put_and_delete_entry(self):
        response = self.client.put(
            "/entries/j2",
            json={"content": "John 3:17", "title": "Evening", "kind": "journal", "bibleVerses": []},
        )
        assert response.status_code == 200
        assert response.json() == {"success": True, "entry_id": "j2"}

        lookup = self.client.get("/references/verse/500/3/17").json()
        assert [r["ref"] for r in lookup["references"]] == ["Evening"]

        assert self.client.delete("/entries/j2").status_code == 200
        assert self.client.delete("/entries/j2").status_code == 404
        assert self.client.get("/references/verse/500/3/17").json()["references"] == []

    def test_entry_annotation(self):
        response = self.client.get("/entries/n1/annotation")
        assert response.status_code == 200

        data = response.json()
        assert data["entry_id"] == "n1"
        assert data["flags"]["has_cross_reference"] is True
        assert [(l["book_number"], l["chapter"], l["verse"]) for l in data["internal_links"]] == [(520, 8, 28)]
        assert "verse-mention-hover" in data["processed_content"]

    def test_entry_annotation_not_found(self):
        assert self.client.get("/entries/missing/annotation").status_code == 404

    def test_verse_references(self):
        data = self.client.get("/references/verse/520/8/28").json()

        assert data["key"] == "520-8-28"
        assert [r["link"] for r in data["references"]] == ["/bible/Joh/3/16", "/sermons/view/s1"]
        assert data["sermons"] == ["s1"]

    def test_chapter_references(self):
        data = self.client.get("/references/chapter/520/8").json()
        assert data == {"key": "520-8", "references": [], "sermons": []}

    def test_verse_detail(self):
        response = self.client.get("/verses/500/3/16")
        assert response.status_code == 200

        data = response.json()
        assert data["has_note"] is True
        assert data["text"].startswith("Denn so hat Gott die Welt")
        assert "strongs-mention-hover" in data["html"]
        assert self.client.get("/verses/500/3/99").status_code == 404

    def test_lexicon_lookup(self):
        response = self.client.get("/lexicon/G25")
        assert response.status_code == 200

        data = response.json()
        assert data["lexeme"] == "ἀγαπάω"
        assert data["occurrences"] == {"elb": [{"book": 500, "chapter": 3, "verse": 16}]}

    def test_lexicon_lookup_not_found(self):
        assert self.client.get("/lexicon/G1").status_code == 404

    def test_dictionary_resolution(self):
        data = self.client.get("/dictionary/resolve/Gnade").json()
        assert data == {"topic": "Gnade", "source_id": "jma", "link": "/dictionary/jma/gnade", "found": True}

    def test_annotate_text(self):
        response = self.client.post("/annotate-text", json={"text": "Röm 8,28"})
        assert response.status_code == 200
        assert [l["verse"] for l in response.json()["internal_links"]] == [28]

    def test_search(self):
        response = self.client.post("/search", json={"query": "Sohn"})
        assert response.status_code == 200

        data = response.json()
        assert data["total"] == 3
        assert data["page"] == 1
        assert data["total_pages"] == 1
        assert data["results"][2]["kind"] == "journal"

    def test_search_query_too_short(self):
        response = self.client.post("/search", json={"query": "ab"})
        assert response.status_code == 400

    def test_search_invalid_paging(self):
        response = self.client.post("/search", json={"query": "Sohn", "per_page": 0})
        assert response.status_code == 422

    def test_rebuild_index(self):
        response = self.client.post("/admin/rebuild-index")
        assert response.status_code == 200

        data = response.json()
        assert data["success"] is True
        assert data["entries_indexed"] == 3
        assert data["verses_referenced"] == 1
