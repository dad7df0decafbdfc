"""Runtime settings for Lectern, read from ``LECTERN_*`` environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


def _default_storage_dir() -> Path:
    return Path(__file__).resolve().parent / "storage" / "library"


@dataclass(frozen=True)
class LecternSettings:
    storage_dir: Path
    default_dictionary: str = "jma"
    snippet_length: int = 200
    snippet_context: int = 30
    reference_snippet_length: int = 100
    reference_locale: str = "all"
    new_testament_start: int = 470
    min_query_length: int = 3

    @classmethod
    def from_env(cls) -> "LecternSettings":
        storage_dir = os.environ.get("LECTERN_STORAGE_DIR")
        return cls(
            storage_dir=Path(storage_dir) if storage_dir else _default_storage_dir(),
            default_dictionary=os.environ.get("LECTERN_DEFAULT_DICTIONARY", "jma"),
            snippet_length=int(os.environ.get("LECTERN_SNIPPET_LENGTH", "200")),
            snippet_context=int(os.environ.get("LECTERN_SNIPPET_CONTEXT", "30")),
            reference_snippet_length=int(
                os.environ.get("LECTERN_REFERENCE_SNIPPET_LENGTH", "100")
            ),
            reference_locale=os.environ.get("LECTERN_REFERENCE_LOCALE", "all").lower(),
            new_testament_start=int(os.environ.get("LECTERN_NEW_TESTAMENT_START", "470")),
            min_query_length=int(os.environ.get("LECTERN_MIN_QUERY_LENGTH", "3")),
        )
