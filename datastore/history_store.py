from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional, Set
from uuid import UUID, uuid4

from models.records import Reading
from settings import get_settings

logger = logging.getLogger(__name__)


class DuplicateReadingError(ValueError):
    """Raised when unique reading ids are enforced and an id is seen twice."""


class MockHistoryCollection:
    """Append-only archive of raw readings.

    Each ``add`` stores a new document under its own document id, so the same
    reading delivered twice is archived twice unless ``unique_reading_ids`` is
    enabled.
    """

    def __init__(
        self,
        name: str,
        persistence_path: Optional[Path] = None,
        unique_reading_ids: bool = False,
    ) -> None:
        self.name = name
        self.persistence_path = persistence_path
        self.unique_reading_ids = unique_reading_ids
        self._documents: List[Dict[str, Any]] = []
        self._reading_ids: Set[str] = set()
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def add(self, reading: Reading) -> str:
        document = reading.to_document()
        document_id = str(uuid4())
        document["_id"] = document_id
        with self._lock:
            if self.unique_reading_ids and document["reading_id"] in self._reading_ids:
                raise DuplicateReadingError(
                    f"Reading {document['reading_id']!r} already archived in {self.name!r}."
                )
            self._append(document)
            self._documents.append(document)
            self._reading_ids.add(document["reading_id"])
        return document_id

    def find(self, field_id: Optional[UUID] = None) -> list[Dict[str, Any]]:
        """Return copies of archived documents, optionally for a single field."""

        with self._lock:
            documents = list(self._documents)
        if field_id is not None:
            documents = [doc for doc in documents if doc["field_id"] == str(field_id)]
        return [dict(doc) for doc in documents]

    def count(self) -> int:
        with self._lock:
            return len(self._documents)

    def _append(self, document: Dict[str, Any]) -> None:
        if not self.persistence_path:
            return
        with self.persistence_path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(document, sort_keys=True))
            handle.write("\n")

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        with self.persistence_path.open("r", encoding="utf-8") as handle:
            for line_number, line in enumerate(handle, start=1):
                candidate = line.strip()
                if not candidate:
                    continue
                try:
                    document = json.loads(candidate)
                except json.JSONDecodeError:
                    logger.warning(
                        "Skipping unreadable history line %d in %s",
                        line_number,
                        self.persistence_path,
                    )
                    continue
                self._documents.append(document)
                self._reading_ids.add(document.get("reading_id", ""))


@lru_cache
def build_default_history(
    name: Optional[str] = None,
    path: Optional[str] = None,
) -> MockHistoryCollection:
    settings = get_settings()
    collection_name = settings.history_collection if name is None else name
    history_path = settings.history_persistence_path if path is None else path
    persistence = Path(history_path) if history_path else None
    return MockHistoryCollection(
        name=collection_name,
        persistence_path=persistence,
        unique_reading_ids=settings.history_unique_ids,
    )
