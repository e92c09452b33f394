from __future__ import annotations
import copy
import json
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Iterable, List, Mapping, Optional
from uuid import uuid4

from settings import get_settings

Document = Dict[str, Any]


class StoreError(Exception):
    """Raised when the document store cannot complete an operation."""


def _matches(document: Mapping[str, Any], filter_: Mapping[str, Any]) -> bool:
    return all(document.get(key) == value for key, value in filter_.items())


class DocumentStore:
    """Collection-based document store with optional JSON Lines persistence.

    Each collection is kept in memory and, when ``root_path`` is set, mirrored
    to ``<root_path>/<collection>.jsonl``. Bulk inserts append to that file;
    upserts rewrite it. Memory only changes once the disk write succeeds.
    """

    def __init__(self, name: str, root_path: Optional[Path] = None) -> None:
        self.name = name
        self._collections: Dict[str, List[Document]] = {}
        self.root_path = root_path
        self._lock = Lock()
        if root_path:
            root_path.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def upsert_one(
        self,
        collection: str,
        filter_: Mapping[str, Any],
        values: Mapping[str, Any],
        on_insert: Optional[Mapping[str, Any]] = None,
    ) -> Document:
        """Update the first document matching ``filter_`` or insert a new one.

        ``on_insert`` fields are only written when the document is created.
        Returns a copy of the stored document.
        """
        with self._lock:
            documents = copy.deepcopy(self._collections.get(collection, []))
            for document in documents:
                if _matches(document, filter_):
                    document.update(copy.deepcopy(dict(values)))
                    break
            else:
                document = {"_id": uuid4().hex}
                document.update(copy.deepcopy(dict(filter_)))
                document.update(copy.deepcopy(dict(on_insert or {})))
                document.update(copy.deepcopy(dict(values)))
                documents.append(document)
            self._rewrite_collection(collection, documents)
            self._collections[collection] = documents
            return copy.deepcopy(document)

    def insert_many(self, collection: str, documents: Iterable[Mapping[str, Any]]) -> int:
        """Append documents to a collection, assigning ``_id`` where missing."""
        prepared: List[Document] = []
        for document in documents:
            item = copy.deepcopy(dict(document))
            item.setdefault("_id", uuid4().hex)
            prepared.append(item)
        if not prepared:
            return 0

        with self._lock:
            self._append_to_collection(collection, prepared)
            self._collections.setdefault(collection, []).extend(prepared)
        return len(prepared)

    def find(self, collection: str, filter_: Optional[Mapping[str, Any]] = None) -> list[Document]:
        """Return deep copies of the documents matching ``filter_``."""

        with self._lock:
            documents = self._collections.get(collection, [])
            return [
                copy.deepcopy(document)
                for document in documents
                if _matches(document, filter_ or {})
            ]

    def count(self, collection: str, filter_: Optional[Mapping[str, Any]] = None) -> int:
        with self._lock:
            documents = self._collections.get(collection, [])
            return sum(1 for document in documents if _matches(document, filter_ or {}))

    def collection_names(self) -> list[str]:
        with self._lock:
            return sorted(self._collections)

    def _collection_path(self, collection: str) -> Path:
        assert self.root_path is not None
        return self.root_path / f"{collection}.jsonl"

    def _append_to_collection(self, collection: str, documents: List[Document]) -> None:
        if not self.root_path:
            return
        lines = "".join(json.dumps(document, sort_keys=True) + "\n" for document in documents)
        try:
            with self._collection_path(collection).open("a", encoding="utf-8") as handle:
                handle.write(lines)
        except (OSError, TypeError, ValueError) as exc:
            raise StoreError(
                f"Failed to write {len(documents)} documents to {collection!r}: {exc}"
            ) from exc

    def _rewrite_collection(self, collection: str, documents: List[Document]) -> None:
        if not self.root_path:
            return
        payload = "".join(json.dumps(document, sort_keys=True) + "\n" for document in documents)
        try:
            self._collection_path(collection).write_text(payload, encoding="utf-8")
        except (OSError, TypeError, ValueError) as exc:
            raise StoreError(f"Failed to persist collection {collection!r}: {exc}") from exc

    def _load_from_disk(self) -> None:
        assert self.root_path is not None
        for path in sorted(self.root_path.glob("*.jsonl")):
            documents: List[Document] = []
            try:
                with path.open("r", encoding="utf-8") as handle:
                    for line in handle:
                        line = line.strip()
                        if line:
                            documents.append(json.loads(line))
            except (OSError, json.JSONDecodeError) as exc:
                raise StoreError(f"Failed to load collection from {path}: {exc}") from exc
            self._collections[path.stem] = documents


@lru_cache
def build_default_store(
    name: Optional[str] = None,
    path: Optional[str] = None,
) -> DocumentStore:
    settings = get_settings()
    store_name = "hive_metrics" if name is None else name
    store_path = settings.store_path if path is None else path
    persistence = Path(store_path) if store_path else None
    return DocumentStore(name=store_name, root_path=persistence)
