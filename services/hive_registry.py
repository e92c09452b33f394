"""Resolution of hive identities in the document store."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, Tuple

from datastore.document_store import DocumentStore, StoreError
from models.records import Hive
from models.schemas import HiveDocument
from services.errors import HiveResolutionError

logger = logging.getLogger(__name__)

HIVES_COLLECTION = "hives"


class HiveRegistry:
    """Creates or updates hive records by name, once per name and location."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store
        self._resolved: Dict[Tuple[str, str], Hive] = {}
        self._lock = Lock()

    def get_or_create(self, name: str, location: str) -> str:
        """Upsert the hive called ``name`` and return its identity."""
        return self.resolve(name, location).id

    def resolve(self, name: str, location: str) -> Hive:
        with self._lock:
            cached = self._resolved.get((name, location))
            if cached is not None:
                return cached

            now = datetime.now(timezone.utc).isoformat()
            try:
                document = self.store.upsert_one(
                    HIVES_COLLECTION,
                    {"name": name},
                    {"location": location, "updated_at": now},
                    on_insert={"created_at": now},
                )
            except StoreError as exc:
                logger.error(
                    "Failed to resolve hive: %s", exc, extra={"hive": name}
                )
                raise HiveResolutionError(f"Could not resolve hive {name!r}: {exc}") from exc

            stored = HiveDocument.model_validate(document)
            hive = Hive(id=stored.id, name=stored.name, location=stored.location)
            self._resolved[(name, location)] = hive
            logger.info("Resolved hive %s", hive.id, extra={"hive": name})
            return hive
