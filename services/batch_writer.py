"""Bounded buffering of sensor records into bulk store writes."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Lock
from typing import Dict, List, Optional

from datastore.document_store import DocumentStore, StoreError
from models.records import SensorRecord
from models.schemas import sensor_document
from services.errors import BatchFlushError

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 1000


@dataclass
class WriterStats:
    accepted: int = 0
    flushed: int = 0
    failed: int = 0
    batches_flushed: int = 0
    batches_failed: int = 0


class BatchWriter:
    """Buffers records for one (hive, metric) stream and flushes them in bulk.

    A flush runs to completion before the next record is accepted, so two
    flushes of the same stream never overlap. Every accepted record ends up
    in exactly one flush; a failed flush drops its records and is counted.
    """

    def __init__(
        self,
        store: DocumentStore,
        collection: str,
        threshold: int = DEFAULT_BATCH_SIZE,
        log_context: Optional[Dict[str, object]] = None,
    ) -> None:
        if threshold < 1:
            raise ValueError("Batch threshold must be at least 1.")
        self.store = store
        self.collection = collection
        self.threshold = threshold
        self.stats = WriterStats()
        self._batch: List[SensorRecord] = []
        self._lock = Lock()
        self._log_context = dict(log_context or {})

    @property
    def pending(self) -> int:
        return len(self._batch)

    def append(self, record: SensorRecord) -> None:
        with self._lock:
            self._batch.append(record)
            self.stats.accepted += 1
            if len(self._batch) >= self.threshold:
                self._flush_locked()

    def flush_remaining(self) -> None:
        """Flush the partial batch left once the row source is exhausted."""
        with self._lock:
            if self._batch:
                self._flush_locked()

    def _flush_locked(self) -> None:
        batch, self._batch = self._batch, []
        try:
            self._write(batch)
        except BatchFlushError as exc:
            self.stats.failed += exc.batch_size
            self.stats.batches_failed += 1
            logger.error(
                "Dropping batch after failed flush: %s",
                exc,
                extra={
                    **self._log_context,
                    "collection": self.collection,
                    "batch_size": exc.batch_size,
                },
            )
            return

        self.stats.flushed += len(batch)
        self.stats.batches_flushed += 1
        logger.debug(
            "Flushed batch",
            extra={
                **self._log_context,
                "collection": self.collection,
                "batch_size": len(batch),
            },
        )

    def _write(self, batch: List[SensorRecord]) -> None:
        try:
            self.store.insert_many(self.collection, (sensor_document(item) for item in batch))
        except StoreError as exc:
            raise BatchFlushError(
                f"Bulk insert into {self.collection!r} failed: {exc}",
                collection=self.collection,
                batch_size=len(batch),
            ) from exc
