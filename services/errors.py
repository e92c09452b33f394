"""Exceptions raised by the ingestion services."""

from __future__ import annotations


class IngestionError(Exception):
    """Base class for ingestion failures."""


class DownloadError(IngestionError):
    """The dataset archive could not be retrieved. Aborts the run."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ExtractionError(IngestionError):
    """The archive could not be unpacked. Aborts the run."""


class HiveResolutionError(IngestionError):
    """The hive record could not be resolved. Aborts the dependent file only."""


class RowParseError(IngestionError):
    """A single CSV row could not be normalized. The row is skipped."""


class BatchFlushError(IngestionError):
    """A batch could not be written to the store. The batch is dropped."""

    def __init__(self, message: str, collection: str, batch_size: int) -> None:
        super().__init__(message)
        self.collection = collection
        self.batch_size = batch_size
