"""Pydantic schemas for stored documents and ingestion reports."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, computed_field

from models.records import MetricKind, SensorRecord


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HiveDocument(BaseModel):
    """Shape of a document in the ``hives`` collection."""

    id: str = Field(..., alias="_id")
    name: str
    location: str
    created_at: datetime
    updated_at: datetime

    model_config = {"populate_by_name": True}


class SensorDocument(BaseModel):
    """Common fields of a document in one of the metric collections."""

    hive_id: str
    timestamp: datetime
    sensor_id: Optional[int] = None
    created_at: datetime = Field(default_factory=_utcnow)


def sensor_document(record: SensorRecord) -> Dict[str, Any]:
    """Serialize a record the way it is stored: the value sits under the metric name."""
    payload = SensorDocument(
        hive_id=record.hive_id,
        timestamp=record.timestamp,
        sensor_id=record.sensor_id,
    ).model_dump(mode="json", exclude_none=True)
    payload[record.kind.value] = record.value
    return payload


class FileStatus(str, Enum):
    """Outcome of ingesting a single metric file."""

    processed = "processed"
    partial = "partial"
    failed = "failed"
    empty = "empty"


class RowIssue(BaseModel):
    """A row that was skipped during transformation."""

    row_number: int = Field(..., ge=1)
    reason: str


class FileReport(BaseModel):
    """Counts and issues collected while ingesting one (site, metric) file."""

    site: str
    metric: MetricKind
    file_name: str
    status: FileStatus = FileStatus.processed
    rows_read: int = Field(default=0, ge=0)
    rows_skipped: int = Field(default=0, ge=0)
    records_flushed: int = Field(default=0, ge=0)
    records_failed: int = Field(default=0, ge=0)
    batches_flushed: int = Field(default=0, ge=0)
    batches_failed: int = Field(default=0, ge=0)
    errors: List[RowIssue] = Field(default_factory=list)
    detail: Optional[str] = Field(
        default=None, description="Reason the whole file was aborted, if it was."
    )


class IngestionReport(BaseModel):
    """Result of one ingestion run across every configured site and metric."""

    dataset: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    processing_ms: Optional[int] = None
    files: List[FileReport] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def records_flushed(self) -> int:
        return sum(item.records_flushed for item in self.files)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def records_failed(self) -> int:
        return sum(item.records_failed for item in self.files)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def rows_skipped(self) -> int:
        return sum(item.rows_skipped for item in self.files)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def files_failed(self) -> int:
        return sum(1 for item in self.files if item.status is FileStatus.failed)
