"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Union


class MetricKind(str, Enum):
    """The four metric streams recorded for every hive."""

    flow = "flow"
    humidity = "humidity"
    temperature = "temperature"
    weight = "weight"

    @property
    def collection(self) -> str:
        """Name of the store collection holding records of this kind."""
        if self is MetricKind.humidity:
            return "humidities"
        return f"{self.value}s"

    def file_name(self, site_name: str) -> str:
        return f"{self.value}_{site_name.lower()}.csv"


@dataclass(frozen=True, slots=True)
class Hive:
    """Canonical identity record for a monitored site."""

    id: str
    name: str
    location: str


@dataclass(frozen=True, slots=True)
class SensorRecord:
    """A single normalized reading parsed from a metric CSV."""

    hive_id: str
    timestamp: datetime
    kind: MetricKind
    value: float
    sensor_id: Optional[int] = None


@dataclass(frozen=True, slots=True)
class ParsedRow:
    record: SensorRecord


@dataclass(frozen=True, slots=True)
class SkippedRow:
    row_number: int
    reason: str


RowOutcome = Union[ParsedRow, SkippedRow]
