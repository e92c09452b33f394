"""Normalization of raw metric CSV rows into sensor records."""

from __future__ import annotations

import csv
import logging
import math
from datetime import datetime, timezone
from typing import Dict, Iterator, Mapping, Optional, TextIO, Tuple

from models.records import MetricKind, ParsedRow, RowOutcome, SensorRecord, SkippedRow
from services.errors import RowParseError

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
TIMESTAMP_COLUMN = "timestamp"
SENSOR_ID_COLUMN = "sensorId"


def iter_rows(handle: TextIO, kind: MetricKind) -> Iterator[Tuple[int, Dict[str, str]]]:
    """Lazily yield ``(row_number, row)`` pairs from an open metric CSV.

    Row numbers count the header as row 1. Raises ``ValueError`` before the
    first row when the header lacks the timestamp or metric column.
    """
    reader = csv.DictReader(handle)
    if not reader.fieldnames:
        raise ValueError("CSV file is missing a header row.")

    present = {name.strip() for name in reader.fieldnames if name}
    missing = sorted({TIMESTAMP_COLUMN, kind.value} - present)
    if missing:
        raise ValueError(f"CSV missing required columns: {', '.join(missing)}")

    for row_number, row in enumerate(reader, start=2):
        yield row_number, {
            (key or "").strip(): value for key, value in row.items() if key is not None
        }


class CsvRecordTransformer:
    """Turns one raw row into a ``ParsedRow`` or a ``SkippedRow``."""

    def __init__(self, weight_divisors: Optional[Mapping[str, float]] = None) -> None:
        self.weight_divisors = dict(weight_divisors or {})

    def parse_row(
        self,
        kind: MetricKind,
        hive_id: str,
        hive_name: str,
        raw_row: Mapping[str, Optional[str]],
        row_number: int = 0,
    ) -> RowOutcome:
        try:
            timestamp = self._parse_timestamp(raw_row.get(TIMESTAMP_COLUMN))
            value = self._parse_value(kind, raw_row.get(kind.value))
        except RowParseError as exc:
            reason = str(exc)
            logger.warning(
                "Skipping row: %s",
                reason,
                extra={
                    "hive": hive_name,
                    "metric": kind.value,
                    "row_number": row_number,
                    "reason": reason,
                },
            )
            return SkippedRow(row_number=row_number, reason=reason)

        if kind is MetricKind.weight:
            divisor = self.weight_divisors.get(hive_name)
            if divisor:
                value /= divisor

        sensor_id = None
        if kind is MetricKind.temperature:
            sensor_id = self._parse_sensor_id(raw_row.get(SENSOR_ID_COLUMN))

        return ParsedRow(
            record=SensorRecord(
                hive_id=hive_id,
                timestamp=timestamp,
                kind=kind,
                value=value,
                sensor_id=sensor_id,
            )
        )

    @staticmethod
    def _parse_timestamp(value: Optional[str]) -> datetime:
        candidate = (value or "").strip()
        if not candidate:
            raise RowParseError("missing timestamp")
        try:
            parsed = datetime.strptime(candidate, TIMESTAMP_FORMAT)
        except ValueError as exc:
            raise RowParseError("invalid timestamp") from exc
        return parsed.replace(tzinfo=timezone.utc)

    @staticmethod
    def _parse_value(kind: MetricKind, value: Optional[str]) -> float:
        candidate = (value or "").strip()
        if not candidate:
            raise RowParseError(f"missing {kind.value} value")
        try:
            parsed = float(candidate)
        except ValueError as exc:
            raise RowParseError(f"invalid {kind.value} value") from exc
        if not math.isfinite(parsed):
            raise RowParseError(f"non-finite {kind.value} value")
        return parsed

    @staticmethod
    def _parse_sensor_id(value: Optional[str]) -> Optional[int]:
        candidate = (value or "").strip()
        if not candidate:
            return None
        try:
            return int(candidate)
        except ValueError:
            pass
        try:
            parsed = float(candidate)
        except ValueError:
            return None
        # Some exports write integral ids as floats ("3.0").
        if math.isfinite(parsed) and parsed.is_integer():
            return int(parsed)
        return None
