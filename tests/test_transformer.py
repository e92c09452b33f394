from __future__ import annotations

import io
import logging
from datetime import datetime, timezone

import pytest

from models.records import MetricKind, ParsedRow, SkippedRow
from services.transformer import CsvRecordTransformer, iter_rows


@pytest.fixture()
def transformer() -> CsvRecordTransformer:
    return CsvRecordTransformer(weight_divisors={"Schwartau": 1000.0})


def test_parse_row_returns_record_with_utc_timestamp(transformer: CsvRecordTransformer) -> None:
    outcome = transformer.parse_row(
        MetricKind.humidity,
        "hive-1",
        "Wurzburg",
        {"timestamp": "2017-01-05 13:45:10", "humidity": "65.25"},
        row_number=2,
    )

    assert isinstance(outcome, ParsedRow)
    record = outcome.record
    assert record.hive_id == "hive-1"
    assert record.kind is MetricKind.humidity
    assert record.timestamp == datetime(2017, 1, 5, 13, 45, 10, tzinfo=timezone.utc)
    assert record.value == 65.25
    assert record.sensor_id is None


def test_schwartau_weight_is_divided_by_thousand(transformer: CsvRecordTransformer) -> None:
    outcome = transformer.parse_row(
        MetricKind.weight,
        "hive-s",
        "Schwartau",
        {"timestamp": "2017-07-01 00:00:00", "weight": "1234.5"},
    )

    assert isinstance(outcome, ParsedRow)
    assert outcome.record.value == pytest.approx(1.2345)
    assert outcome.record.timestamp.isoformat() == "2017-07-01T00:00:00+00:00"


def test_weight_of_other_sites_is_left_unchanged(transformer: CsvRecordTransformer) -> None:
    outcome = transformer.parse_row(
        MetricKind.weight,
        "hive-w",
        "Wurzburg",
        {"timestamp": "2017-07-01 00:00:00", "weight": "54.3"},
    )

    assert isinstance(outcome, ParsedRow)
    assert outcome.record.value == 54.3


def test_divisor_only_applies_to_weight(transformer: CsvRecordTransformer) -> None:
    outcome = transformer.parse_row(
        MetricKind.flow,
        "hive-s",
        "Schwartau",
        {"timestamp": "2017-07-01 00:00:00", "flow": "12"},
    )

    assert isinstance(outcome, ParsedRow)
    assert outcome.record.value == 12.0


@pytest.mark.parametrize(
    ("row", "reason"),
    [
        ({"timestamp": "2017-07-01 00:00:00", "flow": "abc"}, "invalid flow value"),
        ({"timestamp": "2017-07-01 00:00:00", "flow": ""}, "missing flow value"),
        ({"timestamp": "2017-07-01 00:00:00"}, "missing flow value"),
        ({"timestamp": "2017-07-01 00:00:00", "flow": "nan"}, "non-finite flow value"),
        ({"timestamp": "2017-07-01 00:00:00", "flow": "inf"}, "non-finite flow value"),
        ({"timestamp": "01.07.2017 00:00", "flow": "1"}, "invalid timestamp"),
        ({"timestamp": "2017-07-01T00:00:00Z", "flow": "1"}, "invalid timestamp"),
        ({"timestamp": " ", "flow": "1"}, "missing timestamp"),
    ],
)
def test_parse_row_skips_bad_rows(
    transformer: CsvRecordTransformer, row: dict, reason: str
) -> None:
    outcome = transformer.parse_row(MetricKind.flow, "hive-1", "Wurzburg", row, row_number=7)

    assert outcome == SkippedRow(row_number=7, reason=reason)


def test_parse_row_logs_skip_warning(transformer: CsvRecordTransformer, caplog) -> None:
    with caplog.at_level(logging.WARNING):
        transformer.parse_row(
            MetricKind.temperature,
            "hive-1",
            "Wurzburg",
            {"timestamp": "2017-07-01 00:00:00", "temperature": "warm"},
            row_number=3,
        )

    records = [record for record in caplog.records if record.name == "services.transformer"]
    assert records
    assert "Skipping row" in records[0].getMessage()
    assert getattr(records[0], "row_number", None) == 3
    assert getattr(records[0], "metric", None) == "temperature"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("4", 4), (" 12 ", 12), ("3.0", 3), ("", None), ("2.5", None), ("x", None)],
)
def test_temperature_captures_sensor_id(
    transformer: CsvRecordTransformer, raw: str, expected
) -> None:
    outcome = transformer.parse_row(
        MetricKind.temperature,
        "hive-1",
        "Wurzburg",
        {"timestamp": "2017-07-01 00:00:00", "temperature": "34.1", "sensorId": raw},
    )

    assert isinstance(outcome, ParsedRow)
    assert outcome.record.sensor_id == expected


def test_sensor_id_ignored_for_other_metrics(transformer: CsvRecordTransformer) -> None:
    outcome = transformer.parse_row(
        MetricKind.humidity,
        "hive-1",
        "Wurzburg",
        {"timestamp": "2017-07-01 00:00:00", "humidity": "50", "sensorId": "4"},
    )

    assert isinstance(outcome, ParsedRow)
    assert outcome.record.sensor_id is None


def test_iter_rows_numbers_rows_after_header() -> None:
    handle = io.StringIO(
        "timestamp,weight\n"
        "2017-07-01 00:00:00,1\n"
        "2017-07-01 00:01:00,2\n"
    )

    rows = list(iter_rows(handle, MetricKind.weight))

    assert [number for number, _ in rows] == [2, 3]
    assert rows[1][1] == {"timestamp": "2017-07-01 00:01:00", "weight": "2"}


def test_iter_rows_is_lazy() -> None:
    lines = iter(["timestamp,flow\n", "2017-07-01 00:00:00,1\n", "2017-07-01 00:01:00,2\n"])

    rows = iter_rows(lines, MetricKind.flow)  # type: ignore[arg-type]
    first = next(rows)

    assert first[0] == 2
    assert list(lines) == ["2017-07-01 00:01:00,2\n"]


def test_iter_rows_rejects_missing_metric_column() -> None:
    handle = io.StringIO("timestamp,value\n2017-07-01 00:00:00,1\n")

    with pytest.raises(ValueError, match="missing required columns: flow"):
        list(iter_rows(handle, MetricKind.flow))


def test_iter_rows_rejects_empty_file() -> None:
    with pytest.raises(ValueError, match="missing a header row"):
        list(iter_rows(io.StringIO(""), MetricKind.flow))
