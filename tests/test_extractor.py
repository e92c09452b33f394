from __future__ import annotations

import zipfile
from pathlib import Path

import pytest

from services.errors import ExtractionError
from services.extractor import ArchiveExtractor


def _build_archive(path: Path, entries: dict[str, str]) -> Path:
    with zipfile.ZipFile(path, "w") as archive:
        for name, content in entries.items():
            archive.writestr(name, content)
    return path


def test_extract_writes_every_entry(tmp_path: Path) -> None:
    archive = _build_archive(
        tmp_path / "dataset.zip",
        {
            "flow_wurzburg.csv": "timestamp,flow\n",
            "nested/weight_schwartau.csv": "timestamp,weight\n",
        },
    )
    destination = tmp_path / "out"

    written = ArchiveExtractor().extract(archive, destination)

    assert sorted(path.name for path in written) == ["flow_wurzburg.csv", "weight_schwartau.csv"]
    assert all(path.exists() for path in written)
    assert (destination / "nested" / "weight_schwartau.csv").read_text() == "timestamp,weight\n"


def test_corrupt_archive_raises_and_is_kept(tmp_path: Path) -> None:
    archive = tmp_path / "dataset.zip"
    archive.write_bytes(b"this is not a zip file")

    with pytest.raises(ExtractionError):
        ArchiveExtractor().extract(archive, tmp_path / "out")

    assert archive.exists()


def test_missing_archive_raises(tmp_path: Path) -> None:
    with pytest.raises(ExtractionError):
        ArchiveExtractor().extract(tmp_path / "missing.zip", tmp_path / "out")


def test_entries_escaping_destination_are_rejected(tmp_path: Path) -> None:
    archive = _build_archive(tmp_path / "evil.zip", {"../escape.csv": "x"})

    with pytest.raises(ExtractionError, match="escapes"):
        ArchiveExtractor().extract(archive, tmp_path / "out")

    assert not (tmp_path / "escape.csv").exists()
