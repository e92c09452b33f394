from __future__ import annotations
from contextlib import contextmanager
from functools import lru_cache
from pathlib import Path
from typing import Iterator, Optional, TextIO

from models.records import MetricKind
from settings import get_settings


def dataset_slug(dataset: str) -> str:
    """Filesystem-safe name of a dataset identifier such as ``owner/name``."""
    return dataset.strip().strip("/").replace("/", "_")


class StagingArea:
    """Local directory layout for downloaded archives and extracted files."""

    def __init__(self, root_path: Path) -> None:
        self.root_path = root_path

    def dataset_dir(self, dataset: str) -> Path:
        return self.root_path / dataset_slug(dataset)

    @staticmethod
    def metric_file(directory: Path, kind: MetricKind, site_name: str) -> Path:
        return directory / kind.file_name(site_name)

    @staticmethod
    @contextmanager
    def open_text(
        path: Path, encoding: str = "utf-8-sig", newline: Optional[str] = ""
    ) -> Iterator[TextIO]:
        """Yield a streaming text handle for a staged file."""

        if not path.is_file():
            raise FileNotFoundError(f"Staged file {str(path)!r} not found.")

        with path.open("r", encoding=encoding, newline=newline) as handle:
            yield handle


@lru_cache
def build_default_staging(root_path: Optional[str] = None) -> StagingArea:
    settings = get_settings()
    root = settings.data_root if root_path is None else root_path
    return StagingArea(root_path=Path(root))
