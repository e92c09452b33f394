"""Unpacking of downloaded dataset archives."""

from __future__ import annotations

import logging
import shutil
import zipfile
from pathlib import Path

from services.errors import ExtractionError

logger = logging.getLogger(__name__)


class ArchiveExtractor:
    """Extracts every entry of a zip archive into a destination directory."""

    def extract(self, archive_path: Path, destination: Path) -> list[Path]:
        """Write all entries to ``destination``.

        Returns only after every entry has been written, so callers may read
        the returned files immediately. The archive is never removed.
        """
        try:
            destination.mkdir(parents=True, exist_ok=True)
            root = destination.resolve()
            written: list[Path] = []
            with zipfile.ZipFile(archive_path) as archive:
                for member in archive.infolist():
                    target = (root / member.filename).resolve()
                    if target != root and root not in target.parents:
                        raise ExtractionError(
                            f"Archive entry {member.filename!r} escapes {destination}."
                        )
                    if member.is_dir():
                        target.mkdir(parents=True, exist_ok=True)
                        continue
                    target.parent.mkdir(parents=True, exist_ok=True)
                    with archive.open(member) as source, target.open("wb") as sink:
                        shutil.copyfileobj(source, sink)
                    written.append(target)
        except ExtractionError:
            logger.error("Refusing unsafe archive %s", archive_path)
            raise
        except (OSError, zipfile.BadZipFile, zipfile.LargeZipFile) as exc:
            raise ExtractionError(f"Failed to extract {archive_path}: {exc}") from exc

        logger.info(
            "Extracted %d files to %s",
            len(written),
            destination,
            extra={"file_name": archive_path.name},
        )
        return written
