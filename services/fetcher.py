"""Authenticated download of dataset archives."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import httpx

from services.errors import DownloadError
from storage.staging import dataset_slug

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


def load_token(credentials_path: Path) -> str:
    """Read the bearer token from a JSON credential file with a ``key`` field."""
    try:
        raw = credentials_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise DownloadError(f"Cannot read credential file {credentials_path}: {exc}") from exc

    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise DownloadError(f"Credential file {credentials_path} is not valid JSON.") from exc

    if not isinstance(payload, dict):
        raise DownloadError(f"Credential file {credentials_path} must contain a JSON object.")

    key = payload.get("key")
    if not isinstance(key, str) or not key.strip():
        raise DownloadError(f"Credential file {credentials_path} has no usable 'key' field.")
    return key.strip()


class DatasetFetcher:
    """Streams a dataset archive from the remote source to local storage."""

    def __init__(
        self,
        base_url: str,
        client: Optional[httpx.Client] = None,
        timeout: float = 60.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=True)
        self._owns_client = client is None

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "DatasetFetcher":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def download(self, dataset: str, credentials_path: Path, destination_dir: Path) -> Path:
        """Download ``dataset`` into ``destination_dir`` and return the archive path."""
        token = load_token(credentials_path)
        url = f"{self.base_url}/{dataset.strip('/')}"
        target = destination_dir / f"{dataset_slug(dataset)}.zip"

        logger.info("Downloading dataset", extra={"dataset": dataset})
        try:
            with self._client.stream(
                "GET", url, headers={"Authorization": f"Bearer {token}"}
            ) as response:
                if not response.is_success:
                    raise DownloadError(
                        f"Failed to download dataset {dataset!r}: "
                        f"{response.status_code} {response.reason_phrase}",
                        status_code=response.status_code,
                    )
                destination_dir.mkdir(parents=True, exist_ok=True)
                with target.open("wb") as handle:
                    for chunk in response.iter_bytes(chunk_size=_CHUNK_SIZE):
                        handle.write(chunk)
        except httpx.HTTPError as exc:
            raise DownloadError(f"Failed to download dataset {dataset!r}: {exc}") from exc
        except OSError as exc:
            raise DownloadError(f"Cannot write archive to {target}: {exc}") from exc

        logger.info(
            "Dataset downloaded to %s",
            target,
            extra={"dataset": dataset, "file_name": target.name},
        )
        return target
