from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest

from services.errors import DownloadError
from services.fetcher import DatasetFetcher, load_token

BASE_URL = "https://example.test/api/v1/datasets/download"


def _write_credentials(tmp_path: Path, payload: object) -> Path:
    path = tmp_path / "kaggle.json"
    path.write_text(json.dumps(payload))
    return path


def _fetcher(handler) -> DatasetFetcher:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return DatasetFetcher(BASE_URL, client=client)


def test_download_streams_archive_with_bearer_token(tmp_path: Path) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, content=b"PK\x03\x04archive-bytes")

    credentials = _write_credentials(tmp_path, {"username": "bee", "key": "secret"})
    destination = tmp_path / "data" / "owner_dataset"

    with _fetcher(handler) as fetcher:
        archive = fetcher.download("owner/dataset", credentials, destination)

    assert archive == destination / "owner_dataset.zip"
    assert archive.read_bytes() == b"PK\x03\x04archive-bytes"
    assert seen[0].url == httpx.URL(f"{BASE_URL}/owner/dataset")
    assert seen[0].headers["Authorization"] == "Bearer secret"


def test_non_success_response_raises_download_error(tmp_path: Path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, content=b"nope")

    credentials = _write_credentials(tmp_path, {"key": "secret"})
    destination = tmp_path / "data"

    with pytest.raises(DownloadError) as excinfo:
        _fetcher(handler).download("owner/dataset", credentials, destination)

    assert excinfo.value.status_code == 401
    assert "401" in str(excinfo.value)
    assert not destination.exists()


def test_transport_error_raises_download_error(tmp_path: Path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    credentials = _write_credentials(tmp_path, {"key": "secret"})

    with pytest.raises(DownloadError, match="unreachable"):
        _fetcher(handler).download("owner/dataset", credentials, tmp_path / "data")


@pytest.mark.parametrize(
    "payload",
    [["key"], {"username": "bee"}, {"key": ""}, {"key": 42}],
)
def test_unusable_credentials_are_rejected(tmp_path: Path, payload: object) -> None:
    credentials = _write_credentials(tmp_path, payload)

    with pytest.raises(DownloadError):
        load_token(credentials)


def test_missing_or_malformed_credential_file(tmp_path: Path) -> None:
    with pytest.raises(DownloadError, match="Cannot read"):
        load_token(tmp_path / "missing.json")

    broken = tmp_path / "broken.json"
    broken.write_text("{key: secret")
    with pytest.raises(DownloadError, match="not valid JSON"):
        load_token(broken)


def test_credentials_checked_before_request(tmp_path: Path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - must not run
        raise AssertionError("No request expected without credentials")

    with pytest.raises(DownloadError):
        _fetcher(handler).download("owner/dataset", tmp_path / "missing.json", tmp_path)
