from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, Optional, Tuple


_DATASET_ENV = "HIVE_DATASET"
_DOWNLOAD_URL_ENV = "HIVE_DOWNLOAD_URL"
_CREDENTIALS_PATH_ENV = "HIVE_CREDENTIALS_PATH"
_DATA_ROOT_ENV = "HIVE_DATA_ROOT"
_STORE_PATH_ENV = "HIVE_STORE_PATH"
_SITES_ENV = "HIVE_SITES"
_WEIGHT_DIVISORS_ENV = "HIVE_WEIGHT_DIVISORS"
_BATCH_SIZE_ENV = "INGEST_BATCH_SIZE"
_WORKER_COUNT_ENV = "INGEST_WORKER_COUNT"
_HTTP_TIMEOUT_ENV = "HTTP_TIMEOUT"
_MAX_ISSUES_ENV = "INGEST_MAX_REPORTED_ISSUES"
_LOG_LEVEL_ENV = "LOG_LEVEL"

DEFAULT_DATASET = "se18m502/bee-hive-metrics"
DEFAULT_DOWNLOAD_URL = "https://www.kaggle.com/api/v1/datasets/download"


@dataclass(frozen=True)
class Site:
    """A monitored hive location whose metric files are ingested."""

    name: str
    location: str


DEFAULT_SITES: Tuple[Site, ...] = (
    Site(name="Wurzburg", location="Wurzburg"),
    Site(name="Schwartau", location="Schwartau"),
)


@dataclass(frozen=True)
class Settings:
    dataset: str = DEFAULT_DATASET
    download_url: str = DEFAULT_DOWNLOAD_URL
    credentials_path: str = "./.kaggle.json"
    data_root: str = "./data"
    store_path: Optional[str] = None
    sites: Tuple[Site, ...] = DEFAULT_SITES
    weight_divisors: Dict[str, float] = field(default_factory=lambda: {"Schwartau": 1000.0})
    batch_size: int = 1000
    workers: int = 4
    http_timeout: float = 60.0
    max_reported_issues: int = 50
    log_level: str = "INFO"


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


def parse_sites(raw: str) -> Tuple[Site, ...]:
    """Parse ``name[:location]`` entries separated by commas.

    A missing location defaults to the site name. Duplicate names keep the
    last location given, mirroring how the hive registry treats them.
    """
    sites: Dict[str, Site] = {}
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        name, _, location = entry.partition(":")
        name = name.strip()
        if not name:
            continue
        sites[name] = Site(name=name, location=location.strip() or name)
    return tuple(sites.values())


def parse_weight_divisors(raw: str) -> Dict[str, float]:
    divisors: Dict[str, float] = {}
    for entry in raw.split(","):
        name, sep, divisor = entry.strip().partition(":")
        if not sep or not name.strip():
            continue
        try:
            parsed = float(divisor)
        except ValueError:
            continue
        if parsed > 0:
            divisors[name.strip()] = parsed
    return divisors


def _read_sites(default: Tuple[Site, ...]) -> Tuple[Site, ...]:
    value = os.getenv(_SITES_ENV)
    if value is None or not value.strip():
        return default
    return parse_sites(value) or default


def _read_weight_divisors(default: Dict[str, float]) -> Dict[str, float]:
    value = os.getenv(_WEIGHT_DIVISORS_ENV)
    if value is None:
        return default
    # An explicitly blank value disables unit normalization.
    return parse_weight_divisors(value)


@lru_cache
def get_settings() -> Settings:
    return Settings(
        dataset=_read_str_env(_DATASET_ENV, DEFAULT_DATASET),
        download_url=_read_str_env(_DOWNLOAD_URL_ENV, DEFAULT_DOWNLOAD_URL).rstrip("/"),
        credentials_path=_read_str_env(_CREDENTIALS_PATH_ENV, "./.kaggle.json"),
        data_root=_read_str_env(_DATA_ROOT_ENV, "./data"),
        store_path=_read_optional_env(_STORE_PATH_ENV, "./tmp/document_store"),
        sites=_read_sites(DEFAULT_SITES),
        weight_divisors=_read_weight_divisors({"Schwartau": 1000.0}),
        batch_size=_read_positive_int(_BATCH_SIZE_ENV, 1000),
        workers=_read_positive_int(_WORKER_COUNT_ENV, 4),
        http_timeout=_read_positive_float(_HTTP_TIMEOUT_ENV, 60.0),
        max_reported_issues=_read_positive_int(_MAX_ISSUES_ENV, 50),
        log_level=_read_log_level("INFO"),
    )
