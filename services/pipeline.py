"""Orchestration of download, extraction and per-file ingestion."""

from __future__ import annotations

import csv
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from datastore.document_store import DocumentStore, build_default_store
from models.records import MetricKind, ParsedRow
from models.schemas import FileReport, FileStatus, IngestionReport, RowIssue
from services.batch_writer import BatchWriter
from services.errors import DownloadError, ExtractionError, HiveResolutionError
from services.extractor import ArchiveExtractor
from services.fetcher import DatasetFetcher
from services.hive_registry import HiveRegistry
from services.transformer import CsvRecordTransformer, iter_rows
from settings import Settings, Site, get_settings
from storage.staging import StagingArea, build_default_staging

logger = logging.getLogger(__name__)


class PipelineOrchestrator:
    """Sequences fetch, extract and the per (site, metric) file fan-out."""

    def __init__(
        self,
        settings: Settings,
        store: DocumentStore,
        staging: StagingArea,
        fetcher: Optional[DatasetFetcher] = None,
        extractor: Optional[ArchiveExtractor] = None,
        transformer: Optional[CsvRecordTransformer] = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.staging = staging
        self.fetcher = fetcher
        self.extractor = extractor or ArchiveExtractor()
        self.transformer = transformer or CsvRecordTransformer(settings.weight_divisors)

    def run(
        self,
        dataset: Optional[str] = None,
        credentials_path: Optional[Path] = None,
    ) -> IngestionReport:
        """Download, extract and ingest ``dataset``."""
        dataset = dataset or self.settings.dataset
        credentials = credentials_path or Path(self.settings.credentials_path)
        fetcher = self.fetcher or DatasetFetcher(
            self.settings.download_url, timeout=self.settings.http_timeout
        )
        destination = self.staging.dataset_dir(dataset)

        try:
            archive_path = fetcher.download(dataset, credentials, destination)
        except DownloadError as exc:
            logger.error("Download failed: %s", exc, extra={"dataset": dataset})
            raise
        finally:
            if self.fetcher is None:
                fetcher.close()

        return self.ingest_archive(archive_path, destination, dataset=dataset)

    def ingest_archive(
        self,
        archive_path: Path,
        destination: Optional[Path] = None,
        dataset: Optional[str] = None,
    ) -> IngestionReport:
        """Extract a local archive and ingest its files."""
        destination = destination or archive_path.parent
        dataset = dataset or archive_path.stem
        try:
            self.extractor.extract(archive_path, destination)
        except ExtractionError as exc:
            logger.error("Extraction failed: %s", exc, extra={"dataset": dataset})
            raise
        return self.ingest_directory(destination, dataset=dataset)

    def ingest_directory(self, directory: Path, dataset: Optional[str] = None) -> IngestionReport:
        """Ingest every configured (site, metric) file found in ``directory``."""
        dataset = dataset or directory.name
        started_at = datetime.now(timezone.utc)
        start_time = time.perf_counter()
        registry = HiveRegistry(self.store)

        jobs = [
            (site, kind, self.staging.metric_file(directory, kind, site.name))
            for site in self.settings.sites
            for kind in MetricKind
        ]
        logger.info(
            "Ingesting %d files",
            len(jobs),
            extra={"dataset": dataset},
        )

        with ThreadPoolExecutor(max_workers=self.settings.workers) as executor:
            futures = [
                executor.submit(self.ingest_file, site, kind, path, registry)
                for site, kind, path in jobs
            ]
            files = [future.result() for future in futures]

        processing_ms = int((time.perf_counter() - start_time) * 1000)
        report = IngestionReport(
            dataset=dataset,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
            processing_ms=processing_ms,
            files=files,
        )
        logger.info(
            "Ingestion finished",
            extra={
                "dataset": dataset,
                "records_flushed": report.records_flushed,
                "records_failed": report.records_failed,
                "rows_skipped": report.rows_skipped,
                "processing_ms": processing_ms,
            },
        )
        return report

    def ingest_file(
        self,
        site: Site,
        kind: MetricKind,
        path: Path,
        registry: HiveRegistry,
    ) -> FileReport:
        """Stream one metric file into the store. Never raises for file-level failures."""
        report = FileReport(site=site.name, metric=kind, file_name=path.name)
        context = {"hive": site.name, "metric": kind.value, "file_name": path.name}

        try:
            hive_id = registry.get_or_create(site.name, site.location)
        except HiveResolutionError as exc:
            return self._fail(report, str(exc), context)

        writer = BatchWriter(
            self.store,
            kind.collection,
            threshold=self.settings.batch_size,
            log_context=context,
        )
        try:
            with self.staging.open_text(path) as handle:
                for row_number, row in iter_rows(handle, kind):
                    report.rows_read += 1
                    outcome = self.transformer.parse_row(
                        kind, hive_id, site.name, row, row_number=row_number
                    )
                    if isinstance(outcome, ParsedRow):
                        writer.append(outcome.record)
                        continue
                    report.rows_skipped += 1
                    if len(report.errors) < self.settings.max_reported_issues:
                        report.errors.append(
                            RowIssue(row_number=outcome.row_number, reason=outcome.reason)
                        )
        except (OSError, ValueError, csv.Error) as exc:
            # Records accepted before the read failure are still written.
            writer.flush_remaining()
            self._apply_writer_stats(report, writer)
            return self._fail(report, str(exc), context)

        writer.flush_remaining()
        self._apply_writer_stats(report, writer)
        report.status = self._file_status(report)
        logger.info(
            "File ingested",
            extra={
                **context,
                "status": report.status.value,
                "rows_read": report.rows_read,
                "rows_skipped": report.rows_skipped,
                "records_flushed": report.records_flushed,
                "records_failed": report.records_failed,
            },
        )
        return report

    @staticmethod
    def _apply_writer_stats(report: FileReport, writer: BatchWriter) -> None:
        report.records_flushed = writer.stats.flushed
        report.records_failed = writer.stats.failed
        report.batches_flushed = writer.stats.batches_flushed
        report.batches_failed = writer.stats.batches_failed

    @staticmethod
    def _file_status(report: FileReport) -> FileStatus:
        if report.rows_read == 0:
            return FileStatus.empty
        if report.records_flushed == 0:
            return FileStatus.failed
        if report.rows_skipped or report.records_failed:
            return FileStatus.partial
        return FileStatus.processed

    @staticmethod
    def _fail(report: FileReport, detail: str, context: dict) -> FileReport:
        report.status = FileStatus.failed
        report.detail = detail
        logger.error("File ingestion aborted: %s", detail, extra={**context, "status": "failed"})
        return report


def build_default_pipeline(settings: Optional[Settings] = None) -> PipelineOrchestrator:
    """Factory that wires the orchestrator with the configured store and staging area."""
    settings = settings or get_settings()
    store = build_default_store(path=settings.store_path or "")
    staging = build_default_staging(settings.data_root)
    return PipelineOrchestrator(settings=settings, store=store, staging=staging)
