from __future__ import annotations

from typing import Any, Iterable

import typer

from models.schemas import FileStatus, IngestionReport

_STATUS_COLORS = {
    FileStatus.processed: typer.colors.GREEN,
    FileStatus.partial: typer.colors.YELLOW,
    FileStatus.failed: typer.colors.RED,
    FileStatus.empty: None,
}


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_report(report: IngestionReport) -> None:
    echo_heading("Ingestion Report")
    echo_key_values(
        [
            ("dataset", report.dataset),
            ("started_at", report.started_at.isoformat()),
            ("finished_at", report.finished_at.isoformat() if report.finished_at else None),
            ("processing_ms", report.processing_ms),
            ("records_flushed", report.records_flushed),
            ("records_failed", report.records_failed),
            ("rows_skipped", report.rows_skipped),
            ("files_failed", report.files_failed),
        ]
    )

    typer.echo()
    echo_heading("Files")
    if not report.files:
        typer.echo("No files processed.")
        return

    for item in report.files:
        typer.secho(
            f"  - {item.file_name} [{item.status.value}] "
            f"read={item.rows_read} skipped={item.rows_skipped} "
            f"flushed={item.records_flushed} failed={item.records_failed}",
            fg=_STATUS_COLORS.get(item.status),
        )
        if item.detail:
            typer.echo(f"      {item.detail}")
        for issue in item.errors:
            typer.echo(f"      row {issue.row_number}: {issue.reason}")
