from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer

from cli.render import render_report
from logging_config import configure_logging
from models.schemas import IngestionReport
from services.errors import DownloadError, ExtractionError
from services.pipeline import PipelineOrchestrator, build_default_pipeline
from settings import Settings, get_settings


@dataclass
class CLIState:
    settings: Settings
    as_json: bool = False


app = typer.Typer(
    help="Download hive metric datasets and ingest them into the document store.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


def _build_pipeline(settings: Settings) -> PipelineOrchestrator:
    return build_default_pipeline(settings)


@app.callback()
def main(
    ctx: typer.Context,
    batch_size: Optional[int] = typer.Option(
        None,
        "--batch-size",
        min=1,
        help="Records per bulk insert (defaults to INGEST_BATCH_SIZE env or 1000).",
    ),
    workers: Optional[int] = typer.Option(
        None,
        "--workers",
        min=1,
        help="Files ingested concurrently (defaults to INGEST_WORKER_COUNT env or 4).",
    ),
    data_root: Optional[Path] = typer.Option(
        None,
        "--data-root",
        help="Directory for downloaded and extracted datasets.",
    ),
    store_path: Optional[Path] = typer.Option(
        None,
        "--store-path",
        help="Directory persisting the document store collections.",
    ),
    as_json: bool = typer.Option(
        False,
        "--json",
        help="Print the ingestion report as JSON.",
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Logging level (defaults to LOG_LEVEL env or INFO).",
    ),
) -> None:
    """Entry point for the CLI."""
    overrides = {}
    if batch_size is not None:
        overrides["batch_size"] = batch_size
    if workers is not None:
        overrides["workers"] = workers
    if data_root is not None:
        overrides["data_root"] = str(data_root)
    if store_path is not None:
        overrides["store_path"] = str(store_path)
    settings = dataclasses.replace(get_settings(), **overrides)
    configure_logging(log_level.upper() if log_level else settings.log_level)
    ctx.obj = CLIState(settings=settings, as_json=as_json)


def _emit(state: CLIState, report: IngestionReport) -> None:
    if state.as_json:
        typer.echo(report.model_dump_json(indent=2))
    else:
        render_report(report)


@app.command("run")
def run_command(
    ctx: typer.Context,
    dataset: Optional[str] = typer.Option(
        None,
        "--dataset",
        "-d",
        help="Dataset identifier (defaults to HIVE_DATASET env).",
    ),
    credentials: Optional[Path] = typer.Option(
        None,
        "--credentials",
        "-c",
        help="JSON credential file holding the bearer token under 'key'.",
    ),
) -> None:
    """Download, extract and ingest a dataset."""
    state = _get_state(ctx)
    pipeline = _build_pipeline(state.settings)
    target = dataset or state.settings.dataset
    typer.echo(f"Ingesting dataset {target} ...", err=True)
    try:
        report = pipeline.run(dataset=target, credentials_path=credentials)
    except (DownloadError, ExtractionError) as exc:
        typer.secho(f"Ingestion aborted: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc
    _emit(state, report)


@app.command("ingest-archive")
def ingest_archive_command(
    ctx: typer.Context,
    archive: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Path to a zip archive."),
    destination: Optional[Path] = typer.Option(
        None,
        "--destination",
        help="Directory to extract into (defaults to the archive's directory).",
    ),
) -> None:
    """Extract a local archive and ingest its files."""
    state = _get_state(ctx)
    pipeline = _build_pipeline(state.settings)
    try:
        report = pipeline.ingest_archive(archive, destination)
    except ExtractionError as exc:
        typer.secho(f"Ingestion aborted: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc
    _emit(state, report)


@app.command("ingest-dir")
def ingest_dir_command(
    ctx: typer.Context,
    directory: Path = typer.Argument(..., exists=True, file_okay=False, help="Directory of extracted CSV files."),
) -> None:
    """Ingest already extracted metric files."""
    state = _get_state(ctx)
    pipeline = _build_pipeline(state.settings)
    report = pipeline.ingest_directory(directory)
    _emit(state, report)
