"""Command-line entry point for the screenshot triage pipeline."""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table
from typing_extensions import Annotated

from src.config_utils import CONFIG_PATH, Settings, load_settings
from src.content_extractor import TesseractTextExtractor
from src.errors import ScreenshotTriageError
from src.filters import apply_record_filters
from src.logging_utils import configure_logging
from src.pipeline import ScreenshotPipeline
from src.schema import CategoryKey, ScreenshotRecord
from src.screenshot_store import ScreenshotStore
from src.triage_classifier import TriageClassifier

app = typer.Typer(help="Triage screenshots from a watched folder.")
console = Console()
error_console = Console(stderr=True)
logger = logging.getLogger(__name__)

ConfigOption = Annotated[
    Path,
    typer.Option("--config", "-c", help="Path to the YAML configuration file."),
]
StoreOption = Annotated[
    Optional[Path],
    typer.Option("--store", help="Override the store file location."),
]
JsonOption = Annotated[bool, typer.Option("--json", help="Print records as JSON.")]
DebugOption = Annotated[bool, typer.Option(help="Enable debug logging.")]


def _load_settings(
    config: Path, store: Path | None = None, **overrides: object
) -> Settings:
    try:
        return load_settings(config, overrides={"store_path": store, **overrides})
    except ScreenshotTriageError as exc:
        error_console.print(f"[bold red]{exc}[/bold red]")
        raise typer.Exit(code=1)


def _build_classifier(settings: Settings) -> TriageClassifier:
    return TriageClassifier(TesseractTextExtractor(languages=settings.ocr_languages))


def _print_records(records: list[ScreenshotRecord], as_json: bool) -> None:
    if as_json:
        typer.echo(
            json.dumps([record.model_dump(mode="json") for record in records], indent=2)
        )
        return

    table = Table(title=f"{len(records)} screenshot(s)")
    table.add_column("ID", no_wrap=True)
    table.add_column("Created")
    table.add_column("Category")
    table.add_column("Confidence", justify="right")
    table.add_column("Sensitive")
    table.add_column("File")
    for record in records:
        triage = record.triage
        table.add_row(
            str(record.id),
            record.created_at.strftime("%Y-%m-%d %H:%M"),
            triage.category_key.value if triage else "-",
            f"{triage.confidence:.2f}" if triage else "-",
            ", ".join(flag.value for flag in triage.sensitivity_flags) if triage else "",
            Path(record.file_location).name,
        )
    console.print(table)


@app.command()
def watch(
    folder: Annotated[
        Optional[Path],
        typer.Option("--folder", "-f", help="Folder to watch (overrides config)."),
    ] = None,
    config: ConfigOption = CONFIG_PATH,
    store: StoreOption = None,
    debug: DebugOption = False,
) -> None:
    """Watch a folder and triage every new screenshot until interrupted."""
    settings = _load_settings(config, store, watched_folder=folder)
    log_path = configure_logging(
        logging.DEBUG if debug else logging.INFO,
        data_dir=settings.store_path.parent,
    )
    pipeline = ScreenshotPipeline(
        settings, ScreenshotStore(settings.store_path), _build_classifier(settings)
    )

    try:
        pipeline.start()
    except ScreenshotTriageError as exc:
        error_console.print(f"[bold red]{exc}[/bold red]")
        raise typer.Exit(code=1)

    console.print(f"Watching {settings.watched_folder} (Ctrl+C to stop)")
    if log_path:
        console.print(f"Logging to {log_path}")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Interrupted; shutting down")
    finally:
        pipeline.stop()


@app.command()
def ingest(
    files: Annotated[list[Path], typer.Argument(help="Screenshot files to ingest.")],
    config: ConfigOption = CONFIG_PATH,
    store: StoreOption = None,
    as_json: JsonOption = False,
    debug: DebugOption = False,
) -> None:
    """Ingest files once, without watching."""
    settings = _load_settings(config, store)
    configure_logging(
        logging.DEBUG if debug else logging.WARNING,
        data_dir=settings.store_path.parent,
    )
    pipeline = ScreenshotPipeline(
        settings, ScreenshotStore(settings.store_path), _build_classifier(settings)
    )

    records = [record for record in map(pipeline.ingest_file, files) if record]
    _print_records(records, as_json)
    if len(records) != len(files):
        error_console.print(
            f"[yellow]{len(files) - len(records)} file(s) could not be ingested; "
            f"see {settings.unprocessed_log_path}[/yellow]"
        )
        raise typer.Exit(code=1)


@app.command()
def classify(
    image: Annotated[Path, typer.Argument(help="Image to classify.")],
    text: Annotated[
        str, typer.Option(help="Use this text instead of running OCR.")
    ] = "",
    config: ConfigOption = CONFIG_PATH,
) -> None:
    """Classify a single image without storing it."""
    settings = _load_settings(config)
    try:
        result = _build_classifier(settings).classify(text, image)
    except ScreenshotTriageError as exc:
        error_console.print(f"[bold red]{exc}[/bold red]")
        raise typer.Exit(code=1)
    typer.echo(result.model_dump_json(indent=2))


@app.command(name="list")
def list_records(
    category: Annotated[
        Optional[list[CategoryKey]],
        typer.Option("--category", help="Only show these categories."),
    ] = None,
    sensitive_only: Annotated[
        bool, typer.Option("--sensitive-only", help="Only sensitive records.")
    ] = False,
    hide_sensitive: Annotated[
        bool, typer.Option("--hide-sensitive", help="Hide sensitive records.")
    ] = False,
    needs_triage: Annotated[
        bool, typer.Option("--needs-triage", help="Only records without triage.")
    ] = False,
    config: ConfigOption = CONFIG_PATH,
    store: StoreOption = None,
    as_json: JsonOption = False,
) -> None:
    """List stored screenshots, newest first."""
    settings = _load_settings(config, store)
    records = apply_record_filters(
        ScreenshotStore(settings.store_path).fetch_all(),
        {
            "category": category or [],
            "sensitive_only": sensitive_only,
            "hide_sensitive": hide_sensitive,
            "needs_triage": needs_triage,
        },
    )
    _print_records(records, as_json)


@app.command()
def search(
    query: Annotated[str, typer.Argument(help="Text to look for in OCR output.")],
    config: ConfigOption = CONFIG_PATH,
    store: StoreOption = None,
    as_json: JsonOption = False,
) -> None:
    """Search stored screenshots by extracted text."""
    settings = _load_settings(config, store)
    _print_records(ScreenshotStore(settings.store_path).search(query), as_json)


@app.command()
def show(
    record_id: Annotated[str, typer.Argument(help="Record id.")],
    config: ConfigOption = CONFIG_PATH,
    store: StoreOption = None,
) -> None:
    """Print one stored record as JSON."""
    settings = _load_settings(config, store)
    record = ScreenshotStore(settings.store_path).fetch(record_id)
    if record is None:
        error_console.print(f"[bold red]No record {record_id}[/bold red]")
        raise typer.Exit(code=1)
    typer.echo(record.model_dump_json(indent=2))


@app.command()
def reanalyze(
    record_id: Annotated[str, typer.Argument(help="Record id.")],
    config: ConfigOption = CONFIG_PATH,
    store: StoreOption = None,
) -> None:
    """Re-run OCR and classification for a stored record."""
    settings = _load_settings(config, store)
    pipeline = ScreenshotPipeline(
        settings, ScreenshotStore(settings.store_path), _build_classifier(settings)
    )
    try:
        record = pipeline.reanalyze(record_id)
    except ScreenshotTriageError as exc:
        error_console.print(f"[bold red]{exc}[/bold red]")
        raise typer.Exit(code=1)
    if record is None:
        error_console.print(f"[bold red]No record {record_id}[/bold red]")
        raise typer.Exit(code=1)
    typer.echo(record.model_dump_json(indent=2))


@app.command()
def delete(
    record_id: Annotated[str, typer.Argument(help="Record id.")],
    config: ConfigOption = CONFIG_PATH,
    store: StoreOption = None,
) -> None:
    """Delete a stored record; unknown ids are ignored."""
    settings = _load_settings(config, store)
    screenshot_store = ScreenshotStore(settings.store_path)
    existed = screenshot_store.fetch(record_id) is not None
    screenshot_store.delete(record_id)
    console.print(f"Deleted {record_id}" if existed else f"No record {record_id}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
