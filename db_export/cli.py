from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from typing_extensions import Annotated

from db_export.common.config import ExportRequest
from db_export.common.logging_utils import quiet_third_party_loggers
from db_export.common.settings import ExportSettings

console = Console()

app = typer.Typer(no_args_is_help=True, pretty_exceptions_show_locals=False)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )
    quiet_third_party_loggers()


def _parse_properties(values: Optional[List[str]]) -> dict:
    properties = {}
    for item in values or []:
        key, sep, value = item.partition("=")
        if not sep:
            raise typer.BadParameter(f"Expected KEY=VALUE, got '{item}'", param_hint="--property")
        properties[key] = value
    return properties


def _load_request(request_file: Path, overrides: dict) -> ExportRequest:
    with request_file.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise typer.BadParameter("Request file must contain a mapping", param_hint="--request-file")
    data.update({k: v for k, v in overrides.items() if v is not None})
    return ExportRequest.from_dict(data)


@app.command()
def run(
    export_dir: Annotated[
        Optional[str], typer.Option("--export-dir", help="Directory or file to export")
    ] = None,
    table: Annotated[Optional[str], typer.Option("--table", help="Target table name")] = None,
    connect: Annotated[
        Optional[str], typer.Option("--connect", help="JDBC URL or ODBC connection string")
    ] = None,
    class_name: Annotated[
        Optional[str], typer.Option("--class-name", help="Record class (module.Class)")
    ] = None,
    package_name: Annotated[
        Optional[str], typer.Option("--package-name", help="Package holding generated classes")
    ] = None,
    artifact: Annotated[
        Optional[str], typer.Option("--artifact", help="Packaging artifact with generated code")
    ] = None,
    num_mappers: Annotated[
        Optional[int], typer.Option("--num-mappers", "-m", min=1, help="Parallel map tasks")
    ] = None,
    input_format: Annotated[
        Optional[str], typer.Option("--input-format", help="export, sequencefile or text")
    ] = None,
    properties: Annotated[
        Optional[List[str]], typer.Option("--property", "-p", help="Sink connection KEY=VALUE")
    ] = None,
    request_file: Annotated[
        Optional[Path], typer.Option("--request-file", "-f", exists=True, help="YAML export request")
    ] = None,
    engine_type: Annotated[
        Optional[str], typer.Option("--engine", help="spark or local (default: DB_EXPORT_ENGINE)")
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v")] = False,
):
    """Export files from a filesystem directory into a database table."""
    _setup_logging(verbose)

    from db_export.engines import BaseEngine
    from db_export.export_orchestrator import ExportOrchestrator

    overrides = {
        "export_dir": export_dir,
        "table_name": table,
        "connect_url": connect,
        "record_class_name": class_name,
        "package_name": package_name,
        "packaging_artifact": artifact,
        "num_map_tasks": num_mappers,
        "input_format": input_format,
        "connection_properties": _parse_properties(properties) or None,
    }
    try:
        if request_file is not None:
            request = _load_request(request_file, overrides)
        else:
            request = ExportRequest.from_dict({k: v for k, v in overrides.items() if v is not None})
    except (TypeError, ValueError) as e:
        console.print(f"[red]Invalid export request:[/red] {escape(str(e))}")
        raise typer.Exit(code=2)

    try:
        settings = ExportSettings.from_env()
        engine = BaseEngine.create(engine_type or settings.engine_type, settings=settings)
    except ValueError as e:
        console.print(f"[red]Invalid engine configuration:[/red] {escape(str(e))}")
        raise typer.Exit(code=2)

    outcome = ExportOrchestrator(engine, settings=settings).run_export(request)

    if outcome.succeeded:
        metrics = outcome.metrics
        console.print(
            f"[green]Exported {metrics.records_processed:,} records to {request.table_name}[/green] "
            f"({metrics.throughput_summary()})"
        )
        return

    console.print(f"[red]Export failed ({outcome.failure_kind}):[/red] {escape(outcome.detail or '')}")
    raise typer.Exit(code=1)


@app.command()
def detect(
    paths: Annotated[List[str], typer.Argument(help="Files or directories to inspect")],
):
    """Report whether each path holds SequenceFiles or plain text."""
    from db_export.common.constants import DetectedFormat
    from db_export.common.exceptions import PathQualificationError
    from db_export.filesystem import FilesystemConnection
    from db_export.format_detector import detect as detect_format

    settings = ExportSettings.from_env()
    table = Table(title="Export source formats")
    table.add_column("Path")
    table.add_column("Format", no_wrap=True)
    for path in paths:
        try:
            filesystem = FilesystemConnection.for_path(path, base_url=settings.default_filesystem)
            detected = detect_format(filesystem.qualify(path), filesystem)
        except (ImportError, OSError, ValueError, PathQualificationError) as e:
            console.print(f"[yellow]Could not resolve {escape(path)}:[/yellow] {escape(str(e))}")
            detected = DetectedFormat.UNREADABLE
        table.add_row(path, str(detected))
    console.print(table)


if __name__ == "__main__":
    app()
