"""
Logpush OTel bridge CLI.

Commands for running the ingestion server and for inspecting captured
Logpush deliveries without exporting anything.
"""

import json

import typer
from rich.console import Console
from rich.table import Table

from logpush_otel.logging_config import setup_logging

app = typer.Typer(
    name="logpush-otel",
    help="Forward Cloudflare Workers Logpush deliveries to OTLP/HTTP",
    no_args_is_help=True,
)

console = Console()

GZIP_MAGIC = b"\x1f\x8b"


@app.command()
def inspect(
    path: str = typer.Argument(..., help="Captured Logpush delivery (gzip or NDJSON)"),
    lenient: bool = typer.Option(
        False, "--lenient", help="Skip malformed lines instead of failing"
    ),
    show_records: bool = typer.Option(
        False, "--show-records", help="Print every converted log record"
    ),
) -> None:
    """
    Decode and convert a captured delivery.

    Shows the log records each script would export. Nothing is sent.
    """
    from pathlib import Path

    from logpush_otel.exceptions import LogpushError
    from logpush_otel.logpush import (
        classify_event,
        decode_logpush_payload,
        group_events_by_script,
        parse_ndjson,
    )
    from logpush_otel.otel.conversion import convert_event

    try:
        setup_logging(context="cli")
    except PermissionError:
        import logging

        logging.basicConfig(level=logging.INFO)

    file_path = Path(path)
    if not file_path.exists():
        console.print(f"[red]Error: Path not found: {path}[/red]")
        raise typer.Exit(1)

    data = file_path.read_bytes()
    try:
        if data.startswith(GZIP_MAGIC):
            decoded = decode_logpush_payload(data, "gzip", strict=not lenient)
        else:
            decoded = parse_ndjson(data.decode("utf-8"), strict=not lenient)
        events = [classify_event(record) for record in decoded.records]
    except (LogpushError, UnicodeDecodeError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if decoded.is_probe:
        console.print("Connectivity probe: no events")
        return

    for issue in decoded.issues:
        console.print(f"[yellow]Skipped line {issue.line_number}: {issue.message}[/yellow]")

    groups = group_events_by_script(events)

    console.print(f"{len(events)} event(s) from {len(groups)} script(s)", soft_wrap=True)

    table = Table()
    table.add_column("Script")
    table.add_column("Events", justify="right")
    table.add_column("Records", justify="right")

    for script_name, script_events in groups.items():
        records = [record for event in script_events for record in convert_event(event)]
        table.add_row(script_name or "(none)", str(len(script_events)), str(len(records)))

        if show_records:
            for record in records:
                console.print(
                    json.dumps(
                        {
                            "service": script_name,
                            "timestamp_ns": record.timestamp_ns,
                            "severity": record.severity_text,
                            "body": record.body,
                            "attributes": record.attributes,
                        },
                        default=str,
                    ),
                    markup=False,
                    highlight=False,
                    soft_wrap=True,
                )

    console.print(table)


@app.command()
def serve(
    host: str = typer.Option(None, help="Host to bind to (default: API_HOST)"),
    port: int = typer.Option(None, help="Port to bind to (default: API_PORT)"),
    reload: bool = typer.Option(False, help="Enable auto-reload"),
) -> None:
    """
    Start the ingestion server.

    Point a Workers Trace Events Logpush job at the server's root URL.
    """
    import uvicorn

    from logpush_otel.config import settings

    host = host or settings.api_host
    port = port or settings.api_port

    console.print("[bold green]Starting Logpush OTel bridge...[/bold green]")
    console.print(f"  Host: {host}")
    console.print(f"  Port: {port}")
    console.print(f"  Destination: {settings.destination or '(not set)'}")

    uvicorn.run(
        "logpush_otel.api.app:app",
        host=host,
        port=port,
        reload=reload,
    )


if __name__ == "__main__":
    app()
