from __future__ import annotations

import json
import signal
import sys
from typing import Optional

import typer

from iohandlers.channels import CancelToken
from iohandlers.config import get_settings
from iohandlers.coordinator import PipelineConfig, run_pipeline
from iohandlers.errors import IOHandlerError
from iohandlers.registry import default_registry
from iohandlers.utils.logging import configure_logging

app = typer.Typer(help="Pluggable input/output handlers for domain resolution pipelines.")


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"input={settings.input_handler}({settings.input_file_path or '-'}) "
        f"output={settings.output_handler}({settings.output_file_path or '-'}) "
        f"handler_config={settings.input_handler_config or '<none>'} | "
        f"zone={settings.zone_file_input} capacity={settings.channel_capacity} "
        f"sinks={settings.sink_count} workers={settings.relay_workers} "
        f"policy={settings.failure_policy}"
    )


@app.command()
def handlers() -> None:
    """
    List registered input and output handlers.
    """
    registry = default_registry()
    typer.echo("Input handlers: " + ", ".join(registry.available_inputs()))
    typer.echo("Output handlers: " + ", ".join(registry.available_outputs()))


@app.command()
def run(
    input_handler: Optional[str] = typer.Option(
        None, "--input-handler", "-i", help="Input handler name (e.g., file, rabbitmq)."
    ),
    output_handler: Optional[str] = typer.Option(
        None, "--output-handler", "-o", help="Output handler name (e.g., file)."
    ),
    input_path: Optional[str] = typer.Option(
        None, "--input", help="Input file path for the file handler ('-' for stdin)."
    ),
    output_path: Optional[str] = typer.Option(
        None, "--output", help="Output file path for the file handler ('-' for stdout)."
    ),
    handler_config: Optional[str] = typer.Option(
        None, "--handler-config", "-c", help="Input handler config file (rabbitmq YAML)."
    ),
    zone: Optional[bool] = typer.Option(
        None, "--zone/--no-zone", help="Parse the input as a DNS zone file."
    ),
    sinks: Optional[int] = typer.Option(None, "--sinks", min=1, help="Number of sink workers."),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", min=1, help="Number of relay workers."),
    strict: bool = typer.Option(False, "--strict", help="Abort the whole pipeline on the first failure."),
) -> None:
    """
    Stream work items from the input handler to the output handler, one line per item.
    """
    overrides = {
        "input_handler": input_handler,
        "output_handler": output_handler,
        "input_file_path": input_path,
        "output_file_path": output_path,
        "input_handler_config": handler_config,
        "zone_file_input": zone,
        "sink_count": sinks,
        "relay_workers": workers,
        "failure_policy": "strict" if strict else None,
    }
    settings = get_settings().model_copy(
        update={key: value for key, value in overrides.items() if value is not None}
    )
    configure_logging(level=settings.log_level, json_logs=settings.log_json)

    cancel = CancelToken()
    previous = {
        signum: signal.signal(signum, lambda signum, frame: cancel.cancel())
        for signum in (signal.SIGINT, signal.SIGTERM)
    }

    try:
        result = run_pipeline(PipelineConfig.from_settings(settings), settings, cancel=cancel)
    except IOHandlerError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)

    typer.echo(json.dumps(result, indent=2, default=str), err=True)
    if result.get("errors") or not result.get("completed", False):
        raise typer.Exit(code=1)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
