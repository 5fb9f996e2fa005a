# src/httpsim/cli.py
"""CLI for the httpsim simulator.

Usage:
    httpsim serve --config=httpsim.yaml                          # Echo server
    httpsim serve --config=httpsim.yaml --upstream=http://localhost:8080
    httpsim serve --config=httpsim.yaml --seed=0123456789abcdef0123456789abcdef
    httpsim check httpsim.yaml                                   # Validate
    httpsim show-config httpsim.yaml --format=json               # Normalized form

While serving, SIGHUP reloads the config file.
"""

from __future__ import annotations

import json
import signal
from pathlib import Path
from types import FrameType
from typing import Annotated

import typer
import yaml

from httpsim.config import Config, ConfigError, Resource, load_file
from httpsim.durations import format_duration
from httpsim.logging import configure_logging, get_logger
from httpsim.randomness import ChaCha8Source, InvalidSeedLengthError, Seed

logger = get_logger(__name__)

app = typer.Typer(
    name="httpsim",
    help="httpsim: HTTP latency and fault injection in front of any service.",
    no_args_is_help=True,
)

ConfigPath = Annotated[
    Path,
    typer.Argument(
        help="Path to YAML configuration file.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
]


def _version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from httpsim import __version__

        typer.echo(f"httpsim {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option("--version", "-v", callback=_version_callback, is_eager=True, help="Show version."),
    ] = False,
) -> None:
    """httpsim: HTTP latency and fault injection in front of any service."""


def _load_or_exit(path: Path) -> Config:
    try:
        return load_file(path)
    except ConfigError as e:
        typer.secho(f"Configuration error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1) from e


def _describe_resource(resource: Resource) -> str:
    """One-line summary of a resource for terminal output."""
    parts = [
        ",".join(resource.methods) if resource.methods else "*",
        str(resource.path) if not resource.path.is_match_all else "*",
    ]
    if resource.headers:
        parts.append(f"headers={len(resource.headers)}")
    if resource.query:
        parts.append(f"query={len(resource.query)}")

    effect = resource.effect
    if effect is None:
        parts.append("-> no effect")
        return " ".join(parts)
    if effect.delay is not None:
        parts.append(f"-> delay {format_duration(effect.delay.min)}..{format_duration(effect.delay.max)}")
    if effect.replace is not None:
        parts.append(f"-> replace {effect.replace.status_code}")
    return " ".join(parts)


@app.command()
def check(config_file: ConfigPath) -> None:
    """Validate a configuration file and summarize its resources."""
    config = _load_or_exit(config_file)
    typer.secho(f"{config_file}: OK ({len(config.resources)} resources)", fg=typer.colors.GREEN)
    for index, resource in enumerate(config.resources):
        typer.echo(f"  [{index}] {_describe_resource(resource)}")


@app.command()
def show_config(
    config_file: ConfigPath,
    output_format: Annotated[
        str,
        typer.Option("--format", "-f", help="Output format: json or yaml."),
    ] = "yaml",
) -> None:
    """Show the normalized configuration."""
    config = _load_or_exit(config_file)
    config_dict = config.model_dump(mode="json", by_alias=True, exclude_none=True)
    if output_format == "json":
        typer.echo(json.dumps(config_dict, indent=2))
    elif output_format == "yaml":
        typer.echo(yaml.safe_dump(config_dict, default_flow_style=False, sort_keys=False, allow_unicode=True))
    else:
        typer.secho(f"Unknown format: {output_format}", fg=typer.colors.RED, err=True)
        raise typer.Exit(2)


@app.command()
def serve(
    config_file: Annotated[
        Path,
        typer.Option(
            "--config",
            "-c",
            help="Path to YAML configuration file.",
            exists=True,
            file_okay=True,
            dir_okay=False,
            resolve_path=True,
        ),
    ],
    upstream: Annotated[
        str | None,
        typer.Option("--upstream", "-u", help="Base URL to proxy to. Without it, an echo endpoint is served."),
    ] = None,
    host: Annotated[
        str,
        typer.Option("--host", "-h", help="Host address to bind to."),
    ] = "127.0.0.1",
    port: Annotated[
        int,
        typer.Option("--port", "-P", help="Port to listen on.", min=1, max=65535),
    ] = 8300,
    seed: Annotated[
        str | None,
        typer.Option("--seed", help="32-character seed for reproducible delays."),
    ] = None,
    allow_external_bind: Annotated[
        bool,
        typer.Option("--allow-external-bind", help="Allow binding to all interfaces."),
    ] = False,
    log_level: Annotated[
        str,
        typer.Option("--log-level", "-l", help="Log level (DEBUG, INFO, WARNING, ERROR)."),
    ] = "INFO",
    json_logs: Annotated[
        bool,
        typer.Option("--json-logs", help="Emit JSON log lines."),
    ] = False,
) -> None:
    """Start the simulator in front of an upstream (or an echo endpoint).

    Examples:

        httpsim serve -c httpsim.yaml
        httpsim serve -c httpsim.yaml -u http://127.0.0.1:8080 --port=9000
    """
    if host in {"0.0.0.0", "::", "0:0:0:0:0:0:0:0"} and not allow_external_bind:
        typer.secho(
            f"Binding to '{host}' exposes httpsim to the network. "
            "Use --allow-external-bind to override, or bind to 127.0.0.1.",
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(1)

    rand = None
    if seed is not None:
        try:
            rand = ChaCha8Source(Seed.from_bytes(seed))
        except InvalidSeedLengthError as e:
            typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
            raise typer.Exit(1) from e

    config = _load_or_exit(config_file)
    configure_logging(json_output=json_logs, level=log_level)

    import uvicorn

    from httpsim.server import SimulatorServer

    server = SimulatorServer(config, upstream=upstream, rand=rand)

    def _reload(signum: int, frame: FrameType | None) -> None:
        try:
            server.reload(config_file)
        except ConfigError as e:
            logger.error("config reload failed, keeping previous config", path=str(config_file), error=str(e))

    if hasattr(signal, "SIGHUP"):
        signal.signal(signal.SIGHUP, _reload)

    typer.secho(f"Starting httpsim on {host}:{port}", fg=typer.colors.GREEN)
    typer.echo(f"  Config: {config_file} ({len(config.resources)} resources)")
    typer.echo(f"  Upstream: {upstream or 'echo'}")
    if seed is not None:
        typer.echo("  Seed: fixed")
    typer.echo()

    uvicorn.run(server.app, host=host, port=port, log_level=log_level.lower(), log_config=None)


def main() -> None:
    """Entry point for httpsim CLI."""
    app()


if __name__ == "__main__":
    main()
