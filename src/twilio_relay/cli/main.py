#!/usr/bin/env python3
"""
CLI interface for the Twilio relay.

Usage:
    twilio-relay serve --port 3001
    twilio-relay check-config

Environment Variables:
    MAIN_APP_URL=https://app.example.com      (required)
    SUPABASE_ANON_KEY=your-anon-key           (required)
    DEBUG_MODE=true                           (optional)
    PORT=3001                                 (optional)
"""

import asyncio
import signal
import sys

import click
import uvicorn
from loguru import logger
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from .. import __version__
from ..api.main import create_app
from ..config.settings import RelaySettings, load_settings
from ..core.exceptions import ConfigurationError
from ..core.logging import setup_logging

console = Console()


def _load_or_exit(**overrides) -> RelaySettings:
    """Load settings; exit with code 1 before serving anything if invalid."""
    try:
        return load_settings(**overrides)
    except ConfigurationError as e:
        logger.error("❌ {}", e.message)
    except ValidationError as e:
        logger.error("❌ Invalid configuration: {}", e)
    sys.exit(1)


def _setup_signal_handlers() -> None:
    """Exit with code 0 on SIGINT/SIGTERM."""

    def signal_handler(signum, frame):
        logger.info(
            "🛑 {} received, shutting down gracefully", signal.Signals(signum).name
        )
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


async def run_server(settings: RelaySettings) -> None:
    """Run the relay under uvicorn until a termination signal arrives."""
    app = create_app(settings)

    server_config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        access_log=settings.debug_mode,
        workers=1,
        loop="asyncio",
    )
    server = uvicorn.Server(server_config)

    await server.serve()


@click.group()
@click.version_option(version=__version__)
def app():
    """Twilio webhook relay."""
    pass


@app.command()
@click.option("--host", default=None, help="Host to bind to (default: HOST or 0.0.0.0)")
@click.option(
    "--port", type=int, default=None, help="Port to bind to (default: PORT or 3001)"
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Logging level (default: LOG_LEVEL or INFO)",
)
def serve(host: str | None, port: int | None, log_level: str | None):
    """Start the relay server."""
    overrides = {
        key: value
        for key, value in {"host": host, "port": port, "log_level": log_level}.items()
        if value is not None
    }
    settings = _load_or_exit(**overrides)

    setup_logging(settings.log_level, enable_json=settings.log_json)
    settings.log_configuration()

    # uvicorn swaps in its own handlers while serving and re-raises the
    # captured signal afterwards; these handlers turn that into exit code 0.
    _setup_signal_handlers()

    asyncio.run(run_server(settings))
    logger.info("🛑 Server stopped")


@app.command("check-config")
def check_config():
    """Validate configuration and print it (credential redacted)."""
    settings = _load_or_exit()

    table = Table(title="Twilio Relay Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    for name, value in settings.as_table_rows():
        table.add_row(name, value)

    console.print(table)
    console.print("[green]✅ Configuration is valid[/green]")


def main():
    """Console script entry point."""
    app()


if __name__ == "__main__":
    main()
