"""
Main entry point for MCP servers built on this runtime.

This module provides the command-line interface: ``serve`` loads a
capability registry from an importable module and serves it over HTTP,
``init`` writes a default configuration file.
"""

import asyncio
import importlib
import sys
from pathlib import Path
from typing import Optional

import click
import structlog

from .capabilities import CapabilityRegistry, RegistryBuilder
from .config.settings import load_config
from .server import MCPServer
from .utils.logging import setup_logging

logger = structlog.get_logger(__name__)


def load_registry(target: str) -> CapabilityRegistry:
    """
    Resolve a ``module:attribute`` reference to a capability registry.

    The attribute may be a ``CapabilityRegistry``, a ``RegistryBuilder`` or
    a zero-argument callable returning either.

    Raises:
        click.BadParameter: If the reference cannot be resolved
    """
    module_name, sep, attribute = target.partition(":")
    if not sep or not module_name or not attribute:
        raise click.BadParameter(f"expected 'module:attribute', got {target!r}", param_hint="--app")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise click.BadParameter(f"cannot import {module_name!r}: {e}", param_hint="--app")

    try:
        value = getattr(module, attribute)
    except AttributeError:
        raise click.BadParameter(
            f"module {module_name!r} has no attribute {attribute!r}", param_hint="--app"
        )

    if callable(value) and not isinstance(value, (CapabilityRegistry, RegistryBuilder)):
        value = value()
    if isinstance(value, RegistryBuilder):
        value = value.build()
    if not isinstance(value, CapabilityRegistry):
        raise click.BadParameter(
            f"{target!r} is a {type(value).__name__}, not a CapabilityRegistry", param_hint="--app"
        )
    return value


@click.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
)
@click.option(
    "--app",
    "-a",
    "app",
    required=True,
    help="Capability registry to serve, as module:attribute",
)
@click.option("--host", help="Interface to bind")
@click.option("--port", type=int, help="Port to bind")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Set logging level",
)
@click.version_option(package_name="mcp-server-runtime")
def main(
    app: str,
    config: Optional[Path] = None,
    host: Optional[str] = None,
    port: Optional[int] = None,
    log_level: Optional[str] = None,
) -> None:
    """
    MCP Server Runtime - serve tools, prompts and resources over HTTP.

    Loads the registry named by --app and exposes it to MCP clients using
    JSON-RPC 2.0 over HTTP POST.
    """
    try:
        config_data = load_config(config_path=config)

        if log_level:
            config_data.server.log_level = log_level.upper()
        if host:
            config_data.http.host = host
        if port is not None:
            config_data.http.port = port

        setup_logging(config_data.server.log_level, json_logs=config_data.server.json_logs)

        logger.info(
            "Starting MCP server",
            version=config_data.version,
            config_file=str(config) if config else "default",
            log_level=config_data.server.log_level,
            app=app,
        )

        registry = load_registry(app)
        server = MCPServer(registry, config_data)
        asyncio.run(server.run_http())

    except click.ClickException:
        raise
    except KeyboardInterrupt:
        logger.info("Server shutdown requested")
        sys.exit(0)
    except Exception as e:
        logger.error("Server startup failed", error=str(e), exc_info=True)
        sys.exit(1)


@click.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(path_type=Path),
    help="Path to save configuration file",
)
def init_config(config: Optional[Path] = None) -> None:
    """Initialize a configuration file with default settings."""
    from .config.settings import create_default_config

    config_path = config or Path("config.json")

    if config_path.exists():
        click.echo(f"Configuration file already exists: {config_path}")
        if not click.confirm("Overwrite?"):
            return

    try:
        create_default_config(config_path)
        click.echo(f"Created configuration file: {config_path}")
        click.echo("\nNext steps:")
        click.echo("1. Point the server at your capabilities:")
        click.echo(f"   mcp-server-runtime serve --config {config_path} --app my_package.mcp:registry")
        click.echo("2. Override the bind address if needed:")
        click.echo("   export MCP_SERVER_HOST=0.0.0.0 MCP_SERVER_PORT=8080")
    except OSError as e:
        click.echo(f"Failed to create configuration file: {e}", err=True)
        sys.exit(1)


@click.group()
def cli() -> None:
    """MCP Server Runtime CLI."""
    pass


cli.add_command(main, name="serve")
cli.add_command(init_config, name="init")


if __name__ == "__main__":
    cli()
