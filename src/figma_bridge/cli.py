"""figma-bridge CLI.

Usage:
    figma-bridge serve                          # Relay on 127.0.0.1:3055
    figma-bridge serve --port 8080 --reload     # Custom port, auto-reload
    figma-bridge serve --export-dir ./exports   # Where export_svg files land
    figma-bridge health                         # Check relay health

    figma-bridge invoke get_document_info --channel room1
    figma-bridge invoke move_node --channel room1 --params '{"nodeId": "1:2", "x": 10, "y": 20}'
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sys
from typing import Any

import click
import httpx

from .config import DEFAULT_HOST, DEFAULT_PORT
from .errors import BridgeError
from .sdk import CommandGateway, GatewayConfig, ReconnectPolicy

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="INFO",
    show_default=True,
    help="Logging level (logs go to stderr)",
)
def main(log_level: str) -> None:
    """figma-bridge - channel relay and command gateway for the Figma plugin."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# =============================================================================
# Relay server
# =============================================================================


@main.command()
@click.option("--host", default=DEFAULT_HOST, show_default=True, help="Host to bind to")
@click.option("--port", default=DEFAULT_PORT, show_default=True, help="Port to bind to")
@click.option(
    "--export-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory for exported SVG files (default: current directory)",
)
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
def serve(host: str, port: int, export_dir: str | None, reload: bool) -> None:
    """Run the WebSocket relay.

    Examples:

        figma-bridge serve
        figma-bridge serve --port 8080 --export-dir ./exports
    """
    import uvicorn

    # Pass options via environment variables for the app factory
    os.environ["FIGMA_BRIDGE_HOST"] = host
    os.environ["FIGMA_BRIDGE_PORT"] = str(port)
    if export_dir:
        os.environ["FIGMA_BRIDGE_EXPORT_DIR"] = export_dir
    else:
        os.environ.pop("FIGMA_BRIDGE_EXPORT_DIR", None)

    click.echo(f"Starting figma-bridge relay on ws://{host}:{port}", err=True)
    click.echo("Press Ctrl+C to stop", err=True)

    uvicorn.run(
        "figma_bridge.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


@main.command()
@click.option(
    "--url",
    default=f"http://localhost:{DEFAULT_PORT}",
    show_default=True,
    help="Relay URL",
)
def health(url: str) -> None:
    """Check relay health."""

    async def check() -> None:
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(f"{url.rstrip('/')}/health")
                if response.status_code == 200:
                    data = response.json()
                    click.echo(f"Relay is healthy: {data}")
                else:
                    click.echo(f"Relay returned {response.status_code}", err=True)
                    sys.exit(1)
        except httpx.ConnectError:
            click.echo(f"Cannot connect to relay at {url}", err=True)
            sys.exit(1)

    asyncio.run(check())


# =============================================================================
# Gateway
# =============================================================================


def _parse_params(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        params = json.loads(raw)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"not valid JSON: {e}", param_hint="--params") from e
    if not isinstance(params, dict):
        raise click.BadParameter("must be a JSON object", param_hint="--params")
    return params


@main.command()
@click.argument("command")
@click.option("--channel", "-c", required=True, help="Channel shared with the plugin")
@click.option("--params", "params_json", default=None, help="Command parameters as a JSON object")
@click.option("--server", default=None, help="Relay host (env: FIGMA_BRIDGE_SERVER)")
@click.option("--port", type=int, default=None, help="Relay port for localhost")
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Request timeout in seconds",
)
def invoke(
    command: str,
    channel: str,
    params_json: str | None,
    server: str | None,
    port: int | None,
    timeout: float | None,
) -> None:
    """Send one COMMAND to the plugin and print its result as JSON.

    Examples:

        figma-bridge invoke get_selection --channel room1
        figma-bridge invoke get_node_info -c room1 --params '{"nodeId": "1:2"}'
    """
    params = _parse_params(params_json)

    try:
        config = GatewayConfig.from_env(server=server)
    except ValueError as e:
        raise click.UsageError(str(e)) from e
    if port is not None:
        config.port = port
    if timeout is not None:
        config.timeout = timeout
    # One-shot call: fail fast instead of retrying in the background
    config.reconnect = ReconnectPolicy.disabled()

    async def run() -> Any:
        async with CommandGateway(config) as gateway:
            await gateway.join(channel)
            return await gateway.invoke(command, params)

    try:
        result = asyncio.run(run())
    except BridgeError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(json.dumps(result, indent=2))


if __name__ == "__main__":
    main()
