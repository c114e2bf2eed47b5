"""figma-bridge relay application.

Creates the Starlette ASGI application:
- /        - WebSocket relay (upgrade) and plain status / CORS preflight (HTTP)
- /health  - Health check with channel and connection counts

Each application owns its own ChannelRelay, available as `app.state.relay`.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncIterator

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware

from .config import RelayConfig
from .export import DirectoryBlobWriter, SvgExporter
from .relay import ChannelRelay
from .routes import health_routes, relay_routes

logger = logging.getLogger(__name__)


def create_app(
    config: RelayConfig | None = None,
    relay: ChannelRelay | None = None,
) -> Starlette:
    """Create the relay application.

    Args:
        config: Relay settings; read from the environment when omitted
            (this is how `figma-bridge serve` passes its options).
        relay: Pre-built relay, mainly for tests. Built from `config` otherwise.

    Returns:
        Configured Starlette application
    """
    config = config or RelayConfig.from_env()

    if relay is None:
        exporter = SvgExporter(
            DirectoryBlobWriter(config.export_dir),
            max_workers=config.export_workers,
        )
        relay = ChannelRelay(exporter=exporter)

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        logger.info(f"WebSocket server running on port {config.port}")
        yield
        relay.close()

    middleware = [
        Middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Content-Type", "Authorization"],
        ),
    ]

    app = Starlette(
        routes=[*health_routes, *relay_routes],
        middleware=middleware,
        lifespan=lifespan,
    )
    app.state.relay = relay
    app.state.config = config
    return app
