"""FastAPI application factory and lifespan management."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sentry_tunnel.config import Settings, TunnelConfig, build_config
from sentry_tunnel.services.forwarder import UpstreamForwarder, create_upstream_client
from sentry_tunnel.services.tunnel import TunnelHandler

logger = logging.getLogger(__name__)


def log_startup_banner(config: TunnelConfig) -> None:
    logger.info(
        "Sentry Tunnel Server is running at %s://%s:%d",
        config.protocol,
        config.host,
        config.port,
    )
    logger.info("Environment: %s", config.env)
    logger.info("Allowed Project IDs: %s", config.allow_list.describe_projects())
    logger.info("Allowed Organization IDs: %s", config.allow_list.describe_orgs())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the shared upstream client and build the tunnel handler."""
    config: TunnelConfig = app.state.config
    client = None

    if getattr(app.state, "tunnel_handler", None) is None:
        client = create_upstream_client(
            timeout=config.upstream_timeout,
            max_connections=config.max_concurrent_upstream,
        )
        forwarder = UpstreamForwarder(
            client,
            timeout=config.upstream_timeout,
            max_concurrent=config.max_concurrent_upstream,
        )
        app.state.tunnel_handler = TunnelHandler(config, forwarder)

    log_startup_banner(config)
    yield

    # Shutdown
    if client is not None:
        await client.aclose()
    logger.info("Sentry Tunnel Server shutdown complete")


def create_app(config: TunnelConfig | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Without an explicit config, one is built from the environment; this
    raises ConfigurationError when the TLS settings are unusable.
    """
    if config is None:
        config = build_config(Settings())

    app = FastAPI(
        title="Sentry Tunnel",
        version="1.0.0",
        description="Allowlisting tunnel for Sentry envelopes.",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.tunnel_handler = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.cors_allowed_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add middleware (order matters: last added = first executed)
    from sentry_tunnel.api.middleware.request_id import RequestIdMiddleware
    app.add_middleware(RequestIdMiddleware)

    # Import and mount routers
    from sentry_tunnel.api.router import api_router
    app.include_router(api_router)

    return app
