"""FastAPI dependency injection providers."""

from typing import Annotated

from fastapi import Depends, Request

from sentry_tunnel.services.id_generator import generate_request_id
from sentry_tunnel.services.tunnel import TunnelHandler


def get_tunnel_handler(request: Request) -> TunnelHandler:
    """Return the handler built during application startup."""
    return request.app.state.tunnel_handler


def get_request_id(request: Request) -> str:
    """Extract request_id from request state (set by middleware)."""
    return getattr(request.state, "request_id", None) or generate_request_id()


# Type aliases for dependency injection
Tunnel = Annotated[TunnelHandler, Depends(get_tunnel_handler)]
RequestId = Annotated[str, Depends(get_request_id)]
