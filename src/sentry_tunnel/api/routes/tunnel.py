"""Envelope tunnel endpoint."""

from fastapi import APIRouter, Request
from starlette.responses import Response

from sentry_tunnel.dependencies import RequestId, Tunnel
from sentry_tunnel.errors.responses import tunnel_response

router = APIRouter(tags=["Tunnel"])


@router.post("/tunnel")
async def tunnel(request: Request, handler: Tunnel, request_id: RequestId) -> Response:
    """Forward a Sentry envelope upstream and mirror the upstream response."""
    body = await request.body()
    result = await handler.handle(
        body,
        user_agent=request.headers.get("user-agent"),
        request_id=request_id,
    )
    return tunnel_response(result)
