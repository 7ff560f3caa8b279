"""Request ID middleware binding a correlation ID into the log context."""

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from sentry_tunnel.logging_config import bind_request_context, clear_request_context
from sentry_tunnel.services.id_generator import generate_request_id


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Generate a request ID, expose it on request.state and in every log line.

    The ID is never echoed to the client, so tunnelled responses stay an
    exact mirror of the upstream.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = generate_request_id()
        request.state.request_id = request_id
        bind_request_context(request_id)
        try:
            return await call_next(request)
        finally:
            clear_request_context()
