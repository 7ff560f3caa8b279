"""Conversion of pipeline outcomes into HTTP responses."""

from fastapi.responses import JSONResponse
from starlette.responses import Response

from sentry_tunnel.errors.failures import StageFailure
from sentry_tunnel.models.envelope import ForwardResponse
from sentry_tunnel.services.tunnel import TunnelResult


def failure_response(failure: StageFailure) -> JSONResponse:
    return JSONResponse(status_code=failure.status_code, content=failure.to_payload())


def relay_response(upstream: ForwardResponse) -> Response:
    """Mirror the upstream status, headers and body."""
    response = Response(content=upstream.body, status_code=upstream.status_code)
    for key, value in upstream.headers:
        response.headers.append(key, value)
    return response


def tunnel_response(result: TunnelResult) -> Response:
    if result.response is not None:
        return relay_response(result.response)
    return failure_response(result.failure)
