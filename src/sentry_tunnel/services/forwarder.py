"""Upstream forwarding of envelopes to the Sentry ingestion API."""

from __future__ import annotations

import asyncio
import logging
import time

import httpx

from sentry_tunnel.config import DEFAULT_USER_AGENT
from sentry_tunnel.errors.failures import StageFailure, upstream_unreachable
from sentry_tunnel.models.envelope import (
    ENVELOPE_CONTENT_TYPE,
    Dsn,
    ForwardRequest,
    ForwardResponse,
)

logger = logging.getLogger(__name__)

# Headers owned by a single transport hop (RFC 9110 section 7.6.1), plus the
# framing headers that no longer match once httpx has decoded the body.
HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "proxy-connection",
        "te",
        "trailer",
        "trailers",
        "transfer-encoding",
        "upgrade",
        "content-length",
        "content-encoding",
    }
)


def build_upstream_url(dsn: Dsn) -> str:
    return f"https://{dsn.host}/api/{dsn.project_id}/envelope/?sentry_key={dsn.public_key}"


def build_forward_request(
    dsn: Dsn,
    body: bytes,
    user_agent: str | None = None,
    default_user_agent: str = DEFAULT_USER_AGENT,
) -> ForwardRequest:
    """Describe the upstream call for an envelope; the body is passed through untouched.

    A client User-Agent that cannot be sent as a Latin-1 header value is
    replaced with the default.
    """
    if not user_agent or not _is_latin1(user_agent):
        user_agent = default_user_agent
    return ForwardRequest(
        url=build_upstream_url(dsn),
        headers={
            "Content-Type": ENVELOPE_CONTENT_TYPE,
            "User-Agent": user_agent,
        },
        body=body,
    )


def _is_latin1(value: str) -> bool:
    try:
        value.encode("latin-1")
    except UnicodeEncodeError:
        return False
    return True


def relayable_headers(headers: httpx.Headers) -> list[tuple[str, str]]:
    """Keep every upstream header except hop-by-hop ones, preserving repeats."""
    return [
        (key, value)
        for key, value in headers.multi_items()
        if key.lower() not in HOP_BY_HOP_HEADERS
    ]


class UpstreamForwarder:
    """Sends envelopes upstream through a shared client.

    At most ``max_concurrent`` calls are in flight at once; later callers
    wait for a slot. Each call is bounded by ``timeout`` seconds. Failures
    are returned as values and never retried.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        timeout: float = 10.0,
        max_concurrent: int = 100,
    ):
        self._client = client
        self._timeout = timeout
        self._slots = asyncio.Semaphore(max_concurrent)

    async def forward(self, request: ForwardRequest) -> ForwardResponse | StageFailure:
        started = time.monotonic()
        try:
            async with self._slots, asyncio.timeout(self._timeout):
                response = await self._client.request(
                    request.method,
                    request.url,
                    content=request.body,
                    # Header values go out as Latin-1 bytes, as received from the client
                    headers={key: value.encode("latin-1") for key, value in request.headers.items()},
                    timeout=self._timeout,
                )
        except (httpx.TimeoutException, TimeoutError) as exc:
            logger.warning("Upstream request timed out after %.1fs", self._timeout)
            return upstream_unreachable(f"Upstream timed out: {exc!r}")
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("Upstream request failed: %s", exc)
            return upstream_unreachable(str(exc) or type(exc).__name__)

        logger.debug(
            "Upstream responded %d in %.0fms",
            response.status_code,
            (time.monotonic() - started) * 1000,
        )
        return ForwardResponse(
            status_code=response.status_code,
            headers=relayable_headers(response.headers),
            body=response.content,
        )


def create_upstream_client(timeout: float = 10.0, max_connections: int = 100) -> httpx.AsyncClient:
    """Build the shared client used for all upstream calls."""
    return httpx.AsyncClient(
        timeout=timeout,
        follow_redirects=True,
        limits=httpx.Limits(max_connections=max_connections),
    )
