"""Tests for upstream request building and forwarding."""

import asyncio

import httpx
import pytest

from sentry_tunnel.errors.failures import FailureKind, StageFailure
from sentry_tunnel.models.envelope import Dsn, ForwardResponse
from sentry_tunnel.services.forwarder import (
    UpstreamForwarder,
    build_forward_request,
    build_upstream_url,
    relayable_headers,
)

from conftest import SAMPLE_ENVELOPE, SAMPLE_UPSTREAM_URL

DSN = Dsn(host="o1.ingest.example.com", project_id="42", public_key="abc123")


def test_build_upstream_url():
    assert build_upstream_url(DSN) == SAMPLE_UPSTREAM_URL


def test_forward_request_uses_client_user_agent():
    request = build_forward_request(DSN, SAMPLE_ENVELOPE, "sentry.javascript.browser/8.0")
    assert request.method == "POST"
    assert request.url == SAMPLE_UPSTREAM_URL
    assert request.headers == {
        "Content-Type": "application/x-sentry-envelope",
        "User-Agent": "sentry.javascript.browser/8.0",
    }
    assert request.body == SAMPLE_ENVELOPE


def test_forward_request_default_user_agent():
    request = build_forward_request(DSN, SAMPLE_ENVELOPE, None)
    assert request.headers["User-Agent"] == "Sentry-Tunnel-Python"


def test_relayable_headers_drop_hop_by_hop():
    headers = httpx.Headers(
        [
            ("X-Test", "1"),
            ("Connection", "keep-alive"),
            ("Transfer-Encoding", "chunked"),
            ("Content-Type", "application/json"),
            ("Set-Cookie", "a=1"),
            ("Set-Cookie", "b=2"),
        ]
    )
    assert relayable_headers(headers) == [
        ("x-test", "1"),
        ("content-type", "application/json"),
        ("set-cookie", "a=1"),
        ("set-cookie", "b=2"),
    ]


async def test_forward_sends_body_unmodified(forwarder, upstream):
    request = build_forward_request(DSN, SAMPLE_ENVELOPE, "ua/1")
    result = await forwarder.forward(request)

    assert isinstance(result, ForwardResponse)
    assert len(upstream.requests) == 1
    sent = upstream.requests[0]
    assert sent.method == "POST"
    assert str(sent.url) == SAMPLE_UPSTREAM_URL
    assert sent.content == SAMPLE_ENVELOPE
    assert sent.headers["content-type"] == "application/x-sentry-envelope"
    assert sent.headers["user-agent"] == "ua/1"


async def test_forward_relays_status_and_headers(forwarder, upstream):
    upstream.respond(202, {"X-Test": "1"}, b"accepted")
    result = await forwarder.forward(build_forward_request(DSN, SAMPLE_ENVELOPE))

    assert result.status_code == 202
    assert result.header("X-Test") == "1"
    assert result.body == b"accepted"


@pytest.mark.parametrize("status_code", [400, 413, 429, 500, 503])
async def test_upstream_error_statuses_are_not_translated(forwarder, upstream, status_code):
    upstream.respond(status_code, {"Retry-After": "60"}, b"nope")
    result = await forwarder.forward(build_forward_request(DSN, SAMPLE_ENVELOPE))

    assert isinstance(result, ForwardResponse)
    assert result.status_code == status_code
    assert result.header("retry-after") == "60"


@pytest.mark.parametrize(
    "error",
    [
        httpx.ConnectError("Connection refused"),
        httpx.ReadTimeout("timed out"),
        httpx.RemoteProtocolError("Server disconnected"),
    ],
)
async def test_transport_failures_become_upstream_unreachable(forwarder, upstream, error):
    upstream.fail(error)
    result = await forwarder.forward(build_forward_request(DSN, SAMPLE_ENVELOPE))

    assert isinstance(result, StageFailure)
    assert result.kind == FailureKind.UPSTREAM_UNREACHABLE
    assert result.status_code == 500
    assert result.message


async def test_failures_are_not_retried(forwarder, upstream):
    upstream.fail(httpx.ConnectError("Connection refused"))
    await forwarder.forward(build_forward_request(DSN, SAMPLE_ENVELOPE))
    assert len(upstream.requests) == 1


async def test_concurrent_calls_are_capped():
    in_flight = 0
    peak = 0
    release = asyncio.Event()

    async def slow_upstream(request):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await release.wait()
        in_flight -= 1
        return httpx.Response(200)

    async with httpx.AsyncClient(transport=httpx.MockTransport(slow_upstream)) as client:
        forwarder = UpstreamForwarder(client, timeout=5.0, max_concurrent=2)
        request = build_forward_request(DSN, SAMPLE_ENVELOPE)
        tasks = [asyncio.create_task(forwarder.forward(request)) for _ in range(5)]
        for _ in range(20):
            await asyncio.sleep(0)
        assert peak == 2
        release.set()
        results = await asyncio.gather(*tasks)

    assert all(r.status_code == 200 for r in results)
    assert peak == 2


async def test_slow_upstream_is_cut_off_at_timeout():
    async def hanging_upstream(request):
        await asyncio.sleep(5)
        return httpx.Response(200)

    async with httpx.AsyncClient(transport=httpx.MockTransport(hanging_upstream)) as client:
        forwarder = UpstreamForwarder(client, timeout=0.05, max_concurrent=1)
        result = await asyncio.wait_for(
            forwarder.forward(build_forward_request(DSN, SAMPLE_ENVELOPE)), timeout=2
        )

    assert isinstance(result, StageFailure)
    assert result.kind == FailureKind.UPSTREAM_UNREACHABLE
    assert "timed out" in result.message


async def test_latin1_user_agent_is_sent_as_received(forwarder, upstream):
    request = build_forward_request(DSN, SAMPLE_ENVELOPE, "Mozilla/5.0 (caf\xe9)")
    result = await forwarder.forward(request)

    assert isinstance(result, ForwardResponse)
    sent = upstream.requests[0]
    assert [v for k, v in sent.headers.raw if k.lower() == b"user-agent"] == [
        b"Mozilla/5.0 (caf\xe9)"
    ]


def test_user_agent_outside_latin1_falls_back_to_default():
    request = build_forward_request(DSN, SAMPLE_ENVELOPE, "agent ☃")
    assert request.headers["User-Agent"] == "Sentry-Tunnel-Python"
