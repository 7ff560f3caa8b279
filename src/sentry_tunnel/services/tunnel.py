"""Tunnel request pipeline: parse, validate, forward, relay."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum

from sentry_tunnel.config import TunnelConfig
from sentry_tunnel.errors.failures import StageFailure, internal_error
from sentry_tunnel.logging_config import DiagnosticSink, log_diagnostic
from sentry_tunnel.models.envelope import ForwardResponse
from sentry_tunnel.services.allowlist import check_allowed
from sentry_tunnel.services.envelope_parser import parse_envelope
from sentry_tunnel.services.forwarder import UpstreamForwarder, build_forward_request
from sentry_tunnel.services.id_generator import generate_request_id

logger = logging.getLogger(__name__)


class TunnelState(StrEnum):
    RECEIVED = "received"
    PARSED = "parsed"
    VALIDATED = "validated"
    FORWARDED = "forwarded"
    RESPONDED = "responded"
    REJECTED = "rejected"


@dataclass
class TunnelResult:
    """Terminal state of one request. Exactly one of response/failure is set."""

    request_id: str
    state: TunnelState
    response: ForwardResponse | None = None
    failure: StageFailure | None = None

    @property
    def status_code(self) -> int:
        if self.response is not None:
            return self.response.status_code
        return self.failure.status_code


class TunnelHandler:
    """Runs one envelope through the pipeline.

    Stages return values rather than raising. Anything that does raise is
    caught here and reported as an internal 500, so a single bad request can
    never take the server down.
    """

    def __init__(
        self,
        config: TunnelConfig,
        forwarder: UpstreamForwarder,
        diagnostics: DiagnosticSink = log_diagnostic,
    ):
        self.config = config
        self.forwarder = forwarder
        self._log = diagnostics

    async def handle(
        self,
        body: bytes | None,
        user_agent: str | None = None,
        request_id: str | None = None,
    ) -> TunnelResult:
        request_id = request_id or generate_request_id()
        try:
            self._log(request_id, "Received request to tunnel endpoint")
            return await self._run(request_id, body or b"", user_agent)
        except Exception as exc:
            logger.exception("Error in tunnel (request_id=%s)", request_id)
            # Bypass the sink here: it may be what raised
            return TunnelResult(
                request_id=request_id, state=TunnelState.REJECTED, failure=internal_error(exc)
            )

    async def _run(self, request_id: str, body: bytes, user_agent: str | None) -> TunnelResult:
        # received -> parsed
        dsn = parse_envelope(body)
        if isinstance(dsn, StageFailure):
            return self._reject(request_id, dsn)
        self._log(
            request_id,
            "Parsed DSN",
            {"host": dsn.host, "project_id": dsn.project_id, "public_key": dsn.public_key},
        )

        # parsed -> validated
        denied = check_allowed(dsn.project_id, dsn.public_key, self.config.allow_list)
        if denied is not None:
            self._log(
                request_id,
                denied.error,
                {
                    "allowed_projects": self.config.allow_list.describe_projects(),
                    "allowed_orgs": self.config.allow_list.describe_orgs(),
                },
            )
            return self._reject(request_id, denied)

        # validated -> forwarded
        forward_request = build_forward_request(
            dsn, body, user_agent, self.config.default_user_agent
        )
        self._log(request_id, "Forwarding to upstream", {"url": forward_request.url})
        response = await self.forwarder.forward(forward_request)
        if isinstance(response, StageFailure):
            return self._reject(request_id, response)

        # forwarded -> responded
        self._log(
            request_id,
            "Request completed successfully",
            {"status_code": response.status_code},
        )
        return TunnelResult(request_id=request_id, state=TunnelState.RESPONDED, response=response)

    def _reject(self, request_id: str, failure: StageFailure) -> TunnelResult:
        self._log(
            request_id,
            "Rejected request",
            {"kind": str(failure.kind), "status_code": failure.status_code, "reason": failure.message},
        )
        return TunnelResult(request_id=request_id, state=TunnelState.REJECTED, failure=failure)
