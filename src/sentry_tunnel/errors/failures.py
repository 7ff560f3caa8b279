"""Failure values returned by the tunnel pipeline stages."""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class FailureCategory(StrEnum):
    CLIENT_INPUT = "client_input"
    AUTHORIZATION = "authorization"
    UPSTREAM = "upstream"
    INTERNAL = "internal"


class FailureKind(StrEnum):
    EMPTY_BODY = "empty_body"
    MALFORMED_HEADER = "malformed_header"
    MISSING_DSN = "missing_dsn"
    INVALID_DSN = "invalid_dsn"
    PROJECT_NOT_ALLOWED = "project_not_allowed"
    ORG_NOT_ALLOWED = "org_not_allowed"
    UPSTREAM_UNREACHABLE = "upstream_unreachable"
    INTERNAL = "internal"

    @property
    def category(self) -> FailureCategory:
        return _CATEGORIES[self]


_CATEGORIES: dict[FailureKind, FailureCategory] = {
    FailureKind.EMPTY_BODY: FailureCategory.CLIENT_INPUT,
    FailureKind.MALFORMED_HEADER: FailureCategory.CLIENT_INPUT,
    FailureKind.MISSING_DSN: FailureCategory.CLIENT_INPUT,
    FailureKind.INVALID_DSN: FailureCategory.CLIENT_INPUT,
    FailureKind.PROJECT_NOT_ALLOWED: FailureCategory.AUTHORIZATION,
    FailureKind.ORG_NOT_ALLOWED: FailureCategory.AUTHORIZATION,
    FailureKind.UPSTREAM_UNREACHABLE: FailureCategory.UPSTREAM,
    FailureKind.INTERNAL: FailureCategory.INTERNAL,
}

_STATUS_CODES: dict[FailureCategory, int] = {
    FailureCategory.CLIENT_INPUT: 400,
    FailureCategory.AUTHORIZATION: 403,
    FailureCategory.UPSTREAM: 500,
    FailureCategory.INTERNAL: 500,
}


@dataclass(frozen=True)
class StageFailure:
    """Why a request left the pipeline early.

    ``error`` is the client-facing summary. ``message`` carries the
    underlying cause and is only sent for 5xx failures.
    """

    kind: FailureKind
    error: str
    message: str | None = None

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self.kind.category]

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.error}
        if self.status_code >= 500:
            payload["message"] = self.message or ""
        return payload


def empty_body() -> StageFailure:
    return StageFailure(FailureKind.EMPTY_BODY, "Missing envelope data")


def malformed_header(reason: str) -> StageFailure:
    return StageFailure(FailureKind.MALFORMED_HEADER, "Invalid envelope header", reason)


def missing_dsn() -> StageFailure:
    return StageFailure(FailureKind.MISSING_DSN, "Missing DSN in envelope header")


def invalid_dsn(reason: str) -> StageFailure:
    return StageFailure(FailureKind.INVALID_DSN, "Invalid DSN in envelope header", reason)


def project_not_allowed(project_id: str) -> StageFailure:
    return StageFailure(FailureKind.PROJECT_NOT_ALLOWED, f"Invalid project ID: {project_id}")


def org_not_allowed(public_key: str) -> StageFailure:
    return StageFailure(FailureKind.ORG_NOT_ALLOWED, f"Invalid organization ID: {public_key}")


def upstream_unreachable(reason: str) -> StageFailure:
    return StageFailure(FailureKind.UPSTREAM_UNREACHABLE, "Failed to reach upstream", reason)


def internal_error(exc: BaseException) -> StageFailure:
    return StageFailure(FailureKind.INTERNAL, "Internal server error", str(exc) or type(exc).__name__)
