"""Pydantic models for the values passed between tunnel stages."""

from pydantic import BaseModel, ConfigDict, Field

ENVELOPE_CONTENT_TYPE = "application/x-sentry-envelope"


class Dsn(BaseModel):
    """Ingestion endpoint identified by an envelope header's ``dsn`` field."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    host: str = Field(..., min_length=1)
    project_id: str = Field(..., min_length=1)
    public_key: str = Field(..., min_length=1)


class ForwardRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    url: str
    method: str = "POST"
    headers: dict[str, str]
    body: bytes


class ForwardResponse(BaseModel):
    """Upstream response, already stripped of hop-by-hop headers."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    status_code: int
    headers: list[tuple[str, str]] = Field(default_factory=list)
    body: bytes = b""

    def header(self, name: str) -> str | None:
        lowered = name.lower()
        for key, value in self.headers:
            if key.lower() == lowered:
                return value
        return None
