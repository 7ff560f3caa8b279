"""Application configuration via environment variables."""

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings

from sentry_tunnel.errors.exceptions import ConfigurationError

DEFAULT_USER_AGENT = "Sentry-Tunnel-Python"


class Settings(BaseSettings):
    # Allowlists (comma-separated, empty means permit all)
    allowed_project_ids: str = ""
    allowed_orgs: str = ""

    # Server
    host: str = "0.0.0.0"
    port: int = 3010
    env: Literal["development", "production", "test"] = "development"
    log_level: str = "info"

    # TLS
    ssl_cert_path: str | None = None
    ssl_key_path: str | None = None

    # Upstream
    upstream_timeout: float = 10.0
    max_concurrent_upstream: int = 100

    # CORS
    cors_allowed_origins: list[str] = ["*"]

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_ignore_empty": True,
        "extra": "ignore",
    }

    @property
    def is_development(self) -> bool:
        return self.env == "development"

    @property
    def effective_log_level(self) -> str:
        """Development always logs pipeline diagnostics."""
        if self.is_development:
            return "debug"
        return self.log_level


def parse_id_list(raw: str) -> frozenset[str]:
    """Split a comma-separated list, trimming entries and dropping empty ones."""
    return frozenset(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class AllowList:
    """Permitted project IDs and org public keys. An empty set permits all."""

    project_ids: frozenset[str] = frozenset()
    org_ids: frozenset[str] = frozenset()

    def permits_project(self, project_id: str) -> bool:
        return not self.project_ids or project_id in self.project_ids

    def permits_org(self, public_key: str) -> bool:
        return not self.org_ids or public_key in self.org_ids

    def describe_projects(self) -> str:
        return ", ".join(sorted(self.project_ids)) if self.project_ids else "All"

    def describe_orgs(self) -> str:
        return ", ".join(sorted(self.org_ids)) if self.org_ids else "All"


@dataclass(frozen=True)
class TlsConfig:
    cert_path: Path
    key_path: Path


@dataclass(frozen=True)
class TunnelConfig:
    """Immutable runtime configuration, built once at startup."""

    allow_list: AllowList = AllowList()
    host: str = "0.0.0.0"
    port: int = 3010
    env: str = "development"
    tls: TlsConfig | None = None
    upstream_timeout: float = 10.0
    max_concurrent_upstream: int = 100
    default_user_agent: str = DEFAULT_USER_AGENT
    cors_allowed_origins: tuple[str, ...] = ("*",)

    @property
    def protocol(self) -> str:
        return "https" if self.tls else "http"


def load_tls_config(cert_path: str | None, key_path: str | None) -> TlsConfig | None:
    """Return TLS material when both paths are set.

    Raises:
        ConfigurationError: only one of the paths is set, or a file is missing.
    """
    if not cert_path and not key_path:
        return None
    if not cert_path or not key_path:
        raise ConfigurationError(
            "Both SSL_CERT_PATH and SSL_KEY_PATH must be set to enable HTTPS"
        )

    cert, key = Path(cert_path), Path(key_path)
    missing = [str(p) for p in (cert, key) if not p.is_file()]
    if missing:
        raise ConfigurationError(
            "SSL certificate or key file not found: "
            + ", ".join(missing)
            + ". Provide valid files or unset SSL_CERT_PATH and SSL_KEY_PATH to use HTTP"
        )
    return TlsConfig(cert_path=cert, key_path=key)


def build_config(settings: Settings) -> TunnelConfig:
    """Freeze environment settings into a TunnelConfig."""
    if settings.max_concurrent_upstream < 1:
        raise ConfigurationError("MAX_CONCURRENT_UPSTREAM must be at least 1")
    if settings.upstream_timeout <= 0:
        raise ConfigurationError("UPSTREAM_TIMEOUT must be positive")

    return TunnelConfig(
        allow_list=AllowList(
            project_ids=parse_id_list(settings.allowed_project_ids),
            org_ids=parse_id_list(settings.allowed_orgs),
        ),
        host=settings.host,
        port=settings.port,
        env=settings.env,
        tls=load_tls_config(settings.ssl_cert_path, settings.ssl_key_path),
        upstream_timeout=settings.upstream_timeout,
        max_concurrent_upstream=settings.max_concurrent_upstream,
        cors_allowed_origins=tuple(settings.cors_allowed_origins),
    )
