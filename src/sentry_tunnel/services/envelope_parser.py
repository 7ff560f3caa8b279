"""Envelope header parsing and DSN extraction."""

import ipaddress
import json
import re
from urllib.parse import urlsplit

from sentry_tunnel.errors.failures import (
    StageFailure,
    empty_body,
    invalid_dsn,
    malformed_header,
    missing_dsn,
)
from sentry_tunnel.models.envelope import Dsn


def split_header(body: bytes) -> bytes:
    """Return the envelope header line: everything before the first LF.

    Only ``\\n`` separates lines; a ``\\r`` before it stays on the header
    and is treated as whitespace by the JSON decoder.
    """
    header, _, _ = body.partition(b"\n")
    return header


_DEFAULT_PORTS = {"http": 80, "https": 443}

# One hostname label after IDNA encoding
_HOST_LABEL = re.compile(r"^(?!-)[a-z0-9_-]{1,63}(?<!-)$")


def normalize_host(hostname: str, port: int | None, scheme: str) -> str | None:
    """Return ``host[:port]`` as a browser's URL.host would, or None if invalid.

    The hostname is lowercased and IDNA-encoded; the port is dropped when it
    is the scheme's default.
    """
    try:
        address = ipaddress.ip_address(hostname)
    except ValueError:
        try:
            ascii_host = hostname.encode("idna").decode("ascii").lower()
        except UnicodeError:
            return None
        labels = ascii_host.removesuffix(".").split(".")
        if not all(_HOST_LABEL.match(label) for label in labels):
            return None
        host = ascii_host
    else:
        host = f"[{address.compressed}]" if address.version == 6 else address.compressed

    if port is not None and port != _DEFAULT_PORTS[scheme]:
        return f"{host}:{port}"
    return host


def parse_dsn(raw: str) -> Dsn | StageFailure:
    """Extract host, project ID and public key from a DSN URL."""
    try:
        parts = urlsplit(raw)
        # .port validates the port component lazily
        port = parts.port
    except ValueError as exc:
        return invalid_dsn(str(exc))

    if parts.scheme not in _DEFAULT_PORTS or not parts.hostname:
        return invalid_dsn("DSN must be an absolute http(s) URL")

    host = normalize_host(parts.hostname, port, parts.scheme)
    if host is None:
        return invalid_dsn(f"DSN host is not valid: {parts.hostname!r}")

    project_id = parts.path[1:] if parts.path.startswith("/") else parts.path
    public_key = parts.username or ""

    if not project_id:
        return invalid_dsn("DSN has no project ID")
    if not public_key:
        return invalid_dsn("DSN has no public key")

    return Dsn(host=host, project_id=project_id, public_key=public_key)


def parse_envelope(body: bytes | str | None) -> Dsn | StageFailure:
    """Validate the envelope header and return the DSN it names.

    The items after the header are not inspected.
    """
    if not body:
        return empty_body()
    if isinstance(body, str):
        body = body.encode("utf-8")

    try:
        header = json.loads(split_header(body).decode("utf-8"))
    except UnicodeDecodeError:
        return malformed_header("Header is not valid UTF-8")
    except json.JSONDecodeError as exc:
        return malformed_header(str(exc))

    if not isinstance(header, dict):
        return malformed_header("Header is not a JSON object")

    dsn = header.get("dsn")
    if not isinstance(dsn, str) or not dsn:
        return missing_dsn()

    return parse_dsn(dsn)
