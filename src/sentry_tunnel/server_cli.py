"""CLI entry point for the Sentry tunnel server."""

import argparse
import logging
import sys

from sentry_tunnel.config import Settings, build_config
from sentry_tunnel.errors.exceptions import ConfigurationError
from sentry_tunnel.logging_config import configure_logging

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="sentry-tunnel",
        description="Sentry tunnel server: forwards allowlisted envelopes to Sentry",
    )
    parser.add_argument("--host", default=None, help="Bind host (default: $HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, default=None, help="Bind port (default: $PORT or 3010)")
    args = parser.parse_args(argv)

    overrides = {}
    if args.host is not None:
        overrides["host"] = args.host
    if args.port is not None:
        overrides["port"] = args.port
    settings = Settings(**overrides)

    configure_logging(
        log_level=settings.effective_log_level,
        json_output=not settings.is_development,
    )

    try:
        config = build_config(settings)
    except ConfigurationError as exc:
        logger.error("Invalid configuration: %s", exc.message)
        sys.exit(1)

    if config.tls:
        logger.info("SSL certificate and key loaded successfully")

    import uvicorn

    from sentry_tunnel.main import create_app

    uvicorn.run(
        create_app(config),
        host=config.host,
        port=config.port,
        ssl_certfile=str(config.tls.cert_path) if config.tls else None,
        ssl_keyfile=str(config.tls.key_path) if config.tls else None,
        log_config=None,
    )


if __name__ == "__main__":
    main()
