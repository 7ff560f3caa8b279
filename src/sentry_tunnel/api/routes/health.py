"""Status and health check endpoints."""

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

router = APIRouter(tags=["Health"])

logger = logging.getLogger(__name__)

# Loaded once while the server process starts up
PROCESS_STARTED_AT = time.monotonic()


@router.get("/", response_class=PlainTextResponse)
async def root():
    logger.debug("Received request to root endpoint")
    return "Sentry Tunnel Server is running"


@router.get("/health")
async def health_check():
    """Return service health status and process uptime in seconds."""
    logger.debug("Received request to health endpoint")
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": time.monotonic() - PROCESS_STARTED_AT,
    }
