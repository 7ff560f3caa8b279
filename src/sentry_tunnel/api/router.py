"""Master API router."""

from fastapi import APIRouter

from sentry_tunnel.api.routes import health, tunnel

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(tunnel.router)
