"""Top level API router registration."""
from fastapi import APIRouter, FastAPI

from fairdraw.api.routes import audit, disbursements, health, lottery


def register_routes(application: FastAPI) -> None:
    """Register all API routers with the FastAPI application."""
    api_router = APIRouter(prefix="/api")

    api_router.include_router(health.router, tags=["health"])
    api_router.include_router(lottery.router, tags=["lottery"])
    api_router.include_router(disbursements.router, tags=["disbursements"])
    api_router.include_router(audit.router, tags=["audit"])

    application.include_router(api_router)


__all__ = ["register_routes"]
