"""FastAPI application for the Listings Service."""

from fastapi import FastAPI
from libs.common.errors import add_exception_handlers
from libs.common.middleware import add_observability_middleware
from services.listings_service.routers import businesses_router, listings_router


def create_app() -> FastAPI:
    """Create and configure the Listings Service FastAPI app."""
    app = FastAPI(
        title="Looper Listings Service",
        version="0.1.0",
        description="Surplus-food listings: pricing, stock and lifecycle.",
    )
    add_observability_middleware(app, "listings")
    add_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "listings"}

    app.include_router(listings_router)
    app.include_router(businesses_router)

    return app


app = create_app()
