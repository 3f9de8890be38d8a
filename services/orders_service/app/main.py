"""FastAPI application for the Orders Service."""

from fastapi import FastAPI
from libs.common.errors import add_exception_handlers
from libs.common.middleware import add_observability_middleware
from services.orders_service.routers import (
    admin_router,
    business_router,
    orders_router,
    reviews_router,
    webhooks_router,
)


def create_app() -> FastAPI:
    """Create and configure the Orders Service FastAPI app."""
    app = FastAPI(
        title="Looper Orders Service",
        version="0.1.0",
        description="Checkout, payment, pickup and reviews for surplus-food orders.",
    )
    add_observability_middleware(app, "orders")
    add_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "orders"}

    app.include_router(orders_router)
    app.include_router(business_router)
    app.include_router(admin_router)
    app.include_router(reviews_router)
    app.include_router(webhooks_router)

    return app


app = create_app()
