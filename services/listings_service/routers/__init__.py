"""Listings service routers package."""

from services.listings_service.routers.businesses import router as businesses_router
from services.listings_service.routers.listings import router as listings_router

__all__ = [
    "businesses_router",
    "listings_router",
]
