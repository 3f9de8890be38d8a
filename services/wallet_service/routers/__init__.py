"""Wallet service routers package."""

from services.wallet_service.routers.wallet import router as wallet_router

__all__ = ["wallet_router"]
