from services.orders_service.routers.admin import router as admin_router
from services.orders_service.routers.business import router as business_router
from services.orders_service.routers.orders import router as orders_router
from services.orders_service.routers.reviews import router as reviews_router
from services.orders_service.routers.webhooks import router as webhooks_router

__all__ = [
    "orders_router",
    "business_router",
    "admin_router",
    "reviews_router",
    "webhooks_router",
]
