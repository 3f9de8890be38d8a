"""FastAPI application entrypoint for the Looper gateway service.

The gateway proxies requests to the independent Looper services. It adds
CORS, request tracing and rate limiting on checkout; it holds no business
logic of its own.
"""

from __future__ import annotations

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from slowapi.errors import RateLimitExceeded

from libs.common.config import get_settings
from libs.common.errors import add_exception_handlers
from libs.common.logging import get_logger
from libs.common.middleware import add_observability_middleware
from libs.common.rate_limit import limiter, rate_limit_exceeded_handler
from services.gateway_service.app import clients

logger = get_logger(__name__)

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance."""
    settings = get_settings()
    app = FastAPI(
        title="Looper Gateway Service",
        version="0.1.0",
        description="API gateway in front of the Looper marketplace services.",
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    add_observability_middleware(app, "gateway")
    add_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Simple readiness endpoint."""
        return {"status": "ok"}

    # ==================================================================
    # LISTINGS SERVICE PROXY
    # ==================================================================
    @app.api_route("/api/v1/listings", methods=["GET", "POST"])
    async def proxy_listings_root(request: Request):
        return await proxy_request(clients.listings_client, "/listings", request)

    @app.api_route("/api/v1/listings/{path:path}", methods=PROXY_METHODS)
    async def proxy_listings(path: str, request: Request):
        """Proxy all /api/v1/listings/* requests to listings service."""
        return await proxy_request(
            clients.listings_client, f"/listings/{path}", request
        )

    @app.api_route("/api/v1/businesses", methods=["POST"])
    async def proxy_businesses_root(request: Request):
        return await proxy_request(clients.listings_client, "/businesses", request)

    @app.api_route("/api/v1/businesses/{path:path}", methods=PROXY_METHODS)
    async def proxy_businesses(path: str, request: Request):
        """Proxy all /api/v1/businesses/* requests to listings service."""
        return await proxy_request(
            clients.listings_client, f"/businesses/{path}", request
        )

    # ==================================================================
    # ORDERS SERVICE PROXY
    # ==================================================================
    @app.api_route("/api/v1/orders", methods=["GET", "POST"])
    @limiter.limit(settings.CHECKOUT_RATE_LIMIT, methods=["POST"])
    async def proxy_orders_root(request: Request):
        """Checkout and order history. Checkout is rate limited per client."""
        return await proxy_request(clients.orders_client, "/orders", request)

    @app.api_route("/api/v1/orders/{path:path}", methods=PROXY_METHODS)
    async def proxy_orders(path: str, request: Request):
        """Proxy all /api/v1/orders/* requests to orders service."""
        return await proxy_request(clients.orders_client, f"/orders/{path}", request)

    @app.api_route("/api/v1/business/{path:path}", methods=["GET"])
    async def proxy_business_orders(path: str, request: Request):
        return await proxy_request(clients.orders_client, f"/business/{path}", request)

    @app.api_route("/api/v1/admin/orders/{path:path}", methods=PROXY_METHODS)
    async def proxy_admin_orders(path: str, request: Request):
        return await proxy_request(
            clients.orders_client, f"/admin/orders/{path}", request
        )

    @app.api_route("/api/v1/reviews", methods=["POST"])
    async def proxy_reviews_root(request: Request):
        return await proxy_request(clients.orders_client, "/reviews", request)

    @app.api_route("/api/v1/reviews/{path:path}", methods=PROXY_METHODS)
    async def proxy_reviews(path: str, request: Request):
        return await proxy_request(clients.orders_client, f"/reviews/{path}", request)

    @app.api_route("/api/v1/payments/{path:path}", methods=["POST"])
    async def proxy_payments(path: str, request: Request):
        """Paystack webhooks. The raw body is forwarded untouched."""
        return await proxy_request(
            clients.orders_client, f"/payments/{path}", request
        )

    # ==================================================================
    # WALLET SERVICE PROXY
    # ==================================================================
    @app.api_route("/api/v1/wallet/{path:path}", methods=PROXY_METHODS)
    async def proxy_wallet(path: str, request: Request):
        """Proxy all /api/v1/wallet/* requests to wallet service."""
        return await proxy_request(clients.wallet_client, f"/wallet/{path}", request)

    # ==================================================================
    # COMMUNICATIONS SERVICE PROXY
    # ==================================================================
    @app.api_route("/api/v1/notifications", methods=["GET"])
    async def proxy_notifications_root(request: Request):
        return await proxy_request(
            clients.communications_client, "/notifications", request
        )

    @app.api_route("/api/v1/notifications/{path:path}", methods=PROXY_METHODS)
    async def proxy_notifications(path: str, request: Request):
        """Proxy all /api/v1/notifications/* requests to communications service."""
        return await proxy_request(
            clients.communications_client, f"/notifications/{path}", request
        )

    return app


def _filter_service_headers(headers: httpx.Headers) -> list[tuple[str, str]]:
    """Strip hop-by-hop headers that FastAPI/starlette manages."""
    hop_by_hop = {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailers",
        "transfer-encoding",
        "upgrade",
        "content-length",
        "content-encoding",
        "host",
        "content-type",
    }
    return [(k, v) for k, v in headers.items() if k.lower() not in hop_by_hop]


async def proxy_request(client: clients.ServiceClient, path: str, request: Request):
    """Forward a request to a service and relay its response verbatim."""
    # Forward the body as raw bytes: re-serializing JSON would break
    # Paystack's x-paystack-signature check downstream.
    content_body = None
    if request.method in ("POST", "PATCH", "PUT"):
        content_body = await request.body() or None

    headers = {
        k: v
        for k, v in request.headers.items()
        if k.lower() not in ("content-length", "host")
    }
    if request.url.query:
        path = f"{path}?{request.url.query}"

    try:
        service_response = await client.request(
            request.method, path, content=content_body, headers=headers
        )
    except httpx.RequestError as e:
        logger.error("Upstream %s unreachable for %s: %s", client.base_url, path, e)
        raise HTTPException(status_code=503, detail="Service unavailable")

    forward_headers = dict(_filter_service_headers(service_response.headers))

    if service_response.status_code == 204:
        return Response(status_code=204, headers=forward_headers)

    content_type = service_response.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            return JSONResponse(
                content=service_response.json(),
                status_code=service_response.status_code,
                headers=forward_headers,
            )
        except ValueError:
            pass

    return Response(
        content=service_response.content,
        status_code=service_response.status_code,
        media_type=content_type or None,
        headers=forward_headers,
    )


app = create_app()
