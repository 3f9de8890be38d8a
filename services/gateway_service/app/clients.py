"""HTTP clients the gateway uses to reach the Looper services."""

from typing import Optional

import httpx
from libs.common.config import get_settings

settings = get_settings()


class ServiceClient:
    """Thin wrapper that forwards a request to one service and returns the raw response."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def request(
        self,
        method: str,
        path: str,
        *,
        content: Optional[bytes] = None,
        headers: Optional[dict] = None,
    ) -> httpx.Response:
        async with httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self.transport
        ) as client:
            return await client.request(
                method, path, content=content, headers=headers or {}
            )


listings_client = ServiceClient(settings.LISTINGS_SERVICE_URL)
orders_client = ServiceClient(settings.ORDERS_SERVICE_URL)
wallet_client = ServiceClient(settings.WALLET_SERVICE_URL)
communications_client = ServiceClient(settings.COMMUNICATIONS_SERVICE_URL)
