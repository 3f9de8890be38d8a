"""
Paystack API client for collections and refunds.

Provides async methods for:
- Initializing a hosted checkout (collection)
- Verifying a collection by reference
- Refunding a captured collection
- Verifying webhook signatures (HMAC-SHA512)

Amounts cross this boundary in Naira; conversion to kobo happens here.
"""

import hashlib
import hmac
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Protocol

import httpx
from libs.common.config import get_settings
from libs.common.currency import kobo_to_naira, naira_to_kobo
from libs.common.logging import get_logger

logger = get_logger(__name__)


@dataclass
class CollectionInit:
    """Result of initializing a collection."""

    reference: str
    authorization_url: Optional[str]
    access_code: Optional[str] = None


@dataclass
class CollectionResult:
    """Result of verifying a collection."""

    reference: str
    success: bool
    amount: Decimal  # Naira
    status: str  # success, failed, abandoned, ...
    metadata: dict = field(default_factory=dict)


class PaystackError(Exception):
    """Base exception for Paystack API errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_data: Optional[dict] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response_data = response_data or {}
        super().__init__(message)


class PaymentGateway(Protocol):
    async def initialize_collection(
        self,
        *,
        reference: str,
        amount: Decimal,
        payer_email: str,
        metadata: dict,
        callback_url: Optional[str] = None,
    ) -> CollectionInit: ...

    async def verify_collection(self, reference: str) -> CollectionResult: ...

    async def create_refund(
        self, reference: str, amount: Optional[Decimal] = None
    ) -> dict: ...

    def verify_signature(self, raw_body: bytes, signature: Optional[str]) -> bool: ...


class PaystackClient:
    """Async client for the Paystack Transaction and Refund APIs."""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.secret_key = (
            secret_key if secret_key is not None else settings.PAYSTACK_SECRET_KEY
        )
        self.base_url = (base_url or settings.PAYSTACK_API_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.PAYSTACK_TIMEOUT_SECONDS
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.secret_key)

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict] = None,
        json_data: Optional[dict] = None,
    ) -> dict:
        """Make an async request to the Paystack API."""
        if not self.enabled:
            raise PaystackError("Paystack is not configured")

        headers = {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.request(
                    method=method,
                    url=f"{self.base_url}{endpoint}",
                    headers=headers,
                    params=params,
                    json=json_data,
                )
        except httpx.HTTPError as e:
            raise PaystackError(f"Paystack unreachable: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {"message": response.text}

        if not response.is_success:
            logger.error("Paystack API error: %s - %s", response.status_code, data)
            raise PaystackError(
                message=data.get("message", "Unknown Paystack error"),
                status_code=response.status_code,
                response_data=data,
            )

        if not data.get("status"):
            raise PaystackError(
                message=data.get("message", "Paystack request failed"),
                response_data=data,
            )

        return data

    # =========================================================================
    # Collections
    # =========================================================================

    async def initialize_collection(
        self,
        *,
        reference: str,
        amount: Decimal,
        payer_email: str,
        metadata: dict,
        callback_url: Optional[str] = None,
    ) -> CollectionInit:
        """Start a hosted checkout for ``amount`` Naira."""
        payload = {
            "email": payer_email,
            "amount": naira_to_kobo(amount),
            "currency": "NGN",
            "reference": reference,
            "metadata": metadata,
        }
        if callback_url:
            payload["callback_url"] = callback_url

        data = await self._request("POST", "/transaction/initialize", json_data=payload)
        body = data.get("data") or {}
        return CollectionInit(
            reference=body.get("reference", reference),
            authorization_url=body.get("authorization_url"),
            access_code=body.get("access_code"),
        )

    async def verify_collection(self, reference: str) -> CollectionResult:
        data = await self._request("GET", f"/transaction/verify/{reference}")
        body = data.get("data") or {}
        status = body.get("status", "unknown")
        return CollectionResult(
            reference=body.get("reference", reference),
            success=status == "success",
            amount=kobo_to_naira(int(body.get("amount") or 0)),
            status=status,
            metadata=body.get("metadata") or {},
        )

    async def create_refund(
        self, reference: str, amount: Optional[Decimal] = None
    ) -> dict:
        """Refund a captured collection (full refund when ``amount`` is None)."""
        payload: dict = {"transaction": reference}
        if amount is not None:
            payload["amount"] = naira_to_kobo(amount)
        data = await self._request("POST", "/refund", json_data=payload)
        return data.get("data") or {}

    # =========================================================================
    # Webhooks
    # =========================================================================

    def verify_signature(self, raw_body: bytes, signature: Optional[str]) -> bool:
        if not self.enabled or not signature:
            return False
        digest = hmac.new(
            self.secret_key.encode("utf-8"), raw_body, hashlib.sha512
        ).hexdigest()
        return hmac.compare_digest(digest, signature)


def get_payment_gateway() -> PaystackClient:
    """FastAPI dependency returning the configured payment gateway."""
    return PaystackClient()
