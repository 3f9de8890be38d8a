"""Paystack webhook handler for order payments and wallet top-ups."""

import json

from fastapi import APIRouter, Depends, HTTPException, Request, status
from libs.common.currency import kobo_to_naira
from libs.common.errors import MarketplaceError
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.communications_service.services.notifier import Notifier, get_notifier
from services.orders_service.paystack_client import (
    PaymentGateway,
    get_payment_gateway,
)
from services.orders_service.services.order_workflow import handle_payment_webhook
from services.wallet_service.services.topup_service import confirm_topup
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/payments", tags=["payments"])
logger = get_logger(__name__)

TOPUP_EVENTS = {
    "charge.success": True,
    "charge.failed": False,
    "transaction.failed": False,
}


@router.post("/webhooks/paystack")
async def paystack_webhook(
    request: Request,
    db: AsyncSession = Depends(get_async_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    notifier: Notifier = Depends(get_notifier),
):
    """
    Paystack webhook endpoint (no auth; verified by x-paystack-signature).

    Always acknowledges once the signature checks out so Paystack stops
    retrying events we have already handled or cannot act on.
    """
    raw = await request.body()
    signature = request.headers.get("x-paystack-signature")
    if not gateway.verify_signature(raw, signature):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature"
        )

    try:
        payload = json.loads(raw.decode("utf-8") or "{}")
    except ValueError:
        raise HTTPException(status_code=400, detail="Malformed payload")

    event = payload.get("event")
    data = payload.get("data") or {}
    reference = data.get("reference")
    if not reference:
        return {"received": True}

    metadata = data.get("metadata") or {}
    amount = kobo_to_naira(int(data["amount"])) if data.get("amount") else None

    try:
        if metadata.get("type") == "wallet_topup":
            if event in TOPUP_EVENTS:
                await confirm_topup(
                    db,
                    reference,
                    success=TOPUP_EVENTS[event],
                    amount=amount,
                    failure_reason=data.get("gateway_response"),
                )
        else:
            await handle_payment_webhook(
                db,
                event,
                reference,
                metadata,
                amount,
                gateway=gateway,
                notifier=notifier,
            )
    except MarketplaceError as e:
        logger.warning(
            f"Webhook {event} for {reference} not applied: {e.message}",
            extra={"extra_fields": {"reference": reference, "event": event}},
        )
        await db.rollback()

    return {"received": True}
