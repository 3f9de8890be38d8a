"""Integration tests for the Paystack webhook: order payments and top-ups."""

import json
from decimal import Decimal

import pytest
from services.orders_service.services.order_workflow import CartLine, create_order
from tests.conftest import sign_webhook
from tests.factories import seed_listing

WEBHOOK_URL = "/payments/webhooks/paystack"


async def _post_event(client, payload: dict, signature: str = None):
    body = json.dumps(payload).encode()
    return await client.post(
        WEBHOOK_URL,
        content=body,
        headers={
            "content-type": "application/json",
            "x-paystack-signature": signature or sign_webhook(body),
        },
    )


def _charge(event: str, reference: str, amount_kobo: int, metadata: dict, **data):
    return {
        "event": event,
        "data": {
            "reference": reference,
            "amount": amount_kobo,
            "metadata": metadata,
            **data,
        },
    }


async def _pending_order(db, gateway, notifier):
    _, listing = await seed_listing(db)
    return await create_order(
        db,
        "consumer-1",
        [CartLine(listing.id, 1)],
        gateway=gateway,
        notifier=notifier,
        payer_email="consumer-1@test.looper.ng",
    )


# ---------------------------------------------------------------------------
# Signature
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_unsigned_webhook_is_rejected(orders_client):
    response = await _post_event(
        orders_client, {"event": "charge.success", "data": {}}, signature="bad"
    )

    assert response.status_code == 401


@pytest.mark.asyncio
@pytest.mark.integration
async def test_event_without_reference_is_acknowledged(orders_client):
    response = await _post_event(orders_client, {"event": "transfer.success"})

    assert response.status_code == 200
    assert response.json() == {"received": True}


# ---------------------------------------------------------------------------
# Order payments
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_charge_success_pays_order_once(
    orders_client, db_session, gateway, notifier
):
    order = await _pending_order(db_session, gateway, notifier)
    payload = _charge(
        "charge.success",
        order.payment_reference,
        100000,
        {"type": "order", "order_id": str(order.id)},
    )

    first = await _post_event(orders_client, payload)
    replay = await _post_event(orders_client, payload)

    assert first.status_code == replay.status_code == 200
    fetched = (await orders_client.get(f"/orders/{order.id}")).json()
    assert fetched["status"] == "paid"
    assert Decimal(str(fetched["paid_amount"])) == Decimal("1000.00")
    assert notifier.titles_for("consumer-1").count("Payment confirmed") == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_short_charge_is_not_applied(orders_client, db_session, gateway, notifier):
    order = await _pending_order(db_session, gateway, notifier)

    response = await _post_event(
        orders_client,
        _charge(
            "charge.success",
            order.payment_reference,
            50000,
            {"type": "order", "order_id": str(order.id)},
        ),
    )

    assert response.status_code == 200
    fetched = (await orders_client.get(f"/orders/{order.id}")).json()
    assert fetched["status"] == "pending_payment"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_unknown_order_reference_is_acknowledged(orders_client):
    response = await _post_event(
        orders_client, _charge("charge.success", "looper_unknown", 100000, {})
    )

    assert response.status_code == 200
    assert response.json() == {"received": True}


# ---------------------------------------------------------------------------
# Wallet top-ups
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_topup_webhook_credits_wallet_once(orders_client, wallet_client):
    started = await wallet_client.post("/wallet/topup", json={"amount": "5000"})
    assert started.status_code == 201, started.text
    reference = started.json()["reference"]
    payload = _charge(
        "charge.success", reference, 500000, {"type": "wallet_topup"}
    )

    await _post_event(orders_client, payload)
    await _post_event(orders_client, payload)

    wallet = (await wallet_client.get("/wallet/me")).json()
    assert Decimal(str(wallet["balance"])) == Decimal("5000.00")
    transactions = (await wallet_client.get("/wallet/transactions")).json()
    assert len(transactions) == 1
    assert transactions[0]["reference"] == reference


@pytest.mark.asyncio
@pytest.mark.integration
async def test_failed_topup_is_recorded(orders_client, wallet_client, db_session):
    from services.wallet_service.services.topup_service import get_topup

    reference = (
        await wallet_client.post("/wallet/topup", json={"amount": "2000"})
    ).json()["reference"]

    await _post_event(
        orders_client,
        _charge(
            "charge.failed",
            reference,
            200000,
            {"type": "wallet_topup"},
            gateway_response="Declined",
        ),
    )

    topup = await get_topup(db_session, reference)
    await db_session.refresh(topup)
    assert topup.status.value == "failed"
    assert topup.failure_reason == "Declined"
