"""Unit tests for wallet top-ups."""

import re
from decimal import Decimal

import pytest
from libs.common.errors import (
    InvalidTopup,
    PaymentInitializationFailed,
    PaymentVerificationFailed,
    TopupNotFound,
)
from services.orders_service.paystack_client import CollectionResult
from services.wallet_service.models import TopupStatus, WalletStatus, WalletTopup
from services.wallet_service.services.ledger_ops import get_or_create_wallet
from services.wallet_service.services.topup_service import (
    TOPUP_METADATA_TYPE,
    confirm_topup,
    get_topup,
    initialize_topup,
    verify_topup,
)
from sqlalchemy import select
from tests.factories import WalletFactory

USER = "consumer-topup"
EMAIL = "topup@test.looper.ng"


async def _start(db, gateway, amount="5000"):
    return await initialize_topup(
        db, user_id=USER, amount=Decimal(amount), payer_email=EMAIL, gateway=gateway
    )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_initialize_starts_collection(db_session, gateway):
    topup = await _start(db_session, gateway)

    assert re.fullmatch(r"TOP-[A-Z0-9]{8}", topup.reference)
    assert topup.status == TopupStatus.PROCESSING
    assert topup.authorization_url.endswith(topup.reference)
    sent = gateway.initialized[topup.reference]
    assert sent["amount"] == Decimal("5000.00")
    assert sent["metadata"]["type"] == TOPUP_METADATA_TYPE
    assert sent["metadata"]["topup_id"] == str(topup.id)


@pytest.mark.asyncio
@pytest.mark.unit
@pytest.mark.parametrize("amount", ["99.99", "100000.01"])
async def test_amount_outside_bounds_is_rejected(db_session, gateway, amount):
    with pytest.raises(InvalidTopup):
        await _start(db_session, gateway, amount)

    assert gateway.initialized == {}


@pytest.mark.asyncio
@pytest.mark.unit
async def test_frozen_wallet_cannot_top_up(db_session, gateway):
    db_session.add(WalletFactory.create(user_id=USER, status=WalletStatus.FROZEN))
    await db_session.commit()

    with pytest.raises(InvalidTopup):
        await _start(db_session, gateway)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_initialize_failure_marks_topup_failed(db_session, gateway):
    gateway.fail_initialize = True

    with pytest.raises(PaymentInitializationFailed) as exc_info:
        await _start(db_session, gateway)

    topup = await get_topup(db_session, exc_info.value.context["reference"])
    assert topup.status == TopupStatus.FAILED
    assert topup.failed_at is not None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_confirm_credits_wallet_once(db_session, gateway):
    topup = await _start(db_session, gateway)

    await confirm_topup(db_session, topup.reference, success=True, amount=Decimal("5000"))
    again = await confirm_topup(db_session, topup.reference, success=True)

    assert again.status == TopupStatus.COMPLETED
    assert again.completed_at is not None
    wallet = await get_or_create_wallet(db_session, USER)
    assert wallet.balance == Decimal("5000.00")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_confirm_failure_records_reason(db_session, gateway):
    topup = await _start(db_session, gateway)

    failed = await confirm_topup(
        db_session, topup.reference, success=False, failure_reason="Declined"
    )

    assert failed.status == TopupStatus.FAILED
    assert failed.failure_reason == "Declined"
    assert (await get_or_create_wallet(db_session, USER)).balance == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_short_payment_is_not_credited(db_session, gateway):
    topup = await _start(db_session, gateway)

    with pytest.raises(PaymentVerificationFailed):
        await confirm_topup(
            db_session, topup.reference, success=True, amount=Decimal("4999.99")
        )

    assert (await get_topup(db_session, topup.reference)).status == (
        TopupStatus.PROCESSING
    )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_verify_polls_gateway(db_session, gateway):
    topup = await _start(db_session, gateway, "2500")

    verified = await verify_topup(db_session, topup.reference, gateway)

    assert verified.status == TopupStatus.COMPLETED
    assert (await get_or_create_wallet(db_session, USER)).balance == Decimal("2500.00")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_verify_leaves_abandoned_checkout_open(db_session, gateway):
    topup = await _start(db_session, gateway)
    gateway.verify_results[topup.reference] = CollectionResult(
        reference=topup.reference,
        success=False,
        amount=Decimal("0.00"),
        status="abandoned",
    )

    result = await verify_topup(db_session, topup.reference, gateway)

    assert result.status == TopupStatus.PROCESSING


@pytest.mark.asyncio
@pytest.mark.unit
async def test_unknown_reference(db_session, gateway):
    with pytest.raises(TopupNotFound):
        await verify_topup(db_session, "TOP-NOPE0000", gateway)

    rows = (await db_session.execute(select(WalletTopup))).scalars().all()
    assert rows == []
