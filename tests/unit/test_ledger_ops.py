"""Unit tests for the wallet and points ledgers.

Ledger writers only flush; each test commits where the caller would.
"""

import uuid
from decimal import Decimal

import pytest
from libs.common.errors import InsufficientPoints, InsufficientWalletBalance
from services.wallet_service.models import (
    PointsReason,
    TransactionDirection,
    TransactionType,
    WalletStatus,
)
from services.wallet_service.services.ledger_ops import (
    add_points,
    add_wallet_transaction,
    get_or_create_wallet,
    list_points_history,
    list_transactions,
    reconstruct_balances,
    record_meals_rescued,
)
from tests.factories import WalletFactory


def _user() -> str:
    return f"user-{uuid.uuid4().hex[:8]}"


async def _credit(db, user_id, amount, key=None):
    txn = await add_wallet_transaction(
        db,
        user_id=user_id,
        amount=Decimal(amount),
        transaction_type=TransactionType.TOPUP,
        source="test",
        description="Seed funds",
        idempotency_key=key,
    )
    await db.commit()
    return txn


# ---------------------------------------------------------------------------
# Wallet
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_get_or_create_wallet_is_idempotent(db_session):
    user_id = _user()

    first = await get_or_create_wallet(db_session, user_id)
    second = await get_or_create_wallet(db_session, user_id)

    assert first.id == second.id
    assert first.balance == 0
    assert first.points_balance == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_credit_then_debit_records_snapshots(db_session):
    user_id = _user()
    await _credit(db_session, user_id, "1000")

    txn = await add_wallet_transaction(
        db_session,
        user_id=user_id,
        amount=Decimal("-250.50"),
        transaction_type=TransactionType.PURCHASE,
        source="order",
        description="Lunch",
    )
    await db_session.commit()

    assert txn.direction == TransactionDirection.DEBIT
    assert txn.amount == Decimal("250.50")
    assert txn.balance_before == Decimal("1000.00")
    assert txn.balance_after == Decimal("749.50")
    assert txn.signed_amount == Decimal("-250.50")

    wallet = await get_or_create_wallet(db_session, user_id)
    assert wallet.balance == Decimal("749.50")
    assert wallet.lifetime_credited == Decimal("1000.00")
    assert wallet.lifetime_debited == Decimal("250.50")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_debit_beyond_balance_is_refused(db_session):
    user_id = _user()
    await _credit(db_session, user_id, "100")

    with pytest.raises(InsufficientWalletBalance):
        await add_wallet_transaction(
            db_session,
            user_id=user_id,
            amount=Decimal("-100.01"),
            transaction_type=TransactionType.PURCHASE,
            source="order",
            description="Too much",
        )

    assert len(await list_transactions(db_session, user_id)) == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_frozen_wallet_accepts_credits_but_not_debits(db_session):
    wallet = WalletFactory.create(
        balance=Decimal("500.00"),
        lifetime_credited=Decimal("500.00"),
        status=WalletStatus.FROZEN,
    )
    db_session.add(wallet)
    await db_session.commit()

    with pytest.raises(InsufficientWalletBalance):
        await add_wallet_transaction(
            db_session,
            user_id=wallet.user_id,
            amount=Decimal("-10"),
            transaction_type=TransactionType.PURCHASE,
            source="order",
            description="Blocked",
        )

    refund = await add_wallet_transaction(
        db_session,
        user_id=wallet.user_id,
        amount=Decimal("10"),
        transaction_type=TransactionType.REFUND,
        source="order",
        description="Refund",
    )
    assert refund.balance_after == Decimal("510.00")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_wallet_idempotency_key_replays(db_session):
    user_id = _user()

    first = await _credit(db_session, user_id, "300", key="topup-abc")
    second = await _credit(db_session, user_id, "300", key="topup-abc")

    assert first.id == second.id
    wallet = await get_or_create_wallet(db_session, user_id)
    assert wallet.balance == Decimal("300.00")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_zero_amounts_are_rejected(db_session):
    with pytest.raises(ValueError):
        await add_wallet_transaction(
            db_session,
            user_id=_user(),
            amount=0,
            transaction_type=TransactionType.ADMIN_ADJUSTMENT,
            source="admin",
            description="noop",
        )
    with pytest.raises(ValueError):
        await add_points(
            db_session,
            user_id=_user(),
            delta=0,
            reason=PointsReason.ADMIN_ADJUSTMENT,
        )


# ---------------------------------------------------------------------------
# Points
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_points_award_and_spend(db_session):
    user_id = _user()

    await add_points(
        db_session, user_id=user_id, delta=120, reason=PointsReason.ORDER_COMPLETION
    )
    spend = await add_points(
        db_session, user_id=user_id, delta=-50, reason=PointsReason.POINTS_REDEMPTION
    )
    await db_session.commit()

    assert spend.balance_after == 70
    wallet = await get_or_create_wallet(db_session, user_id)
    assert wallet.points_balance == 70
    assert wallet.lifetime_points_earned == 120
    assert [e.points_change for e in await list_points_history(db_session, user_id)]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_overspending_points_writes_nothing(db_session):
    user_id = _user()
    await add_points(
        db_session, user_id=user_id, delta=30, reason=PointsReason.ORDER_COMPLETION
    )
    await db_session.commit()

    with pytest.raises(InsufficientPoints):
        await add_points(
            db_session,
            user_id=user_id,
            delta=-31,
            reason=PointsReason.POINTS_REDEMPTION,
        )

    history = await list_points_history(db_session, user_id)
    assert [entry.points_change for entry in history] == [30]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_points_idempotency_key_credits_once(db_session):
    user_id = _user()

    for _ in range(3):
        await add_points(
            db_session,
            user_id=user_id,
            delta=100,
            reason=PointsReason.ORDER_COMPLETION,
            idempotency_key="order-complete-xyz",
        )
    await db_session.commit()

    wallet = await get_or_create_wallet(db_session, user_id)
    assert wallet.points_balance == 100


@pytest.mark.asyncio
@pytest.mark.unit
async def test_reversal_does_not_count_as_earned(db_session):
    user_id = _user()
    await add_points(
        db_session, user_id=user_id, delta=40, reason=PointsReason.REDEMPTION_REVERSAL
    )
    await db_session.commit()

    wallet = await get_or_create_wallet(db_session, user_id)
    assert wallet.points_balance == 40
    assert wallet.lifetime_points_earned == 0


# ---------------------------------------------------------------------------
# Reconstruction
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cached_balances_match_ledger_sums(db_session):
    user_id = _user()
    await _credit(db_session, user_id, "2000")
    for amount in ("-450.25", "-99.75", "120"):
        await add_wallet_transaction(
            db_session,
            user_id=user_id,
            amount=Decimal(amount),
            transaction_type=TransactionType.PURCHASE
            if amount.startswith("-")
            else TransactionType.REFUND,
            source="order",
            description="mixed",
        )
    for delta in (200, -75, 15):
        await add_points(
            db_session,
            user_id=user_id,
            delta=delta,
            reason=PointsReason.ORDER_COMPLETION
            if delta > 0
            else PointsReason.POINTS_REDEMPTION,
        )
    await record_meals_rescued(db_session, user_id, 3)
    await db_session.commit()

    snapshot = await reconstruct_balances(db_session, user_id)

    assert snapshot.consistent
    assert snapshot.ledger_balance == Decimal("1570.00")
    assert snapshot.ledger_points == 140
    wallet = await get_or_create_wallet(db_session, user_id)
    assert wallet.total_meals_rescued == 3
