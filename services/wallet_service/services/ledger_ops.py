"""Core ledger operations: wallet balance and loyalty points.

Both ledgers follow the same write pattern:

1. Check idempotency: return the existing entry if the key was already used
2. SELECT FOR UPDATE on the wallet row
3. Validate the resulting balance is non-negative
4. Append the ledger row with balance snapshots
5. Update the cached balance on the wallet

Writers flush but never commit: the caller owns the transaction so a ledger
entry lands atomically with the order change that caused it.
"""

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from libs.common.currency import to_money
from libs.common.datetime_utils import utc_now
from libs.common.errors import (
    InsufficientPoints,
    InsufficientWalletBalance,
    WalletNotFound,
)
from libs.common.logging import get_logger
from services.wallet_service.models import (
    PointsEntry,
    PointsReason,
    TransactionDirection,
    TransactionType,
    Wallet,
    WalletStatus,
    WalletTransaction,
)
from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

ZERO = Decimal("0.00")


# ---------------------------------------------------------------------------
# Wallet lookup / creation
# ---------------------------------------------------------------------------


def _new_wallet(user_id: str) -> Wallet:
    return Wallet(
        user_id=user_id,
        balance=ZERO,
        points_balance=0,
        total_meals_rescued=0,
        lifetime_credited=ZERO,
        lifetime_debited=ZERO,
        lifetime_points_earned=0,
        status=WalletStatus.ACTIVE,
    )


async def get_or_create_wallet(db: AsyncSession, user_id: str) -> Wallet:
    """Return the user's wallet, creating an empty one on first use."""
    result = await db.execute(select(Wallet).where(Wallet.user_id == user_id))
    wallet = result.scalar_one_or_none()
    if wallet:
        return wallet

    wallet = _new_wallet(user_id)
    db.add(wallet)
    await db.flush()
    logger.info("Created wallet %s for user %s", wallet.id, user_id)
    return wallet


async def get_wallet(db: AsyncSession, user_id: str) -> Wallet:
    """Get wallet by user id. Raises WalletNotFound if missing."""
    result = await db.execute(select(Wallet).where(Wallet.user_id == user_id))
    wallet = result.scalar_one_or_none()
    if not wallet:
        raise WalletNotFound(user_id=user_id)
    return wallet


async def lock_wallet(db: AsyncSession, user_id: str) -> Wallet:
    """Row-lock the wallet and reload it, discarding any copy already in the session."""
    result = await db.execute(
        select(Wallet)
        .where(Wallet.user_id == user_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    wallet = result.scalar_one_or_none()
    if wallet is None:
        wallet = await get_or_create_wallet(db, user_id)
    return wallet


# ---------------------------------------------------------------------------
# Points ledger
# ---------------------------------------------------------------------------


async def add_points(
    db: AsyncSession,
    *,
    user_id: str,
    delta: int,
    reason: PointsReason,
    order_id: Optional[uuid.UUID] = None,
    idempotency_key: Optional[str] = None,
) -> PointsEntry:
    """Append a signed points entry and move the cached points balance.

    Raises InsufficientPoints if the balance would go negative; in that case
    nothing is written.
    """
    if delta == 0:
        raise ValueError("Points delta must be non-zero")

    if idempotency_key:
        result = await db.execute(
            select(PointsEntry).where(PointsEntry.idempotency_key == idempotency_key)
        )
        existing = result.scalar_one_or_none()
        if existing:
            logger.info(
                "Idempotent replay for points key=%s -> entry=%s",
                idempotency_key,
                existing.id,
            )
            return existing

    wallet = await lock_wallet(db, user_id)

    new_balance = wallet.points_balance + delta
    if new_balance < 0:
        raise InsufficientPoints(
            f"You need {-delta} points but have {wallet.points_balance}",
            user_id=user_id,
            order_id=order_id,
        )

    entry = PointsEntry(
        wallet_id=wallet.id,
        user_id=user_id,
        idempotency_key=idempotency_key or f"points-{uuid.uuid4()}",
        points_change=delta,
        reason=reason,
        order_id=order_id,
        balance_after=new_balance,
    )
    db.add(entry)

    wallet.points_balance = new_balance
    if delta > 0 and reason != PointsReason.REDEMPTION_REVERSAL:
        wallet.lifetime_points_earned += delta
    wallet.updated_at = utc_now()
    await db.flush()

    logger.info(
        "Points %+d for user %s (%s), balance -> %d",
        delta,
        user_id,
        reason.value,
        new_balance,
    )
    return entry


# ---------------------------------------------------------------------------
# Wallet ledger
# ---------------------------------------------------------------------------


async def add_wallet_transaction(
    db: AsyncSession,
    *,
    user_id: str,
    amount,
    transaction_type: TransactionType,
    source: str,
    description: str,
    order_id: Optional[uuid.UUID] = None,
    idempotency_key: Optional[str] = None,
    reference: Optional[str] = None,
) -> WalletTransaction:
    """Append a wallet ledger row for a signed amount (negative = debit).

    Debits require an active wallet and sufficient balance. Frozen wallets
    can still receive credits (refunds).
    """
    signed = to_money(amount)
    if signed == 0:
        raise ValueError("Wallet transaction amount must be non-zero")

    if idempotency_key:
        result = await db.execute(
            select(WalletTransaction).where(
                WalletTransaction.idempotency_key == idempotency_key
            )
        )
        existing = result.scalar_one_or_none()
        if existing:
            logger.info(
                "Idempotent replay for key=%s -> txn=%s", idempotency_key, existing.id
            )
            return existing

    wallet = await lock_wallet(db, user_id)

    direction = (
        TransactionDirection.CREDIT if signed > 0 else TransactionDirection.DEBIT
    )
    magnitude = abs(signed)
    balance_before = to_money(wallet.balance)

    if direction == TransactionDirection.DEBIT:
        if wallet.status != WalletStatus.ACTIVE:
            raise InsufficientWalletBalance(
                "Wallet temporarily suspended", user_id=user_id
            )
        if balance_before < magnitude:
            raise InsufficientWalletBalance(
                f"You need NGN {magnitude} but have NGN {balance_before}",
                user_id=user_id,
                order_id=order_id,
            )

    balance_after = balance_before + signed

    txn = WalletTransaction(
        wallet_id=wallet.id,
        user_id=user_id,
        idempotency_key=idempotency_key or f"wallet-{uuid.uuid4()}",
        transaction_type=transaction_type,
        direction=direction,
        amount=magnitude,
        balance_before=balance_before,
        balance_after=balance_after,
        source=source,
        description=description,
        order_id=order_id,
        reference=reference,
    )
    db.add(txn)

    wallet.balance = balance_after
    if direction == TransactionDirection.CREDIT:
        wallet.lifetime_credited = to_money(wallet.lifetime_credited) + magnitude
    else:
        wallet.lifetime_debited = to_money(wallet.lifetime_debited) + magnitude
    wallet.updated_at = utc_now()
    await db.flush()

    logger.info(
        "%s %s on wallet %s (key=%s), balance %s -> %s",
        direction.value.capitalize(),
        magnitude,
        wallet.id,
        txn.idempotency_key,
        balance_before,
        balance_after,
    )
    return txn


async def record_meals_rescued(db: AsyncSession, user_id: str, count: int) -> Wallet:
    """Bump the consumer's meals-rescued counter after a completed pickup."""
    wallet = await lock_wallet(db, user_id)
    wallet.total_meals_rescued += count
    wallet.updated_at = utc_now()
    await db.flush()
    return wallet


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerSnapshot:
    user_id: str
    cached_balance: Decimal
    ledger_balance: Decimal
    cached_points: int
    ledger_points: int

    @property
    def consistent(self) -> bool:
        return (
            self.cached_balance == self.ledger_balance
            and self.cached_points == self.ledger_points
        )


async def reconstruct_balances(db: AsyncSession, user_id: str) -> LedgerSnapshot:
    """Recompute both balances from their ledgers and compare with the caches."""
    wallet = await get_wallet(db, user_id)

    signed_amount = case(
        (
            WalletTransaction.direction == TransactionDirection.DEBIT,
            -WalletTransaction.amount,
        ),
        else_=WalletTransaction.amount,
    )
    ledger_balance = await db.scalar(
        select(func.coalesce(func.sum(signed_amount), 0)).where(
            WalletTransaction.wallet_id == wallet.id
        )
    )
    ledger_points = await db.scalar(
        select(func.coalesce(func.sum(PointsEntry.points_change), 0)).where(
            PointsEntry.wallet_id == wallet.id
        )
    )
    return LedgerSnapshot(
        user_id=user_id,
        cached_balance=to_money(wallet.balance),
        ledger_balance=to_money(ledger_balance),
        cached_points=wallet.points_balance,
        ledger_points=int(ledger_points),
    )


async def list_transactions(
    db: AsyncSession, user_id: str, *, skip: int = 0, limit: int = 50
) -> list[WalletTransaction]:
    result = await db.execute(
        select(WalletTransaction)
        .where(WalletTransaction.user_id == user_id)
        .order_by(WalletTransaction.created_at.desc())
        .offset(skip)
        .limit(limit)
    )
    return list(result.scalars().all())


async def list_points_history(
    db: AsyncSession, user_id: str, *, skip: int = 0, limit: int = 50
) -> list[PointsEntry]:
    result = await db.execute(
        select(PointsEntry)
        .where(PointsEntry.user_id == user_id)
        .order_by(PointsEntry.created_at.desc())
        .offset(skip)
        .limit(limit)
    )
    return list(result.scalars().all())
