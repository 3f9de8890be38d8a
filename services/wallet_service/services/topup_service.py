"""Topup flow: initiating Paystack payments and confirming wallet credits."""

import secrets
import string
from decimal import Decimal
from typing import Optional

from libs.common.config import get_settings
from libs.common.currency import to_money
from libs.common.datetime_utils import utc_now
from libs.common.errors import (
    InvalidTopup,
    PaymentInitializationFailed,
    PaymentVerificationFailed,
    TopupNotFound,
)
from libs.common.logging import get_logger
from services.orders_service.paystack_client import PaymentGateway, PaystackError
from services.wallet_service.models import (
    TopupStatus,
    TransactionType,
    WalletStatus,
    WalletTopup,
)
from services.wallet_service.services.ledger_ops import (
    add_wallet_transaction,
    get_or_create_wallet,
)
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

TOPUP_METADATA_TYPE = "wallet_topup"


def _generate_topup_reference() -> str:
    """Generate a unique topup reference like TOP-A1B2C3D4."""
    alphabet = string.ascii_uppercase + string.digits
    return "TOP-" + "".join(secrets.choice(alphabet) for _ in range(8))


async def get_topup(db: AsyncSession, reference: str) -> WalletTopup:
    result = await db.execute(
        select(WalletTopup).where(WalletTopup.reference == reference)
    )
    topup = result.scalar_one_or_none()
    if not topup:
        raise TopupNotFound(reference=reference)
    return topup


async def initialize_topup(
    db: AsyncSession,
    *,
    user_id: str,
    amount: Decimal,
    payer_email: str,
    gateway: PaymentGateway,
) -> WalletTopup:
    """Start a wallet top-up.

    1. Validate amount bounds and wallet status
    2. Create WalletTopup record (status: pending)
    3. Initialize the Paystack collection
    4. Store the authorization URL (status: processing)
    """
    settings = get_settings()
    amount = to_money(amount)
    if amount < settings.WALLET_TOPUP_MIN_NGN or amount > settings.WALLET_TOPUP_MAX_NGN:
        raise InvalidTopup(
            f"Top-ups must be between NGN {settings.WALLET_TOPUP_MIN_NGN} "
            f"and NGN {settings.WALLET_TOPUP_MAX_NGN}",
            amount=amount,
        )

    wallet = await get_or_create_wallet(db, user_id)
    if wallet.status != WalletStatus.ACTIVE:
        raise InvalidTopup("Wallet temporarily suspended", user_id=user_id)

    topup = WalletTopup(
        wallet_id=wallet.id,
        user_id=user_id,
        reference=_generate_topup_reference(),
        amount=amount,
        status=TopupStatus.PENDING,
    )
    db.add(topup)
    await db.commit()

    try:
        init = await gateway.initialize_collection(
            reference=topup.reference,
            amount=amount,
            payer_email=payer_email,
            metadata={
                "type": TOPUP_METADATA_TYPE,
                "topup_id": str(topup.id),
                "wallet_id": str(wallet.id),
            },
            callback_url=(
                f"{settings.FRONTEND_URL.rstrip('/')}/wallet?topup={topup.reference}"
            ),
        )
    except Exception as e:
        logger.error("Failed to initialize Paystack for topup %s: %s", topup.id, e)
        topup.status = TopupStatus.FAILED
        topup.failed_at = utc_now()
        topup.failure_reason = "Payment initialization failed"
        await db.commit()
        raise PaymentInitializationFailed(reference=topup.reference) from e

    topup.authorization_url = init.authorization_url
    topup.status = TopupStatus.PROCESSING
    await db.commit()

    logger.info(
        "Initiated topup %s: NGN %s for user %s", topup.reference, amount, user_id
    )
    return topup


async def confirm_topup(
    db: AsyncSession,
    reference: str,
    *,
    success: bool,
    amount: Optional[Decimal] = None,
    failure_reason: Optional[str] = None,
) -> WalletTopup:
    """Apply a collection result to a top-up. Credits the wallet at most once."""
    topup = await get_topup(db, reference)

    if topup.status == TopupStatus.COMPLETED:
        logger.info("Topup %s already completed, skipping", reference)
        return topup

    if not success:
        topup.status = TopupStatus.FAILED
        topup.failed_at = utc_now()
        topup.failure_reason = failure_reason or "Payment failed"
        await db.commit()
        return topup

    if amount is not None and to_money(amount) < to_money(topup.amount):
        raise PaymentVerificationFailed(
            "Paid amount is less than the top-up amount", reference=reference
        )

    await add_wallet_transaction(
        db,
        user_id=topup.user_id,
        amount=topup.amount,
        transaction_type=TransactionType.TOPUP,
        source="paystack",
        description=f"Wallet top-up of NGN {topup.amount}",
        idempotency_key=f"topup-{topup.id}",
        reference=reference,
    )
    topup.status = TopupStatus.COMPLETED
    topup.completed_at = utc_now()
    await db.commit()

    logger.info("Topup %s completed: NGN %s", reference, topup.amount)
    return topup


async def verify_topup(
    db: AsyncSession, reference: str, gateway: PaymentGateway
) -> WalletTopup:
    """Poll Paystack for a top-up's status (fallback when the webhook is late)."""
    topup = await get_topup(db, reference)
    if topup.status == TopupStatus.COMPLETED:
        return topup

    try:
        result = await gateway.verify_collection(reference)
    except PaystackError as e:
        logger.error("Paystack verify failed for topup %s: %s", reference, e.message)
        raise PaymentVerificationFailed(reference=reference) from e

    if result.status in ("abandoned", "ongoing", "pending", "processing"):
        return topup
    return await confirm_topup(
        db,
        reference,
        success=result.success,
        amount=result.amount,
        failure_reason=f"Payment status: {result.status}",
    )
