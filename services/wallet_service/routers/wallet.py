"""Consumer wallet endpoints: balances, history and top-ups."""

from fastapi import APIRouter, Depends, HTTPException, Query
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.errors import NotAuthorized
from libs.db.session import get_async_db
from services.orders_service.paystack_client import (
    PaymentGateway,
    get_payment_gateway,
)
from services.wallet_service.schemas import (
    PointsEntryResponse,
    TopupCreate,
    TopupResponse,
    TransactionResponse,
    WalletResponse,
)
from services.wallet_service.services import ledger_ops, topup_service
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/wallet", tags=["wallet"])


@router.get("/me", response_model=WalletResponse)
async def get_my_wallet(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Return the caller's wallet, creating an empty one on first access."""
    wallet = await ledger_ops.get_or_create_wallet(db, current_user.user_id)
    await db.commit()
    return wallet


@router.get("/transactions", response_model=list[TransactionResponse])
async def list_my_transactions(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await ledger_ops.list_transactions(
        db, current_user.user_id, skip=skip, limit=limit
    )


@router.get("/points", response_model=list[PointsEntryResponse])
async def list_my_points(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await ledger_ops.list_points_history(
        db, current_user.user_id, skip=skip, limit=limit
    )


@router.post("/topup", response_model=TopupResponse, status_code=201)
async def start_topup(
    payload: TopupCreate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    payer_email = payload.payer_email or current_user.email
    if not payer_email:
        raise HTTPException(status_code=400, detail="An email address is required")
    return await topup_service.initialize_topup(
        db,
        user_id=current_user.user_id,
        amount=payload.amount,
        payer_email=str(payer_email),
        gateway=gateway,
    )


@router.post("/topup/{reference}/verify", response_model=TopupResponse)
async def verify_topup(
    reference: str,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    topup = await topup_service.get_topup(db, reference)
    if topup.user_id != current_user.user_id and not current_user.is_admin:
        raise NotAuthorized(reference=reference)
    return await topup_service.verify_topup(db, reference, gateway)
