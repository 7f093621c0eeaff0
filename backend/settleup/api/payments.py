import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from settleup.core.auth import get_current_user
from settleup.core.database import get_db
from settleup.models.user import User
from settleup.schemas.settlement import ConfirmRequest, PaymentResponse, RejectRequest, SettlementResponse
from settleup.services.confirmation_service import cancel_payment_claim, confirm_payment, reject_payment
from settleup.services.settlement_service import list_pending_confirmations

router = APIRouter(prefix="/api/payments", tags=["payments"])


@router.get("/pending", response_model=list[PaymentResponse])
async def pending_confirmations(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Payment claims waiting for the current user to confirm receipt."""
    return await list_pending_confirmations(db, user.id)


@router.post("/{payment_id}/confirm", response_model=SettlementResponse)
async def confirm(
    payment_id: uuid.UUID,
    body: ConfirmRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await confirm_payment(db, payment_id, user.id, body.message)


@router.post("/{payment_id}/reject", response_model=SettlementResponse)
async def reject(
    payment_id: uuid.UUID,
    body: RejectRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await reject_payment(db, payment_id, user.id, body.reason)


@router.post("/{payment_id}/cancel", response_model=PaymentResponse)
async def cancel(
    payment_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await cancel_payment_claim(db, payment_id, user.id)
