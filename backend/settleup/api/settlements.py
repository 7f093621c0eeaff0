import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from settleup.core.auth import get_current_user
from settleup.core.database import get_db
from settleup.models.user import User
from settleup.schemas.settlement import (
    PaymentClaimCreate, PaymentResponse, SettlementCreate, SettlementResponse, SettlementSummary,
)
from settleup.services.group_service import ensure_member
from settleup.services.settlement_service import (
    SettlementFilter, SettlementSort, create_settlement, force_mark_settled, get_settlement,
    list_settlements, record_payment_claim, send_reminder,
)
from settleup.services.stats_service import Period, get_settlement_summary

router = APIRouter(tags=["settlements"])


@router.post("/api/groups/{group_id}/settlements", response_model=SettlementResponse, status_code=201)
async def create(
    group_id: uuid.UUID,
    body: SettlementCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Create a settlement, either manually or by accepting a suggestion."""
    await ensure_member(db, group_id, user.id)
    return await create_settlement(
        db, group_id, body.from_user_id, body.to_user_id, body.amount,
        expense_ids=body.expense_ids, due_date=body.due_date, created_by=user.id,
    )


@router.get("/api/groups/{group_id}/settlements", response_model=list[SettlementResponse])
async def list_group_settlements(
    group_id: uuid.UUID,
    status: SettlementFilter = Query(default=SettlementFilter.all),
    sort: SettlementSort = Query(default=SettlementSort.date),
    mine: bool = Query(default=False),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await ensure_member(db, group_id, user.id)
    return await list_settlements(db, group_id, status, sort, user_id=user.id if mine else None)


@router.get("/api/groups/{group_id}/settlements/summary", response_model=SettlementSummary)
async def summary(
    group_id: uuid.UUID,
    period: Period = Query(default=Period.month),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await ensure_member(db, group_id, user.id)
    return await get_settlement_summary(db, group_id, user.id, period)


@router.get("/api/settlements/{settlement_id}", response_model=SettlementResponse)
async def get(
    settlement_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    settlement = await get_settlement(db, settlement_id)
    await ensure_member(db, settlement.group_id, user.id)
    return settlement


@router.post("/api/settlements/{settlement_id}/payments", response_model=PaymentResponse, status_code=201)
async def claim_payment(
    settlement_id: uuid.UUID,
    body: PaymentClaimCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await record_payment_claim(
        db, settlement_id, user.id, body.amount, body.method, body.reference, body.note,
    )


@router.post("/api/settlements/{settlement_id}/force-settle", response_model=SettlementResponse)
async def force_settle(
    settlement_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await force_mark_settled(db, settlement_id, user.id)


@router.post("/api/settlements/{settlement_id}/remind", response_model=SettlementResponse)
async def remind(
    settlement_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await send_reminder(db, settlement_id, user.id)
