import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from settleup.core.auth import get_current_user
from settleup.core.database import get_db
from settleup.models.user import User
from settleup.schemas.balance import BalanceEntry, SuggestionsResponse
from settleup.services.group_service import ensure_member
from settleup.services.ledger_service import compute_group_balances
from settleup.services.simplifier_service import suggest_settlements

router = APIRouter(prefix="/api/groups", tags=["balances"])


@router.get("/{group_id}/balances", response_model=list[BalanceEntry])
async def get_balances(
    group_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await ensure_member(db, group_id, user.id)
    return await compute_group_balances(db, group_id)


@router.get("/{group_id}/suggestions", response_model=SuggestionsResponse)
async def get_suggestions(
    group_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await ensure_member(db, group_id, user.id)
    return await suggest_settlements(db, group_id)
