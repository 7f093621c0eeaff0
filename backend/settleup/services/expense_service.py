import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from settleup.models.expense import Expense
from settleup.schemas.expense import ExpenseSnapshot


def to_snapshot(expense: Expense) -> ExpenseSnapshot:
    return ExpenseSnapshot(
        id=expense.id,
        group_id=expense.group_id,
        payer_id=expense.payer_id,
        amount=expense.amount,
        shares={share.user_id: share.amount for share in expense.shares},
    )


async def list_expenses(db: AsyncSession, group_id: uuid.UUID) -> list[ExpenseSnapshot]:
    """Read API over the expense service's tables. Shares load via selectin."""
    result = await db.execute(
        select(Expense)
        .where(Expense.group_id == group_id)
        .order_by(Expense.created_at)
    )
    return [to_snapshot(e) for e in result.scalars().all()]
