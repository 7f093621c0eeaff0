import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from settleup.models.settlement import OPEN_STATUSES, Settlement, SettlementStatus
from settleup.schemas.settlement import SettlementSummary


class Period(str, Enum):
    day = "1d"
    month = "1mo"
    year = "1yr"


def get_period_start(period: Period, now: datetime | None = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    if period == Period.day:
        return now - timedelta(days=1)
    elif period == Period.month:
        return now - timedelta(days=30)
    else:
        return now - timedelta(days=365)


def summarize_settlements(
    settlements: Iterable[Settlement],
    user_id: uuid.UUID,
    period: Period = Period.month,
    now: datetime | None = None,
) -> SettlementSummary:
    """
    Tracker figures for one user's view of a group. Everything is derived
    from the settlements themselves; amounts are minor units.
    """
    now = now or datetime.now(timezone.utc)
    since = get_period_start(period, now)
    summary = SettlementSummary(period=period.value)
    durations = []

    for s in settlements:
        if s.status in OPEN_STATUSES:
            summary.total_pending += s.remaining_amount
            if s.from_user == user_id:
                summary.total_owed += s.remaining_amount
            if s.to_user == user_id:
                summary.total_to_receive += s.remaining_amount
            if s.is_overdue(now.date()):
                summary.overdue_count += 1
        elif s.status == SettlementStatus.completed and s.completed_at is not None:
            if s.completed_at >= since:
                summary.completed_in_period += 1
            durations.append((s.completed_at - s.created_at).total_seconds() / 86400)

    if durations:
        summary.average_settlement_days = round(sum(durations) / len(durations), 1)
    return summary


async def get_settlement_summary(
    db: AsyncSession,
    group_id: uuid.UUID,
    user_id: uuid.UUID,
    period: Period = Period.month,
) -> SettlementSummary:
    result = await db.execute(select(Settlement).where(Settlement.group_id == group_id))
    return summarize_settlements(result.scalars().all(), user_id, period)
