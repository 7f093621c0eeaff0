import logging
from datetime import datetime, timezone

from sqlalchemy import select

from settleup.core.database import async_session_factory
from settleup.models.settlement import OPEN_STATUSES, Settlement
from settleup.services.notification_service import NotificationEvent, publish_event

logger = logging.getLogger(__name__)


async def send_overdue_reminders() -> int:
    """Nudge the debtor of every open settlement past its due date. Read-only."""
    today = datetime.now(timezone.utc).date()
    async with async_session_factory() as db:
        result = await db.execute(
            select(Settlement)
            .where(
                Settlement.status.in_(OPEN_STATUSES),
                Settlement.due_date.is_not(None),
                Settlement.due_date < today,
            )
        )
        overdue = result.scalars().all()

    for settlement in overdue:
        publish_event(NotificationEvent.settlement_overdue, settlement)

    if overdue:
        logger.info(f"Sent {len(overdue)} overdue settlement reminders")
    return len(overdue)
