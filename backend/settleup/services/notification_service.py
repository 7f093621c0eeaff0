"""
Fire-and-forget notification sink.

publish_event() returns immediately; delivery runs as a background task with
its own session, so a slow or failing push service never holds up or rolls
back a settlement write.
"""
import asyncio
import enum
import json
import logging
import uuid

from pywebpush import webpush, WebPushException

from settleup.core.config import settings
from settleup.core.database import async_session_factory
from settleup.models.settlement import Payment, Settlement
from settleup.models.user import User
from settleup.utils.currency_utils import format_minor_units

logger = logging.getLogger(__name__)

_pending_deliveries: set[asyncio.Task] = set()


class NotificationEvent(str, enum.Enum):
    payment_claimed = "payment_claimed"
    payment_confirmed = "payment_confirmed"
    payment_rejected = "payment_rejected"
    payment_cancelled = "payment_cancelled"
    settlement_reminder = "settlement_reminder"
    settlement_overdue = "settlement_overdue"
    settlement_force_settled = "settlement_force_settled"


# Events the creditor needs to act on; everything else goes to the debtor.
_CREDITOR_EVENTS = {NotificationEvent.payment_claimed, NotificationEvent.payment_cancelled}

_MESSAGES = {
    NotificationEvent.payment_claimed: "A payment of {amount} is waiting for your confirmation.",
    NotificationEvent.payment_confirmed: "Your payment of {amount} was confirmed. {remaining} left to settle.",
    NotificationEvent.payment_rejected: "Your payment of {amount} was disputed: {reason}",
    NotificationEvent.payment_cancelled: "A payment claim of {amount} was withdrawn.",
    NotificationEvent.settlement_reminder: "Reminder: you still owe {remaining}. Settle up!",
    NotificationEvent.settlement_overdue: "Your settlement of {remaining} is overdue.",
    NotificationEvent.settlement_force_settled: "Your settlement of {total} was marked as settled.",
}


def build_payload(event: NotificationEvent, settlement: Settlement, payment: Payment | None = None) -> dict:
    body = _MESSAGES[event].format(
        amount=format_minor_units(payment.amount) if payment else "",
        remaining=format_minor_units(settlement.remaining_amount),
        total=format_minor_units(settlement.total_amount),
        reason=(payment.rejection_reason or "") if payment else "",
    )
    return {
        "title": "Settlement update",
        "event": event.value,
        "body": body,
        "settlement_id": str(settlement.id),
        "payment_id": str(payment.id) if payment else None,
        "url": f"/groups/{settlement.group_id}/settlements/{settlement.id}",
    }


def recipient_for(event: NotificationEvent, settlement: Settlement) -> uuid.UUID:
    return settlement.to_user if event in _CREDITOR_EVENTS else settlement.from_user


async def deliver(user_id: uuid.UUID, payload: dict) -> None:
    async with async_session_factory() as db:
        user = await db.get(User, user_id)
    if not user or not user.push_subscription:
        return
    try:
        await asyncio.to_thread(
            webpush,
            subscription_info=user.push_subscription,
            data=json.dumps(payload),
            vapid_private_key=settings.vapid_private_key,
            vapid_claims={"sub": f"mailto:{settings.vapid_claims_email}"},
        )
    except WebPushException as e:
        # Expired subscriptions are common; the settlement itself is unaffected.
        logger.warning(f"Push to user {user_id} failed for {payload['event']}: {e}")


def _log_failure(task: asyncio.Task) -> None:
    _pending_deliveries.discard(task)
    if not task.cancelled() and task.exception():
        logger.error(f"Notification delivery crashed: {task.exception()!r}")


def publish_event(event: NotificationEvent, settlement: Settlement, payment: Payment | None = None) -> None:
    payload = build_payload(event, settlement, payment)
    recipient = recipient_for(event, settlement)
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        logger.warning(f"No event loop, dropping {event.value} notification for settlement {settlement.id}")
        return
    task = loop.create_task(deliver(recipient, payload))
    _pending_deliveries.add(task)
    task.add_done_callback(_log_failure)
