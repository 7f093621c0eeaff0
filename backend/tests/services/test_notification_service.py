import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pywebpush import WebPushException

from settleup.models.user import User
from settleup.services import notification_service
from settleup.services.notification_service import (
    NotificationEvent, build_payload, deliver, publish_event, recipient_for,
)

from conftest import A, C, make_payment, make_settlement


def test_claim_goes_to_creditor_and_confirmation_to_debtor():
    settlement = make_settlement(from_user=C, to_user=A)
    assert recipient_for(NotificationEvent.payment_claimed, settlement) == A
    assert recipient_for(NotificationEvent.payment_cancelled, settlement) == A
    assert recipient_for(NotificationEvent.payment_confirmed, settlement) == C
    assert recipient_for(NotificationEvent.settlement_overdue, settlement) == C


def test_payload_formats_minor_units():
    settlement = make_settlement(amount=15000, remaining_amount=10000)
    payment = make_payment(settlement, amount=5000, rejection_reason="wrong UPI id")

    payload = build_payload(NotificationEvent.payment_rejected, settlement, payment)

    assert payload["event"] == "payment_rejected"
    assert payload["body"] == "Your payment of 50.00 was disputed: wrong UPI id"
    assert payload["payment_id"] == str(payment.id)
    assert payload["url"].endswith(f"/settlements/{settlement.id}")


def test_publish_without_event_loop_drops_notification():
    with patch.object(notification_service, "deliver") as deliver_mock:
        publish_event(NotificationEvent.settlement_reminder, make_settlement())
    deliver_mock.assert_not_called()


@pytest.mark.asyncio
async def test_publish_schedules_delivery_in_background():
    settlement = make_settlement()
    with patch.object(notification_service, "deliver", new_callable=AsyncMock) as deliver_mock:
        publish_event(NotificationEvent.settlement_reminder, settlement)
        deliver_mock.assert_not_awaited()
        await asyncio.sleep(0)
    deliver_mock.assert_awaited_once()
    recipient, payload = deliver_mock.await_args.args
    assert recipient == settlement.from_user
    assert payload["event"] == "settlement_reminder"


def _session_returning(user):
    session = AsyncMock()
    session.get.return_value = user
    factory = MagicMock()
    factory.return_value.__aenter__.return_value = session
    return factory


@pytest.mark.asyncio
async def test_deliver_skips_users_without_subscription():
    user = User(id=A, email="a@example.com", push_subscription=None)
    with patch.object(notification_service, "async_session_factory", _session_returning(user)), \
            patch.object(notification_service, "webpush") as webpush_mock:
        await deliver(A, {"event": "payment_claimed"})
    webpush_mock.assert_not_called()


@pytest.mark.asyncio
async def test_failed_push_is_logged_not_raised(caplog):
    user = User(id=A, email="a@example.com", push_subscription={"endpoint": "https://push.example"})
    with patch.object(notification_service, "async_session_factory", _session_returning(user)), \
            patch.object(notification_service, "webpush", side_effect=WebPushException("gone")):
        await deliver(A, {"event": "payment_claimed"})
    assert "Push to user" in caplog.text
