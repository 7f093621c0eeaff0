"""
Confirmation gateway: the only way a payment claim leaves `pending`.

confirm, reject and cancel are compare-and-swap transitions on the payment
row. Payment and Settlement both map a version column as SQLAlchemy's
version_id_col, so every flush is `UPDATE ... WHERE id = :id AND version =
:seen`. When two calls race, the loser's flush matches no row, its
transaction is rolled back and it re-reads the winner's state, where it finds
the payment already resolved.
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from settleup.core.errors import (
    AlreadyResolved, AmountExceedsRemaining, MissingReason, PaymentNotFound,
    SettlementTerminal, Unauthorized,
)
from settleup.core.transactions import run_in_transaction
from settleup.models.settlement import Payment, PaymentStatus, Settlement, SettlementStatus
from settleup.services.notification_service import NotificationEvent, publish_event
from settleup.services.settlement_service import get_settlement, recompute_status


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def _load(db: AsyncSession, payment_id: uuid.UUID) -> tuple[Payment, Settlement]:
    payment = await db.get(Payment, payment_id, populate_existing=True)
    if payment is None:
        raise PaymentNotFound(f"Payment {payment_id} not found")
    settlement = await get_settlement(db, payment.settlement_id)
    return payment, settlement


def _ensure_creditor(settlement: Settlement, user_id: uuid.UUID) -> None:
    if user_id != settlement.to_user:
        raise Unauthorized("Only the recipient of the settlement can confirm or reject its payments")


async def confirm_payment(
    db: AsyncSession,
    payment_id: uuid.UUID,
    by_user: uuid.UUID,
    message: str | None = None,
) -> Settlement:
    """
    Creditor confirms the money arrived. The payment becomes verified and the
    settlement's remaining amount drops by the payment amount, in one commit.

    Repeating the confirmation of an already verified payment is a no-op that
    returns the current settlement.
    """

    async def attempt() -> tuple[Settlement, Payment, bool]:
        payment, settlement = await _load(db, payment_id)
        _ensure_creditor(settlement, by_user)
        if payment.status == PaymentStatus.verified:
            return settlement, payment, False
        if payment.status != PaymentStatus.pending:
            raise AlreadyResolved(f"Payment {payment.id} is already {payment.status.value}")
        if settlement.status == SettlementStatus.completed:
            raise SettlementTerminal(f"Settlement {settlement.id} is already completed")
        # Several claims can be pending at once; only what is still owed can be verified.
        if payment.amount > settlement.remaining_amount:
            raise AmountExceedsRemaining(
                f"Payment of {payment.amount} exceeds remaining amount of {settlement.remaining_amount}"
            )

        now = _utcnow()
        payment.status = PaymentStatus.verified
        payment.verified_at = now
        payment.resolved_by = by_user
        payment.message = message
        settlement.remaining_amount -= payment.amount
        settlement.updated_at = now
        recompute_status(settlement, now)
        return settlement, payment, True

    settlement, payment, changed = await run_in_transaction(db, attempt)
    if changed:
        publish_event(NotificationEvent.payment_confirmed, settlement, payment)
    return settlement


async def reject_payment(
    db: AsyncSession,
    payment_id: uuid.UUID,
    by_user: uuid.UUID,
    reason: str,
) -> Settlement:
    """Creditor disputes a claim. The settlement itself is left untouched."""
    if not reason or not reason.strip():
        raise MissingReason()

    async def attempt() -> tuple[Settlement, Payment]:
        payment, settlement = await _load(db, payment_id)
        _ensure_creditor(settlement, by_user)
        if payment.status != PaymentStatus.pending:
            raise AlreadyResolved(f"Payment {payment.id} is already {payment.status.value}")
        payment.status = PaymentStatus.disputed
        payment.rejected_at = _utcnow()
        payment.resolved_by = by_user
        payment.rejection_reason = reason.strip()
        return settlement, payment

    settlement, payment = await run_in_transaction(db, attempt)
    publish_event(NotificationEvent.payment_rejected, settlement, payment)
    return settlement


async def cancel_payment_claim(db: AsyncSession, payment_id: uuid.UUID, by_user: uuid.UUID) -> Payment:
    """Submitter withdraws a claim before the creditor acts on it. No ledger effect."""

    async def attempt() -> tuple[Settlement, Payment]:
        payment, settlement = await _load(db, payment_id)
        if by_user != payment.submitted_by:
            raise Unauthorized("Only the submitter can withdraw a payment claim")
        if payment.status != PaymentStatus.pending:
            raise AlreadyResolved(f"Payment {payment.id} is already {payment.status.value}")
        payment.status = PaymentStatus.cancelled
        payment.cancelled_at = _utcnow()
        return settlement, payment

    settlement, payment = await run_in_transaction(db, attempt)
    publish_event(NotificationEvent.payment_cancelled, settlement, payment)
    return payment
