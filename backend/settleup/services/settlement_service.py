import enum
import logging
import uuid
from datetime import date, datetime, timezone
from typing import Iterable

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from settleup.core.errors import (
    AmountExceedsRemaining, InvalidAmount, InvalidParties, SettlementNotFound,
    SettlementTerminal, Unauthorized,
)
from settleup.core.transactions import run_in_transaction
from settleup.models.settlement import Payment, PaymentMethod, PaymentStatus, Settlement, SettlementStatus
from settleup.services import group_service
from settleup.services.notification_service import NotificationEvent, publish_event

logger = logging.getLogger(__name__)


class SettlementFilter(str, enum.Enum):
    all = "all"
    pending = "pending"
    partial = "partial"
    completed = "completed"
    overdue = "overdue"


class SettlementSort(str, enum.Enum):
    date = "date"
    amount = "amount"
    status = "status"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_amount(amount) -> None:
    # bool is an int subclass; True is not a payment.
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmount(f"Amount must be a positive integer of minor units, got {amount!r}")


def recompute_status(settlement: Settlement, now: datetime | None = None) -> SettlementStatus:
    if settlement.remaining_amount <= 0:
        settlement.status = SettlementStatus.completed
        if settlement.completed_at is None:
            settlement.completed_at = now or _utcnow()
    elif settlement.remaining_amount < settlement.total_amount:
        settlement.status = SettlementStatus.partial
    else:
        settlement.status = SettlementStatus.pending
    return settlement.status


async def get_settlement(db: AsyncSession, settlement_id: uuid.UUID) -> Settlement:
    # populate_existing: a retried attempt must see the committed row, not
    # what a rolled-back attempt left in the identity map.
    settlement = await db.get(Settlement, settlement_id, populate_existing=True)
    if settlement is None:
        raise SettlementNotFound(f"Settlement {settlement_id} not found")
    return settlement


async def create_settlement(
    db: AsyncSession,
    group_id: uuid.UUID,
    from_user: uuid.UUID,
    to_user: uuid.UUID,
    amount: int,
    expense_ids: Iterable[uuid.UUID] = (),
    due_date: date | None = None,
    created_by: uuid.UUID | None = None,
) -> Settlement:
    """
    Open a settlement from debtor to creditor. When `created_by` is given it
    must be one of the two parties or a group owner.
    """
    validate_amount(amount)
    if from_user == to_user:
        raise InvalidParties("A user cannot settle with themselves")
    if (
        created_by is not None
        and created_by not in (from_user, to_user)
        and not await group_service.is_owner(db, group_id, created_by)
    ):
        raise Unauthorized("Only a party to the settlement or a group owner can create it")

    members = await group_service.member_ids(db, group_id, {from_user, to_user})
    missing = {from_user, to_user} - members
    if missing:
        raise InvalidParties(f"Not members of group {group_id}: {', '.join(sorted(str(m) for m in missing))}")

    provenance = sorted({str(e) for e in expense_ids})

    async def attempt() -> Settlement:
        now = _utcnow()
        settlement = Settlement(
            id=uuid.uuid4(),
            group_id=group_id,
            from_user=from_user,
            to_user=to_user,
            total_amount=amount,
            remaining_amount=amount,
            status=SettlementStatus.pending,
            expense_ids=provenance,
            due_date=due_date,
            reminders=0,
            created_at=now,
            updated_at=now,
            payments=[],
        )
        db.add(settlement)
        return settlement

    settlement = await run_in_transaction(db, attempt)
    logger.info(f"Settlement {settlement.id} created: {from_user} owes {to_user} {amount}")
    return settlement


async def record_payment_claim(
    db: AsyncSession,
    settlement_id: uuid.UUID,
    submitted_by: uuid.UUID,
    amount: int,
    method: PaymentMethod | str = PaymentMethod.upi,
    reference: str = "",
    note: str | None = None,
) -> Payment:
    """
    Record the debtor's claim that money was sent. The claim stays pending
    and does not touch remaining_amount until the creditor confirms it.
    """
    validate_amount(amount)
    method = PaymentMethod(method)

    async def attempt() -> tuple[Settlement, Payment]:
        settlement = await get_settlement(db, settlement_id)
        if submitted_by != settlement.from_user:
            raise Unauthorized("Only the debtor can record a payment claim")
        if settlement.status == SettlementStatus.completed:
            raise SettlementTerminal(f"Settlement {settlement.id} is already completed")
        if amount > settlement.remaining_amount:
            raise AmountExceedsRemaining(
                f"Payment of {amount} exceeds remaining amount of {settlement.remaining_amount}"
            )
        now = _utcnow()
        payment = Payment(
            id=uuid.uuid4(),
            settlement_id=settlement.id,
            submitted_by=submitted_by,
            amount=amount,
            method=method,
            reference=reference,
            note=note,
            status=PaymentStatus.pending,
            created_at=now,
        )
        settlement.payments.append(payment)
        # Touching the row bumps its version, so a claim racing a
        # confirmation that completes the settlement loses and retries.
        settlement.updated_at = now
        db.add(payment)
        return settlement, payment

    settlement, payment = await run_in_transaction(db, attempt)
    publish_event(NotificationEvent.payment_claimed, settlement, payment)
    return payment


async def force_mark_settled(db: AsyncSession, settlement_id: uuid.UUID, actor: uuid.UUID) -> Settlement:
    """Administrative override: the creditor or a group owner closes the settlement."""

    async def attempt() -> tuple[Settlement, int]:
        settlement = await get_settlement(db, settlement_id)
        if actor != settlement.to_user and not await group_service.is_owner(db, settlement.group_id, actor):
            raise Unauthorized("Only the creditor or a group owner can force a settlement")
        if settlement.status == SettlementStatus.completed:
            raise SettlementTerminal(f"Settlement {settlement.id} is already completed")
        written_off = settlement.remaining_amount
        now = _utcnow()
        settlement.remaining_amount = 0
        settlement.force_settled_by = actor
        settlement.updated_at = now
        recompute_status(settlement, now)
        return settlement, written_off

    settlement, written_off = await run_in_transaction(db, attempt)
    logger.warning(
        f"AUDIT settlement {settlement.id} force-settled by {actor}: "
        f"{written_off} of {settlement.total_amount} written off "
        f"({settlement.from_user} -> {settlement.to_user}, group {settlement.group_id})"
    )
    publish_event(NotificationEvent.settlement_force_settled, settlement)
    return settlement


async def send_reminder(db: AsyncSession, settlement_id: uuid.UUID, by_user: uuid.UUID) -> Settlement:
    async def attempt() -> Settlement:
        settlement = await get_settlement(db, settlement_id)
        if by_user != settlement.to_user:
            raise Unauthorized("Only the creditor can send a reminder")
        if settlement.status == SettlementStatus.completed:
            raise SettlementTerminal(f"Settlement {settlement.id} is already completed")
        settlement.reminders += 1
        settlement.updated_at = _utcnow()
        return settlement

    settlement = await run_in_transaction(db, attempt)
    publish_event(NotificationEvent.settlement_reminder, settlement)
    return settlement


def filter_settlements(
    settlements: Iterable[Settlement],
    status_filter: SettlementFilter = SettlementFilter.all,
    sort_by: SettlementSort = SettlementSort.date,
    today: date | None = None,
) -> list[Settlement]:
    if status_filter == SettlementFilter.overdue:
        selected = [s for s in settlements if s.is_overdue(today)]
    elif status_filter == SettlementFilter.all:
        selected = list(settlements)
    else:
        selected = [s for s in settlements if s.status.value == status_filter.value]

    if sort_by == SettlementSort.amount:
        selected.sort(key=lambda s: s.remaining_amount, reverse=True)
    elif sort_by == SettlementSort.status:
        selected.sort(key=lambda s: s.status.value)
    else:
        selected.sort(key=lambda s: s.created_at, reverse=True)
    return selected


async def list_settlements(
    db: AsyncSession,
    group_id: uuid.UUID,
    status_filter: SettlementFilter = SettlementFilter.all,
    sort_by: SettlementSort = SettlementSort.date,
    user_id: uuid.UUID | None = None,
) -> list[Settlement]:
    query = select(Settlement).where(Settlement.group_id == group_id)
    if user_id is not None:
        query = query.where(or_(Settlement.from_user == user_id, Settlement.to_user == user_id))
    result = await db.execute(query)
    return filter_settlements(result.scalars().all(), status_filter, sort_by)


async def list_pending_confirmations(db: AsyncSession, user_id: uuid.UUID) -> list[Payment]:
    """
    Payment claims waiting on this user, as creditor, to confirm. Claims left
    pending on a completed (e.g. force-settled) settlement can no longer be
    confirmed and are not listed.
    """
    result = await db.execute(
        select(Payment)
        .join(Settlement, Settlement.id == Payment.settlement_id)
        .where(
            Settlement.to_user == user_id,
            Settlement.status != SettlementStatus.completed,
            Payment.status == PaymentStatus.pending,
        )
        .order_by(Payment.created_at)
    )
    return list(result.scalars().all())
