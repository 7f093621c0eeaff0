import uuid
import enum
from datetime import date, datetime, timezone

from sqlalchemy import (
    String, Date, DateTime, Integer, BigInteger, ForeignKey,
    Enum as SAEnum, CheckConstraint
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from settleup.core.database import Base


class SettlementStatus(str, enum.Enum):
    pending = "pending"
    partial = "partial"
    completed = "completed"


class PaymentStatus(str, enum.Enum):
    pending = "pending"
    verified = "verified"
    disputed = "disputed"
    cancelled = "cancelled"


class PaymentMethod(str, enum.Enum):
    upi = "upi"
    bank_transfer = "bank_transfer"
    cash = "cash"
    card = "card"
    wallet = "wallet"
    other = "other"


OPEN_STATUSES = (SettlementStatus.pending, SettlementStatus.partial)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Settlement(Base):
    """
    A tracked obligation: from_user owes to_user total_amount.

    Invariants:
    - total_amount never changes after creation
    - remaining_amount == total_amount - sum(verified payments), and >= 0,
      except after a forced settlement which zeroes it
    - completed is terminal
    """

    __tablename__ = "settlements"
    __table_args__ = (
        CheckConstraint("total_amount > 0", name="ck_settlements_total_positive"),
        CheckConstraint("remaining_amount >= 0", name="ck_settlements_remaining_non_negative"),
        CheckConstraint("from_user <> to_user", name="ck_settlements_distinct_parties"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    group_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("groups.id"), index=True, nullable=False)
    from_user: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), index=True, nullable=False)
    to_user: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), index=True, nullable=False)
    total_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    remaining_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[SettlementStatus] = mapped_column(
        SAEnum(SettlementStatus), nullable=False, default=SettlementStatus.pending
    )
    expense_ids: Mapped[list[str]] = mapped_column(JSONB, nullable=False, default=list)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    reminders: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    force_settled_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    payments: Mapped[list["Payment"]] = relationship(
        back_populates="settlement", lazy="selectin", order_by="Payment.created_at", cascade="all, delete-orphan"
    )

    __mapper_args__ = {"version_id_col": version}

    def is_overdue(self, today: date | None = None) -> bool:
        if self.due_date is None or self.status not in OPEN_STATUSES:
            return False
        return self.due_date < (today or _utcnow().date())

    @property
    def overdue(self) -> bool:
        return self.is_overdue()

    @property
    def display_status(self) -> str:
        return "overdue" if self.is_overdue() else self.status.value

    @property
    def paid_amount(self) -> int:
        return self.total_amount - self.remaining_amount


class Payment(Base):
    """A payer's claim that money was sent. Append-only once resolved."""

    __tablename__ = "payments"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    settlement_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("settlements.id"), index=True, nullable=False)
    submitted_by: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), index=True, nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    method: Mapped[PaymentMethod] = mapped_column(SAEnum(PaymentMethod), nullable=False, default=PaymentMethod.upi)
    reference: Mapped[str] = mapped_column(String, nullable=False, default="")
    note: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[PaymentStatus] = mapped_column(
        SAEnum(PaymentStatus), nullable=False, default=PaymentStatus.pending, index=True
    )
    message: Mapped[str | None] = mapped_column(String, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(String, nullable=True)
    resolved_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    settlement: Mapped["Settlement"] = relationship(back_populates="payments")

    __mapper_args__ = {"version_id_col": version}
