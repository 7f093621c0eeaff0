import uuid
from datetime import date, datetime
from pydantic import BaseModel, ConfigDict

from settleup.models.settlement import SettlementStatus, PaymentStatus, PaymentMethod


class SettlementCreate(BaseModel):
    from_user_id: uuid.UUID
    to_user_id: uuid.UUID
    amount: int
    expense_ids: list[uuid.UUID] = []
    due_date: date | None = None


class PaymentClaimCreate(BaseModel):
    amount: int
    method: PaymentMethod = PaymentMethod.upi
    reference: str = ""
    note: str | None = None


class ConfirmRequest(BaseModel):
    message: str | None = None


class RejectRequest(BaseModel):
    reason: str = ""


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: uuid.UUID
    settlement_id: uuid.UUID
    submitted_by: uuid.UUID
    amount: int
    method: PaymentMethod
    reference: str
    note: str | None = None
    status: PaymentStatus
    message: str | None = None
    rejection_reason: str | None = None
    resolved_by: uuid.UUID | None = None
    created_at: datetime
    verified_at: datetime | None = None
    rejected_at: datetime | None = None
    cancelled_at: datetime | None = None


class SettlementResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: uuid.UUID
    group_id: uuid.UUID
    from_user: uuid.UUID
    to_user: uuid.UUID
    total_amount: int
    remaining_amount: int
    paid_amount: int
    status: SettlementStatus
    display_status: str
    overdue: bool
    expense_ids: list[str] = []
    due_date: date | None = None
    reminders: int = 0
    force_settled_by: uuid.UUID | None = None
    created_at: datetime
    completed_at: datetime | None = None
    payments: list[PaymentResponse] = []


class SettlementSummary(BaseModel):
    period: str
    total_pending: int = 0
    total_owed: int = 0
    total_to_receive: int = 0
    overdue_count: int = 0
    completed_in_period: int = 0
    average_settlement_days: float | None = None
