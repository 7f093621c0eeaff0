import uuid
from pydantic import BaseModel, ConfigDict


class ExpenseSnapshot(BaseModel):
    """Immutable view of an expense as served by the expense read API."""
    model_config = ConfigDict(frozen=True)

    id: uuid.UUID
    group_id: uuid.UUID
    payer_id: uuid.UUID
    amount: int
    shares: dict[uuid.UUID, int]
