import uuid
from pydantic import BaseModel, ConfigDict


class BalanceEntry(BaseModel):
    """Net balance of one unordered pair. Positive amount: user_b owes user_a."""
    model_config = ConfigDict(frozen=True)

    group_id: uuid.UUID
    user_a: uuid.UUID
    user_b: uuid.UUID
    amount: int


class SuggestedSettlement(BaseModel):
    model_config = ConfigDict(frozen=True)

    from_user_id: uuid.UUID
    to_user_id: uuid.UUID
    amount: int


class OptimizationSummary(BaseModel):
    original_transactions: int
    optimized_transactions: int
    transaction_reduction: int
    savings_percentage: int


class SuggestionsResponse(BaseModel):
    group_id: uuid.UUID
    suggestions: list[SuggestedSettlement]
    net_positions: dict[uuid.UUID, int]
    optimization: OptimizationSummary
