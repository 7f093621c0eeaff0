"""
Debt simplification.

Collapses a group's pairwise balances into a short list of payments with the
same net effect. The matching is a greedy heuristic: repeatedly settle the
largest debtor against the largest creditor. It usually beats paying every
pairwise debt directly but is NOT guaranteed to find the minimum number of
payments; that problem is NP-hard in general and is not attempted here.
"""
import heapq
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from settleup.schemas.balance import OptimizationSummary, SuggestedSettlement, SuggestionsResponse
from settleup.services.ledger_service import Pair, load_group_balances, net_positions


def pairwise_plan(balances: dict[Pair, int]) -> list[SuggestedSettlement]:
    """One payment per non-zero pair: what settling without simplification looks like."""
    plan = []
    for (user_a, user_b), amount in balances.items():
        if amount > 0:
            plan.append(SuggestedSettlement(from_user_id=user_b, to_user_id=user_a, amount=amount))
        elif amount < 0:
            plan.append(SuggestedSettlement(from_user_id=user_a, to_user_id=user_b, amount=-amount))
    return plan


def check_conservation(positions: dict[uuid.UUID, int], plan: list[SuggestedSettlement]) -> None:
    remaining = dict(positions)
    for s in plan:
        remaining[s.from_user_id] = remaining.get(s.from_user_id, 0) + s.amount
        remaining[s.to_user_id] = remaining.get(s.to_user_id, 0) - s.amount
    unbalanced = {uid: amount for uid, amount in remaining.items() if amount}
    if unbalanced:
        raise AssertionError(f"Suggested payments leave positions unbalanced: {unbalanced}")


def greedy_plan(positions: dict[uuid.UUID, int]) -> list[SuggestedSettlement]:
    # Heap entries sort by largest magnitude first, then user id ascending.
    debtors = [(amount, str(uid), uid) for uid, amount in positions.items() if amount < 0]
    creditors = [(-amount, str(uid), uid) for uid, amount in positions.items() if amount > 0]
    heapq.heapify(debtors)
    heapq.heapify(creditors)

    plan = []
    while debtors and creditors:
        debt, debtor_key, debtor = heapq.heappop(debtors)
        credit, creditor_key, creditor = heapq.heappop(creditors)
        transfer = min(-debt, -credit)
        plan.append(SuggestedSettlement(from_user_id=debtor, to_user_id=creditor, amount=transfer))
        if -debt > transfer:
            heapq.heappush(debtors, (debt + transfer, debtor_key, debtor))
        if -credit > transfer:
            heapq.heappush(creditors, (credit + transfer, creditor_key, creditor))
    return plan


def simplify(balances: dict[Pair, int]) -> list[SuggestedSettlement]:
    """
    Suggested payments for a group, deterministic for identical input.

    Falls back to the direct pairwise payments in the rare case where the
    greedy plan would need more transactions than those.
    """
    positions = net_positions(balances)
    plan = greedy_plan(positions)
    naive = pairwise_plan(balances)
    if len(plan) > len(naive):
        plan = naive
    check_conservation(positions, plan)
    return plan


def optimization_summary(balances: dict[Pair, int], plan: list[SuggestedSettlement]) -> OptimizationSummary:
    original = len(pairwise_plan(balances))
    optimized = len(plan)
    reduction = original - optimized
    return OptimizationSummary(
        original_transactions=original,
        optimized_transactions=optimized,
        transaction_reduction=reduction,
        savings_percentage=(reduction * 100 // original) if original else 0,
    )


async def suggest_settlements(db: AsyncSession, group_id: uuid.UUID) -> SuggestionsResponse:
    balances = await load_group_balances(db, group_id)
    plan = simplify(balances)
    return SuggestionsResponse(
        group_id=group_id,
        suggestions=plan,
        net_positions={uid: amount for uid, amount in net_positions(balances).items() if amount},
        optimization=optimization_summary(balances, plan),
    )
