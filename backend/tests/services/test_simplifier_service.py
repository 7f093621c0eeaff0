import random
import uuid
from unittest.mock import AsyncMock, patch

import pytest

from settleup.services.ledger_service import compute_balances, net_positions, pair_key
from settleup.services.simplifier_service import (
    check_conservation, greedy_plan, optimization_summary, pairwise_plan, simplify, suggest_settlements,
)
from settleup.schemas.balance import SuggestedSettlement

from conftest import A, B, C, D, GROUP_ID, make_expense


def as_tuples(plan):
    return [(s.from_user_id, s.to_user_id, s.amount) for s in plan]


def test_three_person_group_needs_one_payment():
    balances = compute_balances(GROUP_ID, [
        make_expense(A, 300, {A: 100, B: 100, C: 100}),
        make_expense(B, 150, {A: 50, B: 50, C: 50}),
    ])
    plan = simplify(balances)
    assert as_tuples(plan) == [(C, A, 150)]


def test_chain_of_debts_collapses():
    # C owes B 40, B owes A 40 -> C pays A directly
    balances = {pair_key(B, C): 40, pair_key(A, B): 40}
    assert as_tuples(simplify(balances)) == [(C, A, 40)]


def test_empty_balances_give_empty_plan():
    assert simplify({}) == []
    summary = optimization_summary({}, [])
    assert summary.original_transactions == 0
    assert summary.savings_percentage == 0


def test_equal_amounts_break_ties_by_user_id():
    positions = {A: 100, B: 100, C: -100, D: -100}
    plan = greedy_plan(positions)
    assert as_tuples(plan) == [(C, A, 100), (D, B, 100)]


def test_same_input_gives_same_plan():
    balances = {pair_key(A, B): 30, pair_key(C, D): -30, pair_key(A, D): 20}
    assert simplify(balances) == simplify(dict(reversed(list(balances.items()))))


def test_plan_never_longer_than_direct_payments():
    rng = random.Random(11)
    users = [A, B, C, D] + [uuid.uuid4() for _ in range(4)]
    for _ in range(25):
        balances = {}
        for _ in range(rng.randint(1, 12)):
            x, y = rng.sample(users, 2)
            balances[pair_key(x, y)] = rng.choice([-1, 1]) * rng.randint(1, 10_000)
        plan = simplify(balances)
        assert len(plan) <= len(pairwise_plan(balances))
        assert all(s.amount > 0 and s.from_user_id != s.to_user_id for s in plan)
        check_conservation(net_positions(balances), plan)


def test_conservation_check_rejects_unbalanced_plan():
    with pytest.raises(AssertionError):
        check_conservation({A: 100, C: -100}, [SuggestedSettlement(from_user_id=C, to_user_id=A, amount=90)])


def test_optimization_summary_counts_saved_transactions():
    balances = {pair_key(A, B): 50, pair_key(A, C): 100, pair_key(B, C): 50}
    plan = simplify(balances)
    summary = optimization_summary(balances, plan)
    assert summary.original_transactions == 3
    assert summary.optimized_transactions == 1
    assert summary.transaction_reduction == 2
    assert summary.savings_percentage == 66


@pytest.mark.asyncio
async def test_suggest_settlements_reports_plan_and_positions():
    balances = {pair_key(A, B): 50, pair_key(A, C): 100, pair_key(B, C): 50}
    db = AsyncMock()
    with patch("settleup.services.simplifier_service.load_group_balances", AsyncMock(return_value=balances)):
        response = await suggest_settlements(db, GROUP_ID)

    assert response.group_id == GROUP_ID
    assert as_tuples(response.suggestions) == [(C, A, 150)]
    # B nets to zero and is left out
    assert response.net_positions == {A: 150, C: -150}
    assert response.optimization.optimized_transactions == 1
