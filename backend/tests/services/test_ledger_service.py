import random
import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest

from settleup.core.errors import InvalidExpense
from settleup.models.expense import Expense, ExpenseShare
from settleup.models.settlement import SettlementStatus
from settleup.services.ledger_service import (
    compute_balances, compute_group_balances, net_positions, pair_key,
)

from conftest import A, B, C, D, GROUP_ID, make_expense, make_settlement


def scenario_expenses():
    return [
        make_expense(A, 300, {A: 100, B: 100, C: 100}),
        make_expense(B, 150, {A: 50, B: 50, C: 50}),
    ]


def test_pairwise_balances_for_shared_expenses():
    balances = compute_balances(GROUP_ID, scenario_expenses())
    # B owes A 100, A owes B 50 -> B owes A 50
    assert balances[pair_key(A, B)] == 50
    assert balances[pair_key(A, C)] == 100
    assert balances[pair_key(B, C)] == 50


def test_net_positions_for_shared_expenses():
    positions = net_positions(compute_balances(GROUP_ID, scenario_expenses()))
    assert positions[A] == 150
    assert positions[B] == 0
    assert positions[C] == -150


def test_result_does_not_depend_on_expense_order():
    expenses = scenario_expenses() + [make_expense(C, 90, {A: 30, B: 30, C: 30})]
    forward = compute_balances(GROUP_ID, expenses)
    backward = compute_balances(GROUP_ID, list(reversed(expenses)))
    assert forward == backward
    assert list(forward) == list(backward)


def test_self_payment_is_skipped():
    balances = compute_balances(GROUP_ID, [make_expense(A, 500, {A: 500})])
    assert balances == {}


def test_payer_own_share_is_not_a_debt():
    balances = compute_balances(GROUP_ID, [make_expense(A, 100, {A: 60, B: 40})])
    assert balances == {pair_key(A, B): 40}


def test_shares_must_sum_to_amount():
    with pytest.raises(InvalidExpense):
        compute_balances(GROUP_ID, [make_expense(A, 100, {A: 50, B: 49})])


def test_negative_share_rejected():
    with pytest.raises(InvalidExpense):
        compute_balances(GROUP_ID, [make_expense(A, 100, {A: 150, B: -50})])


def test_expense_from_another_group_rejected():
    with pytest.raises(InvalidExpense):
        compute_balances(GROUP_ID, [make_expense(A, 100, {B: 100}, group_id=uuid.uuid4())])


def completed(from_user, to_user, amount, *expenses):
    return make_settlement(
        from_user=from_user, to_user=to_user, amount=amount, remaining_amount=0,
        status=SettlementStatus.completed, expense_ids=[str(e.id) for e in expenses],
    )


def test_fully_paid_expense_is_excluded():
    dinner = make_expense(A, 300, {A: 100, B: 100, C: 100})
    taxi = make_expense(B, 150, {A: 50, B: 50, C: 50})
    settlements = [completed(C, A, 100, dinner), completed(B, A, 100, dinner)]

    balances = compute_balances(GROUP_ID, [dinner, taxi], settlements)

    assert balances == {pair_key(A, B): -50, pair_key(B, C): 50}


def test_partly_paid_expense_keeps_other_debts():
    dinner = make_expense(A, 300, {A: 100, B: 100, C: 100})
    taxi = make_expense(B, 150, {A: 50, B: 50, C: 50})
    # Only C paid their share of dinner; B still owes A 100.
    settlement = completed(C, A, 100, dinner)

    balances = compute_balances(GROUP_ID, [dinner], [settlement])
    assert balances == {pair_key(A, B): 100}

    balances = compute_balances(GROUP_ID, [dinner, taxi], [settlement])
    assert balances == {pair_key(A, B): 50, pair_key(B, C): 50}


def test_overpayment_beyond_covered_expense_still_counts():
    dinner = make_expense(A, 200, {A: 100, C: 100})
    settlement = completed(C, A, 150, dinner)
    # Dinner is covered; the extra 50 moved from C to A.
    assert compute_balances(GROUP_ID, [dinner], [settlement]) == {pair_key(A, C): -50}


def test_provenance_does_not_change_the_totals():
    dinner = make_expense(A, 300, {A: 100, B: 100, C: 100})
    taxi = make_expense(B, 150, {A: 50, B: 50, C: 50})
    expenses = [dinner, taxi]
    for settlements in (
        [completed(C, A, 100, dinner)],
        [completed(C, A, 100, dinner), completed(B, A, 100, dinner)],
        [completed(C, A, 150, dinner, taxi)],
        [completed(A, B, 50, taxi, dinner)],
    ):
        anonymous = [completed(s.from_user, s.to_user, s.total_amount) for s in settlements]
        assert compute_balances(GROUP_ID, expenses, settlements) == compute_balances(GROUP_ID, expenses, anonymous)


def test_zero_amount_expense_is_skipped():
    balances = compute_balances(GROUP_ID, scenario_expenses() + [make_expense(A, 0, {A: 0, B: 0})])
    assert balances == compute_balances(GROUP_ID, scenario_expenses())


def test_negative_amount_rejected():
    with pytest.raises(InvalidExpense):
        compute_balances(GROUP_ID, [make_expense(A, -10, {A: -10})])


def test_open_settlement_with_provenance_keeps_expenses():
    expense = make_expense(A, 100, {B: 100})
    settlement = make_settlement(from_user=B, to_user=A, amount=100, expense_ids=[str(expense.id)])
    assert compute_balances(GROUP_ID, [expense], [settlement]) == {pair_key(A, B): 100}


def test_verified_partial_payment_offsets_debt():
    expense = make_expense(A, 100, {B: 100})
    settlement = make_settlement(
        from_user=B, to_user=A, amount=100, remaining_amount=40, status=SettlementStatus.partial,
    )
    assert compute_balances(GROUP_ID, [expense], [settlement]) == {pair_key(A, B): 40}


def test_completed_settlement_without_provenance_offsets_in_full():
    expense = make_expense(A, 100, {B: 100})
    settlement = make_settlement(
        from_user=B, to_user=A, amount=100, remaining_amount=0, status=SettlementStatus.completed,
    )
    assert compute_balances(GROUP_ID, [expense], [settlement]) == {}


def test_net_positions_always_sum_to_zero():
    rng = random.Random(7)
    users = [A, B, C, D]
    expenses = []
    for _ in range(40):
        payer = rng.choice(users)
        participants = rng.sample(users, rng.randint(1, 4))
        shares = {u: rng.randint(0, 5000) for u in participants}
        expenses.append(make_expense(payer, sum(shares.values()) or 1, shares or {payer: 1}))
    expenses = [e for e in expenses if sum(e.shares.values()) == e.amount]
    positions = net_positions(compute_balances(GROUP_ID, expenses))
    assert sum(positions.values()) == 0


@pytest.mark.asyncio
async def test_compute_group_balances_reads_expenses_and_settlements():
    expense = Expense(id=uuid.uuid4(), group_id=GROUP_ID, payer_id=A, amount=300)
    expense.shares = [
        ExpenseShare(user_id=A, amount=100),
        ExpenseShare(user_id=B, amount=100),
        ExpenseShare(user_id=C, amount=100),
    ]
    expenses_result = MagicMock()
    expenses_result.scalars.return_value.all.return_value = [expense]
    settlements_result = MagicMock()
    settlements_result.all.return_value = []
    db = AsyncMock()
    db.execute.side_effect = [expenses_result, settlements_result]

    entries = await compute_group_balances(db, GROUP_ID)

    assert [(e.user_a, e.user_b, e.amount) for e in entries] == [(A, B, 100), (A, C, 100)]
    assert all(e.group_id == GROUP_ID for e in entries)
