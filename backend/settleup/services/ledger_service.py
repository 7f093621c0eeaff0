import uuid
from collections import defaultdict
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from settleup.core.errors import InvalidExpense
from settleup.models.settlement import Settlement, SettlementStatus
from settleup.schemas.balance import BalanceEntry
from settleup.schemas.expense import ExpenseSnapshot
from settleup.services.expense_service import list_expenses

Pair = tuple[uuid.UUID, uuid.UUID]


def pair_key(x: uuid.UUID, y: uuid.UUID) -> Pair:
    """Canonical (user_a, user_b) ordering of an unordered pair."""
    return (x, y) if str(x) < str(y) else (y, x)


def validate_expense(expense: ExpenseSnapshot) -> None:
    if expense.amount < 0:
        raise InvalidExpense(f"Expense {expense.id} has negative amount {expense.amount}")
    if any(share < 0 for share in expense.shares.values()):
        raise InvalidExpense(f"Expense {expense.id} has a negative share")
    total = sum(expense.shares.values())
    if total != expense.amount:
        raise InvalidExpense(f"Expense {expense.id} shares sum to {total}, expected {expense.amount}")


def is_self_payment(expense: ExpenseSnapshot) -> bool:
    participants = {uid for uid, share in expense.shares.items() if share}
    return participants <= {expense.payer_id}


def _settled_amount(settlement) -> int:
    # A completed settlement counts in full, including a forced write-off.
    if settlement.status == SettlementStatus.completed:
        return settlement.total_amount
    return settlement.total_amount - settlement.remaining_amount


def _allocate_coverage(expenses: dict[str, ExpenseSnapshot], settlements: list) -> tuple[set[str], list[int]]:
    """
    Match completed settlements against the expense shares they name.

    A settlement from D to P pays down D's share of each listed expense that
    P paid for, in expense id order, until its total runs out. An expense is
    covered once every non-payer share is paid down to zero. Returns the
    covered expense ids and, per settlement, the part of its settled amount
    that was not used up by covered expenses.
    """
    unpaid: dict[tuple[str, uuid.UUID], int] = {
        (expense_id, user_id): share
        for expense_id, expense in expenses.items()
        for user_id, share in expense.shares.items()
        if user_id != expense.payer_id and share
    }
    allocations = []
    for s in settlements:
        used: dict[tuple[str, uuid.UUID], int] = {}
        available = _settled_amount(s)
        if s.status == SettlementStatus.completed:
            for expense_id in sorted({str(e) for e in s.expense_ids}):
                expense = expenses.get(expense_id)
                if expense is None or expense.payer_id != s.to_user:
                    continue
                key = (expense_id, s.from_user)
                paid = min(available, unpaid.get(key, 0))
                if paid:
                    used[key] = paid
                    unpaid[key] -= paid
                    available -= paid
        allocations.append(used)

    covered = {
        expense_id for expense_id, expense in expenses.items()
        if not any(unpaid.get((expense_id, user_id)) for user_id in expense.shares)
    }
    leftovers = [
        _settled_amount(s) - sum(paid for (expense_id, _), paid in used.items() if expense_id in covered)
        for s, used in zip(settlements, allocations)
    ]
    return covered, leftovers


def compute_balances(
    group_id: uuid.UUID,
    expenses: Iterable[ExpenseSnapshot],
    settlements: Iterable = (),
) -> dict[Pair, int]:
    """
    Net every expense of a group into one signed amount per unordered pair.

    Keys are pair_key() ordered; a positive value means user_b owes user_a.
    Pairs that net to zero are left out.

    An expense whose every non-payer share has been paid by completed
    settlements naming it is skipped, and those payments are not counted
    again. Whatever else has been settled, on any settlement, counts as money
    moved from debtor to creditor. A settlement that names an expense but
    pays only part of it therefore leaves the expense in place and offsets
    just the debt it actually paid.

    Pure and independent of input order: integer sums only.
    """
    by_id: dict[str, ExpenseSnapshot] = {}
    for expense in expenses:
        if expense.group_id != group_id:
            raise InvalidExpense(f"Expense {expense.id} belongs to group {expense.group_id}")
        validate_expense(expense)
        # Zero-amount expenses and self-payments move no money between members.
        if expense.amount and not is_self_payment(expense):
            by_id[str(expense.id)] = expense

    settlements = sorted(settlements, key=lambda s: str(s.id))
    covered, leftovers = _allocate_coverage(by_id, settlements)

    # (debtor, creditor) -> amount
    owed: dict[Pair, int] = defaultdict(int)

    for expense_id, expense in by_id.items():
        if expense_id in covered:
            continue
        for user_id, share in expense.shares.items():
            if user_id != expense.payer_id and share:
                owed[(user_id, expense.payer_id)] += share

    for s, settled in zip(settlements, leftovers):
        if settled:
            owed[(s.to_user, s.from_user)] += settled

    balances: dict[Pair, int] = defaultdict(int)
    for (debtor, creditor), amount in owed.items():
        key = pair_key(debtor, creditor)
        balances[key] += amount if debtor == key[1] else -amount

    return {
        key: balances[key]
        for key in sorted(balances, key=lambda k: (str(k[0]), str(k[1])))
        if balances[key]
    }


def net_positions(balances: dict[Pair, int]) -> dict[uuid.UUID, int]:
    """Per-user projection. Positive = owed money overall. Sums to zero."""
    net: dict[uuid.UUID, int] = defaultdict(int)
    for (user_a, user_b), amount in balances.items():
        net[user_a] += amount
        net[user_b] -= amount
    return dict(net)


def balance_entries(group_id: uuid.UUID, balances: dict[Pair, int]) -> list[BalanceEntry]:
    return [
        BalanceEntry(group_id=group_id, user_a=user_a, user_b=user_b, amount=amount)
        for (user_a, user_b), amount in balances.items()
    ]


async def load_group_balances(db: AsyncSession, group_id: uuid.UUID) -> dict[Pair, int]:
    """Snapshot of a group's balances; not a live value."""
    expenses = await list_expenses(db, group_id)
    settlements_result = await db.execute(
        select(
            Settlement.id,
            Settlement.from_user,
            Settlement.to_user,
            Settlement.total_amount,
            Settlement.remaining_amount,
            Settlement.status,
            Settlement.expense_ids,
        )
        .where(Settlement.group_id == group_id)
    )
    return compute_balances(group_id, expenses, settlements_result.all())


async def compute_group_balances(db: AsyncSession, group_id: uuid.UUID) -> list[BalanceEntry]:
    return balance_entries(group_id, await load_group_balances(db, group_id))
