"""Seed a three-person group with two shared expenses.

Alice pays 300.00 and Bob pays 150.00, both split equally, so the group's
suggested plan is a single payment of 150.00 from Charlie to Alice.

Usage: python -m scripts.seed_test_data
Run from the backend/ directory. Users must already exist in the auth
provider; pass their ids via SEED_USER_IDS or let the script make new ones.
"""

import asyncio
import os
import uuid

from settleup.core.database import async_session_factory
from settleup.models.expense import Expense, ExpenseShare
from settleup.models.group import Group, GroupMember, GroupRole
from settleup.models.user import User
from settleup.services.ledger_service import load_group_balances
from settleup.services.simplifier_service import simplify
from settleup.utils.currency_utils import compute_shares, format_minor_units, to_minor_units

TEST_USERS = ["Alice", "Bob", "Charlie"]
GROUP_NAME = "Test Group"

# (payer index, description, amount in major units)
TEST_EXPENSES = [
    (0, "Dinner", "300.00"),
    (1, "Taxi", "150.00"),
]


def _user_ids() -> list[uuid.UUID]:
    raw = os.environ.get("SEED_USER_IDS")
    if raw:
        return [uuid.UUID(u.strip()) for u in raw.split(",")]
    return [uuid.uuid4() for _ in TEST_USERS]


async def main():
    user_ids = _user_ids()
    names = dict(zip(user_ids, TEST_USERS))

    async with async_session_factory() as db:
        for uid, name in names.items():
            if await db.get(User, uid) is None:
                db.add(User(id=uid, email=f"{name.lower()}@test.com", display_name=name))
                print(f"  Added user: {name} ({uid})")
            else:
                print(f"  User already in DB: {name}")

        group = Group(id=uuid.uuid4(), name=GROUP_NAME, created_by=user_ids[0])
        db.add(group)
        for i, uid in enumerate(user_ids):
            db.add(GroupMember(
                group_id=group.id,
                user_id=uid,
                role=GroupRole.owner if i == 0 else GroupRole.member,
            ))
        print(f"\n  Created group: {GROUP_NAME} ({group.id})")

        for payer, description, amount in TEST_EXPENSES:
            expense = Expense(
                id=uuid.uuid4(),
                group_id=group.id,
                payer_id=user_ids[payer],
                description=description,
                amount=to_minor_units(amount),
            )
            shares = compute_shares(expense.amount, user_ids, seed=str(expense.id))
            expense.shares = [ExpenseShare(user_id=uid, amount=share) for uid, share in shares.items()]
            db.add(expense)
            print(f"  {names[user_ids[payer]]} paid {amount} for {description}")

        await db.commit()

        balances = await load_group_balances(db, group.id)

    print("\nSuggested settlements:")
    for s in simplify(balances):
        print(f"  {names[s.from_user_id]} -> {names[s.to_user_id]}: {format_minor_units(s.amount)}")


if __name__ == "__main__":
    asyncio.run(main())
