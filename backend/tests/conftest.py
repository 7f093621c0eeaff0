import asyncio
import uuid
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm.exc import StaleDataError

from settleup.models.settlement import Payment, PaymentMethod, PaymentStatus, Settlement, SettlementStatus
from settleup.schemas.expense import ExpenseSnapshot

GROUP_ID = uuid.UUID("00000000-0000-0000-0000-0000000000ff")
# Fixed ids so that ordering by id is predictable: A < B < C.
A = uuid.UUID("00000000-0000-0000-0000-00000000000a")
B = uuid.UUID("00000000-0000-0000-0000-00000000000b")
C = uuid.UUID("00000000-0000-0000-0000-00000000000c")
D = uuid.UUID("00000000-0000-0000-0000-00000000000d")

NOW = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


def make_expense(payer, amount, shares, group_id=GROUP_ID, expense_id=None) -> ExpenseSnapshot:
    return ExpenseSnapshot(
        id=expense_id or uuid.uuid4(),
        group_id=group_id,
        payer_id=payer,
        amount=amount,
        shares=shares,
    )


def make_settlement(from_user=C, to_user=A, amount=150, **overrides) -> Settlement:
    values = dict(
        id=uuid.uuid4(),
        group_id=GROUP_ID,
        from_user=from_user,
        to_user=to_user,
        total_amount=amount,
        remaining_amount=amount,
        status=SettlementStatus.pending,
        expense_ids=[],
        due_date=None,
        reminders=0,
        force_settled_by=None,
        created_at=NOW,
        updated_at=NOW,
        completed_at=None,
    )
    values.update(overrides)
    return Settlement(**values)


def make_payment(settlement: Settlement, amount=50, **overrides) -> Payment:
    values = dict(
        id=uuid.uuid4(),
        settlement_id=settlement.id,
        submitted_by=settlement.from_user,
        amount=amount,
        method=PaymentMethod.upi,
        reference="TXN1",
        note=None,
        status=PaymentStatus.pending,
        created_at=NOW,
    )
    values.update(overrides)
    return Payment(**values)


def _columns(obj) -> dict:
    return {attr.key: getattr(obj, attr.key) for attr in sa_inspect(type(obj)).column_attrs}


class FakeDatabase:
    """
    Committed rows shared by any number of FakeSessions.

    Mirrors version_id_col: a commit that changes a row whose version moved
    since it was read raises StaleDataError and writes nothing.
    """

    def __init__(self, *objects):
        self.rows: dict = {}
        for obj in objects:
            self._write(obj, 1)

    def _write(self, obj, version: int) -> None:
        values = _columns(obj)
        values["version"] = version
        self.rows[(type(obj), obj.id)] = values

    def row(self, model, ident) -> dict:
        return self.rows[(model, ident)]

    def session(self) -> "FakeSession":
        return FakeSession(self)


class FakeSession:
    def __init__(self, database: FakeDatabase):
        self.database = database
        self.loaded: list = []
        self.added: list = []
        self.commits = 0
        self.rollbacks = 0

    async def get(self, model, ident, **kwargs):
        await asyncio.sleep(0)  # let concurrent sessions interleave
        values = self.database.rows.get((model, ident))
        if values is None:
            return None
        obj = model(**values)
        self.loaded.append((obj, dict(values)))
        return obj

    def add(self, obj) -> None:
        self.added.append(obj)

    async def commit(self) -> None:
        await asyncio.sleep(0)
        dirty = []
        for obj, seen in self.loaded:
            current = {k: v for k, v in _columns(obj).items() if k != "version"}
            if current != {k: v for k, v in seen.items() if k != "version"}:
                dirty.append((obj, seen))
        for obj, seen in dirty:
            if self.database.row(type(obj), obj.id)["version"] != seen["version"]:
                self.loaded, self.added = [], []
                raise StaleDataError(f"{type(obj).__name__} {obj.id} was updated concurrently")
        for obj, seen in dirty:
            self.database._write(obj, seen["version"] + 1)
            obj.version = seen["version"] + 1
        for obj in self.added:
            if (type(obj), obj.id) not in self.database.rows:
                self.database._write(obj, 1)
                obj.version = 1
        self.loaded, self.added = [], []
        self.commits += 1

    async def rollback(self) -> None:
        self.loaded, self.added = [], []
        self.rollbacks += 1


@pytest.fixture
def published():
    """Capture notifications instead of scheduling push deliveries."""
    sink = MagicMock()
    with patch("settleup.services.settlement_service.publish_event", sink), \
            patch("settleup.services.confirmation_service.publish_event", sink):
        yield sink
