from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

import psycopg
import pytest

from babysteps.services.errors import ValidationError
from babysteps.services.goal_setup import create_goal_with_split


def _run(coro):
    return asyncio.run(coro)


class FakeSetupCursor:
    def __init__(self, connection):
        self.connection = connection
        self._rows = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def execute(self, query, params=None):
        normalized = " ".join(query.split())
        self._rows = []
        self.connection.queries.append((normalized, self.connection.in_transaction))

        if normalized.startswith("INSERT INTO goals"):
            user_id, name, description, target_amount, current_amount = params
            now = self.connection._next_timestamp()
            row = {
                "id": uuid4(),
                "user_id": user_id,
                "name": name,
                "description": description,
                "target_amount": target_amount,
                "current_amount": current_amount,
                "created_at": now,
                "updated_at": now,
            }
            self.connection.goals[row["id"]] = row
            self._rows = [row]
            return

        if normalized.startswith("SELECT") and "FROM goals WHERE id = %s AND user_id = %s" in normalized:
            goal_id, user_id = params
            row = self.connection.goals.get(goal_id)
            if row and row["user_id"] == user_id:
                self._rows = [row]
            return

        if normalized.startswith("SELECT") and "FROM investments WHERE goal_id = %s AND user_id = %s" in normalized:
            goal_id, user_id = params
            self._rows = [
                row
                for row in self.connection.investments.values()
                if row["goal_id"] == goal_id and row["user_id"] == user_id
            ]
            return

        if normalized.startswith("INSERT INTO investments"):
            if self.connection.investment_insert_error is not None:
                raise self.connection.investment_insert_error
            user_id, goal_id, debt, equity = params
            now = self.connection._next_timestamp()
            row = {
                "id": uuid4(),
                "user_id": user_id,
                "goal_id": goal_id,
                "percentage_debt": debt,
                "percentage_equity": equity,
                "created_at": now,
                "updated_at": now,
            }
            self.connection.investments[row["id"]] = row
            self._rows = [row]
            return

        raise AssertionError(f"Unhandled query: {normalized}")

    async def fetchone(self):
        if not self._rows:
            return None
        return self._rows[0]


class FakeSetupConnection:
    """Rolls its tables back when an exception leaves `transaction()`."""

    def __init__(self, *, investment_insert_error=None):
        self.goals: dict[UUID, dict] = {}
        self.investments: dict[UUID, dict] = {}
        self.queries: list[tuple[str, bool]] = []
        self.investment_insert_error = investment_insert_error
        self.in_transaction = False
        self.commits = 0
        self.rollbacks = 0
        self._tick = 0

    def _next_timestamp(self):
        self._tick += 1
        return datetime(2026, 1, 1, 12, 0, self._tick)

    def cursor(self):
        return FakeSetupCursor(self)

    @asynccontextmanager
    async def transaction(self):
        goals, investments = dict(self.goals), dict(self.investments)
        self.in_transaction = True
        try:
            yield self
        except BaseException:
            self.goals, self.investments = goals, investments
            self.rollbacks += 1
            raise
        else:
            self.commits += 1
        finally:
            self.in_transaction = False


class StubGeminiClient:
    def __init__(self, connection, *, text='{"percentage_equity": 80, "percentage_debt": 20}'):
        self.connection = connection
        self.text = text
        self.calls = []

    async def generate_text(self, messages, config):
        self.calls.append({"queries_so_far": len(self.connection.queries), "in_transaction": self.connection.in_transaction})
        return self.text


GOAL_DATA = {"name": " House deposit ", "description": "Two-bed flat", "target_amount": Decimal("60000")}


def test_goal_starts_at_zero_with_one_investment_holding_the_proposed_split() -> None:
    connection = FakeSetupConnection()
    client = StubGeminiClient(connection)
    user_id = uuid4()

    goal, investment = _run(
        create_goal_with_split(connection, user_id, dict(GOAL_DATA, current_amount=Decimal("900")), {"age": 31}, client)
    )

    assert goal["name"] == "House deposit"
    assert goal["current_amount"] == Decimal("0.00")
    assert goal["target_amount"] == Decimal("60000.00")
    assert list(connection.investments.values()) == [investment]
    assert investment["goal_id"] == goal["id"]
    assert investment["user_id"] == user_id
    assert (investment["percentage_equity"], investment["percentage_debt"]) == (80, 20)
    assert connection.commits == 1


def test_split_is_proposed_before_any_write() -> None:
    connection = FakeSetupConnection()
    client = StubGeminiClient(connection)

    _run(create_goal_with_split(connection, uuid4(), GOAL_DATA, None, client))

    assert client.calls == [{"queries_so_far": 0, "in_transaction": False}]
    assert all(in_transaction for _, in_transaction in connection.queries)


@pytest.mark.parametrize("text", ["I would go mostly equity.", "{broken", ""])
def test_garbage_model_reply_falls_back_to_sixty_forty(text) -> None:
    connection = FakeSetupConnection()

    _, investment = _run(create_goal_with_split(connection, uuid4(), GOAL_DATA, None, StubGeminiClient(connection, text=text)))

    assert (investment["percentage_equity"], investment["percentage_debt"]) == (60, 40)
    assert len(connection.investments) == 1


def test_missing_client_falls_back_to_sixty_forty() -> None:
    connection = FakeSetupConnection()

    _, investment = _run(create_goal_with_split(connection, uuid4(), GOAL_DATA, None, None))

    assert (investment["percentage_equity"], investment["percentage_debt"]) == (60, 40)


def test_failed_investment_insert_leaves_no_goal_behind() -> None:
    connection = FakeSetupConnection(investment_insert_error=psycopg.OperationalError("server closed the connection"))

    with pytest.raises(psycopg.OperationalError):
        _run(create_goal_with_split(connection, uuid4(), GOAL_DATA, None, StubGeminiClient(connection)))

    assert connection.goals == {}
    assert connection.investments == {}
    assert connection.rollbacks == 1
    assert connection.commits == 0


def test_invalid_goal_is_rejected_before_the_model_is_asked() -> None:
    connection = FakeSetupConnection()
    client = StubGeminiClient(connection)

    with pytest.raises(ValidationError):
        _run(create_goal_with_split(connection, uuid4(), {"name": "Car", "target_amount": Decimal("0")}, None, client))

    assert client.calls == []
    assert connection.queries == []
