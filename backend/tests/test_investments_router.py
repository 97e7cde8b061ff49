from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from fastapi import FastAPI
from fastapi.testclient import TestClient

import babysteps.investments as investments_router
from babysteps.services.errors import ConflictError, NotFoundError, ValidationError
from babysteps.services.split_advisor import DEFAULT_SPLIT, SplitProposal


def _sample_investment(user_id, goal_id=None, equity=70.0, debt=30.0):
    return {
        "id": uuid4(),
        "user_id": user_id,
        "goal_id": goal_id or uuid4(),
        "percentage_equity": equity,
        "percentage_debt": debt,
        "created_at": datetime(2026, 1, 1, 10, 0, 0),
        "updated_at": datetime(2026, 1, 1, 10, 0, 0),
    }


def _app_with_overrides(user_id=None):
    app = FastAPI()
    app.include_router(investments_router.router)

    async def override_db():
        yield object()

    app.dependency_overrides[investments_router.get_db_connection] = override_db
    if user_id is not None:
        app.dependency_overrides[investments_router.get_current_user_id] = lambda: user_id
    return app


def test_investments_auth_required() -> None:
    with TestClient(_app_with_overrides()) as client:
        response = client.get("/investments")

    assert response.status_code == 401


def test_list_and_lookup_by_goal(monkeypatch) -> None:
    user_id = uuid4()
    goal_id = uuid4()

    async def fake_list(connection, uid):
        return [_sample_investment(uid), _sample_investment(uid)]

    async def fake_for_goal(connection, uid, gid):
        if gid != goal_id:
            raise NotFoundError("Investment not found")
        return _sample_investment(uid, gid)

    monkeypatch.setattr(investments_router, "list_investments", fake_list)
    monkeypatch.setattr(investments_router, "get_investment_for_goal", fake_for_goal)

    with TestClient(_app_with_overrides(user_id)) as client:
        listed = client.get("/investments")
        single = client.get("/investments", params={"goal_id": str(goal_id)})
        missing = client.get("/investments", params={"goal_id": str(uuid4())})

    assert len(listed.json()["data"]) == 2
    assert single.json()["data"]["goal_id"] == str(goal_id)
    assert missing.status_code == 404


def test_create_investment_maps_errors(monkeypatch) -> None:
    errors = iter(
        [
            ValidationError("Percentage debt and equity must sum to 100"),
            NotFoundError("Goal not found"),
            ConflictError("An investment already exists for this goal"),
        ]
    )

    async def fake_create(connection, uid, **kwargs):
        raise next(errors)

    monkeypatch.setattr(investments_router, "create_investment", fake_create)
    body = {"goal_id": str(uuid4()), "percentage_debt": 50, "percentage_equity": 40}

    with TestClient(_app_with_overrides(uuid4())) as client:
        statuses = [client.post("/investments", json=body).status_code for _ in range(3)]

    assert statuses == [400, 404, 409]


def test_create_investment_success(monkeypatch) -> None:
    user_id = uuid4()
    goal_id = uuid4()

    async def fake_create(connection, uid, *, goal_id, percentage_debt, percentage_equity):
        return _sample_investment(uid, goal_id, equity=percentage_equity, debt=percentage_debt)

    monkeypatch.setattr(investments_router, "create_investment", fake_create)

    with TestClient(_app_with_overrides(user_id)) as client:
        response = client.post(
            "/investments",
            json={"goal_id": str(goal_id), "percentage_debt": 25, "percentage_equity": 75},
        )

    assert response.status_code == 201
    assert response.json()["data"]["percentage_equity"] == 75


def test_partial_update_forwards_single_side(monkeypatch) -> None:
    user_id = uuid4()
    investment_id = uuid4()
    seen = {}

    async def fake_update(connection, uid, iid, patch):
        seen["patch"] = patch
        return _sample_investment(uid, equity=100 - patch["percentage_debt"], debt=patch["percentage_debt"])

    monkeypatch.setattr(investments_router, "update_investment", fake_update)

    with TestClient(_app_with_overrides(user_id)) as client:
        response = client.put("/investments", json={"id": str(investment_id), "percentage_debt": 30})

    assert response.status_code == 200
    assert seen["patch"] == {"percentage_debt": 30}
    assert response.json()["data"]["percentage_equity"] == 70


def test_calculate_split_returns_bare_pair(monkeypatch) -> None:
    user_id = uuid4()
    goal_id = uuid4()
    seen = {}

    async def fake_calculate(connection, uid, gid, answers, client):
        seen.update({"goal_id": gid, "answers": answers, "client": client})
        return SplitProposal(percentage_equity=75, percentage_debt=25)

    monkeypatch.setattr(investments_router, "calculate_split_for_goal", fake_calculate)
    monkeypatch.setattr(investments_router, "gemini_client_from_settings", lambda: None)

    with TestClient(_app_with_overrides(user_id)) as client:
        response = client.post(
            "/investments/calculate-split",
            json={"goal_id": str(goal_id), "user_questionnaire_answers": ["long horizon"]},
        )

    assert response.status_code == 200
    assert response.json() == {"percentage_equity": 75, "percentage_debt": 25}
    assert seen == {"goal_id": goal_id, "answers": ["long horizon"], "client": None}


def test_calculate_split_without_key_falls_back(monkeypatch) -> None:
    async def fake_get_goal(connection, uid, gid):
        return {"id": gid, "name": "Trip", "description": None, "target_amount": 800}

    monkeypatch.setattr("babysteps.services.split_advisor.get_goal", fake_get_goal)
    monkeypatch.setattr(investments_router.settings, "gemini_api_key", "")

    with TestClient(_app_with_overrides(uuid4())) as client:
        response = client.post("/investments/calculate-split", json={"goal_id": str(uuid4())})

    assert response.status_code == 200
    assert response.json() == DEFAULT_SPLIT.as_dict()


def test_calculate_split_for_missing_goal_is_404(monkeypatch) -> None:
    async def fake_calculate(connection, uid, gid, answers, client):
        raise NotFoundError("Goal not found")

    monkeypatch.setattr(investments_router, "calculate_split_for_goal", fake_calculate)

    with TestClient(_app_with_overrides(uuid4())) as client:
        response = client.post("/investments/calculate-split", json={"goal_id": str(uuid4())})

    assert response.status_code == 404
