"""Goals router: CRUD, surplus allocation and growth forecast."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_serializer, model_validator

from .ai.gemini_client import gemini_client_from_settings
from .auth import get_current_user_id
from .database import get_db_connection
from .investments import InvestmentResponse
from .responses import DataResponse, SuccessResponse, money
from .services.allocation_service import Allocation, allocate, allocate_many
from .services.forecast import MAX_FORECAST_MONTHS, forecast
from .services.goal_setup import create_goal_with_split
from .services.goals_service import delete_goal, get_goal, list_goals, update_goal
from .services.investments_service import get_investment_for_goal

router = APIRouter(prefix="/goals", tags=["goals"])


class GoalResponse(BaseModel):
    id: UUID
    user_id: UUID
    name: str
    description: str | None = None
    target_amount: Decimal
    current_amount: Decimal
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_serializer("target_amount", "current_amount")
    def serialize_decimal(self, value: Decimal) -> str:
        return money(value)


class GoalCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    description: str | None = Field(default=None, max_length=1000)
    target_amount: Decimal = Field(gt=Decimal("0"), max_digits=12, decimal_places=2)
    # Opaque onboarding answers, forwarded to the split advisor as-is.
    user_questionnaire_answers: Any | None = None


class GoalCreateResponse(BaseModel):
    data: GoalResponse
    investment: InvestmentResponse


class GoalUpdateRequest(BaseModel):
    id: UUID
    name: str | None = Field(default=None, min_length=1, max_length=120)
    description: str | None = Field(default=None, max_length=1000)
    target_amount: Decimal | None = Field(default=None, gt=Decimal("0"), max_digits=12, decimal_places=2)
    current_amount: Decimal | None = Field(default=None, ge=Decimal("0"), max_digits=12, decimal_places=2)


class AllocationItem(BaseModel):
    goal_id: UUID
    amount: Decimal = Field(max_digits=12, decimal_places=2)


class AllocateRequest(BaseModel):
    """Either `{goal_id, amount}` or `{allocations: [...]}`."""

    goal_id: UUID | None = None
    amount: Decimal | None = Field(default=None, max_digits=12, decimal_places=2)
    allocations: list[AllocationItem] | None = None

    @model_validator(mode="after")
    def check_shape(self) -> "AllocateRequest":
        if self.allocations is not None:
            return self
        if self.goal_id is None or self.amount is None:
            raise ValueError(
                "Invalid request body. Provide either { goal_id, amount } or { allocations: [...] }"
            )
        return self


class ForecastPointResponse(BaseModel):
    month_label: str
    total_value: int
    equity_value: int
    debt_value: int


class ForecastResponse(BaseModel):
    goal_id: UUID
    percentage_equity: float
    percentage_debt: float
    monthly_contribution: Decimal
    points: list[ForecastPointResponse]

    @field_serializer("monthly_contribution")
    def serialize_contribution(self, value: Decimal) -> str:
        return money(value)


@router.get("", response_model=DataResponse[list[GoalResponse]])
async def list_goals_endpoint(
    user_id: UUID = Depends(get_current_user_id),
    connection: Any = Depends(get_db_connection),
):
    rows = await list_goals(connection, user_id)
    return {"data": rows}


@router.post("", response_model=GoalCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_goal_endpoint(
    payload: GoalCreateRequest,
    user_id: UUID = Depends(get_current_user_id),
    connection: Any = Depends(get_db_connection),
):
    """
    Create a goal starting at a zero balance.

    The goal's equity/debt split is proposed from the questionnaire answers and
    stored as its investment record in the same request.
    """
    try:
        goal, investment = await create_goal_with_split(
            connection,
            user_id,
            payload.model_dump(exclude={"user_questionnaire_answers"}),
            payload.user_questionnaire_answers,
            gemini_client_from_settings(),
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"data": goal, "investment": investment}


@router.put("", response_model=DataResponse[GoalResponse])
async def update_goal_endpoint(
    payload: GoalUpdateRequest,
    user_id: UUID = Depends(get_current_user_id),
    connection: Any = Depends(get_db_connection),
):
    patch = payload.model_dump(exclude_unset=True, exclude={"id"})
    try:
        row = await update_goal(connection, user_id, payload.id, patch)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"data": row}


@router.delete("", response_model=SuccessResponse)
async def delete_goal_endpoint(
    goal_id: UUID = Query(alias="id"),
    user_id: UUID = Depends(get_current_user_id),
    connection: Any = Depends(get_db_connection),
):
    """Delete one goal and its investment record."""
    try:
        await delete_goal(connection, user_id, goal_id)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return SuccessResponse()


@router.post("/allocate")
async def allocate_endpoint(
    payload: AllocateRequest,
    user_id: UUID = Depends(get_current_user_id),
    connection: Any = Depends(get_db_connection),
) -> dict[str, Any]:
    """
    Add surplus money to one goal or to several goals in order.

    A batch naming any goal the caller does not own is rejected before any write.
    """
    try:
        if payload.allocations is not None:
            rows = await allocate_many(
                connection,
                user_id,
                [Allocation(goal_id=item.goal_id, amount=item.amount) for item in payload.allocations],
            )
            return {"data": [GoalResponse.model_validate(row).model_dump(mode="json") for row in rows]}

        row = await allocate(connection, user_id, payload.goal_id, payload.amount)
        return {"data": GoalResponse.model_validate(row).model_dump(mode="json")}
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.get("/{goal_id}", response_model=DataResponse[GoalResponse])
async def get_goal_endpoint(
    goal_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    connection: Any = Depends(get_db_connection),
):
    try:
        row = await get_goal(connection, user_id, goal_id)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"data": row}


@router.get("/{goal_id}/forecast", response_model=DataResponse[ForecastResponse])
async def forecast_goal_endpoint(
    goal_id: UUID,
    months: int = Query(default=12, ge=1, le=MAX_FORECAST_MONTHS),
    monthly_contribution: Decimal = Query(default=Decimal("0"), ge=Decimal("0")),
    user_id: UUID = Depends(get_current_user_id),
    connection: Any = Depends(get_db_connection),
):
    """Project the goal balance under its split; read-only."""
    try:
        goal = await get_goal(connection, user_id, goal_id)
        investment = await get_investment_for_goal(connection, user_id, goal_id)
        points = forecast(goal, investment, monthly_contribution, months)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return {
        "data": {
            "goal_id": goal_id,
            "percentage_equity": investment["percentage_equity"],
            "percentage_debt": investment["percentage_debt"],
            "monthly_contribution": monthly_contribution,
            "points": [asdict(point) for point in points],
        }
    }
