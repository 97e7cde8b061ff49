"""Investments router (`/investments`) including the split calculator."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from .ai.gemini_client import gemini_client_from_settings
from .auth import get_current_user_id
from .config import settings
from .database import get_db_connection
from .responses import DataResponse, SuccessResponse
from .services.errors import ConflictError
from .services.investments_service import (
    create_investment,
    delete_investment,
    get_investment_for_goal,
    list_investments,
    update_investment,
)
from .services.split_advisor import calculate_split_for_goal

router = APIRouter(prefix="/investments", tags=["investments"])


class InvestmentResponse(BaseModel):
    id: UUID
    user_id: UUID
    goal_id: UUID
    percentage_debt: float
    percentage_equity: float
    created_at: datetime | None = None
    updated_at: datetime | None = None


class InvestmentCreateRequest(BaseModel):
    goal_id: UUID
    percentage_debt: float
    percentage_equity: float


class InvestmentUpdateRequest(BaseModel):
    id: UUID
    percentage_debt: float | None = None
    percentage_equity: float | None = None


class SplitRequest(BaseModel):
    goal_id: UUID
    user_questionnaire_answers: Any | None = None


class SplitResponse(BaseModel):
    percentage_equity: int
    percentage_debt: int


@router.get("")
async def list_investments_endpoint(
    goal_id: UUID | None = Query(default=None),
    user_id: UUID = Depends(get_current_user_id),
    connection: Any = Depends(get_db_connection),
) -> dict[str, Any]:
    """List the caller's investments, or the single one held by `goal_id`."""
    if goal_id is not None:
        try:
            row = await get_investment_for_goal(connection, user_id, goal_id)
        except LookupError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return {"data": InvestmentResponse.model_validate(row).model_dump(mode="json")}

    rows = await list_investments(connection, user_id)
    return {"data": [InvestmentResponse.model_validate(row).model_dump(mode="json") for row in rows]}


@router.post("", response_model=DataResponse[InvestmentResponse], status_code=status.HTTP_201_CREATED)
async def create_investment_endpoint(
    payload: InvestmentCreateRequest,
    user_id: UUID = Depends(get_current_user_id),
    connection: Any = Depends(get_db_connection),
):
    try:
        row = await create_investment(
            connection,
            user_id,
            goal_id=payload.goal_id,
            percentage_debt=payload.percentage_debt,
            percentage_equity=payload.percentage_equity,
        )
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return {"data": row}


@router.put("", response_model=DataResponse[InvestmentResponse])
async def update_investment_endpoint(
    payload: InvestmentUpdateRequest,
    user_id: UUID = Depends(get_current_user_id),
    connection: Any = Depends(get_db_connection),
):
    """Update the split; sending one side derives the other as `100 - side`."""
    patch = payload.model_dump(exclude_unset=True, exclude={"id"})
    try:
        row = await update_investment(connection, user_id, payload.id, patch)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"data": row}


@router.delete("", response_model=SuccessResponse)
async def delete_investment_endpoint(
    investment_id: UUID = Query(alias="id"),
    user_id: UUID = Depends(get_current_user_id),
    connection: Any = Depends(get_db_connection),
):
    try:
        await delete_investment(connection, user_id, investment_id)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return SuccessResponse()


@router.post("/calculate-split", response_model=SplitResponse)
async def calculate_split_endpoint(
    payload: SplitRequest,
    user_id: UUID = Depends(get_current_user_id),
    connection: Any = Depends(get_db_connection),
):
    """
    Propose an equity/debt split for one goal.

    Upstream model failures never surface here; they fall back to 60/40.
    """
    try:
        split = await calculate_split_for_goal(
            connection,
            user_id,
            payload.goal_id,
            payload.user_questionnaire_answers,
            gemini_client_from_settings(),
        )
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return split.as_dict()
