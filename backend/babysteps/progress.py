"""Baby-steps progress router (`/progress`)."""

from dataclasses import asdict
from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from .auth import get_current_user_id
from .database import get_db_connection
from .responses import DataResponse
from .services.errors import ConflictError
from .services.progress_service import BABY_STEPS, create_progress, get_progress, upsert_progress

router = APIRouter(prefix="/progress", tags=["progress"])


class ProgressResponse(BaseModel):
    id: UUID
    user_id: UUID
    current_step: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ProgressRequest(BaseModel):
    current_step: int


class BabyStepResponse(BaseModel):
    number: int
    title: str


@router.get("", response_model=DataResponse[ProgressResponse | None])
async def get_progress_endpoint(
    user_id: UUID = Depends(get_current_user_id),
    connection: Any = Depends(get_db_connection),
):
    row = await get_progress(connection, user_id)
    return {"data": row}


@router.get("/steps", response_model=DataResponse[list[BabyStepResponse]])
async def list_steps_endpoint(user_id: UUID = Depends(get_current_user_id)):
    return {"data": [asdict(step) for step in BABY_STEPS]}


@router.post("", response_model=DataResponse[ProgressResponse], status_code=status.HTTP_201_CREATED)
async def create_progress_endpoint(
    payload: ProgressRequest,
    user_id: UUID = Depends(get_current_user_id),
    connection: Any = Depends(get_db_connection),
):
    try:
        row = await create_progress(connection, user_id, payload.current_step)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return {"data": row}


@router.put("", response_model=DataResponse[ProgressResponse])
async def update_progress_endpoint(
    payload: ProgressRequest,
    user_id: UUID = Depends(get_current_user_id),
    connection: Any = Depends(get_db_connection),
):
    """Set the caller's step, creating the row if it does not exist yet."""
    try:
        row = await upsert_progress(connection, user_id, payload.current_step)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"data": row}
