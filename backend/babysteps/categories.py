"""Budget categories router (`/categories`)."""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_serializer

from .auth import get_current_user_id
from .database import get_db_connection
from .responses import DataResponse, SuccessResponse, money
from .services.categories_service import (
    create_category,
    delete_category,
    list_categories,
    update_category,
)

router = APIRouter(prefix="/categories", tags=["categories"])


class CategoryResponse(BaseModel):
    id: UUID
    user_id: UUID
    name: str
    size: Decimal
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_serializer("size")
    def serialize_size(self, value: Decimal) -> str:
        return money(value)


class CategoryCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=80)
    size: Decimal = Field(ge=Decimal("0"), max_digits=12, decimal_places=2)


class CategoryUpdateRequest(BaseModel):
    id: UUID
    name: str | None = Field(default=None, min_length=1, max_length=80)
    size: Decimal | None = Field(default=None, ge=Decimal("0"), max_digits=12, decimal_places=2)


@router.get("", response_model=DataResponse[list[CategoryResponse]])
async def list_categories_endpoint(
    user_id: UUID = Depends(get_current_user_id),
    connection: Any = Depends(get_db_connection),
):
    rows = await list_categories(connection, user_id)
    return {"data": rows}


@router.post("", response_model=DataResponse[CategoryResponse], status_code=status.HTTP_201_CREATED)
async def create_category_endpoint(
    payload: CategoryCreateRequest,
    user_id: UUID = Depends(get_current_user_id),
    connection: Any = Depends(get_db_connection),
):
    """Create a category. Names are unique per user, case-insensitively."""
    try:
        row = await create_category(connection, user_id, name=payload.name, size=payload.size)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"data": row}


@router.put("", response_model=DataResponse[CategoryResponse])
async def update_category_endpoint(
    payload: CategoryUpdateRequest,
    user_id: UUID = Depends(get_current_user_id),
    connection: Any = Depends(get_db_connection),
):
    patch = payload.model_dump(exclude_unset=True, exclude={"id"})
    try:
        row = await update_category(connection, user_id, payload.id, patch)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"data": row}


@router.delete("", response_model=SuccessResponse)
async def delete_category_endpoint(
    category_id: UUID = Query(alias="id"),
    user_id: UUID = Depends(get_current_user_id),
    connection: Any = Depends(get_db_connection),
):
    try:
        await delete_category(connection, user_id, category_id)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return SuccessResponse()
