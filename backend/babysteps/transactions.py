"""Cash-flow transactions router plus the ledger/surplus summary."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field, field_serializer

from .auth import get_current_user_id
from .database import get_db_connection
from .responses import DataResponse, SuccessResponse, money
from .services.categories_service import list_categories
from .services.ledger import compute_surplus, summarize, total_budgeted
from .services.transactions_service import (
    create_transaction,
    delete_transaction,
    list_transactions,
    update_transaction,
)

router = APIRouter(prefix="/transactions", tags=["transactions"])


class TransactionResponse(BaseModel):
    user_id: UUID
    timestamp: datetime
    category: str
    amount: Decimal

    @field_serializer("amount")
    def serialize_amount(self, value: Decimal) -> str:
        return money(value)


class TransactionCreateRequest(BaseModel):
    category: str = Field(min_length=1, max_length=120)
    amount: Decimal = Field(max_digits=12, decimal_places=2)
    timestamp: datetime | None = None


class TransactionUpdateRequest(BaseModel):
    timestamp: datetime
    category: str | None = Field(default=None, min_length=1, max_length=120)
    amount: Decimal | None = Field(default=None, max_digits=12, decimal_places=2)
    new_timestamp: datetime | None = None


class LedgerSummaryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_inflow: Decimal = Field(alias="totalInflow")
    total_outflow: Decimal = Field(alias="totalOutflow")
    net: Decimal
    count: int
    budgeted: Decimal
    surplus: Decimal

    @field_serializer("total_inflow", "total_outflow", "net", "budgeted", "surplus")
    def serialize_decimal(self, value: Decimal) -> str:
        return money(value)


@router.get("", response_model=DataResponse[list[TransactionResponse]])
async def list_transactions_endpoint(
    flow: Literal["inflow", "outflow"] | None = Query(default=None, alias="filter"),
    start: datetime | None = Query(default=None),
    end: datetime | None = Query(default=None),
    user_id: UUID = Depends(get_current_user_id),
    connection: Any = Depends(get_db_connection),
):
    try:
        rows = await list_transactions(connection, user_id, flow=flow, start=start, end=end)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"data": rows}


@router.get("/summary", response_model=DataResponse[LedgerSummaryResponse])
async def ledger_summary_endpoint(
    user_id: UUID = Depends(get_current_user_id),
    connection: Any = Depends(get_db_connection),
):
    """Inflow/outflow totals and the surplus left after budgeted categories."""
    transactions = await list_transactions(connection, user_id)
    categories = await list_categories(connection, user_id)
    summary = summarize(transactions)

    return {
        "data": LedgerSummaryResponse(
            total_inflow=summary.total_inflow,
            total_outflow=summary.total_outflow,
            net=summary.net,
            count=summary.count,
            budgeted=total_budgeted(categories),
            surplus=compute_surplus(summary, categories),
        )
    }


@router.post("", response_model=DataResponse[TransactionResponse], status_code=status.HTTP_201_CREATED)
async def create_transaction_endpoint(
    payload: TransactionCreateRequest,
    user_id: UUID = Depends(get_current_user_id),
    connection: Any = Depends(get_db_connection),
):
    """Record a transaction; positive amounts are inflow, negative are outflow."""
    try:
        row = await create_transaction(
            connection,
            user_id,
            category=payload.category,
            amount=payload.amount,
            timestamp=payload.timestamp,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"data": row}


@router.put("", response_model=DataResponse[TransactionResponse])
async def update_transaction_endpoint(
    payload: TransactionUpdateRequest,
    user_id: UUID = Depends(get_current_user_id),
    connection: Any = Depends(get_db_connection),
):
    patch = payload.model_dump(exclude_unset=True, exclude={"timestamp"})
    try:
        row = await update_transaction(connection, user_id, payload.timestamp, patch)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"data": row}


@router.delete("", response_model=SuccessResponse)
async def delete_transaction_endpoint(
    timestamp: datetime = Query(),
    user_id: UUID = Depends(get_current_user_id),
    connection: Any = Depends(get_db_connection),
):
    try:
        await delete_transaction(connection, user_id, timestamp)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return SuccessResponse()
