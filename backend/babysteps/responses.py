"""Response envelopes and money formatting shared by the routers."""

from decimal import Decimal, ROUND_HALF_UP
from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


def money(value: Decimal) -> str:
    return str(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


class DataResponse(BaseModel, Generic[T]):
    data: T


class SuccessResponse(BaseModel):
    success: bool = True


class ErrorResponse(BaseModel):
    error: str
