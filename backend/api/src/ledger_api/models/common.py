"""Shared API response models.

Domain models (PaymentTransaction, VendorWallet, ...) live in ledger.models.
This module holds HTTP layer envelopes only.
"""

from typing import Generic, TypeVar

from pydantic import BaseModel, Field

from ledger.models.errors import ErrorCode, ErrorResponse

__all__ = [
    "DataResponse",
    "ErrorCode",
    "ErrorResponse",
]

T = TypeVar("T")


class DataResponse(BaseModel, Generic[T]):
    """Success envelope carrying a payload: ``{success, message, data}``."""

    success: bool = True
    message: str = Field(default="OK", description="Human-readable success message")
    data: T
