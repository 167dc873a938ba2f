"""API request/response models."""

from .common import DataResponse, ErrorCode, ErrorResponse
from .payments import (
    PaymentIntentRequest,
    PaymentIntentResult,
    WebhookResponse,
    WithdrawRequest,
)

__all__ = [
    "DataResponse",
    "ErrorCode",
    "ErrorResponse",
    "PaymentIntentRequest",
    "PaymentIntentResult",
    "WebhookResponse",
    "WithdrawRequest",
]
