"""Pydantic models for the payment ledger."""

from .enums import (
    PaymentProvider,
    RefundReviewStatus,
    RefundState,
    RefundStatus,
    TransactionStatus,
    TransactionType,
)
from .errors import (
    ERROR_MESSAGES,
    ERROR_RECOVERY,
    STRIPE_ERROR_MESSAGES,
    STRIPE_RETRYABLE_ERRORS,
    ErrorCode,
    ErrorResponse,
    LedgerError,
    NotFoundError,
    get_user_friendly_stripe_message,
    is_stripe_error_retryable,
)
from .stripe_webhook import StripeWebhookEvent, WebhookResult
from .transaction import (
    PaymentTransaction,
    RefundMetadata,
    RefundReconciliation,
    RefundReview,
    RefundTransaction,
    TransactionCreate,
    TransactionDetail,
    TransactionUpdate,
    refund_reference,
    to_major_units,
    withdraw_reference,
)
from .wallet import Booking, VendorWallet, Withdrawal

__all__ = [
    # Enums
    "PaymentProvider",
    "RefundReviewStatus",
    "RefundState",
    "RefundStatus",
    "TransactionStatus",
    "TransactionType",
    # Transactions
    "PaymentTransaction",
    "RefundMetadata",
    "RefundReconciliation",
    "RefundReview",
    "RefundTransaction",
    "TransactionCreate",
    "TransactionDetail",
    "TransactionUpdate",
    "refund_reference",
    "to_major_units",
    "withdraw_reference",
    # Wallet
    "Booking",
    "VendorWallet",
    "Withdrawal",
    # Errors
    "ERROR_MESSAGES",
    "ERROR_RECOVERY",
    "STRIPE_ERROR_MESSAGES",
    "STRIPE_RETRYABLE_ERRORS",
    "ErrorCode",
    "ErrorResponse",
    "LedgerError",
    "NotFoundError",
    "get_user_friendly_stripe_message",
    "is_stripe_error_retryable",
    # Stripe
    "StripeWebhookEvent",
    "WebhookResult",
]
