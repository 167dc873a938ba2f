"""Standard error codes for the payment ledger.

Every service raises LedgerError (or its NotFoundError subclass) with one of
these codes so the HTTP layer and the webhook handler can turn failures into
consistent responses.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ErrorCode(str, Enum):
    """Standard ledger error codes."""

    # Lookup failures (ERR_LEDGER_001-ERR_LEDGER_006)
    PAYMENT_NOT_FOUND = "ERR_LEDGER_001"
    REFUND_NOT_FOUND = "ERR_LEDGER_002"
    WALLET_NOT_FOUND = "ERR_LEDGER_003"
    BOOKING_NOT_FOUND = "ERR_LEDGER_004"
    TRANSACTION_NOT_FOUND = "ERR_LEDGER_005"
    VENDOR_NOT_FOUND = "ERR_LEDGER_006"

    # Business rule violations (ERR_LEDGER_010-ERR_LEDGER_014)
    DUPLICATE_REFERENCE = "ERR_LEDGER_010"
    INSUFFICIENT_BALANCE = "ERR_LEDGER_011"
    PAYOUT_ACCOUNT_MISSING = "ERR_LEDGER_012"
    REFUND_NOT_ALLOWED = "ERR_LEDGER_013"
    INVALID_AMOUNT = "ERR_LEDGER_014"

    # Stripe errors (ERR_STRIPE_001-ERR_STRIPE_002)
    INVALID_WEBHOOK_SIGNATURE = "ERR_STRIPE_001"
    STRIPE_API_ERROR = "ERR_STRIPE_002"


ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.PAYMENT_NOT_FOUND: "Payment not found",
    ErrorCode.REFUND_NOT_FOUND: "Refund transaction not found for this payment",
    ErrorCode.WALLET_NOT_FOUND: "Vendor wallet not found",
    ErrorCode.BOOKING_NOT_FOUND: "Booking not found",
    ErrorCode.TRANSACTION_NOT_FOUND: "Transaction not found",
    ErrorCode.VENDOR_NOT_FOUND: "Vendor not found for this refund",
    ErrorCode.DUPLICATE_REFERENCE: "A transaction with this reference number already exists",
    ErrorCode.INSUFFICIENT_BALANCE: "Insufficient balance",
    ErrorCode.PAYOUT_ACCOUNT_MISSING: "Vendor does not have a Stripe account linked",
    ErrorCode.REFUND_NOT_ALLOWED: "Booking has no refundable payment",
    ErrorCode.INVALID_AMOUNT: "Amount is not valid for this operation",
    ErrorCode.INVALID_WEBHOOK_SIGNATURE: "Invalid webhook signature",
    ErrorCode.STRIPE_API_ERROR: "Stripe API error occurred",
}

ERROR_RECOVERY: dict[ErrorCode, str] = {
    ErrorCode.PAYMENT_NOT_FOUND: "Verify the payment intent was refunded through the platform",
    ErrorCode.REFUND_NOT_FOUND: "Re-create the refund request for this booking",
    ErrorCode.WALLET_NOT_FOUND: "Create the vendor wallet before processing refunds",
    ErrorCode.BOOKING_NOT_FOUND: "Verify the booking ID",
    ErrorCode.TRANSACTION_NOT_FOUND: "Verify the transaction ID",
    ErrorCode.VENDOR_NOT_FOUND: "Ensure vendor_id is set in the payment metadata",
    ErrorCode.DUPLICATE_REFERENCE: "Look up the existing transaction instead of creating a new one",
    ErrorCode.INSUFFICIENT_BALANCE: "Request a smaller amount",
    ErrorCode.PAYOUT_ACCOUNT_MISSING: "Link a Stripe account before withdrawing",
    ErrorCode.REFUND_NOT_ALLOWED: "Only bookings with a succeeded payment can be refunded",
    ErrorCode.INVALID_AMOUNT: "Use a positive amount that does not exceed the paid amount",
    ErrorCode.INVALID_WEBHOOK_SIGNATURE: "Verify webhook secret configuration",
    ErrorCode.STRIPE_API_ERROR: "Try again or contact support",
}


class ErrorResponse(BaseModel):
    """Standard error response body."""

    model_config = ConfigDict(strict=True)

    success: bool = False
    error_code: ErrorCode
    message: str
    recovery: str
    details: Optional[dict[str, str]] = None

    @classmethod
    def from_code(
        cls,
        code: ErrorCode,
        details: Optional[dict[str, str]] = None,
    ) -> "ErrorResponse":
        """Create an ErrorResponse from an error code.

        Args:
            code: The error code
            details: Optional additional context about the error

        Returns:
            An ErrorResponse with the message and recovery hint for the code.
        """
        return cls(
            error_code=code,
            message=ERROR_MESSAGES[code],
            recovery=ERROR_RECOVERY[code],
            details=details,
        )


class LedgerError(Exception):
    """Exception raised by ledger operations."""

    def __init__(
        self,
        code: ErrorCode,
        details: Optional[dict[str, str]] = None,
    ):
        self.code = code
        self.message = ERROR_MESSAGES[code]
        self.recovery = ERROR_RECOVERY[code]
        self.details = details
        super().__init__(self.message)

    def to_response(self) -> ErrorResponse:
        """Convert this exception to an ErrorResponse."""
        return ErrorResponse.from_code(self.code, self.details)


class NotFoundError(LedgerError):
    """A record required by the operation does not exist."""


# Stripe error code to user-friendly message mapping
STRIPE_ERROR_MESSAGES: dict[str, str] = {
    "card_declined": "Your card was declined. Please try a different card.",
    "expired_card": "Your card has expired. Please use a different card.",
    "insufficient_funds": "Your card has insufficient funds. Please try a different card.",
    "charge_already_refunded": "This payment has already been refunded.",
    "amount_too_large": "The refund amount exceeds the amount paid.",
    "balance_insufficient": "The platform balance cannot cover this payout right now.",
    "account_invalid": "The linked Stripe account cannot receive payouts.",
    "processing_error": "A processing error occurred. Please try again.",
    "rate_limit": "Too many requests. Please wait a moment and try again.",
}

# Stripe error codes that indicate the caller should retry
STRIPE_RETRYABLE_ERRORS: set[str] = {
    "processing_error",
    "rate_limit",
    "lock_timeout",
    "api_connection_error",
}


def get_user_friendly_stripe_message(
    stripe_error_code: Optional[str],
    default_message: str = "Payment could not be processed. Please try again.",
) -> str:
    """Get a user-friendly message for a Stripe error code.

    Args:
        stripe_error_code: The Stripe error code (e.g., 'card_declined').
        default_message: Message to use if error code is unknown.

    Returns:
        User-friendly error message.
    """
    if stripe_error_code and stripe_error_code in STRIPE_ERROR_MESSAGES:
        return STRIPE_ERROR_MESSAGES[stripe_error_code]
    return default_message


def is_stripe_error_retryable(stripe_error_code: Optional[str]) -> bool:
    """Check if a Stripe error is likely transient and retryable."""
    return stripe_error_code in STRIPE_RETRYABLE_ERRORS if stripe_error_code else False
