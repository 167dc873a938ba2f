"""Request and response models for payment, wallet and refund endpoints."""

from pydantic import BaseModel, Field

from ledger.models import PaymentTransaction


class PaymentIntentRequest(BaseModel):
    """Request to start paying for a booking.

    The amount and currency come from the booking, never from the client.
    """

    booking_id: str = Field(
        ...,
        description="Booking to pay for",
        examples=["BK-2026-ABC123"],
    )


class PaymentIntentResult(BaseModel):
    """Pending transaction plus the secret the client confirms the payment with."""

    transaction: PaymentTransaction
    client_secret: str | None = Field(
        default=None, description="Stripe PaymentIntent client secret"
    )


class WithdrawRequest(BaseModel):
    """Vendor withdrawal request."""

    amount: int = Field(
        ...,
        gt=0,
        description="Amount to withdraw in cents",
        examples=[5000],
    )
    currency: str | None = Field(
        default=None,
        description="ISO currency code, defaults to the wallet currency",
        examples=["usd"],
    )


class WebhookResponse(BaseModel):
    """Acknowledgement returned to Stripe for every verified event."""

    received: bool = True
    success: bool = True
    event_id: str | None = None
    event_type: str | None = None
    processing_result: str  # "success", "duplicate", "skipped", "error"
    message: str | None = None
