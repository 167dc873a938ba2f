"""Stripe webhook event models for idempotency and auditing."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class StripeWebhookEvent(BaseModel):
    """Log of a received Stripe webhook event.

    Used for:
    - Idempotency: prevent processing same event twice
    - Auditing: track all webhook deliveries
    """

    model_config = ConfigDict(strict=True)

    event_id: str = Field(
        ...,
        description="Stripe event ID (evt_xxx)",
        examples=["evt_1ABC123DEF456"],
    )
    event_type: str = Field(
        ...,
        description="Stripe event type",
        examples=["charge.refunded", "payment_intent.succeeded"],
    )
    processed_at: datetime = Field(..., description="When the event was processed")
    payload_hash: str = Field(
        ...,
        description="SHA-256 hash of payload for deduplication",
    )
    reference_number: str | None = Field(
        default=None,
        description="PaymentIntent ID the event refers to",
    )
    booking_id: str | None = Field(
        default=None,
        description="Booking ID from the event metadata",
    )
    processing_result: str = Field(
        default="success",
        description="Result of processing: success, skipped, error",
    )
    error_message: str | None = Field(default=None)


class WebhookResult(BaseModel):
    """Outcome of dispatching one webhook event."""

    event_id: str | None = None
    event_type: str | None = None
    processing_result: str  # "success", "duplicate", "skipped", "error"
    success: bool = True
    message: str | None = None
