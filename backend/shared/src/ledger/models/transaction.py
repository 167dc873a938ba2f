"""Payment and refund transaction models.

Amounts are integer minor units (cents) throughout. Use ``to_major_units``
only when presenting an amount to a person.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .enums import (
    PaymentProvider,
    RefundReviewStatus,
    RefundState,
    RefundStatus,
    TransactionStatus,
    TransactionType,
)

REFUND_REFERENCE_SUFFIX = "_refund"
WITHDRAW_REFERENCE_SUFFIX = "_withdraw"


def refund_reference(payment_intent_id: str) -> str:
    """Reference number of the refund record for a payment intent."""
    return f"{payment_intent_id}{REFUND_REFERENCE_SUFFIX}"


def withdraw_reference(payout_id: str) -> str:
    """Reference number of the withdraw record for a Stripe payout."""
    return f"{payout_id}{WITHDRAW_REFERENCE_SUFFIX}"


def to_major_units(amount: int) -> Decimal:
    """Convert a minor-unit amount to major units (e.g. 4250 -> 42.50)."""
    return (Decimal(amount) / 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class PaymentTransaction(BaseModel):
    """A payment, refund or withdraw record tied to a booking or vendor."""

    model_config = ConfigDict(strict=True)

    transaction_id: str = Field(..., description="Unique transaction ID")
    reference_number: str | None = Field(
        default=None,
        description="Stripe PaymentIntent ID, or a derived refund/withdraw reference",
        examples=["pi_3ABC123DEF456", "pi_3ABC123DEF456_refund"],
    )
    booking_id: str | None = Field(default=None, description="Owning booking")
    user_id: str | None = Field(
        default=None, description="Vendor owner for withdraw records"
    )
    type: TransactionType = Field(default=TransactionType.PAYMENT)
    provider: PaymentProvider = Field(default=PaymentProvider.STRIPE)
    status: TransactionStatus = Field(default=TransactionStatus.PENDING)
    amount: int | None = Field(default=None, ge=0, description="Requested amount in cents")
    currency: str | None = Field(default=None, description="ISO currency code")
    paid_amount: int | None = Field(default=None, ge=0, description="Captured amount in cents")
    paid_currency: str | None = Field(default=None)
    raw_status: str | None = Field(
        default=None, description="Verbatim processor status, kept for audit"
    )
    refund_transaction_id: str | None = Field(
        default=None, description="Refund record owned by a refund-type transaction"
    )
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime | None = Field(default=None)


class RefundTransaction(BaseModel):
    """Progress record for a refund-type PaymentTransaction.

    Exactly one of the three progress timestamps is expected to be set once
    the processor reports on the refund. ``completed_at`` and ``failed_at``
    are terminal.
    """

    model_config = ConfigDict(strict=True)

    refund_id: str = Field(..., description="Unique refund record ID")
    transaction_id: str = Field(..., description="Owning refund-type transaction")
    booking_id: str | None = Field(default=None)
    requested_amount: int | None = Field(default=None, ge=0)
    stripe_refund_id: str | None = Field(
        default=None, examples=["re_3ABC123DEF456"]
    )
    processing_at: datetime | None = Field(default=None)
    completed_at: datetime | None = Field(default=None)
    failed_at: datetime | None = Field(default=None)
    refund_amount: int | None = Field(
        default=None, description="Amount clawed back from the vendor wallet, in cents"
    )
    commission_amount: int | None = Field(default=None)
    created_at: datetime = Field(...)

    @property
    def is_terminal(self) -> bool:
        return self.completed_at is not None or self.failed_at is not None

    @property
    def state(self) -> RefundState:
        if self.completed_at is not None:
            return RefundState.COMPLETED
        if self.failed_at is not None:
            return RefundState.FAILED
        if self.processing_at is not None:
            return RefundState.PROCESSING
        return RefundState.REQUESTED


class TransactionDetail(BaseModel):
    """A transaction together with its refund record, if any."""

    transaction: PaymentTransaction
    refund: RefundTransaction | None = None


class TransactionCreate(BaseModel):
    """Fields accepted when recording a new transaction.

    Only fields that are set end up on the stored record. Amounts given as
    strings, floats or Decimals are coerced to whole cents; fractions are
    rejected.
    """

    booking_id: str | None = None
    amount: int | None = Field(default=None, ge=0)
    currency: str | None = None
    reference_number: str | None = None
    status: TransactionStatus = TransactionStatus.PENDING
    type: TransactionType = TransactionType.PAYMENT
    user_id: str | None = None
    paid_amount: int | None = Field(default=None, ge=0)
    paid_currency: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _coerce_amounts(cls, data: Any) -> Any:
        if isinstance(data, dict):
            for key in ("amount", "paid_amount"):
                value = data.get(key)
                if isinstance(value, (str, float, Decimal)):
                    try:
                        cents = Decimal(str(value))
                    except InvalidOperation as e:
                        raise ValueError(f"{key} must be a number, got {value!r}") from e
                    if not cents.is_finite() or cents != cents.to_integral_value():
                        raise ValueError(f"{key} must be a whole number of cents, got {value}")
                    data = {**data, key: int(cents)}
        return data

    def present_fields(self) -> dict[str, Any]:
        """Fields to store, omitting the ones that were not supplied."""
        return self.model_dump(exclude_none=True, mode="json")


class TransactionUpdate(BaseModel):
    """Sparse status update applied to every row with a reference number."""

    reference_number: str
    status: TransactionStatus = TransactionStatus.PENDING
    paid_amount: int | None = Field(default=None, ge=0)
    paid_currency: str | None = None
    raw_status: str | None = None

    def present_fields(self) -> dict[str, Any]:
        """Updatable fields that were supplied."""
        return self.model_dump(
            exclude={"reference_number"}, exclude_none=True, mode="json"
        )

    def booking_fields(self) -> dict[str, Any]:
        """The same update expressed as booking payment-mirror fields."""
        names = {
            "status": "payment_status",
            "paid_amount": "paid_amount",
            "paid_currency": "paid_currency",
            "raw_status": "payment_raw_status",
        }
        return {names[key]: value for key, value in self.present_fields().items()}


class RefundMetadata(BaseModel):
    """Metadata attached to the original charge, echoed back by Stripe."""

    vendor_id: str | None = None
    user_id: str | None = None
    invoice_number: str | None = None
    booking_id: str | None = None


class RefundReconciliation(BaseModel):
    """Outcome of reconciling one refund webhook event."""

    transaction_id: str
    refund_id: str
    status: RefundStatus
    applied: bool = Field(
        ..., description="False when the event was a replay or arrived too late"
    )
    refund_amount: int | None = None
    commission_amount: int | None = None
    vendor_id: str | None = None


class RefundReview(BaseModel):
    """Admin decision on a refund request."""

    status: RefundReviewStatus
    partial_refund: bool
    full_refund: bool | None = None
    amount: int | None = Field(
        default=None, gt=0, description="Partial refund amount in cents"
    )

    @model_validator(mode="after")
    def _partial_needs_amount(self) -> "RefundReview":
        if (
            self.status == RefundReviewStatus.APPROVED
            and self.partial_refund
            and self.amount is None
        ):
            raise ValueError("amount is required for a partial refund")
        return self
