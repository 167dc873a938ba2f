"""Vendor wallet and booking read models."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, computed_field

from .transaction import PaymentTransaction, to_major_units


class VendorWallet(BaseModel):
    """Running balance of funds owed to a vendor, in cents."""

    model_config = ConfigDict(strict=True)

    user_id: str = Field(..., description="Vendor owner")
    balance: int = Field(default=0, description="Balance in cents")
    currency: str = Field(default="usd")
    stripe_account_id: str | None = Field(
        default=None,
        description="Connected Stripe account used for payouts",
        examples=["acct_1ABC123DEF456"],
    )
    updated_at: datetime | None = Field(default=None)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def balance_major(self) -> Decimal:
        return to_major_units(self.balance)


class Withdrawal(BaseModel):
    """Result of a vendor withdrawal."""

    payout_id: str
    amount: int
    currency: str
    status: str | None = None
    transaction: PaymentTransaction
    wallet: VendorWallet


class Booking(BaseModel):
    """The slice of a booking record the ledger reads and mirrors into."""

    booking_id: str
    user_id: str | None = None
    vendor_id: str | None = None
    invoice_number: str | None = None
    amount: int | None = Field(default=None, description="Booking total in cents")
    currency: str | None = None
    payment_status: str | None = None
    paid_amount: int | None = None
    paid_currency: str | None = None
    payment_raw_status: str | None = None
    refund_request_status: str | None = None
