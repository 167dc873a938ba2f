"""Refund commission policy.

Decides how much of a completed refund is clawed back from the vendor's
wallet:

- Full refund (refunded amount == charged amount): the whole refunded amount,
  no commission.
- Partial refund: the refunded amount minus the platform commission, which
  was already retained on the original charge.

All amounts are integer minor units (cents). The commission is rounded
half-up to a whole cent.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import TypedDict

from ledger.models.transaction import to_major_units


class RefundCalculation(TypedDict):
    """Result of the refund commission calculation."""

    refund_amount: int  # Amount in cents taken from the vendor wallet
    commission_amount: int  # Commission in cents kept by the platform
    commission_percent: Decimal
    is_full_refund: bool
    description: str


class RefundPolicyService:
    """Computes the vendor clawback for a completed refund."""

    DEFAULT_COMMISSION_PERCENT = Decimal("15")

    def __init__(self, commission_percent: Decimal | int | str | None = None) -> None:
        """Initialize with the platform commission rate.

        Args:
            commission_percent: Commission in percent (0-100). Defaults to 15.
        """
        percent = (
            self.DEFAULT_COMMISSION_PERCENT
            if commission_percent is None
            else Decimal(str(commission_percent))
        )
        if not Decimal("0") <= percent <= Decimal("100"):
            raise ValueError(f"commission_percent must be within 0-100, got {percent}")
        self.commission_percent = percent

    def calculate_refund_amount(
        self,
        amount: int,
        amount_refunded: int,
    ) -> RefundCalculation:
        """Calculate the amount to deduct from the vendor wallet.

        Args:
            amount: Original charge amount in cents
            amount_refunded: Amount refunded to the customer in cents

        Returns:
            RefundCalculation with the clawback and commission in cents
        """
        if amount == amount_refunded:
            return RefundCalculation(
                refund_amount=amount_refunded,
                commission_amount=0,
                commission_percent=Decimal("0"),
                is_full_refund=True,
                description=(
                    f"Full refund of {to_major_units(amount_refunded)}: "
                    "no commission retained"
                ),
            )

        commission = (
            Decimal(amount_refunded) * self.commission_percent / 100
        ).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        commission_amount = int(commission)
        refund_amount = amount_refunded - commission_amount

        return RefundCalculation(
            refund_amount=refund_amount,
            commission_amount=commission_amount,
            commission_percent=self.commission_percent,
            is_full_refund=False,
            description=(
                f"Partial refund of {to_major_units(amount_refunded)}: "
                f"{self.commission_percent}% commission "
                f"({to_major_units(commission_amount)}) retained, "
                f"{to_major_units(refund_amount)} deducted from vendor"
            ),
        )
