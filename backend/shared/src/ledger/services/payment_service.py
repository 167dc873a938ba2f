"""Payment service for booking payments and refund requests.

Starts a Stripe payment for a booking and turns an approved refund request
into a Stripe refund plus the ledger records that the refund webhooks later
reconcile against.
"""

import logging
from typing import TYPE_CHECKING, Any

from ledger.config import LedgerConfig, get_config
from ledger.models import (
    ErrorCode,
    LedgerError,
    PaymentTransaction,
    RefundReview,
    RefundReviewStatus,
    RefundStatus,
    TransactionDetail,
    TransactionStatus,
    TransactionType,
    get_user_friendly_stripe_message,
    is_stripe_error_retryable,
)

from .stripe_service import StripeServiceError

if TYPE_CHECKING:
    from .booking_service import BookingService
    from .stripe_service import StripeService
    from .transaction_repository import TransactionRepository

logger = logging.getLogger(__name__)


def _stripe_failure(error: StripeServiceError) -> LedgerError:
    return LedgerError(
        ErrorCode.STRIPE_API_ERROR,
        details={
            "message": get_user_friendly_stripe_message(error.stripe_error_code),
            "retryable": str(is_stripe_error_retryable(error.stripe_error_code)).lower(),
        },
    )


class PaymentService:
    """Service for starting payments and reviewing refund requests."""

    def __init__(
        self,
        stripe_service: "StripeService",
        repository: "TransactionRepository",
        bookings: "BookingService",
        config: LedgerConfig | None = None,
    ) -> None:
        """Initialize payment service.

        Args:
            stripe_service: Stripe API wrapper
            repository: Transaction repository
            bookings: Booking service
            config: Ledger settings (defaults to the environment config)
        """
        self.stripe = stripe_service
        self.repository = repository
        self.bookings = bookings
        self.config = config or get_config()

    def initiate_booking_payment(self, booking_id: str) -> dict[str, Any]:
        """Create a PaymentIntent for a booking and record it as pending.

        The intent carries the booking, vendor, customer and invoice in its
        metadata so refund events can be attributed to the vendor later.

        Args:
            booking_id: Booking to pay for

        Returns:
            Dict with the pending ``transaction`` and the ``client_secret``

        Raises:
            NotFoundError: If the booking does not exist
            LedgerError: INVALID_AMOUNT for bookings without a total,
                STRIPE_API_ERROR if Stripe rejects the intent
        """
        booking = self.bookings.require_booking(booking_id)
        if not booking.amount:
            raise LedgerError(ErrorCode.INVALID_AMOUNT, details={"booking_id": booking_id})
        currency = (booking.currency or self.config.default_currency).lower()

        metadata = {
            key: value
            for key, value in {
                "vendor_id": booking.vendor_id,
                "user_id": booking.user_id,
                "invoice_number": booking.invoice_number,
            }.items()
            if value
        }

        try:
            intent = self.stripe.create_payment_intent(
                booking_id=booking_id,
                amount_cents=booking.amount,
                currency=currency,
                metadata=metadata,
            )
        except StripeServiceError as e:
            raise _stripe_failure(e) from e

        transaction = self.repository.create_transaction(
            booking_id,
            amount=booking.amount,
            currency=currency,
            reference_number=intent["payment_intent_id"],
        )
        return {"transaction": transaction, "client_secret": intent["client_secret"]}

    def review_refund_request(
        self, booking_id: str, review: RefundReview
    ) -> TransactionDetail | None:
        """Apply an admin decision to a booking's refund request.

        Args:
            booking_id: Booking whose refund request is reviewed
            review: Decision and, for partial refunds, the amount in cents

        Returns:
            The refund transaction and its record when approved, None when canceled

        Raises:
            NotFoundError: If the booking does not exist
            LedgerError: REFUND_NOT_ALLOWED, INVALID_AMOUNT,
                DUPLICATE_REFERENCE or STRIPE_API_ERROR
        """
        self.bookings.require_booking(booking_id)

        if review.status == RefundReviewStatus.CANCELED:
            self.bookings.set_refund_request_status(booking_id, review.status.value)
            logger.info("Refund request for booking %s canceled", booking_id)
            return None

        payment = self._refundable_payment(booking_id)
        paid = payment.paid_amount if payment.paid_amount is not None else payment.amount or 0

        if review.partial_refund:
            requested = review.amount or 0
            if not 0 < requested <= paid:
                raise LedgerError(
                    ErrorCode.INVALID_AMOUNT,
                    details={"requested": str(requested), "paid": str(paid)},
                )
        else:
            requested = paid

        # Refund records exist before Stripe can send refund webhooks; the
        # reference guard allows one refund per payment.
        detail = self.repository.create_refund_transaction(payment, requested)
        refund_id = str(detail.refund.refund_id) if detail.refund else ""

        try:
            refund = self.stripe.create_refund(
                payment_intent_id=str(payment.reference_number),
                amount_cents=requested if review.partial_refund else None,
                metadata={"booking_id": booking_id, "transaction_id": payment.transaction_id},
            )
        except StripeServiceError as e:
            self.repository.refunded(str(payment.reference_number), RefundStatus.FAILED)
            raise _stripe_failure(e) from e

        self.repository.attach_stripe_refund(refund_id, refund["refund_id"])
        detail = self.repository.get_transaction(detail.transaction.transaction_id)
        self.bookings.set_refund_request_status(booking_id, review.status.value)
        logger.info(
            "Refund of %d approved for booking %s (%s)",
            requested,
            booking_id,
            refund["refund_id"],
        )
        return detail

    def _refundable_payment(self, booking_id: str) -> PaymentTransaction:
        for transaction in self.repository.find_for_booking(booking_id):
            if (
                transaction.type == TransactionType.PAYMENT
                and transaction.status == TransactionStatus.SUCCEEDED
                and transaction.reference_number
            ):
                return transaction
        raise LedgerError(ErrorCode.REFUND_NOT_ALLOWED, details={"booking_id": booking_id})
