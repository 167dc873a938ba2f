"""Enumeration types for ledger data models."""

from enum import Enum


class TransactionStatus(str, Enum):
    """Lifecycle status of a payment transaction.

    Mirrors the PaymentIntent statuses reported by Stripe webhooks.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    REQUIRES_ACTION = "requires_action"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"


class TransactionType(str, Enum):
    """Distinguishes ordinary payments from refund and payout records."""

    PAYMENT = "payment"
    REFUND = "refund"
    WITHDRAW = "withdraw"


class PaymentProvider(str, Enum):
    """Payment processing providers."""

    STRIPE = "stripe"


class RefundStatus(str, Enum):
    """Refund progress reported by the payment processor."""

    PROCESSING = "processing"
    SUCCESS = "success"
    FAILED = "failed"


class RefundState(str, Enum):
    """State of a refund record derived from its timestamps."""

    REQUESTED = "requested"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class RefundReviewStatus(str, Enum):
    """Admin decision on a customer's refund request."""

    APPROVED = "approved"
    CANCELED = "canceled"
