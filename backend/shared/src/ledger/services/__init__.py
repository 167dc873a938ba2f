"""Backend services for the payment ledger."""

from .booking_service import BookingService
from .dynamodb import DynamoDBService, get_dynamodb_service, reset_dynamodb_service
from .payment_service import PaymentService
from .refund_policy_service import RefundCalculation, RefundPolicyService
from .ssm_service import SSMService, SSMServiceError, get_ssm_service
from .stripe_service import StripeService, StripeServiceError, get_stripe_service
from .transaction_repository import TransactionRepository, normalize_refund_status
from .wallet_service import WalletService
from .webhook_handler import WebhookHandler

__all__ = [
    "BookingService",
    "DynamoDBService",
    "get_dynamodb_service",
    "reset_dynamodb_service",
    "PaymentService",
    "RefundCalculation",
    "RefundPolicyService",
    "SSMService",
    "SSMServiceError",
    "get_ssm_service",
    "StripeService",
    "StripeServiceError",
    "get_stripe_service",
    "TransactionRepository",
    "normalize_refund_status",
    "WalletService",
    "WebhookHandler",
]
