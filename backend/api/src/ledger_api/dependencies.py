"""FastAPI dependency injection providers for ledger services.

Factory functions use @lru_cache so each service is built once per process
and shares the DynamoDB singleton.

Usage in routes:
    from ledger_api.dependencies import get_wallet_service

    @router.get("/vendor/wallet/{user_id}")
    async def get_wallet(
        user_id: str,
        wallets: WalletService = Depends(get_wallet_service),
    ):
        ...

Service Dependency Graph:
    DynamoDBService (singleton via get_dynamodb_service)
        ├── BookingService
        ├── TransactionRepository (+ BookingService for the status cascade)
        │       ├── WebhookHandler
        │       ├── WalletService (+ StripeService)
        │       └── PaymentService (+ StripeService, BookingService)

Testing:
    Use reset_services() to clear cached instances between tests.
"""

from functools import lru_cache

from ledger.config import get_config
from ledger.services.booking_service import BookingService
from ledger.services.dynamodb import get_dynamodb_service
from ledger.services.payment_service import PaymentService
from ledger.services.stripe_service import StripeService, get_stripe_service
from ledger.services.transaction_repository import TransactionRepository
from ledger.services.wallet_service import WalletService
from ledger.services.webhook_handler import WebhookHandler


def get_stripe() -> StripeService:
    """Get the shared StripeService instance."""
    return get_stripe_service()


@lru_cache
def get_booking_service() -> BookingService:
    """Get cached BookingService instance."""
    return BookingService(db=get_dynamodb_service())


@lru_cache
def get_transaction_repository() -> TransactionRepository:
    """Get cached TransactionRepository instance.

    Returns:
        TransactionRepository configured with DynamoDB singleton and the
        environment config.
    """
    return TransactionRepository(
        db=get_dynamodb_service(),
        config=get_config(),
        bookings=get_booking_service(),
    )


@lru_cache
def get_webhook_handler() -> WebhookHandler:
    """Get cached WebhookHandler instance."""
    return WebhookHandler(db=get_dynamodb_service(), repository=get_transaction_repository())


@lru_cache
def get_wallet_service() -> WalletService:
    """Get cached WalletService instance."""
    return WalletService(
        db=get_dynamodb_service(),
        stripe_service=get_stripe(),
        repository=get_transaction_repository(),
        config=get_config(),
    )


@lru_cache
def get_payment_service() -> PaymentService:
    """Get cached PaymentService instance."""
    return PaymentService(
        stripe_service=get_stripe(),
        repository=get_transaction_repository(),
        bookings=get_booking_service(),
        config=get_config(),
    )


def reset_services() -> None:
    """Clear all cached service instances.

    Call this in test fixtures to ensure clean state between tests. Also
    resets the DynamoDB singleton, the Stripe/SSM singletons and the config.

    Example:
        @pytest.fixture(autouse=True)
        def reset_state():
            yield
            reset_services()
    """
    from ledger.services.dynamodb import reset_dynamodb_service
    from ledger.services.ssm_service import get_ssm_service

    get_booking_service.cache_clear()
    get_transaction_repository.cache_clear()
    get_webhook_handler.cache_clear()
    get_wallet_service.cache_clear()
    get_payment_service.cache_clear()

    get_stripe_service.cache_clear()
    get_ssm_service.cache_clear()
    get_config.cache_clear()
    reset_dynamodb_service()
