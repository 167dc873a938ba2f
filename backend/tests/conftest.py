"""Pytest configuration and fixtures for the payment ledger tests.

This module provides reusable fixtures for testing:
- DynamoDB mocking with moto (every ledger table)
- Service instances wired to the mocked tables
- Sample bookings, payments and vendor wallets
"""

import datetime as dt
import os
from typing import Any, Generator
from unittest.mock import MagicMock

import boto3
import pytest
from moto import mock_aws

# === Environment Setup ===

# Set environment variables for testing before imports
os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-1")
os.environ.setdefault("DYNAMODB_TABLE_PREFIX", "test-ledger")
os.environ.setdefault("ENVIRONMENT", "dev")

# Only set fake credentials for moto if no real credentials are present
if not os.environ.get("AWS_PROFILE") and not os.environ.get("AWS_ACCESS_KEY_ID"):
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")

TABLE_PREFIX = os.environ["DYNAMODB_TABLE_PREFIX"]

PAYMENT_INTENT_ID = "pi_3TEST123ABC"
VENDOR_ID = "vendor-1"
BOOKING_ID = "BK-2026-ABC123"


# === Singleton Reset ===


@pytest.fixture(autouse=True)
def reset_singletons() -> Generator[None, None, None]:
    """Reset cached services and config before and after each test.

    Tests using mock_aws then get fresh boto3 clients inside the mock
    context rather than ones created by a previous test.
    """
    from ledger_api.dependencies import reset_services

    reset_services()
    yield
    reset_services()


# === DynamoDB Fixtures ===


@pytest.fixture
def aws_credentials() -> None:
    """Mocked AWS Credentials for moto."""
    if not os.environ.get("AWS_PROFILE"):
        os.environ["AWS_ACCESS_KEY_ID"] = "testing"
        os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
        os.environ["AWS_SECURITY_TOKEN"] = "testing"
        os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "eu-west-1"


@pytest.fixture
def dynamodb_client(aws_credentials: None) -> Generator[Any, None, None]:
    """Create a mocked DynamoDB client."""
    with mock_aws():
        client = boto3.client("dynamodb", region_name="eu-west-1")
        yield client


def _table(name: str, key: str, indexes: dict[str, str] | None = None) -> dict[str, Any]:
    attributes = {key}
    definition: dict[str, Any] = {
        "TableName": f"{TABLE_PREFIX}-{name}",
        "KeySchema": [{"AttributeName": key, "KeyType": "HASH"}],
        "BillingMode": "PAY_PER_REQUEST",
    }
    if indexes:
        definition["GlobalSecondaryIndexes"] = [
            {
                "IndexName": index_name,
                "KeySchema": [{"AttributeName": attribute, "KeyType": "HASH"}],
                "Projection": {"ProjectionType": "ALL"},
            }
            for index_name, attribute in indexes.items()
        ]
        attributes.update(indexes.values())
    definition["AttributeDefinitions"] = [
        {"AttributeName": attribute, "AttributeType": "S"} for attribute in sorted(attributes)
    ]
    return definition


@pytest.fixture
def create_tables(dynamodb_client: Any) -> None:
    """Create all ledger DynamoDB tables for testing."""
    tables = [
        _table(
            "payment-transactions",
            "transaction_id",
            {"reference-index": "reference_number", "booking-index": "booking_id"},
        ),
        _table("payment-references", "reference_number"),
        _table("refund-transactions", "refund_id"),
        _table("vendor-wallets", "user_id"),
        _table("bookings", "booking_id"),
        _table("stripe-webhook-events", "event_id"),
    ]
    for table in tables:
        dynamodb_client.create_table(**table)


# === Service Fixtures ===


@pytest.fixture
def db(create_tables: None) -> Any:
    """DynamoDBService bound to the mocked tables."""
    from ledger.services.dynamodb import get_dynamodb_service

    return get_dynamodb_service()


@pytest.fixture
def config() -> Any:
    from ledger.config import LedgerConfig

    return LedgerConfig()


@pytest.fixture
def bookings(db: Any) -> Any:
    from ledger.services.booking_service import BookingService

    return BookingService(db)


@pytest.fixture
def repository(db: Any, config: Any, bookings: Any) -> Any:
    from ledger.services.transaction_repository import TransactionRepository

    return TransactionRepository(db, config=config, bookings=bookings)


@pytest.fixture
def mock_stripe() -> MagicMock:
    """StripeService stand-in with successful default responses."""
    from ledger.services.stripe_service import StripeService

    stripe_service = MagicMock(spec=StripeService)
    stripe_service.create_payment_intent.return_value = {
        "payment_intent_id": PAYMENT_INTENT_ID,
        "client_secret": f"{PAYMENT_INTENT_ID}_secret_xyz",
        "status": "requires_payment_method",
    }
    stripe_service.create_refund.return_value = {
        "refund_id": "re_3TEST123ABC",
        "amount": 10000,
        "status": "pending",
    }
    stripe_service.create_vendor_payout.return_value = {
        "payout_id": "tr_1TEST123ABC",
        "amount": 5000,
        "currency": "usd",
    }
    return stripe_service


# === Sample Data ===


@pytest.fixture
def seed_wallet(db: Any):
    """Factory that stores a vendor wallet."""

    def _seed(
        user_id: str = VENDOR_ID,
        balance: int = 50000,
        stripe_account_id: str | None = "acct_1TESTVENDOR",
    ) -> dict[str, Any]:
        item: dict[str, Any] = {"user_id": user_id, "balance": balance, "currency": "usd"}
        if stripe_account_id:
            item["stripe_account_id"] = stripe_account_id
        db.put_item("vendor-wallets", item)
        return item

    return _seed


@pytest.fixture
def seed_booking(db: Any):
    """Factory that stores a booking."""

    def _seed(booking_id: str = BOOKING_ID, amount: int = 10000) -> dict[str, Any]:
        item = {
            "booking_id": booking_id,
            "user_id": "customer-1",
            "vendor_id": VENDOR_ID,
            "invoice_number": "INV-0001",
            "amount": amount,
            "currency": "usd",
        }
        db.put_item("bookings", item)
        return item

    return _seed


@pytest.fixture
def seed_refund(repository: Any):
    """Factory for a succeeded payment plus its pending refund records.

    Returns the TransactionDetail of the refund-type transaction.
    """
    from ledger.models import TransactionStatus

    def _seed(
        payment_intent_id: str = PAYMENT_INTENT_ID,
        amount: int = 10000,
        booking_id: str = BOOKING_ID,
    ) -> Any:
        payment = repository.create_transaction(
            booking_id,
            amount=amount,
            currency="usd",
            reference_number=payment_intent_id,
            status=TransactionStatus.SUCCEEDED,
            paid_amount=amount,
            paid_currency="usd",
        )
        return repository.create_refund_transaction(payment, amount, "re_3TEST123ABC")

    return _seed


def wallet_balance(db: Any, user_id: str = VENDOR_ID) -> int:
    """Current balance of a stored wallet, in cents."""
    return int(db.get_item("vendor-wallets", {"user_id": user_id})["balance"])


def charge_refunded_event(
    event_id: str = "evt_refund_1",
    amount: int = 10000,
    amount_refunded: int = 10000,
    vendor_id: str | None = VENDOR_ID,
) -> dict[str, Any]:
    """A charge.refunded event as delivered by Stripe."""
    metadata = {"booking_id": BOOKING_ID, "invoice_number": "INV-0001"}
    if vendor_id:
        metadata["vendor_id"] = vendor_id
    return {
        "id": event_id,
        "type": "charge.refunded",
        "created": int(dt.datetime.now(dt.UTC).timestamp()),
        "data": {
            "object": {
                "id": "ch_3TEST123ABC",
                "object": "charge",
                "payment_intent": PAYMENT_INTENT_ID,
                "amount": amount,
                "amount_refunded": amount_refunded,
                "metadata": metadata,
            }
        },
    }
