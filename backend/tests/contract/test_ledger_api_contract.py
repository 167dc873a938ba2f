"""Contract tests for the dashboard, wallet and payment endpoints.

Stripe is replaced through FastAPI dependency overrides; DynamoDB runs on moto.
"""

from typing import Any, Generator
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from starlette.status import (
    HTTP_200_OK,
    HTTP_201_CREATED,
    HTTP_400_BAD_REQUEST,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_422_UNPROCESSABLE_ENTITY,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_502_BAD_GATEWAY,
)

from conftest import BOOKING_ID, PAYMENT_INTENT_ID, VENDOR_ID
from ledger.models import TransactionStatus
from ledger.services.stripe_service import StripeServiceError
from ledger_api.dependencies import get_stripe, get_transaction_repository
from ledger_api.main import app


@pytest.fixture
def client(
    create_tables: None, mock_stripe: Any, monkeypatch: pytest.MonkeyPatch
) -> Generator[TestClient, None, None]:
    # Cached service factories call get_stripe() directly, outside FastAPI's
    # override mechanism, so route the underlying provider to the mock as well.
    monkeypatch.setattr("ledger_api.dependencies.get_stripe_service", lambda: mock_stripe)
    app.dependency_overrides[get_stripe] = lambda: mock_stripe
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def paid_booking(seed_booking: Any, repository: Any) -> Any:
    seed_booking(amount=10000)
    return repository.create_transaction(
        BOOKING_ID,
        amount=10000,
        currency="usd",
        reference_number=PAYMENT_INTENT_ID,
        status=TransactionStatus.SUCCEEDED,
        paid_amount=10000,
        paid_currency="usd",
    )


def test_ping(client: TestClient) -> None:
    response = client.get("/ping")

    assert response.status_code == HTTP_200_OK
    assert response.json()["status"] == "ok"


# === POST /payment/stripe/payment-intents ===


class TestPaymentIntents:
    def test_creates_pending_transaction(self, client: TestClient, seed_booking: Any) -> None:
        seed_booking(amount=12500)

        response = client.post("/payment/stripe/payment-intents", json={"booking_id": BOOKING_ID})

        assert response.status_code == HTTP_201_CREATED
        data = response.json()["data"]
        assert data["client_secret"] == f"{PAYMENT_INTENT_ID}_secret_xyz"
        assert data["transaction"]["reference_number"] == PAYMENT_INTENT_ID
        assert data["transaction"]["status"] == "pending"
        assert data["transaction"]["amount"] == 12500

    def test_unknown_booking(self, client: TestClient) -> None:
        response = client.post("/payment/stripe/payment-intents", json={"booking_id": "BK-NONE"})

        assert response.status_code == HTTP_404_NOT_FOUND
        assert response.json()["error_code"] == "ERR_LEDGER_004"

    def test_booking_id_required(self, client: TestClient) -> None:
        response = client.post("/payment/stripe/payment-intents", json={})

        assert response.status_code == HTTP_422_UNPROCESSABLE_ENTITY

    def test_stripe_failure(self, client: TestClient, seed_booking: Any, mock_stripe: Any) -> None:
        seed_booking()
        mock_stripe.create_payment_intent.side_effect = StripeServiceError("down")

        response = client.post("/payment/stripe/payment-intents", json={"booking_id": BOOKING_ID})

        assert response.status_code == HTTP_502_BAD_GATEWAY
        assert response.json()["error_code"] == "ERR_STRIPE_002"


# === /dashboard/payments/transactions ===


class TestTransactions:
    def test_list_with_filters(
        self, client: TestClient, paid_booking: Any, repository: Any
    ) -> None:
        repository.create_transaction("BK-2", amount=500, reference_number="pi_PENDING")

        everything = client.get("/dashboard/payments/transactions").json()["data"]
        succeeded = client.get(
            "/dashboard/payments/transactions", params={"status": "succeeded"}
        ).json()["data"]

        assert len(everything) == 2
        assert [t["reference_number"] for t in succeeded] == [PAYMENT_INTENT_ID]

    def test_invalid_filter(self, client: TestClient) -> None:
        response = client.get("/dashboard/payments/transactions", params={"type": "bogus"})

        assert response.status_code == HTTP_422_UNPROCESSABLE_ENTITY

    def test_get_one(self, client: TestClient, paid_booking: Any) -> None:
        response = client.get(f"/dashboard/payments/transactions/{paid_booking.transaction_id}")

        assert response.status_code == HTTP_200_OK
        data = response.json()["data"]
        assert data["transaction"]["transaction_id"] == paid_booking.transaction_id
        assert data["refund"] is None

    def test_get_missing(self, client: TestClient) -> None:
        response = client.get("/dashboard/payments/transactions/TXN-NONE")

        assert response.status_code == HTTP_404_NOT_FOUND
        body = response.json()
        assert body["success"] is False
        assert body["error_code"] == "ERR_LEDGER_005"
        assert body["recovery"]


class TestRefundRequest:
    URL = f"/dashboard/payments/transactions/refund-request/{BOOKING_ID}"

    def test_approve_full_refund(self, client: TestClient, paid_booking: Any) -> None:
        response = client.post(self.URL, json={"status": "approved", "partial_refund": False})

        assert response.status_code == HTTP_200_OK
        data = response.json()["data"]
        assert data["transaction"]["type"] == "refund"
        assert data["transaction"]["reference_number"] == f"{PAYMENT_INTENT_ID}_refund"
        assert data["refund"]["requested_amount"] == 10000

    def test_approve_twice_conflicts(self, client: TestClient, paid_booking: Any) -> None:
        body = {"status": "approved", "partial_refund": True, "amount": 2500}
        client.post(self.URL, json=body)

        response = client.post(self.URL, json=body)

        assert response.status_code == HTTP_409_CONFLICT
        assert response.json()["error_code"] == "ERR_LEDGER_010"

    def test_cancel(self, client: TestClient, seed_booking: Any, bookings: Any) -> None:
        seed_booking()

        response = client.post(self.URL, json={"status": "canceled", "partial_refund": False})

        assert response.status_code == HTTP_200_OK
        assert response.json()["data"] is None
        assert bookings.get_booking(BOOKING_ID).refund_request_status == "canceled"

    def test_partial_without_amount(self, client: TestClient, paid_booking: Any) -> None:
        response = client.post(self.URL, json={"status": "approved", "partial_refund": True})

        assert response.status_code == HTTP_422_UNPROCESSABLE_ENTITY

    def test_unpaid_booking(self, client: TestClient, seed_booking: Any) -> None:
        seed_booking()

        response = client.post(self.URL, json={"status": "approved", "partial_refund": False})

        assert response.status_code == HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "ERR_LEDGER_013"


# === /vendor/wallet ===


class TestVendorWallet:
    def test_get_wallet(self, client: TestClient, seed_wallet: Any) -> None:
        seed_wallet(balance=4250)

        response = client.get(f"/vendor/wallet/{VENDOR_ID}")

        assert response.status_code == HTTP_200_OK
        data = response.json()["data"]
        assert data["balance"] == 4250
        assert data["balance_major"] == "42.50"

    def test_get_missing_wallet(self, client: TestClient) -> None:
        response = client.get("/vendor/wallet/nobody")

        assert response.status_code == HTTP_404_NOT_FOUND
        assert response.json()["error_code"] == "ERR_LEDGER_003"

    def test_withdraw(self, client: TestClient, seed_wallet: Any) -> None:
        seed_wallet(balance=50000)

        response = client.post(f"/vendor/wallet/{VENDOR_ID}/withdraw", json={"amount": 5000})

        assert response.status_code == HTTP_200_OK
        data = response.json()["data"]
        assert data["wallet"]["balance"] == 45000
        assert data["transaction"]["type"] == "withdraw"

    def test_withdraw_insufficient_balance(self, client: TestClient, seed_wallet: Any) -> None:
        seed_wallet(balance=100)

        response = client.post(f"/vendor/wallet/{VENDOR_ID}/withdraw", json={"amount": 5000})

        assert response.status_code == HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "ERR_LEDGER_011"

    def test_withdraw_stripe_failure(
        self, client: TestClient, seed_wallet: Any, mock_stripe: Any
    ) -> None:
        seed_wallet(balance=50000)
        mock_stripe.create_vendor_payout.side_effect = StripeServiceError("transfer failed")

        response = client.post(f"/vendor/wallet/{VENDOR_ID}/withdraw", json={"amount": 5000})

        assert response.status_code == HTTP_502_BAD_GATEWAY
        assert response.json()["error_code"] == "ERR_STRIPE_002"
        assert client.get(f"/vendor/wallet/{VENDOR_ID}").json()["data"]["balance"] == 50000

    def test_withdraw_rejects_non_positive_amount(self, client: TestClient) -> None:
        response = client.post(f"/vendor/wallet/{VENDOR_ID}/withdraw", json={"amount": 0})

        assert response.status_code == HTTP_422_UNPROCESSABLE_ENTITY


def test_unexpected_error_reports_correlation_id(create_tables: None) -> None:
    repository = MagicMock()
    repository.list_transactions.side_effect = RuntimeError("boom")
    app.dependency_overrides[get_transaction_repository] = lambda: repository
    client = TestClient(app, raise_server_exceptions=False)

    response = client.get(
        "/dashboard/payments/transactions", headers={"X-Correlation-ID": "corr-500"}
    )

    app.dependency_overrides.clear()
    assert response.status_code == HTTP_500_INTERNAL_SERVER_ERROR
    body = response.json()
    assert body["error_code"] == "ERR_INTERNAL"
    assert body["details"] == {"correlation_id": "corr-500"}
    assert "boom" not in response.text
