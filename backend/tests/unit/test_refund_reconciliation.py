"""Unit tests for TransactionRepository.refunded (refund reconciliation).

Runs against moto DynamoDB so the conditional and transactional writes are
exercised for real.

Test categories:
- Wallet effect of completed refunds
- Lookup failures
- Timestamp transitions
- Replays and late events
"""

from typing import Any
from unittest.mock import patch

import pytest

from conftest import PAYMENT_INTENT_ID, VENDOR_ID, wallet_balance
from ledger.models import (
    ErrorCode,
    NotFoundError,
    RefundMetadata,
    RefundState,
    RefundStatus,
    TransactionStatus,
    TransactionType,
)

VENDOR = RefundMetadata(vendor_id=VENDOR_ID, booking_id="BK-2026-ABC123")


def _refund_record(repository: Any, detail: Any) -> Any:
    return repository.get_transaction(detail.transaction.transaction_id).refund


# === Wallet Effect ===


class TestCompletedRefund:
    """success events debit the vendor wallet exactly once."""

    def test_full_refund_debits_whole_amount(
        self, repository: Any, db: Any, seed_wallet: Any, seed_refund: Any
    ) -> None:
        """10000 charged and refunded: refund 100.00, wallet -100.00."""
        seed_wallet(balance=50000)
        seed_refund()

        result = repository.refunded(
            PAYMENT_INTENT_ID, "success", VENDOR, amount_refunded=10000, amount=10000
        )

        assert result.applied is True
        assert result.refund_amount == 10000
        assert result.commission_amount == 0
        assert wallet_balance(db) == 40000

    def test_partial_refund_keeps_commission(
        self, repository: Any, db: Any, seed_wallet: Any, seed_refund: Any
    ) -> None:
        """10000 charged, 5000 refunded: commission 750, wallet -42.50."""
        seed_wallet(balance=50000)
        seed_refund()

        result = repository.refunded(
            PAYMENT_INTENT_ID, "success", VENDOR, amount_refunded=5000, amount=10000
        )

        assert result.refund_amount == 4250
        assert result.commission_amount == 750
        assert wallet_balance(db) == 45750

    def test_only_vendor_wallet_changes(
        self, repository: Any, db: Any, seed_wallet: Any, seed_refund: Any
    ) -> None:
        seed_wallet(balance=50000)
        seed_wallet(user_id="vendor-2", balance=12345)
        seed_refund()

        repository.refunded(PAYMENT_INTENT_ID, "success", VENDOR, 10000, 10000)

        assert wallet_balance(db, "vendor-2") == 12345

    def test_success_records_amounts_and_status(
        self, repository: Any, seed_wallet: Any, seed_refund: Any
    ) -> None:
        seed_wallet()
        detail = seed_refund()

        repository.refunded(PAYMENT_INTENT_ID, "success", VENDOR, 5000, 10000)

        updated = repository.get_transaction(detail.transaction.transaction_id)
        assert updated.transaction.type == TransactionType.REFUND
        assert updated.transaction.status == TransactionStatus.SUCCEEDED
        assert updated.refund.state == RefundState.COMPLETED
        assert updated.refund.refund_amount == 4250
        assert updated.refund.commission_amount == 750

    def test_balance_may_go_negative(
        self, repository: Any, db: Any, seed_wallet: Any, seed_refund: Any
    ) -> None:
        """Refunds are owed even when the vendor already withdrew the funds."""
        seed_wallet(balance=1000)
        seed_refund()

        repository.refunded(PAYMENT_INTENT_ID, "success", VENDOR, 10000, 10000)

        assert wallet_balance(db) == -9000


# === Lookup Failures ===


class TestLookupFailures:
    """Missing records raise NotFoundError and change nothing."""

    def test_missing_refund_transaction(self, repository: Any, db: Any, seed_wallet: Any) -> None:
        seed_wallet(balance=50000)

        with pytest.raises(NotFoundError) as exc_info:
            repository.refunded("pi_unknown", "success", VENDOR, 10000, 10000)

        assert exc_info.value.code == ErrorCode.PAYMENT_NOT_FOUND
        assert exc_info.value.message == "Payment not found"
        assert wallet_balance(db) == 50000

    def test_payment_row_is_not_a_refund_transaction(
        self, repository: Any, seed_wallet: Any
    ) -> None:
        """A payment-type row with the refund reference does not count."""
        seed_wallet()
        repository.create_transaction(
            "BK-1", amount=100, reference_number=f"{PAYMENT_INTENT_ID}_refund"
        )

        with pytest.raises(NotFoundError) as exc_info:
            repository.refunded(PAYMENT_INTENT_ID, "processing")

        assert exc_info.value.code == ErrorCode.PAYMENT_NOT_FOUND

    def test_refund_transaction_without_record(
        self, repository: Any, db: Any, seed_wallet: Any
    ) -> None:
        seed_wallet(balance=50000)
        repository.create_transaction(
            "BK-1",
            amount=100,
            reference_number=f"{PAYMENT_INTENT_ID}_refund",
            type=TransactionType.REFUND,
        )

        with pytest.raises(NotFoundError) as exc_info:
            repository.refunded(PAYMENT_INTENT_ID, "success", VENDOR, 100, 100)

        assert exc_info.value.code == ErrorCode.REFUND_NOT_FOUND
        assert exc_info.value.message == "Refund transaction not found for this payment"
        assert wallet_balance(db) == 50000

    def test_missing_wallet(self, repository: Any, seed_refund: Any) -> None:
        detail = seed_refund()

        with pytest.raises(NotFoundError) as exc_info:
            repository.refunded(PAYMENT_INTENT_ID, "success", VENDOR, 10000, 10000)

        assert exc_info.value.code == ErrorCode.WALLET_NOT_FOUND
        assert _refund_record(repository, detail).completed_at is None

    def test_missing_vendor_metadata(self, repository: Any, seed_refund: Any) -> None:
        detail = seed_refund()

        with pytest.raises(NotFoundError) as exc_info:
            repository.refunded(PAYMENT_INTENT_ID, "success", RefundMetadata(), 10000, 10000)

        assert exc_info.value.code == ErrorCode.VENDOR_NOT_FOUND
        assert _refund_record(repository, detail).completed_at is None


# === Timestamp Transitions ===


class TestTimestampTransitions:
    """Each status sets exactly one progress timestamp."""

    def test_processing_sets_only_processing_at(self, repository: Any, seed_refund: Any) -> None:
        detail = seed_refund()

        result = repository.refunded(PAYMENT_INTENT_ID, "processing")

        record = _refund_record(repository, detail)
        assert result.applied is True
        assert record.processing_at is not None
        assert record.completed_at is None
        assert record.failed_at is None
        assert repository.get_transaction(
            detail.transaction.transaction_id
        ).transaction.status == TransactionStatus.PROCESSING

    def test_success_sets_only_completed_at(
        self, repository: Any, seed_wallet: Any, seed_refund: Any
    ) -> None:
        seed_wallet()
        detail = seed_refund()

        repository.refunded(PAYMENT_INTENT_ID, RefundStatus.SUCCESS, VENDOR, 10000, 10000)

        record = _refund_record(repository, detail)
        assert record.completed_at is not None
        assert record.processing_at is None
        assert record.failed_at is None

    @pytest.mark.parametrize("status", ["failed", "canceled", "unknown_status"])
    def test_other_statuses_set_only_failed_at(
        self, repository: Any, seed_refund: Any, status: str
    ) -> None:
        detail = seed_refund()

        result = repository.refunded(PAYMENT_INTENT_ID, status)

        record = _refund_record(repository, detail)
        assert result.status == RefundStatus.FAILED
        assert record.failed_at is not None
        assert record.processing_at is None
        assert record.completed_at is None

    def test_processing_then_success(
        self, repository: Any, db: Any, seed_wallet: Any, seed_refund: Any
    ) -> None:
        seed_wallet(balance=50000)
        detail = seed_refund()

        repository.refunded(PAYMENT_INTENT_ID, "processing")
        result = repository.refunded(PAYMENT_INTENT_ID, "success", VENDOR, 10000, 10000)

        assert result.applied is True
        assert _refund_record(repository, detail).state == RefundState.COMPLETED
        assert wallet_balance(db) == 40000


# === Replays and Late Events ===


class TestReplays:
    """Terminal refunds are never updated again."""

    def test_replayed_success_debits_once(
        self, repository: Any, db: Any, seed_wallet: Any, seed_refund: Any
    ) -> None:
        seed_wallet(balance=50000)
        seed_refund()

        first = repository.refunded(PAYMENT_INTENT_ID, "success", VENDOR, 10000, 10000)
        second = repository.refunded(PAYMENT_INTENT_ID, "success", VENDOR, 10000, 10000)

        assert first.applied is True
        assert second.applied is False
        assert wallet_balance(db) == 40000

    def test_failed_after_completed_is_ignored(
        self, repository: Any, seed_wallet: Any, seed_refund: Any
    ) -> None:
        seed_wallet()
        detail = seed_refund()
        repository.refunded(PAYMENT_INTENT_ID, "success", VENDOR, 10000, 10000)

        result = repository.refunded(PAYMENT_INTENT_ID, "failed")

        assert result.applied is False
        record = _refund_record(repository, detail)
        assert record.failed_at is None
        assert record.state == RefundState.COMPLETED

    def test_success_after_failed_is_ignored(
        self, repository: Any, db: Any, seed_wallet: Any, seed_refund: Any
    ) -> None:
        seed_wallet(balance=50000)
        seed_refund()
        repository.refunded(PAYMENT_INTENT_ID, "failed")

        result = repository.refunded(PAYMENT_INTENT_ID, "success", VENDOR, 10000, 10000)

        assert result.applied is False
        assert wallet_balance(db) == 50000

    def test_repeated_processing_is_ignored(self, repository: Any, seed_refund: Any) -> None:
        detail = seed_refund()
        repository.refunded(PAYMENT_INTENT_ID, "processing")
        first_processing_at = _refund_record(repository, detail).processing_at

        result = repository.refunded(PAYMENT_INTENT_ID, "processing")

        assert result.applied is False
        assert _refund_record(repository, detail).processing_at == first_processing_at

    def test_concurrent_completion_is_reported_as_replay(
        self, repository: Any, db: Any, seed_wallet: Any, seed_refund: Any
    ) -> None:
        """A delivery that read the record before another one completed it."""
        seed_wallet(balance=50000)
        detail = seed_refund()
        stale = detail.refund
        repository.refunded(PAYMENT_INTENT_ID, "success", VENDOR, 10000, 10000)
        completed = _refund_record(repository, detail)

        with patch.object(repository, "get_refund_record", side_effect=[stale, completed]):
            result = repository.refunded(PAYMENT_INTENT_ID, "success", VENDOR, 10000, 10000)

        assert result.applied is False
        assert wallet_balance(db) == 40000
