"""Vendor wallet reads and withdrawals."""

import datetime as dt
import logging
from typing import TYPE_CHECKING, Any

from ledger.config import LedgerConfig, get_config
from ledger.models import (
    ErrorCode,
    LedgerError,
    NotFoundError,
    TransactionStatus,
    TransactionType,
    VendorWallet,
    Withdrawal,
    get_user_friendly_stripe_message,
    is_stripe_error_retryable,
    withdraw_reference,
)

from .stripe_service import StripeServiceError

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService
    from .stripe_service import StripeService
    from .transaction_repository import TransactionRepository

logger = logging.getLogger(__name__)


class WalletService:
    """Service for vendor wallet balances and payouts."""

    WALLETS_TABLE = "vendor-wallets"

    def __init__(
        self,
        db: "DynamoDBService",
        stripe_service: "StripeService",
        repository: "TransactionRepository",
        config: LedgerConfig | None = None,
    ) -> None:
        self.db = db
        self.stripe = stripe_service
        self.repository = repository
        self.config = config or get_config()

    def get_wallet(self, user_id: str) -> VendorWallet:
        """Get a vendor's wallet.

        Raises:
            NotFoundError: If the vendor has no wallet
        """
        item = self.db.get_item(self.WALLETS_TABLE, {"user_id": user_id})
        if not item:
            raise NotFoundError(ErrorCode.WALLET_NOT_FOUND, details={"user_id": user_id})
        return _item_to_wallet(item)

    def withdraw(
        self,
        user_id: str,
        amount: int,
        currency: str | None = None,
    ) -> Withdrawal:
        """Pay out part of a vendor's balance to their connected Stripe account.

        The balance is reserved first with a conditional decrement, so two
        concurrent withdrawals can never overdraw the wallet. If the payout
        fails the reservation is credited back.

        Args:
            user_id: Vendor owning the wallet
            amount: Amount to withdraw in cents
            currency: ISO currency code (defaults to the wallet currency)

        Returns:
            Withdrawal with the payout, the withdraw transaction and the new wallet

        Raises:
            LedgerError: INVALID_AMOUNT, PAYOUT_ACCOUNT_MISSING,
                INSUFFICIENT_BALANCE or STRIPE_API_ERROR
            NotFoundError: If the vendor has no wallet
        """
        if amount <= 0:
            raise LedgerError(ErrorCode.INVALID_AMOUNT, details={"amount": str(amount)})

        wallet = self.get_wallet(user_id)
        if not wallet.stripe_account_id:
            raise LedgerError(ErrorCode.PAYOUT_ACCOUNT_MISSING, details={"user_id": user_id})
        currency = (currency or wallet.currency or self.config.default_currency).lower()

        reserved = self.db.add_to_attribute(
            self.WALLETS_TABLE,
            {"user_id": user_id},
            "balance",
            -amount,
            condition_expression="attribute_exists(user_id) AND #attr >= :amount",
            condition_values={":amount": amount},
            extra_set={"updated_at": _now()},
        )
        if reserved is None:
            logger.warning(
                "Withdrawal of %d rejected for %s: balance %d", amount, user_id, wallet.balance
            )
            raise LedgerError(
                ErrorCode.INSUFFICIENT_BALANCE,
                details={"user_id": user_id, "requested": str(amount)},
            )

        try:
            payout = self.stripe.create_vendor_payout(
                stripe_account_id=wallet.stripe_account_id,
                amount_cents=amount,
                currency=currency,
                metadata={"user_id": user_id},
            )
        except StripeServiceError as e:
            self.db.add_to_attribute(
                self.WALLETS_TABLE,
                {"user_id": user_id},
                "balance",
                amount,
                extra_set={"updated_at": _now()},
            )
            logger.error("Payout failed for %s, reserved %d credited back", user_id, amount)
            raise LedgerError(
                ErrorCode.STRIPE_API_ERROR,
                details={
                    "message": get_user_friendly_stripe_message(e.stripe_error_code),
                    "retryable": str(is_stripe_error_retryable(e.stripe_error_code)).lower(),
                },
            ) from e

        transaction = self.repository.create_transaction(
            None,
            amount=amount,
            currency=currency,
            reference_number=withdraw_reference(payout["payout_id"]),
            status=TransactionStatus.SUCCEEDED,
            type=TransactionType.WITHDRAW,
            user_id=user_id,
            paid_amount=amount,
            paid_currency=currency,
        )

        logger.info("Vendor %s withdrew %d %s (%s)", user_id, amount, currency, payout["payout_id"])
        return Withdrawal(
            payout_id=payout["payout_id"],
            amount=amount,
            currency=currency,
            status=transaction.status.value,
            transaction=transaction,
            wallet=_item_to_wallet(reserved),
        )


def _now() -> str:
    return dt.datetime.now(dt.UTC).isoformat()


def _item_to_wallet(item: dict[str, Any]) -> VendorWallet:
    """Convert DynamoDB item to VendorWallet model."""
    updated_at = item.get("updated_at")
    return VendorWallet(
        user_id=item["user_id"],
        balance=int(item.get("balance", 0)),
        currency=item.get("currency", "usd"),
        stripe_account_id=item.get("stripe_account_id"),
        updated_at=dt.datetime.fromisoformat(updated_at) if updated_at else None,
    )
