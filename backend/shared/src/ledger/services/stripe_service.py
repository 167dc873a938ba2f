"""Stripe service for payment intents, refunds, vendor payouts and webhooks.

Provides integration with Stripe using the v8+ StripeClient pattern.
Retrieves API keys from SSM Parameter Store.
"""

import hashlib
import logging
import os
from functools import lru_cache
from typing import Any

import stripe
from stripe import StripeClient

from .ssm_service import SSMService, SSMServiceError, get_ssm_service

logger = logging.getLogger(__name__)


class StripeServiceError(Exception):
    """Raised when a Stripe operation fails."""

    def __init__(self, message: str, stripe_error_code: str | None = None) -> None:
        """Initialize with message and optional Stripe error code.

        Args:
            message: Human-readable error message.
            stripe_error_code: Stripe-specific error code if available.
        """
        super().__init__(message)
        self.stripe_error_code = stripe_error_code


class StripeService:
    """Service for Stripe payment operations.

    Handles:
    - PaymentIntent creation for booking payments
    - Webhook signature validation
    - Refund creation
    - Transfers to vendors' connected accounts

    Usage:
        stripe_svc = get_stripe_service()
        intent = stripe_svc.create_payment_intent(
            booking_id="BK-2026-ABC123",
            amount_cents=10000,
            currency="usd",
            metadata={"vendor_id": "vendor-1"},
        )
    """

    def __init__(self, environment: str | None = None) -> None:
        """Initialize Stripe service with credentials from SSM.

        Args:
            environment: Environment name (dev, prod). Defaults to ENVIRONMENT env var.
        """
        self._environment = environment or os.environ.get("ENVIRONMENT", "dev")
        self._ssm = get_ssm_service()
        self._client: StripeClient | None = None
        self._webhook_secret: str | None = None

    def _get_client(self) -> StripeClient:
        """Get or create the Stripe client (lazy initialization).

        Raises:
            StripeServiceError: If credentials cannot be retrieved.
        """
        if self._client is None:
            try:
                secret_key = self._ssm.get_parameter(
                    SSMService.stripe_path(self._environment, "secret_key")
                )
            except SSMServiceError as e:
                raise StripeServiceError(f"Failed to initialize Stripe client: {e}") from e
            self._client = StripeClient(secret_key)
            logger.info("Stripe client initialized for environment: %s", self._environment)
        return self._client

    def _get_webhook_secret(self) -> str:
        """Get the webhook signing secret.

        Raises:
            StripeServiceError: If secret cannot be retrieved.
        """
        if self._webhook_secret is None:
            try:
                self._webhook_secret = self._ssm.get_parameter(
                    SSMService.stripe_path(self._environment, "webhook_secret")
                )
            except SSMServiceError as e:
                raise StripeServiceError(f"Failed to get webhook secret: {e}") from e
        return self._webhook_secret

    def create_payment_intent(
        self,
        *,
        booking_id: str,
        amount_cents: int,
        currency: str,
        metadata: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Create a PaymentIntent for a booking.

        The booking ID is used in the idempotency key so a retried request
        returns the same intent.

        Args:
            booking_id: Booking being paid for.
            amount_cents: Amount in minor units.
            currency: ISO currency code.
            metadata: Extra metadata echoed back on charge and refund events.

        Returns:
            Dict with payment_intent_id, client_secret and status.

        Raises:
            StripeServiceError: If intent creation fails.
        """
        client = self._get_client()

        intent_metadata = {"booking_id": booking_id}
        if metadata:
            intent_metadata.update(metadata)

        try:
            logger.info(
                "Creating PaymentIntent for booking %s, amount %d %s",
                booking_id,
                amount_cents,
                currency,
            )
            intent = client.payment_intents.create(
                params={
                    "amount": amount_cents,
                    "currency": currency.lower(),
                    "metadata": intent_metadata,
                    "automatic_payment_methods": {"enabled": True},
                },
                options={"idempotency_key": f"payment_{booking_id}"},
            )
        except stripe.StripeError as e:
            raise self._wrap_error("create PaymentIntent", e) from e

        logger.info("PaymentIntent created: %s for booking %s", intent.id, booking_id)
        return {
            "payment_intent_id": intent.id,
            "client_secret": intent.client_secret,
            "status": intent.status,
        }

    def verify_webhook_signature(self, payload: bytes, signature: str) -> dict:
        """Verify a webhook signature and parse the event.

        Args:
            payload: Raw request body bytes.
            signature: Stripe-Signature header value.

        Returns:
            Parsed Stripe event dictionary.

        Raises:
            StripeServiceError: If signature is invalid.
        """
        webhook_secret = self._get_webhook_secret()

        try:
            event = stripe.Webhook.construct_event(payload, signature, webhook_secret)
        except stripe.SignatureVerificationError as e:
            logger.warning("Invalid webhook signature: %s", str(e))
            raise StripeServiceError("Invalid webhook signature") from e
        except ValueError as e:
            logger.warning("Unparseable webhook payload: %s", str(e))
            raise StripeServiceError("Invalid webhook payload") from e

        logger.info("Webhook signature verified for event: %s", event["id"])
        return event.to_dict() if hasattr(event, "to_dict") else dict(event)

    def create_refund(
        self,
        *,
        payment_intent_id: str,
        amount_cents: int | None = None,
        metadata: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Create a refund for a payment.

        Args:
            payment_intent_id: Stripe PaymentIntent ID (pi_xxx).
            amount_cents: Refund amount in cents. If None, full refund.
            metadata: Metadata stored on the refund.

        Returns:
            Dict with refund_id, amount and status.

        Raises:
            StripeServiceError: If refund creation fails.
        """
        client = self._get_client()

        params: dict[str, Any] = {"payment_intent": payment_intent_id}
        if amount_cents is not None:
            params["amount"] = amount_cents
        if metadata:
            params["metadata"] = metadata

        try:
            logger.info(
                "Creating refund for PaymentIntent %s, amount %s cents",
                payment_intent_id,
                amount_cents if amount_cents is not None else "full",
            )
            refund = client.refunds.create(
                params=params,
                options={"idempotency_key": f"refund_{payment_intent_id}"},
            )
        except stripe.StripeError as e:
            raise self._wrap_error("create refund", e) from e

        logger.info("Refund created: %s for PaymentIntent %s", refund.id, payment_intent_id)
        return {
            "refund_id": refund.id,
            "amount": refund.amount,
            "status": refund.status,
        }

    def create_vendor_payout(
        self,
        *,
        stripe_account_id: str,
        amount_cents: int,
        currency: str,
        metadata: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Transfer funds from the platform balance to a vendor's connected account.

        Args:
            stripe_account_id: Connected account (acct_xxx).
            amount_cents: Amount in minor units.
            currency: ISO currency code.
            metadata: Metadata stored on the transfer.

        Returns:
            Dict with payout_id, amount and currency.

        Raises:
            StripeServiceError: If the transfer fails.
        """
        client = self._get_client()

        params: dict[str, Any] = {
            "amount": amount_cents,
            "currency": currency.lower(),
            "destination": stripe_account_id,
        }
        if metadata:
            params["metadata"] = metadata

        try:
            logger.info(
                "Creating transfer of %d %s to %s",
                amount_cents,
                currency,
                stripe_account_id,
            )
            transfer = client.transfers.create(params=params)
        except stripe.StripeError as e:
            raise self._wrap_error("create transfer", e) from e

        return {
            "payout_id": transfer.id,
            "amount": transfer.amount,
            "currency": transfer.currency,
        }

    @staticmethod
    def _wrap_error(action: str, error: stripe.StripeError) -> StripeServiceError:
        error_code = getattr(error, "code", None)
        logger.error("Stripe %s failed: %s (code: %s)", action, str(error), error_code)
        return StripeServiceError(f"Failed to {action}: {error}", stripe_error_code=error_code)

    @staticmethod
    def compute_payload_hash(payload: bytes) -> str:
        """Compute SHA-256 hash of webhook payload for deduplication."""
        return hashlib.sha256(payload).hexdigest()


@lru_cache(maxsize=1)
def get_stripe_service() -> StripeService:
    """Get the shared StripeService instance."""
    return StripeService()
