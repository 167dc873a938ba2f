"""Webhook handler for processing Stripe events.

Keeps event dispatch separate from HTTP routing so the mapping from Stripe
event types to ledger operations can be unit tested without a request.

Every handled event is written to the ``stripe-webhook-events`` log, which is
checked first so a redelivered event id is acknowledged without being
processed again.
"""

import datetime as dt
import hashlib
import json
from typing import TYPE_CHECKING, Any

from ledger.models import (
    LedgerError,
    RefundMetadata,
    RefundStatus,
    StripeWebhookEvent,
    TransactionStatus,
    TransactionUpdate,
    WebhookResult,
)
from ledger.utils.logging import get_logger, log_webhook_event

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService
    from .transaction_repository import TransactionRepository

logger = get_logger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error."

_REFUND_EVENTS: dict[str, RefundStatus] = {
    "refund.created": RefundStatus.PROCESSING,
    "charge.refunded": RefundStatus.SUCCESS,
    "charge.failed": RefundStatus.FAILED,
    "refund.failed": RefundStatus.FAILED,
}

_PAYMENT_INTENT_EVENTS: dict[str, TransactionStatus] = {
    "payment_intent.succeeded": TransactionStatus.SUCCEEDED,
    "payment_intent.processing": TransactionStatus.PROCESSING,
    "payment_intent.payment_failed": TransactionStatus.FAILED,
    "payment_intent.canceled": TransactionStatus.CANCELED,
    "payment_intent.requires_action": TransactionStatus.REQUIRES_ACTION,
}

# Subscribed to on the Stripe side but nothing to do in the ledger
_ACKNOWLEDGED_EVENTS = frozenset(
    {"payment_intent.created", "customer.created", "payout.paid", "payout.failed"}
)


class WebhookHandler:
    """Handler for processing Stripe webhook events.

    Refund events drive ``TransactionRepository.refunded``; PaymentIntent
    events drive ``TransactionRepository.update_transaction``.
    """

    WEBHOOK_EVENTS_TABLE = "stripe-webhook-events"

    def __init__(self, db: "DynamoDBService", repository: "TransactionRepository") -> None:
        """Initialize webhook handler.

        Args:
            db: DynamoDB service instance
            repository: Transaction repository the events are applied to
        """
        self._db = db
        self._repository = repository

    def is_event_already_processed(self, event_id: str) -> bool:
        """Check if webhook event was already processed (idempotency).

        Events logged with an ``error`` result do not count, so a redelivery
        is applied once the missing ledger rows exist.

        Args:
            event_id: Stripe event ID

        Returns:
            True if event was already processed
        """
        existing = self._db.get_item(self.WEBHOOK_EVENTS_TABLE, {"event_id": event_id})
        return existing is not None and existing.get("processing_result") != "error"

    def log_event(
        self,
        event_id: str,
        event_type: str,
        payload_hash: str,
        reference_number: str | None,
        booking_id: str | None,
        processing_result: str,
        error_message: str | None = None,
    ) -> None:
        """Log webhook event to DynamoDB for idempotency and audit trail.

        Args:
            event_id: Stripe event ID
            event_type: Event type (charge.refunded, etc.)
            payload_hash: SHA-256 hash of payload
            reference_number: PaymentIntent ID the event refers to (if any)
            booking_id: Booking ID from the event metadata (if any)
            processing_result: Result (success, skipped, error)
            error_message: Error message if processing failed
        """
        record = StripeWebhookEvent(
            event_id=event_id,
            event_type=event_type,
            processed_at=dt.datetime.now(dt.UTC),
            payload_hash=payload_hash,
            reference_number=reference_number,
            booking_id=booking_id,
            processing_result=processing_result,
            error_message=error_message,
        )
        self._db.put_item(
            self.WEBHOOK_EVENTS_TABLE, record.model_dump(mode="json", exclude_none=True)
        )

    def handle_event(self, event: dict, payload_hash: str | None = None) -> WebhookResult:
        """Dispatch a verified Stripe event to the ledger.

        Ledger errors are recorded and reported back with ``success=False``;
        a redelivery of the same event id is processed again. Unexpected
        errors are not recorded at all.

        Args:
            event: Parsed Stripe event ({id, type, data.object})
            payload_hash: SHA-256 of the raw payload; computed from the event if omitted

        Returns:
            WebhookResult describing what happened
        """
        event_id = event.get("id", "")
        event_type = event.get("type", "")
        obj = event.get("data", {}).get("object", {}) or {}
        reference_number = _payment_intent_id(obj)
        booking_id = (obj.get("metadata") or {}).get("booking_id")

        if payload_hash is None:
            payload_hash = hashlib.sha256(
                json.dumps(event, sort_keys=True, default=str).encode()
            ).hexdigest()

        if event_id and self.is_event_already_processed(event_id):
            log_webhook_event(logger, event_type, event_id, result="duplicate")
            return WebhookResult(
                event_id=event_id,
                event_type=event_type,
                processing_result="duplicate",
                message="Event already processed",
            )

        try:
            result = self._dispatch(event_type, obj)
        except LedgerError as e:
            log_webhook_event(
                logger,
                event_type,
                event_id,
                reference_number=reference_number,
                booking_id=booking_id,
                result="error",
                error=e.message,
            )
            if event_id:
                self.log_event(
                    event_id,
                    event_type,
                    payload_hash,
                    reference_number,
                    booking_id,
                    "error",
                    e.message,
                )
            return WebhookResult(
                event_id=event_id,
                event_type=event_type,
                processing_result="error",
                success=False,
                message=e.message,
            )
        except Exception as e:
            logger.exception(
                "Unexpected error processing webhook %s (%s): %s", event_type, event_id, e
            )
            return WebhookResult(
                event_id=event_id,
                event_type=event_type,
                processing_result="error",
                success=False,
                message=INTERNAL_ERROR_MESSAGE,
            )

        log_webhook_event(
            logger,
            event_type,
            event_id,
            reference_number=reference_number,
            booking_id=booking_id,
            result=result,
        )
        if event_id:
            self.log_event(event_id, event_type, payload_hash, reference_number, booking_id, result)
        return WebhookResult(event_id=event_id, event_type=event_type, processing_result=result)

    def _dispatch(self, event_type: str, obj: dict[str, Any]) -> str:
        """Apply one event and return its processing result."""
        if event_type in _REFUND_EVENTS:
            return self.process_refund_event(event_type, obj)
        if event_type in _PAYMENT_INTENT_EVENTS:
            return self.process_payment_intent_event(event_type, obj)
        if event_type in _ACKNOWLEDGED_EVENTS:
            return "skipped"

        logger.info("Unhandled event type: %s", event_type)
        return "skipped"

    def process_refund_event(self, event_type: str, obj: dict[str, Any]) -> str:
        """Process refund.created, charge.refunded, charge.failed and refund.failed.

        Args:
            event_type: Stripe event type
            obj: Event data object (a Charge or a Refund)

        Returns:
            Processing result: "success", or "skipped" for replays
        """
        status = _REFUND_EVENTS[event_type]
        payment_intent_id = _payment_intent_id(obj)
        if not payment_intent_id:
            logger.warning("%s without payment_intent, nothing to reconcile", event_type)
            return "skipped"

        if status == RefundStatus.SUCCESS:
            outcome = self._repository.refunded(
                payment_intent_id,
                status,
                metadata=RefundMetadata.model_validate(obj.get("metadata") or {}),
                amount_refunded=int(obj.get("amount_refunded") or 0),
                amount=int(obj.get("amount") or 0),
            )
        else:
            outcome = self._repository.refunded(payment_intent_id, status)

        return "success" if outcome.applied else "skipped"

    def process_payment_intent_event(self, event_type: str, obj: dict[str, Any]) -> str:
        """Process payment_intent.* status changes.

        Args:
            event_type: Stripe event type
            obj: PaymentIntent object

        Returns:
            Processing result: "success", or "skipped" when no transaction matched
        """
        status = _PAYMENT_INTENT_EVENTS[event_type]
        fields: dict[str, Any] = {
            "reference_number": obj.get("id", ""),
            "status": status,
            "raw_status": obj.get("status"),
        }
        if status == TransactionStatus.SUCCEEDED:
            fields["paid_amount"] = int(obj.get("amount_received") or 0)
            fields["paid_currency"] = obj.get("currency")

        updated = self._repository.update_transaction(TransactionUpdate(**fields))
        return "success" if updated else "skipped"


def _payment_intent_id(obj: dict[str, Any]) -> str | None:
    """PaymentIntent ID an event object refers to."""
    if obj.get("object") == "payment_intent" or str(obj.get("id", "")).startswith("pi_"):
        return obj.get("id")
    payment_intent = obj.get("payment_intent")
    if isinstance(payment_intent, dict):
        return payment_intent.get("id")
    return payment_intent
