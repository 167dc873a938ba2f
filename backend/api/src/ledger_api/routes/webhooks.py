"""Webhook endpoint for Stripe events.

Does NOT require authentication: payloads are verified with the Stripe
webhook signing secret instead.
"""

from fastapi import APIRouter, Depends, Request

from ledger.models.errors import ErrorCode, ErrorResponse, LedgerError
from ledger.services.stripe_service import StripeService, StripeServiceError
from ledger.services.webhook_handler import WebhookHandler
from ledger.utils.logging import get_logger, log_webhook_event
from ledger_api.dependencies import get_stripe, get_webhook_handler
from ledger_api.models.payments import WebhookResponse

logger = get_logger(__name__)

router = APIRouter(tags=["webhooks"])


@router.post(
    "/payment/stripe/webhook",
    summary="Receive Stripe webhook events",
    description="""
Endpoint for Stripe webhook events. Handles:
- refund.created, charge.refunded, charge.failed, refund.failed: refund reconciliation
- payment_intent.*: payment transaction status updates

**No authentication required** - signature is verified using Stripe webhook secret.

**Idempotent**: Duplicate events (same event_id) return 200 with 'duplicate' result.
Processing failures are acknowledged with `success: false` so Stripe does not
keep redelivering events the ledger cannot apply.
""",
    response_model=WebhookResponse,
    responses={
        200: {
            "description": "Event received and processed (or acknowledged)",
            "model": WebhookResponse,
        },
        400: {
            "description": "Invalid signature or missing header",
            "model": ErrorResponse,
        },
    },
)
async def handle_stripe_webhook(
    request: Request,
    stripe_service: StripeService = Depends(get_stripe),
    handler: WebhookHandler = Depends(get_webhook_handler),
) -> WebhookResponse:
    """Verify the signature and dispatch the event to the ledger."""
    signature = request.headers.get("Stripe-Signature")
    if not signature:
        logger.warning("Webhook request missing Stripe-Signature header")
        raise LedgerError(
            ErrorCode.INVALID_WEBHOOK_SIGNATURE,
            details={"message": "Missing Stripe-Signature header"},
        )

    # Signature is computed over the raw body
    payload = await request.body()

    try:
        event = stripe_service.verify_webhook_signature(payload, signature)
    except StripeServiceError as e:
        logger.warning("Webhook signature verification failed: %s", e)
        raise LedgerError(
            ErrorCode.INVALID_WEBHOOK_SIGNATURE,
            details={"message": str(e)},
        ) from e

    log_webhook_event(logger, event.get("type"), event.get("id"), result="received")

    result = handler.handle_event(event, StripeService.compute_payload_hash(payload))

    return WebhookResponse(
        received=True,
        success=result.success,
        event_id=result.event_id,
        event_type=result.event_type,
        processing_result=result.processing_result,
        message=result.message,
    )
