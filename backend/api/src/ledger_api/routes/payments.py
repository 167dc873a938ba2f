"""Payment endpoints.

Provides REST endpoints for:
- Starting a Stripe payment for a booking
"""

from fastapi import APIRouter, Depends
from starlette.status import HTTP_201_CREATED

from ledger.models.errors import ErrorResponse
from ledger.services.payment_service import PaymentService
from ledger_api.dependencies import get_payment_service
from ledger_api.models.common import DataResponse
from ledger_api.models.payments import PaymentIntentRequest, PaymentIntentResult

router = APIRouter(tags=["payments"])


@router.post(
    "/payment/stripe/payment-intents",
    summary="Start a booking payment",
    description="""
Create a Stripe PaymentIntent for a booking and record a pending transaction.

The amount and currency are taken from the booking. The returned
`client_secret` is used by the client to confirm the payment; the
transaction moves on through `payment_intent.*` webhooks.
""",
    status_code=HTTP_201_CREATED,
    response_model=DataResponse[PaymentIntentResult],
    responses={
        404: {"description": "Booking not found", "model": ErrorResponse},
        409: {"description": "Payment already started", "model": ErrorResponse},
        502: {"description": "Stripe API error", "model": ErrorResponse},
    },
)
async def create_payment_intent(
    request: PaymentIntentRequest,
    payments: PaymentService = Depends(get_payment_service),
) -> DataResponse[PaymentIntentResult]:
    result = payments.initiate_booking_payment(request.booking_id)
    return DataResponse[PaymentIntentResult](
        message="Payment initiated",
        data=PaymentIntentResult(**result),
    )
