"""Admin dashboard endpoints for transactions and refund requests."""

from fastapi import APIRouter, Depends, Query

from ledger.models import (
    PaymentTransaction,
    RefundReview,
    TransactionDetail,
    TransactionStatus,
    TransactionType,
)
from ledger.models.errors import ErrorResponse
from ledger.services.payment_service import PaymentService
from ledger.services.transaction_repository import TransactionRepository
from ledger_api.dependencies import get_payment_service, get_transaction_repository
from ledger_api.models.common import DataResponse

router = APIRouter(prefix="/dashboard/payments/transactions", tags=["transactions"])


@router.get(
    "",
    summary="List transactions",
    description="List payment, refund and withdraw transactions, newest first.",
    response_model=DataResponse[list[PaymentTransaction]],
)
async def list_transactions(
    type: TransactionType | None = Query(default=None, description="Filter by transaction type"),
    status: TransactionStatus | None = Query(default=None, description="Filter by status"),
    repository: TransactionRepository = Depends(get_transaction_repository),
) -> DataResponse[list[PaymentTransaction]]:
    transactions = repository.list_transactions(type=type, status=status)
    return DataResponse[list[PaymentTransaction]](data=transactions)


@router.get(
    "/{transaction_id}",
    summary="Get transaction",
    description="Get one transaction together with its refund record, if any.",
    response_model=DataResponse[TransactionDetail],
    responses={404: {"description": "Transaction not found", "model": ErrorResponse}},
)
async def get_transaction(
    transaction_id: str,
    repository: TransactionRepository = Depends(get_transaction_repository),
) -> DataResponse[TransactionDetail]:
    return DataResponse[TransactionDetail](data=repository.get_transaction(transaction_id))


@router.post(
    "/refund-request/{booking_id}",
    summary="Review a refund request",
    description="""
Approve or cancel a customer's refund request.

- `canceled`: marks the request canceled, no money moves.
- `approved`: refunds the booking's succeeded payment through Stripe, in full
  or by `amount` (cents) when `partial_refund` is true. The vendor wallet is
  debited later, when Stripe reports the refund as completed.
""",
    response_model=DataResponse[TransactionDetail | None],
    responses={
        400: {"description": "Refund not allowed or invalid amount", "model": ErrorResponse},
        404: {"description": "Booking not found", "model": ErrorResponse},
        409: {"description": "Payment already refunded", "model": ErrorResponse},
        502: {"description": "Stripe API error", "model": ErrorResponse},
    },
)
async def review_refund_request(
    booking_id: str,
    review: RefundReview,
    payments: PaymentService = Depends(get_payment_service),
) -> DataResponse[TransactionDetail | None]:
    detail = payments.review_refund_request(booking_id, review)
    return DataResponse[TransactionDetail | None](
        message=f"Refund request {review.status.value}",
        data=detail,
    )
