"""Vendor wallet endpoints."""

from fastapi import APIRouter, Depends

from ledger.models import VendorWallet, Withdrawal
from ledger.models.errors import ErrorResponse
from ledger.services.wallet_service import WalletService
from ledger_api.dependencies import get_wallet_service
from ledger_api.models.common import DataResponse
from ledger_api.models.payments import WithdrawRequest

router = APIRouter(prefix="/vendor/wallet", tags=["wallet"])


@router.get(
    "/{user_id}",
    summary="Get vendor wallet",
    response_model=DataResponse[VendorWallet],
    responses={404: {"description": "Wallet not found", "model": ErrorResponse}},
)
async def get_wallet(
    user_id: str,
    wallets: WalletService = Depends(get_wallet_service),
) -> DataResponse[VendorWallet]:
    return DataResponse[VendorWallet](data=wallets.get_wallet(user_id))


@router.post(
    "/{user_id}/withdraw",
    summary="Withdraw from vendor wallet",
    description="""
Transfer `amount` cents from the vendor's wallet to their connected Stripe
account. The balance never goes negative; a failed transfer leaves the
balance unchanged.
""",
    response_model=DataResponse[Withdrawal],
    responses={
        400: {
            "description": "Insufficient balance or no payout account",
            "model": ErrorResponse,
        },
        404: {"description": "Wallet not found", "model": ErrorResponse},
        502: {"description": "Stripe API error", "model": ErrorResponse},
    },
)
async def withdraw(
    user_id: str,
    request: WithdrawRequest,
    wallets: WalletService = Depends(get_wallet_service),
) -> DataResponse[Withdrawal]:
    withdrawal = wallets.withdraw(user_id, request.amount, request.currency)
    return DataResponse[Withdrawal](message="Withdrawal completed", data=withdrawal)
