"""API routes package.

Routers are organized by audience:

- webhooks: Stripe webhook receiver
- payments: Booking payment initiation
- transactions: Admin dashboard (transactions, refund requests)
- wallet: Vendor wallet and withdrawals

All routers are registered in main.py without a global prefix so the
webhook URL configured in Stripe stays stable.
"""

from ledger_api.routes.payments import router as payments_router
from ledger_api.routes.transactions import router as transactions_router
from ledger_api.routes.wallet import router as wallet_router
from ledger_api.routes.webhooks import router as webhooks_router

__all__ = [
    "payments_router",
    "transactions_router",
    "wallet_router",
    "webhooks_router",
]
