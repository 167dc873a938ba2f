"""FastAPI application for the payment ledger REST API.

Serves the Stripe webhook, booking payment initiation, the admin
transaction dashboard and vendor wallets. Runs on AWS Lambda through
Mangum (`handler`) or locally through uvicorn (`run_server`).
"""

import os
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from mangum import Mangum

from ledger import __version__
from ledger.config import get_config
from ledger.utils.logging import configure_logging, get_logger
from ledger_api.exceptions import register_exception_handlers
from ledger_api.middleware.correlation import CORRELATION_ID_HEADER, CorrelationIdMiddleware
from ledger_api.routes import (
    payments_router,
    transactions_router,
    wallet_router,
    webhooks_router,
)

configure_logging(os.getenv("LOG_LEVEL", "INFO"))
logger = get_logger(__name__)

app = FastAPI(
    title="Payment Ledger API",
    description="Payment transactions, refund reconciliation and vendor wallets",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(get_config().cors_origins),
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
    expose_headers=[CORRELATION_ID_HEADER],
)
app.add_middleware(CorrelationIdMiddleware)

register_exception_handlers(app)

for router in (webhooks_router, payments_router, transactions_router, wallet_router):
    app.include_router(router)


@app.get("/ping")
async def ping() -> dict[str, Any]:
    """Liveness check."""
    return {
        "status": "ok",
        "timestamp": datetime.now(UTC).isoformat(),
        "service": "ledger-api",
        "environment": get_config().environment,
        "version": __version__,
    }


handler = Mangum(app, lifespan="off")


def run_server(host: str = "0.0.0.0", port: int | None = None, reload: bool = False) -> None:
    """Serve the API with uvicorn; `port` defaults to $PORT or 8080."""
    import uvicorn

    port = port or int(os.getenv("PORT", "8080"))
    logger.info("Starting ledger API on %s:%d", host, port)
    if reload:
        uvicorn.run(
            "ledger_api.main:app",
            host=host,
            port=port,
            reload=True,
            reload_dirs=["api/src", "shared/src"],
        )
    else:
        uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server(reload=os.getenv("ENVIRONMENT", "dev") == "dev")
