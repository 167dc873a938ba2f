"""FastAPI exception handlers for converting LedgerError to HTTP responses.

The ErrorCode-to-HTTP status mapping:
- 400 Bad Request: business rule violations and bad webhook signatures
- 404 Not Found: any NotFoundError
- 409 Conflict: duplicate reference numbers
- 502 Bad Gateway: Stripe API failures

Usage:
    from ledger_api.exceptions import register_exception_handlers
    register_exception_handlers(app)
"""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_502_BAD_GATEWAY,
)

from ledger.models.errors import ErrorCode, LedgerError, NotFoundError
from ledger.utils.logging import get_correlation_id
from ledger_api.middleware.correlation import CORRELATION_ID_HEADER

logger = logging.getLogger(__name__)

# Map ErrorCode to HTTP status codes
ERROR_CODE_TO_HTTP_STATUS: dict[ErrorCode, int] = {
    # Lookup failures -> 404 Not Found
    ErrorCode.PAYMENT_NOT_FOUND: HTTP_404_NOT_FOUND,
    ErrorCode.REFUND_NOT_FOUND: HTTP_404_NOT_FOUND,
    ErrorCode.WALLET_NOT_FOUND: HTTP_404_NOT_FOUND,
    ErrorCode.BOOKING_NOT_FOUND: HTTP_404_NOT_FOUND,
    ErrorCode.TRANSACTION_NOT_FOUND: HTTP_404_NOT_FOUND,
    ErrorCode.VENDOR_NOT_FOUND: HTTP_404_NOT_FOUND,
    # Uniqueness -> 409 Conflict
    ErrorCode.DUPLICATE_REFERENCE: HTTP_409_CONFLICT,
    # Business validation errors -> 400 Bad Request
    ErrorCode.INSUFFICIENT_BALANCE: HTTP_400_BAD_REQUEST,
    ErrorCode.PAYOUT_ACCOUNT_MISSING: HTTP_400_BAD_REQUEST,
    ErrorCode.REFUND_NOT_ALLOWED: HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_AMOUNT: HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_WEBHOOK_SIGNATURE: HTTP_400_BAD_REQUEST,
    # Upstream failures -> 502 Bad Gateway
    ErrorCode.STRIPE_API_ERROR: HTTP_502_BAD_GATEWAY,
}


def get_http_status_for_error(exc: LedgerError) -> int:
    """Get HTTP status code for a LedgerError.

    NotFoundError is always 404; other codes fall back to 400 when not mapped.
    """
    if isinstance(exc, NotFoundError):
        return HTTP_404_NOT_FOUND
    return ERROR_CODE_TO_HTTP_STATUS.get(exc.code, HTTP_400_BAD_REQUEST)


def _error_response(status_code: int, content: dict[str, Any]) -> JSONResponse:
    correlation_id = get_correlation_id()
    headers = {CORRELATION_ID_HEADER: correlation_id} if correlation_id else None
    return JSONResponse(status_code=status_code, content=content, headers=headers)


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    """Render a LedgerError as its ErrorResponse body."""
    status_code = get_http_status_for_error(exc)
    if status_code >= HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.code.value)
    return _error_response(status_code, exc.to_response().model_dump(mode="json"))


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Unexpected failures return a bare 500; the correlation ID links it to the log."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    content: dict[str, Any] = {
        "success": False,
        "error_code": "ERR_INTERNAL",
        "message": "An unexpected error occurred",
        "recovery": "Retry later; quote the correlation ID when contacting support",
        "details": None,
    }
    correlation_id = get_correlation_id()
    if correlation_id:
        content["details"] = {"correlation_id": correlation_id}
    return _error_response(HTTP_500_INTERNAL_SERVER_ERROR, content)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LedgerError, ledger_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, generic_exception_handler)
