"""Request correlation for the ledger API.

Each request is bound to the caller's X-Correlation-ID (or a fresh one) for
the duration of the call, so repository and webhook log lines can be traced
back to a single HTTP request. The ID is returned in the same header.
"""

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from ledger.utils.logging import clear_correlation_id, set_correlation_id

CORRELATION_ID_HEADER = "X-Correlation-ID"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        incoming = request.headers.get(CORRELATION_ID_HEADER, "").strip() or None
        correlation_id = set_correlation_id(incoming)
        # Left bound when call_next raises so the 500 handler can report it
        response = await call_next(request)
        clear_correlation_id()
        response.headers[CORRELATION_ID_HEADER] = correlation_id
        return response
