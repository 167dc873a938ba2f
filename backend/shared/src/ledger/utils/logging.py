"""Ledger logging: correlation IDs and key=value context lines.

Every request (and every webhook delivery) gets a correlation ID, stored in a
ContextVar so it follows the request through async code. The formatter
prefixes each line with it:

    [3f1c...] 2026-01-01 12:00:00 INFO ledger.services.transaction_repository:
        Ledger operation: refunded | reference_number=pi_123 | amount_cents=4250

Usage:
    from ledger.utils.logging import get_logger, log_transaction_operation

    logger = get_logger(__name__)
    log_transaction_operation(logger, "refunded", reference_number="pi_123")
"""

import logging
import uuid
from contextvars import ContextVar
from typing import Any

NO_CORRELATION_ID = "no-correlation-id"
DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_correlation_id: ContextVar[str | None] = ContextVar("ledger_correlation_id", default=None)


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Bind a correlation ID to the current context, generating one if missing.

    Returns:
        The ID now in effect
    """
    value = correlation_id or uuid.uuid4().hex
    _correlation_id.set(value)
    return value


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def clear_correlation_id() -> None:
    _correlation_id.set(None)


class CorrelationIdFilter(logging.Filter):
    """Stamps `correlation_id` onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or NO_CORRELATION_ID
        return True


class StructuredFormatter(logging.Formatter):
    """Prefixes formatted records with ``[correlation_id]``."""

    def format(self, record: logging.LogRecord) -> str:
        correlation_id = getattr(record, "correlation_id", None)
        if correlation_id is None:
            correlation_id = get_correlation_id() or NO_CORRELATION_ID
        return f"[{correlation_id}] {super().format(record)}"


def get_logger(name: str) -> logging.Logger:
    """Return `logging.getLogger(name)` with the correlation filter attached once."""
    logger = logging.getLogger(name)
    if not any(isinstance(f, CorrelationIdFilter) for f in logger.filters):
        logger.addFilter(CorrelationIdFilter())
    return logger


def configure_logging(level: int | str = logging.INFO) -> None:
    """Attach a structured stream handler to the root logger.

    Calling it again only updates the level.
    """
    root = logging.getLogger()
    root.setLevel(level)
    if any(isinstance(h.formatter, StructuredFormatter) for h in root.handlers):
        return

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter(DEFAULT_FORMAT))
    handler.addFilter(CorrelationIdFilter())
    root.addHandler(handler)


def _emit(logger: logging.Logger, level: int, headline: str, context: dict[str, Any]) -> None:
    # None values are dropped; zero amounts are kept
    fields = {key: value for key, value in context.items() if value is not None}
    parts = [headline] + [f"{key}={value}" for key, value in fields.items()]
    logger.log(level, " | ".join(parts), extra=fields)


def log_transaction_operation(
    logger: logging.Logger,
    operation: str,
    *,
    transaction_id: str | None = None,
    reference_number: str | None = None,
    booking_id: str | None = None,
    amount_cents: int | None = None,
    status: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log a ledger write (create, update, refund) with its identifiers.

    Logged at ERROR when `error` is given, INFO otherwise.
    """
    context: dict[str, Any] = {
        "transaction_id": transaction_id,
        "reference_number": reference_number,
        "booking_id": booking_id,
        "amount_cents": amount_cents,
        "status": status,
        "error": error,
        **extra,
    }
    level = logging.ERROR if error else logging.INFO
    _emit(logger, level, f"Ledger operation: {operation}", context)


_WEBHOOK_RESULT_LEVELS = {
    "error": logging.ERROR,
    "duplicate": logging.WARNING,
    "skipped": logging.WARNING,
}


def log_webhook_event(
    logger: logging.Logger,
    event_type: str | None,
    event_id: str | None,
    *,
    reference_number: str | None = None,
    booking_id: str | None = None,
    result: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log a Stripe event at a level chosen by its processing result.

    Args:
        logger: Logger instance
        event_type: Stripe event type (e.g., "charge.refunded")
        event_id: Stripe event ID
        reference_number: PaymentIntent ID the event refers to
        booking_id: Booking ID from metadata if available
        result: received, success, duplicate, skipped or error
        error: Failure message when result is "error"
    """
    context: dict[str, Any] = {
        "event_type": event_type,
        "event_id": event_id,
        "result": result,
        "reference_number": reference_number,
        "booking_id": booking_id,
        "error": error,
        **extra,
    }
    level = _WEBHOOK_RESULT_LEVELS.get(result or "", logging.INFO)
    _emit(logger, level, f"Webhook event: {event_type} ({event_id})", context)
