"""Read and mirror access to booking records."""

import datetime as dt
import logging
from typing import TYPE_CHECKING, Any

from ledger.models import Booking, ErrorCode, NotFoundError

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService

logger = logging.getLogger(__name__)


class BookingService:
    """Service for the booking fields owned by the ledger.

    Bookings are created elsewhere; the ledger only reads them and mirrors
    payment and refund-request state onto them.
    """

    BOOKINGS_TABLE = "bookings"

    def __init__(self, db: "DynamoDBService") -> None:
        self.db = db

    def get_booking(self, booking_id: str) -> Booking | None:
        item = self.db.get_item(self.BOOKINGS_TABLE, {"booking_id": booking_id})
        return _item_to_booking(item) if item else None

    def require_booking(self, booking_id: str) -> Booking:
        """Get a booking or raise NotFoundError."""
        booking = self.get_booking(booking_id)
        if booking is None:
            raise NotFoundError(
                ErrorCode.BOOKING_NOT_FOUND, details={"booking_id": booking_id}
            )
        return booking

    def update_fields(self, booking_id: str, fields: dict[str, Any]) -> bool:
        """Set fields on an existing booking.

        Args:
            booking_id: Booking to update
            fields: Attribute name to value; empty dicts are a no-op

        Returns:
            True if the booking was updated, False if it does not exist
        """
        if not fields:
            return False

        fields = {**fields, "updated_at": dt.datetime.now(dt.UTC).isoformat()}
        names: dict[str, str] = {}
        values: dict[str, Any] = {}
        assignments = []
        for index, (name, value) in enumerate(fields.items()):
            names[f"#f{index}"] = name
            values[f":f{index}"] = value
            assignments.append(f"#f{index} = :f{index}")

        result = self.db.update_item(
            self.BOOKINGS_TABLE,
            {"booking_id": booking_id},
            f"SET {', '.join(assignments)}",
            values,
            names,
            condition_expression="attribute_exists(booking_id)",
        )
        if result is None:
            logger.warning("Booking %s not found, fields not mirrored", booking_id)
            return False
        return True

    def set_refund_request_status(self, booking_id: str, status: str) -> bool:
        return self.update_fields(booking_id, {"refund_request_status": status})


def _item_to_booking(item: dict[str, Any]) -> Booking:
    def _int(name: str) -> int | None:
        value = item.get(name)
        return int(value) if value is not None else None

    return Booking(
        booking_id=item["booking_id"],
        user_id=item.get("user_id"),
        vendor_id=item.get("vendor_id"),
        invoice_number=item.get("invoice_number"),
        amount=_int("amount"),
        currency=item.get("currency"),
        payment_status=item.get("payment_status"),
        paid_amount=_int("paid_amount"),
        paid_currency=item.get("paid_currency"),
        payment_raw_status=item.get("payment_raw_status"),
        refund_request_status=item.get("refund_request_status"),
    )
