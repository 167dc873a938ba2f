"""Transaction repository: payment records and refund reconciliation.

Owns the ``payment-transactions``, ``payment-references`` and
``refund-transactions`` tables, and is the only writer of vendor wallet
balances on the refund path.

Refund lifecycle (driven by processor webhooks):

    requested --processing--> processing --success--> completed
        |                         |
        +--------- other ---------+--------> failed

``completed`` and ``failed`` are terminal. Replayed or late events for a
terminal refund are ignored, and the wallet deduction is written in the same
DynamoDB transaction as ``completed_at`` so it happens at most once.
"""

import datetime as dt
import uuid
from typing import TYPE_CHECKING, Any

from boto3.dynamodb.conditions import Attr

from ledger.config import LedgerConfig, get_config
from ledger.models import (
    ErrorCode,
    LedgerError,
    NotFoundError,
    PaymentProvider,
    PaymentTransaction,
    RefundMetadata,
    RefundReconciliation,
    RefundStatus,
    RefundTransaction,
    TransactionCreate,
    TransactionDetail,
    TransactionStatus,
    TransactionType,
    TransactionUpdate,
    refund_reference,
)
from ledger.utils.logging import get_logger, log_transaction_operation

from .refund_policy_service import RefundPolicyService

if TYPE_CHECKING:
    from .booking_service import BookingService
    from .dynamodb import DynamoDBService

logger = get_logger(__name__)

# Refund record has not reached a terminal state yet
_REFUND_OPEN = "attribute_not_exists(completed_at) AND attribute_not_exists(failed_at)"

_REFUND_STATUS_TO_TRANSACTION = {
    RefundStatus.PROCESSING: TransactionStatus.PROCESSING,
    RefundStatus.SUCCESS: TransactionStatus.SUCCEEDED,
    RefundStatus.FAILED: TransactionStatus.FAILED,
}


def normalize_refund_status(status: "str | RefundStatus") -> RefundStatus:
    """Map a reported refund status onto the three handled outcomes.

    Anything other than ``processing`` or ``success`` counts as a failure.
    """
    try:
        return RefundStatus(status)
    except ValueError:
        return RefundStatus.FAILED


class TransactionRepository:
    """Persistence and reconciliation for payment transactions."""

    TRANSACTIONS_TABLE = "payment-transactions"
    REFERENCES_TABLE = "payment-references"
    REFUNDS_TABLE = "refund-transactions"
    WALLETS_TABLE = "vendor-wallets"

    REFERENCE_INDEX = "reference-index"
    BOOKING_INDEX = "booking-index"

    def __init__(
        self,
        db: "DynamoDBService",
        config: LedgerConfig | None = None,
        bookings: "BookingService | None" = None,
        refund_policy: RefundPolicyService | None = None,
    ) -> None:
        """Initialize the repository.

        Args:
            db: DynamoDB service instance
            config: Ledger settings (defaults to the environment config)
            bookings: Booking service used for the status cascade
            refund_policy: Commission policy (defaults to the configured rate)
        """
        self.db = db
        self.config = config or get_config()
        self.bookings = bookings
        self.refund_policy = refund_policy or RefundPolicyService(
            self.config.commission_percent
        )

    @staticmethod
    def _generate_id(prefix: str) -> str:
        return f"{prefix}-{uuid.uuid4().hex[:12].upper()}"

    # Creation

    def create_transaction(
        self,
        booking_id: str | None,
        amount: Any = None,
        currency: str | None = None,
        reference_number: str | None = None,
        status: TransactionStatus | str = TransactionStatus.PENDING,
        **extra: Any,
    ) -> PaymentTransaction:
        """Record a new transaction with only the supplied fields.

        Args:
            booking_id: Owning booking
            amount: Requested amount in cents (coerced to int)
            currency: ISO currency code
            reference_number: Processor reference, unique per payment attempt
            status: Initial status (default: pending)
            **extra: Other TransactionCreate fields (type, user_id, paid_amount, ...)

        Returns:
            The stored PaymentTransaction

        Raises:
            LedgerError: DUPLICATE_REFERENCE if the reference number is taken
        """
        data = TransactionCreate(
            booking_id=booking_id,
            amount=amount,
            currency=currency,
            reference_number=reference_number,
            status=status,
            **extra,
        )
        item = self._new_transaction_item(data)
        self._write_with_reference(item, [])

        transaction = _item_to_transaction(item)
        log_transaction_operation(
            logger,
            "create_transaction",
            transaction_id=transaction.transaction_id,
            reference_number=transaction.reference_number,
            booking_id=transaction.booking_id,
            amount_cents=transaction.amount,
            status=transaction.status.value,
        )
        return transaction

    def create_refund_transaction(
        self,
        payment: PaymentTransaction,
        requested_amount: int,
        stripe_refund_id: str | None = None,
    ) -> TransactionDetail:
        """Record a refund-type transaction and its refund record together.

        The refund transaction's reference is ``{payment reference}_refund``,
        which is what refund webhooks are reconciled against.

        Raises:
            LedgerError: DUPLICATE_REFERENCE if the payment already has a refund
        """
        if not payment.reference_number:
            raise LedgerError(
                ErrorCode.REFUND_NOT_ALLOWED,
                details={"transaction_id": payment.transaction_id},
            )

        refund_id = self._generate_id("RFD")
        data = TransactionCreate(
            booking_id=payment.booking_id,
            amount=requested_amount,
            currency=payment.paid_currency or payment.currency,
            reference_number=refund_reference(payment.reference_number),
            type=TransactionType.REFUND,
        )
        item = self._new_transaction_item(data)
        item["refund_transaction_id"] = refund_id

        refund_item: dict[str, Any] = {
            "refund_id": refund_id,
            "transaction_id": item["transaction_id"],
            "requested_amount": requested_amount,
            "created_at": item["created_at"],
        }
        if payment.booking_id:
            refund_item["booking_id"] = payment.booking_id
        if stripe_refund_id:
            refund_item["stripe_refund_id"] = stripe_refund_id

        self._write_with_reference(
            item,
            [
                self.db.put_op(
                    self.REFUNDS_TABLE,
                    refund_item,
                    condition_expression="attribute_not_exists(refund_id)",
                )
            ],
        )

        log_transaction_operation(
            logger,
            "create_refund_transaction",
            transaction_id=item["transaction_id"],
            reference_number=item["reference_number"],
            booking_id=payment.booking_id,
            amount_cents=requested_amount,
        )
        return TransactionDetail(
            transaction=_item_to_transaction(item),
            refund=_item_to_refund(refund_item),
        )

    def _new_transaction_item(self, data: TransactionCreate) -> dict[str, Any]:
        item = data.present_fields()
        item["transaction_id"] = self._generate_id("TXN")
        item["provider"] = PaymentProvider.STRIPE.value
        item["created_at"] = dt.datetime.now(dt.UTC).isoformat()
        return item

    def _write_with_reference(
        self, item: dict[str, Any], extra_ops: list[dict[str, Any]]
    ) -> None:
        """Write a transaction row, claiming its reference number if it has one."""
        reference_number = item.get("reference_number")
        if not reference_number and not extra_ops:
            self.db.put_item(self.TRANSACTIONS_TABLE, item)
            return

        ops = [self.db.put_op(self.TRANSACTIONS_TABLE, item)]
        if reference_number:
            ops.insert(
                0,
                self.db.put_op(
                    self.REFERENCES_TABLE,
                    {
                        "reference_number": reference_number,
                        "transaction_id": item["transaction_id"],
                    },
                    condition_expression="attribute_not_exists(reference_number)",
                ),
            )
        ops.extend(extra_ops)

        if not self.db.transact_write(ops):
            raise LedgerError(
                ErrorCode.DUPLICATE_REFERENCE,
                details={"reference_number": str(reference_number)},
            )

    # Status updates

    def update_transaction(self, update: TransactionUpdate) -> int:
        """Apply a sparse status update to every row with the reference number.

        When booking cascade is enabled the owning booking mirrors the update.

        Returns:
            Number of rows updated (0 when nothing matches)
        """
        rows = self.db.query_by_gsi(
            self.TRANSACTIONS_TABLE,
            self.REFERENCE_INDEX,
            "reference_number",
            update.reference_number,
        )
        if not rows:
            logger.info(
                "No transactions with reference %s, nothing to update",
                update.reference_number,
            )
            return 0

        fields = update.present_fields()
        fields["updated_at"] = dt.datetime.now(dt.UTC).isoformat()
        expression, names, values = _set_expression(fields)

        updated = 0
        for row in rows:
            result = self.db.update_item(
                self.TRANSACTIONS_TABLE,
                {"transaction_id": row["transaction_id"]},
                expression,
                values,
                names,
                condition_expression="attribute_exists(transaction_id)",
            )
            if result is not None:
                updated += 1

        booking_id = rows[0].get("booking_id")
        if self.config.cascade_booking_status and self.bookings and booking_id:
            self.bookings.update_fields(booking_id, update.booking_fields())

        log_transaction_operation(
            logger,
            "update_transaction",
            reference_number=update.reference_number,
            booking_id=booking_id,
            status=update.status.value,
            rows=updated,
        )
        return updated

    # Refund reconciliation

    def refunded(
        self,
        id: str,
        status: "str | RefundStatus",
        metadata: RefundMetadata | None = None,
        amount_refunded: int = 0,
        amount: int = 0,
    ) -> RefundReconciliation:
        """Reconcile a refund progress event for a payment intent.

        Args:
            id: PaymentIntent ID of the original payment
            status: Reported refund status (processing, success, anything else = failed)
            metadata: Charge metadata; ``vendor_id`` is required on success
            amount_refunded: Amount refunded to the customer, in cents
            amount: Original charge amount, in cents

        Returns:
            RefundReconciliation describing what was applied

        Raises:
            NotFoundError: When the refund transaction, its refund record or
                the vendor wallet does not exist
        """
        outcome = normalize_refund_status(status)
        payment, refund = self._find_refund(id)
        now = dt.datetime.now(dt.UTC).isoformat()

        if outcome == RefundStatus.SUCCESS:
            result = self._complete_refund(
                payment, refund, metadata, amount=amount, amount_refunded=amount_refunded, now=now
            )
        else:
            result = self._mark_refund(payment, refund, outcome, now)

        log_transaction_operation(
            logger,
            "refunded",
            transaction_id=payment.transaction_id,
            reference_number=payment.reference_number,
            booking_id=payment.booking_id,
            amount_cents=result.refund_amount,
            status=outcome.value,
            applied=result.applied,
        )
        return result

    def _find_refund(self, payment_intent_id: str) -> tuple[PaymentTransaction, RefundTransaction]:
        reference = refund_reference(payment_intent_id)
        rows = [
            row
            for row in self.db.query_by_gsi(
                self.TRANSACTIONS_TABLE,
                self.REFERENCE_INDEX,
                "reference_number",
                reference,
            )
            if row.get("type") == TransactionType.REFUND.value
        ]
        if not rows:
            raise NotFoundError(
                ErrorCode.PAYMENT_NOT_FOUND, details={"reference_number": reference}
            )

        payment = _item_to_transaction(rows[0])
        refund = self.get_refund_record(payment)
        if refund is None:
            raise NotFoundError(
                ErrorCode.REFUND_NOT_FOUND,
                details={"transaction_id": payment.transaction_id},
            )
        return payment, refund

    def _mark_refund(
        self,
        payment: PaymentTransaction,
        refund: RefundTransaction,
        outcome: RefundStatus,
        now: str,
    ) -> RefundReconciliation:
        """Set processing_at or failed_at, unless the refund moved past that point."""
        if outcome == RefundStatus.PROCESSING:
            field = "processing_at"
            already = refund.is_terminal or refund.processing_at is not None
            condition = f"{_REFUND_OPEN} AND attribute_not_exists(processing_at)"
        else:
            field = "failed_at"
            already = refund.is_terminal
            condition = _REFUND_OPEN

        applied = False
        if not already:
            applied = (
                self.db.update_item(
                    self.REFUNDS_TABLE,
                    {"refund_id": refund.refund_id},
                    f"SET {field} = :now",
                    {":now": now},
                    condition_expression=condition,
                )
                is not None
            )

        if applied:
            self._set_status(payment, _REFUND_STATUS_TO_TRANSACTION[outcome], now)
        else:
            logger.warning(
                "Refund %s already %s, ignoring %s event",
                refund.refund_id,
                refund.state.value,
                outcome.value,
            )

        return RefundReconciliation(
            transaction_id=payment.transaction_id,
            refund_id=refund.refund_id,
            status=outcome,
            applied=applied,
        )

    def _complete_refund(
        self,
        payment: PaymentTransaction,
        refund: RefundTransaction,
        metadata: RefundMetadata | None,
        *,
        amount: int,
        amount_refunded: int,
        now: str,
    ) -> RefundReconciliation:
        """Set completed_at and deduct the refund from the vendor wallet atomically."""
        vendor_id = metadata.vendor_id if metadata else None
        calculation = self.refund_policy.calculate_refund_amount(amount, amount_refunded)
        result = RefundReconciliation(
            transaction_id=payment.transaction_id,
            refund_id=refund.refund_id,
            status=RefundStatus.SUCCESS,
            applied=False,
            refund_amount=calculation["refund_amount"],
            commission_amount=calculation["commission_amount"],
            vendor_id=vendor_id,
        )

        if refund.is_terminal:
            logger.warning(
                "Refund %s already %s, ignoring success event",
                refund.refund_id,
                refund.state.value,
            )
            return result

        if not vendor_id:
            raise NotFoundError(
                ErrorCode.VENDOR_NOT_FOUND,
                details={"transaction_id": payment.transaction_id},
            )
        if self.db.get_item(self.WALLETS_TABLE, {"user_id": vendor_id}) is None:
            raise NotFoundError(ErrorCode.WALLET_NOT_FOUND, details={"user_id": vendor_id})

        ops = [
            self.db.update_op(
                self.REFUNDS_TABLE,
                {"refund_id": refund.refund_id},
                "SET completed_at = :now, refund_amount = :refund, commission_amount = :commission",
                {
                    ":now": now,
                    ":refund": calculation["refund_amount"],
                    ":commission": calculation["commission_amount"],
                },
                condition_expression=_REFUND_OPEN,
            ),
            self.db.update_op(
                self.WALLETS_TABLE,
                {"user_id": vendor_id},
                "SET updated_at = :now ADD #balance :delta",
                {":now": now, ":delta": -calculation["refund_amount"]},
                {"#balance": "balance"},
                condition_expression="attribute_exists(user_id)",
            ),
            self.db.update_op(
                self.TRANSACTIONS_TABLE,
                {"transaction_id": payment.transaction_id},
                "SET #status = :status, updated_at = :now",
                {":status": TransactionStatus.SUCCEEDED.value, ":now": now},
                {"#status": "status"},
            ),
        ]

        if self.db.transact_write(ops):
            logger.info("Refund %s completed: %s", refund.refund_id, calculation["description"])
            return result.model_copy(update={"applied": True})

        # Cancelled: either a concurrent delivery finished the refund first
        # or the wallet disappeared between the read and the write.
        current = self.get_refund_record(payment)
        if current is not None and current.is_terminal:
            logger.warning("Refund %s completed concurrently, ignoring replay", refund.refund_id)
            return result
        raise NotFoundError(ErrorCode.WALLET_NOT_FOUND, details={"user_id": vendor_id})

    def _set_status(
        self, payment: PaymentTransaction, status: TransactionStatus, now: str
    ) -> None:
        self.db.update_item(
            self.TRANSACTIONS_TABLE,
            {"transaction_id": payment.transaction_id},
            "SET #status = :status, updated_at = :now",
            {":status": status.value, ":now": now},
            {"#status": "status"},
        )

    # Reads

    def get_refund_record(self, payment: PaymentTransaction) -> RefundTransaction | None:
        """The refund record owned by a refund-type transaction, if any."""
        if not payment.refund_transaction_id:
            return None
        item = self.db.get_item(
            self.REFUNDS_TABLE,
            {"refund_id": payment.refund_transaction_id},
            consistent_read=True,
        )
        return _item_to_refund(item) if item else None

    def attach_stripe_refund(self, refund_id: str, stripe_refund_id: str) -> None:
        """Store the Stripe refund ID on a refund record written before the Stripe call."""
        self.db.update_item(
            self.REFUNDS_TABLE,
            {"refund_id": refund_id},
            "SET stripe_refund_id = :stripe_refund_id",
            {":stripe_refund_id": stripe_refund_id},
            condition_expression="attribute_exists(refund_id)",
        )

    def get_transaction(self, transaction_id: str) -> TransactionDetail:
        """Get a transaction with its refund record.

        Raises:
            NotFoundError: If the transaction does not exist
        """
        item = self.db.get_item(self.TRANSACTIONS_TABLE, {"transaction_id": transaction_id})
        if not item:
            raise NotFoundError(
                ErrorCode.TRANSACTION_NOT_FOUND,
                details={"transaction_id": transaction_id},
            )
        transaction = _item_to_transaction(item)
        return TransactionDetail(
            transaction=transaction, refund=self.get_refund_record(transaction)
        )

    def find_by_reference(self, reference_number: str) -> list[PaymentTransaction]:
        items = self.db.query_by_gsi(
            self.TRANSACTIONS_TABLE,
            self.REFERENCE_INDEX,
            "reference_number",
            reference_number,
        )
        return [_item_to_transaction(item) for item in items]

    def find_for_booking(self, booking_id: str) -> list[PaymentTransaction]:
        items = self.db.query_by_gsi(
            self.TRANSACTIONS_TABLE,
            self.BOOKING_INDEX,
            "booking_id",
            booking_id,
        )
        return _newest_first([_item_to_transaction(item) for item in items])

    def list_transactions(
        self,
        type: TransactionType | None = None,
        status: TransactionStatus | None = None,
    ) -> list[PaymentTransaction]:
        """List transactions, newest first, optionally filtered."""
        condition = None
        if type is not None:
            condition = Attr("type").eq(type.value)
        if status is not None:
            status_condition = Attr("status").eq(status.value)
            condition = status_condition if condition is None else condition & status_condition

        items = self.db.scan(self.TRANSACTIONS_TABLE, condition)
        return _newest_first([_item_to_transaction(item) for item in items])


# Conversion helpers


def _set_expression(
    fields: dict[str, Any],
) -> tuple[str, dict[str, str], dict[str, Any]]:
    names: dict[str, str] = {}
    values: dict[str, Any] = {}
    assignments = []
    for index, (name, value) in enumerate(fields.items()):
        names[f"#f{index}"] = name
        values[f":f{index}"] = value
        assignments.append(f"#f{index} = :f{index}")
    return f"SET {', '.join(assignments)}", names, values


def _newest_first(transactions: list[PaymentTransaction]) -> list[PaymentTransaction]:
    return sorted(transactions, key=lambda t: t.created_at, reverse=True)


def _optional_int(item: dict[str, Any], name: str) -> int | None:
    value = item.get(name)
    return int(value) if value is not None else None


def _optional_datetime(item: dict[str, Any], name: str) -> dt.datetime | None:
    value = item.get(name)
    return dt.datetime.fromisoformat(value) if value else None


def _item_to_transaction(item: dict[str, Any]) -> PaymentTransaction:
    """Convert DynamoDB item to PaymentTransaction model."""
    return PaymentTransaction(
        transaction_id=item["transaction_id"],
        reference_number=item.get("reference_number"),
        booking_id=item.get("booking_id"),
        user_id=item.get("user_id"),
        type=TransactionType(item.get("type", TransactionType.PAYMENT.value)),
        provider=PaymentProvider(item.get("provider", PaymentProvider.STRIPE.value)),
        status=TransactionStatus(item.get("status", TransactionStatus.PENDING.value)),
        amount=_optional_int(item, "amount"),
        currency=item.get("currency"),
        paid_amount=_optional_int(item, "paid_amount"),
        paid_currency=item.get("paid_currency"),
        raw_status=item.get("raw_status"),
        refund_transaction_id=item.get("refund_transaction_id"),
        created_at=dt.datetime.fromisoformat(item["created_at"]),
        updated_at=_optional_datetime(item, "updated_at"),
    )


def _item_to_refund(item: dict[str, Any]) -> RefundTransaction:
    """Convert DynamoDB item to RefundTransaction model."""
    return RefundTransaction(
        refund_id=item["refund_id"],
        transaction_id=item["transaction_id"],
        booking_id=item.get("booking_id"),
        requested_amount=_optional_int(item, "requested_amount"),
        stripe_refund_id=item.get("stripe_refund_id"),
        processing_at=_optional_datetime(item, "processing_at"),
        completed_at=_optional_datetime(item, "completed_at"),
        failed_at=_optional_datetime(item, "failed_at"),
        refund_amount=_optional_int(item, "refund_amount"),
        commission_amount=_optional_int(item, "commission_amount"),
        created_at=dt.datetime.fromisoformat(item["created_at"]),
    )
