"""DynamoDB access for the ledger tables.

Table names are ``{prefix}-{table}`` where the prefix is DYNAMODB_TABLE_PREFIX
or ``ledger-{environment}``. Conditional writes report a failed condition as a
return value (False / None) instead of raising; callers map it to a ledger
outcome such as a replayed refund or an overdrawn wallet.
"""

import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import boto3
from boto3.dynamodb.conditions import Key
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError

_dynamodb_service_instance: "DynamoDBService | None" = None

_serializer = TypeSerializer()


class ConditionFailed(Exception):
    """A condition expression (or a transaction containing one) was not met."""


@contextmanager
def _conditional(*failure_codes: str) -> Iterator[None]:
    try:
        yield
    except ClientError as e:
        if e.response["Error"]["Code"] in failure_codes:
            raise ConditionFailed(e.response["Error"].get("Message", "")) from e
        raise


def get_dynamodb_service(environment: str | None = None) -> "DynamoDBService":
    """Shared DynamoDBService; `environment` only applies on the first call."""
    global _dynamodb_service_instance
    if _dynamodb_service_instance is None:
        _dynamodb_service_instance = DynamoDBService(environment)
    return _dynamodb_service_instance


def reset_dynamodb_service() -> None:
    """Drop the shared instance so the next call builds a new client (tests, moto)."""
    global _dynamodb_service_instance
    _dynamodb_service_instance = None


class DynamoDBService:
    """Thin wrapper over the boto3 resource and client for prefixed ledger tables."""

    def __init__(self, environment: str | None = None) -> None:
        self.environment = environment or os.getenv("ENVIRONMENT", "dev")
        self.name_prefix = os.getenv("DYNAMODB_TABLE_PREFIX", f"ledger-{self.environment}")
        self._dynamodb = boto3.resource("dynamodb")
        self._client = boto3.client("dynamodb")

    def table_name(self, table: str) -> str:
        return f"{self.name_prefix}-{table}"

    def _table(self, table: str) -> Any:
        return self._dynamodb.Table(self.table_name(table))

    # Single-item reads and writes

    def get_item(
        self, table: str, key: dict[str, Any], consistent_read: bool = False
    ) -> dict[str, Any] | None:
        """Fetch one item, or None when the key does not exist.

        Refund state checks pass ``consistent_read=True`` so a just-completed
        transaction is never read as still open.
        """
        response = self._table(table).get_item(Key=key, ConsistentRead=consistent_read)
        item: dict[str, Any] | None = response.get("Item")
        return item

    def put_item(
        self, table: str, item: dict[str, Any], condition_expression: str | None = None
    ) -> bool:
        """Write an item; False when `condition_expression` is not met."""
        kwargs: dict[str, Any] = {"Item": item}
        if condition_expression:
            kwargs["ConditionExpression"] = condition_expression
        try:
            with _conditional("ConditionalCheckFailedException"):
                self._table(table).put_item(**kwargs)
        except ConditionFailed:
            return False
        return True

    def update_item(
        self,
        table: str,
        key: dict[str, Any],
        update_expression: str,
        expression_attribute_values: dict[str, Any],
        expression_attribute_names: dict[str, str] | None = None,
        condition_expression: str | None = None,
    ) -> dict[str, Any] | None:
        """Apply an update expression.

        Returns:
            The item after the update, or None when the condition failed
        """
        kwargs: dict[str, Any] = {
            "Key": key,
            "UpdateExpression": update_expression,
            "ExpressionAttributeValues": expression_attribute_values,
            "ReturnValues": "ALL_NEW",
        }
        if expression_attribute_names:
            kwargs["ExpressionAttributeNames"] = expression_attribute_names
        if condition_expression:
            kwargs["ConditionExpression"] = condition_expression
        try:
            with _conditional("ConditionalCheckFailedException"):
                response = self._table(table).update_item(**kwargs)
        except ConditionFailed:
            return None
        attributes: dict[str, Any] | None = response.get("Attributes")
        return attributes

    def add_to_attribute(
        self,
        table: str,
        key: dict[str, Any],
        attribute: str,
        delta: int,
        condition_expression: str | None = None,
        condition_values: dict[str, Any] | None = None,
        extra_set: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """Atomically add `delta` (negative to subtract) to a numeric attribute.

        The attribute is addressed as ``#attr`` so conditions can refer to it,
        e.g. ``"#attr >= :amount"``. `extra_set` attributes are SET in the
        same write.

        Returns:
            The item after the update, or None when the condition failed
        """
        names = {"#attr": attribute}
        values: dict[str, Any] = {":delta": delta, **(condition_values or {})}
        assignments = []
        for index, (name, value) in enumerate((extra_set or {}).items()):
            names[f"#s{index}"] = name
            values[f":s{index}"] = value
            assignments.append(f"#s{index} = :s{index}")

        expression = "ADD #attr :delta"
        if assignments:
            expression = f"SET {', '.join(assignments)} {expression}"
        return self.update_item(
            table,
            key,
            expression,
            values,
            expression_attribute_names=names,
            condition_expression=condition_expression,
        )

    # Multi-item reads

    def _paginate(self, operation: Any, **kwargs: Any) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        while True:
            response = operation(**kwargs)
            items.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return items
            kwargs["ExclusiveStartKey"] = last_key

    def scan(self, table: str, filter_expression: Any | None = None) -> list[dict[str, Any]]:
        """All items of a table, optionally filtered with a boto3 Attr condition."""
        kwargs: dict[str, Any] = {}
        if filter_expression is not None:
            kwargs["FilterExpression"] = filter_expression
        return self._paginate(self._table(table).scan, **kwargs)

    def query_by_gsi(
        self,
        table: str,
        index_name: str,
        partition_key_name: str,
        partition_key_value: str,
        sort_key_condition: Any | None = None,
    ) -> list[dict[str, Any]]:
        """All items of a GSI partition."""
        key_condition = Key(partition_key_name).eq(partition_key_value)
        if sort_key_condition is not None:
            key_condition = key_condition & sort_key_condition
        return self._paginate(
            self._table(table).query,
            IndexName=index_name,
            KeyConditionExpression=key_condition,
        )

    # Transactions

    def put_op(
        self, table: str, item: dict[str, Any], condition_expression: str | None = None
    ) -> dict[str, Any]:
        """Put entry for transact_write."""
        put: dict[str, Any] = {"TableName": self.table_name(table), "Item": _serialize(item)}
        if condition_expression:
            put["ConditionExpression"] = condition_expression
        return {"Put": put}

    def update_op(
        self,
        table: str,
        key: dict[str, Any],
        update_expression: str,
        expression_attribute_values: dict[str, Any],
        expression_attribute_names: dict[str, str] | None = None,
        condition_expression: str | None = None,
    ) -> dict[str, Any]:
        """Update entry for transact_write."""
        update: dict[str, Any] = {
            "TableName": self.table_name(table),
            "Key": _serialize(key),
            "UpdateExpression": update_expression,
            "ExpressionAttributeValues": _serialize(expression_attribute_values),
        }
        if expression_attribute_names:
            update["ExpressionAttributeNames"] = expression_attribute_names
        if condition_expression:
            update["ConditionExpression"] = condition_expression
        return {"Update": update}

    def transact_write(self, items: list[dict[str, Any]]) -> bool:
        """Apply put/update entries all-or-nothing.

        Returns:
            False when any condition cancelled the transaction
        """
        try:
            with _conditional("TransactionCanceledException"):
                self._client.transact_write_items(TransactItems=items)  # type: ignore[arg-type]
        except ConditionFailed:
            return False
        return True


def _serialize(values: dict[str, Any]) -> dict[str, Any]:
    """Plain Python values to DynamoDB attribute values."""
    return {name: _serializer.serialize(value) for name, value in values.items()}
