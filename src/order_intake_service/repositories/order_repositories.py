"""DynamoDB repository classes for orders, order lines and export failures.

These repositories provide the persistence operations the order services
need. We use simple return values (None/False) for expected failures rather
than raising exceptions; services decide what a failure means.

Status updates are plain last-write-wins writes. There is no conditional
check on the previous status, so two concurrent approve/reject calls on the
same order race and the later write wins.
"""

import logging
from datetime import date, datetime
from typing import Any

from botocore.exceptions import ClientError
from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource, Table

from order_intake_service.models.order_models import (
    ExportFailure,
    Order,
    OrderLine,
    OrderStatus,
)

logger = logging.getLogger(__name__)


class OrderRepository:
    """Repository for order records.

    Manages orders in DynamoDB with ``id`` as partition key. Two global
    secondary indexes support the read paths:

    - ``status-index`` (status, created_at) for status-filtered listings
    - ``created_date-index`` (created_date, created_at) for same-day numbering
    """

    def __init__(self, dynamodb_resource: DynamoDBServiceResource, table_name: str) -> None:
        """Initialize repository.

        Args:
            dynamodb_resource: Boto3 DynamoDB resource
            table_name: Name of the DynamoDB table
        """
        self.dynamodb = dynamodb_resource
        self.table_name = table_name
        self.table: Table = dynamodb_resource.Table(table_name)

    def create_order(self, order: Order) -> bool:
        """Insert a new order row.

        Args:
            order: Order to insert

        Returns:
            bool: True if insert succeeded, False otherwise (including id collision)
        """
        try:
            self.table.put_item(
                Item=order.to_dynamodb_item(),
                ConditionExpression="attribute_not_exists(id)",
            )
            return True

        except ClientError as e:
            logger.error(f"Failed to create order {order.id}: {e}")
            return False

    def get_order(self, order_id: str) -> Order | None:
        """Retrieve an order by id.

        Args:
            order_id: Order identifier

        Returns:
            Order if found, None otherwise
        """
        try:
            response = self.table.get_item(Key={"id": order_id})

            if "Item" not in response:
                return None

            return Order.from_dynamodb_item(response["Item"])

        except ClientError as e:
            logger.error(f"Failed to get order {order_id}: {e}")  # pragma: no cover
            return None

    def update_verification(
        self,
        order_id: str,
        status: OrderStatus,
        verified_by: str | None,
        verified_at: datetime,
        updated_at: datetime,
    ) -> bool:
        """Record an approve/reject decision.

        Args:
            order_id: Order identifier
            status: New status (approved or rejected)
            verified_by: Staff member who made the decision
            verified_at: Decision timestamp
            updated_at: Row modification timestamp

        Returns:
            bool: True if update succeeded, False otherwise
        """
        values: dict[str, Any] = {
            ":status": status.value,
            ":verified_at": verified_at.isoformat(),
            ":updated_at": updated_at.isoformat(),
        }
        expression = "SET #status = :status, verified_at = :verified_at, updated_at = :updated_at"
        if verified_by:
            values[":verified_by"] = verified_by
            expression += ", verified_by = :verified_by"

        try:
            self.table.update_item(
                Key={"id": order_id},
                UpdateExpression=expression,
                ExpressionAttributeNames={"#status": "status"},
                ExpressionAttributeValues=values,
            )
            return True

        except ClientError as e:
            logger.error(f"Failed to update order {order_id} verification: {e}")  # pragma: no cover
            return False

    def mark_synced(self, order_id: str, synced_at: datetime) -> bool:
        """Flag an order as exported to the ledger.

        Args:
            order_id: Order identifier
            synced_at: Export timestamp

        Returns:
            bool: True if update succeeded, False otherwise
        """
        try:
            self.table.update_item(
                Key={"id": order_id},
                UpdateExpression=(
                    "SET #status = :status, synced_to_ledger = :synced, "
                    "synced_at = :synced_at, updated_at = :synced_at"
                ),
                ExpressionAttributeNames={"#status": "status"},
                ExpressionAttributeValues={
                    ":status": OrderStatus.SYNCED.value,
                    ":synced": True,
                    ":synced_at": synced_at.isoformat(),
                },
            )
            return True

        except ClientError as e:
            logger.error(f"Failed to mark order {order_id} as synced: {e}")  # pragma: no cover
            return False

    def list_orders(self, status: OrderStatus | None = None) -> list[Order]:
        """List orders newest first, optionally filtered by status.

        Args:
            status: Optional status filter

        Returns:
            list: Order objects (empty list if none found or on failure)
        """
        try:
            if status is not None:
                items = self._query_all(
                    IndexName="status-index",
                    KeyConditionExpression="#status = :status",
                    ExpressionAttributeNames={"#status": "status"},
                    ExpressionAttributeValues={":status": status.value},
                    ScanIndexForward=False,  # Most recent first
                )
            else:
                items = self._scan_all()

        except ClientError as e:
            logger.error(f"Failed to list orders: {e}")  # pragma: no cover
            return []

        orders = [Order.from_dynamodb_item(item) for item in items]
        return sorted(orders, key=lambda order: order.created_at, reverse=True)

    def list_orders_created_on(self, day: date) -> list[Order]:
        """List orders created on a local calendar day, oldest first.

        Args:
            day: Local calendar day

        Returns:
            list: Order objects (empty list if none found or on failure)
        """
        try:
            items = self._query_all(
                IndexName="created_date-index",
                KeyConditionExpression="created_date = :day",
                ExpressionAttributeValues={":day": day.isoformat()},
                ScanIndexForward=True,
            )

        except ClientError as e:
            logger.error(f"Failed to list orders created on {day}: {e}")  # pragma: no cover
            return []

        orders = [Order.from_dynamodb_item(item) for item in items]
        return sorted(orders, key=lambda order: order.created_at)

    def _query_all(self, **kwargs: Any) -> list[dict[str, Any]]:
        response = self.table.query(**kwargs)
        items = list(response.get("Items", []))
        while "LastEvaluatedKey" in response:
            response = self.table.query(ExclusiveStartKey=response["LastEvaluatedKey"], **kwargs)
            items.extend(response.get("Items", []))
        return items

    def _scan_all(self) -> list[dict[str, Any]]:
        response = self.table.scan()
        items = list(response.get("Items", []))
        while "LastEvaluatedKey" in response:
            response = self.table.scan(ExclusiveStartKey=response["LastEvaluatedKey"])
            items.extend(response.get("Items", []))
        return items


class OrderLineRepository:
    """Repository for order line snapshots.

    Manages lines in DynamoDB with composite key (order_id, line_no).
    """

    def __init__(self, dynamodb_resource: DynamoDBServiceResource, table_name: str) -> None:
        """Initialize repository.

        Args:
            dynamodb_resource: Boto3 DynamoDB resource
            table_name: Name of the DynamoDB table
        """
        self.dynamodb = dynamodb_resource
        self.table_name = table_name
        self.table: Table = dynamodb_resource.Table(table_name)

    def save_lines(self, lines: list[OrderLine]) -> bool:
        """Write all lines of an order.

        Args:
            lines: Lines to write

        Returns:
            bool: True if every line was written, False otherwise
        """
        try:
            with self.table.batch_writer() as batch:
                for line in lines:
                    batch.put_item(Item=line.to_dynamodb_item())
            return True

        except ClientError as e:
            logger.error(f"Failed to save order lines: {e}")
            return False

    def list_lines(self, order_id: str) -> list[OrderLine]:
        """List the lines of an order in line order.

        Args:
            order_id: Order identifier

        Returns:
            list: OrderLine objects (empty list if none found or on failure)
        """
        try:
            response = self.table.query(
                KeyConditionExpression="order_id = :oid",
                ExpressionAttributeValues={":oid": order_id},
            )

            return [OrderLine.from_dynamodb_item(item) for item in response.get("Items", [])]

        except ClientError as e:
            logger.error(f"Failed to list lines for order {order_id}: {e}")  # pragma: no cover
            return []


class ExportFailureRepository:
    """Repository for failed ledger exports.

    Manages failure records in DynamoDB with failure_id as partition key.
    """

    def __init__(self, dynamodb_resource: DynamoDBServiceResource, table_name: str) -> None:
        """Initialize repository.

        Args:
            dynamodb_resource: Boto3 DynamoDB resource
            table_name: Name of the DynamoDB table
        """
        self.dynamodb = dynamodb_resource
        self.table_name = table_name
        self.table: Table = dynamodb_resource.Table(table_name)

    def save_failure(self, failure: ExportFailure) -> bool:
        """Save an export failure.

        Args:
            failure: ExportFailure to save

        Returns:
            bool: True if save succeeded, False otherwise
        """
        try:
            self.table.put_item(Item=failure.to_dynamodb_item())
            return True

        except ClientError as e:
            logger.error(f"Failed to save export failure: {e}")  # pragma: no cover
            return False

    def get_failure(self, failure_id: str) -> ExportFailure | None:
        """Retrieve an export failure by id.

        Args:
            failure_id: Failure identifier

        Returns:
            ExportFailure if found, None otherwise
        """
        try:
            response = self.table.get_item(Key={"failure_id": failure_id})

            if "Item" not in response:
                return None

            return ExportFailure.from_dynamodb_item(response["Item"])

        except ClientError as e:
            logger.error(f"Failed to get export failure: {e}")  # pragma: no cover
            return None

    def list_failures(self, limit: int = 50) -> list[ExportFailure]:
        """List recent export failures, newest first.

        Args:
            limit: Maximum number of failures to return

        Returns:
            list: ExportFailure objects (empty list if none found or on failure)
        """
        try:
            response = self.table.scan()
            items = list(response.get("Items", []))
            while "LastEvaluatedKey" in response:
                response = self.table.scan(ExclusiveStartKey=response["LastEvaluatedKey"])
                items.extend(response.get("Items", []))

        except ClientError as e:
            logger.error(f"Failed to list export failures: {e}")  # pragma: no cover
            return []

        failures = [ExportFailure.from_dynamodb_item(item) for item in items]
        failures.sort(key=lambda failure: failure.created_at, reverse=True)
        return failures[:limit]

    def update_retry_count(self, failure_id: str, retry_count: int) -> bool:
        """Update retry count for a failure.

        Args:
            failure_id: Failure identifier
            retry_count: New retry count

        Returns:
            bool: True if update succeeded, False otherwise
        """
        try:
            self.table.update_item(
                Key={"failure_id": failure_id},
                UpdateExpression="SET retry_count = :count",
                ExpressionAttributeValues={":count": retry_count},
            )
            return True

        except ClientError as e:
            logger.error(f"Failed to update retry count: {e}")  # pragma: no cover
            return False
