"""DynamoDB repository for date availability rules.

Writes follow the usual convention of returning False on failure. Reads
raise PersistenceError instead of returning None, because None already means
"no rule for this date" and the resolver must be able to tell a missing rule
(cacheable) from a failed lookup (fail open, not cached).
"""

import logging
from datetime import date
from decimal import InvalidOperation

from botocore.exceptions import BotoCoreError, ClientError
from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource, Table

from order_intake_service.exceptions import PersistenceError
from order_intake_service.models.availability_models import AvailabilityRule

logger = logging.getLogger(__name__)


class AvailabilityRepository:
    """Repository for per-date availability rules.

    Manages rule records in DynamoDB with ``date`` (ISO string) as partition key.
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

    def get_rule(self, rule_date: date) -> AvailabilityRule | None:
        """Retrieve the rule for a date.

        Args:
            rule_date: Calendar date to look up

        Returns:
            AvailabilityRule if one exists, None otherwise

        Raises:
            PersistenceError: If the lookup fails or the stored rule cannot be decoded
        """
        try:
            response = self.table.get_item(Key={"date": rule_date.isoformat()})
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to get availability rule for {rule_date}: {e}")
            raise PersistenceError(f"Availability lookup failed for {rule_date}") from e

        if "Item" not in response:
            return None

        try:
            return AvailabilityRule.from_dynamodb_item(response["Item"])
        except (KeyError, TypeError, ValueError, InvalidOperation) as e:
            logger.error(f"Malformed availability rule for {rule_date}: {e}")
            raise PersistenceError(f"Availability rule for {rule_date} could not be read") from e

    def save_rule(self, rule: AvailabilityRule) -> bool:
        """Create or replace the rule for its date.

        Args:
            rule: AvailabilityRule to save

        Returns:
            bool: True if save succeeded, False otherwise
        """
        try:
            self.table.put_item(Item=rule.to_dynamodb_item())
            return True

        except ClientError as e:
            logger.error(f"Failed to save availability rule: {e}")  # pragma: no cover
            return False

    def delete_rule(self, rule_date: date) -> bool:
        """Delete the rule for a date, restoring unrestricted availability.

        Args:
            rule_date: Calendar date of the rule

        Returns:
            bool: True if delete succeeded, False otherwise
        """
        try:
            self.table.delete_item(Key={"date": rule_date.isoformat()})
            return True

        except ClientError as e:
            logger.error(f"Failed to delete availability rule: {e}")  # pragma: no cover
            return False

    def list_rules(self) -> list[AvailabilityRule]:
        """List every rule ordered by date.

        Returns:
            list: AvailabilityRule objects (empty list on failure)
        """
        try:
            response = self.table.scan()
            items = list(response.get("Items", []))
            while "LastEvaluatedKey" in response:
                response = self.table.scan(ExclusiveStartKey=response["LastEvaluatedKey"])
                items.extend(response.get("Items", []))

        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to list availability rules: {e}")  # pragma: no cover
            return []

        rules = []
        for item in items:
            try:
                rules.append(AvailabilityRule.from_dynamodb_item(item))
            except (KeyError, TypeError, ValueError, InvalidOperation) as e:
                logger.error(f"Skipping malformed availability rule {item.get('date')}: {e}")
        return sorted(rules, key=lambda rule: rule.date)
