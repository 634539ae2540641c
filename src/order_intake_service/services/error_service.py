"""Error service for recording failed ledger exports."""

import logging
import uuid
from datetime import UTC, datetime

from order_intake_service.models.order_models import ExportFailure
from order_intake_service.repositories.order_repositories import ExportFailureRepository

logger = logging.getLogger(__name__)


class ErrorService:
    """Service for the export failure queue.

    Failures are kept for staff review on the admin dashboard. Nothing here
    retries automatically; a retry is always a staff action.
    """

    def __init__(self, failure_repository: ExportFailureRepository) -> None:
        """Initialize the ErrorService.

        Args:
            failure_repository: Repository for export failures
        """
        self.failure_repository = failure_repository

    async def record_export_failure(self, order_id: str, error_details: str) -> str | None:
        """Record a failed export.

        Args:
            order_id: The order that failed to export
            error_details: Description of the error

        Returns:
            The failure ID if saved successfully, None otherwise
        """
        failure = ExportFailure(
            failure_id=f"exp_{uuid.uuid4().hex[:12]}",
            created_at=datetime.now(UTC),
            order_id=order_id,
            error_details=error_details,
            retry_count=0,
        )

        if not self.failure_repository.save_failure(failure):
            logger.error(f"Could not record export failure for order {order_id}")
            return None
        return failure.failure_id

    async def get_failure(self, failure_id: str) -> ExportFailure | None:
        return self.failure_repository.get_failure(failure_id)

    async def list_failures(self, order_id: str | None = None, limit: int = 50) -> list[ExportFailure]:
        """List recent failures, newest first.

        Args:
            order_id: Optional order to filter by
            limit: Maximum number of failures to return

        Returns:
            List of ExportFailure objects, empty list if none found
        """
        failures = self.failure_repository.list_failures(limit=limit)
        if order_id:
            failures = [f for f in failures if f.order_id == order_id]
        return failures

    async def increment_retry_count(self, failure_id: str) -> bool:
        """Bump the retry count of a failure after a manual retry.

        Returns:
            True if updated successfully, False otherwise
        """
        failure = self.failure_repository.get_failure(failure_id)
        if not failure:
            return False
        return self.failure_repository.update_retry_count(failure_id, failure.retry_count + 1)
