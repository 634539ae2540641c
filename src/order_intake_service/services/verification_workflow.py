"""Staff verification of orders and export to the ledger.

State machine::

    pending --approve--> approved --sync--> synced
    pending --reject---> rejected

Transitions are read-check-write without a version check, so two staff
members acting on the same order at once both succeed and the last write
wins.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from order_intake_service.exceptions import (
    ConfirmationRequiredError,
    ExportFailureNotFoundError,
    InvalidTransitionError,
)
from order_intake_service.models.order_models import Order, OrderStatus
from order_intake_service.observability import traced
from order_intake_service.observability.metrics import record_verification
from order_intake_service.services.error_service import ErrorService
from order_intake_service.services.external_sync_client import ExternalSyncClient
from order_intake_service.services.order_store import OrderStore

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Result of exporting one order to the ledger.

    Attributes:
        success: Whether the payload was dispatched and the order marked synced
        order_id: The exported order
        error_message: Error message if the export failed, None otherwise
        failure_id: Recorded export failure, if one was recorded
    """

    success: bool
    order_id: str
    error_message: str | None = None
    failure_id: str | None = None


class VerificationWorkflow:
    """Approve, reject and sync orders."""

    def __init__(
        self,
        order_store: OrderStore,
        sync_client: ExternalSyncClient,
        error_service: ErrorService,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the workflow.

        Args:
            order_store: Order reads and status writes
            sync_client: Ledger export client
            error_service: Records failed exports
            clock: Returns the current UTC time
        """
        self.order_store = order_store
        self.sync_client = sync_client
        self.error_service = error_service
        self.clock = clock or (lambda: datetime.now(UTC))

    @traced("approve_order")
    async def approve(self, order_id: str, actor: str | None = None) -> Order:
        """Approve a pending order.

        Approving an already approved order changes nothing.

        Raises:
            OrderNotFoundError: If the order does not exist
            InvalidTransitionError: If the order is rejected or synced
        """
        order = await self.order_store.get_order(order_id)

        if order.status == OrderStatus.APPROVED:
            return order
        if order.status != OrderStatus.PENDING:
            raise InvalidTransitionError(
                f"Cannot approve order {order_id} in status {order.status.value}",
                {"order_id": order_id, "status": order.status.value},
            )

        return await self._decide(order, OrderStatus.APPROVED, actor)

    @traced("reject_order")
    async def reject(self, order_id: str, actor: str | None = None, confirmed: bool = False) -> Order:
        """Reject a pending order.

        Rejection cannot be undone, so the caller must pass ``confirmed=True``.

        Raises:
            ConfirmationRequiredError: If ``confirmed`` is not set
            OrderNotFoundError: If the order does not exist
            InvalidTransitionError: If the order is not pending
        """
        if not confirmed:
            raise ConfirmationRequiredError(
                f"Rejecting order {order_id} requires confirmation", {"order_id": order_id}
            )

        order = await self.order_store.get_order(order_id)
        if order.status != OrderStatus.PENDING:
            raise InvalidTransitionError(
                f"Cannot reject order {order_id} in status {order.status.value}",
                {"order_id": order_id, "status": order.status.value},
            )

        return await self._decide(order, OrderStatus.REJECTED, actor)

    @traced("sync_order")
    async def sync(self, order_id: str) -> SyncResult:
        """Export an approved order to the ledger.

        On failure the order stays approved and unsynced and an export
        failure is recorded. There is no automatic retry.

        Raises:
            OrderNotFoundError: If the order does not exist
            InvalidTransitionError: If the order is not approved
            PersistenceError: If the export went out but the order could not be marked synced
        """
        order = await self.order_store.get_order(order_id)
        if order.status != OrderStatus.APPROVED:
            raise InvalidTransitionError(
                f"Only approved orders can be synced; order {order_id} is {order.status.value}",
                {"order_id": order_id, "status": order.status.value},
            )

        if not await self.sync_client.push(order):
            error_message = f"Ledger export failed for order {order_id}"
            failure_id = await self.error_service.record_export_failure(order_id, error_message)
            return SyncResult(
                success=False,
                order_id=order_id,
                error_message=error_message,
                failure_id=failure_id,
            )

        now = self.clock()
        order.status = OrderStatus.SYNCED
        order.synced_to_ledger = True
        order.synced_at = now
        order.updated_at = now
        await self.order_store.update_order(order)

        return SyncResult(success=True, order_id=order_id)

    async def retry_failure(self, failure_id: str) -> SyncResult:
        """Retry the export behind a recorded failure.

        Raises:
            ExportFailureNotFoundError: If the failure does not exist
        """
        failure = await self.error_service.get_failure(failure_id)
        if failure is None:
            raise ExportFailureNotFoundError(
                f"Export failure {failure_id} not found", {"failure_id": failure_id}
            )

        await self.error_service.increment_retry_count(failure_id)
        logger.info(f"Retrying export of order {failure.order_id} (failure {failure_id})")
        return await self.sync(failure.order_id)

    async def _decide(self, order: Order, status: OrderStatus, actor: str | None) -> Order:
        now = self.clock()
        order.status = status
        order.verified_by = actor
        order.verified_at = now
        order.updated_at = now
        await self.order_store.update_order(order)

        record_verification(status.value)
        logger.info(f"Order {order.id} {status.value} by {actor or 'unknown'}")
        return order
