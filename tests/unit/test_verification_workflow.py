"""Unit tests for VerificationWorkflow."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from order_intake_service.exceptions import (
    ConfirmationRequiredError,
    ExportFailureNotFoundError,
    InvalidTransitionError,
)
from order_intake_service.models.order_models import ExportFailure, OrderStatus
from order_intake_service.services.error_service import ErrorService
from order_intake_service.services.external_sync_client import ExternalSyncClient
from order_intake_service.services.order_store import OrderStore
from order_intake_service.services.verification_workflow import SyncResult, VerificationWorkflow

NOW = datetime(2025, 12, 29, 9, 0, tzinfo=UTC)


@pytest.mark.unit
class TestVerificationWorkflow:
    """Test suite for VerificationWorkflow."""

    @pytest.fixture
    def mock_store(self) -> MagicMock:
        """Create a mock OrderStore that echoes updates."""
        store = MagicMock(spec=OrderStore)
        store.get_order = AsyncMock()
        store.update_order = AsyncMock(side_effect=lambda order: order)
        return store

    @pytest.fixture
    def mock_sync_client(self) -> MagicMock:
        """Create a mock ExternalSyncClient."""
        client = MagicMock(spec=ExternalSyncClient)
        client.push = AsyncMock(return_value=True)
        return client

    @pytest.fixture
    def mock_error_service(self) -> MagicMock:
        """Create a mock ErrorService."""
        service = MagicMock(spec=ErrorService)
        service.record_export_failure = AsyncMock(return_value="exp_123")
        service.get_failure = AsyncMock()
        service.increment_retry_count = AsyncMock(return_value=True)
        return service

    @pytest.fixture
    def workflow(
        self, mock_store: MagicMock, mock_sync_client: MagicMock, mock_error_service: MagicMock
    ) -> VerificationWorkflow:
        """Create a workflow with mocked dependencies and a fixed clock."""
        return VerificationWorkflow(
            order_store=mock_store,
            sync_client=mock_sync_client,
            error_service=mock_error_service,
            clock=lambda: NOW,
        )

    @pytest.mark.asyncio
    async def test_approve_pending(self, workflow: VerificationWorkflow, mock_store: MagicMock, make_order) -> None:
        """Test that approving a pending order records the verifier."""
        mock_store.get_order.return_value = make_order()

        order = await workflow.approve("order-1", actor="ana")

        assert order.status == OrderStatus.APPROVED
        assert order.verified_by == "ana"
        assert order.verified_at == NOW
        mock_store.update_order.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_approve_twice_is_noop(
        self, workflow: VerificationWorkflow, mock_store: MagicMock, make_order
    ) -> None:
        """Test that approving an approved order changes nothing."""
        approved = make_order(status=OrderStatus.APPROVED, verified_by="ana")
        mock_store.get_order.return_value = approved

        order = await workflow.approve("order-1", actor="ben")

        assert order.verified_by == "ana"
        mock_store.update_order.assert_not_awaited()

    @pytest.mark.parametrize("status", [OrderStatus.REJECTED, OrderStatus.SYNCED])
    @pytest.mark.asyncio
    async def test_approve_from_terminal_states_raises(
        self, workflow: VerificationWorkflow, mock_store: MagicMock, make_order, status: OrderStatus
    ) -> None:
        mock_store.get_order.return_value = make_order(status=status)

        with pytest.raises(InvalidTransitionError):
            await workflow.approve("order-1", actor="ana")

    @pytest.mark.asyncio
    async def test_reject_requires_confirmation(
        self, workflow: VerificationWorkflow, mock_store: MagicMock
    ) -> None:
        """Test that an unconfirmed reject does not touch the order."""
        with pytest.raises(ConfirmationRequiredError):
            await workflow.reject("order-1", actor="ana")

        mock_store.get_order.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reject_pending(self, workflow: VerificationWorkflow, mock_store: MagicMock, make_order) -> None:
        mock_store.get_order.return_value = make_order()

        order = await workflow.reject("order-1", actor="ana", confirmed=True)

        assert order.status == OrderStatus.REJECTED
        assert order.verified_by == "ana"

    @pytest.mark.asyncio
    async def test_reject_twice_raises(self, workflow: VerificationWorkflow, mock_store: MagicMock, make_order) -> None:
        """Test that rejecting a rejected order is an invalid transition."""
        mock_store.get_order.return_value = make_order(status=OrderStatus.REJECTED)

        with pytest.raises(InvalidTransitionError):
            await workflow.reject("order-1", actor="ana", confirmed=True)

    @pytest.mark.asyncio
    async def test_sync_success(
        self, workflow: VerificationWorkflow, mock_store: MagicMock, mock_sync_client: MagicMock, make_order
    ) -> None:
        """Test that a dispatched export marks the order synced."""
        order = make_order(status=OrderStatus.APPROVED)
        mock_store.get_order.return_value = order

        result = await workflow.sync("order-1")

        assert result == SyncResult(success=True, order_id="order-1")
        assert order.status == OrderStatus.SYNCED
        assert order.synced_to_ledger is True
        assert order.synced_at == NOW
        mock_sync_client.push.assert_awaited_once_with(order)

    @pytest.mark.asyncio
    async def test_sync_failure_keeps_order_approved(
        self,
        workflow: VerificationWorkflow,
        mock_store: MagicMock,
        mock_sync_client: MagicMock,
        mock_error_service: MagicMock,
        make_order,
    ) -> None:
        """Test that a failing endpoint leaves the order approved and unsynced."""
        order = make_order(status=OrderStatus.APPROVED)
        mock_store.get_order.return_value = order
        mock_sync_client.push.return_value = False

        result = await workflow.sync("order-1")

        assert result.success is False
        assert result.failure_id == "exp_123"
        assert order.status == OrderStatus.APPROVED
        assert order.synced_to_ledger is False
        mock_store.update_order.assert_not_awaited()
        mock_error_service.record_export_failure.assert_awaited_once()
        mock_sync_client.push.assert_awaited_once()

    @pytest.mark.parametrize("status", [OrderStatus.PENDING, OrderStatus.REJECTED, OrderStatus.SYNCED])
    @pytest.mark.asyncio
    async def test_sync_requires_approved(
        self,
        workflow: VerificationWorkflow,
        mock_store: MagicMock,
        mock_sync_client: MagicMock,
        make_order,
        status: OrderStatus,
    ) -> None:
        mock_store.get_order.return_value = make_order(status=status)

        with pytest.raises(InvalidTransitionError):
            await workflow.sync("order-1")

        mock_sync_client.push.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_retry_failure(
        self,
        workflow: VerificationWorkflow,
        mock_store: MagicMock,
        mock_error_service: MagicMock,
        make_order,
    ) -> None:
        """Test that retrying a failure bumps its count and syncs the order again."""
        mock_error_service.get_failure.return_value = ExportFailure(
            failure_id="exp_123",
            created_at=NOW,
            order_id="order-1",
            error_details="timeout",
        )
        mock_store.get_order.return_value = make_order(status=OrderStatus.APPROVED)

        result = await workflow.retry_failure("exp_123")

        assert result.success is True
        mock_error_service.increment_retry_count.assert_awaited_once_with("exp_123")
        mock_store.get_order.assert_awaited_once_with("order-1")

    @pytest.mark.asyncio
    async def test_retry_unknown_failure(
        self, workflow: VerificationWorkflow, mock_error_service: MagicMock
    ) -> None:
        mock_error_service.get_failure.return_value = None

        with pytest.raises(ExportFailureNotFoundError):
            await workflow.retry_failure("missing")
