"""Unit tests for the FastAPI checkout and admin endpoints."""

from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from order_intake_service.exceptions import (
    AvailabilityError,
    ConfirmationRequiredError,
    ExportFailureNotFoundError,
    InvalidTransitionError,
    OrderNotFoundError,
    PartialOrderError,
)
from order_intake_service.handlers.api_handler import create_app, status_code_for
from order_intake_service.models.availability_models import AvailabilityRule
from order_intake_service.models.menu_models import MenuItem
from order_intake_service.models.order_models import OrderDraft, OrderStatus
from order_intake_service.repositories.availability_repository import AvailabilityRepository
from order_intake_service.services.availability_resolver import AvailabilityResolver
from order_intake_service.services.checkout_session import SessionRegistry
from order_intake_service.services.error_service import ErrorService
from order_intake_service.services.order_store import OrderStore
from order_intake_service.services.verification_workflow import SyncResult, VerificationWorkflow

API_KEY = "test-api-key"
ADMIN = {"X-API-Key": API_KEY}


@pytest.fixture
def mock_resolver() -> MagicMock:
    resolver = MagicMock(spec=AvailabilityResolver)
    resolver.fee_for = AsyncMock(return_value=Decimal("50"))
    resolver.fees_for_date = AsyncMock(return_value={"Lapu-Lapu City": Decimal("50")})
    resolver.check_cart = AsyncMock(return_value=set())
    resolver.ensure_available = AsyncMock(return_value=None)
    resolver.available_menu_items = AsyncMock(return_value=[])
    return resolver


@pytest.fixture
def mock_store(make_order) -> MagicMock:
    store = MagicMock(spec=OrderStore)
    store.create_order = AsyncMock(return_value=make_order())
    store.fetch_orders = AsyncMock(return_value=[make_order()])
    store.get_order = AsyncMock(return_value=make_order())
    store.display_number = AsyncMock(return_value="12m29d-1")
    return store


@pytest.fixture
def mock_workflow() -> MagicMock:
    workflow = MagicMock(spec=VerificationWorkflow)
    workflow.approve = AsyncMock()
    workflow.reject = AsyncMock()
    workflow.sync = AsyncMock()
    workflow.retry_failure = AsyncMock()
    return workflow


@pytest.fixture
def mock_error_service() -> MagicMock:
    service = MagicMock(spec=ErrorService)
    service.list_failures = AsyncMock(return_value=[])
    return service


@pytest.fixture
def mock_availability_repo() -> MagicMock:
    return MagicMock(spec=AvailabilityRepository)


@pytest.fixture
def client(
    mock_resolver: MagicMock,
    mock_store: MagicMock,
    mock_workflow: MagicMock,
    mock_error_service: MagicMock,
    mock_availability_repo: MagicMock,
) -> TestClient:
    """Create a test client with mocked dependencies."""
    app = create_app(
        resolver=mock_resolver,
        order_store=mock_store,
        workflow=mock_workflow,
        error_service=mock_error_service,
        availability_repository=mock_availability_repo,
        api_keys=[API_KEY],
        sessions=SessionRegistry(),
    )
    return TestClient(app)


@pytest.mark.unit
class TestStatusCodes:
    """Test suite for error to status code mapping."""

    def test_known_errors(self) -> None:
        assert status_code_for(OrderNotFoundError("x")) == 404
        assert status_code_for(ConfirmationRequiredError("x")) == 422
        assert status_code_for(AvailabilityError(["Bilao"])) == 409

    def test_unmapped_errors_are_server_errors(self) -> None:
        assert status_code_for(PartialOrderError("order-1")) == 500


@pytest.mark.unit
class TestPublicEndpoints:
    """Test suite for checkout-facing endpoints."""

    def test_health_check(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_delivery_fees(self, client: TestClient, mock_resolver: MagicMock) -> None:
        response = client.get("/availability/2025-12-29/fees")

        assert response.status_code == 200
        assert Decimal(response.json()["delivery_fees"]["Lapu-Lapu City"]) == Decimal("50")
        mock_resolver.fees_for_date.assert_awaited_once_with(date(2025, 12, 29))

    def test_cart_check_reports_unavailable_lines(self, client: TestClient, mock_resolver: MagicMock) -> None:
        mock_resolver.check_cart.return_value = {"Lechon Belly (5kg)"}

        response = client.post("/availability/2025-12-29/check", json={"lines": []})

        assert response.status_code == 200
        assert response.json()["available"] is False
        assert response.json()["unavailable"] == ["Lechon Belly (5kg)"]

    def test_menu_filter(self, client: TestClient, mock_resolver: MagicMock) -> None:
        lechon = MenuItem(id="lechon", name="Lechon Belly", base_price=Decimal("8100"), category="roast")
        mock_resolver.available_menu_items.return_value = [lechon]

        response = client.post(
            "/availability/2025-12-29/menu",
            json={"items": [lechon.model_dump(mode="json")]},
        )

        assert response.status_code == 200
        assert [item["id"] for item in response.json()["items"]] == ["lechon"]
        assert mock_resolver.available_menu_items.await_args.args == (date(2025, 12, 29), [lechon])

    def test_submit_order(self, client: TestClient, mock_store: MagicMock, delivery_draft: OrderDraft) -> None:
        """Test placing an order returns the number and receipt."""
        response = client.post(
            "/orders",
            json=delivery_draft.model_dump(mode="json"),
            headers={"X-Checkout-Session": "tab-1"},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["order_number"] == "12m29d-1"
        assert body["message"].startswith("Order #12m29d-1")
        mock_store.create_order.assert_awaited_once()

    def test_resubmitting_in_same_session_conflicts(
        self, client: TestClient, mock_store: MagicMock, delivery_draft: OrderDraft
    ) -> None:
        payload = delivery_draft.model_dump(mode="json")
        headers = {"X-Checkout-Session": "tab-1"}

        client.post("/orders", json=payload, headers=headers)
        response = client.post("/orders", json=payload, headers=headers)

        assert response.status_code == 409
        assert response.json()["error"] == "DuplicateSubmissionError"
        assert mock_store.create_order.await_count == 1

    def test_reset_allows_next_checkout(
        self, client: TestClient, mock_store: MagicMock, pickup_draft: OrderDraft, delivery_draft: OrderDraft
    ) -> None:
        """Test that a reset session can place a different order."""
        headers = {"X-Checkout-Session": "tab-1"}
        client.post("/orders", json=delivery_draft.model_dump(mode="json"), headers=headers)

        reset = client.post("/checkout/reset", headers=headers)
        response = client.post("/orders", json=pickup_draft.model_dump(mode="json"), headers=headers)

        assert reset.status_code == 204
        assert response.status_code == 201
        assert mock_store.create_order.await_count == 2

    def test_reset_requires_session(self, client: TestClient) -> None:
        assert client.post("/checkout/reset").status_code == 400

    def test_invalid_order_returns_problems(self, client: TestClient, delivery_draft: OrderDraft) -> None:
        payload = delivery_draft.model_dump(mode="json")
        payload["customer_name"] = ""

        response = client.post("/orders", json=payload)

        assert response.status_code == 400
        assert "customer name is required" in response.json()["details"]["problems"]

    def test_unavailable_items_conflict(
        self, client: TestClient, mock_resolver: MagicMock, delivery_draft: OrderDraft
    ) -> None:
        mock_resolver.ensure_available.side_effect = AvailabilityError(["Lechon Belly (5kg)"])

        response = client.post("/orders", json=delivery_draft.model_dump(mode="json"))

        assert response.status_code == 409


@pytest.mark.unit
class TestAdminOrderEndpoints:
    """Test suite for the staff dashboard endpoints."""

    def test_requires_api_key(self, client: TestClient) -> None:
        response = client.get("/admin/orders")

        assert response.status_code == 401

    def test_rejects_wrong_api_key(self, client: TestClient) -> None:
        response = client.get("/admin/orders", headers={"X-API-Key": "nope"})

        assert response.status_code == 401

    def test_list_orders_by_status(self, client: TestClient, mock_store: MagicMock) -> None:
        response = client.get("/admin/orders?status=pending", headers=ADMIN)

        assert response.status_code == 200
        body = response.json()
        assert body[0]["order_number"] == "12m29d-1"
        assert body[0]["is_new"] is True
        mock_store.fetch_orders.assert_awaited_once_with(OrderStatus.PENDING)

    def test_viewed_orders_are_not_new(self, client: TestClient) -> None:
        headers = {**ADMIN, "X-Checkout-Session": "desk-1"}

        viewed = client.post(
            "/admin/orders/viewed",
            json={"order_ids": ["3f2b8c1e-0000-4000-8000-000000000001"]},
            headers=headers,
        )
        response = client.get("/admin/orders", headers=headers)

        assert viewed.json() == {"viewed": 1}
        assert response.json()[0]["is_new"] is False

    def test_mark_viewed_requires_session(self, client: TestClient) -> None:
        response = client.post("/admin/orders/viewed", json={"order_ids": ["a"]}, headers=ADMIN)

        assert response.status_code == 400

    def test_get_missing_order(self, client: TestClient, mock_store: MagicMock) -> None:
        mock_store.get_order.side_effect = OrderNotFoundError("Order missing not found")

        response = client.get("/admin/orders/missing", headers=ADMIN)

        assert response.status_code == 404
        assert response.json()["detail"] == "Order missing not found"

    def test_approve(self, client: TestClient, mock_workflow: MagicMock, make_order) -> None:
        mock_workflow.approve.return_value = make_order(status=OrderStatus.APPROVED, verified_by="ana")

        response = client.post("/admin/orders/o1/approve", json={"actor": "ana"}, headers=ADMIN)

        assert response.status_code == 200
        assert response.json()["status"] == "approved"
        mock_workflow.approve.assert_awaited_once_with(order_id="o1", actor="ana")

    def test_approve_without_body(self, client: TestClient, mock_workflow: MagicMock, make_order) -> None:
        mock_workflow.approve.return_value = make_order(status=OrderStatus.APPROVED)

        response = client.post("/admin/orders/o1/approve", headers=ADMIN)

        assert response.status_code == 200
        mock_workflow.approve.assert_awaited_once_with(order_id="o1", actor=None)

    def test_approve_from_wrong_state_conflicts(self, client: TestClient, mock_workflow: MagicMock) -> None:
        mock_workflow.approve.side_effect = InvalidTransitionError("Cannot approve a rejected order")

        response = client.post("/admin/orders/o1/approve", headers=ADMIN)

        assert response.status_code == 409

    def test_reject_needs_confirmation(self, client: TestClient, mock_workflow: MagicMock) -> None:
        mock_workflow.reject.side_effect = ConfirmationRequiredError("Rejecting requires confirmation")

        response = client.post("/admin/orders/o1/reject", json={"actor": "ana"}, headers=ADMIN)

        assert response.status_code == 422
        assert mock_workflow.reject.call_args.kwargs["confirmed"] is False

    def test_sync_success(self, client: TestClient, mock_workflow: MagicMock) -> None:
        mock_workflow.sync.return_value = SyncResult(success=True, order_id="o1")

        response = client.post("/admin/orders/o1/sync", headers=ADMIN)

        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_sync_failure_is_bad_gateway(self, client: TestClient, mock_workflow: MagicMock) -> None:
        mock_workflow.sync.return_value = SyncResult(
            success=False, order_id="o1", error_message="Ledger export failed", failure_id="exp_abc"
        )

        response = client.post("/admin/orders/o1/sync", headers=ADMIN)

        assert response.status_code == 502
        assert response.json()["failure_id"] == "exp_abc"


@pytest.mark.unit
class TestExportFailureEndpoints:
    """Test suite for export failure endpoints."""

    def test_list_failures(self, client: TestClient, mock_error_service: MagicMock) -> None:
        response = client.get("/admin/export-failures?order_id=o1&limit=5", headers=ADMIN)

        assert response.status_code == 200
        assert response.json() == []
        mock_error_service.list_failures.assert_awaited_once_with(order_id="o1", limit=5)

    def test_retry_unknown_failure(self, client: TestClient, mock_workflow: MagicMock) -> None:
        mock_workflow.retry_failure.side_effect = ExportFailureNotFoundError("Export failure exp_x not found")

        response = client.post("/admin/export-failures/exp_x/retry", headers=ADMIN)

        assert response.status_code == 404

    def test_retry_success(self, client: TestClient, mock_workflow: MagicMock) -> None:
        mock_workflow.retry_failure.return_value = SyncResult(success=True, order_id="o1")

        response = client.post("/admin/export-failures/exp_1/retry", headers=ADMIN)

        assert response.status_code == 200
        mock_workflow.retry_failure.assert_awaited_once_with("exp_1")


@pytest.mark.unit
class TestAvailabilityAdminEndpoints:
    """Test suite for the availability editor endpoints."""

    def test_list_rules(self, client: TestClient, mock_availability_repo: MagicMock) -> None:
        mock_availability_repo.list_rules.return_value = [AvailabilityRule(date=date(2025, 12, 24))]

        response = client.get("/admin/availability", headers=ADMIN)

        assert response.status_code == 200
        assert response.json()[0]["date"] == "2025-12-24"

    def test_put_rule_invalidates_cache(
        self, client: TestClient, mock_availability_repo: MagicMock, mock_resolver: MagicMock
    ) -> None:
        mock_availability_repo.save_rule.return_value = True

        response = client.put(
            "/admin/availability/2025-12-24",
            json={
                "entries": [{"item_id": "lechon", "scope": "variation", "variation_id": "5kg"}],
                "delivery_fees": {"Lapu-Lapu City": "50"},
            },
            headers=ADMIN,
        )

        assert response.status_code == 200
        saved = mock_availability_repo.save_rule.call_args[0][0]
        assert saved.has_variation("lechon", "5kg")
        mock_resolver.invalidate.assert_called_once_with(date(2025, 12, 24))

    def test_put_rule_save_failure(self, client: TestClient, mock_availability_repo: MagicMock) -> None:
        mock_availability_repo.save_rule.return_value = False

        response = client.put("/admin/availability/2025-12-24", json={}, headers=ADMIN)

        assert response.status_code == 500

    def test_delete_rule(
        self, client: TestClient, mock_availability_repo: MagicMock, mock_resolver: MagicMock
    ) -> None:
        mock_availability_repo.delete_rule.return_value = True

        response = client.delete("/admin/availability/2025-12-24", headers=ADMIN)

        assert response.status_code == 204
        mock_resolver.invalidate.assert_called_once_with(date(2025, 12, 24))
