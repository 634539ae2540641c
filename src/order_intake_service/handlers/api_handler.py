"""FastAPI application for checkout and admin endpoints."""

import logging
from datetime import date
from decimal import Decimal

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from order_intake_service.auth.api_dependencies import require_admin_key, session_id_from_header
from order_intake_service.auth.api_key_validator import APIKeyValidator
from order_intake_service.exceptions import (
    AvailabilityError,
    ConfirmationRequiredError,
    DuplicateSubmissionError,
    ExportFailureNotFoundError,
    InvalidTransitionError,
    OrderIntakeError,
    OrderNotFoundError,
    OrderValidationError,
)
from order_intake_service.models.availability_models import AvailabilityRule, AvailableEntry
from order_intake_service.models.menu_models import MenuItem
from order_intake_service.models.order_models import CartLine, ExportFailure, Order, OrderDraft, OrderStatus
from order_intake_service.repositories.availability_repository import AvailabilityRepository
from order_intake_service.services.availability_resolver import AvailabilityResolver
from order_intake_service.services.checkout_session import CheckoutSession, SessionRegistry
from order_intake_service.services.error_service import ErrorService
from order_intake_service.services.order_store import OrderStore
from order_intake_service.services.verification_workflow import VerificationWorkflow

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES: dict[type[OrderIntakeError], int] = {
    OrderValidationError: 400,
    ConfirmationRequiredError: 422,
    OrderNotFoundError: 404,
    ExportFailureNotFoundError: 404,
    AvailabilityError: 409,
    DuplicateSubmissionError: 409,
    InvalidTransitionError: 409,
}


def status_code_for(error: OrderIntakeError) -> int:
    """HTTP status for a service error; anything unmapped is a server error."""
    for error_type in type(error).__mro__:
        if error_type in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[error_type]
    return 500


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str


class FeesResponse(BaseModel):
    rule_date: date
    delivery_fees: dict[str, Decimal]


class CartCheckRequest(BaseModel):
    lines: list[CartLine] = Field(default_factory=list)


class MenuFilterRequest(BaseModel):
    items: list[MenuItem] = Field(default_factory=list)


class MenuFilterResponse(BaseModel):
    rule_date: date
    items: list[MenuItem]


class CartCheckResponse(BaseModel):
    rule_date: date
    available: bool
    unavailable: list[str]


class OrderCreatedResponse(BaseModel):
    """Response model for a placed order."""

    order_id: str
    order_number: str
    total: Decimal
    delivery_fee: Decimal
    down_payment_amount: Decimal | None = None
    message: str


class AdminOrderResponse(BaseModel):
    """An order as shown on the admin dashboard."""

    order_number: str
    is_new: bool
    order: Order


class ApproveRequest(BaseModel):
    actor: str | None = None


class RejectRequest(BaseModel):
    actor: str | None = None
    confirmed: bool = False


class SyncResponse(BaseModel):
    """Response model for ledger exports."""

    order_id: str
    success: bool
    error_message: str | None = None
    failure_id: str | None = None


class ViewedRequest(BaseModel):
    order_ids: list[str] = Field(default_factory=list)


class AvailabilityRuleRequest(BaseModel):
    """Body for authoring a date's availability rule."""

    entries: list[AvailableEntry] = Field(default_factory=list)
    legacy_item_ids: list[str] = Field(default_factory=list)
    delivery_fees: dict[str, Decimal] = Field(default_factory=dict)


def create_app(
    resolver: AvailabilityResolver,
    order_store: OrderStore,
    workflow: VerificationWorkflow,
    error_service: ErrorService,
    availability_repository: AvailabilityRepository,
    api_keys: list[str],
    sessions: SessionRegistry | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        resolver: Availability and delivery fee resolution
        order_store: Order persistence
        workflow: Staff verification and ledger export
        error_service: Export failure queue
        availability_repository: Rule storage for the admin editor
        api_keys: Valid admin API keys
        sessions: Registry of checkout/admin session state

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="Order Intake Service API",
        description="Checkout submission, staff verification and ledger export",
        version="1.0.0",
    )

    app.state.resolver = resolver
    app.state.order_store = order_store
    app.state.workflow = workflow
    app.state.error_service = error_service
    app.state.availability_repository = availability_repository
    app.state.api_key_validator = APIKeyValidator(api_keys=api_keys)
    app.state.sessions = sessions or SessionRegistry()

    @app.exception_handler(OrderIntakeError)
    async def handle_order_intake_error(request: Request, exc: OrderIntakeError) -> JSONResponse:
        status_code = status_code_for(exc)
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(
            status_code=status_code,
            content={"detail": exc.message, "error": type(exc).__name__, "details": exc.details},
        )

    def validate_api_key(x_api_key: str | None = Header(None)) -> str:
        """Dependency to validate API key."""
        return require_admin_key(x_api_key, app.state.api_key_validator)

    def session_id(x_checkout_session: str | None = Header(None)) -> str | None:
        return session_id_from_header(x_checkout_session)

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(status="healthy")

    @app.get("/availability/{rule_date}/fees", response_model=FeesResponse, tags=["Availability"])
    async def get_delivery_fees(rule_date: date) -> FeesResponse:
        """Delivery fee per destination for a date."""
        fees = await app.state.resolver.fees_for_date(rule_date)
        return FeesResponse(rule_date=rule_date, delivery_fees=fees)

    @app.post("/availability/{rule_date}/check", response_model=CartCheckResponse, tags=["Availability"])
    async def check_cart(rule_date: date, body: CartCheckRequest) -> CartCheckResponse:
        """Report which cart lines cannot be ordered on a date."""
        unavailable = await app.state.resolver.check_cart(rule_date, body.lines)
        return CartCheckResponse(rule_date=rule_date, available=not unavailable, unavailable=sorted(unavailable))

    @app.post("/availability/{rule_date}/menu", response_model=MenuFilterResponse, tags=["Availability"])
    async def filter_menu(rule_date: date, body: MenuFilterRequest) -> MenuFilterResponse:
        """Narrow a catalog to the items orderable on a date."""
        items = await app.state.resolver.available_menu_items(rule_date, body.items)
        return MenuFilterResponse(rule_date=rule_date, items=items)

    @app.post("/orders", response_model=OrderCreatedResponse, status_code=201, tags=["Checkout"])
    async def submit_order(
        draft: OrderDraft,
        request: Request,
        session: str | None = Depends(session_id),
    ) -> OrderCreatedResponse:
        """Place an order.

        Requests carrying the same X-Checkout-Session header share duplicate
        detection. Without the header every request is treated as new.
        """
        checkout = CheckoutSession.for_session(
            app.state.resolver, app.state.order_store, app.state.sessions.get(session)
        )
        ip_address = request.client.host if request.client else None
        receipt = await checkout.submit(draft, ip_address=ip_address)

        return OrderCreatedResponse(
            order_id=receipt.order.id,
            order_number=receipt.order_number,
            total=receipt.order.total,
            delivery_fee=receipt.order.delivery_fee,
            down_payment_amount=receipt.order.down_payment_amount,
            message=receipt.message,
        )

    @app.post("/checkout/reset", status_code=204, tags=["Checkout"])
    async def reset_checkout(session: str | None = Depends(session_id)) -> None:
        """Start a new checkout in this session, keeping its recent submissions."""
        context = app.state.sessions.get(session)
        if context is None:
            raise HTTPException(status_code=400, detail="X-Checkout-Session header is required")
        context.reset()

    @app.get("/admin/orders", response_model=list[AdminOrderResponse], tags=["Orders"])
    async def list_orders(
        status: OrderStatus | None = None,
        session: str | None = Depends(session_id),
        _api_key: str = Depends(validate_api_key),
    ) -> list[AdminOrderResponse]:
        """List orders newest first, optionally filtered by status."""
        context = app.state.sessions.get(session)
        orders = await app.state.order_store.fetch_orders(status)
        return [
            AdminOrderResponse(
                order_number=await app.state.order_store.display_number(order),
                is_new=order.status == OrderStatus.PENDING
                and (context is None or not context.is_viewed(order.id)),
                order=order,
            )
            for order in orders
        ]

    @app.get("/admin/orders/{order_id}", response_model=AdminOrderResponse, tags=["Orders"])
    async def get_order(
        order_id: str,
        session: str | None = Depends(session_id),
        _api_key: str = Depends(validate_api_key),
    ) -> AdminOrderResponse:
        """Get one order with its lines."""
        context = app.state.sessions.get(session)
        order = await app.state.order_store.get_order(order_id)
        return AdminOrderResponse(
            order_number=await app.state.order_store.display_number(order),
            is_new=order.status == OrderStatus.PENDING
            and (context is None or not context.is_viewed(order.id)),
            order=order,
        )

    @app.post("/admin/orders/viewed", tags=["Orders"])
    async def mark_orders_viewed(
        body: ViewedRequest,
        session: str | None = Depends(session_id),
        _api_key: str = Depends(validate_api_key),
    ) -> dict[str, int]:
        """Clear the "new order" badge for orders in this session."""
        context = app.state.sessions.get(session)
        if context is None:
            raise HTTPException(status_code=400, detail="X-Checkout-Session header is required")
        context.mark_viewed(body.order_ids)
        return {"viewed": len(context.viewed_orders)}

    @app.post("/admin/orders/{order_id}/approve", response_model=Order, tags=["Verification"])
    async def approve_order(
        order_id: str,
        body: ApproveRequest | None = None,
        _api_key: str = Depends(validate_api_key),
    ) -> Order:
        """Approve a pending order."""
        actor = body.actor if body else None
        order: Order = await app.state.workflow.approve(order_id=order_id, actor=actor)
        return order

    @app.post("/admin/orders/{order_id}/reject", response_model=Order, tags=["Verification"])
    async def reject_order(
        order_id: str,
        body: RejectRequest,
        _api_key: str = Depends(validate_api_key),
    ) -> Order:
        """Reject a pending order. The body must set ``confirmed``."""
        order: Order = await app.state.workflow.reject(
            order_id=order_id, actor=body.actor, confirmed=body.confirmed
        )
        return order

    @app.post("/admin/orders/{order_id}/sync", response_model=SyncResponse, tags=["Verification"])
    async def sync_order(
        order_id: str,
        _api_key: str = Depends(validate_api_key),
    ) -> SyncResponse | JSONResponse:
        """Export an approved order to the ledger."""
        logger.info(f"Manual ledger sync triggered for order {order_id}")
        result = await app.state.workflow.sync(order_id=order_id)
        response = SyncResponse(**result.__dict__)

        if not result.success:
            return JSONResponse(status_code=502, content=response.model_dump())
        return response

    @app.get("/admin/export-failures", response_model=list[ExportFailure], tags=["Export Failures"])
    async def list_export_failures(
        order_id: str | None = None,
        limit: int = 50,
        _api_key: str = Depends(validate_api_key),
    ) -> list[ExportFailure]:
        """List recent export failures."""
        failures: list[ExportFailure] = await app.state.error_service.list_failures(
            order_id=order_id, limit=limit
        )
        return failures

    @app.post(
        "/admin/export-failures/{failure_id}/retry",
        response_model=SyncResponse,
        tags=["Export Failures"],
    )
    async def retry_export_failure(
        failure_id: str,
        _api_key: str = Depends(validate_api_key),
    ) -> SyncResponse | JSONResponse:
        """Retry the export behind a recorded failure."""
        result = await app.state.workflow.retry_failure(failure_id)
        response = SyncResponse(**result.__dict__)

        if not result.success:
            return JSONResponse(status_code=502, content=response.model_dump())
        return response

    @app.get("/admin/availability", response_model=list[AvailabilityRule], tags=["Availability"])
    async def list_availability_rules(
        _api_key: str = Depends(validate_api_key),
    ) -> list[AvailabilityRule]:
        """List every authored date rule."""
        rules: list[AvailabilityRule] = app.state.availability_repository.list_rules()
        return rules

    @app.put("/admin/availability/{rule_date}", response_model=AvailabilityRule, tags=["Availability"])
    async def put_availability_rule(
        rule_date: date,
        body: AvailabilityRuleRequest,
        _api_key: str = Depends(validate_api_key),
    ) -> AvailabilityRule:
        """Create or replace the rule for a date."""
        rule = AvailabilityRule(
            date=rule_date,
            entries=body.entries,
            legacy_item_ids=body.legacy_item_ids,
            delivery_fees=body.delivery_fees,
        )
        if not app.state.availability_repository.save_rule(rule):
            raise HTTPException(status_code=500, detail=f"Could not save availability for {rule_date}")

        app.state.resolver.invalidate(rule_date)
        logger.info(f"Availability for {rule_date} set: {len(rule.entries)} entries")
        return rule

    @app.delete("/admin/availability/{rule_date}", status_code=204, tags=["Availability"])
    async def delete_availability_rule(
        rule_date: date,
        _api_key: str = Depends(validate_api_key),
    ) -> None:
        """Remove the rule for a date, making it unrestricted."""
        if not app.state.availability_repository.delete_rule(rule_date):
            raise HTTPException(status_code=500, detail=f"Could not delete availability for {rule_date}")

        app.state.resolver.invalidate(rule_date)
        logger.info(f"Availability for {rule_date} removed")

    return app
