"""Wiring for the order intake service.

Settings are read from the environment here. Inside the package only the
observability setup reads environment variables.

``app.state.availability_checker`` is an in-process API for code running
alongside the app; the HTTP availability routes call the resolver directly.
"""

import logging
import os
from datetime import date
from typing import Any

import boto3
from fastapi import FastAPI

from order_intake_service.adapters.ledger_sheet import LocalLedgerTransport
from order_intake_service.adapters.ledger_transport import AtLeastOnceNotify
from order_intake_service.adapters.order_notifier import (
    LoggingOrderNotifier,
    OrderNotifier,
    WebhookOrderNotifier,
)
from order_intake_service.adapters.sheets_webhook_transport import SheetsWebhookTransport
from order_intake_service.handlers.api_handler import create_app
from order_intake_service.observability import configure_logging, setup_observability
from order_intake_service.repositories.availability_repository import AvailabilityRepository
from order_intake_service.repositories.order_repositories import (
    ExportFailureRepository,
    OrderLineRepository,
    OrderRepository,
)
from order_intake_service.services.availability_checker import AvailabilityChecker
from order_intake_service.services.availability_resolver import AvailabilityResolver
from order_intake_service.services.error_service import ErrorService
from order_intake_service.services.external_sync_client import ExternalSyncClient
from order_intake_service.services.order_numbering import DEFAULT_CUTOVER
from order_intake_service.services.order_store import DEFAULT_TIMEZONE, OrderStore
from order_intake_service.services.verification_workflow import VerificationWorkflow

logger = logging.getLogger(__name__)


def get_dynamodb_resource() -> Any:
    """DynamoDB resource for AWS, or for DYNAMODB_ENDPOINT when set (DynamoDB Local)."""
    endpoint_url = os.getenv("DYNAMODB_ENDPOINT")
    region = os.getenv("AWS_REGION", "ap-southeast-1")

    if endpoint_url:
        logger.info(f"Using local DynamoDB at {endpoint_url}")
        return boto3.resource(
            "dynamodb",
            endpoint_url=endpoint_url,
            region_name=region,
            aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
        )

    logger.info(f"Using AWS DynamoDB in region {region}")
    return boto3.resource("dynamodb", region_name=region)


def create_ledger_transport() -> AtLeastOnceNotify:
    """Create the ledger transport selected by LEDGER_MODE.

    ``webhook`` (default when LEDGER_WEBHOOK_URL is set) posts to the
    spreadsheet web app; ``local`` keeps rows in memory.

    Raises:
        ValueError: If webhook mode is selected without a URL, or the mode is unknown
    """
    webhook_url = os.getenv("LEDGER_WEBHOOK_URL")
    mode = os.getenv("LEDGER_MODE", "webhook" if webhook_url else "local").lower()

    if mode == "local":
        logger.info("Ledger exports go to the in-process sheet")
        return LocalLedgerTransport()

    if mode == "webhook":
        if not webhook_url:
            raise ValueError("LEDGER_WEBHOOK_URL must be set when LEDGER_MODE=webhook")
        timeout = float(os.getenv("LEDGER_TIMEOUT_SECONDS", "10"))
        logger.info(f"Ledger webhook configured with {timeout}s timeout")
        return SheetsWebhookTransport(webhook_url=webhook_url, timeout_seconds=timeout)

    raise ValueError(f"Unknown LEDGER_MODE: {mode}")


def create_order_notifier() -> OrderNotifier:
    """Create the new-order notifier from NOTIFY_WEBHOOK_URL."""
    webhook_url = os.getenv("NOTIFY_WEBHOOK_URL")
    if webhook_url:
        return WebhookOrderNotifier(webhook_url=webhook_url)
    return LoggingOrderNotifier()


def get_order_number_cutover() -> date:
    value = os.getenv("ORDER_NUMBER_CUTOVER")
    return date.fromisoformat(value) if value else DEFAULT_CUTOVER


def create_availability_resolver(repository: AvailabilityRepository) -> AvailabilityResolver:
    """Create the resolver, caching rules for AVAILABILITY_CACHE_TTL_SECONDS."""
    ttl_seconds = float(os.getenv("AVAILABILITY_CACHE_TTL_SECONDS", "60"))
    return AvailabilityResolver(repository, ttl_seconds=ttl_seconds)


def create_availability_checker(resolver: AvailabilityResolver) -> AvailabilityChecker:
    """Create a debounced checker using AVAILABILITY_DEBOUNCE_MS."""
    delay_ms = int(os.getenv("AVAILABILITY_DEBOUNCE_MS", "300"))
    return AvailabilityChecker(resolver, delay_seconds=delay_ms / 1000)


def create_application() -> FastAPI:
    """Build repositories, services and transports, then the FastAPI app."""
    configure_logging(os.getenv("LOG_LEVEL", "INFO"))

    logger.info("Initializing order intake service...")

    dynamodb_resource = get_dynamodb_resource()

    orders_table = os.getenv("ORDERS_TABLE", "orders")
    lines_table = os.getenv("ORDER_LINES_TABLE", "order-lines")
    availability_table = os.getenv("AVAILABILITY_TABLE", "date-availability")
    failures_table = os.getenv("EXPORT_FAILURES_TABLE", "ledger-export-failures")

    order_repository = OrderRepository(dynamodb_resource=dynamodb_resource, table_name=orders_table)
    line_repository = OrderLineRepository(dynamodb_resource=dynamodb_resource, table_name=lines_table)
    availability_repository = AvailabilityRepository(
        dynamodb_resource=dynamodb_resource, table_name=availability_table
    )
    failure_repository = ExportFailureRepository(
        dynamodb_resource=dynamodb_resource, table_name=failures_table
    )

    logger.info(
        f"Repositories configured - orders: {orders_table}, lines: {lines_table}, "
        f"availability: {availability_table}, failures: {failures_table}"
    )

    timezone = os.getenv("ORDER_TIMEZONE", DEFAULT_TIMEZONE)

    resolver = create_availability_resolver(availability_repository)
    order_store = OrderStore(
        order_repository=order_repository,
        line_repository=line_repository,
        notifier=create_order_notifier(),
        timezone=timezone,
        cutover=get_order_number_cutover(),
    )
    error_service = ErrorService(failure_repository=failure_repository)
    workflow = VerificationWorkflow(
        order_store=order_store,
        sync_client=ExternalSyncClient(create_ledger_transport(), timezone=timezone),
        error_service=error_service,
    )

    logger.info("Services initialized")

    api_keys = [key.strip() for key in os.getenv("ADMIN_API_KEY", "").split(",") if key.strip()]
    if not api_keys:
        logger.warning("No ADMIN_API_KEY configured - admin endpoints will not be accessible")
        api_keys = ["dummy-key-for-development"]

    app = create_app(
        resolver=resolver,
        order_store=order_store,
        workflow=workflow,
        error_service=error_service,
        availability_repository=availability_repository,
        api_keys=api_keys,
    )
    app.state.availability_checker = create_availability_checker(resolver)
    setup_observability(app)

    logger.info("Order intake service initialized successfully")
    return app


# Only build the real application outside tests
if os.getenv("ENVIRONMENT") != "test":  # noqa: SIM108
    app = create_application()
else:
    app = FastAPI()


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", "8001"))
    host = os.getenv("HOST", "0.0.0.0")

    logger.info(f"Starting development server on {host}:{port}")

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=os.getenv("RELOAD", "true").lower() == "true",
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )
