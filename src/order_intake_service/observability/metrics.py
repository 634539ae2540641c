"""Custom metrics for the order intake pipeline."""

from opentelemetry import metrics

meter = metrics.get_meter("order-intake-svc")

orders_created_counter = meter.create_counter(
    name="orders_created_total",
    description="Total number of orders persisted by service type",
    unit="1",
)

partial_orders_counter = meter.create_counter(
    name="orders_partial_total",
    description="Orders saved without their lines, awaiting manual reconciliation",
    unit="1",
)

duplicate_submissions_counter = meter.create_counter(
    name="duplicate_submissions_blocked_total",
    description="Checkout submissions blocked by the session duplicate guard",
    unit="1",
)

verification_counter = meter.create_counter(
    name="order_verifications_total",
    description="Approve/reject decisions by resulting status",
    unit="1",
)

ledger_export_success_counter = meter.create_counter(
    name="ledger_export_success_total",
    description="Orders dispatched to the ledger",
    unit="1",
)

ledger_export_failure_counter = meter.create_counter(
    name="ledger_export_failure_total",
    description="Ledger exports that failed and left the order approved",
    unit="1",
)

availability_check_histogram = meter.create_histogram(
    name="availability_check_duration_seconds",
    description="Duration of cart availability checks",
    unit="s",
)


def record_order_created(service_type: str) -> None:
    """Record a persisted order.

    Args:
        service_type: pickup or delivery
    """
    orders_created_counter.add(1, {"service_type": service_type})


def record_partial_order() -> None:
    """Record an order whose lines failed to save."""
    partial_orders_counter.add(1)


def record_duplicate_blocked() -> None:
    """Record a blocked duplicate submission."""
    duplicate_submissions_counter.add(1)


def record_verification(status: str) -> None:
    """Record a verification decision.

    Args:
        status: approved or rejected
    """
    verification_counter.add(1, {"status": status})


def record_export_success(destination: str) -> None:
    """Record a dispatched ledger export.

    Args:
        destination: Transport destination name (e.g., "sheets")
    """
    ledger_export_success_counter.add(1, {"destination": destination})


def record_export_failure(destination: str) -> None:
    """Record a failed ledger export.

    Args:
        destination: Transport destination name
    """
    ledger_export_failure_counter.add(1, {"destination": destination})


def record_availability_check(duration_seconds: float, rule_found: bool) -> None:
    """Record the duration of a cart availability check.

    Args:
        duration_seconds: Duration in seconds
        rule_found: Whether a rule governed the date
    """
    availability_check_histogram.record(duration_seconds, {"rule_found": rule_found})
