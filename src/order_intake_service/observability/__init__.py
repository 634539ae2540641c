"""OpenTelemetry instrumentation and logging setup for the order intake service."""

from order_intake_service.observability.config import configure_logging, setup_observability
from order_intake_service.observability.decorators import traced

__all__ = ["setup_observability", "configure_logging", "traced"]
