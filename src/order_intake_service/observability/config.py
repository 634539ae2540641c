"""OpenTelemetry and structured logging configuration.

Settings come from the standard ``OTEL_*`` variables plus ``ENVIRONMENT``.
With ``ENVIRONMENT=test`` providers are installed without exporters so
spans and instruments still work but nothing leaves the process.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.botocore import BotocoreInstrumentor
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from pythonjsonlogger import jsonlogger

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_NAME = "order-intake-svc"

# Chatty client libraries kept at WARNING regardless of LOG_LEVEL
_QUIET_LOGGERS = ("botocore", "boto3", "urllib3", "httpx", "httpcore")


@dataclass(frozen=True)
class ObservabilitySettings:
    service_name: str
    environment: str
    otlp_endpoint: str
    metric_interval_ms: int

    @property
    def exporters_enabled(self) -> bool:
        return self.environment != "test"

    @classmethod
    def from_env(cls) -> "ObservabilitySettings":
        return cls(
            service_name=os.getenv("OTEL_SERVICE_NAME", DEFAULT_SERVICE_NAME),
            environment=os.getenv("ENVIRONMENT", "development"),
            otlp_endpoint=os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4318").rstrip("/"),
            metric_interval_ms=int(os.getenv("OTEL_METRIC_EXPORT_INTERVAL", "60000")),
        )


def build_resource(settings: ObservabilitySettings) -> Resource:
    return Resource.create(
        {
            "service.name": settings.service_name,
            "deployment.environment": settings.environment,
        }
    )


def build_tracer_provider(settings: ObservabilitySettings, resource: Resource) -> TracerProvider:
    """Tracer provider, batching spans to ``<endpoint>/v1/traces`` when exporting."""
    provider = TracerProvider(resource=resource)
    if settings.exporters_enabled:
        exporter = OTLPSpanExporter(endpoint=f"{settings.otlp_endpoint}/v1/traces")
        provider.add_span_processor(BatchSpanProcessor(exporter))
    return provider


def build_meter_provider(settings: ObservabilitySettings, resource: Resource) -> MeterProvider:
    """Meter provider, pushing to ``<endpoint>/v1/metrics`` every interval when exporting."""
    if not settings.exporters_enabled:
        return MeterProvider(resource=resource)

    exporter = OTLPMetricExporter(endpoint=f"{settings.otlp_endpoint}/v1/metrics")
    reader = PeriodicExportingMetricReader(exporter, export_interval_millis=settings.metric_interval_ms)
    return MeterProvider(resource=resource, metric_readers=[reader])


def setup_observability(app: Any = None, settings: ObservabilitySettings | None = None) -> None:
    """Install tracing and metrics providers and instrument outbound calls.

    httpx covers the ledger webhook and notifier, botocore covers DynamoDB.

    Args:
        app: Optional FastAPI application to instrument
        settings: Overrides the environment-derived settings
    """
    settings = settings or ObservabilitySettings.from_env()
    resource = build_resource(settings)

    trace.set_tracer_provider(build_tracer_provider(settings, resource))
    metrics.set_meter_provider(build_meter_provider(settings, resource))

    HTTPXClientInstrumentor().instrument()
    BotocoreInstrumentor().instrument()

    if app is not None:
        FastAPIInstrumentor.instrument_app(app)

    logger.info(
        "Observability configured",
        extra={
            "service": settings.service_name,
            "exporters": settings.exporters_enabled,
            "endpoint": settings.otlp_endpoint,
        },
    )


class OrderLogFormatter(jsonlogger.JsonFormatter):
    """JSON formatter with a ``level`` field and the service name on every record."""

    def __init__(self, service_name: str) -> None:
        super().__init__("%(asctime)s %(name)s %(levelname)s %(message)s", timestamp=True)
        self.service_name = service_name

    def add_fields(self, log_record: dict[str, Any], record: logging.LogRecord, message_dict: dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["level"] = log_record.pop("levelname", record.levelname)
        log_record.setdefault("service", self.service_name)


def configure_logging(log_level: str = "INFO") -> None:
    """Replace root handlers with a single JSON console handler.

    Args:
        log_level: Default level when LOG_LEVEL is unset
    """
    level_name = os.getenv("LOG_LEVEL", log_level).upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler()
    handler.setFormatter(OrderLogFormatter(os.getenv("OTEL_SERVICE_NAME", DEFAULT_SERVICE_NAME)))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    logger.info(f"JSON logging at {level_name}")
