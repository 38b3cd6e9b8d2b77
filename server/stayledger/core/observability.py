"""Observability setup for OpenTelemetry, metrics, and structured logging."""

import logging

import structlog
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

from .config import settings

SERVICE_NAME = "stayledger-api"
SERVICE_VERSION = "1.0.0"

# Prometheus metrics
REGISTRY = CollectorRegistry()

REQUEST_DURATION = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    registry=REGISTRY
)

BOOKINGS_CREATED = Counter(
    'bookings_created_total',
    'Total bookings created',
    ['payment_status'],
    registry=REGISTRY
)

ROOM_CONFLICTS = Counter(
    'booking_room_conflicts_total',
    'Booking attempts rejected because the room was taken',
    registry=REGISTRY
)

BOOKING_TRANSITIONS = Counter(
    'booking_transitions_total',
    'Booking lifecycle transitions',
    ['to_status'],
    registry=REGISTRY
)

PAYMENTS_RECORDED = Counter(
    'payments_recorded_total',
    'Payments recorded',
    ['source', 'method'],
    registry=REGISTRY
)

PAYMENTS_REJECTED = Counter(
    'payments_rejected_total',
    'Payments rejected before insertion',
    ['reason'],
    registry=REGISTRY
)

LEDGER_RECONCILIATIONS = Counter(
    'ledger_reconciliations_total',
    'Ledger reconciliations by outcome',
    ['outcome'],
    registry=REGISTRY
)

LEDGER_DRIFT_CORRECTED = Counter(
    'ledger_drift_corrected_amount_total',
    'Absolute paid amount moved by ledger corrections',
    registry=REGISTRY
)

CONCURRENCY_CONFLICTS = Counter(
    'concurrency_conflicts_total',
    'Operations aborted due to contention',
    ['operation'],
    registry=REGISTRY
)


def setup_structured_logging():
    """Configure structured logging with structlog."""

    def add_trace_context(logger, method_name, event_dict):
        """Add trace context to log events."""
        span = trace.get_current_span()
        if span and span.is_recording():
            ctx = span.get_span_context()
            event_dict['trace_id'] = format(ctx.trace_id, '032x')
            event_dict['span_id'] = format(ctx.span_id, '016x')
        return event_dict

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_trace_context,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.ConsoleRenderer() if settings.debug else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level)
        ),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def setup_tracing(app_name: str = SERVICE_NAME):
    """Setup OpenTelemetry tracing."""
    resource = Resource.create({
        "service.name": app_name,
        "service.version": SERVICE_VERSION,
        "environment": settings.environment,
    })

    provider = TracerProvider(resource=resource)
    if settings.otlp_endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otlp_endpoint)))
    trace.set_tracer_provider(provider)

    return trace.get_tracer(__name__)


def instrument_fastapi(app):
    """Instrument FastAPI with OpenTelemetry."""
    FastAPIInstrumentor.instrument_app(app)


def instrument_sqlalchemy(engine):
    """Instrument the async engine's sync core with OpenTelemetry."""
    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)


class MetricsCollector:
    """Collector for business metrics."""

    @staticmethod
    def record_booking_created(payment_status: str):
        BOOKINGS_CREATED.labels(payment_status=payment_status).inc()

    @staticmethod
    def record_room_conflict():
        ROOM_CONFLICTS.inc()

    @staticmethod
    def record_transition(to_status: str):
        BOOKING_TRANSITIONS.labels(to_status=to_status).inc()

    @staticmethod
    def record_payment(source: str, method: str):
        PAYMENTS_RECORDED.labels(source=source, method=method).inc()

    @staticmethod
    def record_payment_rejected(reason: str):
        PAYMENTS_REJECTED.labels(reason=reason).inc()

    @staticmethod
    def record_reconciliation(changed: bool):
        """Record a reconciliation; ``changed`` means the stored ledger was corrected."""
        LEDGER_RECONCILIATIONS.labels(outcome="changed" if changed else "unchanged").inc()

    @staticmethod
    def record_drift_corrected(amount):
        LEDGER_DRIFT_CORRECTED.inc(float(abs(amount)))

    @staticmethod
    def record_concurrency_conflict(operation: str):
        CONCURRENCY_CONFLICTS.labels(operation=operation).inc()


def get_prometheus_metrics():
    """Get Prometheus metrics for the /metrics endpoint."""
    return generate_latest(REGISTRY)


# Global metrics collector instance
metrics_collector = MetricsCollector()
