"""Monitoring and observability setup.

Tracing and metrics are exported over OTLP when OTEL_ENABLED is set. When it
is not (local runs, tests), the OpenTelemetry API falls back to its no-op
providers and every instrument below still accepts measurements.

Exemplars are attached automatically by the SDK to the histograms recorded
inside an active trace context:
- order_amount_histogram (links order totals to checkout traces)
- payment_gateway_duration_histogram (links slow gateway calls to their traces)
"""
import logging
from opentelemetry import trace, metrics
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter

from config import OTEL_ENABLED, OTEL_EXPORTER_OTLP_ENDPOINT, PYROSCOPE_SERVER, SERVICE_NAME

logger = logging.getLogger(__name__)


def init_tracing() -> trace.Tracer:
    """
    Initialize OpenTelemetry tracing.

    Returns:
        Tracer instance
    """
    if OTEL_ENABLED:
        resource = Resource.create({"service.name": SERVICE_NAME})

        tracer_provider = TracerProvider(resource=resource)
        otlp_span_exporter = OTLPSpanExporter(
            endpoint=OTEL_EXPORTER_OTLP_ENDPOINT,
            insecure=True
        )
        tracer_provider.add_span_processor(BatchSpanProcessor(otlp_span_exporter))
        trace.set_tracer_provider(tracer_provider)

        logger.info(f"Tracing initialized with endpoint: {OTEL_EXPORTER_OTLP_ENDPOINT}")

    return trace.get_tracer(__name__)


def init_metrics() -> metrics.Meter:
    """
    Initialize OpenTelemetry metrics.

    Returns:
        Meter instance
    """
    if OTEL_ENABLED:
        resource = Resource.create({"service.name": SERVICE_NAME})

        otlp_metric_exporter = OTLPMetricExporter(
            endpoint=OTEL_EXPORTER_OTLP_ENDPOINT,
            insecure=True
        )
        otlp_metric_reader = PeriodicExportingMetricReader(
            otlp_metric_exporter,
            export_interval_millis=5000
        )

        meter_provider = MeterProvider(
            resource=resource,
            metric_readers=[otlp_metric_reader]
        )
        metrics.set_meter_provider(meter_provider)

        logger.info("Metrics initialized with OTLP exporter")

    return metrics.get_meter(__name__)


def init_profiling() -> None:
    """Initialize Pyroscope profiling."""
    if not OTEL_ENABLED:
        return
    try:
        import pyroscope

        pyroscope.configure(
            application_name=SERVICE_NAME,
            server_address=PYROSCOPE_SERVER,
            tags={"env": "demo"}
        )
        logger.info(f"Profiling initialized with server: {PYROSCOPE_SERVER}")
    except Exception as e:
        logger.warning(f"Failed to initialize profiling: {e}")


# Initialize tracer and meter
tracer = init_tracing()
meter = init_metrics()

# Catalog metrics
product_views_counter = meter.create_counter(
    "ezpc.products.views",
    description="Total number of product catalog listings served",
    unit="1"
)

product_detail_views_counter = meter.create_counter(
    "ezpc.products.detail_views",
    description="Total number of individual product detail views",
    unit="1"
)

product_mutations_counter = meter.create_counter(
    "ezpc.products.mutations",
    description="Admin product creates, updates and soft deletes",
    unit="1"
)

# Cart and wishlist metrics
cart_mutations_counter = meter.create_counter(
    "ezpc.cart.mutations",
    description="Cart increments, decrements and removals",
    unit="1"
)

wishlist_toggles_counter = meter.create_counter(
    "ezpc.wishlist.toggles",
    description="Wishlist additions and removals",
    unit="1"
)

# Order metrics
orders_placed_counter = meter.create_counter(
    "ezpc.orders.placed",
    description="Total number of orders placed",
    unit="1"
)

order_amount_histogram = meter.create_histogram(
    "ezpc.orders.amount",
    description="Order total amount",
    unit="PHP"
)

order_status_transitions_counter = meter.create_counter(
    "ezpc.orders.status_transitions",
    description="Order status changes applied by administrators",
    unit="1"
)

# Review metrics
reviews_submitted_counter = meter.create_counter(
    "ezpc.reviews.submitted",
    description="Total number of reviews accepted",
    unit="1"
)

reviews_rejected_counter = meter.create_counter(
    "ezpc.reviews.rejected",
    description="Review submissions rejected by eligibility rules",
    unit="1"
)

# Payment collaborator metrics
payment_gateway_duration_histogram = meter.create_histogram(
    "ezpc.payments.gateway.duration",
    description="Duration of payment gateway calls",
    unit="s"
)

# Security monitoring metrics
auth_failures_counter = meter.create_counter(
    "ezpc.auth.failures",
    description="Total number of authentication failures",
    unit="1"
)

auth_attempts_counter = meter.create_counter(
    "ezpc.auth.attempts",
    description="Total number of authentication attempts",
    unit="1"
)

rate_limit_exceeded_counter = meter.create_counter(
    "ezpc.rate_limit.exceeded",
    description="Total number of rate limit violations",
    unit="1"
)

suspicious_activity_counter = meter.create_counter(
    "ezpc.security.suspicious_activity",
    description="Total number of suspicious activity detections",
    unit="1"
)
