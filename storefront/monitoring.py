"""Monitoring and observability setup.

Traces and metrics are exported over OTLP when ``TELEMETRY_ENABLED`` is set.
With telemetry disabled the providers are still installed, so spans and
instruments keep working and simply go nowhere.
"""
import logging

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from storefront.config import OTEL_EXPORTER_OTLP_ENDPOINT, SERVICE_NAME, TELEMETRY_ENABLED

logger = logging.getLogger(__name__)


def init_tracing() -> trace.Tracer:
    """
    Initialize OpenTelemetry tracing.

    Returns:
        Tracer instance
    """
    resource = Resource.create({"service.name": SERVICE_NAME})

    tracer_provider = TracerProvider(resource=resource)
    if TELEMETRY_ENABLED:
        otlp_span_exporter = OTLPSpanExporter(
            endpoint=OTEL_EXPORTER_OTLP_ENDPOINT,
            insecure=True
        )
        tracer_provider.add_span_processor(BatchSpanProcessor(otlp_span_exporter))
        logger.info(f"Tracing initialized with endpoint: {OTEL_EXPORTER_OTLP_ENDPOINT}")
    trace.set_tracer_provider(tracer_provider)

    return trace.get_tracer(__name__)


def init_metrics() -> metrics.Meter:
    """
    Initialize OpenTelemetry metrics.

    Returns:
        Meter instance
    """
    resource = Resource.create({"service.name": SERVICE_NAME})

    metric_readers = []
    if TELEMETRY_ENABLED:
        otlp_metric_exporter = OTLPMetricExporter(
            endpoint=OTEL_EXPORTER_OTLP_ENDPOINT,
            insecure=True
        )
        metric_readers.append(PeriodicExportingMetricReader(
            otlp_metric_exporter,
            export_interval_millis=5000
        ))
        logger.info("Metrics initialized with OTLP exporter")

    meter_provider = MeterProvider(
        resource=resource,
        metric_readers=metric_readers
    )
    metrics.set_meter_provider(meter_provider)

    return metrics.get_meter(__name__)


# Initialize tracer and meter
tracer = init_tracing()
meter = init_metrics()

# Catalog metrics
product_views_counter = meter.create_counter(
    "storefront.products.views",
    description="Total number of product catalog and detail views",
    unit="1"
)

stock_adjustments_counter = meter.create_counter(
    "storefront.products.stock_adjustments",
    description="Administrative stock adjustments by operation",
    unit="1"
)

# Cart metrics
cart_additions_counter = meter.create_counter(
    "storefront.cart.additions",
    description="Total number of items added to cart",
    unit="1"
)

cart_merges_counter = meter.create_counter(
    "storefront.cart.merges",
    description="Guest carts merged into server carts at login",
    unit="1"
)

# Order metrics
checkout_counter = meter.create_counter(
    "storefront.checkouts",
    description="Order placement attempts by payment method and outcome",
    unit="1"
)

checkout_amount_histogram = meter.create_histogram(
    "storefront.checkout.amount",
    description="Order total in PHP",
    unit="PHP"
)

insufficient_stock_counter = meter.create_counter(
    "storefront.orders.insufficient_stock",
    description="Orders rejected because a product ran out of stock",
    unit="1"
)

order_status_counter = meter.create_counter(
    "storefront.orders.status_changes",
    description="Administrative order status transitions",
    unit="1"
)

# Security monitoring metrics
auth_failures_counter = meter.create_counter(
    "storefront.auth.failures",
    description="Total number of authentication failures",
    unit="1"
)

auth_attempts_counter = meter.create_counter(
    "storefront.auth.attempts",
    description="Total number of authentication attempts",
    unit="1"
)

rate_limit_exceeded_counter = meter.create_counter(
    "storefront.rate_limit.exceeded",
    description="Total number of rate limit violations",
    unit="1"
)

suspicious_activity_counter = meter.create_counter(
    "storefront.security.suspicious_activity",
    description="Total number of suspicious activity detections",
    unit="1"
)
