"""OpenTelemetry distributed tracing setup."""

import structlog
from django.conf import settings
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.celery import CeleryInstrumentor
from opentelemetry.instrumentation.django import DjangoInstrumentor
from opentelemetry.sdk.resources import DEPLOYMENT_ENVIRONMENT, SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import ParentBasedTraceIdRatio

logger = structlog.get_logger(__name__)


def init_tracing() -> None:
    """Initialize OpenTelemetry distributed tracing.

    Sets up:
    - TracerProvider with resource attributes
    - OTLP exporter
    - Sampling based on environment
    - Auto-instrumentation for Django and Celery
    """
    if not settings.ENABLE_OBSERVABILITY:
        logger.debug("tracing_disabled")
        return

    resource = Resource.create(
        {
            SERVICE_NAME: settings.SERVICE_NAME,
            SERVICE_VERSION: settings.SERVICE_VERSION,
            DEPLOYMENT_ENVIRONMENT: settings.DEPLOYMENT_ENVIRONMENT,
        }
    )

    tracer_provider = TracerProvider(
        resource=resource,
        sampler=ParentBasedTraceIdRatio(settings.TRACING_SAMPLE_RATE),
    )
    tracer_provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=f"{settings.OTEL_EXPORTER_OTLP_ENDPOINT}/v1/traces"))
    )
    trace.set_tracer_provider(tracer_provider)

    try:
        DjangoInstrumentor().instrument()
        CeleryInstrumentor().instrument()
        logger.info(
            "tracing_initialized",
            service=settings.SERVICE_NAME,
            sample_rate=settings.TRACING_SAMPLE_RATE,
            endpoint=settings.OTEL_EXPORTER_OTLP_ENDPOINT,
        )
    except Exception:
        logger.exception("tracing_initialization_failed")


def get_tracer(name: str) -> trace.Tracer:
    """Return a tracer; spans are no-ops until init_tracing installs a provider."""
    return trace.get_tracer(name)
