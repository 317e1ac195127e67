"""OpenTelemetry tracing: OTLP/HTTP export when TRACING_ENABLED, otherwise the API's no-op tracer."""

from typing import Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from mailsync import __version__
from mailsync.config import (
    DEPLOYMENT_ENVIRONMENT,
    OTEL_EXPORTER_ENDPOINT,
    OTEL_SERVICE_NAME,
    TRACING_ENABLED,
)
from mailsync.utils.logger import get_logger

logger = get_logger("mailsync.tracing")

_provider: Optional[TracerProvider] = None


def traces_endpoint(base: str) -> str:
    """Collector URL with the /v1/traces path the HTTP exporter posts to."""
    base = base.rstrip("/")
    return base if base.endswith("/v1/traces") else f"{base}/v1/traces"


def init_tracing() -> None:
    """Install the global tracer provider once. Does nothing unless TRACING_ENABLED."""
    global _provider
    if _provider is not None or not TRACING_ENABLED:
        return

    endpoint = traces_endpoint(OTEL_EXPORTER_ENDPOINT)
    resource = Resource.create(
        {
            "service.name": OTEL_SERVICE_NAME,
            "service.version": __version__,
            "deployment.environment": DEPLOYMENT_ENVIRONMENT,
        }
    )
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
    trace.set_tracer_provider(provider)
    _provider = provider
    logger.info("tracing.enabled", endpoint=endpoint)


def get_tracer() -> trace.Tracer:
    return trace.get_tracer("mailsync", __version__)


def shutdown_tracing() -> None:
    """Flush pending spans before exit."""
    global _provider
    if _provider is None:
        return
    _provider.force_flush(timeout_millis=5000)
    _provider.shutdown()
    _provider = None
