"""
OpenTelemetry tracing for the billing API.

Spans are exported over OTLP only when TRACING_ENABLED is set. With tracing
off, the global tracer stays the no-op default and annotate_span is free.
"""

from enum import Enum
from typing import Any

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from sqlalchemy.ext.asyncio import AsyncEngine

from purifier_billing.config import settings

SPAN_ATTRIBUTE_PREFIX = "purifier."


def setup_tracing() -> None:
    """Install the OTLP-exporting tracer provider."""
    if not settings.tracing_enabled:
        return

    provider = TracerProvider(
        resource=Resource.create(
            {SERVICE_NAME: settings.service_name, SERVICE_VERSION: settings.api_version}
        )
    )
    provider.add_span_processor(
        BatchSpanProcessor(
            OTLPSpanExporter(endpoint=settings.otlp_endpoint, insecure=settings.otlp_insecure)
        )
    )
    trace.set_tracer_provider(provider)


def instrument_fastapi(app: FastAPI) -> None:
    if settings.tracing_enabled:
        FastAPIInstrumentor.instrument_app(app)


def instrument_sqlalchemy(engine: AsyncEngine) -> None:
    if settings.tracing_enabled:
        SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)


def annotate_span(**attributes: Any) -> None:
    """
    Attach accounting attributes to the active request span.

    Keys are namespaced under "purifier."; None values are skipped and
    enums and other non-primitive values are recorded as strings.
    """
    span = trace.get_current_span()
    if not span.is_recording():
        return

    for key, value in attributes.items():
        if value is None:
            continue
        if isinstance(value, Enum):
            value = value.value
        if not isinstance(value, (str, int, float, bool)):
            value = str(value)
        span.set_attribute(SPAN_ATTRIBUTE_PREFIX + key, value)
