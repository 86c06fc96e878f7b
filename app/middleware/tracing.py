"""
OpenTelemetry tracing for the moderation service.

Spans are exported over OTLP/HTTP; Jaeger and most collectors accept it directly. Health and
metrics endpoints are not traced.
"""
import logging

import structlog
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from app.core.config import Settings, get_settings

UNTRACED_URLS = "/health,/health/ready,/metrics"

logging.getLogger("opentelemetry").setLevel(logging.WARNING)

logger = structlog.get_logger(__name__)


def _build_provider(settings: Settings) -> TracerProvider:
    provider = TracerProvider(resource=Resource.create({SERVICE_NAME: settings.service_name}))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otlp_endpoint)))
    return provider


def _instrument_database():
    from app.database.database import engine

    try:
        SQLAlchemyInstrumentor().instrument(engine=engine, enable_commenter=True)
    except Exception as e:
        # Request spans still work without query spans
        logger.warning("SQLAlchemy instrumentation unavailable", error=str(e))


def init_tracing(app) -> bool:
    """Install the tracer provider and instrument FastAPI and SQLAlchemy; never fails startup"""
    settings = get_settings()
    if not settings.tracing_enabled:
        logger.info("Tracing disabled")
        return False

    try:
        trace.set_tracer_provider(_build_provider(settings))
        FastAPIInstrumentor.instrument_app(app, excluded_urls=UNTRACED_URLS)
        _instrument_database()
    except Exception as e:
        logger.error("Tracing setup failed, continuing without traces", error=str(e), exc_info=True)
        return False

    logger.info("Tracing enabled", service_name=settings.service_name, otlp_endpoint=settings.otlp_endpoint)
    return True


def get_tracer(name: str):
    return trace.get_tracer(name)
