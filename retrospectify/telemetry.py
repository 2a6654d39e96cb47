"""OpenTelemetry telemetry configuration for Retrospectify.

Tracing is enabled only when OTEL_EXPORTER_OTLP_ENDPOINT is configured,
otherwise every span is a no-op. Retrospective spans (report assembly,
categorization) carry ``retro.*`` attributes including the team they
belong to.
"""

import logging
import os
from typing import Any

from .logging_config import get_team_id

logger = logging.getLogger(__name__)

# Environment configuration
OTEL_EXPORTER_OTLP_ENDPOINT = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
OTEL_SERVICE_NAME = os.getenv("OTEL_SERVICE_NAME", "retrospectify")

# Module-level state
_tracer = None
_telemetry_enabled = False


def is_telemetry_enabled() -> bool:
    """Check if OpenTelemetry tracing is enabled."""
    return _telemetry_enabled


def setup_telemetry() -> bool:
    """Initialize OpenTelemetry tracing.

    Configures the tracer provider with an OTLP exporter if
    OTEL_EXPORTER_OTLP_ENDPOINT is set.

    Returns:
        True if telemetry was successfully configured, False otherwise.
    """
    global _tracer, _telemetry_enabled

    if not OTEL_EXPORTER_OTLP_ENDPOINT:
        logger.info(
            "OpenTelemetry disabled: OTEL_EXPORTER_OTLP_ENDPOINT not configured"
        )
        return False

    try:
        from opentelemetry import trace
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
            OTLPSpanExporter,
        )
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor

        from .version import __version__

        resource = Resource.create(
            {
                "service.name": OTEL_SERVICE_NAME,
                "service.version": __version__,
            }
        )

        provider = TracerProvider(resource=resource)
        otlp_exporter = OTLPSpanExporter(endpoint=OTEL_EXPORTER_OTLP_ENDPOINT)
        provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
        trace.set_tracer_provider(provider)

        _tracer = trace.get_tracer(__name__)
        _telemetry_enabled = True

        logger.info(
            "OpenTelemetry initialized. Endpoint: %s, Service: %s",
            OTEL_EXPORTER_OTLP_ENDPOINT,
            OTEL_SERVICE_NAME,
        )
        return True

    except ImportError as e:
        logger.warning("OpenTelemetry packages not available: %s", e)
        return False
    except Exception as e:
        logger.warning("Failed to initialize OpenTelemetry: %s", e)
        return False


def get_tracer() -> Any:
    """Get the configured tracer, or a no-op tracer when disabled."""
    if _tracer is not None:
        return _tracer
    return _NoOpTracer()


def retro_span_attributes(**attributes: Any) -> dict[str, Any]:
    """Namespace span attributes under ``retro.`` and tag the active team.

    None values are dropped since OTLP rejects them. The team of the
    request being served is added unless a team_id is passed explicitly.
    """
    if "team_id" not in attributes:
        attributes["team_id"] = get_team_id()
    return {
        f"retro.{key}": value
        for key, value in attributes.items()
        if value is not None
    }


def trace_span(name: str, **attributes: Any) -> Any:
    """Start a retrospective span as a context manager."""
    return get_tracer().start_as_current_span(
        name, attributes=retro_span_attributes(**attributes)
    )


class _NoOpSpan:
    """No-op span implementation for when tracing is disabled."""

    def set_attribute(self, key: str, value: Any) -> None:
        pass

    def set_attributes(self, attributes: dict[str, Any]) -> None:
        pass

    def set_status(self, status: Any) -> None:
        pass

    def record_exception(self, exception: Exception) -> None:
        pass

    def __enter__(self) -> "_NoOpSpan":
        return self

    def __exit__(self, *args: Any) -> None:
        pass


class _NoOpTracer:
    """No-op tracer implementation for when tracing is disabled."""

    def start_as_current_span(self, name: str, **kwargs: Any) -> _NoOpSpan:
        """Return a no-op span as a context manager."""
        return _NoOpSpan()


def instrument_fastapi(app: Any) -> None:
    """Instrument a FastAPI application with OpenTelemetry.

    Args:
        app: The FastAPI application instance.
    """
    if not _telemetry_enabled:
        logger.debug("Skipping FastAPI instrumentation: telemetry disabled")
        return

    try:
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

        FastAPIInstrumentor.instrument_app(app)
        logger.info("FastAPI instrumentation enabled")
    except ImportError:
        logger.warning("FastAPI instrumentation package not available")
    except Exception as e:
        logger.warning("Failed to instrument FastAPI: %s", e)
