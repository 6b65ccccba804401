"""
OpenTelemetry tracing for step and pipeline execution.

Spans are created through a process-wide ``TracingManager``. When tracing is
disabled in settings the manager hands out a no-op tracer, so instrumented code
never has to check whether tracing is on.
"""

import functools
import inspect
from collections.abc import Callable
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import NoOpTracer, Span, Status, StatusCode

from .logging import get_logger, set_trace_id

logger = get_logger(__name__)


class TracingManager:
    """Owns the tracer provider and span helpers."""

    def __init__(self, service_name: str = "forge", service_version: str = "0.1.0"):
        self.service_name = service_name
        self.service_version = service_version
        self.tracer_provider: TracerProvider | None = None
        self.tracer: trace.Tracer | None = None
        self._initialized = False

    def initialize(self, otlp_endpoint: str | None = None) -> None:
        """Create the tracer provider, exporting over OTLP when an endpoint is given."""
        if self._initialized:
            return

        resource = Resource.create(
            {
                "service.name": self.service_name,
                "service.version": self.service_version,
            }
        )
        self.tracer_provider = TracerProvider(resource=resource)

        if otlp_endpoint:
            exporter = OTLPSpanExporter(endpoint=otlp_endpoint)
            self.tracer_provider.add_span_processor(BatchSpanProcessor(exporter))
            logger.info("OTLP span export enabled", endpoint=otlp_endpoint)

        self.tracer = self.tracer_provider.get_tracer(self.service_name, self.service_version)
        self._initialized = True

    def initialize_noop(self) -> None:
        self.tracer = NoOpTracer()
        self._initialized = True

    def start_span(self, name: str, attributes: dict[str, Any] | None = None) -> Span:
        if self.tracer is None:
            raise RuntimeError("Tracer not initialized. Call initialize() first.")
        span = self.tracer.start_span(name, kind=trace.SpanKind.INTERNAL)

        for key, value in (attributes or {}).items():
            span.set_attribute(key, str(value))

        trace_id = span.get_span_context().trace_id
        if trace_id:
            set_trace_id(format(trace_id, "032x"))

        return span

    @contextmanager
    def span(self, name: str, attributes: dict[str, Any] | None = None):
        """Context manager opening a span and recording any escaping exception."""
        span = self.start_span(name, attributes)
        try:
            with trace.use_span(
                span, end_on_exit=False, record_exception=False, set_status_on_exception=False
            ):
                yield span
        except Exception as e:
            span.record_exception(e)
            span.set_status(Status(StatusCode.ERROR, str(e)))
            raise
        finally:
            span.end()

    def shutdown(self) -> None:
        if self.tracer_provider:
            self.tracer_provider.shutdown()
        self._initialized = False


_tracing_manager: TracingManager | None = None


def get_tracing_manager() -> TracingManager:
    """Get the global tracing manager, initializing it from settings on first use."""
    global _tracing_manager
    if _tracing_manager is None:
        from ..config.settings import get_settings

        config = get_settings().observability
        manager = TracingManager(config.service_name, config.service_version)
        if config.enable_tracing:
            manager.initialize(config.otlp_endpoint)
        else:
            manager.initialize_noop()
        _tracing_manager = manager
    return _tracing_manager


def trace_span(name: str | None = None, attributes: dict[str, Any] | None = None):
    """Decorator wrapping a sync or async callable in a span."""

    def decorator(func: Callable) -> Callable:
        span_name = name or f"{func.__module__}.{func.__qualname__}"
        span_attributes = {"function.name": func.__name__, **(attributes or {})}

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            with get_tracing_manager().span(span_name, span_attributes) as span:
                result = await func(*args, **kwargs)
                span.set_status(Status(StatusCode.OK))
                return result

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            with get_tracing_manager().span(span_name, span_attributes) as span:
                result = func(*args, **kwargs)
                span.set_status(Status(StatusCode.OK))
                return result

        return async_wrapper if inspect.iscoroutinefunction(func) else sync_wrapper

    return decorator


def add_span_attributes(**attributes):
    """Add attributes to the current span."""
    current_span = trace.get_current_span()
    if current_span.is_recording():
        for key, value in attributes.items():
            current_span.set_attribute(key, str(value))


def add_span_event(name: str, attributes: dict[str, Any] | None = None):
    """Add an event to the current span."""
    current_span = trace.get_current_span()
    if current_span.is_recording():
        current_span.add_event(name, attributes or {})
