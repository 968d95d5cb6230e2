"""OpenTelemetry tracing for the combat engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
)
from opentelemetry.trace import Tracer

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .config import TelemetryConfig

DEFAULT_TRACER_NAME = "fleetbattle"

_TRACERS: dict[str, Tracer] = {}
_TRACER_PROVIDER: TracerProvider | None = None


def get_tracer(name: str = DEFAULT_TRACER_NAME) -> Tracer:
    """Return a cached tracer for ``name``.

    Tracers handed out before :func:`init_tracing` runs are OTel proxies, so
    module-level tracers pick up the real provider once it is installed.
    """
    tracer = _TRACERS.get(name)
    if tracer is None:
        tracer = trace.get_tracer(name)
        _TRACERS[name] = tracer
    return tracer


def init_tracing(config: TelemetryConfig) -> Tracer:
    """Install a TracerProvider exporting over OTLP, or to the console."""
    global _TRACER_PROVIDER

    provider = TracerProvider(resource=Resource.create(config.resource_dict()))

    if config.otlp_traces_endpoint:
        exporter = OTLPSpanExporter(endpoint=config.otlp_traces_endpoint, insecure=True)
        provider.add_span_processor(BatchSpanProcessor(exporter))
    else:
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)
    _TRACER_PROVIDER = provider
    tracer = provider.get_tracer(config.service_name)
    _TRACERS[DEFAULT_TRACER_NAME] = tracer
    return tracer
