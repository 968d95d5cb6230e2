"""Logging setup: console formatting plus an OTLP log exporter."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from opentelemetry._logs import set_logger_provider
from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.resources import Resource

if TYPE_CHECKING:  # pragma: no cover
    from .config import TelemetryConfig

DEFAULT_LOGGER_NAME = "fleetbattle"

LOG_FORMAT = (
    "%(asctime)s | %(levelname)s | %(name)s | %(message)s "
    "| trace_id=%(otelTraceID)s span_id=%(otelSpanID)s"
)

_LOGGERS: dict[str, logging.Logger] = {}
_LOGGER_PROVIDER: LoggerProvider | None = None
_OTLP_HANDLER: logging.Handler | None = None


class _TraceFields(logging.Filter):
    """Give every record trace/span fields so LOG_FORMAT never fails."""

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - trivial
        for attr in ("otelTraceID", "otelSpanID"):
            if not hasattr(record, attr):
                setattr(record, attr, "-")
        return True


def get_logger(name: str = DEFAULT_LOGGER_NAME) -> logging.Logger:
    logger = _LOGGERS.get(name)
    if logger is None:
        logger = logging.getLogger(name)
        logger.setLevel(logging.INFO)
        _LOGGERS[name] = logger
    return logger


def init_logging(config: TelemetryConfig) -> logging.Logger:
    """Route root-logger records into an OTel LoggerProvider.

    Without ``otlp_logs_endpoint`` the provider has no processor and records
    are only formatted locally.
    """
    global _LOGGER_PROVIDER

    provider = LoggerProvider(resource=Resource.create(config.resource_dict()))
    if config.otlp_logs_endpoint:
        exporter = OTLPLogExporter(endpoint=config.otlp_logs_endpoint, insecure=True)
        provider.add_log_record_processor(BatchLogRecordProcessor(exporter))

    set_logger_provider(provider)
    _LOGGER_PROVIDER = provider
    _attach_handler(LoggingHandler(level=logging.INFO, logger_provider=provider))
    return get_logger(config.service_name)


def _attach_handler(handler: logging.Handler) -> None:
    """Install console formatting and the OTel handler on the root logger, once each."""
    global _OTLP_HANDLER
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    for existing in root.handlers:
        if not any(isinstance(f, _TraceFields) for f in existing.filters):
            existing.addFilter(_TraceFields())

    if _OTLP_HANDLER is None:
        handler.addFilter(_TraceFields())
        root.addHandler(handler)
        _OTLP_HANDLER = handler
