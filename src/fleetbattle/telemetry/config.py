"""Telemetry configuration for fleetbattle services."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Any, Dict

from pydantic import BaseModel, Field

from .logger import init_logging
from .metrics import init_metrics
from .tracer import init_tracing

_TRUTHY = {"1", "true", "yes", "on"}

_FLAG_ENV = {
    "enable_tracing": ("FLEETBATTLE_ENABLE_TRACING", "OTEL_TRACES_ENABLED"),
    "enable_metrics": ("FLEETBATTLE_ENABLE_METRICS", "OTEL_METRICS_ENABLED"),
    "enable_logging": ("FLEETBATTLE_ENABLE_LOGGING", "OTEL_LOGS_ENABLED"),
}

_ENDPOINT_ENV = {
    "otlp_traces_endpoint": ("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT", "v1/traces"),
    "otlp_metrics_endpoint": ("OTEL_EXPORTER_OTLP_METRICS_ENDPOINT", "v1/metrics"),
    "otlp_logs_endpoint": ("OTEL_EXPORTER_OTLP_LOGS_ENDPOINT", "v1/logs"),
}


class TelemetryConfig(BaseModel):
    """Which exporters to start and where they send data."""

    enable_tracing: bool = False
    enable_metrics: bool = False
    enable_logging: bool = False
    otlp_traces_endpoint: str | None = None
    otlp_metrics_endpoint: str | None = None
    otlp_logs_endpoint: str | None = None
    metric_export_interval_ms: int = 5000
    service_name: str = "fleetbattle"
    service_namespace: str = "game"
    resource_attributes: dict[str, str] = Field(default_factory=dict)

    def resource_dict(self) -> dict[str, str]:
        """Attributes shared by every OTel resource this config creates."""
        attributes = {
            "service.name": self.service_name,
            "service.namespace": self.service_namespace,
        }
        attributes.update(self.resource_attributes)
        return attributes

    @classmethod
    def from_env(cls, **overrides: Any) -> "TelemetryConfig":
        """Build a config from `FLEETBATTLE_*` and standard `OTEL_*` variables.

        Explicit ``overrides`` win over the environment. An exporter whose
        endpoint is configured is switched on even without its enable flag.
        """

        data: Dict[str, Any] = cls().model_dump()

        for field, env_names in _FLAG_ENV.items():
            flag = _bool_from_env(*env_names)
            if flag is not None:
                data[field] = flag

        base_endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
        for field, (env_name, suffix) in _ENDPOINT_ENV.items():
            data[field] = os.getenv(env_name) or _with_suffix(base_endpoint, suffix)

        if os.getenv("OTEL_SERVICE_NAME"):
            data["service_name"] = os.environ["OTEL_SERVICE_NAME"]
        if os.getenv("OTEL_SERVICE_NAMESPACE"):
            data["service_namespace"] = os.environ["OTEL_SERVICE_NAMESPACE"]

        resource_env = os.getenv("OTEL_RESOURCE_ATTRIBUTES")
        if resource_env:
            attrs = dict(data["resource_attributes"])
            for part in resource_env.split(","):
                if "=" not in part:
                    continue
                key, value = part.split("=", 1)
                attrs[key.strip()] = value.strip()
            data["resource_attributes"] = attrs

        data.update(overrides)

        for flag_field, endpoint_field in (
            ("enable_tracing", "otlp_traces_endpoint"),
            ("enable_metrics", "otlp_metrics_endpoint"),
            ("enable_logging", "otlp_logs_endpoint"),
        ):
            if data.get(endpoint_field):
                data[flag_field] = True

        return cls(**data)


def _bool_from_env(*names: str) -> bool | None:
    for name in names:
        value = os.getenv(name)
        if value is not None:
            return value.strip().lower() in _TRUTHY
    return None


def _with_suffix(base: str | None, suffix: str) -> str | None:
    if not base:
        return None
    return f"{base.rstrip('/')}/{suffix}"


@lru_cache(maxsize=1)
def load_telemetry_config() -> TelemetryConfig:
    """Load the environment config once per process."""

    return TelemetryConfig.from_env()


def init_telemetry(config: TelemetryConfig | None = None) -> TelemetryConfig:
    """Start only the telemetry subsystems the config enables."""

    resolved = config or load_telemetry_config()

    if resolved.enable_tracing:
        init_tracing(resolved)
    if resolved.enable_metrics:
        init_metrics(resolved)
    if resolved.enable_logging:
        init_logging(resolved)
    return resolved
