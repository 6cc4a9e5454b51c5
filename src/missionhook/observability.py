"""Lightweight helpers for configuring OpenTelemetry exporters."""

from __future__ import annotations

import importlib
from functools import lru_cache
from typing import Any, Final

from opentelemetry import trace

from .logging import get_logger

TRACER_NAME = "missionhook"

_telemetry_configured: Final[dict[str, bool]] = {"configured": False}


@lru_cache(maxsize=1)
def _load_sdk() -> dict[str, Any] | None:
    try:  # pragma: no cover - optional dependency (missionhook[otel])
        resources_module = importlib.import_module("opentelemetry.sdk.resources")
        trace_sdk_module = importlib.import_module("opentelemetry.sdk.trace")
        export_module = importlib.import_module("opentelemetry.sdk.trace.export")
    except ImportError:
        return None
    runtime: dict[str, Any] = {
        "TracerProvider": trace_sdk_module.TracerProvider,
        "Resource": resources_module.Resource,
        "BatchSpanProcessor": export_module.BatchSpanProcessor,
        "ConsoleSpanExporter": export_module.ConsoleSpanExporter,
    }
    try:  # pragma: no cover - exporter package is separate from the SDK
        exporter_module = importlib.import_module(
            "opentelemetry.exporter.otlp.proto.http.trace_exporter"
        )
        runtime["OTLPSpanExporter"] = exporter_module.OTLPSpanExporter
    except ImportError:
        runtime["OTLPSpanExporter"] = None
    return runtime


def configure_telemetry(
    *,
    service_name: str,
    exporter: str = "console",
    endpoint: str | None = None,
) -> bool:
    """Install an SDK tracer provider once per process.

    Returns False when the SDK is not installed; spans then go to the API's
    no-op provider.
    """
    if _telemetry_configured["configured"]:
        return True

    runtime = _load_sdk()
    if runtime is None:
        get_logger().debug("OpenTelemetry SDK not installed; spans are not exported")
        return False

    resource = runtime["Resource"].create({"service.name": service_name})
    provider = runtime["TracerProvider"](resource=resource)

    otlp_cls = runtime["OTLPSpanExporter"]
    if exporter.lower() == "otlp" and otlp_cls is not None:
        span_exporter = otlp_cls(endpoint=endpoint) if endpoint else otlp_cls()
    else:
        span_exporter = runtime["ConsoleSpanExporter"]()

    provider.add_span_processor(runtime["BatchSpanProcessor"](span_exporter))
    trace.set_tracer_provider(provider)
    _telemetry_configured["configured"] = True
    return True


def get_tracer() -> trace.Tracer:
    return trace.get_tracer(TRACER_NAME)


__all__ = ["configure_telemetry", "get_tracer"]
