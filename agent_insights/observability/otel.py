"""OpenTelemetry + Prometheus fallback wiring for the Agent Insights service.

Every metric is declared once in ``METRICS`` and created on whichever
backends started. Recorders are no-ops until ``initialize`` enables them.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, NamedTuple

from fastapi import FastAPI

from agent_insights import config

logger = logging.getLogger("agent_insights.observability")


class MetricDef(NamedTuple):
    name: str
    kind: str  # "counter" | "histogram" | "gauge"
    description: str
    labels: tuple[str, ...] = ()
    unit: str = "1"


METRICS: dict[str, MetricDef] = {
    "ingestion": MetricDef(
        "agent_insights_sessions_parsed_total", "counter",
        "Count of session assembly operations", ("result", "project"),
    ),
    "ingestion_latency": MetricDef(
        "agent_insights_session_parse_latency_ms", "histogram",
        "Latency of full session assembly", ("result", "project"), unit="ms",
    ),
    "parser_failures": MetricDef(
        "agent_insights_parser_failures_total", "counter",
        "Count of sessions excluded after a parse failure", ("parser", "project"),
    ),
    "discovered_sessions": MetricDef(
        "agent_insights_discovered_sessions", "gauge",
        "Team sessions found by the most recent discovery",
    ),
}

_initialized = False
_tracer: Any | None = None
_providers: list[Any] = []
_instrumentor: Any | None = None
_otel_instruments: dict[str, Any] = {}
_prom_instruments: dict[str, Any] = {}
_last_discovered = 0


def otlp_url(base: str, signal: str) -> str:
    """OTLP/HTTP URL for one signal (``traces`` or ``metrics``) under a collector base URL."""
    root = (base or "").strip().rstrip("/")
    if not root:
        return ""
    if root.endswith(f"/v1/{signal}"):
        return root
    if root.endswith("/v1"):
        root = root[: -len("/v1")]
    return f"{root}/v1/{signal}"


def _start_otel() -> bool:
    global _tracer, _instrumentor
    try:
        from opentelemetry import metrics, trace
        from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
        from opentelemetry.sdk.metrics import MeterProvider
        from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError as exc:
        logger.warning("OpenTelemetry dependencies unavailable: %s", exc)
        return False

    resource = Resource.create({"service.name": config.OTEL_SERVICE_NAME or "agent-insights"})

    tracer_provider = TracerProvider(resource=resource)
    span_exporter = OTLPSpanExporter(endpoint=otlp_url(config.OTEL_ENDPOINT, "traces") or None)
    tracer_provider.add_span_processor(BatchSpanProcessor(span_exporter))
    trace.set_tracer_provider(tracer_provider)

    reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=otlp_url(config.OTEL_ENDPOINT, "metrics") or None)
    )
    meter_provider = MeterProvider(resource=resource, metric_readers=[reader])
    metrics.set_meter_provider(meter_provider)
    meter = metrics.get_meter("agent_insights")

    factories = {
        "counter": meter.create_counter,
        "histogram": meter.create_histogram,
        "gauge": meter.create_up_down_counter,
    }
    for key, metric in METRICS.items():
        _otel_instruments[key] = factories[metric.kind](metric.name, unit=metric.unit, description=metric.description)

    _providers.extend([meter_provider, tracer_provider])
    _tracer = trace.get_tracer("agent_insights")
    _instrumentor = FastAPIInstrumentor()
    return True


def _start_prometheus(port: int) -> None:
    try:
        from prometheus_client import Counter, Gauge, Histogram, start_http_server

        start_http_server(port)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Prometheus fallback not started: %s", exc)
        return

    classes = {"counter": Counter, "histogram": Histogram, "gauge": Gauge}
    for key, metric in METRICS.items():
        _prom_instruments[key] = classes[metric.kind](metric.name, metric.description, list(metric.labels))
    logger.info("Prometheus fallback metrics server listening on port %s", port)


def initialize(app: FastAPI | None = None) -> None:
    global _initialized
    if not _initialized:
        _initialized = True
        if not config.OTEL_ENABLED:
            logger.info("OpenTelemetry disabled (AGENT_INSIGHTS_OTEL_ENABLED=false)")
            return
        if not _start_otel():
            return
        if config.PROM_PORT > 0:
            _start_prometheus(config.PROM_PORT)
        logger.info("OpenTelemetry initialized (endpoint=%s)", config.OTEL_ENDPOINT)

    if app is not None and _instrumentor is not None:
        _instrumentor.instrument_app(app)


def shutdown(app: FastAPI | None = None) -> None:
    global _tracer
    if app is not None and _instrumentor is not None:
        try:
            _instrumentor.uninstrument_app(app)
        except Exception:
            logger.debug("FastAPI uninstrumentation failed", exc_info=True)
    while _providers:
        provider = _providers.pop()
        try:
            provider.shutdown()
        except Exception:
            logger.debug("Telemetry provider shutdown failed", exc_info=True)
    _tracer = None
    _otel_instruments.clear()


@contextmanager
def start_span(name: str, attributes: dict[str, Any] | None = None):
    if _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(name) as span:
        for key, value in (attributes or {}).items():
            if value is not None:
                span.set_attribute(key, value)
        yield span


def _emit(key: str, value: float, labels: dict[str, str], *, otel_value: float | None = None) -> None:
    kind = METRICS[key].kind
    instrument = _otel_instruments.get(key)
    if instrument is not None:
        amount = value if otel_value is None else otel_value
        if kind == "histogram":
            instrument.record(amount, labels)
        else:
            instrument.add(amount, labels)

    prom = _prom_instruments.get(key)
    if prom is not None:
        target = prom.labels(**labels) if labels else prom
        if kind == "counter":
            target.inc(value)
        elif kind == "histogram":
            target.observe(value)
        else:
            target.set(value)


def record_ingestion(result: str, duration_ms: float, *, project: str) -> None:
    labels = {"result": result or "unknown", "project": project or "unknown"}
    _emit("ingestion", 1, labels)
    _emit("ingestion_latency", max(0.0, float(duration_ms)), labels)


def record_parser_failure(parser: str, *, project: str) -> None:
    _emit("parser_failures", 1, {"parser": parser or "unknown", "project": project or "unknown"})


def record_discovery(session_count: int) -> None:
    global _last_discovered
    count = max(0, int(session_count))
    # OTel up-down counters take deltas; the Prometheus gauge takes the absolute value.
    _emit("discovered_sessions", count, {}, otel_value=count - _last_discovered)
    _last_discovered = count
