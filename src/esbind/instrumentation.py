"""OpenTelemetry instrumentation for Elasticsearch requests.

``OtelInstrumentation`` opens one CLIENT span per request and annotates it
with database and HTTP attributes. ``MetricInstrumentation`` wraps any
instrumentation and records the request duration histogram. Both are
observational only: nothing here changes the outcome of a request.
"""

import io
import logging
import time
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable
from urllib.parse import urlsplit

from opentelemetry import context as otel_context
from opentelemetry import metrics, trace
from opentelemetry.trace import SpanKind, Status, StatusCode

logger = logging.getLogger(__name__)

PACKAGE_NAME = "es"
INSTRUMENTATION_SCOPE = "esbind"
METRIC_NAME = "es.request.duration"
METRIC_DESCRIPTION = "Elasticsearch request duration."

SEARCH_ENDPOINTS = frozenset(
    {
        "search",
        "async_search.submit",
        "msearch",
        "eql.search",
        "terms_enum",
        "search_template",
        "msearch_template",
        "render_search_template",
    }
)


@dataclass
class InstrumentationContext:
    """Per-request state, created by ``start`` and released by ``close``."""

    endpoint: str
    started: float = 0.0
    span: Any = None
    token: Any = None
    status_code: int = 0
    error: BaseException | None = None

    def failed(self) -> bool:
        return self.error is not None or self.status_code >= 400


@runtime_checkable
class Instrumentation(Protocol):
    def start(self, endpoint: str) -> InstrumentationContext: ...

    def close(self, ictx: InstrumentationContext) -> None: ...

    def record_path_part(self, ictx: InstrumentationContext, name: str, value: str) -> None: ...

    def record_request_body(self, ictx: InstrumentationContext, endpoint: str, body: Any) -> Any: ...

    def before_request(self, ictx: InstrumentationContext, request, endpoint: str) -> None: ...

    def after_request(self, ictx: InstrumentationContext, request, system: str, endpoint: str) -> None: ...

    def after_response(self, ictx: InstrumentationContext, response) -> None: ...

    def record_error(self, ictx: InstrumentationContext, error: BaseException) -> None: ...


class OtelInstrumentation:
    """Tracing instrumentation following the OpenTelemetry database conventions."""

    def __init__(self, version: str = "", capture_search_body: bool = False, tracer_provider=None):
        self.tracer = trace.get_tracer(INSTRUMENTATION_SCOPE, version or None, tracer_provider=tracer_provider)
        self.capture_search_body = capture_search_body

    def start(self, endpoint: str) -> InstrumentationContext:
        span = self.tracer.start_span(
            endpoint,
            kind=SpanKind.CLIENT,
            attributes={"db.system": "elasticsearch", "db.operation": endpoint},
        )
        token = otel_context.attach(trace.set_span_in_context(span))
        return InstrumentationContext(endpoint=endpoint, started=time.monotonic(), span=span, token=token)

    def close(self, ictx: InstrumentationContext) -> None:
        if ictx.token is not None:
            otel_context.detach(ictx.token)
            ictx.token = None
        if ictx.span is not None:
            ictx.span.end()

    def record_path_part(self, ictx: InstrumentationContext, name: str, value: str) -> None:
        if ictx.span is not None:
            ictx.span.set_attribute(f"db.elasticsearch.path_parts.{name}", value)

    def record_request_body(self, ictx: InstrumentationContext, endpoint: str, body: Any) -> Any:
        """Record search bodies as ``db.statement``; returns a replacement body or None."""
        if not self.capture_search_body or endpoint not in SEARCH_ENDPOINTS or ictx.span is None:
            return None
        if isinstance(body, bytes):
            ictx.span.set_attribute("db.statement", body.decode("utf-8", errors="replace"))
            return None
        if isinstance(body, str):
            ictx.span.set_attribute("db.statement", body)
            return None
        data = body.read()
        if isinstance(data, str):
            data = data.encode("utf-8")
        ictx.span.set_attribute("db.statement", data.decode("utf-8", errors="replace"))
        return io.BytesIO(data)

    def before_request(self, ictx: InstrumentationContext, request, endpoint: str) -> None:
        if ictx.span is not None:
            ictx.span.set_attribute("http.request.method", request.method)

    def after_request(self, ictx: InstrumentationContext, request, system: str, endpoint: str) -> None:
        """URL attributes, once the transport has resolved the node address."""
        if ictx.span is None:
            return
        url = getattr(request, "url", "") or ""
        ictx.span.set_attribute("url.full", url)
        parts = urlsplit(url)
        if parts.hostname:
            ictx.span.set_attribute("server.address", parts.hostname)
        if parts.port:
            ictx.span.set_attribute("server.port", parts.port)

    def after_response(self, ictx: InstrumentationContext, response) -> None:
        if response is None:
            return
        ictx.status_code = response.status_code
        if ictx.span is None:
            return
        ictx.span.set_attribute("http.response.status_code", response.status_code)
        headers = response.headers or {}
        cluster = headers.get("X-Found-Handling-Cluster")
        if cluster:
            ictx.span.set_attribute("db.elasticsearch.cluster.name", cluster)
        node = headers.get("X-Found-Handling-Instance")
        if node:
            ictx.span.set_attribute("db.elasticsearch.node.name", node)

    def record_error(self, ictx: InstrumentationContext, error: BaseException) -> None:
        ictx.error = error
        if ictx.span is not None:
            ictx.span.record_exception(error)
            ictx.span.set_status(Status(StatusCode.ERROR, str(error)))


class MetricInstrumentation:
    """Records ``es.request.duration`` and delegates everything else."""

    def __init__(self, delegate: Instrumentation, version: str = "", meter_provider=None):
        self.delegate = delegate
        meter = metrics.get_meter(INSTRUMENTATION_SCOPE, version, meter_provider=meter_provider)
        self.histogram = meter.create_histogram(METRIC_NAME, unit="ms", description=METRIC_DESCRIPTION)

    def start(self, endpoint: str) -> InstrumentationContext:
        ictx = self.delegate.start(endpoint)
        ictx.started = time.monotonic()
        ictx.endpoint = endpoint
        return ictx

    def close(self, ictx: InstrumentationContext) -> None:
        # recorded before the span ends
        if ictx.started:
            elapsed_ms = int((time.monotonic() - ictx.started) * 1000)
            self.histogram.record(
                elapsed_ms,
                attributes={
                    "client": PACKAGE_NAME,
                    "endpoint": ictx.endpoint,
                    "status": "failed" if ictx.failed() else "succeeded",
                },
            )
            ictx.started = 0.0
        self.delegate.close(ictx)

    def record_path_part(self, ictx: InstrumentationContext, name: str, value: str) -> None:
        self.delegate.record_path_part(ictx, name, value)

    def record_request_body(self, ictx: InstrumentationContext, endpoint: str, body: Any) -> Any:
        return self.delegate.record_request_body(ictx, endpoint, body)

    def before_request(self, ictx: InstrumentationContext, request, endpoint: str) -> None:
        self.delegate.before_request(ictx, request, endpoint)

    def after_request(self, ictx: InstrumentationContext, request, system: str, endpoint: str) -> None:
        self.delegate.after_request(ictx, request, system, endpoint)

    def after_response(self, ictx: InstrumentationContext, response) -> None:
        if response is not None:
            ictx.status_code = response.status_code
        self.delegate.after_response(ictx, response)

    def record_error(self, ictx: InstrumentationContext, error: BaseException) -> None:
        ictx.error = error
        self.delegate.record_error(ictx, error)


def new_instrumentation(
    version: str = "",
    capture_search_body: bool = False,
    tracer_provider=None,
    meter_provider=None,
) -> MetricInstrumentation:
    """Tracing plus duration metrics, the default for ``Client.from_config``."""
    tracing = OtelInstrumentation(version, capture_search_body=capture_search_body, tracer_provider=tracer_provider)
    logger.debug("Elasticsearch instrumentation enabled (search bodies captured: %s)", capture_search_body)
    return MetricInstrumentation(tracing, version, meter_provider=meter_provider)
