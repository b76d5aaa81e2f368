"""
Observability Middleware

Request timing, span enrichment and the request-completion log of the PQRS
case tracker API.
"""

import time
import logging
from flask import Flask, request, g
from opentelemetry import trace
from opentelemetry.instrumentation.flask import FlaskInstrumentor

logger = logging.getLogger(__name__)

TRACE_HEADER = 'X-Trace-Id'


def _case_id() -> str:
    """Case id of the matched route, empty outside single-case endpoints."""
    return (request.view_args or {}).get('case_id', '')


def add_observability_middleware(app: Flask, instrument: bool = True):
    """
    Hook tracing and request logging into the app.

    ``instrument`` switches Flask auto-instrumentation; the request log is
    always written.
    """
    if instrument:
        FlaskInstrumentor().instrument_app(app)

    @app.before_request
    def start_request_timer():
        g.start_time = time.perf_counter()
        g.trace_id = None

        span = trace.get_current_span()
        if not span.is_recording():
            return

        g.trace_id = format(span.get_span_context().trace_id, "032x")
        attributes = {
            "http.route": request.url_rule.rule if request.url_rule else request.path,
            "http.user_agent": request.headers.get("User-Agent", "")
        }
        if _case_id():
            attributes["case.id"] = _case_id()
        span.set_attributes(attributes)

    @app.after_request
    def log_request(response):
        duration_ms = round((time.perf_counter() - g.get('start_time', time.perf_counter())) * 1000, 2)

        span = trace.get_current_span()
        if span.is_recording():
            span.set_attributes({
                "http.status_code": response.status_code,
                "http.duration_ms": duration_ms
            })

        log = logger.warning if response.status_code >= 500 else logger.info
        log(
            "HTTP request completed",
            extra={
                "extra_fields": {
                    "method": request.method,
                    "path": request.path,
                    "endpoint": request.endpoint,
                    "case_id": _case_id() or None,
                    "status_code": response.status_code,
                    "duration_ms": duration_ms,
                    "trace_id": g.get('trace_id'),
                    "request_size": request.content_length or 0
                }
            }
        )

        if g.get('trace_id'):
            response.headers[TRACE_HEADER] = g.trace_id

        return response
