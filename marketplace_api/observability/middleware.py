"""
Observability Middleware

Instruments the Flask app with OpenTelemetry and writes one structured log
record per request, tagged with the acting account and the moderation
resource the route targeted.
"""

import time
import logging
from flask import Flask, Response, request, g
from opentelemetry import trace
from opentelemetry.instrumentation.flask import FlaskInstrumentor

logger = logging.getLogger(__name__)

# Route parameters worth promoting to span attributes and log fields
RESOURCE_PARAMS = {
    "business_id": "business.id",
    "request_id": "moderation_request.id",
}


def _resource_fields() -> dict:
    view_args = request.view_args or {}
    return {name: view_args[name] for name in RESOURCE_PARAMS if name in view_args}


def add_observability_middleware(app: Flask):
    """Add OpenTelemetry instrumentation and request logging to Flask app."""

    FlaskInstrumentor().instrument_app(app)

    @app.before_request
    def start_request_timer():
        g.start_time = time.monotonic()

    @app.after_request
    def log_request(response: Response) -> Response:
        duration_ms = round((time.monotonic() - g.get('start_time', time.monotonic())) * 1000, 2)
        resource = _resource_fields()
        user_context = g.get('user_context')

        span = trace.get_current_span()
        trace_id = None
        if span.is_recording():
            trace_id = format(span.get_span_context().trace_id, "032x")
            span.set_attribute("http.duration_ms", duration_ms)
            for name, value in resource.items():
                span.set_attribute(RESOURCE_PARAMS[name], value)
            if user_context:
                span.set_attributes({"enduser.id": user_context.user_id, "enduser.role": user_context.role})
            response.headers['X-Trace-Id'] = trace_id

        log = logger.warning if response.status_code >= 500 else logger.info
        log(
            "HTTP request completed",
            extra={
                "extra_fields": {
                    "method": request.method,
                    "path": request.path,
                    "status_code": response.status_code,
                    "duration_ms": duration_ms,
                    "user_id": user_context.user_id if user_context else None,
                    "trace_id": trace_id,
                    **resource
                }
            }
        )
        return response
