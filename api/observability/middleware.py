"""
Observability Middleware

Flask middleware adding OpenTelemetry instrumentation and request logging,
tagging spans with the satellite resource a request addresses.
"""

import time
import logging
from flask import Flask, request, g
from opentelemetry import trace
from opentelemetry.instrumentation.flask import FlaskInstrumentor


# Path parameters copied onto the request span
RESOURCE_PARAMS = ("terminal_id", "message_id", "alert_id", "satellite_id", "station_id")


def add_observability_middleware(app: Flask):
    """Add OpenTelemetry instrumentation and request logging to Flask app."""

    FlaskInstrumentor().instrument_app(app)

    logger = logging.getLogger(__name__)

    @app.before_request
    def before_request():
        g.start_time = time.time()
        g.trace_id = None

        span = trace.get_current_span()
        if span.is_recording():
            span_context = span.get_span_context()
            g.trace_id = format(span_context.trace_id, "032x")

            attributes = {
                "http.method": request.method,
                "http.target": request.path,
                "http.user_agent": request.headers.get("User-Agent", "")
            }
            for name, value in (request.view_args or {}).items():
                if name in RESOURCE_PARAMS:
                    attributes[f"satcom.{name}"] = str(value)
            span.set_attributes(attributes)

    @app.after_request
    def after_request(response):
        """Log request completion and add response attributes to span."""
        duration_ms = round((time.time() - g.get('start_time', time.time())) * 1000, 2)

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
                    "status_code": response.status_code,
                    "duration_ms": duration_ms,
                    "trace_id": g.get('trace_id')
                }
            }
        )

        if g.get('trace_id'):
            response.headers['X-Trace-Id'] = g.trace_id

        return response
