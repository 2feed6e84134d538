"""
OpenTelemetry Configuration

Sets up distributed tracing and structured logging for the S.O.S satellite
communications API. Log records carry their ``extra_fields`` and the active
trace and span ids so satellite events can be followed across both.
"""

import json
import logging
import os
from datetime import datetime, timezone

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased


SERVICE_NAME = 'sos-satcom-api'

SAMPLING_RATIOS = {
    'production': 0.1,
    'staging': 0.5,
}

LOG_LEVELS = {
    'production': logging.WARNING,
    'staging': logging.INFO,
    'development': logging.INFO,
    'test': logging.WARNING,
}


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, with extra fields and trace correlation."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        span_context = trace.get_current_span().get_span_context()
        if span_context.is_valid:
            entry["trace_id"] = format(span_context.trace_id, "032x")
            entry["span_id"] = format(span_context.span_id, "016x")

        extra_fields = getattr(record, "extra_fields", None)
        if extra_fields:
            entry.update(extra_fields)

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def setup_observability():
    """Initialize logging, then tracing when OTEL_ENABLED is set."""
    environment = os.getenv('ENVIRONMENT', 'development')
    otel_enabled = os.getenv('OTEL_ENABLED', 'true').lower() == 'true'

    setup_structured_logging(environment)

    if not otel_enabled:
        # No tracer provider; the API falls back to non-recording spans
        return

    tracer_provider = TracerProvider(
        sampler=TraceIdRatioBased(SAMPLING_RATIOS.get(environment, 1.0)),
        resource=Resource.create({
            "service.name": SERVICE_NAME,
            "service.version": os.getenv('SERVICE_VERSION', '1.0.0'),
            "deployment.environment": environment
        })
    )

    otlp_endpoint = os.getenv('OTEL_EXPORTER_OTLP_ENDPOINT')
    if otlp_endpoint:
        api_key = os.getenv('OTEL_API_KEY')
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else None
        tracer_provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint, headers=headers), max_export_batch_size=512)
        )
    elif environment == 'development' and os.getenv('OTEL_CONSOLE_EXPORT', 'false').lower() == 'true':
        tracer_provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(tracer_provider)


def setup_structured_logging(environment: str):
    """Route root logging through the structured formatter."""
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())

    logging.basicConfig(level=LOG_LEVELS.get(environment, logging.INFO), handlers=[handler])

    if environment == 'production':
        # Satellite state changes are business events
        logging.getLogger('services').setLevel(logging.INFO)
        logging.getLogger('pika').setLevel(logging.ERROR)
    elif environment == 'development':
        logging.getLogger('services').setLevel(logging.DEBUG)
        logging.getLogger('pika').setLevel(logging.WARNING)
