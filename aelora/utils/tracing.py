"""OpenTelemetry tracing support.

Tracing is opt-in: set ``AELORA_OTEL_ENABLED=true`` and configure a tracer provider
(for example with ``opentelemetry-sdk``) before the runtime starts. Otherwise a
no-op tracer is used and spans cost nothing.
"""

import logging
import os

from opentelemetry import trace
from opentelemetry.trace import Span, Status, StatusCode

logger = logging.getLogger(__name__)

_tracer = None


def get_tracer() -> trace.Tracer:
    """Get or create the tracer instance."""
    global _tracer
    if _tracer is None:
        if os.getenv("AELORA_OTEL_ENABLED", "false").lower() == "true":
            service_name = os.getenv("AELORA_OTEL_SERVICE_NAME", "aelora")
            _tracer = trace.get_tracer(service_name)
            logger.info("OpenTelemetry tracing enabled for %s", service_name)
        else:
            _tracer = trace.NoOpTracer()
    return _tracer


def mark_error(span: Span, error: BaseException) -> None:
    """Record an exception on a span and set its status to ERROR."""
    span.record_exception(error)
    span.set_status(Status(StatusCode.ERROR, str(error)))
