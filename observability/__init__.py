"""Observability infrastructure for logging and tracing.

setup_logging:
    Console and rotating file handlers with run-id context.

setup_tracing:
    Initialize Logfire with PydanticAI instrumentation.

trace_operation:
    Context manager for per-stage spans.

PipelineTracer:
    Stage statistics for one digest run.

Enable tracing via configuration:
    ENABLE_LOGFIRE=true
    LOGFIRE_TOKEN=your-token  # Optional
"""

from observability.logging import clear_context, set_run_context, setup_logging
from observability.tracing import PipelineTracer, TracingContext, setup_tracing, trace_operation

__all__ = [
    "setup_logging",
    "set_run_context",
    "clear_context",
    "setup_tracing",
    "trace_operation",
    "TracingContext",
    "PipelineTracer",
]
