"""Optional Logfire tracing for digest runs.

When ENABLE_LOGFIRE is set, every digest run becomes a ``digest_run`` span
with one child span per stage (find_user, load_definition,
gather_candidates, rank, summarize, build_digest, persist, notify).
PydanticAI calls are instrumented automatically, so LLM requests show up
under the stage that made them. Without Logfire, spans only log their
duration at DEBUG level.

Requirements:
    pip install logfire   (or the project's ``logfire`` extra)
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator

logger = logging.getLogger(__name__)


@dataclass
class TracingContext:
    """Process-wide tracing state."""
    enabled: bool = False
    service_name: str = "murmur"
    token: str = ""
    _logfire_configured: bool = field(default=False, init=False)


_context = TracingContext()


def setup_tracing(
    enabled: bool = False,
    service_name: str = "murmur",
    token: str = "",
) -> TracingContext:
    """Configure Logfire once per process.

    Falls back to log-only spans when logfire is missing or refuses the
    configuration.
    """
    _context.enabled = enabled
    _context.service_name = service_name
    _context.token = token

    if not enabled or _context._logfire_configured:
        return _context

    try:
        import logfire
    except ImportError:
        logger.warning("ENABLE_LOGFIRE is set but logfire is not installed, tracing disabled")
        _context.enabled = False
        return _context

    try:
        logfire.configure(service_name=service_name, token=token or None)
        logfire.instrument_pydantic_ai()
    except Exception as e:
        logger.error("Logfire configuration failed, tracing disabled | error=%s", e)
        _context.enabled = False
        return _context

    _context._logfire_configured = True
    logger.info("Logfire tracing enabled | service=%s", service_name)
    return _context


@contextmanager
def trace_operation(name: str, attributes: dict[str, Any] | None = None) -> Iterator[dict[str, Any]]:
    """Span around one stage.

    Yields a dict; whatever the stage puts in it is attached to the span
    when the stage finishes.
    """
    started = time.perf_counter()
    result_attrs: dict[str, Any] = {}
    try:
        if _context.enabled and _context._logfire_configured:
            import logfire

            with logfire.span(name, **(attributes or {})) as span:
                yield result_attrs
                for key, value in result_attrs.items():
                    span.set_attribute(key, value)
        else:
            yield result_attrs
    finally:
        logger.debug("Stage %s took %.2fs", name, time.perf_counter() - started)


class PipelineTracer:
    """Stage counters for one digest run, attached to the run span."""

    def __init__(self, context: TracingContext | None = None):
        self.context = context or _context
        self.stats: dict[str, Any] = {}

    @contextmanager
    def trace_run(self, digest_id: str, user_id: str) -> Iterator[None]:
        started = time.perf_counter()
        self.stats = {"digest_id": digest_id, "user_id": user_id}
        with trace_operation("digest_run", {"digest_id": digest_id, "user_id": user_id}) as attrs:
            try:
                yield
            finally:
                self.stats["duration_seconds"] = round(time.perf_counter() - started, 3)
                attrs.update(self.stats)

    def record_candidates(self, count: int) -> None:
        self.stats["candidates"] = count

    def record_selection(self, ranked: int, selected: int, topics: list[str]) -> None:
        self.stats["ranked"] = ranked
        self.stats["selected"] = selected
        self.stats["topics"] = ", ".join(topics)

    def record_summaries(self, summarized: int, retained: int) -> None:
        self.stats["summarized"] = summarized
        self.stats["retained"] = retained

    def record_outcome(self, job_state: str, notified: int, failed: int) -> None:
        self.stats["job_state"] = job_state
        self.stats["notifications_sent"] = notified
        self.stats["notifications_failed"] = failed

    def get_summary(self) -> dict[str, Any]:
        return self.stats.copy()
