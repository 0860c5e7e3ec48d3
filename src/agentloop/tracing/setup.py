from __future__ import annotations

import os
import threading
from typing import Any

from ..logger import logger
from . import util
from .processor_interface import TracingProcessor
from .scope import Scope
from .spans import NoOpSpan, Span, SpanImpl, TSpanData
from .traces import NoOpTrace, Trace, TraceImpl


class SynchronousMultiTracingProcessor(TracingProcessor):
    """Fans every trace and span event out to the registered processors, in registration order."""

    def __init__(self):
        # Replaced wholesale under the lock; readers iterate a snapshot.
        self._processors: tuple[TracingProcessor, ...] = ()
        self._lock = threading.Lock()

    def add_tracing_processor(self, tracing_processor: TracingProcessor):
        with self._lock:
            self._processors = (*self._processors, tracing_processor)

    def set_processors(self, processors: list[TracingProcessor]):
        with self._lock:
            self._processors = tuple(processors)

    def _each(self, method: str, *args: Any) -> None:
        for processor in self._processors:
            getattr(processor, method)(*args)

    def on_trace_start(self, trace: Trace) -> None:
        self._each("on_trace_start", trace)

    def on_trace_end(self, trace: Trace) -> None:
        self._each("on_trace_end", trace)

    def on_span_start(self, span: Span[Any]) -> None:
        self._each("on_span_start", span)

    def on_span_end(self, span: Span[Any]) -> None:
        self._each("on_span_end", span)

    def shutdown(self) -> None:
        logger.debug("Shutting down %d trace processors", len(self._processors))
        self._each("shutdown")

    def force_flush(self):
        self._each("force_flush")


def _env_disabled() -> bool:
    return os.environ.get("AGENTLOOP_DISABLE_TRACING", "false").lower() in ("true", "1")


class TraceProvider:
    """Creates traces and spans, or no-op stand-ins when tracing is off."""

    def __init__(self):
        self._multi_processor = SynchronousMultiTracingProcessor()
        self._disabled = _env_disabled()

    def register_processor(self, processor: TracingProcessor):
        self._multi_processor.add_tracing_processor(processor)

    def set_processors(self, processors: list[TracingProcessor]):
        self._multi_processor.set_processors(processors)

    def get_current_trace(self) -> Trace | None:
        return Scope.get_current_trace()

    def get_current_span(self) -> Span[Any] | None:
        return Scope.get_current_span()

    def set_disabled(self, disabled: bool) -> None:
        self._disabled = disabled

    def create_trace(
        self,
        name: str,
        trace_id: str | None = None,
        group_id: str | None = None,
        metadata: dict[str, Any] | None = None,
        disabled: bool = False,
    ) -> Trace:
        if self._disabled or disabled:
            logger.debug("Tracing disabled, trace %s will not be recorded", name)
            return NoOpTrace()

        trace_id = trace_id or util.gen_trace_id()
        logger.debug("Creating trace %s (%s)", name, trace_id)
        return TraceImpl(
            name=name,
            trace_id=trace_id,
            group_id=group_id,
            metadata=metadata,
            processor=self._multi_processor,
        )

    def _parent_ids(self, parent: Trace | Span[Any] | None) -> tuple[str, str | None] | None:
        """Returns `(trace_id, parent_span_id)` for a new span, or None if it must be a no-op."""
        if isinstance(parent, NoOpTrace) or isinstance(parent, NoOpSpan):
            logger.debug("Parent %s is no-op, span will not be recorded", parent)
            return None
        if isinstance(parent, Trace):
            return parent.trace_id, None
        if isinstance(parent, Span):
            return parent.trace_id, parent.span_id

        current_trace = Scope.get_current_trace()
        current_span = Scope.get_current_span()
        if current_trace is None:
            logger.error("No active trace; open one with `trace()` before creating spans.")
            return None
        if isinstance(current_trace, NoOpTrace) or isinstance(current_span, NoOpSpan):
            return None
        return current_trace.trace_id, current_span.span_id if current_span else None

    def create_span(
        self,
        span_data: TSpanData,
        span_id: str | None = None,
        parent: Trace | Span[Any] | None = None,
        disabled: bool = False,
    ) -> Span[TSpanData]:
        """Creates a span under `parent`, or under the current span or trace when none is given."""
        if self._disabled or disabled:
            return NoOpSpan(span_data)

        ids = self._parent_ids(parent)
        if ids is None:
            return NoOpSpan(span_data)

        trace_id, parent_id = ids
        logger.debug("Creating span %s", span_data)
        return SpanImpl(
            trace_id=trace_id,
            span_id=span_id,
            parent_id=parent_id,
            processor=self._multi_processor,
            span_data=span_data,
        )

    def shutdown(self) -> None:
        if self._disabled:
            return
        logger.debug("Shutting down trace provider")
        try:
            self._multi_processor.shutdown()
        except Exception as e:
            logger.error("Error shutting down trace provider: %s", e)


GLOBAL_TRACE_PROVIDER = TraceProvider()
