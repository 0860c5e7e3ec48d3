from __future__ import annotations

import abc
import contextvars
from typing import Any

from ..logger import logger
from . import util
from .processor_interface import TracingProcessor
from .scope import Scope


class Trace(abc.ABC):
    """Root of a span tree; one per workflow, such as a single `Runner.run` call.

    Used as a context manager, a trace becomes the current trace for its block.
    """

    @abc.abstractmethod
    def __enter__(self) -> Trace:
        pass

    @abc.abstractmethod
    def __exit__(self, exc_type, exc_val, exc_tb):
        pass

    @abc.abstractmethod
    def start(self, mark_as_current: bool = False):
        pass

    @abc.abstractmethod
    def finish(self, reset_current: bool = False):
        pass

    @property
    @abc.abstractmethod
    def trace_id(self) -> str:
        pass

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """The workflow name."""

    @abc.abstractmethod
    def export(self) -> dict[str, Any] | None:
        """The payload handed to exporters; None for traces that are not recorded."""


class _ScopedTrace(Trace):
    """Shared current-trace bookkeeping for the concrete traces."""

    _prev_context_token: contextvars.Token[Trace | None] | None
    _started: bool

    def _make_current(self) -> None:
        self._prev_context_token = Scope.set_current_trace(self)

    def _restore_previous(self) -> None:
        if self._prev_context_token is not None:
            Scope.reset_current_trace(self._prev_context_token)
            self._prev_context_token = None

    def __enter__(self) -> Trace:
        if self._started:
            if not self._prev_context_token:
                logger.error("Trace %s entered after being started outside a with block", self)
            return self
        self.start(mark_as_current=True)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        # A generator closed in another context cannot reset this context's token.
        self.finish(reset_current=exc_type is not GeneratorExit)


class NoOpTrace(_ScopedTrace):
    """Stand-in returned while tracing is disabled. Still tracks the current trace, so spans
    created beneath it know to be no-ops too.
    """

    def __init__(self):
        self._started = False
        self._prev_context_token = None

    def start(self, mark_as_current: bool = False):
        self._started = True
        if mark_as_current:
            self._make_current()

    def finish(self, reset_current: bool = False):
        if reset_current:
            self._restore_previous()

    @property
    def trace_id(self) -> str:
        return "no-op"

    @property
    def name(self) -> str:
        return "no-op"

    def export(self) -> dict[str, Any] | None:
        return None


NO_OP_TRACE = NoOpTrace()


class TraceImpl(_ScopedTrace):
    __slots__ = (
        "_name",
        "_trace_id",
        "group_id",
        "metadata",
        "_prev_context_token",
        "_processor",
        "_started",
    )

    def __init__(
        self,
        name: str,
        trace_id: str | None,
        group_id: str | None,
        metadata: dict[str, Any] | None,
        processor: TracingProcessor,
    ):
        self._name = name
        self._trace_id = trace_id or util.gen_trace_id()
        self.group_id = group_id
        self.metadata = metadata
        self._processor = processor
        self._prev_context_token = None
        self._started = False

    @property
    def trace_id(self) -> str:
        return self._trace_id

    @property
    def name(self) -> str:
        return self._name

    def start(self, mark_as_current: bool = False):
        if self._started:
            return
        self._started = True
        self._processor.on_trace_start(self)
        if mark_as_current:
            self._make_current()

    def finish(self, reset_current: bool = False):
        if not self._started:
            return
        self._processor.on_trace_end(self)
        if reset_current:
            self._restore_previous()

    def export(self) -> dict[str, Any] | None:
        return {
            "object": "trace",
            "id": self.trace_id,
            "workflow_name": self.name,
            "group_id": self.group_id,
            "metadata": self.metadata,
        }
