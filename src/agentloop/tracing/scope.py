from __future__ import annotations

import contextvars
from typing import TYPE_CHECKING, Any, TypeVar

from ..logger import logger

if TYPE_CHECKING:
    from .spans import Span
    from .traces import Trace

T = TypeVar("T")

_current_span: contextvars.ContextVar[Span[Any] | None] = contextvars.ContextVar(
    "current_span", default=None
)
_current_trace: contextvars.ContextVar[Trace | None] = contextvars.ContextVar(
    "current_trace", default=None
)


def _reset(var: contextvars.ContextVar[T], token: contextvars.Token[T], fallback: T) -> None:
    try:
        var.reset(token)
    except ValueError:
        # Token from another Context: started in one task, finished in another.
        logger.debug("%s token belongs to another context, restoring parent", var.name)
        var.set(fallback)


class Scope:
    """The current span and trace, tracked per asyncio task through contextvars."""

    @classmethod
    def get_current_span(cls) -> Span[Any] | None:
        return _current_span.get()

    @classmethod
    def set_current_span(cls, span: Span[Any] | None) -> contextvars.Token[Span[Any] | None]:
        return _current_span.set(span)

    @classmethod
    def reset_current_span(
        cls,
        token: contextvars.Token[Span[Any] | None],
        prev_span: Span[Any] | None = None,
    ) -> None:
        _reset(_current_span, token, prev_span)

    @classmethod
    def get_current_trace(cls) -> Trace | None:
        return _current_trace.get()

    @classmethod
    def set_current_trace(cls, trace: Trace | None) -> contextvars.Token[Trace | None]:
        logger.debug("Current trace is now %s", trace.trace_id if trace else None)
        return _current_trace.set(trace)

    @classmethod
    def reset_current_trace(
        cls,
        token: contextvars.Token[Trace | None],
        prev_trace: Trace | None = None,
    ) -> None:
        _reset(_current_trace, token, prev_trace)
