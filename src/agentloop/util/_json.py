from __future__ import annotations

from pydantic import TypeAdapter, ValidationError
from typing_extensions import TypeVar

from ..exceptions import ModelBehaviorError
from ..tracing import SpanError
from ._error_tracing import attach_error_to_current_span

T = TypeVar("T")


def validate_json(json_str: str, type_adapter: TypeAdapter[T]) -> T:
    """Parses model-produced JSON into `T`, turning validation failures into ModelBehaviorError."""
    try:
        return type_adapter.validate_json(json_str)
    except ValidationError as e:
        attach_error_to_current_span(SpanError(message="Invalid JSON provided", data={}))
        raise ModelBehaviorError(
            f"Model output {json_str!r} does not match {type_adapter}: {e}"
        ) from e
