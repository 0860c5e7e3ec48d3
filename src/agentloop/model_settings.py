from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Literal


@dataclass
class ModelSettings:
    """Optional sampling and tool-calling parameters passed to the model on every call.

    None means "let the provider decide". Providers ignore what they do not support.
    """

    temperature: float | None = None
    top_p: float | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None

    tool_choice: Literal["auto", "required", "none"] | str | None = None
    """"auto", "required", "none", or the name of one tool the model must call."""

    parallel_tool_calls: bool | None = None
    truncation: Literal["auto", "disabled"] | None = None

    max_tokens: int | None = None
    """Upper bound on output tokens per call."""

    def resolve(self, override: ModelSettings | None) -> ModelSettings:
        """Returns a copy where every field set on `override` replaces this one's value."""
        if override is None:
            return self
        changes = {}
        for f in fields(override):
            value = getattr(override, f.name)
            if value is not None:
                changes[f.name] = value
        return replace(self, **changes)
