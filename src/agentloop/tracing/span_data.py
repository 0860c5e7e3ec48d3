from __future__ import annotations

import abc
from collections.abc import Mapping, Sequence
from typing import Any, ClassVar


class SpanData(abc.ABC):
    """Payload of a span. Subclasses list their exported fields in `__slots__`."""

    __slots__ = ()
    span_type: ClassVar[str] = ""

    @property
    def type(self) -> str:
        return self.span_type

    def export(self) -> dict[str, Any]:
        exported: dict[str, Any] = {"type": self.type}
        for name in self.__slots__:
            exported[name] = getattr(self, name)
        return exported


class AgentSpanData(SpanData):
    __slots__ = ("name", "handoffs", "tools", "output_type")
    span_type = "agent"

    def __init__(
        self,
        name: str,
        handoffs: list[str] | None = None,
        tools: list[str] | None = None,
        output_type: str | None = None,
    ):
        self.name = name
        self.handoffs = handoffs
        self.tools = tools
        self.output_type = output_type


class FunctionSpanData(SpanData):
    """A tool invocation. `input` is the raw JSON arguments; `output` is stringified on export."""

    __slots__ = ("name", "input", "output", "mcp_data")
    span_type = "function"

    def __init__(
        self,
        name: str,
        input: str | None,
        output: Any | None,
        mcp_data: dict[str, Any] | None = None,
    ):
        self.name = name
        self.input = input
        self.output = output
        self.mcp_data = mcp_data

    def export(self) -> dict[str, Any]:
        exported = super().export()
        exported["output"] = str(self.output) if self.output else None
        return exported


class GenerationSpanData(SpanData):
    __slots__ = ("input", "output", "model", "model_config", "usage")
    span_type = "generation"

    def __init__(
        self,
        input: Sequence[Mapping[str, Any]] | None = None,
        output: Sequence[Mapping[str, Any]] | None = None,
        model: str | None = None,
        model_config: Mapping[str, Any] | None = None,
        usage: dict[str, Any] | None = None,
    ):
        self.input = input
        self.output = output
        self.model = model
        self.model_config = model_config
        self.usage = usage


class HandoffSpanData(SpanData):
    __slots__ = ("from_agent", "to_agent")
    span_type = "handoff"

    def __init__(self, from_agent: str | None, to_agent: str | None):
        self.from_agent = from_agent
        self.to_agent = to_agent


class CustomSpanData(SpanData):
    __slots__ = ("name", "data")
    span_type = "custom"

    def __init__(self, name: str, data: dict[str, Any]):
        self.name = name
        self.data = data


class GuardrailSpanData(SpanData):
    __slots__ = ("name", "triggered")
    span_type = "guardrail"

    def __init__(self, name: str, triggered: bool = False):
        self.name = name
        self.triggered = triggered


class MCPListToolsSpanData(SpanData):
    __slots__ = ("server", "result")
    span_type = "mcp_tools"

    def __init__(self, server: str | None = None, result: list[str] | None = None):
        self.server = server
        self.result = result
