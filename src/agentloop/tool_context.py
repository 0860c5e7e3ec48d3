from dataclasses import dataclass, fields
from typing import Any

from .run_context import RunContextWrapper, TContext


@dataclass
class ToolContext(RunContextWrapper[TContext]):
    """Run context given to a function tool, plus which call it is serving.

    Shares `context` and `usage` with the run it came from.
    """

    tool_name: str = ""
    tool_call_id: str = ""

    def __post_init__(self) -> None:
        # Defaults exist only because the base fields have them.
        for name in ("tool_name", "tool_call_id"):
            if not getattr(self, name):
                raise ValueError(f"{name} must be passed to ToolContext")

    @classmethod
    def from_agent_context(
        cls, context: RunContextWrapper[TContext], tool_name: str, tool_call_id: str
    ) -> "ToolContext[TContext]":
        shared: dict[str, Any] = {
            f.name: getattr(context, f.name) for f in fields(RunContextWrapper) if f.init
        }
        return cls(tool_name=tool_name, tool_call_id=tool_call_id, **shared)
