from __future__ import annotations

import dataclasses
import inspect
from collections.abc import Awaitable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Generic, Literal

from typing_extensions import NotRequired, TypeAlias, TypedDict

from .guardrail import InputGuardrail, OutputGuardrail
from .handoffs import Handoff
from .items import ItemHelpers
from .logger import logger
from .mcp import MCPUtil
from .model_settings import ModelSettings
from .models.interface import Model
from .run_context import RunContextWrapper, TContext
from .tool import FunctionToolResult, Tool, function_tool
from .util import _transforms
from .util._types import MaybeAwaitable

if TYPE_CHECKING:
    from .lifecycle import AgentHooks
    from .mcp import MCPServer
    from .result import RunResult


@dataclass
class ToolsToFinalOutputResult:
    is_final_output: bool
    """False sends the tool outputs back to the model for another turn."""

    final_output: Any | None = None
    """Required when `is_final_output` is True; must fit the agent's `output_type`."""


ToolsToFinalOutputFunction: TypeAlias = Callable[
    [RunContextWrapper[TContext], list[FunctionToolResult]],
    MaybeAwaitable[ToolsToFinalOutputResult],
]
"""Decides, from the function tool results of a turn, whether the run ends there."""


class StopAtTools(TypedDict):
    stop_at_tool_names: list[str]
    """Calling any of these ends the run with that tool's output."""


class MCPConfig(TypedDict):
    convert_schemas_to_strict: NotRequired[bool]
    """Try to make MCP tool schemas strict. Schemas that cannot be converted stay as they are.
    Off unless set.
    """


InstructionsFunction: TypeAlias = Callable[
    [RunContextWrapper[TContext], "Agent[TContext]"], MaybeAwaitable[str]
]

ToolUseBehavior: TypeAlias = (
    Literal["run_llm_again", "stop_on_first_tool"] | StopAtTools | ToolsToFinalOutputFunction
)


@dataclass
class Agent(Generic[TContext]):
    """A model plus everything a run needs to drive it: instructions, tools, handoffs, guardrails
    and the shape of its final output.

    `TContext` is the type of the user object passed to `Runner.run(context=...)`; tools, hooks,
    guardrails and dynamic instructions all receive it through a `RunContextWrapper`.

    Runs never mutate an agent. Derive variants with `clone()`.
    """

    name: str

    instructions: str | InstructionsFunction[TContext] | None = None
    """The system prompt. Either a fixed string, or a sync or async callable taking
    `(context, agent)` and returning the prompt for the current turn.
    """

    handoff_description: str | None = None
    """Tells other agents' models when to hand off to this one. Appended to the default handoff
    tool description.
    """

    handoffs: list[Agent[Any] | Handoff[TContext]] = field(default_factory=list)
    """Agents this one may pass the conversation to. Plain agents get a default `handoff()`."""

    model: str | Model | None = None
    """A `Model` instance, or a name the run's `ModelProvider` resolves."""

    model_settings: ModelSettings = field(default_factory=ModelSettings)

    tools: list[Tool] = field(default_factory=list)

    mcp_servers: list[MCPServer] = field(default_factory=list)
    """MCP servers whose tools are listed and offered on every turn of this agent.

    The caller owns these servers: connect them before the run and clean them up afterwards.
    """

    mcp_config: MCPConfig = field(default_factory=lambda: MCPConfig())

    input_guardrails: list[InputGuardrail[TContext]] = field(default_factory=list)
    """Checked against the run's input. Only the starting agent's guardrails run."""

    output_guardrails: list[OutputGuardrail[TContext]] = field(default_factory=list)
    """Checked against this agent's final output, if it is the one producing it."""

    output_type: type[Any] | None = None
    """Type the final output is validated into. None (or `str`) means free-form text."""

    hooks: AgentHooks[TContext] | None = None

    tool_use_behavior: ToolUseBehavior = "run_llm_again"
    """What happens after function tools run in a turn:

    - "run_llm_again": the outputs go back to the model, which answers in the next turn.
    - "stop_on_first_tool": the first tool's output is the final output.
    - `StopAtTools`: the run ends if a listed tool was called, with that tool's output.
    - a callable: gets the context and the turn's `FunctionToolResult`s and returns a
      `ToolsToFinalOutputResult`.

    Only function tools count. Provider-run tools always go back to the model.
    """

    reset_tool_choice: bool = True
    """Drop a forced `tool_choice` once this agent has used a tool, so a required tool cannot make
    the model loop on tool calls forever.
    """

    def clone(self, **kwargs: Any) -> Agent[TContext]:
        """Shallow copy with the given fields replaced, e.g. `agent.clone(name="other")`."""
        return dataclasses.replace(self, **kwargs)

    def as_tool(
        self,
        tool_name: str | None,
        tool_description: str | None,
        custom_output_extractor: Callable[[RunResult], Awaitable[str]] | None = None,
    ) -> Tool:
        """Wraps this agent in a function tool other agents can call.

        Unlike a handoff, the caller keeps control: the wrapped agent runs a nested run on the
        single string argument the model generates, not on the conversation, and its answer comes
        back as the tool output. By default that answer is the text of its message outputs;
        `custom_output_extractor` can derive something else from the nested `RunResult`.
        """

        @function_tool(
            name_override=tool_name or _transforms.transform_string_function_style(self.name),
            description_override=tool_description or "",
        )
        async def run_agent(context: RunContextWrapper, input: str) -> str:
            from .run import Runner

            result = await Runner.run(starting_agent=self, input=input, context=context.context)
            if custom_output_extractor is not None:
                return await custom_output_extractor(result)
            return ItemHelpers.text_message_outputs(result.new_items)

        return run_agent

    async def get_system_prompt(self, run_context: RunContextWrapper[TContext]) -> str | None:
        instructions = self.instructions
        if instructions is None or isinstance(instructions, str):
            return instructions
        if not callable(instructions):
            logger.error("Instructions must be a string or a function, got %s", instructions)
            return None

        prompt = instructions(run_context, self)
        if inspect.isawaitable(prompt):
            prompt = await prompt
        return prompt

    async def get_mcp_tools(self) -> list[Tool]:
        strict = self.mcp_config.get("convert_schemas_to_strict", False)
        return await MCPUtil.get_all_function_tools(self.mcp_servers, strict)

    async def get_all_tools(self) -> list[Tool]:
        """Local tools first, then whatever the MCP servers currently list."""
        return self.tools + await self.get_mcp_tools()
