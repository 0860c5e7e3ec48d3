from __future__ import annotations

import inspect
import json
from collections.abc import Awaitable
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Callable, Generic, overload

from pydantic import TypeAdapter
from typing_extensions import TypeAlias, TypeVar

from .exceptions import ModelBehaviorError, UserError
from .items import RunItem, TResponseInputItem
from .run_context import RunContextWrapper, TContext
from .strict_schema import ensure_strict_json_schema
from .tracing.spans import SpanError
from .util import _error_tracing, _json, _transforms
from .util._types import MaybeAwaitable

if TYPE_CHECKING:
    from .agent import Agent


THandoffInput = TypeVar("THandoffInput", default=Any)

OnHandoffWithInput = Callable[[RunContextWrapper[Any], THandoffInput], Any]
OnHandoffWithoutInput = Callable[[RunContextWrapper[Any]], Any]


@dataclass(frozen=True)
class HandoffInputData:
    """The history a handoff's input filter gets to rewrite before the next agent sees it."""

    input_history: str | tuple[TResponseInputItem, ...]
    """What the run was started with."""

    pre_handoff_items: tuple[RunItem, ...]
    """Items from turns before the one that requested the handoff."""

    new_items: tuple[RunItem, ...]
    """Items from the handoff turn, ending with the handoff call and its transfer output."""

    run_context: RunContextWrapper[Any] | None = None

    def clone(self, **kwargs: Any) -> HandoffInputData:
        """Copy with some fields replaced, e.g. `data.clone(new_items=())`."""
        return replace(self, **kwargs)


HandoffInputFilter: TypeAlias = Callable[[HandoffInputData], MaybeAwaitable[HandoffInputData]]


@dataclass
class Handoff(Generic[TContext]):
    """Lets one agent pass the conversation to another.

    The model sees a handoff as a tool named `tool_name`. Calling it makes the target agent the
    current agent from the next turn on; a triage agent routing to billing or refunds specialists
    is the usual shape.
    """

    tool_name: str
    tool_description: str

    input_json_schema: dict[str, Any]
    """Schema of the arguments the model passes when it calls the handoff. Empty when the handoff
    takes no input.
    """

    on_invoke_handoff: Callable[[RunContextWrapper[Any], str], Awaitable[Agent[TContext]]]
    """Called with the run context and the raw JSON arguments (empty string if none); returns the
    agent to switch to.
    """

    agent_name: str

    input_filter: HandoffInputFilter | None = None
    """Rewrites the history the receiving agent starts from. Without one it gets everything,
    including the handoff call and its output.

    Items the filter drops are only hidden from the next agent. In a streamed run they have
    already been emitted and nothing is emitted for the filter's changes.
    """

    strict_json_schema: bool = True

    def get_transfer_message(self, agent: Agent[Any]) -> str:
        return json.dumps({"assistant": agent.name})

    @classmethod
    def default_tool_name(cls, agent: Agent[Any]) -> str:
        return _transforms.transform_string_function_style(f"transfer_to_{agent.name}")

    @classmethod
    def default_tool_description(cls, agent: Agent[Any]) -> str:
        return (
            f"Handoff to the {agent.name} agent to handle the request. "
            f"{agent.handoff_description or ''}"
        )


def _check_arity(callback: Callable[..., Any], expected: int, message: str) -> None:
    if len(inspect.signature(callback).parameters) != expected:
        raise UserError(message)


async def _call_maybe_async(callback: Callable[..., Any], *args: Any) -> None:
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


@overload
def handoff(
    agent: Agent[TContext],
    *,
    tool_name_override: str | None = None,
    tool_description_override: str | None = None,
    input_filter: HandoffInputFilter | None = None,
) -> Handoff[TContext]: ...


@overload
def handoff(
    agent: Agent[TContext],
    *,
    on_handoff: OnHandoffWithInput[THandoffInput],
    input_type: type[THandoffInput],
    tool_description_override: str | None = None,
    tool_name_override: str | None = None,
    input_filter: HandoffInputFilter | None = None,
) -> Handoff[TContext]: ...


@overload
def handoff(
    agent: Agent[TContext],
    *,
    on_handoff: OnHandoffWithoutInput,
    tool_description_override: str | None = None,
    tool_name_override: str | None = None,
    input_filter: HandoffInputFilter | None = None,
) -> Handoff[TContext]: ...


def handoff(
    agent: Agent[TContext],
    tool_name_override: str | None = None,
    tool_description_override: str | None = None,
    on_handoff: OnHandoffWithInput[THandoffInput] | OnHandoffWithoutInput | None = None,
    input_type: type[THandoffInput] | None = None,
    input_filter: HandoffInputFilter | None = None,
) -> Handoff[TContext]:
    """Builds a `Handoff` that transfers control to `agent`.

    Args:
        agent: The agent that takes over.
        tool_name_override: Tool name to use instead of `transfer_to_<agent name>`.
        tool_description_override: Tool description to use instead of the default.
        on_handoff: Callback run when the model invokes the handoff. Takes the run context, plus
            the validated input when `input_type` is given. May be sync or async.
        input_type: Type the model's arguments are validated into before `on_handoff` sees them.
        input_filter: Rewrites the history the receiving agent starts from.
    """
    type_adapter: TypeAdapter[Any] | None = None
    input_json_schema: dict[str, Any] = {}

    if input_type is not None:
        if on_handoff is None:
            raise UserError("input_type requires an on_handoff callback to receive the input")
        _check_arity(on_handoff, 2, "on_handoff must take two arguments: context and input")
        type_adapter = TypeAdapter(input_type)
        input_json_schema = type_adapter.json_schema()
    elif on_handoff is not None:
        _check_arity(on_handoff, 1, "on_handoff must take one argument: context")

    async def _invoke_handoff(
        ctx: RunContextWrapper[Any], input_json: str | None = None
    ) -> Agent[TContext]:
        if type_adapter is None:
            if on_handoff is not None:
                await _call_maybe_async(on_handoff, ctx)
            return agent

        if input_json is None:
            _error_tracing.attach_error_to_current_span(
                SpanError(
                    message="Handoff function expected non-null input, but got None",
                    data={"details": "input_json is None"},
                )
            )
            raise ModelBehaviorError("Handoff function expected non-null input, but got None")

        validated = _json.validate_json(json_str=input_json, type_adapter=type_adapter)
        await _call_maybe_async(on_handoff, ctx, validated)
        return agent

    return Handoff(
        tool_name=tool_name_override or Handoff.default_tool_name(agent),
        tool_description=tool_description_override or Handoff.default_tool_description(agent),
        # Always strict, whatever the input type declares.
        input_json_schema=ensure_strict_json_schema(input_json_schema),
        on_invoke_handoff=_invoke_handoff,
        input_filter=input_filter,
        agent_name=agent.name,
    )
