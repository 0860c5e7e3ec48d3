from __future__ import annotations

import abc
import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, cast

from typing_extensions import TypeVar

from ._run_impl import QueueCompleteSentinel
from .agent import Agent
from .agent_output import AgentOutputSchema
from .exceptions import InputGuardrailTripwireTriggered
from .guardrail import InputGuardrailResult, OutputGuardrailResult
from .items import ItemHelpers, ModelResponse, RunItem, TResponseInputItem
from .logger import logger
from .stream_events import StreamEvent
from .tracing import Trace

T = TypeVar("T")


@dataclass
class RunResultBase(abc.ABC):
    input: str | list[TResponseInputItem]
    """The original input items i.e. the items before run() was called. This may be a mutated
    version of the input, if there are handoff input filters that mutate the input.
    """

    new_items: list[RunItem]
    """The new items generated during the agent run. These include things like new messages, tool
    calls and their outputs, etc.
    """

    raw_responses: list[ModelResponse]
    """The raw LLM responses generated by the model during the agent run."""

    final_output: Any
    """The output of the last agent."""

    input_guardrail_results: list[InputGuardrailResult]
    """Guardrail results for the input messages."""

    output_guardrail_results: list[OutputGuardrailResult]
    """Guardrail results for the final output of the agent."""

    @property
    @abc.abstractmethod
    def last_agent(self) -> Agent[Any]:
        """The last agent that was run."""

    def final_output_as(self, cls: type[T], raise_if_incorrect_type: bool = False) -> T:
        """A convenience method to cast the final output to a specific type. By default, the cast
        is only for the typechecker. If you set `raise_if_incorrect_type` to True, we'll raise a
        TypeError if the final output is not of the given type.

        Args:
            cls: The type to cast the final output to.
            raise_if_incorrect_type: If True, we'll raise a TypeError if the final output is not of
                the given type.

        Returns:
            The final output casted to the given type.
        """
        if raise_if_incorrect_type and not isinstance(self.final_output, cls):
            raise TypeError(f"Final output is not of type {cls.__name__}")

        return cast(T, self.final_output)

    def to_input_list(self) -> list[TResponseInputItem]:
        """Creates a new input list, merging the original input with all the new items generated."""
        original_items: list[TResponseInputItem] = ItemHelpers.input_to_new_input_list(self.input)
        new_items = [item.to_input_item() for item in self.new_items]

        return original_items + new_items


@dataclass
class RunResult(RunResultBase):
    _last_agent: Agent[Any]

    @property
    def last_agent(self) -> Agent[Any]:
        """The last agent that was run."""
        return self._last_agent

    def __str__(self) -> str:
        return (
            f"RunResult(last_agent={self._last_agent.name!r}, "
            f"new_items={len(self.new_items)}, final_output={self.final_output!r})"
        )


@dataclass
class RunResultStreaming(RunResultBase):
    """The result of an agent run in streaming mode. You can use the `stream_events` method to
    receive semantic events as they are generated.

    The streaming method never raises. If the run fails (max turns exceeded, a guardrail tripwire,
    a model or tool error), the exception is stored on `error`, the event stream ends, and you can
    call `raise_for_error()` to re-raise it.
    """

    current_agent: Agent[Any]
    """The current agent that is running."""

    current_turn: int
    """The current turn number."""

    max_turns: int
    """The maximum number of turns the agent can run for."""

    final_output: Any
    """The final output of the agent. This is None until the agent has finished running."""

    _current_agent_output_schema: AgentOutputSchema | None = field(repr=False)

    _trace: Trace | None = field(repr=False)

    is_complete: bool = False
    """Whether the agent has finished running."""

    error: Exception | None = None
    """The exception that ended the run, if any. Check this after `stream_events()` finishes."""

    # Queues that the background run_loop writes to
    _event_queue: asyncio.Queue[StreamEvent | QueueCompleteSentinel] = field(
        default_factory=asyncio.Queue, repr=False
    )
    _input_guardrail_queue: asyncio.Queue[InputGuardrailResult | QueueCompleteSentinel] = field(
        default_factory=asyncio.Queue, repr=False
    )

    # Store the asyncio tasks that we're waiting on
    _run_impl_task: asyncio.Task[Any] | None = field(default=None, repr=False)

    @property
    def last_agent(self) -> Agent[Any]:
        """The last agent that was run. Updates as the agent run progresses, so the true last agent
        is only available after the agent run is complete.
        """
        return self.current_agent

    async def stream_events(self) -> AsyncIterator[StreamEvent]:
        """Stream deltas for new items as they are generated. We're using the types from the
        OpenAI Responses API, so these are semantic events: each event has a `type` field that
        describes the type of the event, along with the data for that event.

        The iteration always ends once the run finishes, successfully or not. Check `error` (or
        call `raise_for_error()`) afterwards to find out whether the run failed.
        """
        while True:
            item = await self._event_queue.get()

            if isinstance(item, QueueCompleteSentinel):
                self._event_queue.task_done()
                break

            yield item
            self._event_queue.task_done()

        if self._run_impl_task and self._run_impl_task.done():
            if not self._run_impl_task.cancelled() and self._run_impl_task.exception():
                exc = self._run_impl_task.exception()
                if self.error is None and isinstance(exc, Exception):
                    self.error = exc

        self._drain_input_guardrail_queue()
        self._cleanup_tasks()

        if self.error is not None:
            logger.debug("Streamed run ended with error: %s", self.error)

    def raise_for_error(self) -> None:
        """Re-raises the exception that ended the run, if there was one."""
        if self.error is not None:
            raise self.error

    def _record_error(self, exc: Exception) -> None:
        if self.error is None:
            self.error = exc
        if isinstance(exc, InputGuardrailTripwireTriggered):
            # The tripping result belongs in the results list even though the run was aborted
            if exc.guardrail_result not in self.input_guardrail_results:
                self.input_guardrail_results.append(exc.guardrail_result)
        self.is_complete = True

    def _drain_input_guardrail_queue(self) -> None:
        while not self._input_guardrail_queue.empty():
            result = self._input_guardrail_queue.get_nowait()
            if isinstance(result, QueueCompleteSentinel):
                continue
            if result not in self.input_guardrail_results:
                self.input_guardrail_results.append(result)

    def _cleanup_tasks(self) -> None:
        if self._run_impl_task and not self._run_impl_task.done():
            self._run_impl_task.cancel()

    def __str__(self) -> str:
        return (
            f"RunResultStreaming(current_agent={self.current_agent.name!r}, "
            f"current_turn={self.current_turn}, max_turns={self.max_turns}, "
            f"is_complete={self.is_complete}, error={self.error!r})"
        )

