from __future__ import annotations

import asyncio
import dataclasses
import inspect
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, TypeVar, Union, cast

from openai.types.responses import (
    ResponseComputerToolCall,
    ResponseFileSearchToolCall,
    ResponseFunctionToolCall,
    ResponseFunctionWebSearch,
    ResponseOutputMessage,
)
from openai.types.responses.response_computer_tool_call import (
    ActionClick,
    ActionDoubleClick,
    ActionDrag,
    ActionKeypress,
    ActionMove,
    ActionScreenshot,
    ActionScroll,
    ActionType,
    ActionWait,
)
from openai.types.responses.response_input_param import ComputerCallOutput
from openai.types.responses.response_reasoning_item import ResponseReasoningItem

from .agent import Agent, ToolsToFinalOutputResult
from .agent_output import AgentOutputSchema
from .computer import AsyncComputer, Computer
from .exceptions import AgentsException, ModelBehaviorError, UserError
from .guardrail import InputGuardrail, InputGuardrailResult, OutputGuardrail, OutputGuardrailResult
from .handoffs import Handoff, HandoffInputData, HandoffInputFilter
from .items import (
    HandoffCallItem,
    HandoffOutputItem,
    ItemHelpers,
    MessageOutputItem,
    ModelResponse,
    ReasoningItem,
    RunItem,
    ToolCallItem,
    ToolCallOutputItem,
    TResponseInputItem,
)
from .lifecycle import AgentHooks, RunHooks
from .logger import logger
from .model_settings import ModelSettings
from .models.interface import ModelTracing
from .run_context import RunContextWrapper, TContext
from .stream_events import RunItemStreamEvent, StreamEvent
from .tool import (
    ComputerTool,
    FunctionTool,
    FunctionToolResult,
    Tool,
    invoke_failure_error_function,
)
from .tool_context import ToolContext
from .tracing import (
    Span,
    SpanError,
    Trace,
    function_span,
    get_current_trace,
    guardrail_span,
    handoff_span,
    trace,
)
from .util import _coro, _error_tracing

if TYPE_CHECKING:
    from .run import RunConfig


class QueueCompleteSentinel:
    pass


QUEUE_COMPLETE_SENTINEL = QueueCompleteSentinel()

_NOT_FINAL_OUTPUT = ToolsToFinalOutputResult(is_final_output=False, final_output=None)

_MULTIPLE_HANDOFFS_MESSAGE = "Multiple handoffs detected, ignoring this one."

_GuardrailResultT = TypeVar("_GuardrailResultT", InputGuardrailResult, OutputGuardrailResult)

# Provider-run tools: recorded for history and tool-use tracking, nothing to execute locally.
_HOSTED_TOOL_NAMES: dict[type, str] = {
    ResponseFileSearchToolCall: "file_search",
    ResponseFunctionWebSearch: "web_search",
}

_STREAM_EVENT_NAMES: dict[type, str] = {
    MessageOutputItem: "message_output_created",
    HandoffCallItem: "handoff_requested",
    HandoffOutputItem: "handoff_occured",
    ToolCallItem: "tool_called",
    ToolCallOutputItem: "tool_output",
    ReasoningItem: "reasoning_item_created",
}


@dataclass
class AgentToolUseTracker:
    """Remembers which agents have called tools during a run, keyed by agent identity."""

    agent_to_tools: list[tuple[Agent, list[str]]] = field(default_factory=list)

    def _entry(self, agent: Agent[Any]) -> tuple[Agent, list[str]] | None:
        return next((entry for entry in self.agent_to_tools if entry[0] is agent), None)

    def add_tool_use(self, agent: Agent[Any], tool_names: list[str]) -> None:
        entry = self._entry(agent)
        if entry is None:
            self.agent_to_tools.append((agent, list(tool_names)))
        else:
            entry[1].extend(tool_names)

    def has_used_tools(self, agent: Agent[Any]) -> bool:
        entry = self._entry(agent)
        return bool(entry and entry[1])


@dataclass
class ToolRunHandoff:
    handoff: Handoff
    tool_call: ResponseFunctionToolCall


@dataclass
class ToolRunFunction:
    tool_call: ResponseFunctionToolCall
    function_tool: FunctionTool


@dataclass
class ToolRunComputerAction:
    tool_call: ResponseComputerToolCall
    computer_tool: ComputerTool


@dataclass
class ProcessedResponse:
    new_items: list[RunItem]
    handoffs: list[ToolRunHandoff]
    functions: list[ToolRunFunction]
    computer_actions: list[ToolRunComputerAction]
    tools_used: list[str]
    """Every tool name the model called this turn, hosted tools included."""

    def has_tools_to_run(self) -> bool:
        return bool(self.handoffs or self.functions or self.computer_actions)


@dataclass
class NextStepHandoff:
    new_agent: Agent[Any]


@dataclass
class NextStepFinalOutput:
    output: Any


@dataclass
class NextStepRunAgain:
    pass


NextStep = Union[NextStepHandoff, NextStepFinalOutput, NextStepRunAgain]


@dataclass
class SingleStepResult:
    original_input: str | list[TResponseInputItem]
    """Input the run started from. A handoff input filter may have rewritten it."""

    model_response: ModelResponse
    """The response this step was computed from."""

    pre_step_items: list[RunItem]
    """Items produced by earlier steps."""

    new_step_items: list[RunItem]
    """Items produced by this step."""

    next_step: NextStep

    @property
    def generated_items(self) -> list[RunItem]:
        return self.pre_step_items + self.new_step_items


def get_model_tracing_impl(
    tracing_disabled: bool, trace_include_sensitive_data: bool
) -> ModelTracing:
    if tracing_disabled:
        return ModelTracing.DISABLED
    if not trace_include_sensitive_data:
        return ModelTracing.ENABLED_WITHOUT_DATA
    return ModelTracing.ENABLED


async def _gather_cancel_on_error(*aws: Awaitable[Any]) -> list[Any]:
    """`asyncio.gather` that cancels the siblings still running once one awaitable fails."""
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            if not task.done():
                task.cancel()
        raise


def _with_agent_hook(
    run_hook: Awaitable[Any], agent_hooks: AgentHooks[Any] | None, call: Callable[..., Any]
) -> Awaitable[list[Any]]:
    """Runs a run-wide hook together with the matching per-agent hook, if the agent has hooks."""
    return asyncio.gather(run_hook, call(agent_hooks) if agent_hooks else _coro.noop_coroutine())


class RunImpl:
    @classmethod
    async def execute_tools_and_side_effects(
        cls,
        *,
        agent: Agent[TContext],
        original_input: str | list[TResponseInputItem],
        pre_step_items: list[RunItem],
        new_response: ModelResponse,
        processed_response: ProcessedResponse,
        output_schema: AgentOutputSchema | None,
        hooks: RunHooks[TContext],
        context_wrapper: RunContextWrapper[TContext],
        run_config: RunConfig,
    ) -> SingleStepResult:
        """Runs everything a classified response asked for and decides what the run does next.

        Order of precedence: a handoff wins, then a final output from the tool-use policy, then
        a final output from the model's own message. Anything else means another turn.
        """
        pre_step_items = list(pre_step_items)
        new_step_items: list[RunItem] = list(processed_response.new_items)

        function_results, computer_items = await _gather_cancel_on_error(
            cls.execute_function_tool_calls(
                agent=agent,
                tool_runs=processed_response.functions,
                hooks=hooks,
                context_wrapper=context_wrapper,
                config=run_config,
            ),
            cls.execute_computer_actions(
                agent=agent,
                actions=processed_response.computer_actions,
                hooks=hooks,
                context_wrapper=context_wrapper,
                config=run_config,
            ),
        )
        new_step_items.extend(result.run_item for result in function_results)
        new_step_items.extend(computer_items)

        if processed_response.handoffs:
            return await cls.execute_handoffs(
                agent=agent,
                original_input=original_input,
                pre_step_items=pre_step_items,
                new_step_items=new_step_items,
                new_response=new_response,
                run_handoffs=processed_response.handoffs,
                hooks=hooks,
                context_wrapper=context_wrapper,
                run_config=run_config,
            )

        async def finish(final_output: Any) -> SingleStepResult:
            return await cls.execute_final_output(
                agent=agent,
                original_input=original_input,
                new_response=new_response,
                pre_step_items=pre_step_items,
                new_step_items=new_step_items,
                final_output=final_output,
                hooks=hooks,
                context_wrapper=context_wrapper,
            )

        tool_decision = await cls._check_for_final_output_from_tools(
            agent=agent,
            tool_results=function_results,
            context_wrapper=context_wrapper,
            config=run_config,
        )
        if tool_decision.is_final_output:
            final_output = tool_decision.final_output
            if agent.output_type in (None, str):
                final_output = str(final_output)
            if final_output is None:
                logger.error("Tool use behavior produced a final output of None for %s", agent.name)
            return await finish(final_output)

        last_message = next(
            (item for item in reversed(new_step_items) if isinstance(item, MessageOutputItem)),
            None,
        )
        last_text = ItemHelpers.extract_last_text(last_message.raw_item) if last_message else None
        plain_text = output_schema is None or output_schema.is_plain_text()

        # Structured output ends the run as soon as there is text to validate. Plain text only
        # ends it on a turn with nothing left to run.
        if not plain_text and last_text:
            assert output_schema is not None
            return await finish(output_schema.validate_json(last_text))
        if plain_text and not processed_response.has_tools_to_run():
            return await finish(last_text or "")

        return SingleStepResult(
            original_input=original_input,
            model_response=new_response,
            pre_step_items=pre_step_items,
            new_step_items=new_step_items,
            next_step=NextStepRunAgain(),
        )

    @classmethod
    def maybe_reset_tool_choice(
        cls, agent: Agent[Any], tool_use_tracker: AgentToolUseTracker, model_settings: ModelSettings
    ) -> ModelSettings:
        """Clears `tool_choice` once the agent has called a tool, so a forced choice can't loop."""
        if not agent.reset_tool_choice or not tool_use_tracker.has_used_tools(agent):
            return model_settings
        return dataclasses.replace(model_settings, tool_choice=None)

    @classmethod
    def process_model_response(
        cls,
        *,
        agent: Agent[Any],
        all_tools: list[Tool],
        response: ModelResponse,
        output_schema: AgentOutputSchema | None,
        handoffs: list[Handoff],
    ) -> ProcessedResponse:
        """Splits a model response into run items and the tool calls, computer actions and handoffs
        that still need to run locally. Calling this twice on the same response yields equal
        results; nothing here has side effects beyond span error annotations.
        """
        processed = ProcessedResponse(
            new_items=[], handoffs=[], functions=[], computer_actions=[], tools_used=[]
        )
        handoffs_by_name = {h.tool_name: h for h in handoffs}
        functions_by_name = {t.name: t for t in all_tools if isinstance(t, FunctionTool)}
        computer_tool = next((t for t in all_tools if isinstance(t, ComputerTool)), None)

        for output in response.output:
            hosted_name = _HOSTED_TOOL_NAMES.get(type(output))
            if isinstance(output, ResponseOutputMessage):
                processed.new_items.append(MessageOutputItem(raw_item=output, agent=agent))
            elif hosted_name is not None:
                processed.new_items.append(ToolCallItem(raw_item=output, agent=agent))
                processed.tools_used.append(hosted_name)
            elif isinstance(output, ResponseReasoningItem):
                processed.new_items.append(ReasoningItem(raw_item=output, agent=agent))
            elif isinstance(output, ResponseComputerToolCall):
                processed.new_items.append(ToolCallItem(raw_item=output, agent=agent))
                processed.tools_used.append("computer_use")
                if computer_tool is None:
                    _error_tracing.attach_error_to_current_span(
                        SpanError(message="Computer tool not found", data={})
                    )
                    raise ModelBehaviorError(
                        "Model produced computer action without a computer tool."
                    )
                processed.computer_actions.append(
                    ToolRunComputerAction(tool_call=output, computer_tool=computer_tool)
                )
            elif isinstance(output, ResponseFunctionToolCall):
                cls._classify_function_call(
                    agent, output, processed, handoffs_by_name, functions_by_name
                )
            else:
                logger.warning("Skipping unexpected output type: %s", type(output))

        return processed

    @classmethod
    def _classify_function_call(
        cls,
        agent: Agent[Any],
        call: ResponseFunctionToolCall,
        processed: ProcessedResponse,
        handoffs_by_name: dict[str, Handoff],
        functions_by_name: dict[str, FunctionTool],
    ) -> None:
        processed.tools_used.append(call.name)

        if call.name in handoffs_by_name:
            processed.new_items.append(HandoffCallItem(raw_item=call, agent=agent))
            processed.handoffs.append(
                ToolRunHandoff(tool_call=call, handoff=handoffs_by_name[call.name])
            )
            return

        func_tool = functions_by_name.get(call.name)
        if func_tool is None:
            _error_tracing.attach_error_to_current_span(
                SpanError(message="Tool not found", data={"tool_name": call.name})
            )
            raise ModelBehaviorError(f"Tool {call.name} not found in agent {agent.name}")

        processed.new_items.append(ToolCallItem(raw_item=call, agent=agent))
        processed.functions.append(ToolRunFunction(tool_call=call, function_tool=func_tool))

    @classmethod
    async def execute_function_tool_calls(
        cls,
        *,
        agent: Agent[TContext],
        tool_runs: list[ToolRunFunction],
        hooks: RunHooks[TContext],
        context_wrapper: RunContextWrapper[TContext],
        config: RunConfig,
    ) -> list[FunctionToolResult]:
        """Runs every requested function tool concurrently. Results line up with `tool_runs` by
        position. A tool without a `failure_error_function` that raises aborts the batch and the
        calls still in flight are cancelled.
        """
        if not tool_runs:
            return []

        outputs = await _gather_cancel_on_error(
            *(
                cls._run_function_tool(
                    agent=agent,
                    tool_run=tool_run,
                    hooks=hooks,
                    context_wrapper=context_wrapper,
                    config=config,
                )
                for tool_run in tool_runs
            )
        )

        results = []
        for tool_run, output in zip(tool_runs, outputs):
            raw_item = ItemHelpers.tool_call_output_item(tool_run.tool_call, str(output))
            results.append(
                FunctionToolResult(
                    tool=tool_run.function_tool,
                    output=output,
                    run_item=ToolCallOutputItem(output=output, raw_item=raw_item, agent=agent),
                )
            )
        return results

    @classmethod
    async def _run_function_tool(
        cls,
        *,
        agent: Agent[TContext],
        tool_run: ToolRunFunction,
        hooks: RunHooks[TContext],
        context_wrapper: RunContextWrapper[TContext],
        config: RunConfig,
    ) -> Any:
        func_tool, call = tool_run.function_tool, tool_run.tool_call
        tool_context = ToolContext.from_agent_context(context_wrapper, func_tool.name, call.call_id)

        with function_span(func_tool.name) as span:
            if config.trace_include_sensitive_data:
                span.span_data.input = call.arguments

            await _with_agent_hook(
                hooks.on_tool_start(tool_context, agent, func_tool),
                agent.hooks,
                lambda h: h.on_tool_start(tool_context, agent, func_tool),
            )

            try:
                output = await func_tool.on_invoke_tool(tool_context, call.arguments)
            except Exception as e:
                if func_tool.failure_error_function is None:
                    _error_tracing.attach_error_to_current_span(
                        SpanError(
                            message="Error running tool",
                            data={"tool_name": func_tool.name, "error": str(e)},
                        )
                    )
                    if isinstance(e, AgentsException):
                        raise
                    raise UserError(f"Error running tool {func_tool.name}: {e}") from e
                output = await invoke_failure_error_function(func_tool, tool_context, e)

            await _with_agent_hook(
                hooks.on_tool_end(tool_context, agent, func_tool, output),
                agent.hooks,
                lambda h: h.on_tool_end(tool_context, agent, func_tool, output),
            )

            if config.trace_include_sensitive_data:
                span.span_data.output = str(output)

        return output

    @classmethod
    async def execute_computer_actions(
        cls,
        *,
        agent: Agent[TContext],
        actions: list[ToolRunComputerAction],
        hooks: RunHooks[TContext],
        context_wrapper: RunContextWrapper[TContext],
        config: RunConfig,
    ) -> list[RunItem]:
        # Strictly one at a time: every action mutates the shared computer.
        items: list[RunItem] = []
        for action in actions:
            item = await ComputerAction.execute(
                agent=agent,
                action=action,
                hooks=hooks,
                context_wrapper=context_wrapper,
                config=config,
            )
            items.append(item)
        return items

    @classmethod
    async def execute_handoffs(
        cls,
        *,
        agent: Agent[TContext],
        original_input: str | list[TResponseInputItem],
        pre_step_items: list[RunItem],
        new_step_items: list[RunItem],
        new_response: ModelResponse,
        run_handoffs: list[ToolRunHandoff],
        hooks: RunHooks[TContext],
        context_wrapper: RunContextWrapper[TContext],
        run_config: RunConfig,
    ) -> SingleStepResult:
        """Honours the first requested handoff. Every other request gets a tool output telling
        the model it was ignored.
        """
        chosen, *ignored = run_handoffs
        for extra in ignored:
            new_step_items.append(
                ToolCallOutputItem(
                    output=_MULTIPLE_HANDOFFS_MESSAGE,
                    raw_item=ItemHelpers.tool_call_output_item(
                        extra.tool_call, _MULTIPLE_HANDOFFS_MESSAGE
                    ),
                    agent=agent,
                )
            )

        handoff = chosen.handoff
        with handoff_span(from_agent=agent.name) as span:
            new_agent: Agent[Any] = await handoff.on_invoke_handoff(
                context_wrapper, chosen.tool_call.arguments
            )
            span.span_data.to_agent = new_agent.name
            if ignored:
                span.set_error(
                    SpanError(
                        message="Multiple handoffs requested",
                        data={"requested_agents": [r.handoff.agent_name for r in run_handoffs]},
                    )
                )

            new_step_items.append(
                HandoffOutputItem(
                    agent=agent,
                    raw_item=ItemHelpers.tool_call_output_item(
                        chosen.tool_call, handoff.get_transfer_message(new_agent)
                    ),
                    source_agent=agent,
                    target_agent=new_agent,
                )
            )

            await _with_agent_hook(
                hooks.on_handoff(context=context_wrapper, from_agent=agent, to_agent=new_agent),
                new_agent.hooks,
                lambda h: h.on_handoff(context_wrapper, agent=new_agent, source=agent),
            )

            input_filter = handoff.input_filter or (
                run_config.handoff_input_filter if run_config else None
            )
            if input_filter:
                original_input, pre_step_items, new_step_items = await cls._apply_input_filter(
                    input_filter,
                    span,
                    HandoffInputData(
                        input_history=(
                            tuple(original_input)
                            if isinstance(original_input, list)
                            else original_input
                        ),
                        pre_handoff_items=tuple(pre_step_items),
                        new_items=tuple(new_step_items),
                        run_context=context_wrapper,
                    ),
                )

        return SingleStepResult(
            original_input=original_input,
            model_response=new_response,
            pre_step_items=pre_step_items,
            new_step_items=new_step_items,
            next_step=NextStepHandoff(new_agent),
        )

    @classmethod
    async def _apply_input_filter(
        cls,
        input_filter: HandoffInputFilter,
        span: Span[Any],
        data: HandoffInputData,
    ) -> tuple[str | list[TResponseInputItem], list[RunItem], list[RunItem]]:
        logger.debug("Filtering inputs for handoff")
        if not callable(input_filter):
            _error_tracing.attach_error_to_span(
                span, SpanError(message="Invalid input filter", data={"details": "not callable()"})
            )
            raise UserError(f"Invalid input filter: {input_filter}")

        filtered = input_filter(data)
        if inspect.isawaitable(filtered):
            filtered = await filtered
        if not isinstance(filtered, HandoffInputData):
            _error_tracing.attach_error_to_span(
                span,
                SpanError(
                    message="Invalid input filter result",
                    data={"details": "not a HandoffInputData"},
                ),
            )
            raise UserError(f"Invalid input filter result: {filtered}")

        history = filtered.input_history
        return (
            history if isinstance(history, str) else list(history),
            list(filtered.pre_handoff_items),
            list(filtered.new_items),
        )

    @classmethod
    async def execute_final_output(
        cls,
        *,
        agent: Agent[TContext],
        original_input: str | list[TResponseInputItem],
        new_response: ModelResponse,
        pre_step_items: list[RunItem],
        new_step_items: list[RunItem],
        final_output: Any,
        hooks: RunHooks[TContext],
        context_wrapper: RunContextWrapper[TContext],
    ) -> SingleStepResult:
        await cls.run_final_output_hooks(agent, hooks, context_wrapper, final_output)
        return SingleStepResult(
            original_input=original_input,
            model_response=new_response,
            pre_step_items=pre_step_items,
            new_step_items=new_step_items,
            next_step=NextStepFinalOutput(final_output),
        )

    @classmethod
    async def run_final_output_hooks(
        cls,
        agent: Agent[TContext],
        hooks: RunHooks[TContext],
        context_wrapper: RunContextWrapper[TContext],
        final_output: Any,
    ):
        await _with_agent_hook(
            hooks.on_agent_end(context_wrapper, agent, final_output),
            agent.hooks,
            lambda h: h.on_end(context_wrapper, agent, final_output),
        )

    @classmethod
    async def run_single_input_guardrail(
        cls,
        agent: Agent[Any],
        guardrail: InputGuardrail[TContext],
        input: str | list[TResponseInputItem],
        context: RunContextWrapper[TContext],
    ) -> InputGuardrailResult:
        with guardrail_span(guardrail.get_name()) as span:
            return await cls._traced_guardrail_call(span, guardrail.run(agent, input, context))

    @classmethod
    async def run_single_output_guardrail(
        cls,
        guardrail: OutputGuardrail[TContext],
        agent: Agent[Any],
        agent_output: Any,
        context: RunContextWrapper[TContext],
    ) -> OutputGuardrailResult:
        with guardrail_span(guardrail.get_name()) as span:
            return await cls._traced_guardrail_call(
                span, guardrail.run(agent=agent, agent_output=agent_output, context=context)
            )

    @classmethod
    async def _traced_guardrail_call(
        cls, span: Span[Any], call: Awaitable[_GuardrailResultT]
    ) -> _GuardrailResultT:
        try:
            result = await call
        except Exception as e:
            _error_tracing.attach_error_to_span(
                span, SpanError(message="Error running guardrail", data={"error": str(e)})
            )
            raise
        span.span_data.triggered = result.output.tripwire_triggered
        return result

    @classmethod
    async def run_input_guardrails(
        cls,
        agent: Agent[Any],
        guardrails: list[InputGuardrail[TContext]],
        input: str | list[TResponseInputItem],
        context: RunContextWrapper[TContext],
        on_result: Callable[[InputGuardrailResult], None] | None = None,
    ) -> tuple[list[InputGuardrailResult], InputGuardrailResult | None]:
        """Runs all input guardrails concurrently.

        Returns the successful results in guardrail order, plus the result that tripped (if any).
        `on_result` sees each successful result as soon as it resolves.
        """
        return await cls._run_guardrail_batch(
            [cls.run_single_input_guardrail(agent, g, input, context) for g in guardrails],
            [g.get_name() for g in guardrails],
            on_result,
        )

    @classmethod
    async def run_output_guardrails(
        cls,
        guardrails: list[OutputGuardrail[TContext]],
        agent: Agent[TContext],
        agent_output: Any,
        context: RunContextWrapper[TContext],
    ) -> tuple[list[OutputGuardrailResult], OutputGuardrailResult | None]:
        return await cls._run_guardrail_batch(
            [cls.run_single_output_guardrail(g, agent, agent_output, context) for g in guardrails],
            [g.get_name() for g in guardrails],
            None,
        )

    @classmethod
    async def _run_guardrail_batch(
        cls,
        coros: Sequence[Awaitable[_GuardrailResultT]],
        names: list[str],
        on_result: Callable[[_GuardrailResultT], None] | None,
    ) -> tuple[list[_GuardrailResultT], _GuardrailResultT | None]:
        # The tripped result is the one with the lowest index among all guardrails that trip, so
        # we stop waiting once every guardrail before the current best candidate has resolved.
        if not coros:
            return [], None

        tasks = [asyncio.ensure_future(coro) for coro in coros]
        position = {task: i for i, task in enumerate(tasks)}
        results: list[_GuardrailResultT | None] = [None] * len(tasks)
        settled = [False] * len(tasks)
        tripped_at: int | None = None
        pending: set[asyncio.Future[_GuardrailResultT]] = set(tasks)

        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in sorted(done, key=position.__getitem__):
                    i = position[task]
                    settled[i] = True
                    if task.exception() is not None:
                        logger.warning(
                            "Guardrail %s failed, ignoring it: %s", names[i], task.exception()
                        )
                        continue

                    result = task.result()
                    results[i] = result
                    if on_result is not None:
                        on_result(result)
                    if result.output.tripwire_triggered and (tripped_at is None or i < tripped_at):
                        tripped_at = i

                if tripped_at is not None and all(settled[:tripped_at]):
                    break
        finally:
            for task in pending:
                task.cancel()

        succeeded = [result for result in results if result is not None]
        return succeeded, (results[tripped_at] if tripped_at is not None else None)

    @classmethod
    def stream_step_result_to_queue(
        cls,
        step_result: SingleStepResult,
        queue: asyncio.Queue[StreamEvent | QueueCompleteSentinel],
    ):
        for item in step_result.new_step_items:
            name = _STREAM_EVENT_NAMES.get(type(item))
            if name is None:
                logger.warning("Not streaming unexpected item type: %s", type(item))
                continue
            queue.put_nowait(RunItemStreamEvent(item=item, name=name))  # type: ignore[arg-type]

    @classmethod
    async def _check_for_final_output_from_tools(
        cls,
        *,
        agent: Agent[TContext],
        tool_results: list[FunctionToolResult],
        context_wrapper: RunContextWrapper[TContext],
        config: RunConfig,
    ) -> ToolsToFinalOutputResult:
        """Applies the agent's `tool_use_behavior` to this turn's function tool results."""
        behavior = agent.tool_use_behavior
        if not tool_results or behavior == "run_llm_again":
            return _NOT_FINAL_OUTPUT

        if behavior == "stop_on_first_tool":
            return ToolsToFinalOutputResult(
                is_final_output=True, final_output=tool_results[0].output
            )

        if isinstance(behavior, dict):
            stop_names = behavior.get("stop_at_tool_names", [])
            first_match = next((r for r in tool_results if r.tool.name in stop_names), None)
            if first_match is None:
                return _NOT_FINAL_OUTPUT
            return ToolsToFinalOutputResult(is_final_output=True, final_output=first_match.output)

        if callable(behavior):
            decision = behavior(context_wrapper, tool_results)
            if inspect.isawaitable(decision):
                decision = await decision
            return cast(ToolsToFinalOutputResult, decision)

        logger.error("Invalid tool_use_behavior: %s", behavior)
        raise UserError(f"Invalid tool_use_behavior: {behavior}")


class TraceCtxManager:
    """Opens a trace for the run unless the caller already opened one."""

    def __init__(
        self,
        workflow_name: str,
        trace_id: str | None,
        group_id: str | None,
        metadata: dict[str, Any] | None,
        disabled: bool,
    ):
        self.trace: Trace | None = None
        self.workflow_name = workflow_name
        self.trace_id = trace_id
        self.group_id = group_id
        self.metadata = metadata
        self.disabled = disabled

    def __enter__(self) -> TraceCtxManager:
        if get_current_trace() is None:
            self.trace = trace(
                workflow_name=self.workflow_name,
                trace_id=self.trace_id,
                group_id=self.group_id,
                metadata=self.metadata,
                disabled=self.disabled,
            )
            self.trace.start(mark_as_current=True)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.trace is not None:
            self.trace.finish(reset_current=True)


class ComputerAction:
    """Performs one computer action and answers it with a screenshot."""

    @classmethod
    async def execute(
        cls,
        *,
        agent: Agent[TContext],
        action: ToolRunComputerAction,
        hooks: RunHooks[TContext],
        context_wrapper: RunContextWrapper[TContext],
        config: RunConfig,
    ) -> RunItem:
        tool = action.computer_tool
        await _with_agent_hook(
            hooks.on_tool_start(context_wrapper, agent, tool),
            agent.hooks,
            lambda h: h.on_tool_start(context_wrapper, agent, tool),
        )

        computer = tool.computer
        if isinstance(computer, AsyncComputer):
            screenshot = await cls._get_screenshot_async(computer, action.tool_call)
        else:
            screenshot = cls._get_screenshot_sync(computer, action.tool_call)

        await _with_agent_hook(
            hooks.on_tool_end(context_wrapper, agent, tool, screenshot),
            agent.hooks,
            lambda h: h.on_tool_end(context_wrapper, agent, tool, screenshot),
        )

        image_url = f"data:image/png;base64,{screenshot}"
        return ToolCallOutputItem(
            agent=agent,
            output=image_url,
            raw_item=ComputerCallOutput(
                call_id=action.tool_call.call_id,
                output={"type": "computer_screenshot", "image_url": image_url},
                type="computer_call_output",
            ),
        )

    @classmethod
    def _method_and_args(cls, tool_call: ResponseComputerToolCall) -> tuple[str, tuple[Any, ...]]:
        """Maps an action onto the `Computer` method that performs it."""
        action = tool_call.action
        if isinstance(action, ActionClick):
            return "click", (action.x, action.y, action.button)
        if isinstance(action, ActionDoubleClick):
            return "double_click", (action.x, action.y)
        if isinstance(action, ActionDrag):
            return "drag", ([(point.x, point.y) for point in action.path],)
        if isinstance(action, ActionKeypress):
            return "keypress", (action.keys,)
        if isinstance(action, ActionMove):
            return "move", (action.x, action.y)
        if isinstance(action, ActionScroll):
            return "scroll", (action.x, action.y, action.scroll_x, action.scroll_y)
        if isinstance(action, ActionType):
            return "type", (action.text,)
        if isinstance(action, ActionWait):
            return "wait", ()
        if not isinstance(action, ActionScreenshot):
            logger.warning("Unknown computer action %s, only taking a screenshot", type(action))
        return "screenshot", ()

    @classmethod
    def _get_screenshot_sync(
        cls,
        computer: Computer,
        tool_call: ResponseComputerToolCall,
    ) -> str:
        method, args = cls._method_and_args(tool_call)
        if method != "screenshot":
            getattr(computer, method)(*args)
        return computer.screenshot()

    @classmethod
    async def _get_screenshot_async(
        cls,
        computer: AsyncComputer,
        tool_call: ResponseComputerToolCall,
    ) -> str:
        method, args = cls._method_and_args(tool_call)
        if method != "screenshot":
            await getattr(computer, method)(*args)
        return await computer.screenshot()
