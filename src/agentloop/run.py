from __future__ import annotations

import asyncio
import copy
import dataclasses
import json
from dataclasses import dataclass, field
from typing import Any, cast

from openai.types.responses import ResponseCompletedEvent

from . import _debug
from ._debug import _debug_flag_enabled
from ._run_impl import (
    AgentToolUseTracker,
    NextStepFinalOutput,
    NextStepHandoff,
    NextStepRunAgain,
    QueueCompleteSentinel,
    RunImpl,
    SingleStepResult,
    TraceCtxManager,
    get_model_tracing_impl,
)
from .agent import Agent
from .agent_output import AgentOutputSchema
from .exceptions import (
    AgentsException,
    InputGuardrailTripwireTriggered,
    MaxTurnsExceeded,
    ModelBehaviorError,
    OutputGuardrailTripwireTriggered,
    UserError,
)
from .guardrail import InputGuardrail, InputGuardrailResult, OutputGuardrail, OutputGuardrailResult
from .handoffs import Handoff, HandoffInputFilter, handoff
from .items import ItemHelpers, ModelResponse, RunItem, TResponseInputItem
from .lifecycle import RunHooks
from .logger import logger
from .model_settings import ModelSettings
from .models.interface import Model, ModelProvider
from .result import RunResult, RunResultStreaming
from .run_context import RunContextWrapper, TContext
from .stream_events import (
    AgentTextDeltaStreamEvent,
    AgentUpdatedStreamEvent,
    RawResponsesStreamEvent,
)
from .tool import Tool
from .tracing import Span, SpanError, agent_span
from .tracing.span_data import AgentSpanData
from .usage import Usage
from .util import _coro, _error_tracing

DEFAULT_MAX_TURNS = 10


def _default_trace_include_sensitive_data() -> bool:
    return _debug_flag_enabled("AGENTLOOP_TRACE_INCLUDE_SENSITIVE_DATA", default=True)


@dataclass
class RunConfig:
    """Settings that apply to a whole run, across every agent it hands off to."""

    model: str | Model | None = None
    """Overrides the model of every agent in the run. A string is looked up through
    `model_provider`.
    """

    model_provider: ModelProvider | None = None
    """Resolves string model names. Required whenever a string model, or no model at all, has to
    be resolved; otherwise the run fails with `UserError`.
    """

    model_settings: ModelSettings | None = None
    """Non-null values here win over each agent's own `model_settings`."""

    handoff_input_filter: HandoffInputFilter | None = None
    """Rewrites the history passed to the receiving agent of any handoff that does not set its own
    `Handoff.input_filter`.
    """

    input_guardrails: list[InputGuardrail[Any]] | None = None
    """Checks run against the initial input, next to the starting agent's own."""

    output_guardrails: list[OutputGuardrail[Any]] | None = None
    """Checks run against the final output, next to the final agent's own."""

    tracing_disabled: bool = False

    trace_include_sensitive_data: bool = field(
        default_factory=_default_trace_include_sensitive_data
    )
    """When False, spans are still created but tool arguments, tool outputs and model payloads are
    left out. Defaults from the `AGENTLOOP_TRACE_INCLUDE_SENSITIVE_DATA` environment variable,
    or True.
    """

    workflow_name: str = "Agent workflow"
    """Name of the trace the run opens, e.g. "Customer support"."""

    trace_id: str | None = None
    """Use this id for the run's trace instead of generating one."""

    group_id: str | None = None
    """Links traces that belong together, such as the turns of one chat thread."""

    trace_metadata: dict[str, Any] | None = None


class Runner:
    @classmethod
    async def run(
        cls,
        starting_agent: Agent[TContext],
        input: str | list[TResponseInputItem],
        *,
        context: TContext | None = None,
        max_turns: int = DEFAULT_MAX_TURNS,
        hooks: RunHooks[TContext] | None = None,
        run_config: RunConfig | None = None,
        previous_response_id: str | None = None,
    ) -> RunResult:
        """Runs `starting_agent` turn by turn until some agent produces a final output.

        Each turn calls the current agent's model once. What happens next depends on the
        response:

        - a final output (text for plain agents, a validated object for agents with an
          `output_type`) ends the run after the output guardrails pass;
        - a handoff makes the receiving agent current for the next turn;
        - otherwise the requested tools run and the loop continues.

        Input guardrails of the starting agent, plus any on `run_config`, run once before the
        first model call.

        Args:
            starting_agent: The agent that handles the first turn.
            input: A user message, or a list of input items.
            context: Your own object, passed to tools, hooks and guardrails.
            max_turns: How many model calls the run may make.
            hooks: Receives lifecycle callbacks for every agent in the run.
            run_config: Settings for the whole run.
            previous_response_id: Lets Responses API models continue from a stored response.

        Raises:
            MaxTurnsExceeded: The run needed more than `max_turns` model calls.
            InputGuardrailTripwireTriggered: An input guardrail tripped.
            OutputGuardrailTripwireTriggered: An output guardrail tripped.
        """
        hooks = hooks if hooks is not None else RunHooks[Any]()
        run_config = run_config if run_config is not None else RunConfig()
        context_wrapper: RunContextWrapper[TContext] = RunContextWrapper(
            context=context,  # type: ignore
        )
        tool_use_tracker = AgentToolUseTracker()

        with cls._trace_for(run_config):
            original_input: str | list[TResponseInputItem] = copy.deepcopy(input)
            generated_items: list[RunItem] = []
            model_responses: list[ModelResponse] = []
            input_guardrail_results: list[InputGuardrailResult] = []

            current_agent = starting_agent
            current_span: Span[AgentSpanData] | None = None
            agent_just_started = True
            turn = 0

            try:
                while True:
                    all_tools = await cls._get_all_tools(current_agent)
                    # One agent span per agent; a handoff closes it.
                    if current_span is None:
                        current_span = cls._start_agent_span(current_agent, all_tools)

                    turn += 1
                    cls._check_turn_budget(current_span, turn, max_turns)
                    logger.debug("Running agent %s (turn %s)", current_agent.name, turn)

                    if turn == 1:
                        input_guardrail_results = await cls._run_input_guardrails(
                            starting_agent,
                            starting_agent.input_guardrails + (run_config.input_guardrails or []),
                            copy.deepcopy(input),
                            context_wrapper,
                            current_span,
                        )

                    step = await cls._run_single_turn(
                        agent=current_agent,
                        all_tools=all_tools,
                        original_input=original_input,
                        generated_items=generated_items,
                        hooks=hooks,
                        context_wrapper=context_wrapper,
                        run_config=run_config,
                        should_run_agent_start_hooks=agent_just_started,
                        tool_use_tracker=tool_use_tracker,
                        previous_response_id=previous_response_id,
                    )
                    agent_just_started = False

                    model_responses.append(step.model_response)
                    original_input = step.original_input
                    generated_items = step.generated_items
                    next_step = step.next_step

                    if isinstance(next_step, NextStepFinalOutput):
                        output_guardrail_results = await cls._run_output_guardrails(
                            current_agent.output_guardrails + (run_config.output_guardrails or []),
                            current_agent,
                            next_step.output,
                            context_wrapper,
                            current_span,
                        )
                        return RunResult(
                            input=original_input,
                            new_items=generated_items,
                            raw_responses=model_responses,
                            final_output=next_step.output,
                            _last_agent=current_agent,
                            input_guardrail_results=input_guardrail_results,
                            output_guardrail_results=output_guardrail_results,
                        )

                    if isinstance(next_step, NextStepHandoff):
                        current_span.finish(reset_current=True)
                        current_span = None
                        current_agent = cast(Agent[TContext], next_step.new_agent)
                        agent_just_started = True
                    elif not isinstance(next_step, NextStepRunAgain):
                        raise AgentsException(f"Unknown next step type: {type(next_step)}")
            finally:
                if current_span:
                    current_span.finish(reset_current=True)

    @classmethod
    def run_sync(
        cls,
        starting_agent: Agent[TContext],
        input: str | list[TResponseInputItem],
        *,
        context: TContext | None = None,
        max_turns: int = DEFAULT_MAX_TURNS,
        hooks: RunHooks[TContext] | None = None,
        run_config: RunConfig | None = None,
        previous_response_id: str | None = None,
    ) -> RunResult:
        """Blocking wrapper around `run()` that drives its own event loop with `asyncio.run`.

        Cannot be used where a loop is already running (async functions, notebooks, async web
        frameworks); await `run()` there instead.
        """
        return asyncio.run(
            cls.run(
                starting_agent,
                input,
                context=context,
                max_turns=max_turns,
                hooks=hooks,
                run_config=run_config,
                previous_response_id=previous_response_id,
            )
        )

    @classmethod
    def run_streamed(
        cls,
        starting_agent: Agent[TContext],
        input: str | list[TResponseInputItem],
        *,
        context: TContext | None = None,
        max_turns: int = DEFAULT_MAX_TURNS,
        hooks: RunHooks[TContext] | None = None,
        run_config: RunConfig | None = None,
        previous_response_id: str | None = None,
    ) -> RunResultStreaming:
        """Starts the same run as `run()` in a background task and returns at once.

        Consume `result.stream_events()` to follow the run. Failures do not raise here or from the
        iterator: when the stream ends, check `result.error` or call `result.raise_for_error()`.
        Must be called from inside a running event loop.
        """
        hooks = hooks if hooks is not None else RunHooks[Any]()
        run_config = run_config if run_config is not None else RunConfig()
        context_wrapper: RunContextWrapper[TContext] = RunContextWrapper(
            context=context  # type: ignore
        )

        streamed_result = RunResultStreaming(
            input=copy.deepcopy(input),
            new_items=[],
            current_agent=starting_agent,
            raw_responses=[],
            final_output=None,
            is_complete=False,
            current_turn=0,
            max_turns=max_turns,
            input_guardrail_results=[],
            output_guardrail_results=[],
            _current_agent_output_schema=cls._get_output_schema(starting_agent),
            _trace=None,
        )
        streamed_result._run_impl_task = asyncio.create_task(
            cls._run_streamed_impl(
                starting_input=input,
                streamed_result=streamed_result,
                starting_agent=starting_agent,
                max_turns=max_turns,
                hooks=hooks,
                context_wrapper=context_wrapper,
                run_config=run_config,
                previous_response_id=previous_response_id,
            )
        )
        return streamed_result

    @classmethod
    async def _run_streamed_impl(
        cls,
        starting_input: str | list[TResponseInputItem],
        streamed_result: RunResultStreaming,
        starting_agent: Agent[TContext],
        max_turns: int,
        hooks: RunHooks[TContext],
        context_wrapper: RunContextWrapper[TContext],
        run_config: RunConfig,
        previous_response_id: str | None,
    ):
        events = streamed_result._event_queue
        current_agent = starting_agent
        current_span: Span[AgentSpanData] | None = None
        agent_just_started = True
        tool_use_tracker = AgentToolUseTracker()

        # Opened inside the task so the current-trace contextvar stays out of the caller's context.
        with cls._trace_for(run_config) as trace_ctx:
            streamed_result._trace = trace_ctx.trace
            events.put_nowait(AgentUpdatedStreamEvent(new_agent=current_agent))

            try:
                while not streamed_result.is_complete:
                    all_tools = await cls._get_all_tools(current_agent)
                    if current_span is None:
                        current_span = cls._start_agent_span(current_agent, all_tools)

                    streamed_result.current_turn += 1
                    cls._check_turn_budget(current_span, streamed_result.current_turn, max_turns)

                    if streamed_result.current_turn == 1:
                        guardrail_queue = streamed_result._input_guardrail_queue
                        streamed_result.input_guardrail_results = await cls._run_input_guardrails(
                            starting_agent,
                            starting_agent.input_guardrails + (run_config.input_guardrails or []),
                            copy.deepcopy(starting_input),
                            context_wrapper,
                            current_span,
                            on_result=guardrail_queue.put_nowait,
                        )

                    step = await cls._run_single_turn_streamed(
                        streamed_result,
                        current_agent,
                        all_tools,
                        hooks,
                        context_wrapper,
                        run_config,
                        agent_just_started,
                        tool_use_tracker,
                        previous_response_id,
                    )
                    agent_just_started = False

                    streamed_result.raw_responses = [
                        *streamed_result.raw_responses,
                        step.model_response,
                    ]
                    streamed_result.input = step.original_input
                    streamed_result.new_items = step.generated_items
                    next_step = step.next_step

                    if isinstance(next_step, NextStepHandoff):
                        current_span.finish(reset_current=True)
                        current_span = None
                        current_agent = next_step.new_agent
                        agent_just_started = True
                        events.put_nowait(AgentUpdatedStreamEvent(new_agent=current_agent))
                    elif isinstance(next_step, NextStepFinalOutput):
                        streamed_result.output_guardrail_results = (
                            await cls._run_output_guardrails(
                                current_agent.output_guardrails
                                + (run_config.output_guardrails or []),
                                current_agent,
                                next_step.output,
                                context_wrapper,
                                current_span,
                            )
                        )
                        streamed_result.final_output = next_step.output
                        streamed_result.is_complete = True
            except Exception as e:
                tripwire = isinstance(
                    e, (InputGuardrailTripwireTriggered, OutputGuardrailTripwireTriggered)
                )
                if current_span and not tripwire:
                    _error_tracing.attach_error_to_span(
                        current_span,
                        SpanError(message="Error in agent run", data={"error": str(e)}),
                    )
                logger.debug("Streamed run for agent %s failed: %s", current_agent.name, e)
                streamed_result._record_error(e)
            finally:
                # Spans close before the sentinel so consumers see a finished trace.
                streamed_result.is_complete = True
                if current_span:
                    current_span.finish(reset_current=True)
                streamed_result._input_guardrail_queue.put_nowait(QueueCompleteSentinel())
                events.put_nowait(QueueCompleteSentinel())

    @classmethod
    async def _run_single_turn_streamed(
        cls,
        streamed_result: RunResultStreaming,
        agent: Agent[TContext],
        all_tools: list[Tool],
        hooks: RunHooks[TContext],
        context_wrapper: RunContextWrapper[TContext],
        run_config: RunConfig,
        should_run_agent_start_hooks: bool,
        tool_use_tracker: AgentToolUseTracker,
        previous_response_id: str | None,
    ) -> SingleStepResult:
        if should_run_agent_start_hooks:
            await cls._run_agent_start_hooks(agent, hooks, context_wrapper)

        output_schema = cls._get_output_schema(agent)
        streamed_result.current_agent = agent
        streamed_result._current_agent_output_schema = output_schema

        system_prompt = await agent.get_system_prompt(context_wrapper)
        handoffs = cls._get_handoffs(agent)
        model = cls._get_model(agent, run_config)
        model_settings = cls._get_model_settings(agent, all_tools, run_config, tool_use_tracker)
        model_input = cls._model_input(streamed_result.input, streamed_result.new_items)

        completed: ModelResponse | None = None
        async for event in model.stream_response(
            system_prompt,
            model_input,
            model_settings,
            all_tools,
            output_schema,
            handoffs,
            get_model_tracing_impl(
                run_config.tracing_disabled, run_config.trace_include_sensitive_data
            ),
            previous_response_id=previous_response_id,
        ):
            if isinstance(event, ResponseCompletedEvent):
                completed = ModelResponse(
                    output=event.response.output,
                    usage=cls._usage_from_completed_event(event),
                    response_id=event.response.id,
                )

            streamed_result._event_queue.put_nowait(RawResponsesStreamEvent(data=event))
            if event.type == "response.output_text.delta":
                streamed_result._event_queue.put_nowait(
                    AgentTextDeltaStreamEvent(delta=event.delta, agent=agent)
                )

        if completed is None:
            raise ModelBehaviorError("Model stream ended without a response.completed event")

        context_wrapper.usage.add(completed.usage)
        cls._log_model_response(agent, completed)

        step = await cls._get_single_step_result_from_response(
            agent=agent,
            all_tools=all_tools,
            original_input=streamed_result.input,
            pre_step_items=streamed_result.new_items,
            new_response=completed,
            output_schema=output_schema,
            handoffs=handoffs,
            hooks=hooks,
            context_wrapper=context_wrapper,
            run_config=run_config,
            tool_use_tracker=tool_use_tracker,
        )
        RunImpl.stream_step_result_to_queue(step, streamed_result._event_queue)
        return step

    @classmethod
    async def _run_single_turn(
        cls,
        *,
        agent: Agent[TContext],
        all_tools: list[Tool],
        original_input: str | list[TResponseInputItem],
        generated_items: list[RunItem],
        hooks: RunHooks[TContext],
        context_wrapper: RunContextWrapper[TContext],
        run_config: RunConfig,
        should_run_agent_start_hooks: bool,
        tool_use_tracker: AgentToolUseTracker,
        previous_response_id: str | None,
    ) -> SingleStepResult:
        if should_run_agent_start_hooks:
            await cls._run_agent_start_hooks(agent, hooks, context_wrapper)

        system_prompt = await agent.get_system_prompt(context_wrapper)
        output_schema = cls._get_output_schema(agent)
        handoffs = cls._get_handoffs(agent)

        new_response = await cls._get_new_response(
            agent,
            system_prompt,
            cls._model_input(original_input, generated_items),
            output_schema,
            all_tools,
            handoffs,
            context_wrapper,
            run_config,
            tool_use_tracker,
            previous_response_id,
        )

        return await cls._get_single_step_result_from_response(
            agent=agent,
            all_tools=all_tools,
            original_input=original_input,
            pre_step_items=generated_items,
            new_response=new_response,
            output_schema=output_schema,
            handoffs=handoffs,
            hooks=hooks,
            context_wrapper=context_wrapper,
            run_config=run_config,
            tool_use_tracker=tool_use_tracker,
        )

    @classmethod
    async def _get_single_step_result_from_response(
        cls,
        *,
        agent: Agent[TContext],
        all_tools: list[Tool],
        original_input: str | list[TResponseInputItem],
        pre_step_items: list[RunItem],
        new_response: ModelResponse,
        output_schema: AgentOutputSchema | None,
        handoffs: list[Handoff],
        hooks: RunHooks[TContext],
        context_wrapper: RunContextWrapper[TContext],
        run_config: RunConfig,
        tool_use_tracker: AgentToolUseTracker,
    ) -> SingleStepResult:
        """Classifies a response and executes it. Shared by the buffered and streamed loops."""
        processed_response = RunImpl.process_model_response(
            agent=agent,
            all_tools=all_tools,
            response=new_response,
            output_schema=output_schema,
            handoffs=handoffs,
        )
        tool_use_tracker.add_tool_use(agent, processed_response.tools_used)

        return await RunImpl.execute_tools_and_side_effects(
            agent=agent,
            original_input=original_input,
            pre_step_items=pre_step_items,
            new_response=new_response,
            processed_response=processed_response,
            output_schema=output_schema,
            hooks=hooks,
            context_wrapper=context_wrapper,
            run_config=run_config,
        )

    @classmethod
    async def _run_input_guardrails(
        cls,
        agent: Agent[Any],
        guardrails: list[InputGuardrail[TContext]],
        input: str | list[TResponseInputItem],
        context: RunContextWrapper[TContext],
        agent_span: Span[AgentSpanData],
        on_result: Any = None,
    ) -> list[InputGuardrailResult]:
        results, tripped = await RunImpl.run_input_guardrails(
            agent, guardrails, input, context, on_result=on_result
        )
        if tripped is not None:
            cls._mark_tripwire(agent_span, tripped.guardrail.get_name())
            raise InputGuardrailTripwireTriggered(tripped)
        return results

    @classmethod
    async def _run_output_guardrails(
        cls,
        guardrails: list[OutputGuardrail[TContext]],
        agent: Agent[TContext],
        agent_output: Any,
        context: RunContextWrapper[TContext],
        agent_span: Span[AgentSpanData],
    ) -> list[OutputGuardrailResult]:
        results, tripped = await RunImpl.run_output_guardrails(
            guardrails, agent, agent_output, context
        )
        if tripped is not None:
            cls._mark_tripwire(agent_span, tripped.guardrail.get_name())
            raise OutputGuardrailTripwireTriggered(tripped)
        return results

    @classmethod
    def _mark_tripwire(cls, span: Span[AgentSpanData], guardrail_name: str) -> None:
        _error_tracing.attach_error_to_span(
            span,
            SpanError(message="Guardrail tripwire triggered", data={"guardrail": guardrail_name}),
        )

    @classmethod
    def _check_turn_budget(cls, span: Span[AgentSpanData], turn: int, max_turns: int) -> None:
        if turn <= max_turns:
            return
        _error_tracing.attach_error_to_span(
            span, SpanError(message="Max turns exceeded", data={"max_turns": max_turns})
        )
        raise MaxTurnsExceeded(f"Max turns ({max_turns}) exceeded")

    @classmethod
    async def _run_agent_start_hooks(
        cls,
        agent: Agent[TContext],
        hooks: RunHooks[TContext],
        context_wrapper: RunContextWrapper[TContext],
    ) -> None:
        await asyncio.gather(
            hooks.on_agent_start(context_wrapper, agent),
            agent.hooks.on_start(context_wrapper, agent) if agent.hooks else _coro.noop_coroutine(),
        )

    @classmethod
    def _model_input(
        cls, original_input: str | list[TResponseInputItem], items: list[RunItem]
    ) -> list[TResponseInputItem]:
        model_input = ItemHelpers.input_to_new_input_list(original_input)
        model_input.extend(item.to_input_item() for item in items)
        return model_input

    @classmethod
    def _usage_from_completed_event(cls, event: ResponseCompletedEvent) -> Usage:
        response_usage = event.response.usage
        if not response_usage:
            return Usage(requests=1)
        return Usage(
            requests=1,
            input_tokens=response_usage.input_tokens,
            input_tokens_details=response_usage.input_tokens_details,
            output_tokens=response_usage.output_tokens,
            output_tokens_details=response_usage.output_tokens_details,
            total_tokens=response_usage.total_tokens,
        )

    @classmethod
    def _trace_for(cls, run_config: RunConfig) -> TraceCtxManager:
        return TraceCtxManager(
            workflow_name=run_config.workflow_name,
            trace_id=run_config.trace_id,
            group_id=run_config.group_id,
            metadata=run_config.trace_metadata,
            disabled=run_config.tracing_disabled,
        )

    @classmethod
    async def _get_new_response(
        cls,
        agent: Agent[TContext],
        system_prompt: str | None,
        input: list[TResponseInputItem],
        output_schema: AgentOutputSchema | None,
        all_tools: list[Tool],
        handoffs: list[Handoff],
        context_wrapper: RunContextWrapper[TContext],
        run_config: RunConfig,
        tool_use_tracker: AgentToolUseTracker,
        previous_response_id: str | None,
    ) -> ModelResponse:
        model = cls._get_model(agent, run_config)
        response = await model.get_response(
            system_instructions=system_prompt,
            input=input,
            model_settings=cls._get_model_settings(
                agent, all_tools, run_config, tool_use_tracker
            ),
            tools=all_tools,
            output_schema=output_schema,
            handoffs=handoffs,
            tracing=get_model_tracing_impl(
                run_config.tracing_disabled, run_config.trace_include_sensitive_data
            ),
            previous_response_id=previous_response_id,
        )
        # Counted before any tool runs, so tools observe this turn's usage.
        context_wrapper.usage.add(response.usage)
        cls._log_model_response(agent, response)
        return response

    @classmethod
    def _log_model_response(cls, agent: Agent[Any], response: ModelResponse) -> None:
        if _debug.DONT_LOG_MODEL_DATA:
            logger.debug("Model responded for agent %s", agent.name)
        else:
            logger.debug(
                "Model response for agent %s:\n%s",
                agent.name,
                json.dumps([item.model_dump() for item in response.output], indent=2),
            )

    @classmethod
    def _get_model_settings(
        cls,
        agent: Agent[Any],
        all_tools: list[Tool],
        run_config: RunConfig,
        tool_use_tracker: AgentToolUseTracker,
    ) -> ModelSettings:
        settings = agent.model_settings.resolve(run_config.model_settings)
        if all_tools and settings.tool_choice is None:
            settings = dataclasses.replace(settings, tool_choice="auto")
        return RunImpl.maybe_reset_tool_choice(agent, tool_use_tracker, settings)

    @classmethod
    def _start_agent_span(cls, agent: Agent[Any], all_tools: list[Tool]) -> Span[AgentSpanData]:
        output_schema = cls._get_output_schema(agent)
        span = agent_span(
            name=agent.name,
            handoffs=[h.agent_name for h in cls._get_handoffs(agent)],
            tools=[t.name for t in all_tools],
            output_type=output_schema.output_type_name() if output_schema else "str",
        )
        span.start(mark_as_current=True)
        return span

    @classmethod
    async def _get_all_tools(cls, agent: Agent[Any]) -> list[Tool]:
        return await agent.get_all_tools()

    @classmethod
    def _get_output_schema(cls, agent: Agent[Any]) -> AgentOutputSchema | None:
        if agent.output_type in (None, str):
            return None
        return AgentOutputSchema(agent.output_type)

    @classmethod
    def _get_handoffs(cls, agent: Agent[Any]) -> list[Handoff]:
        return [
            entry if isinstance(entry, Handoff) else handoff(entry)
            for entry in agent.handoffs
            if isinstance(entry, (Handoff, Agent))
        ]

    @classmethod
    def _get_model(cls, agent: Agent[Any], run_config: RunConfig) -> Model:
        # The run config wins over the agent; instances are used as-is, names go to the provider.
        chosen = run_config.model if run_config.model is not None else agent.model
        if isinstance(chosen, Model):
            return chosen
        if run_config.model_provider is None:
            raise UserError(
                f"Cannot resolve model {chosen!r}: set RunConfig.model_provider, or pass a "
                "Model instance on the agent or run config."
            )
        return run_config.model_provider.get_model(chosen)
