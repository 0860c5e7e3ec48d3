from __future__ import annotations

from typing import Any

import pytest

from agentloop import (
    Agent,
    GuardrailFunctionOutput,
    InputGuardrail,
    InputGuardrailTripwireTriggered,
    MaxTurnsExceeded,
    ModelBehaviorError,
    RunConfig,
    Runner,
    UserError,
    function_tool,
)
from agentloop.tracing import (
    NoOpSpan,
    NoOpTrace,
    Span,
    custom_span,
    get_current_span,
    get_current_trace,
    trace,
)

from .fake_model import FakeModel
from .test_responses import (
    get_function_tool,
    get_function_tool_call,
    get_handoff_tool_call,
    get_text_message,
)
from .testing_processor import assert_no_traces, fetch_ordered_spans, fetch_traces


def spans_of_type(span_type: str) -> list[Span[Any]]:
    return [span for span in fetch_ordered_spans() if span.span_data.type == span_type]


@pytest.mark.asyncio
async def test_single_run_is_single_trace():
    agent = Agent(
        name="test_agent",
        model=FakeModel(
            initial_output=[get_text_message("first_test")],
        ),
    )

    await Runner.run(agent, input="first_test")

    traces = fetch_traces()
    assert len(traces) == 1, f"Expected 1 trace, got {len(traces)}"
    exported = traces[0].export()
    assert exported is not None
    assert exported["workflow_name"] == "Agent workflow"
    assert traces[0].trace_id.startswith("trace_")


@pytest.mark.asyncio
async def test_multiple_runs_are_multiple_traces():
    model = FakeModel()
    model.add_multiple_turn_outputs(
        [
            [get_text_message("first_test")],
            [get_text_message("second_test")],
        ]
    )
    agent = Agent(
        name="test_agent_1",
        model=model,
    )

    await Runner.run(agent, input="first_test")
    await Runner.run(agent, input="second_test")

    traces = fetch_traces()
    assert len(traces) == 2, f"Expected 2 traces, got {len(traces)}"


@pytest.mark.asyncio
async def test_wrapped_runs_share_one_trace():
    model = FakeModel()
    model.add_multiple_turn_outputs(
        [
            [get_text_message("first_test")],
            [get_text_message("second_test")],
        ]
    )
    agent = Agent(name="test_agent_1", model=model)

    with trace(workflow_name="test_workflow", group_id="thread_1", metadata={"k": "v"}):
        await Runner.run(agent, input="first_test")
        await Runner.run(agent, input="second_test")

    traces = fetch_traces()
    assert len(traces) == 1, f"Expected 1 trace, got {len(traces)}"
    exported = traces[0].export()
    assert exported is not None
    assert exported["workflow_name"] == "test_workflow"
    assert exported["group_id"] == "thread_1"
    assert exported["metadata"] == {"k": "v"}

    agent_spans = spans_of_type("agent")
    assert len(agent_spans) == 2
    assert all(span.trace_id == traces[0].trace_id for span in agent_spans)
    assert all(span.parent_id is None for span in agent_spans)


@pytest.mark.asyncio
async def test_run_config_names_the_trace():
    agent = Agent(name="test_agent", model=FakeModel(initial_output=[get_text_message("hi")]))

    await Runner.run(
        agent,
        input="hello",
        run_config=RunConfig(workflow_name="support_bot", trace_id="trace_custom"),
    )

    traces = fetch_traces()
    assert len(traces) == 1
    assert traces[0].trace_id == "trace_custom"
    assert traces[0].name == "support_bot"


@pytest.mark.asyncio
async def test_agent_span_describes_the_agent():
    target = Agent(name="target")
    agent = Agent(
        name="test_agent",
        model=FakeModel(initial_output=[get_text_message("hi")]),
        tools=[get_function_tool("lookup")],
        handoffs=[target],
    )

    await Runner.run(agent, input="hello")

    agent_spans = spans_of_type("agent")
    assert len(agent_spans) == 1
    exported = agent_spans[0].export()
    assert exported is not None
    assert exported["span_data"] == {
        "type": "agent",
        "name": "test_agent",
        "handoffs": ["target"],
        "tools": ["lookup"],
        "output_type": "str",
    }
    assert agent_spans[0].span_id.startswith("span_")
    assert agent_spans[0].error is None


@pytest.mark.asyncio
async def test_generation_span_is_nested_under_agent_span():
    agent = Agent(
        name="test_agent",
        model=FakeModel(tracing_enabled=True, initial_output=[get_text_message("hi")]),
    )

    await Runner.run(agent, input="hello")

    agent_span = spans_of_type("agent")[0]
    generation_spans = spans_of_type("generation")
    assert len(generation_spans) == 1
    assert generation_spans[0].parent_id == agent_span.span_id


@pytest.mark.asyncio
async def test_tool_calls_produce_function_spans():
    model = FakeModel()
    agent = Agent(
        name="test_agent",
        model=model,
        tools=[get_function_tool("foo", "tool_result")],
    )
    model.add_multiple_turn_outputs(
        [
            [get_function_tool_call("foo", '{"a": "b"}')],
            [get_text_message("done")],
        ]
    )

    await Runner.run(agent, input="hello")

    agent_span = spans_of_type("agent")[0]
    function_spans = spans_of_type("function")
    assert len(function_spans) == 1
    assert function_spans[0].parent_id == agent_span.span_id
    exported = function_spans[0].export()
    assert exported is not None
    assert exported["span_data"]["name"] == "foo"
    assert exported["span_data"]["input"] == '{"a": "b"}'
    assert exported["span_data"]["output"] == "tool_result"


@pytest.mark.asyncio
async def test_sensitive_data_can_be_left_out_of_spans():
    model = FakeModel()
    agent = Agent(
        name="test_agent",
        model=model,
        tools=[get_function_tool("foo", "tool_result")],
    )
    model.add_multiple_turn_outputs(
        [
            [get_function_tool_call("foo", '{"secret": "value"}')],
            [get_text_message("done")],
        ]
    )

    await Runner.run(
        agent, input="hello", run_config=RunConfig(trace_include_sensitive_data=False)
    )

    function_span = spans_of_type("function")[0]
    assert function_span.span_data.input is None
    assert function_span.span_data.output is None


def test_sensitive_data_default_follows_environment(monkeypatch):
    monkeypatch.setenv("AGENTLOOP_TRACE_INCLUDE_SENSITIVE_DATA", "false")
    assert RunConfig().trace_include_sensitive_data is False

    monkeypatch.setenv("AGENTLOOP_TRACE_INCLUDE_SENSITIVE_DATA", "1")
    assert RunConfig().trace_include_sensitive_data is True

    monkeypatch.delenv("AGENTLOOP_TRACE_INCLUDE_SENSITIVE_DATA")
    assert RunConfig().trace_include_sensitive_data is True


@pytest.mark.asyncio
async def test_tracing_disabled_records_nothing():
    model = FakeModel(tracing_enabled=True)
    agent = Agent(name="test_agent", model=model, tools=[get_function_tool("foo")])
    model.add_multiple_turn_outputs(
        [
            [get_function_tool_call("foo", "")],
            [get_text_message("done")],
        ]
    )

    result = await Runner.run(agent, input="hello", run_config=RunConfig(tracing_disabled=True))

    assert result.final_output == "done"
    assert_no_traces()


@pytest.mark.asyncio
async def test_handoff_produces_handoff_span_and_new_agent_span():
    model = FakeModel()
    receiver = Agent(name="receiver", model=model)
    sender = Agent(name="sender", model=model, handoffs=[receiver])
    model.add_multiple_turn_outputs(
        [
            [get_handoff_tool_call(receiver)],
            [get_text_message("done")],
        ]
    )

    await Runner.run(sender, input="hello")

    agent_spans = spans_of_type("agent")
    assert sorted(span.span_data.name for span in agent_spans) == ["receiver", "sender"]
    sender_span = next(span for span in agent_spans if span.span_data.name == "sender")

    handoff_spans = spans_of_type("handoff")
    assert len(handoff_spans) == 1
    assert handoff_spans[0].parent_id == sender_span.span_id
    assert handoff_spans[0].span_data.from_agent == "sender"
    assert handoff_spans[0].span_data.to_agent == "receiver"
    assert handoff_spans[0].error is None


@pytest.mark.asyncio
async def test_multiple_handoffs_mark_the_handoff_span():
    model = FakeModel()
    first = Agent(name="first", model=model)
    second = Agent(name="second", model=model)
    router = Agent(name="router", model=model, handoffs=[first, second])
    model.add_multiple_turn_outputs(
        [
            [get_handoff_tool_call(first), get_handoff_tool_call(second)],
            [get_text_message("done")],
        ]
    )

    await Runner.run(router, input="hello")

    handoff_span = spans_of_type("handoff")[0]
    assert handoff_span.error is not None
    assert handoff_span.error["message"] == "Multiple handoffs requested"
    assert handoff_span.error["data"] == {"requested_agents": ["first", "second"]}


@pytest.mark.asyncio
async def test_guardrail_spans_record_tripwires():
    def guardrail_function(context, agent, input) -> GuardrailFunctionOutput:
        return GuardrailFunctionOutput(output_info=None, tripwire_triggered=True)

    agent = Agent(
        name="test_agent",
        model=FakeModel(initial_output=[get_text_message("never")]),
        input_guardrails=[InputGuardrail(guardrail_function=guardrail_function, name="blocker")],
    )

    with pytest.raises(InputGuardrailTripwireTriggered):
        await Runner.run(agent, input="hello")

    guardrail_spans = spans_of_type("guardrail")
    assert len(guardrail_spans) == 1
    assert guardrail_spans[0].span_data.name == "blocker"
    assert guardrail_spans[0].span_data.triggered is True

    agent_span = spans_of_type("agent")[0]
    assert agent_span.error is not None
    assert agent_span.error["message"] == "Guardrail tripwire triggered"
    assert agent_span.error["data"] == {"guardrail": "blocker"}


@pytest.mark.asyncio
async def test_max_turns_error_is_attached_to_agent_span():
    model = FakeModel()
    agent = Agent(name="test_agent", model=model, tools=[get_function_tool("foo")])
    model.add_multiple_turn_outputs([[get_function_tool_call("foo", "")] for _ in range(3)])

    with pytest.raises(MaxTurnsExceeded):
        await Runner.run(agent, input="hello", max_turns=2)

    agent_span = spans_of_type("agent")[0]
    assert agent_span.error is not None
    assert agent_span.error["message"] == "Max turns exceeded"
    assert agent_span.error["data"] == {"max_turns": 2}


@pytest.mark.asyncio
async def test_unknown_tool_error_is_attached_to_agent_span():
    agent = Agent(
        name="test_agent",
        model=FakeModel(initial_output=[get_function_tool_call("missing", "")]),
    )

    with pytest.raises(ModelBehaviorError):
        await Runner.run(agent, input="hello")

    agent_span = spans_of_type("agent")[0]
    assert agent_span.error is not None
    assert agent_span.error["message"] == "Tool not found"
    assert agent_span.error["data"] == {"tool_name": "missing"}


@function_tool
def flaky_tool() -> str:
    raise ValueError("service down")


@function_tool(failure_error_function=None)
def fatal_tool() -> str:
    raise ValueError("service down")


@pytest.mark.asyncio
async def test_recovered_tool_error_is_attached_to_function_span():
    model = FakeModel()
    agent = Agent(name="test_agent", model=model, tools=[flaky_tool])
    model.add_multiple_turn_outputs(
        [
            [get_function_tool_call("flaky_tool", "")],
            [get_text_message("done")],
        ]
    )

    result = await Runner.run(agent, input="hello")

    assert result.final_output == "done"
    function_span = spans_of_type("function")[0]
    assert function_span.error is not None
    assert function_span.error["message"] == "Error running tool (non-fatal)"
    assert function_span.error["data"] == {"tool_name": "flaky_tool", "error": "service down"}


@pytest.mark.asyncio
async def test_fatal_tool_error_is_attached_to_function_span():
    agent = Agent(
        name="test_agent",
        model=FakeModel(initial_output=[get_function_tool_call("fatal_tool", "")]),
        tools=[fatal_tool],
    )

    with pytest.raises(UserError, match="Error running tool fatal_tool: service down"):
        await Runner.run(agent, input="hello")

    function_span = spans_of_type("function")[0]
    assert function_span.error is not None
    assert function_span.error["message"] == "Error running tool"


@pytest.mark.asyncio
async def test_streamed_run_is_traced():
    model = FakeModel(tracing_enabled=True)
    agent = Agent(name="test_agent", model=model, tools=[get_function_tool("foo")])
    model.add_multiple_turn_outputs(
        [
            [get_function_tool_call("foo", "")],
            [get_text_message("done")],
        ]
    )

    result = Runner.run_streamed(agent, input="hello")
    async for _ in result.stream_events():
        pass

    assert result.error is None
    assert len(fetch_traces()) == 1
    agent_span = spans_of_type("agent")[0]
    assert len(spans_of_type("generation")) == 2
    assert [span.parent_id for span in spans_of_type("function")] == [agent_span.span_id]


@pytest.mark.asyncio
async def test_streamed_errors_are_attached_to_agent_span():
    model = FakeModel()
    model.set_next_output(ValueError("model exploded"))
    agent = Agent(name="test_agent", model=model)

    result = Runner.run_streamed(agent, input="hello")
    async for _ in result.stream_events():
        pass

    assert isinstance(result.error, ValueError)
    agent_span = spans_of_type("agent")[0]
    assert agent_span.error is not None
    assert agent_span.error["message"] == "Error in agent run"
    assert agent_span.error["data"] == {"error": "model exploded"}


def test_spans_outside_a_trace_are_no_ops():
    assert get_current_trace() is None

    with custom_span("orphan") as span:
        assert isinstance(span, NoOpSpan)

    assert_no_traces()


def test_manual_spans_nest_under_the_current_span():
    with trace(workflow_name="manual") as t:
        assert get_current_trace() is t
        with custom_span("outer", data={"step": 1}) as outer:
            assert get_current_span() is outer
            with custom_span("inner") as inner:
                assert inner.parent_id == outer.span_id
            assert get_current_span() is outer
        assert get_current_span() is None

    assert get_current_trace() is None
    assert outer.parent_id is None
    assert outer.trace_id == t.trace_id
    exported = outer.export()
    assert exported is not None
    assert exported["span_data"] == {"type": "custom", "name": "outer", "data": {"step": 1}}


def test_disabled_trace_produces_no_op_spans():
    with trace(workflow_name="quiet", disabled=True) as t:
        assert isinstance(t, NoOpTrace)
        with custom_span("inside") as span:
            assert isinstance(span, NoOpSpan)

    assert_no_traces()
