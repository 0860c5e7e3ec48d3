from __future__ import annotations

import pytest
from openai.types.responses import ResponseFileSearchToolCall
from openai.types.responses.response_reasoning_item import ResponseReasoningItem, Summary

from agentloop import (
    Agent,
    ComputerTool,
    HandoffCallItem,
    MessageOutputItem,
    ReasoningItem,
    ToolCallItem,
)
from agentloop._run_impl import RunImpl
from agentloop.exceptions import ModelBehaviorError
from agentloop.handoffs import handoff
from agentloop.items import ModelResponse
from agentloop.usage import Usage

from .fake_model import FakeModel
from .test_computer_action import LoggingComputer
from .test_responses import (
    get_computer_tool_call,
    get_function_tool,
    get_function_tool_call,
    get_handoff_tool_call,
    get_text_message,
)


def _response(output: list[object]) -> ModelResponse:
    response = ModelResponse(output=[], usage=Usage(), response_id="resp")
    response.output = output  # type: ignore[assignment]
    return response


def test_empty_response_produces_nothing_to_run() -> None:
    agent = Agent(name="empty", model=FakeModel())

    processed = RunImpl.process_model_response(
        agent=agent,
        all_tools=[],
        response=_response([]),
        output_schema=None,
        handoffs=[],
    )

    assert processed.new_items == []
    assert processed.tools_used == []
    assert not processed.has_tools_to_run()


def test_messages_and_reasoning_become_items_in_order() -> None:
    agent = Agent(name="writer", model=FakeModel())
    reasoning = ResponseReasoningItem(
        id="r1", type="reasoning", summary=[Summary(text="thinking", type="summary_text")]
    )

    processed = RunImpl.process_model_response(
        agent=agent,
        all_tools=[],
        response=_response([reasoning, get_text_message("hi")]),
        output_schema=None,
        handoffs=[],
    )

    assert [type(item) for item in processed.new_items] == [ReasoningItem, MessageOutputItem]
    assert all(item.agent is agent for item in processed.new_items)
    assert not processed.has_tools_to_run()


def test_function_calls_and_handoffs_are_separated() -> None:
    target = Agent(name="target", model=FakeModel())
    tool = get_function_tool("lookup", "value")
    agent = Agent(name="router", model=FakeModel(), tools=[tool], handoffs=[target])
    handoffs = [handoff(target)]

    processed = RunImpl.process_model_response(
        agent=agent,
        all_tools=[tool],
        response=_response(
            [
                get_text_message("working on it"),
                get_function_tool_call("lookup", "{}"),
                get_handoff_tool_call(target),
            ]
        ),
        output_schema=None,
        handoffs=handoffs,
    )

    assert [type(item) for item in processed.new_items] == [
        MessageOutputItem,
        ToolCallItem,
        HandoffCallItem,
    ]
    assert [run.function_tool for run in processed.functions] == [tool]
    assert [run.handoff for run in processed.handoffs] == handoffs
    assert processed.tools_used == ["lookup", "transfer_to_target"]
    assert processed.has_tools_to_run()


def test_unknown_function_tool_raises() -> None:
    agent = Agent(name="strict", model=FakeModel())

    with pytest.raises(ModelBehaviorError, match="Tool missing not found in agent strict"):
        RunImpl.process_model_response(
            agent=agent,
            all_tools=[get_function_tool("present")],
            response=_response([get_function_tool_call("missing", "{}")]),
            output_schema=None,
            handoffs=[],
        )


def test_computer_call_without_computer_tool_raises() -> None:
    agent = Agent(name="no-computer", model=FakeModel())

    with pytest.raises(ModelBehaviorError, match="computer action without a computer tool"):
        RunImpl.process_model_response(
            agent=agent,
            all_tools=[],
            response=_response([get_computer_tool_call()]),
            output_schema=None,
            handoffs=[],
        )


def test_computer_call_is_scheduled_with_the_computer_tool() -> None:
    computer_tool = ComputerTool(computer=LoggingComputer())
    agent = Agent(name="operator", model=FakeModel(), tools=[computer_tool])

    processed = RunImpl.process_model_response(
        agent=agent,
        all_tools=[computer_tool],
        response=_response([get_computer_tool_call("c1"), get_computer_tool_call("c2")]),
        output_schema=None,
        handoffs=[],
    )

    assert [action.tool_call.call_id for action in processed.computer_actions] == ["c1", "c2"]
    assert all(action.computer_tool is computer_tool for action in processed.computer_actions)
    assert processed.tools_used == ["computer_use", "computer_use"]


def test_hosted_tool_calls_are_recorded_but_not_run() -> None:
    agent = Agent(name="searcher", model=FakeModel())
    file_search = ResponseFileSearchToolCall(
        id="fs1", queries=["docs"], status="completed", type="file_search_call"
    )

    processed = RunImpl.process_model_response(
        agent=agent,
        all_tools=[],
        response=_response([file_search]),
        output_schema=None,
        handoffs=[],
    )

    assert [type(item) for item in processed.new_items] == [ToolCallItem]
    assert processed.tools_used == ["file_search"]
    assert not processed.has_tools_to_run()


def test_unknown_output_types_are_skipped() -> None:
    agent = Agent(name="tolerant", model=FakeModel())

    processed = RunImpl.process_model_response(
        agent=agent,
        all_tools=[],
        response=_response([{"type": "something_new"}, get_text_message("still here")]),
        output_schema=None,
        handoffs=[],
    )

    assert [type(item) for item in processed.new_items] == [MessageOutputItem]


def test_processing_twice_gives_equal_results() -> None:
    target = Agent(name="target", model=FakeModel())
    tool = get_function_tool("lookup", "value")
    agent = Agent(name="router", model=FakeModel(), tools=[tool])
    handoffs = [handoff(target)]
    response = _response(
        [
            get_text_message("a"),
            get_function_tool_call("lookup", "{}"),
            get_handoff_tool_call(target),
        ]
    )

    def process():
        return RunImpl.process_model_response(
            agent=agent,
            all_tools=[tool],
            response=response,
            output_schema=None,
            handoffs=handoffs,
        )

    first = process()
    second = process()

    assert first.new_items == second.new_items
    assert first.functions == second.functions
    assert first.handoffs == second.handoffs
    assert first.tools_used == second.tools_used
