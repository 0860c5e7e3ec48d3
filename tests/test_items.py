from __future__ import annotations

import pytest
from openai.types.responses import (
    ResponseFunctionToolCall,
    ResponseOutputMessage,
    ResponseOutputRefusal,
    ResponseOutputText,
)

from agentloop import (
    Agent,
    AgentsException,
    ItemHelpers,
    MessageOutputItem,
    ModelResponse,
    ToolCallItem,
    ToolCallOutputItem,
    Usage,
)

from .test_responses import get_function_tool_call, get_text_message


def make_message(
    content_items: list[ResponseOutputText | ResponseOutputRefusal],
) -> ResponseOutputMessage:
    return ResponseOutputMessage(
        id="msg123",
        content=content_items,
        role="assistant",
        status="completed",
        type="message",
    )


def test_extract_last_content_of_text_message() -> None:
    message = make_message(
        [
            ResponseOutputText(annotations=[], text="Hello ", type="output_text"),
            ResponseOutputText(annotations=[], text="world!", type="output_text"),
        ]
    )
    assert ItemHelpers.extract_last_content(message) == "world!"


def test_extract_last_content_of_refusal_message() -> None:
    message = make_message([ResponseOutputRefusal(refusal="I cannot do that", type="refusal")])
    assert ItemHelpers.extract_last_content(message) == "I cannot do that"


def test_extract_last_content_non_message_returns_empty() -> None:
    assert ItemHelpers.extract_last_content(get_function_tool_call("foo", "{}")) == ""


def test_extract_last_text_returns_text_only() -> None:
    message = make_message([ResponseOutputText(annotations=[], text="final", type="output_text")])
    assert ItemHelpers.extract_last_text(message) == "final"

    refusal = make_message([ResponseOutputRefusal(refusal="no", type="refusal")])
    assert ItemHelpers.extract_last_text(refusal) is None

    assert ItemHelpers.extract_last_text(get_function_tool_call("foo", "{}")) is None


def test_input_to_new_input_list_from_string() -> None:
    assert ItemHelpers.input_to_new_input_list("hi") == [{"content": "hi", "role": "user"}]


def test_input_to_new_input_list_deep_copies_lists() -> None:
    original = [{"content": "hi", "role": "user"}]
    result = ItemHelpers.input_to_new_input_list(original)  # type: ignore[arg-type]

    assert result == original
    assert result is not original
    result[0]["content"] = "changed"  # type: ignore[index]
    assert original[0]["content"] == "hi"


def test_text_message_outputs_across_multiple_messages() -> None:
    agent = Agent(name="test")
    first = MessageOutputItem(
        agent=agent,
        raw_item=make_message(
            [
                ResponseOutputText(annotations=[], text="foo", type="output_text"),
                ResponseOutputRefusal(refusal="skipped", type="refusal"),
            ]
        ),
    )
    second = MessageOutputItem(
        agent=agent,
        raw_item=make_message([ResponseOutputText(annotations=[], text="bar", type="output_text")]),
    )
    tool_call = ToolCallItem(
        agent=agent,
        raw_item=get_function_tool_call("foo", "{}"),  # type: ignore[arg-type]
    )

    assert ItemHelpers.text_message_output(first) == "foo"
    assert ItemHelpers.text_message_outputs([first, tool_call, second]) == "foobar"


def test_tool_call_output_item_constructs_function_call_output_dict() -> None:
    call = ResponseFunctionToolCall(
        id="call-abc",
        arguments='{"x": 1}',
        call_id="call-abc",
        name="do_something",
        type="function_call",
    )

    payload = ItemHelpers.tool_call_output_item(call, "result-string")

    assert payload == {
        "call_id": "call-abc",
        "output": "result-string",
        "type": "function_call_output",
    }


def test_to_input_item_for_output_model() -> None:
    agent = Agent(name="test")
    item = MessageOutputItem(
        agent=agent,
        raw_item=make_message(
            [ResponseOutputText(annotations=[], text="hello", type="output_text")]
        ),
    )

    input_item = item.to_input_item()

    assert isinstance(input_item, dict)
    assert input_item["type"] == "message"  # type: ignore[typeddict-item]
    assert input_item["role"] == "assistant"  # type: ignore[typeddict-item]
    assert input_item["content"][0]["text"] == "hello"  # type: ignore[typeddict-item,index]


def test_to_input_item_for_dict_item_is_unchanged() -> None:
    agent = Agent(name="test")
    raw = {"call_id": "1", "output": "ok", "type": "function_call_output"}
    item = ToolCallOutputItem(agent=agent, raw_item=raw, output="ok")  # type: ignore[arg-type]

    assert item.to_input_item() is raw


def test_to_input_item_rejects_unknown_raw_types() -> None:
    agent = Agent(name="test")
    item = ToolCallOutputItem(
        agent=agent,
        raw_item="not an item",  # type: ignore[arg-type]
        output="x",
    )

    with pytest.raises(AgentsException):
        item.to_input_item()


def test_model_response_to_input_items() -> None:
    response = ModelResponse(
        output=[get_text_message("hi"), get_function_tool_call("lookup", '{"q": 1}')],
        usage=Usage(),
        response_id=None,
    )

    items = response.to_input_items()

    assert len(items) == 2
    assert items[0]["type"] == "message"  # type: ignore[typeddict-item]
    assert items[1]["type"] == "function_call"  # type: ignore[typeddict-item]
    assert items[1]["name"] == "lookup"  # type: ignore[typeddict-item]
    assert items[1]["arguments"] == '{"q": 1}'  # type: ignore[typeddict-item]
