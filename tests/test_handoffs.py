from __future__ import annotations

import json
from typing import Any

import pytest
from openai.types.responses import ResponseOutputMessage, ResponseOutputText
from pydantic import BaseModel

from agentloop import (
    Agent,
    AgentHooks,
    Handoff,
    HandoffInputData,
    MessageOutputItem,
    ModelBehaviorError,
    RunContextWrapper,
    RunHooks,
    Runner,
    UserError,
    handoff,
)
from agentloop.run import Runner as RunnerImpl

from .fake_model import FakeModel
from .test_responses import get_handoff_tool_call, get_text_message


def message_item(content: str, agent: Agent[Any]) -> MessageOutputItem:
    return MessageOutputItem(
        agent=agent,
        raw_item=ResponseOutputMessage(
            id="123",
            status="completed",
            role="assistant",
            type="message",
            content=[ResponseOutputText(text=content, type="output_text", annotations=[])],
        ),
    )


def get_len(data: HandoffInputData) -> int:
    input_len = len(data.input_history) if isinstance(data.input_history, tuple) else 1
    pre_handoff_len = len(data.pre_handoff_items)
    new_items_len = len(data.new_items)
    return input_len + pre_handoff_len + new_items_len


def test_single_handoff_setup():
    agent_1 = Agent(name="test_1")
    agent_2 = Agent(name="test_2", handoffs=[agent_1])

    assert not agent_1.handoffs
    assert agent_2.handoffs == [agent_1]

    assert not RunnerImpl._get_handoffs(agent_1)

    handoff_objects = RunnerImpl._get_handoffs(agent_2)
    assert len(handoff_objects) == 1
    obj = handoff_objects[0]
    assert obj.tool_name == Handoff.default_tool_name(agent_1)
    assert obj.tool_description == Handoff.default_tool_description(agent_1)
    assert obj.agent_name == agent_1.name


def test_multiple_handoffs_setup():
    agent_1 = Agent(name="test_1")
    agent_2 = Agent(name="test_2")
    agent_3 = Agent(name="test_3", handoffs=[agent_1, agent_2])

    assert agent_3.handoffs == [agent_1, agent_2]
    assert not agent_1.handoffs
    assert not agent_2.handoffs

    handoff_objects = RunnerImpl._get_handoffs(agent_3)
    assert len(handoff_objects) == 2
    assert handoff_objects[0].tool_name == Handoff.default_tool_name(agent_1)
    assert handoff_objects[1].tool_name == Handoff.default_tool_name(agent_2)

    assert handoff_objects[0].tool_description == Handoff.default_tool_description(agent_1)
    assert handoff_objects[1].tool_description == Handoff.default_tool_description(agent_2)

    assert handoff_objects[0].agent_name == agent_1.name
    assert handoff_objects[1].agent_name == agent_2.name


def test_custom_handoff_setup():
    agent_1 = Agent(name="test_1")
    agent_2 = Agent(name="test_2")
    agent_3 = Agent(
        name="test_3",
        handoffs=[
            agent_1,
            handoff(
                agent_2,
                tool_name_override="custom_tool_name",
                tool_description_override="custom tool description",
            ),
        ],
    )

    assert len(agent_3.handoffs) == 2

    handoff_objects = RunnerImpl._get_handoffs(agent_3)
    assert len(handoff_objects) == 2

    first_handoff = handoff_objects[0]
    assert isinstance(first_handoff, Handoff)
    assert first_handoff.tool_name == Handoff.default_tool_name(agent_1)
    assert first_handoff.tool_description == Handoff.default_tool_description(agent_1)
    assert first_handoff.agent_name == agent_1.name

    second_handoff = handoff_objects[1]
    assert isinstance(second_handoff, Handoff)
    assert second_handoff.tool_name == "custom_tool_name"
    assert second_handoff.tool_description == "custom tool description"
    assert second_handoff.agent_name == agent_2.name


def test_default_tool_name_is_function_style():
    agent = Agent(name="Billing Agent", handoff_description="Handles invoices.")

    assert Handoff.default_tool_name(agent) == "transfer_to_billing_agent"
    assert Handoff.default_tool_description(agent) == (
        "Handoff to the Billing Agent agent to handle the request. Handles invoices."
    )


class Foo(BaseModel):
    bar: str


@pytest.mark.asyncio
async def test_handoff_input_type():
    async def _on_handoff(ctx: RunContextWrapper[Any], input: Foo):
        pass

    agent = Agent(name="test")
    obj = handoff(agent, input_type=Foo, on_handoff=_on_handoff)
    for key, value in Foo.model_json_schema().items():
        assert obj.input_json_schema[key] == value

    # Invalid JSON should raise an error
    with pytest.raises(ModelBehaviorError):
        await obj.on_invoke_handoff(RunContextWrapper(agent), "not json")

    # Empty JSON should raise an error
    with pytest.raises(ModelBehaviorError):
        await obj.on_invoke_handoff(RunContextWrapper(agent), "")

    # Valid JSON should call the on_handoff function
    invoked = await obj.on_invoke_handoff(
        RunContextWrapper(agent), Foo(bar="baz").model_dump_json()
    )
    assert invoked == agent


@pytest.mark.asyncio
async def test_on_handoff_called():
    was_called = False

    async def _on_handoff(ctx: RunContextWrapper[Any], input: Foo):
        nonlocal was_called
        was_called = input.bar == "baz"

    agent = Agent(name="test")
    obj = handoff(agent, input_type=Foo, on_handoff=_on_handoff)

    invoked = await obj.on_invoke_handoff(
        RunContextWrapper(agent), Foo(bar="baz").model_dump_json()
    )
    assert invoked == agent

    assert was_called, "on_handoff should have been called"


@pytest.mark.asyncio
async def test_on_handoff_without_input_called():
    was_called = False

    def _on_handoff(ctx: RunContextWrapper[Any]):
        nonlocal was_called
        was_called = True

    agent = Agent(name="test")
    obj = handoff(agent, on_handoff=_on_handoff)

    invoked = await obj.on_invoke_handoff(RunContextWrapper(agent), "")
    assert invoked == agent

    assert was_called, "on_handoff should have been called"


@pytest.mark.asyncio
async def test_async_on_handoff_without_input_called():
    was_called = False

    async def _on_handoff(ctx: RunContextWrapper[Any]):
        nonlocal was_called
        was_called = True

    agent = Agent(name="test")
    obj = handoff(agent, on_handoff=_on_handoff)

    invoked = await obj.on_invoke_handoff(RunContextWrapper(agent), "")
    assert invoked == agent

    assert was_called, "on_handoff should have been called"


@pytest.mark.asyncio
async def test_invalid_on_handoff_raises_error():
    was_called = False

    async def _on_handoff(ctx: RunContextWrapper[Any], blah: str):
        nonlocal was_called
        was_called = True  # pragma: no cover

    agent = Agent(name="test")

    with pytest.raises(UserError):
        # Purposely ignoring the type error here to simulate invalid input
        handoff(agent, on_handoff=_on_handoff)  # type: ignore


def test_handoff_input_data():
    agent = Agent(name="test")

    data = HandoffInputData(
        input_history="",
        pre_handoff_items=(),
        new_items=(),
    )
    assert get_len(data) == 1

    data = HandoffInputData(
        input_history=({"role": "user", "content": "foo"},),
        pre_handoff_items=(),
        new_items=(),
    )
    assert get_len(data) == 1

    data = HandoffInputData(
        input_history=(
            {"role": "user", "content": "foo"},
            {"role": "assistant", "content": "bar"},
        ),
        pre_handoff_items=(),
        new_items=(),
    )
    assert get_len(data) == 2

    data = HandoffInputData(
        input_history=({"role": "user", "content": "foo"},),
        pre_handoff_items=(
            message_item("foo", agent),
            message_item("foo2", agent),
        ),
        new_items=(
            message_item("bar", agent),
            message_item("baz", agent),
        ),
    )
    assert get_len(data) == 5

    data = HandoffInputData(
        input_history=(
            {"role": "user", "content": "foo"},
            {"role": "assistant", "content": "bar"},
        ),
        pre_handoff_items=(message_item("baz", agent),),
        new_items=(
            message_item("baz", agent),
            message_item("qux", agent),
        ),
    )

    assert get_len(data) == 5


def test_handoff_input_data_clone_keeps_the_original():
    agent = Agent(name="test")
    data = HandoffInputData(
        input_history="hello",
        pre_handoff_items=(message_item("a", agent),),
        new_items=(message_item("b", agent),),
    )

    cloned = data.clone(new_items=())

    assert cloned.new_items == ()
    assert cloned.pre_handoff_items == data.pre_handoff_items
    assert len(data.new_items) == 1


def test_handoff_input_schema_is_strict():
    agent = Agent(name="test")
    obj = handoff(agent, input_type=Foo, on_handoff=lambda ctx, input: None)
    for key, value in Foo.model_json_schema().items():
        assert obj.input_json_schema[key] == value
    assert obj.strict_json_schema, "Input schema should be strict"

    assert (
        "additionalProperties" in obj.input_json_schema
        and not obj.input_json_schema["additionalProperties"]
    ), "Input schema should be strict and have additionalProperties=False"


def test_transfer_message_names_the_receiving_agent():
    agent = Agent(name="billing")
    obj = handoff(agent)

    assert json.loads(obj.get_transfer_message(agent)) == {"assistant": "billing"}


class HandoffRecordingHooks(RunHooks[Any]):
    def __init__(self) -> None:
        self.handoffs: list[tuple[str, str]] = []
        self.agent_starts: list[str] = []

    async def on_agent_start(self, context, agent) -> None:
        self.agent_starts.append(agent.name)

    async def on_handoff(self, context, from_agent, to_agent) -> None:
        self.handoffs.append((from_agent.name, to_agent.name))


class ReceiverHooks(AgentHooks[Any]):
    def __init__(self) -> None:
        self.sources: list[str] = []
        self.starts = 0

    async def on_start(self, context, agent) -> None:
        self.starts += 1

    async def on_handoff(self, context, agent, source) -> None:
        self.sources.append(source.name)


@pytest.mark.asyncio
async def test_handoff_fires_hooks_and_switches_agents():
    model = FakeModel()
    run_hooks = HandoffRecordingHooks()
    receiver_hooks = ReceiverHooks()
    sender_hooks = ReceiverHooks()
    receiver = Agent(name="receiver", model=model, hooks=receiver_hooks)
    sender = Agent(name="sender", model=model, handoffs=[receiver], hooks=sender_hooks)

    model.add_multiple_turn_outputs(
        [
            [get_text_message("passing you along"), get_handoff_tool_call(receiver)],
            [get_text_message("receiver here")],
        ]
    )

    result = await Runner.run(sender, input="help", hooks=run_hooks)

    assert result.final_output == "receiver here"
    assert result.last_agent is receiver
    assert run_hooks.handoffs == [("sender", "receiver")]
    assert run_hooks.agent_starts == ["sender", "receiver"]
    assert receiver_hooks.sources == ["sender"]
    assert receiver_hooks.starts == 1
    # Only the agent being handed to hears about it
    assert sender_hooks.sources == []
    assert sender_hooks.starts == 1


@pytest.mark.asyncio
async def test_on_handoff_runs_during_a_run():
    model = FakeModel()
    seen: list[str] = []

    def record(ctx: RunContextWrapper[Any], input: Foo) -> None:
        seen.append(input.bar)

    receiver = Agent(name="receiver", model=model)
    sender = Agent(
        name="sender",
        model=model,
        handoffs=[handoff(receiver, on_handoff=record, input_type=Foo)],
    )
    model.add_multiple_turn_outputs(
        [
            [get_handoff_tool_call(receiver, args=Foo(bar="escalate").model_dump_json())],
            [get_text_message("done")],
        ]
    )

    result = await Runner.run(sender, input="help")

    assert result.final_output == "done"
    assert seen == ["escalate"]
