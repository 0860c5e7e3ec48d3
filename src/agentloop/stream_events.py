from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Union

from typing_extensions import TypeAlias

from .agent import Agent
from .items import RunItem, TResponseStreamEvent


@dataclass
class RawResponsesStreamEvent:
    """A model stream event, forwarded untouched."""

    data: TResponseStreamEvent
    type: Literal["raw_response_event"] = "raw_response_event"


@dataclass
class AgentTextDeltaStreamEvent:
    """Text the current agent just produced. Queued right after the raw
    `response.output_text.delta` event it comes from.
    """

    delta: str
    agent: Agent[Any]
    type: Literal["agent_text_delta_stream_event"] = "agent_text_delta_stream_event"


RunItemEventName: TypeAlias = Literal[
    "message_output_created",
    "handoff_requested",
    # Spelling kept; consumers match on it.
    "handoff_occured",
    "tool_called",
    "tool_output",
    "reasoning_item_created",
]


@dataclass
class RunItemStreamEvent:
    """A `RunItem` the engine produced while executing a turn.

    These arrive after the turn's raw events, once tools and handoffs have run.
    """

    name: RunItemEventName
    item: RunItem
    type: Literal["run_item_stream_event"] = "run_item_stream_event"


@dataclass
class AgentUpdatedStreamEvent:
    """Emitted when the run starts and after every handoff."""

    new_agent: Agent[Any]
    type: Literal["agent_updated_stream_event"] = "agent_updated_stream_event"


StreamEvent: TypeAlias = Union[
    RawResponsesStreamEvent,
    AgentTextDeltaStreamEvent,
    RunItemStreamEvent,
    AgentUpdatedStreamEvent,
]
