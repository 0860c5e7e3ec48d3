from __future__ import annotations

import abc
import enum
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

from ..agent_output import AgentOutputSchema
from ..handoffs import Handoff
from ..items import ModelResponse, TResponseInputItem, TResponseStreamEvent
from ..tool import Tool

if TYPE_CHECKING:
    from ..model_settings import ModelSettings


class ModelTracing(enum.Enum):
    """How much a model implementation should record in its generation spans."""

    DISABLED = 0
    ENABLED = 1
    ENABLED_WITHOUT_DATA = 2
    """Create spans, but leave out the input and output payloads."""

    def is_disabled(self) -> bool:
        return self is ModelTracing.DISABLED

    def include_data(self) -> bool:
        return self is ModelTracing.ENABLED


class Model(abc.ABC):
    """One model backend. The engine calls it once per turn, buffered or streamed.

    Both methods receive the same arguments:

    - `system_instructions`: the agent's prompt for this turn, if any.
    - `input`: the conversation so far as Responses API input items.
    - `model_settings`: already merged with the run config and tool_choice handling.
    - `tools` and `handoffs`: everything the model may call this turn. Handoffs are presented
      to the model as tools.
    - `output_schema`: set when the agent wants structured output instead of text.
    - `tracing`: how much the implementation should record.
    - `previous_response_id`: only meaningful to backends with server-side conversation state.
    """

    @abc.abstractmethod
    async def get_response(
        self,
        system_instructions: str | None,
        input: str | list[TResponseInputItem],
        model_settings: ModelSettings,
        tools: list[Tool],
        output_schema: AgentOutputSchema | None,
        handoffs: list[Handoff],
        tracing: ModelTracing,
        *,
        previous_response_id: str | None,
    ) -> ModelResponse:
        pass

    @abc.abstractmethod
    def stream_response(
        self,
        system_instructions: str | None,
        input: str | list[TResponseInputItem],
        model_settings: ModelSettings,
        tools: list[Tool],
        output_schema: AgentOutputSchema | None,
        handoffs: list[Handoff],
        tracing: ModelTracing,
        *,
        previous_response_id: str | None,
    ) -> AsyncIterator[TResponseStreamEvent]:
        """Yields Responses API stream events for one turn.

        The stream must end with a `response.completed` event holding the full response; the
        engine treats a stream without one as a model error.
        """
        pass


class ModelProvider(abc.ABC):
    """Maps model names, as set on agents or the run config, to `Model` instances."""

    @abc.abstractmethod
    def get_model(self, model_name: str | None) -> Model:
        """None asks for the provider's default model."""
