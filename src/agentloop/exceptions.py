from __future__ import annotations

from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from .guardrail import InputGuardrailResult, OutputGuardrailResult

TGuardrailResult = TypeVar("TGuardrailResult")


class AgentsException(Exception):
    """Base class for every error agentloop raises on its own."""


class _MessageError(AgentsException):
    message: str

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class MaxTurnsExceeded(_MessageError):
    """The run made `max_turns` model calls without reaching a final output."""


class ModelBehaviorError(_MessageError):
    """The model produced something the engine cannot act on: an unknown tool, arguments that do
    not parse, or a streamed response with no completion.
    """


class UserError(_MessageError):
    """The library was configured or called incorrectly."""


class _TripwireTriggered(AgentsException, Generic[TGuardrailResult]):
    guardrail_result: TGuardrailResult

    def __init__(self, guardrail_result: TGuardrailResult):
        self.guardrail_result = guardrail_result
        name = guardrail_result.guardrail.get_name()  # type: ignore[attr-defined]
        super().__init__(f"Guardrail {name} triggered tripwire")


class InputGuardrailTripwireTriggered(_TripwireTriggered["InputGuardrailResult"]):
    """An input guardrail reported `tripwire_triggered`. The run stops before any model output
    is used.
    """


class OutputGuardrailTripwireTriggered(_TripwireTriggered["OutputGuardrailResult"]):
    """An output guardrail rejected the final output."""
