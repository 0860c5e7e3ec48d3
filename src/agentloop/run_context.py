from dataclasses import dataclass, field
from typing import Any, Generic

from typing_extensions import TypeVar

from .usage import Usage

TContext = TypeVar("TContext", default=Any)


@dataclass
class RunContextWrapper(Generic[TContext]):
    """Carries the caller's `context` object through a run, together with its running usage.

    The context never reaches the model. It is how tools, hooks, guardrails and dynamic
    instructions get at the caller's dependencies and state.
    """

    context: TContext

    usage: Usage = field(default_factory=Usage)
    """Usage so far. In a streamed turn it is updated once the response completes."""
