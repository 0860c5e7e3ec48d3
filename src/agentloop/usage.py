from dataclasses import field
from typing import TypeVar

from openai.types.responses.response_usage import InputTokensDetails, OutputTokensDetails
from pydantic import BaseModel
from pydantic.dataclasses import dataclass

TDetails = TypeVar("TDetails", bound=BaseModel)


def _zero_details(cls: type[TDetails]) -> TDetails:
    # Built from whatever counters the installed SDK declares, so newly required ones are covered.
    return cls.model_construct(**{name: 0 for name in cls.model_fields})


def _sum_details(cls: type[TDetails], a: BaseModel, b: BaseModel) -> TDetails:
    totals = {}
    for name in cls.model_fields:
        totals[name] = (getattr(a, name, 0) or 0) + (getattr(b, name, 0) or 0)
    return cls.model_construct(**totals)


@dataclass
class Usage:
    """Token and request counters for a run, summed over every model call it makes.

    The detail objects mirror the Responses API usage payload so provider numbers can be copied
    in unchanged.
    """

    requests: int = 0
    input_tokens: int = 0
    input_tokens_details: InputTokensDetails = field(
        default_factory=lambda: _zero_details(InputTokensDetails)
    )
    output_tokens: int = 0
    output_tokens_details: OutputTokensDetails = field(
        default_factory=lambda: _zero_details(OutputTokensDetails)
    )
    total_tokens: int = 0

    def add(self, other: "Usage") -> None:
        """Accumulates `other` into this object. Missing counters count as zero."""
        self.requests += other.requests or 0
        self.input_tokens += other.input_tokens or 0
        self.output_tokens += other.output_tokens or 0
        self.total_tokens += other.total_tokens or 0
        self.input_tokens_details = _sum_details(
            InputTokensDetails, self.input_tokens_details, other.input_tokens_details
        )
        self.output_tokens_details = _sum_details(
            OutputTokensDetails, self.output_tokens_details, other.output_tokens_details
        )
