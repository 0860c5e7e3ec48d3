from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Any, Callable, get_origin, get_type_hints

from pydantic import BaseModel, create_model

from .exceptions import UserError
from .run_context import RunContextWrapper
from .strict_schema import ensure_strict_json_schema


@dataclass
class FuncSchema:
    """
    Captures the schema for a python function, in preparation for sending it to an LLM as a tool.
    """

    name: str
    """The name of the function."""
    description: str | None
    """The description of the function."""
    params_pydantic_model: type[BaseModel]
    """A Pydantic model that represents the function's parameters."""
    params_json_schema: dict[str, Any]
    """The JSON schema for the function's parameters, derived from the Pydantic model."""
    signature: inspect.Signature
    """The signature of the function."""
    takes_context: bool = False
    """Whether the function takes a RunContextWrapper argument (must be the first argument)."""
    strict_json_schema: bool = True
    """Whether the JSON schema is in strict mode."""

    def to_call_args(self, data: BaseModel) -> tuple[list[Any], dict[str, Any]]:
        """
        Converts validated data from the Pydantic model into (args, kwargs), suitable for calling
        the original function.
        """
        positional_args: list[Any] = []
        keyword_args: dict[str, Any] = {}
        seen_var_positional = False

        for idx, (name, param) in enumerate(self.signature.parameters.items()):
            # If the function takes a RunContextWrapper and this is the first parameter, skip it.
            if self.takes_context and idx == 0:
                continue

            value = getattr(data, name, None)
            if param.kind == param.VAR_POSITIONAL:
                positional_args.extend(value or [])
                seen_var_positional = True
            elif param.kind == param.VAR_KEYWORD:
                keyword_args.update(value or {})
            elif param.kind in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD):
                if not seen_var_positional:
                    positional_args.append(value)
                else:
                    keyword_args[name] = value
            else:
                keyword_args[name] = value
        return positional_args, keyword_args


def _is_context_type(ann: Any) -> bool:
    origin = get_origin(ann) or ann
    return inspect.isclass(origin) and issubclass(origin, RunContextWrapper)


def function_schema(
    func: Callable[..., Any],
    name_override: str | None = None,
    description_override: str | None = None,
    use_docstring_info: bool = True,
    strict_json_schema: bool = True,
) -> FuncSchema:
    """
    Given a python function, extracts a `FuncSchema` from it, capturing the name, description,
    parameter descriptions, and other metadata.

    Args:
        func: The function to extract the schema from.
        name_override: If provided, use this name instead of the function's `__name__`.
        description_override: If provided, use this description instead of the one derived from
            the docstring.
        use_docstring_info: If True, uses the first paragraph of the docstring as the description.
        strict_json_schema: Whether the JSON schema is in strict mode.

    Returns:
        A `FuncSchema` object containing the function's name, description, parameter descriptions,
        and other metadata.
    """
    description = None
    if use_docstring_info:
        doc = inspect.getdoc(func)
        if doc:
            description = doc.split("\n\n", 1)[0].strip() or None

    func_name = name_override or func.__name__

    sig = inspect.signature(func)
    type_hints = get_type_hints(func)
    params = list(sig.parameters.items())
    takes_context = False
    filtered_params = []

    if params:
        first_name, first_param = params[0]
        ann = type_hints.get(first_name, first_param.annotation)
        if ann != inspect._empty and _is_context_type(ann):
            takes_context = True
        else:
            filtered_params.append((first_name, first_param))

    for name, param in params[1:]:
        ann = type_hints.get(name, param.annotation)
        if ann != inspect._empty and _is_context_type(ann):
            raise UserError(
                f"RunContextWrapper param found at non-first position in function {func.__name__}"
            )
        filtered_params.append((name, param))

    fields: dict[str, Any] = {}
    for name, param in filtered_params:
        ann = type_hints.get(name, param.annotation)
        default = param.default

        if ann == inspect._empty:
            ann = Any

        if param.kind == param.VAR_POSITIONAL:
            fields[name] = (list[ann], [])  # type: ignore
        elif param.kind == param.VAR_KEYWORD:
            fields[name] = (dict[str, ann], {})  # type: ignore
        elif default == inspect._empty:
            fields[name] = (ann, ...)
        else:
            fields[name] = (ann, default)

    dynamic_model = create_model(f"{func_name}_args", __base__=BaseModel, **fields)

    json_schema = dynamic_model.model_json_schema()
    if strict_json_schema:
        json_schema = ensure_strict_json_schema(json_schema)

    return FuncSchema(
        name=func_name,
        description=description_override or description,
        params_pydantic_model=dynamic_model,
        params_json_schema=json_schema,
        signature=sig,
        takes_context=takes_context,
        strict_json_schema=strict_json_schema,
    )
