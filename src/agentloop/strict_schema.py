from __future__ import annotations

from typing import Any

from openai import NOT_GIVEN
from typing_extensions import TypeGuard

from .exceptions import UserError

_EMPTY_SCHEMA = {
    "additionalProperties": False,
    "type": "object",
    "properties": {},
    "required": [],
}

_ADDITIONAL_PROPERTIES_MESSAGE = (
    "Strict schemas cannot allow additionalProperties on objects. Turn off strict mode for this "
    "tool or output type if extra keys are really needed."
)


def ensure_strict_json_schema(
    schema: dict[str, Any],
) -> dict[str, Any]:
    """Rewrites `schema` in place into the strict subset of JSON schema tool calling accepts.

    Objects get `additionalProperties: false` and list every property as required. Null defaults
    are dropped, single-entry `allOf` is merged into its parent, and `$ref`s with sibling keys are
    inlined. The walk covers definitions, properties, items, anyOf and allOf.
    """
    if schema == {}:
        return dict(_EMPTY_SCHEMA)
    return _Strictifier(schema).visit(schema, ())


def _is_dict(obj: object) -> TypeGuard[dict[str, object]]:
    return isinstance(obj, dict)


def _is_list(obj: object) -> TypeGuard[list[object]]:
    return isinstance(obj, list)


class _Strictifier:
    def __init__(self, root: dict[str, Any]):
        self.root = root

    def visit(self, node: object, path: tuple[str, ...]) -> dict[str, Any]:
        if not _is_dict(node):
            raise TypeError(f"Expected a dict at {'/'.join(path) or '<root>'}, got {node!r}")

        for defs_key in ("$defs", "definitions"):
            defs = node.get(defs_key)
            if _is_dict(defs):
                for name, sub in defs.items():
                    self.visit(sub, (*path, defs_key, name))

        if node.get("type") == "object":
            if node.get("additionalProperties") is True:
                raise UserError(_ADDITIONAL_PROPERTIES_MESSAGE)
            node.setdefault("additionalProperties", False)

        properties = node.get("properties")
        if _is_dict(properties):
            node["required"] = list(properties)
            node["properties"] = {
                key: self.visit(sub, (*path, "properties", key))
                for key, sub in properties.items()
            }

        items = node.get("items")
        if _is_dict(items):
            node["items"] = self.visit(items, (*path, "items"))

        for key in ("anyOf", "allOf"):
            variants = node.get(key)
            if _is_list(variants):
                node[key] = [
                    self.visit(sub, (*path, key, str(i))) for i, sub in enumerate(variants)
                ]

        all_of = node.get("allOf")
        if _is_list(all_of) and len(all_of) == 1:
            node.update(all_of[0])  # type: ignore[arg-type]
            del node["allOf"]

        if node.get("default", NOT_GIVEN) is None:
            del node["default"]

        ref = node.get("$ref")
        if ref and len(node) > 1:
            return self._inline_ref(node, str(ref), path)
        return node

    def _inline_ref(self, node: dict[str, Any], ref: str, path: tuple[str, ...]) -> dict[str, Any]:
        target = self._resolve(ref)
        if not _is_dict(target):
            raise ValueError(f"$ref {ref!r} points at {target!r}, not a schema object")
        # Keys written next to the $ref win over the referenced schema's.
        merged = {**target, **node}
        node.clear()
        node.update(merged)
        del node["$ref"]
        return self.visit(node, path)

    def _resolve(self, ref: str) -> object:
        if not ref.startswith("#/"):
            raise ValueError(f"Only local refs starting with '#/' are supported, got {ref!r}")
        current: object = self.root
        for part in ref[2:].split("/"):
            if not _is_dict(current):
                raise ValueError(f"Cannot follow {ref!r}: {part!r} is not inside an object")
            current = current[part]
        return current
