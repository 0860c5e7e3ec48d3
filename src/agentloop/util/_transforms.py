import re

from ..logger import logger


def transform_string_function_style(name: str) -> str:
    """Turns an arbitrary display name into something usable as a function/tool name."""
    name = name.replace(" ", "_")
    transformed_name = re.sub(r"[^a-zA-Z0-9_]", "_", name).lower()

    if transformed_name != name.lower():
        logger.warning(
            "Name %r contains characters that are not valid in a tool name; using %r instead",
            name,
            transformed_name,
        )

    return transformed_name
