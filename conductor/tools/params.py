"""Parameter handling shared by every tool kind."""

import copy
from typing import Any


def _is_bound(value: Any) -> bool:
    return value is not None and value != ""


def bound_params(params: dict[str, Any]) -> dict[str, Any]:
    """Parameters the caller actually set (empty strings count as unset)."""
    return {key: value for key, value in params.items() if _is_bound(value)}


def filter_schema_for_llm(
    schema: dict[str, Any] | None,
    params: dict[str, Any],
) -> dict[str, Any]:
    """Remove parameters the caller already bound from a tool schema.

    The model only sees what it must still supply. The input schema is
    not modified.
    """
    filtered = copy.deepcopy(schema) if schema else {}
    filtered.setdefault("type", "object")
    properties = filtered.get("properties")
    if not isinstance(properties, dict):
        filtered["properties"] = {}
        return filtered

    bound = bound_params(params)
    filtered["properties"] = {k: v for k, v in properties.items() if k not in bound}
    if isinstance(filtered.get("required"), list):
        filtered["required"] = [k for k in filtered["required"] if k not in bound]
    return filtered


def merge_tool_parameters(
    bound: dict[str, Any],
    call_args: dict[str, Any] | None,
) -> dict[str, Any]:
    """Combine caller-bound parameters with the model's call arguments.

    Bound values win; the model fills everything the caller left unset.
    """
    return {**(call_args or {}), **bound_params(bound)}
