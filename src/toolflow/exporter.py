# exporter.py
# Tool-schema export of the live registry, and size-bounded chunking.
#
# Inactive functions are not exported. Hidden functions are: they stay
# callable by the planner and are only left out of the UI listing.

import json
from typing import TYPE_CHECKING, Any

from toolflow.models import FunctionMetadata, ToolChunk

if TYPE_CHECKING:
    from toolflow.registry import FunctionRegistry


def _size(value: Any) -> int:
    return len(json.dumps(value, separators=(",", ":"), ensure_ascii=False))


def describe_all(registry: "FunctionRegistry") -> list[dict[str, Any]]:
    """One tool schema per active function, in registration order."""
    return [
        descriptor.describe()
        for name, descriptor in registry.items()
        if registry.attributes(name).active
    ]


def chunk_tools(tools: list[dict[str, Any]], budget: int) -> list[ToolChunk]:
    """
    Greedily pack tool schemas into chunks whose serialized JSON array stays
    within `budget` characters.

    Order is preserved and no schema is split. A schema larger than the
    budget is placed alone in its own chunk rather than dropped.
    """
    if budget <= 0:
        raise ValueError(f"Chunk budget must be positive, got {budget}.")

    chunks: list[ToolChunk] = []
    current: list[dict[str, Any]] = []
    # Serialized length of `current`: brackets plus one comma between members.
    used = 2

    for tool in tools:
        size = _size(tool)
        if current and used + 1 + size > budget:
            chunks.append(ToolChunk(tools=current))
            current, used = [], 2
        used += size + (1 if current else 0)
        current.append(tool)

    if current:
        chunks.append(ToolChunk(tools=current))
    return chunks


def split_tool_schemas(registry: "FunctionRegistry", budget: int) -> list[ToolChunk]:
    return chunk_tools(describe_all(registry), budget)


def function_metadata(registry: "FunctionRegistry") -> list[FunctionMetadata]:
    """UI listing of registered functions, hidden ones excluded."""
    listing: list[FunctionMetadata] = []
    for name, descriptor in registry.items():
        attributes = registry.attributes(name)
        if attributes.hidden:
            continue
        listing.append(
            FunctionMetadata(
                name=name,
                description=descriptor.description,
                needs_confirmation=descriptor.needs_confirmation,
                active=attributes.active,
                is_visualization=attributes.is_visualization,
            )
        )
    return listing
