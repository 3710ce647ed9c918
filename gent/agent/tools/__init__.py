"""Tool descriptors and the per-agent tool registry.

A descriptor pairs the schema the model sees with the coroutine that
runs the tool. Handlers take the parsed JSON arguments as keyword
arguments and return a content block, a string, or a list of those.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Iterator

Handler = Callable[..., Awaitable[Any]]


@dataclass(frozen=True)
class ToolDescriptor:
    name: str
    description: str
    handler: Handler
    parameters: dict[str, Any] | None = None

    @classmethod
    def from_schema(cls, schema: dict[str, Any], handler: Handler) -> ToolDescriptor:
        return cls(
            name=schema["name"],
            description=schema.get("description", ""),
            handler=handler,
            parameters=schema.get("parameters"),
        )

    def schema(self) -> dict[str, Any]:
        """The function-tool declaration sent to the LLM service."""
        out: dict[str, Any] = {
            "type": "function",
            "name": self.name,
            "description": self.description,
        }
        if self.parameters is not None:
            out["parameters"] = self.parameters
        return out


class ToolRegistry:
    """Name-keyed set of tools, fixed once the agent is built."""

    def __init__(self, tools: Iterable[ToolDescriptor] = ()) -> None:
        self._tools: dict[str, ToolDescriptor] = {}
        for tool in tools:
            if tool.name in self._tools:
                raise ValueError(f"Duplicate tool name: {tool.name}")
            self._tools[tool.name] = tool

    def get(self, name: str) -> ToolDescriptor | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def schemas(self) -> list[dict[str, Any]]:
        return [tool.schema() for tool in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[ToolDescriptor]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)
