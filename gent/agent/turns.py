"""Conversation turns and content blocks.

A conversation is an ordered list of turns. Each turn knows how to render
itself as an input item for the Responses API, and `parse_output_item`
turns a finalized output item from the stream back into a turn.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Any, ClassVar, Union


# ── Content blocks ──


@dataclass
class TextBlock:
    text: str
    is_error: bool = False

    def to_input(self) -> dict[str, Any]:
        text = f"ERROR: {self.text}" if self.is_error else self.text
        return {"type": "input_text", "text": text}


@dataclass
class ImageBlock:
    """Base64-encoded image data."""

    data: str
    media_type: str = "image/jpeg"

    @classmethod
    def from_bytes(cls, raw: bytes, media_type: str = "image/jpeg") -> ImageBlock:
        return cls(base64.b64encode(raw).decode("ascii"), media_type)

    def to_input(self) -> dict[str, Any]:
        return {
            "type": "input_image",
            "image_url": f"data:{self.media_type};base64,{self.data}",
        }


ContentBlock = Union[TextBlock, ImageBlock]


def as_content(value: Any) -> list[ContentBlock]:
    """Normalize a tool's return value into a list of content blocks."""
    items = value if isinstance(value, list) else [value]
    blocks: list[ContentBlock] = []
    for item in items:
        if isinstance(item, (TextBlock, ImageBlock)):
            blocks.append(item)
        elif isinstance(item, str):
            blocks.append(TextBlock(item))
        else:
            raise TypeError(f"Unsupported tool output: {type(item).__name__}")
    return blocks


# ── Turns ──


def _clean(item: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in item.items() if v is not None}


@dataclass
class SystemTurn:
    kind: ClassVar[str] = "system"
    text: str

    def to_input(self) -> dict[str, Any]:
        return {"role": "system", "content": self.text}


@dataclass
class UserTurn:
    kind: ClassVar[str] = "user"
    text: str

    def to_input(self) -> dict[str, Any]:
        return {"role": "user", "content": self.text}


@dataclass
class ReasoningTurn:
    """Opaque marker the model emits before acting. Sent back verbatim."""

    kind: ClassVar[str] = "reasoning"
    item: dict[str, Any] = field(default_factory=dict)

    def to_input(self) -> dict[str, Any]:
        return {**_clean(self.item), "type": "reasoning"}


@dataclass
class ToolCallTurn:
    kind: ClassVar[str] = "tool_call"
    call_id: str
    name: str
    arguments: str = "{}"
    item_id: str | None = None

    def to_input(self) -> dict[str, Any]:
        out = {
            "type": "function_call",
            "call_id": self.call_id,
            "name": self.name,
            "arguments": self.arguments,
        }
        if self.item_id:
            out["id"] = self.item_id
        return out


@dataclass
class ToolResultTurn:
    kind: ClassVar[str] = "tool_result"
    call_id: str
    content: list[ContentBlock] = field(default_factory=list)

    def to_input(self) -> dict[str, Any]:
        return {
            "type": "function_call_output",
            "call_id": self.call_id,
            "output": [block.to_input() for block in self.content],
        }


@dataclass
class MessageTurn:
    kind: ClassVar[str] = "message"
    content: list[TextBlock] = field(default_factory=list)
    item_id: str | None = None

    @property
    def answer(self) -> str:
        """The first block's text. Further blocks are not part of the answer."""
        return self.content[0].text if self.content else ""

    def to_input(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "type": "message",
            "role": "assistant",
            "content": [{"type": "output_text", "text": b.text} for b in self.content],
        }
        if self.item_id:
            out["id"] = self.item_id
        return out


Turn = Union[SystemTurn, UserTurn, ReasoningTurn, ToolCallTurn, ToolResultTurn, MessageTurn]


def parse_output_item(item: dict[str, Any]) -> Turn | None:
    """Convert a finalized Responses API output item into a turn.

    Returns None for item types the agent does not act on.
    """
    item_type = item.get("type")

    if item_type == "reasoning":
        return ReasoningTurn(_clean(item))

    if item_type == "function_call":
        return ToolCallTurn(
            call_id=item["call_id"],
            name=item["name"],
            arguments=item.get("arguments") or "",
            item_id=item.get("id"),
        )

    if item_type == "message":
        blocks = [
            TextBlock(part.get("text", ""))
            for part in item.get("content") or []
            if part.get("type") in ("output_text", "text")
        ]
        return MessageTurn(content=blocks, item_id=item.get("id"))

    return None
