"""Agent loop — the multi-round, tool-calling LLM executor.

This is intentionally simple: stream a response → append every finished
item → if it's a tool call, run the tool and append its result → open the
next round → stop once the model sends a message. No framework needed.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Iterable, Protocol, Sequence

from gent.agent.dumps import write_dump
from gent.agent.tools import ToolDescriptor, ToolRegistry
from gent.agent.turns import (
    MessageTurn,
    ReasoningTurn,
    SystemTurn,
    TextBlock,
    ToolCallTurn,
    ToolResultTurn,
    Turn,
    UserTurn,
    as_content,
)

logger = logging.getLogger(__name__)

UNSUPPORTED_TOOL = "Unsupported tool"
TOOL_FAILED = "Something went wrong"


class ResponseSource(Protocol):
    model: str

    @property
    def reasoning(self) -> dict[str, str] | None: ...

    def stream(
        self,
        turns: Sequence[Turn],
        tools: list[dict],
        on_reasoning: Callable[[], None] | None = None,
    ) -> AsyncIterator[Turn]: ...


class Agent:
    """Conversational agent with its own history and tools.

    Each agent owns one conversation. `ask()` calls are serialized: a
    second caller waits until the first has its answer (or has failed).

    Args:
        client: Streams model responses (see `gent.agent.stream.ResponsesClient`).
        tools: Tools the model may call.
        instructions: System instruction lines, kept across `reset()`.
        label: Name used in log output.
        on_add_tool: Called as `on_add_tool(turn, agent)` for every output
            item, after it is appended and before a tool call is run.
        on_answer: Called as `on_answer(agent)` once a message arrives.
    """

    def __init__(
        self,
        client: ResponseSource,
        tools: Iterable[ToolDescriptor] = (),
        instructions: Iterable[str] = (),
        label: str = "Agent",
        on_add_tool: Callable[[Turn, Agent], None] | None = None,
        on_answer: Callable[[Agent], None] | None = None,
    ) -> None:
        self.client = client
        self.registry = ToolRegistry(tools)
        self.label = label
        self.on_add_tool = on_add_tool
        self.on_answer = on_answer

        self._initial_turns: list[Turn] = [SystemTurn(text) for text in instructions]
        self.turns: list[Turn] = list(self._initial_turns)
        self._lock = asyncio.Lock()

    async def ask(self, query: str) -> str:
        """Send a query and run tool rounds until the model answers.

        Raises:
            StreamingError: the LLM service failed; no answer is produced.
        """
        async with self._lock:
            self.turns.append(UserTurn(query))
            answer = None
            while answer is None:
                answer = await self._run_round()
            return answer

    async def _run_round(self) -> str | None:
        """One streaming round-trip. Returns the answer if a message arrived."""
        answer = None
        stream = self.client.stream(
            self.turns, self.registry.schemas(), on_reasoning=self._on_reasoning
        )
        async for turn in stream:
            self.turns.append(turn)
            if self.on_add_tool:
                self.on_add_tool(turn, self)

            if isinstance(turn, ToolCallTurn):
                await self.dispatch(turn)
            elif isinstance(turn, MessageTurn):
                answer = turn.answer
                logger.info("%s: %s", self.label, answer)
                if self.on_answer:
                    self.on_answer(self)
        return answer

    def _on_reasoning(self) -> None:
        logger.info("%s: processing the query...", self.label)

    async def dispatch(self, call: ToolCallTurn) -> ToolResultTurn:
        """Run a tool call and append its result. Never raises for tool errors."""
        logger.info("%s: using the tool %s with %s", self.label, call.name, call.arguments)

        tool = self.registry.get(call.name)
        if tool is None:
            logger.warning("%s: model requested unknown tool %s", self.label, call.name)
            content = [TextBlock(UNSUPPORTED_TOOL, is_error=True)]
        else:
            try:
                args = json.loads(call.arguments) if call.arguments.strip() else {}
                if not isinstance(args, dict):
                    raise TypeError(f"Arguments must be a JSON object, got {type(args).__name__}")
                content = as_content(await tool.handler(**args))
            except Exception:
                logger.exception("%s: tool %s failed", self.label, call.name)
                content = [TextBlock(TOOL_FAILED, is_error=True)]

        result = ToolResultTurn(call.call_id, content)
        self.turns.append(result)
        return result

    def remove_input_tool(self, name: str, count: float = math.inf) -> int:
        """Drop the first `count` calls of tool `name` from the history.

        A call goes together with its result and, if one directly precedes
        it, its reasoning marker. Calls still waiting for a result are
        left alone. Returns the number of calls removed.
        """
        kept: list[Turn] = []
        removed = 0
        i = 0
        while i < len(self.turns):
            if removed < count:
                span = _pruning_span(self.turns, i, name)
                if span:
                    i += span
                    removed += 1
                    continue
            kept.append(self.turns[i])
            i += 1

        self.turns[:] = kept
        return removed

    def reset(self) -> None:
        """Forget the conversation, keeping only the system instructions."""
        self.turns[:] = self._initial_turns

    def get_history(self) -> list[Turn]:
        return list(self.turns)

    def dump_data(self, dump_dir: Path | None = None) -> Path:
        """Write the current state to a diagnostic dump file."""
        return write_dump(
            self.turns,
            self.registry.schemas(),
            model=self.client.model,
            reasoning=self.client.reasoning,
            dump_dir=dump_dir,
        )

    def __repr__(self) -> str:
        return f"Agent(label={self.label!r}, turns={len(self.turns)}, tools={self.registry.names()})"


def _is_call(turn: Any, name: str) -> bool:
    return isinstance(turn, ToolCallTurn) and turn.name == name


def _answers(turn: Any, call: ToolCallTurn) -> bool:
    return isinstance(turn, ToolResultTurn) and turn.call_id == call.call_id


def _pruning_span(turns: list[Turn], i: int, name: str) -> int:
    """Length of the removable unit starting at `i`, or 0.

    Units are [reasoning][call][result] or [call][result], where the call
    is to `name` and the result carries the call's id.
    """
    current = turns[i]
    if (
        isinstance(current, ReasoningTurn)
        and i + 2 < len(turns)
        and _is_call(turns[i + 1], name)
        and _answers(turns[i + 2], turns[i + 1])
    ):
        return 3
    if _is_call(current, name) and i + 1 < len(turns) and _answers(turns[i + 1], current):
        return 2
    return 0
