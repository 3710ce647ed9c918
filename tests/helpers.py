"""Fakes shared by the test modules: a scripted LLM client and a fake browser."""

from __future__ import annotations

import asyncio
import json

from gent.agent.turns import parse_output_item


# ── Output items as the Responses API sends them ──


def reasoning_item(item_id: str = "rs_1") -> dict:
    return {"type": "reasoning", "id": item_id, "summary": []}


def call_item(call_id: str, name: str, args: dict | str | None = None) -> dict:
    arguments = args if isinstance(args, str) else json.dumps(args or {})
    return {
        "type": "function_call",
        "id": f"fc_{call_id}",
        "call_id": call_id,
        "name": name,
        "arguments": arguments,
    }


def message_item(*texts: str) -> dict:
    return {
        "type": "message",
        "id": "msg_1",
        "role": "assistant",
        "content": [{"type": "output_text", "text": t} for t in texts],
    }


class ScriptedClient:
    """Replays canned output items, one list per streaming round.

    An exception instance inside a round is raised at that point of the
    stream.
    """

    def __init__(self, rounds, model: str = "fake-model", reasoning_effort: str = "low", log=None):
        self.rounds = [list(r) for r in rounds]
        self.model = model
        self.reasoning_effort = reasoning_effort
        self.requests: list[dict] = []
        self.log = log if log is not None else []

    @property
    def reasoning(self):
        return {"effort": self.reasoning_effort}

    async def stream(self, turns, tools, on_reasoning=None):
        rendered = [t.to_input() for t in turns]
        self.requests.append({"input": rendered, "tools": tools})
        self.log.append(("request", rendered[-1].get("content")))
        items = self.rounds.pop(0)
        for item in items:
            await asyncio.sleep(0)
            if isinstance(item, BaseException):
                raise item
            if item.get("type") == "reasoning" and on_reasoning:
                on_reasoning()
            turn = parse_output_item(item)
            if turn is not None:
                yield turn


# ── Browser fakes ──


class FakePage:
    def __init__(self, raw_dom=None) -> None:
        self.timeout_ms = None
        self.raw_dom = raw_dom
        self.visited: list[str] = []
        self.clicked: list[str] = []
        self.typed: list[tuple[str, str]] = []
        self.expressions: list[str] = []
        self.screenshot_args = None
        self.click_error: Exception | None = None

    def set_default_timeout(self, timeout_ms: int) -> None:
        self.timeout_ms = timeout_ms

    async def goto(self, url: str) -> None:
        self.visited.append(url)

    async def screenshot(self, format: str = "png", quality=None) -> bytes:
        self.screenshot_args = (format, quality)
        return b"\xff\xd8fake-jpeg"

    async def evaluate(self, expression: str):
        self.expressions.append(expression)
        return self.raw_dom

    async def click(self, selector: str) -> None:
        if self.click_error:
            raise self.click_error
        self.clicked.append(selector)

    async def type(self, selector: str, text: str) -> None:
        self.typed.append((selector, text))


class FakePageWaiter:
    def __init__(self, page) -> None:
        self.page = page
        self.cancelled = False
        self.timeout = None

    async def wait(self, timeout: float):
        self.timeout = timeout
        if self.page is None:
            raise TimeoutError("no new page")
        return self.page

    def cancel(self) -> None:
        self.cancelled = True


class FakeContext:
    def __init__(self) -> None:
        self.pages: list[FakePage] = []
        self.popups: list[FakePage] = []
        self.waiters: list[FakePageWaiter] = []
        self.raw_dom = None

    async def new_page(self) -> FakePage:
        page = FakePage(self.raw_dom)
        self.pages.append(page)
        return page

    def expect_page(self) -> FakePageWaiter:
        waiter = FakePageWaiter(self.popups.pop(0) if self.popups else None)
        self.waiters.append(waiter)
        return waiter


class FakeBrowser:
    def __init__(self) -> None:
        self.contexts: list[FakeContext] = []
        self.closed = False

    async def new_context(self) -> FakeContext:
        ctx = FakeContext()
        self.contexts.append(ctx)
        return ctx

    async def close(self) -> None:
        self.closed = True
