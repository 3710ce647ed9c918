"""Browser tools — the page actions the agents can take.

Each action is its own small tool so the model sees exactly the arguments
it needs. All tools share one `BrowserSession`, which tracks the active
page: opening a website or a click that spawns a new page swaps it.
"""

from __future__ import annotations

from gent.agent.tools import ToolDescriptor
from gent.agent.turns import ImageBlock, TextBlock
from gent.core import BrowserSession
from gent.snapshot import snapshot_to_json, take_snapshot

WEBSITE_OPEN_SCHEMA = {
    "type": "function",
    "name": "website_open",
    "description": "Open website by URL",
    "parameters": {
        "type": "object",
        "required": ["url"],
        "properties": {
            "url": {"type": "string", "description": "URL of the website to open"},
        },
    },
}

WEBSITE_SCREENSHOT_SCHEMA = {
    "type": "function",
    "name": "website_screenshot",
    "description": "Take currently opened website screenshot",
}

ELEMENT_CLICK_SCHEMA = {
    "type": "function",
    "name": "element_click",
    "description": "Click on the HTML element by the provided CSS selector",
    "parameters": {
        "type": "object",
        "required": ["selector"],
        "properties": {
            "selector": {"type": "string", "description": "CSS selector"},
        },
    },
}

ELEMENT_TYPE_SCHEMA = {
    "type": "function",
    "name": "element_type",
    "description": "Type a text into HTML element by the provided CSS selector",
    "parameters": {
        "type": "object",
        "required": ["selector", "text"],
        "properties": {
            "selector": {"type": "string", "description": "CSS selector"},
            "text": {"type": "string", "description": "Text to type"},
        },
    },
}

WEBSITE_SNAPSHOT_SCHEMA = {
    "type": "function",
    "name": "website_snapshot",
    "description": "Take a snapshot of the website. Returns parsed DOM structure",
    "parameters": {
        "type": "object",
        "required": [],
        "properties": {
            "root": {
                "type": "string",
                "description": "Root selector from which to start doing snapshot",
            },
            "includeRoot": {
                "type": "boolean",
                "description": "Whether the root itself should be included in the snapshot",
            },
        },
    },
}


class BrowserTool:
    """Page actions bound to a shared browser session."""

    def __init__(self, session: BrowserSession) -> None:
        self.session = session

    async def open_website(self, url: str) -> TextBlock:
        ctx = await self.session.ensure_context()
        page = await ctx.new_page()
        page.set_default_timeout(self.session.timeout_ms)
        self.session.page = page
        await page.goto(url)
        return TextBlock("Website has been opened")

    async def take_screenshot(self) -> ImageBlock:
        page = self.session.require_page()
        raw = await page.screenshot(format="jpeg", quality=self.session.screenshot_quality)
        return ImageBlock.from_bytes(raw, "image/jpeg")

    async def click_element(self, selector: str) -> TextBlock:
        page = self.session.require_page()
        ctx = await self.session.ensure_context()
        # Links with target=_blank open a new page; follow it if one shows up.
        waiter = ctx.expect_page()
        try:
            await page.click(selector)
        except Exception:
            waiter.cancel()
            raise
        try:
            new_page = await waiter.wait(self.session.new_page_timeout_ms / 1000)
        except TimeoutError:
            pass
        else:
            new_page.set_default_timeout(self.session.timeout_ms)
            self.session.page = new_page
        return TextBlock("Success")

    async def type_into_element(self, selector: str, text: str) -> TextBlock:
        page = self.session.require_page()
        await page.type(selector, text)
        return TextBlock("Success")

    async def take_snapshot(self, root: str = "body", includeRoot: bool = False) -> TextBlock:
        page = self.session.require_page()
        nodes = await take_snapshot(page, root=root, include_root=includeRoot)
        return TextBlock(snapshot_to_json(nodes))

    def descriptors(self) -> list[ToolDescriptor]:
        """Tools for the agent that drives the browser."""
        return [
            ToolDescriptor.from_schema(WEBSITE_OPEN_SCHEMA, self.open_website),
            ToolDescriptor.from_schema(WEBSITE_SCREENSHOT_SCHEMA, self.take_screenshot),
            ToolDescriptor.from_schema(ELEMENT_CLICK_SCHEMA, self.click_element),
            ToolDescriptor.from_schema(ELEMENT_TYPE_SCHEMA, self.type_into_element),
        ]

    def snapshot_descriptors(self) -> list[ToolDescriptor]:
        """Tools for the selector-finding agent."""
        return [ToolDescriptor.from_schema(WEBSITE_SNAPSHOT_SCHEMA, self.take_snapshot)]
