"""Agent hierarchy — a browsing agent backed by a selector-finding sub-agent.

The main agent drives the browser. When it needs a CSS selector it calls
`element_query`, which runs a full `ask()` on the DOM sub-agent and hands
back its text. The sub-agent only sees DOM snapshots and its own history;
none of its turns reach the main agent.

Both agents prune heavy payloads as they go: the main agent keeps only
the latest screenshot, and the sub-agent drops its snapshots once it has
answered.
"""

from __future__ import annotations

from gent.agent.loop import Agent, ResponseSource
from gent.agent.stream import ResponsesClient
from gent.agent.tools import ToolDescriptor
from gent.agent.tools.browser import BrowserTool
from gent.agent.turns import TextBlock, ToolCallTurn, Turn
from gent.core import BrowserSession

MAIN_INSTRUCTIONS = (
    "Work in context of a browser. Use provided tools, open pages, search for elements, if asked",
    "Take screenshots and query an element with the precise description of what you see "
    "on the page (if it's in modal, what near elements there are, so on)",
    "Always take a screenshot before querying an element",
    "If you see something that user did not specify or unsure what to do next, "
    "ask them about further actions",
    "You must ask the user's permission before modifying, adding, or deleting something "
    "if you found a selector",
)

DOM_INSTRUCTIONS = (
    "You are a CSS selector finder",
    "You must do a snapshot before searching for an element",
    "You must output a single CSS selector",
    # document.querySelector rejects some IDs in #id form
    "If a css selector has an ID, use [id=] syntax",
    "If a selector does not exist, tell the user about that",
)

ELEMENT_QUERY_SCHEMA = {
    "type": "function",
    "name": "element_query",
    "description": "Query an element by a description. Returns a selector of that element",
    "parameters": {
        "type": "object",
        "required": ["description"],
        "properties": {
            "description": {
                "type": "string",
                "description": "Description of the queried element",
            },
        },
    },
}

SNAPSHOT_FIRST = "Do a snapshot first."


def keep_latest_screenshot(turn: Turn, agent: Agent) -> None:
    if isinstance(turn, ToolCallTurn) and turn.name == "website_screenshot":
        agent.remove_input_tool("website_screenshot")


def drop_snapshots(agent: Agent) -> None:
    agent.remove_input_tool("website_snapshot")


class AgentHierarchy:
    """Main browsing agent plus its DOM sub-agent over one browser session.

    Args:
        session: Browser session shared by every tool.
        main_client: Model client for the browsing agent.
        dom_client: Model client for the selector-finding sub-agent.
    """

    def __init__(
        self,
        session: BrowserSession,
        main_client: ResponseSource,
        dom_client: ResponseSource,
        main_label: str = "💀 Agent",
        dom_label: str = "⚙️ DOM sub-agent",
    ) -> None:
        self.session = session
        self.browser_tool = BrowserTool(session)

        self._dom_agent = Agent(
            dom_client,
            tools=self.browser_tool.snapshot_descriptors(),
            instructions=DOM_INSTRUCTIONS,
            label=dom_label,
            on_answer=drop_snapshots,
        )
        self.primary = Agent(
            main_client,
            tools=[
                *self.browser_tool.descriptors(),
                ToolDescriptor.from_schema(ELEMENT_QUERY_SCHEMA, self.query_element),
            ],
            instructions=MAIN_INSTRUCTIONS,
            label=main_label,
            on_add_tool=keep_latest_screenshot,
        )

    @classmethod
    def from_config(cls, session: BrowserSession) -> AgentHierarchy:
        return cls(
            session,
            main_client=ResponsesClient.from_config("main"),
            dom_client=ResponsesClient.from_config("dom"),
        )

    async def query_element(self, description: str) -> TextBlock:
        """Ask the DOM sub-agent for a selector matching `description`."""
        output = await self._dom_agent.ask(f"{SNAPSHOT_FIRST} {description}")
        return TextBlock(output)

    async def ask(self, query: str) -> str:
        return await self.primary.ask(query)

    def reset(self) -> None:
        self.primary.reset()
        self._dom_agent.reset()
