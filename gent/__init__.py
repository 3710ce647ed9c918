"""gent — a browser-driving LLM agent with a selector-finding sub-agent.

The main agent talks to the user, opens pages, takes screenshots, clicks
and types. When it needs a CSS selector it delegates to a DOM sub-agent
that reads structural snapshots of the page.

Quick start:
    import asyncio
    from gent import AgentHierarchy, BrowserSession

    async def main():
        session = await BrowserSession.launch(headless=True)
        agents = AgentHierarchy.from_config(session)
        print(await agents.ask("Open example.com and find the 'More information' link"))
        await session.close()

    asyncio.run(main())
"""

from gent.agent.hierarchy import AgentHierarchy
from gent.agent.loop import Agent
from gent.core import Browser, BrowserSession, CDPError

__version__ = "0.1.0"
__all__ = ["Agent", "AgentHierarchy", "Browser", "BrowserSession", "CDPError"]
