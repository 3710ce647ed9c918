"""gent agent — LLM-powered browser automation.

The agent connects to the LLM service (via LiteLLM's Responses API) and
uses browser tools to carry out instructions.

    from gent.agent import Agent, AgentHierarchy
"""

from gent.agent.hierarchy import AgentHierarchy
from gent.agent.loop import Agent
from gent.agent.stream import ResponsesClient, StreamingError

__all__ = ["Agent", "AgentHierarchy", "ResponsesClient", "StreamingError"]
