"""
Unit tests for the agent hierarchy: delegation to the DOM sub-agent and
the pruning hooks each agent runs.
"""

import asyncio

import pytest

from gent.agent.hierarchy import (
    DOM_INSTRUCTIONS,
    MAIN_INSTRUCTIONS,
    SNAPSHOT_FIRST,
    AgentHierarchy,
)
from gent.agent.stream import ResponsesClient
from gent.agent.turns import SystemTurn, TextBlock, ToolCallTurn, ToolResultTurn
from helpers import ScriptedClient, call_item, message_item, reasoning_item

RAW_PAGE = {
    "tag": "BODY", "id": "", "cls": [], "hidden": False,
    "children": [{"tag": "BUTTON", "id": "login", "cls": [], "hidden": False, "children": ["Log in"]}],
}


def _tool_names(turns):
    return [t.name for t in turns if isinstance(t, ToolCallTurn)]


class TestConstruction:
    """AgentHierarchy wiring"""

    def test_tool_sets(self, session):
        agents = AgentHierarchy(session, ScriptedClient([]), ScriptedClient([]))

        assert agents.primary.registry.names() == [
            "website_open", "website_screenshot", "element_click", "element_type", "element_query",
        ]
        assert agents._dom_agent.registry.names() == ["website_snapshot"]

    def test_instructions(self, session):
        agents = AgentHierarchy(session, ScriptedClient([]), ScriptedClient([]))

        assert agents.primary.turns == [SystemTurn(line) for line in MAIN_INSTRUCTIONS]
        assert agents._dom_agent.turns == [SystemTurn(line) for line in DOM_INSTRUCTIONS]

    def test_from_config(self, session, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

        agents = AgentHierarchy.from_config(session)

        assert isinstance(agents.primary.client, ResponsesClient)
        assert agents.primary.client.model == "openai/gpt-5"
        assert agents._dom_agent.client.model == "openai/gpt-5-mini"

    def test_from_config_without_key(self, session):
        with pytest.raises(ValueError):
            AgentHierarchy.from_config(session)


class TestElementQuery:
    """Delegation from the main agent to the DOM sub-agent"""

    def _agents(self, open_session):
        open_session.page.raw_dom = RAW_PAGE
        main = ScriptedClient([
            [reasoning_item(), call_item("m1", "element_query", {"description": "the login button"})],
            [message_item("The login button is #login")],
        ])
        dom = ScriptedClient([
            [reasoning_item("rs_d1"), call_item("d1", "website_snapshot")],
            [message_item("[id=login]")],
        ])
        return AgentHierarchy(open_session, main, dom), main, dom

    def test_sub_agent_answer_becomes_tool_result(self, open_session):
        agents, main, dom = self._agents(open_session)

        answer = asyncio.run(agents.ask("Find the login button"))

        assert answer == "The login button is #login"
        result = next(t for t in agents.primary.turns if isinstance(t, ToolResultTurn))
        assert result.call_id == "m1"
        assert result.content == [TextBlock("[id=login]")]

    def test_query_asks_for_a_snapshot_first(self, open_session):
        agents, main, dom = self._agents(open_session)

        asyncio.run(agents.ask("Find the login button"))

        first_dom_input = dom.requests[0]["input"]
        assert first_dom_input[-1] == {
            "role": "user",
            "content": f"{SNAPSHOT_FIRST} the login button",
        }

    def test_sub_agent_saw_the_snapshot(self, open_session):
        agents, main, dom = self._agents(open_session)

        asyncio.run(agents.ask("Find the login button"))

        snapshot_output = dom.requests[1]["input"][-1]
        assert snapshot_output["type"] == "function_call_output"
        assert '"id":"login"' in snapshot_output["output"][0]["text"]

    def test_main_agent_never_sees_sub_agent_turns(self, open_session):
        agents, main, dom = self._agents(open_session)

        asyncio.run(agents.ask("Find the login button"))

        assert "website_snapshot" not in _tool_names(agents.primary.turns)
        for request in main.requests:
            assert all(item.get("name") != "website_snapshot" for item in request["input"])

    def test_snapshots_dropped_after_answer(self, open_session):
        agents, main, dom = self._agents(open_session)

        asyncio.run(agents.ask("Find the login button"))

        dom_turns = agents._dom_agent.turns
        assert "website_snapshot" not in _tool_names(dom_turns)
        assert not any(isinstance(t, ToolResultTurn) for t in dom_turns)
        assert dom_turns[-1].answer == "[id=login]"

    def test_query_element_directly(self, open_session):
        agents, main, dom = self._agents(open_session)
        dom.rounds.insert(0, [message_item("#nothing")])

        assert asyncio.run(agents.query_element("a link")) == TextBlock("#nothing")


class TestScreenshotPruning:
    """The main agent keeps only its latest screenshot"""

    def test_only_latest_screenshot_survives(self, open_session):
        main = ScriptedClient([
            [reasoning_item("rs_1"), call_item("s1", "website_screenshot")],
            [reasoning_item("rs_2"), call_item("s2", "website_screenshot")],
            [reasoning_item("rs_3"), call_item("s3", "website_screenshot")],
            [message_item("I see a login form")],
        ])
        agents = AgentHierarchy(open_session, main, ScriptedClient([]))

        asyncio.run(agents.ask("What is on the page?"))

        calls = [t for t in agents.primary.turns if isinstance(t, ToolCallTurn)]
        results = [t for t in agents.primary.turns if isinstance(t, ToolResultTurn)]
        assert [c.call_id for c in calls] == ["s3"]
        assert [r.call_id for r in results] == ["s3"]

    def test_each_request_carries_at_most_one_screenshot(self, open_session):
        main = ScriptedClient([
            [call_item("s1", "website_screenshot")],
            [call_item("s2", "website_screenshot")],
            [message_item("done")],
        ])
        agents = AgentHierarchy(open_session, main, ScriptedClient([]))

        asyncio.run(agents.ask("look"))

        for request in main.requests:
            images = [
                block
                for item in request["input"] if item.get("type") == "function_call_output"
                for block in item["output"] if block["type"] == "input_image"
            ]
            assert len(images) <= 1

    def test_other_tools_are_not_pruned(self, open_session):
        main = ScriptedClient([
            [call_item("o1", "website_open", {"url": "https://example.com"})],
            [call_item("s1", "website_screenshot")],
            [message_item("done")],
        ])
        agents = AgentHierarchy(open_session, main, ScriptedClient([]))

        asyncio.run(agents.ask("open and look"))

        assert _tool_names(agents.primary.turns) == ["website_open", "website_screenshot"]


class TestReset:
    """AgentHierarchy.reset"""

    def test_resets_both_agents(self, open_session):
        open_session.page.raw_dom = RAW_PAGE
        main = ScriptedClient([
            [call_item("m1", "element_query", {"description": "x"})],
            [message_item("done")],
        ])
        dom = ScriptedClient([[message_item("[id=login]")]])
        agents = AgentHierarchy(open_session, main, dom)
        asyncio.run(agents.ask("q"))

        agents.reset()

        assert agents.primary.turns == [SystemTurn(line) for line in MAIN_INSTRUCTIONS]
        assert agents._dom_agent.turns == [SystemTurn(line) for line in DOM_INSTRUCTIONS]
