"""
Shared pytest fixtures for all tests.
"""
import asyncio

import pytest

from gent.agent import config
from gent.core import BrowserSession
from helpers import FakeBrowser, FakePage


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point the config file at a temp dir so tests never read ~/.gent"""
    config_file = tmp_path / "gent-home" / "config.json"
    monkeypatch.setattr(config, "CONFIG_FILE", config_file)
    for var in ("OPENAI_API_KEY", "API_KEY", "OPENROUTER_API_KEY", "AZURE_API_KEY", "CHROME_BIN_PATH"):
        monkeypatch.delenv(var, raising=False)
    return config_file


@pytest.fixture
def session():
    """Browser session over a fake browser, no page open yet"""
    return BrowserSession(browser=FakeBrowser(), timeout_ms=5000, new_page_timeout_ms=500)


@pytest.fixture
def open_session(session):
    """Browser session with an active fake page and context"""
    async def _open():
        ctx = await session.ensure_context()
        session.page = await ctx.new_page()
        return session
    return asyncio.run(_open())


@pytest.fixture
def page_factory():
    """Factory for fake pages returning a given raw DOM from evaluate()"""
    def _create(raw_dom=None):
        return FakePage(raw_dom)
    return _create
