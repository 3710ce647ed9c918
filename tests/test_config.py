"""
Unit tests for the config layer: file loading, env fallbacks and defaults.
"""

from pathlib import Path

import pytest

from gent.agent import config


class TestConfigFile:
    """load_config / save_config"""

    def test_missing_file(self):
        assert config.load_config() == {}

    def test_round_trip(self, isolated_config):
        config.save_config({"agent": {"provider": "azure"}})

        assert isolated_config.exists()
        assert config.load_config() == {"agent": {"provider": "azure"}}

    def test_corrupt_file(self, isolated_config):
        isolated_config.parent.mkdir(parents=True)
        isolated_config.write_text("{not json")
        assert config.load_config() == {}

    def test_non_object_file(self, isolated_config):
        isolated_config.parent.mkdir(parents=True)
        isolated_config.write_text("[1, 2]")
        assert config.load_config() == {}

    def test_set_agent_config_merges(self):
        config.save_config({"agent": {"provider": "openai", "timeout": 60}, "browser": {"port": 9333}})

        config.set_agent_config({"provider": "openrouter"})

        data = config.load_config()
        assert data["agent"] == {"provider": "openrouter", "timeout": 60}
        assert data["browser"] == {"port": 9333}


class TestProviderKeys:
    """get_provider / get_provider_key"""

    def test_default_provider(self):
        assert config.get_provider() == "openai"

    def test_key_from_config_wins(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        config.save_config({"agent": {"providers": {"openai": {"api_key": "sk-file"}}}})
        assert config.get_provider_key("openai") == "sk-file"

    def test_key_from_env(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        assert config.get_provider_key("openai") == "sk-env"

    def test_generic_api_key_env(self, monkeypatch):
        monkeypatch.setenv("API_KEY", "sk-generic")
        assert config.get_provider_key("openai") == "sk-generic"

    def test_no_key(self):
        assert config.get_provider_key("openrouter") is None


class TestModels:
    """Model settings per agent role"""

    def test_defaults(self):
        assert config.get_model_settings("main") == {"model": "gpt-5", "effort": "high"}
        assert config.get_model_settings("dom") == {"model": "gpt-5-mini", "effort": "low"}

    def test_override(self):
        config.save_config({"agent": {"models": {"main": {"model": "gpt-5.1"}}}})
        assert config.get_model_settings("main") == {"model": "gpt-5.1", "effort": "high"}

    def test_unknown_role(self):
        with pytest.raises(ValueError):
            config.get_model_settings("critic")

    @pytest.mark.parametrize("provider,model,expected", [
        ("openai", "gpt-5", "openai/gpt-5"),
        ("openai", "openai/gpt-5", "openai/gpt-5"),
        ("openrouter", "openai/gpt-5-mini", "openrouter/openai/gpt-5-mini"),
        ("azure", "my-deployment", "azure/my-deployment"),
    ])
    def test_litellm_model(self, provider, model, expected):
        assert config.get_litellm_model(provider, model) == expected


class TestMisc:
    """Timeout, dump dir and browser settings"""

    def test_timeout(self):
        assert config.get_timeout() == 300
        config.save_config({"agent": {"timeout": 45}})
        assert config.get_timeout() == 45

    def test_dump_dir(self, tmp_path):
        assert config.get_dump_dir() == Path("dump")
        config.save_config({"agent": {"dump_dir": str(tmp_path / "dumps")}})
        assert config.get_dump_dir() == tmp_path / "dumps"

    def test_browser_defaults(self, monkeypatch):
        monkeypatch.setattr(config, "_find_chrome", lambda: "/usr/bin/chromium")

        settings = config.get_browser_config()

        assert settings["chrome_path"] == "/usr/bin/chromium"
        assert settings["timeout_ms"] == 5000
        assert settings["new_page_timeout_ms"] == 500
        assert settings["screenshot_quality"] == 65

    def test_chrome_from_env(self, monkeypatch):
        monkeypatch.setenv("CHROME_BIN_PATH", "/opt/chrome")
        assert config.get_browser_config()["chrome_path"] == "/opt/chrome"

    def test_browser_overrides_ignore_unknown_keys(self, monkeypatch):
        monkeypatch.setattr(config, "_find_chrome", lambda: None)
        config.save_config({"browser": {"headless": True, "port": 9333, "bogus": 1}})

        settings = config.get_browser_config()

        assert settings["headless"] is True
        assert settings["port"] == 9333
        assert "bogus" not in settings

    def test_default_args_are_not_shared(self, monkeypatch):
        monkeypatch.setattr(config, "_find_chrome", lambda: None)
        config.get_browser_config()["args"].append("--mutated")
        assert config.BROWSER_DEFAULTS["args"] == ["--disable-gpu"]
