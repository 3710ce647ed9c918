"""Agent configuration — provider keys, model roles, browser settings.

All config lives in ~/.gent/config.json (or $GENT_HOME/config.json).
Agent settings sit under the "agent" key, browser settings under "browser".
Anything missing falls back to environment variables, then defaults.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from gent.core import _find_chrome

CONFIG_DIR = Path(os.environ.get("GENT_HOME", Path.home() / ".gent"))
CONFIG_FILE = CONFIG_DIR / "config.json"

# Provider defaults
PROVIDERS = {
    "openai": {
        "name": "OpenAI",
        "env_key": "OPENAI_API_KEY",
        "alt_env": ["API_KEY"],
        "prefix": "openai",
    },
    "openrouter": {
        "name": "OpenRouter",
        "env_key": "OPENROUTER_API_KEY",
        "prefix": "openrouter",
    },
    "azure": {
        "name": "Azure OpenAI",
        "env_key": "AZURE_API_KEY",
        "prefix": "azure",
    },
}

# Model per agent role. "main" drives the browser, "dom" finds selectors.
MODEL_DEFAULTS: dict[str, dict[str, str]] = {
    "main": {"model": "gpt-5", "effort": "high"},
    "dom": {"model": "gpt-5-mini", "effort": "low"},
}

BROWSER_DEFAULTS: dict[str, Any] = {
    "headless": False,
    "chrome_path": None,
    "args": ["--disable-gpu"],
    "port": 9222,
    "timeout_ms": 5000,
    "new_page_timeout_ms": 500,
    "screenshot_quality": 65,
}


def load_config() -> dict[str, Any]:
    """Load the full config file. Missing or unreadable files give {}."""
    if CONFIG_FILE.exists():
        try:
            data = json.loads(CONFIG_FILE.read_text())
            if isinstance(data, dict):
                return data
        except (json.JSONDecodeError, OSError):
            pass
    return {}


def save_config(config: dict[str, Any]) -> None:
    """Write config to disk."""
    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_FILE.write_text(json.dumps(config, indent=2) + "\n")


def get_agent_config() -> dict[str, Any]:
    """Get just the agent section of config."""
    return load_config().get("agent", {})


def set_agent_config(agent_cfg: dict[str, Any]) -> None:
    """Update the agent section of config (merges)."""
    config = load_config()
    existing = config.get("agent", {})
    existing.update(agent_cfg)
    config["agent"] = existing
    save_config(config)


def get_provider() -> str:
    """Get the configured provider name."""
    return get_agent_config().get("provider", "openai")


def get_provider_key(provider: str) -> str | None:
    """Get API key for a provider from config, then env."""
    providers = get_agent_config().get("providers", {})

    key = providers.get(provider, {}).get("api_key")
    if key:
        return key

    info = PROVIDERS.get(provider, {})
    for env_name in [info.get("env_key"), *info.get("alt_env", [])]:
        if env_name and os.environ.get(env_name):
            return os.environ[env_name]

    return None


def get_model_settings(role: str) -> dict[str, str]:
    """Model name and reasoning effort for an agent role ("main" or "dom")."""
    if role not in MODEL_DEFAULTS:
        raise ValueError(f"Unknown agent role: {role}")
    settings = dict(MODEL_DEFAULTS[role])
    overrides = get_agent_config().get("models", {}).get(role, {})
    settings.update({k: v for k, v in overrides.items() if k in ("model", "effort") and v})
    return settings


def get_litellm_model(provider: str, model: str) -> str:
    """Route a model name to LiteLLM's provider/model form.

    OpenRouter names carry their own vendor part ("openai/gpt-5"), so the
    prefix is added unless the name already starts with it.
    """
    prefix = PROVIDERS.get(provider, {}).get("prefix", provider)
    if model.startswith(f"{prefix}/"):
        return model
    return f"{prefix}/{model}"


def get_timeout() -> int:
    """LLM request timeout in seconds (default 300)."""
    return get_agent_config().get("timeout", 300)


def get_dump_dir() -> Path:
    """Directory for diagnostic dumps (default ./dump)."""
    return Path(get_agent_config().get("dump_dir", "dump")).expanduser()


def get_browser_config() -> dict[str, Any]:
    """Browser launch and page settings, with env and auto-detect fallbacks."""
    settings = dict(BROWSER_DEFAULTS)
    settings["args"] = list(BROWSER_DEFAULTS["args"])
    settings.update({k: v for k, v in load_config().get("browser", {}).items() if k in BROWSER_DEFAULTS})
    if not settings["chrome_path"]:
        settings["chrome_path"] = os.environ.get("CHROME_BIN_PATH") or _find_chrome()
    return settings
