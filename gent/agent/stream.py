"""Streaming access to the LLM service.

One `stream()` call is one round-trip: it opens a streaming Responses API
request through LiteLLM and yields each output item as a turn once the
service marks it done. Text deltas and other progress events are ignored;
the only thing peeked at early is the start of a reasoning item, which is
surfaced through `on_reasoning` so the UI can show that the model is busy.

Uses LiteLLM for provider-agnostic LLM calls.
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Callable, Sequence

from gent.agent.config import (
    PROVIDERS,
    get_litellm_model,
    get_model_settings,
    get_provider,
    get_provider_key,
    get_timeout,
)
from gent.agent.turns import Turn, parse_output_item

logger = logging.getLogger(__name__)

ITEM_ADDED = "response.output_item.added"
ITEM_DONE = "response.output_item.done"


class StreamingError(Exception):
    """The response stream could not be opened or broke mid-way."""

    pass


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _as_dict(item: Any) -> dict[str, Any]:
    if isinstance(item, dict):
        return item
    if hasattr(item, "model_dump"):
        return item.model_dump(mode="json", exclude_none=True)
    return dict(vars(item))


class ResponsesClient:
    """Model configuration plus the streaming call for one agent.

    Args:
        model: LiteLLM model name (e.g. "openai/gpt-5").
        reasoning_effort: "minimal", "low", "medium" or "high"; None to omit.
        api_key: Provider API key. LiteLLM falls back to its env vars if None.
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        model: str,
        reasoning_effort: str | None = None,
        api_key: str | None = None,
        timeout: float = 300,
        **extra: Any,
    ) -> None:
        self.model = model
        self.reasoning_effort = reasoning_effort
        self.api_key = api_key
        self.timeout = timeout
        self.extra = extra

    @classmethod
    def from_config(cls, role: str) -> ResponsesClient:
        """Build the client for an agent role from the config file."""
        provider = get_provider()
        key = get_provider_key(provider)
        if not key:
            info = PROVIDERS.get(provider, {})
            raise ValueError(
                f"No API key found for {provider}.\n"
                f"Set it in ~/.gent/config.json under agent.providers.{provider}.api_key\n"
                f"Or env var: {info.get('env_key', '?')}"
            )
        settings = get_model_settings(role)
        return cls(
            model=get_litellm_model(provider, settings["model"]),
            reasoning_effort=settings.get("effort"),
            api_key=key,
            timeout=get_timeout(),
        )

    @property
    def reasoning(self) -> dict[str, str] | None:
        if not self.reasoning_effort:
            return None
        return {"effort": self.reasoning_effort}

    def request_kwargs(self, turns: Sequence[Turn], tools: list[dict]) -> dict[str, Any]:
        kwargs: dict[str, Any] = dict(
            model=self.model,
            input=[turn.to_input() for turn in turns],
            tools=tools,
            stream=True,
            timeout=self.timeout,
            **self.extra,
        )
        if self.reasoning:
            kwargs["reasoning"] = self.reasoning
        if self.api_key:
            kwargs["api_key"] = self.api_key
        return kwargs

    async def stream(
        self,
        turns: Sequence[Turn],
        tools: list[dict],
        on_reasoning: Callable[[], None] | None = None,
    ) -> AsyncIterator[Turn]:
        """Yield finalized output items of one response, in arrival order.

        Raises:
            StreamingError: the request failed or the stream broke.
        """
        import litellm

        # Render before the first await so later appends don't leak in.
        kwargs = self.request_kwargs(turns, tools)
        try:
            response = await litellm.aresponses(**kwargs)
            async for event in response:
                event_type = _field(event, "type")
                if event_type == ITEM_ADDED:
                    if _field(_field(event, "item"), "type") == "reasoning" and on_reasoning:
                        on_reasoning()
                    continue
                if event_type != ITEM_DONE:
                    continue

                item = _as_dict(_field(event, "item"))
                turn = parse_output_item(item)
                if turn is None:
                    logger.debug("Skipping output item of type %s", item.get("type"))
                    continue
                yield turn
        except Exception as e:
            logger.error("Response stream from %s failed: %s", self.model, e)
            raise StreamingError(f"Response stream failed: {e}") from e

    def __repr__(self) -> str:
        return f"ResponsesClient(model={self.model!r}, reasoning_effort={self.reasoning_effort!r})"
