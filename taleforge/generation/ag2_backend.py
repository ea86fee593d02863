from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

from autogen import ConversableAgent, LLMConfig

from taleforge.config import GenerationSettings
from taleforge.errors import GenerationBackendError
from taleforge.generation.base import GenerationRequest


def llm_config_for(*, model: str, base_url: str | None, api_key: str | None) -> LLMConfig:
    # Many OpenAI-compatible servers ignore the key but some SDKs require it.
    key = api_key or ("ollama" if base_url else None)
    if not key:
        raise GenerationBackendError(
            "Set OPENAI_API_KEY for hosted OpenAI, or set OPENAI_BASE_URL for a local OpenAI-compatible server"
        )

    # AG2 expects a 'config_list' similar to OAI_CONFIG_LIST.
    config: dict[str, Any] = {"model": model, "api_key": key}
    if base_url:
        config["base_url"] = base_url
    return LLMConfig(config_list=[config])


def _extract_last_content(messages: object) -> str:
    """Extract the last message content from AG2 chat history."""

    if not isinstance(messages, list):
        return ""

    for msg in reversed(messages):
        if isinstance(msg, dict):
            content = msg.get("content")
            if isinstance(content, str) and content.strip():
                return content.strip()
    return ""


@dataclass(slots=True)
class Ag2GenerationBackend:
    """Narration through an AG2 `ConversableAgent` (OpenAI-compatible endpoints).

    The session context is already rendered into the prompt; the narrator system prompt
    becomes the agent's system message. AG2 runs synchronously, so each call is pushed to
    a worker thread to keep the event loop (and the client's deadline) responsive.
    """

    model: str
    base_url: str | None = None
    api_key: str | None = None
    name: str = "ag2"

    @classmethod
    def from_settings(cls, settings: GenerationSettings) -> "Ag2GenerationBackend":
        return cls(model=settings.model, base_url=settings.openai_base_url, api_key=settings.openai_api_key)

    def _run(self, request: GenerationRequest) -> str:
        agent = ConversableAgent(
            name="narrator",
            system_message=request.system,
            llm_config=llm_config_for(model=self.model, base_url=self.base_url, api_key=self.api_key),
            human_input_mode="NEVER",
        )
        result = agent.run(message=request.prompt, max_turns=1)
        result.process()

        text = _extract_last_content(list(result.messages))
        if not text:
            summary = result.summary
            if isinstance(summary, str):
                text = summary.strip()
        return text

    async def complete(self, request: GenerationRequest) -> str:
        try:
            text = await asyncio.to_thread(self._run, request)
        except GenerationBackendError:
            raise
        except Exception as e:
            raise GenerationBackendError(f"AG2 narrator failed: {e}") from e

        if not text:
            raise GenerationBackendError("AG2 narrator returned no text")
        return text
