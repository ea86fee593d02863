"""Ollama-style text generation over HTTP."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from taleforge.config import GenerationSettings
from taleforge.errors import GenerationBackendError, GenerationTimeout
from taleforge.generation.base import GenerationRequest


@dataclass(slots=True)
class HttpGenerationBackend:
    """POST {base_url}/api/generate with a non-streaming body; expects {"response", "done"} back.

    Any transport error, non-2xx status or malformed body is a GenerationBackendError.
    """

    base_url: str
    model: str
    temperature: float = 0.8
    max_tokens: int = 400
    timeout_s: float = 10.0
    # Tests inject httpx.MockTransport here.
    transport: httpx.AsyncBaseTransport | None = None
    name: str = "http"

    @classmethod
    def from_settings(cls, settings: GenerationSettings) -> "HttpGenerationBackend":
        return cls(
            base_url=settings.base_url,
            model=settings.model,
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
            timeout_s=settings.timeout_s,
        )

    @property
    def url(self) -> str:
        return f"{self.base_url.rstrip('/')}/api/generate"

    def payload_for(self, request: GenerationRequest) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": self.model,
            "prompt": request.prompt,
            "context": request.context,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "stream": False,
        }
        if request.system:
            body["system"] = request.system
        return body

    async def complete(self, request: GenerationRequest) -> str:
        try:
            async with httpx.AsyncClient(timeout=self.timeout_s, transport=self.transport) as client:
                resp = await client.post(self.url, json=self.payload_for(request))
                resp.raise_for_status()
        except httpx.TimeoutException as e:
            raise GenerationTimeout("Generation backend timed out") from e
        except httpx.HTTPStatusError as e:
            raise GenerationBackendError(f"Generation backend returned {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise GenerationBackendError(f"Cannot reach generation backend: {e}") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise GenerationBackendError("Generation backend returned a non-JSON body") from e

        if not isinstance(data, dict):
            raise GenerationBackendError("Unexpected response format from generation backend")

        text = data.get("response")
        if not isinstance(text, str) or not text.strip():
            raise GenerationBackendError("Generation backend response has no text")
        if data.get("done") is not True:
            raise GenerationBackendError("Generation backend returned an incomplete response")

        return text.strip()
