from __future__ import annotations

import json

import httpx
import pytest

from taleforge.errors import GenerationBackendError, GenerationTimeout
from taleforge.generation.base import GenerationRequest
from taleforge.generation.http_backend import HttpGenerationBackend


REQ = GenerationRequest(
    kind="move",
    prompt="Describe the cellar.",
    system="You are the narrator.",
    context={"room": {"title": "Cellar"}, "inventory": ["torch"]},
)


def _backend(handler) -> HttpGenerationBackend:  # type: ignore[no-untyped-def]
    return HttpGenerationBackend(
        base_url="http://narrator.local/",
        model="llama3",
        temperature=0.5,
        max_tokens=123,
        transport=httpx.MockTransport(handler),
    )


async def test_posts_generate_body_and_returns_text() -> None:
    seen: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"response": "  Damp walls glisten.  ", "done": True})

    text = await _backend(handler).complete(REQ)

    assert text == "Damp walls glisten."
    assert seen["url"] == "http://narrator.local/api/generate"
    assert seen["body"] == {
        "model": "llama3",
        "prompt": "Describe the cellar.",
        "context": {"room": {"title": "Cellar"}, "inventory": ["torch"]},
        "temperature": 0.5,
        "max_tokens": 123,
        "stream": False,
        "system": "You are the narrator.",
    }


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, json={"error": "boom"}),
        httpx.Response(404, text="not found"),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json=["a", "list"]),
        httpx.Response(200, json={"done": True}),
        httpx.Response(200, json={"response": "   ", "done": True}),
        httpx.Response(200, json={"response": "half a sent", "done": False}),
    ],
)
async def test_bad_responses_are_backend_errors(response: httpx.Response) -> None:
    with pytest.raises(GenerationBackendError):
        await _backend(lambda request: response).complete(REQ)


async def test_connection_errors_are_backend_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(GenerationBackendError):
        await _backend(handler).complete(REQ)


async def test_transport_timeouts_are_generation_timeouts() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(GenerationTimeout):
        await _backend(handler).complete(REQ)
