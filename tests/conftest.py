from __future__ import annotations

import asyncio
import os
from collections.abc import Callable, Generator
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from taleforge.generation.base import GenerationRequest
from taleforge.generation.client import GenerationClient
from taleforge.models import Hostile, Room, SessionState


@pytest.fixture(scope="session", autouse=True)
def _load_dotenv_for_tests() -> None:
    """Load repo .env for local runs so env-gated narrator tests can find a backend.

    In CI we don't auto-load `.env`, so tests that need a live model stay skipped
    unless explicitly opted-in with TALEFORGE_LOAD_DOTENV_FOR_TESTS=1.
    """

    if os.environ.get("CI") and os.environ.get("TALEFORGE_LOAD_DOTENV_FOR_TESTS") != "1":
        return

    env_path = Path(__file__).resolve().parents[1] / ".env"
    if env_path.exists():
        from dotenv import load_dotenv

        load_dotenv(dotenv_path=env_path, override=False)


@dataclass
class ScriptedBackend:
    """Generation backend double.

    `replies` are consumed in order: strings are returned, exceptions raised. Once empty,
    every call returns a canned line mentioning the request kind. `delays` (seconds) are
    consumed the same way.
    """

    name: str = "scripted"
    replies: list[str | Exception] = field(default_factory=list)
    delays: list[float] = field(default_factory=list)
    calls: list[GenerationRequest] = field(default_factory=list)

    async def complete(self, request: GenerationRequest) -> str:
        self.calls.append(request)
        delay = self.delays.pop(0) if self.delays else 0.0
        reply: str | Exception = self.replies.pop(0) if self.replies else f"Narration for {request.kind}."
        if delay:
            await asyncio.sleep(delay)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def kinds(self) -> list[str]:
        return [c.kind for c in self.calls]


@dataclass
class RecordingSleep:
    delays: list[float] = field(default_factory=list)

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture()
def backend() -> ScriptedBackend:
    return ScriptedBackend()


@pytest.fixture()
def sleeps() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture()
def client(backend: ScriptedBackend, sleeps: RecordingSleep) -> GenerationClient:
    return GenerationClient(backend=backend, timeout_s=1.0, sleep=sleeps)


@pytest.fixture()
def make_state() -> Callable[..., SessionState]:
    """Build a small hand-made world: a described start room with a torch, an exit north to an
    unknown room and east to a described one, optionally with a goblin in the start room."""

    def _make(*, session_id: str = "s1", hostile: bool = False, goblin_health: int = 8) -> SessionState:
        start = Room(
            room_id="0,0",
            title="Antechamber",
            description="A low stone room.",
            exits={"north": "0,1", "east": "1,0"},
            items=["torch", "silver coin"],
            hostile=(
                Hostile(
                    hostile_id="0,0:goblin",
                    name="goblin",
                    health=goblin_health,
                    max_health=8,
                    attack=3,
                )
                if hostile
                else None
            ),
        )
        east = Room(
            room_id="1,0",
            title="Echoing Gallery",
            description="A long gallery full of echoes.",
            exits={"west": "0,0"},
            items=["old map"],
        )
        return SessionState(session_id=session_id, seed=1234, location_id="0,0", rooms={"0,0": start, "1,0": east})

    return _make


@pytest.fixture()
def redis_client() -> Generator[object, None, None]:
    import fakeredis

    r = fakeredis.FakeRedis(decode_responses=True)
    yield r
    r.flushall()
