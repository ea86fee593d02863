from __future__ import annotations

import asyncio
import logging
import random
import time
from collections.abc import Callable, Sequence
from uuid import uuid4

from taleforge.actions import Planner
from taleforge.combat import DamageRule, default_damage_rule
from taleforge.config import SessionSettings
from taleforge.core.context import build_request
from taleforge.errors import InvalidSnapshot, SessionNotFound
from taleforge.generation.client import GenerationClient
from taleforge.models import SessionSnapshot, SessionState
from taleforge.orchestrator import SessionOrchestrator
from taleforge.prompts import render_prompt
from taleforge.store import SnapshotStore
from taleforge.streams import EventSink
from taleforge.world import STATIC_START_DESCRIPTION, new_session_state


logger = logging.getLogger(__name__)


class SessionRegistry:
    """Maps session ids to live orchestrators and owns their lifecycle.

    The id -> orchestrator map is the only state shared across sessions; it is guarded by
    its own lock, which is never held across a generation call.
    """

    def __init__(
        self,
        *,
        client: GenerationClient,
        store: SnapshotStore | None = None,
        settings: SessionSettings | None = None,
        sinks: Sequence[EventSink] = (),
        damage_rule: DamageRule = default_damage_rule,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._store = store
        self._settings = settings or SessionSettings()
        self._sinks = list(sinks)
        self._damage_rule = damage_rule
        self._clock = clock

        self._sessions: dict[str, SessionOrchestrator] = {}
        self._lock = asyncio.Lock()

    @property
    def settings(self) -> SessionSettings:
        return self._settings

    @property
    def persistent(self) -> bool:
        return self._store is not None

    def list_active(self) -> set[str]:
        return set(self._sessions)

    def get(self, session_id: str) -> SessionOrchestrator:
        orch = self._sessions.get(session_id)
        if orch is None or orch.retired:
            raise SessionNotFound(session_id)
        return orch

    def submit(self, session_id: str, raw_input: str) -> int:
        return self.get(session_id).submit(raw_input)

    async def get_or_create(self, session_id: str | None = None) -> SessionOrchestrator:
        """Return the live session, restoring it from the store or starting a new game."""

        sid = session_id or uuid4().hex
        existing = self._sessions.get(sid)
        if existing is not None:
            return existing

        state = await self._restore_or_build(sid)

        async with self._lock:
            # Someone else may have created it while we were generating.
            existing = self._sessions.get(sid)
            if existing is not None:
                return existing
            orch = SessionOrchestrator(
                state,
                client=self._client,
                settings=self._settings,
                planner=Planner(damage_rule=self._damage_rule, context_window=self._settings.context_window),
                sinks=self._sinks,
                clock=self._clock,
            )
            self._sessions[sid] = orch

        logger.info("Session %s is live (%d active)", sid, len(self._sessions))
        return orch

    async def evict(self, session_id: str) -> SessionSnapshot:
        """Hand a session's final snapshot to the store, then retire it.

        If the save fails the session stays live and the error propagates, so a later
        eviction can try again.
        """

        async with self._lock:
            orch = self._sessions.get(session_id)
            if orch is None:
                raise SessionNotFound(session_id)
            # No await between snapshot and retire: nothing can commit in between.
            snapshot = orch.snapshot()
            if self._store is not None:
                self._store.save(session_id, snapshot)
            del self._sessions[session_id]
            orch.retire()
        logger.info("Session %s evicted (%d active)", session_id, len(self._sessions))
        return snapshot

    def checkpoint(self, session_id: str) -> SessionSnapshot:
        snapshot = self.get(session_id).snapshot()
        if self._store is not None:
            self._store.save(session_id, snapshot)
        return snapshot

    async def sweep_idle(self, *, now: float | None = None) -> list[str]:
        """Evict every session with no command for `idle_timeout_s`."""

        current = self._clock() if now is None else now
        idle = [
            sid
            for sid, orch in list(self._sessions.items())
            if orch.idle_for(current) >= self._settings.idle_timeout_s
        ]
        evicted: list[str] = []
        for sid in idle:
            if await self._evict_quietly(sid):
                evicted.append(sid)
        return evicted

    async def run_reaper(self, interval_s: float | None = None) -> None:
        interval = interval_s if interval_s is not None else self._settings.sweep_interval_s
        while True:
            await asyncio.sleep(interval)
            evicted = await self.sweep_idle()
            if evicted:
                logger.info("Evicted idle sessions: %s", ", ".join(evicted))

    async def close(self) -> None:
        for sid in list(self._sessions):
            await self._evict_quietly(sid)

    async def _evict_quietly(self, session_id: str) -> bool:
        try:
            await self.evict(session_id)
        except SessionNotFound:
            return False
        except Exception:
            logger.exception("Could not save session %s; keeping it live", session_id)
            return False
        return True

    async def _restore_or_build(self, session_id: str) -> SessionState:
        if self._store is not None:
            try:
                snapshot = self._store.load(session_id)
            except InvalidSnapshot as e:
                logger.error("Data loss: discarding unreadable snapshot for session %s: %s", session_id, e)
                snapshot = None
            if snapshot is not None:
                logger.info("Session %s restored from snapshot (saved %s)", session_id, snapshot.saved_at)
                return snapshot.session
        return await self._new_game(session_id)

    async def _new_game(self, session_id: str) -> SessionState:
        seed = random.SystemRandom().randint(1, 2**31 - 1)
        state = new_session_state(session_id=session_id, seed=seed)

        request = build_request(
            kind="opening",
            state=state,
            instruction=render_prompt("opening.txt", title=state.room.title),
            window=self._settings.context_window,
        )
        result = await self._client.generate(request)
        if result.ok:
            state.room.description = result.text
        else:
            logger.warning("Opening narration unavailable for session %s; using static description", session_id)
            state.room.description = STATIC_START_DESCRIPTION
        return state
