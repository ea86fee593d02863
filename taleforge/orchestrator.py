from __future__ import annotations

import asyncio
import itertools
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from taleforge.actions import FALLBACK_TEXT, Plan, Planner
from taleforge.commands import Command, parse
from taleforge.config import SessionSettings
from taleforge.core.events import (
    EventType,
    SessionEvent,
    command_rejected_payload,
    generation_failed_payload,
    state_changed_payload,
)
from taleforge.errors import CommandRejection, SessionNotFound
from taleforge.generation.client import GenerationClient
from taleforge.models import SessionSnapshot, SessionState, observable_state
from taleforge.streams import EventSink, EventStream


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Submission:
    ticket: int
    raw: str


class SessionOrchestrator:
    """Single writer for one session.

    `submit` only queues; a per-session worker task drains the queue in FIFO order, so at
    most one command (and therefore at most one generation call) is in flight for this
    session. Commands are planned on a copy of the session and committed by swapping the
    reference, so a failed or discarded generation never leaves partial changes behind.

    Events are published to `events` and then to every sink, in command order.
    """

    def __init__(
        self,
        state: SessionState,
        *,
        client: GenerationClient,
        settings: SessionSettings | None = None,
        planner: Planner | None = None,
        sinks: Sequence[EventSink] = (),
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._state = state
        self._client = client
        self._settings = settings or SessionSettings()
        self._planner = planner or Planner(context_window=self._settings.context_window)
        self._sinks = list(sinks)
        self._clock = clock

        self._queue: asyncio.Queue[Submission | None] = asyncio.Queue()
        # Single-flight marker: held for the duration of one generation call.
        self._flight = asyncio.Lock()
        self._worker: asyncio.Task[None] | None = None
        self._tickets = itertools.count(1)

        self.events = EventStream()
        self.retired = False
        self.last_activity = clock()

    @property
    def session_id(self) -> str:
        return self._state.session_id

    @property
    def state(self) -> SessionState:
        """A copy of the committed session; mutate it and nothing happens."""

        return self._state.model_copy(deep=True)

    @property
    def generating(self) -> bool:
        return self._flight.locked()

    def idle_for(self, now: float | None = None) -> float:
        return (self._clock() if now is None else now) - self.last_activity

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(session=self.state)

    def add_sink(self, sink: EventSink) -> None:
        self._sinks.append(sink)

    def submit(self, raw_input: str) -> int:
        """Queue a command and return its ticket. The outcome arrives as an event."""

        if self.retired:
            raise SessionNotFound(self.session_id)

        ticket = next(self._tickets)
        self.last_activity = self._clock()
        self._queue.put_nowait(Submission(ticket=ticket, raw=raw_input))
        self._ensure_worker()
        logger.debug("Session %s accepted ticket %d: %r", self.session_id, ticket, raw_input)
        return ticket

    async def join(self) -> None:
        """Wait until every command submitted so far has produced its event."""

        await self._queue.join()

    def retire(self) -> SessionSnapshot:
        """Stop accepting commands and return the final snapshot.

        Queued commands are dropped; a generation call already in flight finishes but its
        result is discarded.
        """

        if not self.retired:
            self.retired = True
            self._drain_queue()
            if self._worker is not None and not self._worker.done():
                self._queue.put_nowait(None)
            self.events.close()
        return self.snapshot()

    def _drain_queue(self) -> None:
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            self._queue.task_done()

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run(), name=f"session:{self.session_id}")

    async def _run(self) -> None:
        while True:
            item = await self._queue.get()
            try:
                if item is None:
                    return
                if self.retired:
                    continue
                await self._process(item)
            except Exception as e:
                logger.exception("Session %s failed processing ticket %s", self.session_id, item)
                if isinstance(item, Submission) and not self.retired:
                    command = parse(item.raw)
                    await self._fail(item, command, FALLBACK_TEXT.get(command.kind, ""), type(e).__name__)
            finally:
                self._queue.task_done()

    async def _process(self, sub: Submission) -> None:
        command = parse(sub.raw)

        try:
            plan = self._planner.plan(state=self._state, command=command)
        except CommandRejection as e:
            logger.info("Session %s rejected %r: %s", self.session_id, sub.raw, e)
            await self._emit(
                "COMMAND_REJECTED",
                ticket=sub.ticket,
                payload=command_rejected_payload(command=sub.raw, reason=str(e)),
            )
            return

        if plan.generation is None:
            await self._commit(sub, plan)
            return

        async with self._flight:
            result = await self._client.generate(plan.generation)

        if self.retired:
            logger.info("Session %s retired during generation; discarding ticket %d", self.session_id, sub.ticket)
            return

        if result.ok:
            assert result.text is not None
            plan.complete(result.text)
            await self._commit(sub, plan)
        else:
            error_type = type(result.error).__name__ if result.error is not None else "GenerationError"
            await self._fail(sub, command, plan.fallback_text, error_type)

    async def _commit(self, sub: Submission, plan: Plan) -> None:
        work = plan.state
        work.record(command=sub.raw, outcome=plan.narrative, limit=self._settings.history_limit)
        self._state = work
        await self._emit(
            "STATE_CHANGED",
            ticket=sub.ticket,
            payload=state_changed_payload(
                command=sub.raw,
                narrative=plan.narrative,
                observable=observable_state(self._state),
            ),
        )

    async def _fail(self, sub: Submission, command: Command, fallback_text: str, error_type: str) -> None:
        failed = self._state.model_copy(deep=True)
        failed.record(
            command=sub.raw,
            outcome=f"{command.kind.value} narration failed ({error_type})",
            ok=False,
            limit=self._settings.history_limit,
        )
        self._state = failed
        await self._emit(
            "GENERATION_FAILED",
            ticket=sub.ticket,
            payload=generation_failed_payload(
                command=sub.raw,
                fallback_text=fallback_text,
                error_type=error_type,
            ),
        )

    async def _emit(self, type: EventType, *, ticket: int, payload: dict[str, object]) -> None:
        self._state.seq += 1
        event = SessionEvent.now(
            type=type,
            session_id=self.session_id,
            seq=self._state.seq,
            ticket=ticket,
            payload=payload,
        )
        self.events.publish(event)
        for sink in self._sinks:
            try:
                await sink(event)
            except Exception:
                logger.exception("Event sink failed for session %s (seq=%d)", self.session_id, event.seq)
