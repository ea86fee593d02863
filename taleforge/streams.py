from __future__ import annotations

import asyncio
import json
import logging
from collections import deque
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import cast

import redis
from fastapi import WebSocket

from taleforge.core.events import SessionEvent


logger = logging.getLogger(__name__)


EventSink = Callable[[SessionEvent], Awaitable[None]]


class EventStream:
    """Ordered, in-process outbox of one session's events.

    Events are kept (bounded) for late readers and fanned out to live subscribers in
    publish order. Publishing never blocks on slow subscribers.
    """

    def __init__(self, *, maxlen: int = 256) -> None:
        self._events: deque[SessionEvent] = deque(maxlen=maxlen)
        self._subscribers: set[asyncio.Queue[SessionEvent | None]] = set()
        self._closed = False

    @property
    def events(self) -> list[SessionEvent]:
        return list(self._events)

    def after(self, seq: int) -> list[SessionEvent]:
        return [e for e in self._events if e.seq > seq]

    def publish(self, event: SessionEvent) -> None:
        if self._closed:
            return
        self._events.append(event)
        for q in self._subscribers:
            q.put_nowait(event)

    def close(self) -> None:
        self._closed = True
        for q in self._subscribers:
            q.put_nowait(None)

    async def subscribe(self, *, after_seq: int | None = None) -> AsyncIterator[SessionEvent]:
        """Yield events as they are published; optionally replay retained ones first."""

        q: asyncio.Queue[SessionEvent | None] = asyncio.Queue()
        if after_seq is not None:
            for e in self.after(after_seq):
                q.put_nowait(e)
        if self._closed:
            q.put_nowait(None)
        self._subscribers.add(q)
        try:
            while True:
                event = await q.get()
                if event is None:
                    return
                yield event
        finally:
            self._subscribers.discard(q)


def stream_key(session_id: str) -> str:
    return f"events:{session_id}"


def publish_event(*, r: redis.Redis, event: SessionEvent) -> str:
    """Append an event to the session's Redis stream."""

    fields = {
        "type": event.type,
        "session_id": event.session_id,
        "seq": str(event.seq),
        "ticket": str(event.ticket),
        "ts": event.ts.isoformat(),
        "payload": json.dumps(event.payload),
    }
    # redis-py stubs expect field/value unions; we only use string fields/values.
    stream_id = r.xadd(stream_key(event.session_id), fields)
    return cast(str, stream_id)


def redis_sink(r: redis.Redis) -> EventSink:
    async def _sink(event: SessionEvent) -> None:
        publish_event(r=r, event=event)

    return _sink


class WebSocketRelay:
    """Pushes each session event to the WebSockets watching that session.

    The relay is itself an EventSink. A socket that fails to receive is dropped; the
    client reconnects and catches up with `GET /sessions/{id}/events?after=`.
    """

    def __init__(self) -> None:
        self._watchers: dict[str, set[WebSocket]] = {}

    async def attach(self, session_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        self._watchers.setdefault(session_id, set()).add(websocket)

    def detach(self, session_id: str, websocket: WebSocket) -> None:
        watchers = self._watchers.get(session_id)
        if watchers is None:
            return
        watchers.discard(websocket)
        if not watchers:
            del self._watchers[session_id]

    def watching(self, session_id: str) -> int:
        return len(self._watchers.get(session_id, ()))

    async def __call__(self, event: SessionEvent) -> None:
        message = event.to_dict()
        for websocket in list(self._watchers.get(event.session_id, ())):
            try:
                await websocket.send_json(message)
            except Exception as e:
                logger.info("Dropping WebSocket for session %s after failed send: %r", event.session_id, e)
                self.detach(event.session_id, websocket)


websocket_relay = WebSocketRelay()
