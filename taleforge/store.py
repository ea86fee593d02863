from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Protocol

import redis
from pydantic import ValidationError

from taleforge.errors import InvalidSnapshot
from taleforge.models import SNAPSHOT_SCHEMA_VERSION, SessionSnapshot


SESSIONS_SET_KEY = "taleforge:sessions"
SESSION_KEY_PREFIX = "taleforge:session:"  # + {session_id}


def _session_key(session_id: str) -> str:
    return f"{SESSION_KEY_PREFIX}{session_id}"


class SnapshotStore(Protocol):
    def save(self, session_id: str, snapshot: SessionSnapshot) -> None:  # pragma: no cover
        ...

    def load(self, session_id: str) -> SessionSnapshot | None:  # pragma: no cover
        ...


def encode_snapshot(snapshot: SessionSnapshot) -> str:
    return snapshot.model_dump_json()


def decode_snapshot(raw: str | bytes) -> SessionSnapshot:
    """Parse a stored snapshot, checking its schema tag first.

    Newer or unknown schema versions and malformed documents raise InvalidSnapshot.
    """

    try:
        data = json.loads(raw)
    except ValueError as e:
        raise InvalidSnapshot(f"Snapshot is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise InvalidSnapshot("Snapshot must be a JSON object")

    version = data.get("schema_version")
    if not isinstance(version, int) or isinstance(version, bool) or not 1 <= version <= SNAPSHOT_SCHEMA_VERSION:
        raise InvalidSnapshot(f"Unsupported snapshot schema_version: {version!r}")

    try:
        return SessionSnapshot.model_validate(data)
    except ValidationError as e:
        raise InvalidSnapshot(f"Snapshot failed validation: {e.error_count()} error(s)") from e


@dataclass(slots=True)
class RedisSnapshotStore:
    r: redis.Redis

    def save(self, session_id: str, snapshot: SessionSnapshot) -> None:
        self.r.set(_session_key(session_id), encode_snapshot(snapshot))
        self.r.sadd(SESSIONS_SET_KEY, session_id)

    def load(self, session_id: str) -> SessionSnapshot | None:
        raw = self.r.get(_session_key(session_id))
        if not raw:
            return None
        return decode_snapshot(raw)  # type: ignore[arg-type]

    def delete(self, session_id: str) -> None:
        self.r.delete(_session_key(session_id))
        self.r.srem(SESSIONS_SET_KEY, session_id)

    def list_saved(self) -> list[str]:
        return sorted(self.r.smembers(SESSIONS_SET_KEY))  # type: ignore[arg-type]
