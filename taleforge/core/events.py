from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal

EventType = Literal[
    "COMMAND_REJECTED",
    "STATE_CHANGED",
    "GENERATION_FAILED",
]


@dataclass(frozen=True, slots=True)
class SessionEvent:
    type: EventType
    session_id: str
    seq: int
    # Ticket of the submitted command that produced this event.
    ticket: int
    payload: dict[str, Any]
    ts: datetime

    @staticmethod
    def now(*, type: EventType, session_id: str, seq: int, ticket: int, payload: dict[str, Any]) -> "SessionEvent":
        return SessionEvent(
            type=type,
            session_id=session_id,
            seq=seq,
            ticket=ticket,
            payload=payload,
            ts=datetime.now(timezone.utc),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "session_id": self.session_id,
            "seq": self.seq,
            "ticket": self.ticket,
            "payload": self.payload,
            "ts": self.ts.isoformat(),
        }


def command_rejected_payload(*, command: str, reason: str) -> dict[str, Any]:
    return {"command": command, "reason": reason}


def state_changed_payload(*, command: str, narrative: str, observable: dict[str, Any]) -> dict[str, Any]:
    return {
        "command": command,
        "narrative": narrative,
        "mode": observable["mode"],
        "location": observable["location"],
        "inventory": observable["inventory"],
        "health": observable["health"],
        "combat": observable["combat"],
    }


def generation_failed_payload(*, command: str, fallback_text: str, error_type: str) -> dict[str, Any]:
    return {"command": command, "fallback_text": fallback_text, "error_type": error_type}
