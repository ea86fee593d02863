from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field, model_validator


SNAPSHOT_SCHEMA_VERSION = 1


def _now() -> datetime:
    return datetime.now(tz=UTC)


class Mode(StrEnum):
    exploring = "exploring"
    in_combat = "in_combat"
    inventory_open = "inventory_open"


class CombatPhase(StrEnum):
    initiating = "initiating"
    player_turn = "player_turn"
    enemy_turn = "enemy_turn"
    resolved = "resolved"


class Hostile(BaseModel):
    hostile_id: str
    name: str
    health: int = Field(..., ge=0)
    max_health: int = Field(..., ge=1)
    attack: int = Field(..., ge=1)


class Room(BaseModel):
    room_id: str
    title: str

    # None until the narrator has described the room once.
    description: str | None = None

    # direction -> neighbouring room_id
    exits: dict[str, str] = Field(default_factory=dict)
    items: list[str] = Field(default_factory=list)
    hostile: Hostile | None = None

    @property
    def described(self) -> bool:
        return bool(self.description and self.description.strip())


class PlayerState(BaseModel):
    health: int = Field(20, ge=0)
    max_health: int = Field(20, ge=1)
    attack: int = Field(6, ge=1)


class Combatant(BaseModel):
    name: str
    health: int = Field(..., ge=0)
    max_health: int = Field(..., ge=1)
    attack: int = Field(..., ge=1)

    @property
    def alive(self) -> bool:
        return self.health > 0


class CombatState(BaseModel):
    combat_id: str
    phase: CombatPhase = CombatPhase.initiating
    turn: int = 0
    player: Combatant
    enemy: Combatant

    # Which room hostile this combat is against.
    hostile_id: str


class ActionRecord(BaseModel):
    command: str
    outcome: str
    ok: bool = True
    at: datetime = Field(default_factory=_now)


class SessionState(BaseModel):
    session_id: str
    seed: int
    created_at: datetime = Field(default_factory=_now)

    mode: Mode = Mode.exploring
    player: PlayerState = Field(default_factory=PlayerState)

    # Ordered, duplicates allowed.
    inventory: list[str] = Field(default_factory=list)

    location_id: str
    rooms: dict[str, Room]

    # Bounded log of recent commands and their outcomes; feeds the narrator's context.
    history: list[ActionRecord] = Field(default_factory=list)

    # Event sequence number; bumped once per emitted event.
    seq: int = 0

    # Present iff mode == in_combat.
    combat: CombatState | None = None

    @model_validator(mode="after")
    def _check_invariants(self) -> "SessionState":
        if (self.combat is not None) != (self.mode == Mode.in_combat):
            raise ValueError("combat state must be present exactly when mode is in_combat")
        if self.location_id not in self.rooms:
            raise ValueError(f"location_id {self.location_id!r} is not a known room")
        return self

    @property
    def room(self) -> Room:
        return self.rooms[self.location_id]

    def record(self, *, command: str, outcome: str, ok: bool = True, limit: int = 20) -> None:
        self.history.append(ActionRecord(command=command, outcome=outcome, ok=ok))
        if len(self.history) > limit:
            del self.history[: len(self.history) - limit]

    def recent_history(self, n: int = 5) -> list[ActionRecord]:
        return self.history[-n:] if n > 0 else []


class SessionSnapshot(BaseModel):
    """Storage-agnostic, versioned form of a session handed to the persistence collaborator."""

    schema_version: int = SNAPSHOT_SCHEMA_VERSION
    saved_at: datetime = Field(default_factory=_now)
    session: SessionState


def observable_state(state: SessionState) -> dict[str, object]:
    """The subset of a session that observers (UI, transports) get to see."""

    room = state.room
    combat = state.combat
    return {
        "session_id": state.session_id,
        "mode": state.mode.value,
        "location": {
            "room_id": room.room_id,
            "title": room.title,
            "description": room.description,
            "exits": sorted(room.exits),
            "items": list(room.items),
            "hostile": room.hostile.name if room.hostile is not None else None,
        },
        "inventory": list(state.inventory),
        "health": {"current": state.player.health, "max": state.player.max_health},
        "combat": (
            {
                "phase": combat.phase.value,
                "turn": combat.turn,
                "enemy": combat.enemy.name,
                "enemy_health": combat.enemy.health,
            }
            if combat is not None
            else None
        ),
        "seq": state.seq,
    }
