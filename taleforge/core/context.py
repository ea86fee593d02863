from __future__ import annotations

from typing import Any

from taleforge.generation.base import GenerationKind, GenerationRequest
from taleforge.models import SessionState
from taleforge.prompts import load_prompt


def session_context(state: SessionState, *, window: int = 5) -> dict[str, Any]:
    """Bounded snapshot of a session for the narrator: room, inventory, health, recent actions."""

    room = state.room
    return {
        "mode": state.mode.value,
        "room": {
            "title": room.title,
            "description": room.description,
            "exits": sorted(room.exits),
            "items": list(room.items),
            "hostile": room.hostile.name if room.hostile is not None else None,
        },
        "inventory": list(state.inventory),
        "health": {"current": state.player.health, "max": state.player.max_health},
        "recent_actions": [
            {"command": a.command, "outcome": a.outcome, "ok": a.ok} for a in state.recent_history(window)
        ],
    }


def render_context(context: dict[str, Any]) -> str:
    room = context.get("room", {})
    lines = [
        "SESSION CONTEXT:",
        f"- room: {room.get('title')}",
        f"- exits: {', '.join(room.get('exits') or []) or '(none)'}",
        f"- items here: {', '.join(room.get('items') or []) or '(none)'}",
        f"- hostile here: {room.get('hostile') or '(none)'}",
        f"- inventory: {', '.join(context.get('inventory') or []) or '(empty)'}",
    ]
    health = context.get("health")
    if health:
        lines.append(f"- health: {health['current']}/{health['max']}")
    if room.get("description"):
        lines.append("- already described as: " + str(room["description"]).strip())

    actions = context.get("recent_actions") or []
    if actions:
        lines.append("RECENT ACTIONS (oldest first):")
        lines.extend(f"{i}. > {a['command']} -> {a['outcome']}" for i, a in enumerate(actions, start=1))

    return "\n".join(lines).strip()


def build_request(
    *,
    kind: GenerationKind,
    state: SessionState,
    instruction: str,
    window: int = 5,
    system: str | None = None,
) -> GenerationRequest:
    """Stack system prompt, session context and the per-command instruction into one request."""

    context = session_context(state, window=window)
    parts = [render_context(context), "INSTRUCTION:\n" + instruction.strip()]
    prompt = "\n\n".join(p for p in parts if p.strip()).strip()
    return GenerationRequest(
        kind=kind,
        prompt=prompt,
        system=(system if system is not None else load_prompt("narrator_system.txt")).strip(),
        context=context,
    )
