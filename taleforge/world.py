from __future__ import annotations

import random

from taleforge.models import Hostile, Room, SessionState


DIRECTIONS: tuple[str, ...] = ("north", "south", "east", "west")

OFFSETS: dict[str, tuple[int, int]] = {
    "north": (0, 1),
    "south": (0, -1),
    "east": (1, 0),
    "west": (-1, 0),
}

OPPOSITE: dict[str, str] = {
    "north": "south",
    "south": "north",
    "east": "west",
    "west": "east",
}

START_ROOM_ID = "0,0"

STATIC_START_DESCRIPTION = (
    "You stand in a low stone antechamber. Cold air drifts in from the passages beyond, "
    "and somewhere far off water drips onto rock."
)

ITEM_TABLE: tuple[str, ...] = (
    "torch",
    "rusty key",
    "healing herb",
    "silver coin",
    "coil of rope",
    "old map",
    "cracked lantern",
    "bone dice",
)

# (name, max_health, attack)
HOSTILE_TABLE: tuple[tuple[str, int, int], ...] = (
    ("giant rat", 5, 2),
    ("goblin", 8, 3),
    ("skeleton", 10, 4),
    ("cave troll", 14, 5),
)

TITLE_ADJECTIVES: tuple[str, ...] = ("Mossy", "Collapsed", "Echoing", "Narrow", "Flooded", "Forgotten", "Gilded")
TITLE_NOUNS: tuple[str, ...] = ("Cellar", "Gallery", "Crypt", "Passage", "Chapel", "Storeroom", "Cistern")

HOSTILE_CHANCE = 0.35
EXIT_CHANCE = 0.5


def room_id_for(x: int, y: int) -> str:
    return f"{x},{y}"


def coords(room_id: str) -> tuple[int, int]:
    x, y = room_id.split(",")
    return int(x), int(y)


def neighbour_id(room_id: str, direction: str) -> str:
    x, y = coords(room_id)
    dx, dy = OFFSETS[direction]
    return room_id_for(x + dx, y + dy)


def _rng_for(*, seed: int, room_id: str) -> random.Random:
    # String seeds hash deterministically across runs.
    return random.Random(f"{seed}:{room_id}")


def build_room(*, seed: int, room_id: str, entered_from: str | None = None) -> Room:
    """Derive a room's layout from the session seed and its coordinates.

    `entered_from` is the direction (as seen from the new room) leading back to where the
    player came from; that exit always exists. Prose is left to the narrator.
    """

    rng = _rng_for(seed=seed, room_id=room_id)

    exits = {d: neighbour_id(room_id, d) for d in DIRECTIONS if rng.random() < EXIT_CHANCE}
    if entered_from is not None:
        exits[entered_from] = neighbour_id(room_id, entered_from)
    if not exits:
        d = rng.choice(DIRECTIONS)
        exits[d] = neighbour_id(room_id, d)

    items = rng.sample(ITEM_TABLE, k=rng.randint(0, 2))

    hostile: Hostile | None = None
    if room_id != START_ROOM_ID and rng.random() < HOSTILE_CHANCE:
        name, max_health, attack = rng.choice(HOSTILE_TABLE)
        hostile = Hostile(
            hostile_id=f"{room_id}:{name}",
            name=name,
            health=max_health,
            max_health=max_health,
            attack=attack,
        )

    if room_id == START_ROOM_ID:
        title = "Antechamber"
    else:
        title = f"{rng.choice(TITLE_ADJECTIVES)} {rng.choice(TITLE_NOUNS)}"

    return Room(room_id=room_id, title=title, exits=exits, items=list(items), hostile=hostile)


def new_session_state(*, session_id: str, seed: int, start_description: str | None = None) -> SessionState:
    start = build_room(seed=seed, room_id=START_ROOM_ID)
    start.description = start_description
    return SessionState(
        session_id=session_id,
        seed=seed,
        location_id=start.room_id,
        rooms={start.room_id: start},
    )


def room_summary(room: Room) -> str:
    """One-line listing of what can be seen and where one can go."""

    parts: list[str] = []
    if room.hostile is not None:
        parts.append(f"A {room.hostile.name} watches you.")
    if room.items:
        parts.append("You see: " + ", ".join(room.items) + ".")
    exits = sorted(room.exits)
    parts.append("Exits: " + ", ".join(exits) + "." if exits else "There are no obvious exits.")
    return " ".join(parts)


def match_item(items: list[str], wanted: str) -> str | None:
    """Find an item by exact name, else by a unique partial match."""

    wanted = strip_articles(wanted)
    if not wanted:
        return None
    if wanted in items:
        return wanted
    partial = {i for i in items if wanted in i}
    if len(partial) == 1:
        return partial.pop()
    return None


def strip_articles(text: str) -> str:
    words = [w for w in text.split() if w not in {"the", "a", "an", "up"}]
    return " ".join(words)
