from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class CommandKind(StrEnum):
    look = "look"
    move = "move"
    take = "take"
    attack = "attack"
    inventory = "inventory"
    help = "help"
    unknown = "unknown"


@dataclass(frozen=True, slots=True)
class Command:
    """A parsed player instruction.

    `args` are the remaining tokens, unvalidated; what they mean depends on the session mode.
    """

    kind: CommandKind
    args: tuple[str, ...] = ()
    raw: str = ""

    @property
    def target(self) -> str:
        return " ".join(self.args)

    @property
    def verb(self) -> str:
        # First word as typed (lower-cased), used in rejection messages.
        tokens = self.raw.lower().split()
        return tokens[0] if tokens else ""


VOCABULARY: dict[str, CommandKind] = {
    kind.value: kind for kind in CommandKind if kind is not CommandKind.unknown
}

ALIASES: dict[str, CommandKind] = {
    "l": CommandKind.look,
    "go": CommandKind.move,
    "walk": CommandKind.move,
    "get": CommandKind.take,
    "pick": CommandKind.take,
    "grab": CommandKind.take,
    "fight": CommandKind.attack,
    "hit": CommandKind.attack,
    "kill": CommandKind.attack,
    "i": CommandKind.inventory,
    "inv": CommandKind.inventory,
    "?": CommandKind.help,
}

DIRECTION_ALIASES: dict[str, str] = {
    "n": "north",
    "s": "south",
    "e": "east",
    "w": "west",
    "north": "north",
    "south": "south",
    "east": "east",
    "west": "west",
}


def parse(raw_input: str) -> Command:
    """Turn raw player text into a Command.

    Never raises: empty or unrecognised input becomes `CommandKind.unknown`.
    """

    tokens = raw_input.lower().split()
    if not tokens:
        return Command(kind=CommandKind.unknown, raw=raw_input)

    head, rest = tokens[0], tokens[1:]

    # "north" / "n" on its own is shorthand for "move north".
    if head in DIRECTION_ALIASES and not rest:
        return Command(kind=CommandKind.move, args=(DIRECTION_ALIASES[head],), raw=raw_input)

    kind = VOCABULARY.get(head) or ALIASES.get(head)
    if kind is None:
        return Command(kind=CommandKind.unknown, args=tuple(rest), raw=raw_input)

    if kind is CommandKind.move:
        rest = [DIRECTION_ALIASES.get(t, t) for t in rest]

    return Command(kind=kind, args=tuple(rest), raw=raw_input)
