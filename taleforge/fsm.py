from __future__ import annotations

from typing import Literal

from statemachine import State, StateMachine
from statemachine.exceptions import TransitionNotAllowed

from taleforge.commands import Command, CommandKind
from taleforge.errors import IllegalCommandForMode, IllegalTransition, UnknownCommand
from taleforge.models import CombatState, Mode, SessionState


ModeEvent = Literal["start_combat", "end_combat", "open_inventory", "close_inventory"]


class SessionFSM(StateMachine):
    """FSM wrapper around SessionState.mode.

    The declared edges are the only legal mode changes; anything else raises.
    The FSM only guards transitions; the functions below keep CombatState in step with it.
    """

    exploring = State(Mode.exploring.value, value=Mode.exploring.value, initial=True)
    in_combat = State(Mode.in_combat.value, value=Mode.in_combat.value)
    inventory_open = State(Mode.inventory_open.value, value=Mode.inventory_open.value)

    start_combat = exploring.to(in_combat)
    end_combat = in_combat.to(exploring)
    open_inventory = exploring.to(inventory_open)
    close_inventory = inventory_open.to(exploring)

    def __init__(self, session: SessionState):
        self.session = session
        super().__init__(start_value=session.mode.value)

    def sync_mode_to_model(self) -> None:
        self.session.mode = Mode(str(self.current_state.value))


# Which commands each mode accepts. Checked before anything is mutated.
LEGAL_COMMANDS: dict[Mode, frozenset[CommandKind]] = {
    Mode.exploring: frozenset(
        {
            CommandKind.look,
            CommandKind.move,
            CommandKind.take,
            CommandKind.attack,
            CommandKind.inventory,
            CommandKind.help,
        }
    ),
    Mode.in_combat: frozenset({CommandKind.attack, CommandKind.help}),
    Mode.inventory_open: frozenset({CommandKind.inventory, CommandKind.help}),
}


def check_legal(*, session: SessionState, command: Command) -> None:
    if command.kind is CommandKind.unknown:
        raise UnknownCommand(command.verb)
    if command.kind not in LEGAL_COMMANDS[session.mode]:
        raise IllegalCommandForMode(command.kind.value, session.mode.value)


def fire(session: SessionState, event: ModeEvent) -> None:
    fsm = SessionFSM(session)
    try:
        fsm.send(event)
    except TransitionNotAllowed as e:
        raise IllegalTransition(f"Cannot {event} while {session.mode.value}") from e
    fsm.sync_mode_to_model()


def start_combat(session: SessionState, combat: CombatState) -> None:
    fire(session, "start_combat")
    session.combat = combat


def end_combat(session: SessionState) -> None:
    fire(session, "end_combat")
    session.combat = None


def open_inventory(session: SessionState) -> None:
    fire(session, "open_inventory")


def close_inventory(session: SessionState) -> None:
    fire(session, "close_inventory")
