from __future__ import annotations

import pytest
from pydantic import ValidationError

from taleforge.combat import new_combat_state
from taleforge.commands import parse
from taleforge.errors import IllegalCommandForMode, IllegalTransition, UnknownCommand
from taleforge.fsm import (
    LEGAL_COMMANDS,
    check_legal,
    close_inventory,
    end_combat,
    open_inventory,
    start_combat,
)
from taleforge.models import Mode, SessionState


def _combat_for(state: SessionState):  # type: ignore[no-untyped-def]
    assert state.room.hostile is not None
    return new_combat_state(combat_id="c1", player=state.player, hostile=state.room.hostile)


def test_initial_mode_is_exploring(make_state) -> None:  # type: ignore[no-untyped-def]
    assert make_state().mode is Mode.exploring


def test_inventory_round_trip(make_state) -> None:  # type: ignore[no-untyped-def]
    state = make_state()
    open_inventory(state)
    assert state.mode is Mode.inventory_open
    close_inventory(state)
    assert state.mode is Mode.exploring


def test_combat_state_exists_iff_in_combat(make_state) -> None:  # type: ignore[no-untyped-def]
    state = make_state(hostile=True)
    start_combat(state, _combat_for(state))
    assert state.mode is Mode.in_combat
    assert state.combat is not None

    end_combat(state)
    assert state.mode is Mode.exploring
    assert state.combat is None


@pytest.mark.parametrize(
    "setup, action",
    [
        ("exploring", "end_combat"),
        ("exploring", "close_inventory"),
        ("inventory_open", "open_inventory"),
        ("inventory_open", "start_combat"),
        ("in_combat", "open_inventory"),
        ("in_combat", "start_combat"),
    ],
)
def test_invalid_source_state_is_rejected_with_typed_error(make_state, setup: str, action: str) -> None:  # type: ignore[no-untyped-def]
    state = make_state(hostile=True)
    if setup == "inventory_open":
        open_inventory(state)
    elif setup == "in_combat":
        start_combat(state, _combat_for(state))

    before = state.model_dump()
    with pytest.raises(IllegalTransition):
        if action == "start_combat":
            start_combat(state, _combat_for(state))
        elif action == "end_combat":
            end_combat(state)
        elif action == "open_inventory":
            open_inventory(state)
        else:
            close_inventory(state)
    assert state.model_dump() == before


def test_legality_table(make_state) -> None:  # type: ignore[no-untyped-def]
    state = make_state(hostile=True)
    check_legal(session=state, command=parse("move north"))

    start_combat(state, _combat_for(state))
    for raw in ("move north", "look", "take torch", "inventory"):
        with pytest.raises(IllegalCommandForMode):
            check_legal(session=state, command=parse(raw))
    check_legal(session=state, command=parse("attack"))


def test_attack_illegal_while_inventory_open(make_state) -> None:  # type: ignore[no-untyped-def]
    state = make_state(hostile=True)
    open_inventory(state)
    with pytest.raises(IllegalCommandForMode) as e:
        check_legal(session=state, command=parse("attack goblin"))
    assert "inventory open" in str(e.value)


def test_unknown_command_is_rejected_in_every_mode(make_state) -> None:  # type: ignore[no-untyped-def]
    state = make_state()
    with pytest.raises(UnknownCommand) as e:
        check_legal(session=state, command=parse("xyzzy"))
    assert "xyzzy" in str(e.value)
    assert "help" in str(e.value)


def test_help_is_always_legal() -> None:
    assert all(any(k.value == "help" for k in kinds) for kinds in LEGAL_COMMANDS.values())


def test_model_rejects_combat_outside_combat_mode(make_state) -> None:  # type: ignore[no-untyped-def]
    state = make_state(hostile=True)
    data = state.model_dump()
    data["combat"] = _combat_for(state).model_dump()
    with pytest.raises(ValidationError):
        SessionState.model_validate(data)

    data = state.model_dump()
    data["mode"] = "in_combat"
    with pytest.raises(ValidationError):
        SessionState.model_validate(data)
