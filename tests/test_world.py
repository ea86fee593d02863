from __future__ import annotations

from taleforge.world import (
    OPPOSITE,
    START_ROOM_ID,
    build_room,
    match_item,
    neighbour_id,
    new_session_state,
    room_summary,
)


def test_rooms_are_deterministic_per_seed_and_coordinates() -> None:
    a = build_room(seed=7, room_id="2,3")
    b = build_room(seed=7, room_id="2,3")
    assert a == b


def test_room_always_has_the_way_back() -> None:
    for seed in range(30):
        room = build_room(seed=seed, room_id="0,1", entered_from="south")
        assert room.exits["south"] == "0,0"


def test_every_room_has_an_exit() -> None:
    for seed in range(50):
        assert build_room(seed=seed, room_id="5,5").exits


def test_start_room_is_never_hostile() -> None:
    for seed in range(50):
        assert build_room(seed=seed, room_id=START_ROOM_ID).hostile is None


def test_neighbours_and_opposites() -> None:
    assert neighbour_id("0,0", "north") == "0,1"
    assert neighbour_id("0,0", "west") == "-1,0"
    assert all(OPPOSITE[OPPOSITE[d]] == d for d in OPPOSITE)


def test_new_session_state_starts_exploring_in_the_start_room() -> None:
    state = new_session_state(session_id="abc", seed=99, start_description="Hello.")
    assert state.location_id == START_ROOM_ID
    assert state.room.description == "Hello."
    assert state.combat is None
    assert state.inventory == []


def test_match_item() -> None:
    items = ["rusty key", "torch", "silver coin"]
    assert match_item(items, "the torch") == "torch"
    assert match_item(items, "key") == "rusty key"
    assert match_item(items, "sword") is None
    assert match_item(["red gem", "blue gem"], "gem") is None


def test_room_summary_lists_exits_items_and_foes(make_state) -> None:  # type: ignore[no-untyped-def]
    room = make_state(hostile=True).room
    text = room_summary(room)
    assert "goblin" in text
    assert "torch" in text
    assert "Exits: east, north." in text
