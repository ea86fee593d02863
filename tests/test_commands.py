from __future__ import annotations

import pytest

from taleforge.commands import Command, CommandKind, parse


@pytest.mark.parametrize(
    ("raw", "kind"),
    [
        ("look", CommandKind.look),
        ("LOOK", CommandKind.look),
        ("  look  ", CommandKind.look),
        ("move north", CommandKind.move),
        ("take torch", CommandKind.take),
        ("attack", CommandKind.attack),
        ("inventory", CommandKind.inventory),
        ("help", CommandKind.help),
    ],
)
def test_vocabulary_words_map_to_their_kind(raw: str, kind: CommandKind) -> None:
    assert parse(raw).kind is kind


def test_remaining_tokens_become_positional_args() -> None:
    cmd = parse("Take the Rusty Key")
    assert cmd.kind is CommandKind.take
    assert cmd.args == ("the", "rusty", "key")
    assert cmd.target == "the rusty key"
    assert cmd.raw == "Take the Rusty Key"


def test_unknown_first_token_is_a_normal_outcome() -> None:
    cmd = parse("dance wildly")
    assert cmd.kind is CommandKind.unknown
    assert cmd.verb == "dance"


@pytest.mark.parametrize("raw", ["", "   ", "\t\n"])
def test_empty_input_is_unknown(raw: str) -> None:
    assert parse(raw) == Command(kind=CommandKind.unknown, raw=raw)


def test_no_semantic_validation_at_parse_time() -> None:
    # Nonsense arguments are the state machine's problem, not the parser's.
    cmd = parse("move sideways twice")
    assert cmd.kind is CommandKind.move
    assert cmd.args == ("sideways", "twice")


def test_aliases_and_bare_directions() -> None:
    assert parse("go n") == Command(kind=CommandKind.move, args=("north",), raw="go n")
    assert parse("s") == Command(kind=CommandKind.move, args=("south",), raw="s")
    assert parse("east").args == ("east",)
    assert parse("i").kind is CommandKind.inventory
    assert parse("get coin").kind is CommandKind.take
    assert parse("kill goblin").kind is CommandKind.attack
    assert parse("?").kind is CommandKind.help


def test_pick_up_takes_the_item() -> None:
    cmd = parse("pick up the torch")
    assert cmd.kind is CommandKind.take
    assert cmd.args == ("up", "the", "torch")


def test_commands_are_immutable() -> None:
    cmd = parse("look")
    with pytest.raises(AttributeError):
        cmd.kind = CommandKind.help  # type: ignore[misc]
