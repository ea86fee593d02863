from __future__ import annotations

import random

import pytest

from taleforge.combat import Combat, CombatFSM, default_damage_rule, new_combat_state
from taleforge.errors import IllegalTransition
from taleforge.models import CombatPhase, Combatant, Hostile, PlayerState


def _combat(*, player_hp: int = 20, enemy_hp: int = 8, rule=default_damage_rule) -> Combat:  # type: ignore[no-untyped-def]
    state = new_combat_state(
        combat_id="c1",
        player=PlayerState(health=player_hp, max_health=20, attack=6),
        hostile=Hostile(hostile_id="h1", name="goblin", health=enemy_hp, max_health=8, attack=3),
    )
    return Combat(state, seed=42, damage_rule=rule)


def _fixed(amount: int):  # type: ignore[no-untyped-def]
    def rule(attacker: Combatant, defender: Combatant, rng: random.Random) -> int:
        return amount

    return rule


def test_start_moves_initiating_to_player_turn_exactly_once() -> None:
    c = _combat()
    assert c.state.phase is CombatPhase.initiating
    c.start()
    assert c.state.phase is CombatPhase.player_turn
    with pytest.raises(IllegalTransition):
        c.start()


def test_next_turn_before_start_is_rejected() -> None:
    with pytest.raises(IllegalTransition):
        _combat().next_turn()


def test_turns_alternate_and_counter_advances() -> None:
    c = _combat(player_hp=100, enemy_hp=8, rule=_fixed(1))
    c.start()

    first = c.next_turn()
    assert (first.turn, first.attacker, first.defender, first.damage) == (1, "you", "goblin", 1)
    assert c.state.phase is CombatPhase.enemy_turn
    assert c.state.enemy.health == 7

    second = c.next_turn()
    assert (second.turn, second.attacker, second.defender) == (2, "goblin", "you")
    assert c.state.phase is CombatPhase.player_turn
    assert c.state.player.health == 99


def test_health_is_floored_at_zero() -> None:
    c = _combat(enemy_hp=3, rule=_fixed(50))
    c.start()
    outcome = c.next_turn()
    assert outcome.defender_health == 0
    assert c.state.enemy.health == 0


def test_knockout_forces_resolution_on_the_next_call_whoever_is_up() -> None:
    c = _combat(enemy_hp=3, rule=_fixed(50))
    c.start()
    c.next_turn()  # player drops the goblin; it would be the goblin's turn now
    assert c.state.phase is CombatPhase.enemy_turn
    assert c.someone_down

    outcome = c.next_turn()
    assert outcome.resolved
    assert c.state.phase is CombatPhase.resolved
    assert c.player_won
    assert c.state.turn == 2

    with pytest.raises(IllegalTransition):
        c.next_turn()


def test_enemy_can_win() -> None:
    c = _combat(player_hp=2, enemy_hp=8, rule=_fixed(5))
    c.start()
    c.next_turn()  # player hits for 5, goblin at 3
    c.next_turn()  # goblin hits for 5, player at 0
    assert c.state.player.health == 0
    assert c.next_turn().resolved
    assert not c.player_won


def test_driving_to_the_end_resolves_exactly_once() -> None:
    c = _combat()
    c.start()
    phases = []
    while not c.resolved:
        c.next_turn()
        phases.append(c.state.phase)
    assert phases.count(CombatPhase.resolved) == 1
    assert c.state.player.health == 0 or c.state.enemy.health == 0


def test_rolls_are_reproducible_from_seed_and_turn() -> None:
    a, b = _combat(), _combat()
    a.start()
    b.start()
    assert [a.next_turn().damage for _ in range(2)] == [b.next_turn().damage for _ in range(2)]


def test_default_rule_is_bounded_by_attack() -> None:
    attacker = Combatant(name="a", health=5, max_health=5, attack=4)
    defender = Combatant(name="d", health=5, max_health=5, attack=1)
    rng = random.Random(0)
    assert all(1 <= default_damage_rule(attacker, defender, rng) <= 4 for _ in range(200))


def test_fsm_mirrors_model_phase() -> None:
    c = _combat()
    fsm = CombatFSM(c.state)
    assert fsm.current_state == fsm.initiating
    fsm.send("begin")
    fsm.sync_phase_to_model()
    assert c.state.phase is CombatPhase.player_turn
