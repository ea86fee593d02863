from __future__ import annotations

import random
from collections.abc import Callable
from dataclasses import dataclass

from statemachine import State, StateMachine
from statemachine.exceptions import TransitionNotAllowed

from taleforge.errors import IllegalTransition
from taleforge.models import CombatPhase, CombatState, Combatant, Hostile, PlayerState


DamageRule = Callable[[Combatant, Combatant, random.Random], int]


def default_damage_rule(attacker: Combatant, defender: Combatant, rng: random.Random) -> int:
    return rng.randint(1, attacker.attack)


class CombatFSM(StateMachine):
    """Turn cycle for a single fight: initiating -> player/enemy turns -> resolved."""

    initiating = State(CombatPhase.initiating.value, value=CombatPhase.initiating.value, initial=True)
    player_turn = State(CombatPhase.player_turn.value, value=CombatPhase.player_turn.value)
    enemy_turn = State(CombatPhase.enemy_turn.value, value=CombatPhase.enemy_turn.value)
    resolved = State(CombatPhase.resolved.value, value=CombatPhase.resolved.value, final=True)

    begin = initiating.to(player_turn)
    player_done = player_turn.to(enemy_turn)
    enemy_done = enemy_turn.to(player_turn)
    resolve = player_turn.to(resolved) | enemy_turn.to(resolved)

    def __init__(self, combat: CombatState):
        self.combat = combat
        super().__init__(start_value=combat.phase.value)

    def sync_phase_to_model(self) -> None:
        self.combat.phase = CombatPhase(str(self.current_state.value))


@dataclass(frozen=True, slots=True)
class TurnOutcome:
    turn: int
    attacker: str | None = None
    defender: str | None = None
    damage: int = 0
    defender_health: int | None = None
    resolved: bool = False

    def describe(self) -> str:
        if self.resolved or self.attacker is None:
            return "The fight is over."
        if self.attacker == "you":
            return f"You hit the {self.defender} for {self.damage} damage."
        return f"The {self.attacker} hits you for {self.damage} damage."


def new_combat_state(*, combat_id: str, player: PlayerState, hostile: Hostile) -> CombatState:
    return CombatState(
        combat_id=combat_id,
        player=Combatant(name="you", health=player.health, max_health=player.max_health, attack=player.attack),
        enemy=Combatant(name=hostile.name, health=hostile.health, max_health=hostile.max_health, attack=hostile.attack),
        hostile_id=hostile.hostile_id,
    )


class Combat:
    """Drives one CombatState through its turn cycle.

    Rolls are seeded from (session seed, combat id, turn) so a restored snapshot replays
    the same fight.
    """

    def __init__(self, state: CombatState, *, seed: int, damage_rule: DamageRule = default_damage_rule):
        self.state = state
        self.seed = seed
        self.damage_rule = damage_rule

    @property
    def someone_down(self) -> bool:
        return not (self.state.player.alive and self.state.enemy.alive)

    @property
    def resolved(self) -> bool:
        return self.state.phase == CombatPhase.resolved

    @property
    def player_won(self) -> bool:
        return self.state.player.alive and not self.state.enemy.alive

    def _fire(self, fsm: CombatFSM, event: str) -> None:
        try:
            fsm.send(event)
        except TransitionNotAllowed as e:
            raise IllegalTransition(f"Cannot {event} combat in phase {self.state.phase.value}") from e
        fsm.sync_phase_to_model()

    def start(self) -> None:
        self._fire(CombatFSM(self.state), "begin")

    def next_turn(self) -> TurnOutcome:
        """Advance one turn.

        Once either side is at zero health the next call resolves the fight, whoever's turn it was.
        """

        if self.state.phase in (CombatPhase.initiating, CombatPhase.resolved):
            raise IllegalTransition(f"Cannot take a turn in combat phase {self.state.phase.value}")

        fsm = CombatFSM(self.state)
        self.state.turn += 1

        if self.someone_down:
            self._fire(fsm, "resolve")
            return TurnOutcome(turn=self.state.turn, resolved=True)

        if self.state.phase == CombatPhase.player_turn:
            attacker, defender, event = self.state.player, self.state.enemy, "player_done"
        else:
            attacker, defender, event = self.state.enemy, self.state.player, "enemy_done"

        rng = random.Random(f"{self.seed}:{self.state.combat_id}:{self.state.turn}")
        damage = max(0, int(self.damage_rule(attacker, defender, rng)))
        defender.health = max(0, defender.health - damage)

        self._fire(fsm, event)
        return TurnOutcome(
            turn=self.state.turn,
            attacker=attacker.name,
            defender=defender.name,
            damage=damage,
            defender_health=defender.health,
        )
