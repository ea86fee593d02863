from __future__ import annotations

import math
from dataclasses import dataclass

from taleforge.combat import Combat, DamageRule, default_damage_rule, new_combat_state
from taleforge.commands import Command, CommandKind
from taleforge.core.context import build_request
from taleforge.errors import ActionRefused
from taleforge.fsm import check_legal, close_inventory, end_combat, open_inventory, start_combat
from taleforge.generation.base import GenerationKind, GenerationRequest
from taleforge.models import Mode, SessionState
from taleforge.prompts import render_prompt
from taleforge.world import DIRECTIONS, OPPOSITE, build_room, match_item, room_summary, strip_articles


STATIC_HELP = (
    "Commands: look, move <north|south|east|west>, take <item>, attack [enemy], inventory, help. "
    "While the inventory is open only 'inventory' (to close it) and 'help' work; "
    "in a fight you can only attack."
)

FALLBACK_TEXT: dict[CommandKind, str] = {
    CommandKind.look: "The shadows here resist your eyes for now. Try looking again in a moment.",
    CommandKind.move: "Something makes you hesitate at the threshold, and you stay where you are.",
    CommandKind.attack: "You ready yourself, but the moment slips away. Nothing happens yet.",
    CommandKind.help: STATIC_HELP,
}


@dataclass(slots=True)
class Plan:
    """The effect of one command, computed on a private copy of the session.

    Nothing here touches the live session: the orchestrator commits `state` only once any
    narration it needs has been generated.
    """

    command: Command
    state: SessionState
    narrative: str = ""
    generation: GenerationRequest | None = None
    # Room whose description the generated text becomes.
    describe_room: str | None = None
    # Appended after generated narration.
    suffix: str = ""
    fallback_text: str = ""

    def complete(self, text: str) -> None:
        if self.describe_room is not None:
            room = self.state.rooms[self.describe_room]
            room.description = text
            self.narrative = f"{text}\n\n{room_summary(room)}"
        else:
            self.narrative = text
        if self.suffix:
            self.narrative = f"{self.narrative}\n\n{self.suffix}"


@dataclass(slots=True)
class Planner:
    damage_rule: DamageRule = default_damage_rule
    # Recent actions included in narration context.
    context_window: int = 5

    def plan(self, *, state: SessionState, command: Command) -> Plan:
        """Check legality, then work out what the command does.

        Raises a CommandRejection subclass for anything the player can't do right now.
        """

        check_legal(session=state, command=command)
        work = state.model_copy(deep=True)
        plan = Plan(command=command, state=work, fallback_text=FALLBACK_TEXT.get(command.kind, ""))

        if command.kind is CommandKind.look:
            self._look(plan)
        elif command.kind is CommandKind.move:
            self._move(plan)
        elif command.kind is CommandKind.take:
            self._take(plan)
        elif command.kind is CommandKind.attack:
            if work.mode is Mode.in_combat:
                self._combat_round(plan)
            else:
                self._start_fight(plan)
        elif command.kind is CommandKind.inventory:
            self._inventory(plan)
        elif command.kind is CommandKind.help:
            self._help(plan)
        return plan

    def _request(self, plan: Plan, kind: GenerationKind, instruction: str) -> GenerationRequest:
        return build_request(kind=kind, state=plan.state, instruction=instruction, window=self.context_window)

    def _look(self, plan: Plan) -> None:
        room = plan.state.room
        if room.described:
            plan.narrative = f"{room.description}\n\n{room_summary(room)}"
            return
        plan.describe_room = room.room_id
        plan.generation = self._request(plan, "look", render_prompt("look.txt", title=room.title))

    def _move(self, plan: Plan) -> None:
        work = plan.state
        if not plan.command.args:
            raise ActionRefused("Move where? Try north, south, east or west.")

        direction = plan.command.args[0]
        if direction not in DIRECTIONS:
            raise ActionRefused(f"'{direction}' is not a direction. Try north, south, east or west.")

        here = work.room
        if direction not in here.exits:
            raise ActionRefused(f"You can't go {direction} from here.")

        target_id = here.exits[direction]
        back = OPPOSITE[direction]
        target = work.rooms.get(target_id)
        if target is None:
            target = build_room(seed=work.seed, room_id=target_id, entered_from=back)
            work.rooms[target_id] = target
        target.exits.setdefault(back, here.room_id)
        work.location_id = target_id

        if target.described:
            plan.narrative = f"{target.description}\n\n{room_summary(target)}"
            return
        plan.describe_room = target_id
        plan.generation = self._request(
            plan, "move", render_prompt("move.txt", direction=direction, title=target.title)
        )

    def _take(self, plan: Plan) -> None:
        work = plan.state
        wanted = strip_articles(plan.command.target)
        if not wanted:
            raise ActionRefused("Take what?")

        item = match_item(work.room.items, wanted)
        if item is None:
            raise ActionRefused(f"There is no {wanted} here.")

        work.room.items.remove(item)
        work.inventory.append(item)
        plan.narrative = f"You take the {item}."

    def _inventory(self, plan: Plan) -> None:
        work = plan.state
        if work.mode is Mode.inventory_open:
            close_inventory(work)
            plan.narrative = "You close your pack."
            return

        open_inventory(work)
        if work.inventory:
            plan.narrative = "You open your pack. You are carrying: " + ", ".join(work.inventory) + "."
        else:
            plan.narrative = "You open your pack. It is empty."

    def _help(self, plan: Plan) -> None:
        plan.generation = self._request(plan, "help", render_prompt("help.txt"))

    def _start_fight(self, plan: Plan) -> None:
        work = plan.state
        hostile = work.room.hostile
        if hostile is None:
            raise ActionRefused("There is nothing here to fight.")

        wanted = strip_articles(plan.command.target)
        if wanted and wanted not in hostile.name:
            raise ActionRefused(f"There is no {wanted} here to fight.")

        combat_state = new_combat_state(
            combat_id=f"{hostile.hostile_id}#{work.seq}",
            player=work.player,
            hostile=hostile,
        )
        start_combat(work, combat_state)
        Combat(combat_state, seed=work.seed, damage_rule=self.damage_rule).start()

        plan.suffix = (
            f"You are fighting the {hostile.name} ({hostile.health}/{hostile.max_health}). "
            f"Your health: {work.player.health}/{work.player.max_health}."
        )
        plan.generation = self._request(plan, "attack", render_prompt("attack.txt", enemy=hostile.name))

    def _combat_round(self, plan: Plan) -> None:
        """One attack while fighting: player strike, enemy strike, and resolution if someone fell."""

        work = plan.state
        assert work.combat is not None
        combat = Combat(work.combat, seed=work.seed, damage_rule=self.damage_rule)

        outcomes = [combat.next_turn()]
        if not combat.someone_down:
            outcomes.append(combat.next_turn())
        if combat.someone_down:
            outcomes.append(combat.next_turn())

        room = work.room
        enemy = combat.state.enemy
        work.player.health = combat.state.player.health
        if room.hostile is not None and room.hostile.hostile_id == combat.state.hostile_id:
            room.hostile.health = enemy.health

        lines = [o.describe() for o in outcomes if not o.resolved]
        if combat.resolved:
            if combat.player_won:
                room.hostile = None
                lines.append(f"The {enemy.name} collapses and moves no more.")
            else:
                work.player.health = math.ceil(work.player.max_health / 2)
                lines.append(
                    f"The {enemy.name} overwhelms you. You black out, and come to later, battered "
                    f"({work.player.health}/{work.player.max_health})."
                )
            end_combat(work)
        else:
            lines.append(
                f"Your health: {work.player.health}/{work.player.max_health}. "
                f"The {enemy.name}: {enemy.health}/{enemy.max_health}."
            )
        plan.narrative = " ".join(lines)
