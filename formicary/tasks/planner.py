"""UnitTaskPlanner — one move decision per unit per turn.

Each unit either continues a still-valid sticky assignment or walks a
role- and phase-ordered list of candidate tasks, taking the first one
whose handler yields a step.  When nothing applies the unit patrols a
random cell near the anthill.

The assignment table is owned by the planner.  Assignments older than
``max_assignment_age`` seconds of wall-clock time are evicted at the
start of every pass regardless of whether their target is still valid.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import replace
from enum import Enum, auto

import numpy as np

from formicary.analysis.report import Analysis, Phase, Threat
from formicary.grid import hexmath
from formicary.grid.position import Position
from formicary.strategy.report import Strategy
from formicary.tasks.assignment import Assignment, Move, TaskPriority, TaskType
from formicary.tasks.hotspots import find_hotspots
from formicary.tasks.movement import DEFAULT_SAFETY_RADIUS, plan_step
from formicary.world.entities import Resource, ResourceType, Unit, UnitType
from formicary.world.stats import unit_stats

log = logging.getLogger(__name__)

MAX_ASSIGNMENT_AGE = 30.0  # seconds
PATROL_RADIUS = 5
TERRITORY_PATROL_RADIUS = 10
RETURN_CARGO_FRACTION = 0.8
ENGAGE_STRENGTH_FRACTION = 0.7
VULNERABLE_THREAT_RANGE = 5
ESCORT_RANGE = 3
GAME_END_TURN = 420
END_GAME_TURN = 380
END_GAME_MARGIN = 2  # hexes

# Task types that stay open until evicted for age.
_EXPLORATION_TASKS = frozenset({TaskType.EXPLORATION, TaskType.RESOURCE_SCOUTING})


class Task(Enum):
    """Candidate handlers tried, in order, when a unit needs a new task."""

    RETURN_HOME = auto()
    IMMEDIATE_DEFENSE = auto()
    NECTAR_COLLECTION = auto()
    BREAD_COLLECTION = auto()
    APPLE_COLLECTION = auto()
    EXPLORATION = auto()
    RESOURCE_SCOUTING = auto()
    COMBAT = auto()
    CONVOY_PROTECTION = auto()
    TERRITORY_DEFENSE = auto()
    RAID_ENEMY_BASE = auto()


_COLLECTION_TASKS: dict[Task, tuple[ResourceType, TaskPriority]] = {
    Task.NECTAR_COLLECTION: (ResourceType.NECTAR, TaskPriority.HIGH),
    Task.BREAD_COLLECTION: (ResourceType.BREAD, TaskPriority.MEDIUM),
    Task.APPLE_COLLECTION: (ResourceType.APPLE, TaskPriority.LOW),
}


class UnitTaskPlanner:
    """Assign tasks and single-hex steps to every own unit.

    Args:
        seed: Seed for the patrol-point generator.
        safety_radius: Steps within this distance of an enemy are avoided.
        max_assignment_age: Seconds before a sticky assignment is dropped.
        clock: Wall-clock source returning seconds; injectable for tests.
    """

    def __init__(
        self,
        seed: int | None = None,
        safety_radius: int = DEFAULT_SAFETY_RADIUS,
        max_assignment_age: float = MAX_ASSIGNMENT_AGE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.rng = np.random.default_rng(seed)
        self.safety_radius = safety_radius
        self.max_assignment_age = max_assignment_age
        self.clock = clock
        self.assignments: dict[str, Assignment] = {}

    # ------------------------------------------------------------------
    # Turn entry point
    # ------------------------------------------------------------------

    def plan_unit_actions(self, analysis: Analysis, strategy: Strategy) -> list[Move]:
        """Plan one move for every own unit.

        Args:
            analysis: Current turn's analysis.
            strategy: Current turn's strategy.

        Returns:
            Move orders.  A unit is left out only when it has no anthill to
            fall back on and no task produced a step.
        """
        self.evict_stale()
        present = {u.id for u in analysis.units.own}
        for unit_id in [uid for uid in self.assignments if uid not in present]:
            del self.assignments[unit_id]

        moves: list[Move] = []
        for unit in analysis.units.own:
            move = self.plan_unit(unit, analysis, strategy)
            if move is None:
                self.assignments.pop(unit.id, None)
                log.debug("Unit %s has no move this turn", unit.id)
                continue
            self.assignments[unit.id] = move.assignment
            moves.append(move)
        return moves

    def evict_stale(self) -> int:
        """Drop assignments older than ``max_assignment_age``; return how many."""
        now = self.clock()
        stale = [
            uid
            for uid, a in self.assignments.items()
            if now - a.timestamp > self.max_assignment_age
        ]
        for uid in stale:
            del self.assignments[uid]
        if stale:
            log.debug("Evicted %d stale assignment(s)", len(stale))
        return len(stale)

    def plan_unit(
        self, unit: Unit, analysis: Analysis, strategy: Strategy
    ) -> Move | None:
        existing = self.assignments.get(unit.id)
        heading_home = self.must_head_home(unit, analysis)
        if (
            existing is not None
            and not heading_home
            and self.should_continue(existing, analysis)
        ):
            move = self._step(unit, self._track_target(existing, analysis), analysis)
            if move is not None:
                return move

        for task in self.task_priority(unit, analysis, strategy):
            move = self.execute_task(task, unit, analysis, strategy)
            if move is not None:
                return move
        return self.default_patrol(unit, analysis)

    # ------------------------------------------------------------------
    # Continuity
    # ------------------------------------------------------------------

    def should_continue(self, assignment: Assignment, analysis: Analysis) -> bool:
        """Return True while the assignment's target is still valid."""
        if assignment.type is TaskType.RESOURCE_COLLECTION:
            return any(
                r.position == assignment.target and r.type is assignment.resource_type
                for r in analysis.resources.visible
            )
        if assignment.type is TaskType.COMBAT:
            if assignment.target_id:
                return any(e.id == assignment.target_id for e in analysis.units.enemies)
            return any(e.position == assignment.target for e in analysis.units.enemies)
        if assignment.type in _EXPLORATION_TASKS:
            return not self.is_area_explored(assignment.target, analysis)
        return False

    @staticmethod
    def _track_target(assignment: Assignment, analysis: Analysis) -> Assignment:
        """Follow a combat target that moved since the assignment was made."""
        if assignment.type is not TaskType.COMBAT or not assignment.target_id:
            return assignment
        for enemy in analysis.units.enemies:
            if enemy.id == assignment.target_id and enemy.position != assignment.target:
                return replace(assignment, target=enemy.position)
        return assignment

    @staticmethod
    def is_area_explored(target: Position, analysis: Analysis) -> bool:
        # Exploration completion is not tracked; only age eviction ends
        # an exploration assignment.
        return False

    # ------------------------------------------------------------------
    # Task ordering
    # ------------------------------------------------------------------

    def task_priority(
        self, unit: Unit, analysis: Analysis, strategy: Strategy
    ) -> list[Task]:
        """Return the ordered candidate tasks for ``unit`` this turn."""
        if self.should_return_home(unit) or self.must_head_home(unit, analysis):
            return [Task.RETURN_HOME]

        tasks: list[Task] = []
        if analysis.threats.immediate:
            tasks.append(Task.IMMEDIATE_DEFENSE)

        match unit.type:
            case UnitType.SCOUT:
                tasks += [
                    Task.NECTAR_COLLECTION,
                    Task.EXPLORATION,
                    Task.RESOURCE_SCOUTING,
                ]
            case UnitType.SOLDIER:
                soldier = [Task.COMBAT, Task.CONVOY_PROTECTION, Task.TERRITORY_DEFENSE]
                if strategy.phase is Phase.RECOVERY:
                    soldier.remove(Task.TERRITORY_DEFENSE)
                    soldier.insert(0, Task.TERRITORY_DEFENSE)
                elif strategy.phase is Phase.LATE and analysis.units.enemy_bases:
                    soldier.insert(0, Task.RAID_ENEMY_BASE)
                tasks += soldier
            case UnitType.WORKER:
                tasks += [Task.BREAD_COLLECTION, Task.APPLE_COLLECTION]
            case _:
                log.warning(
                    "Unit %s has role %s, no role tasks available",
                    unit.id,
                    unit.type.name,
                )
        return tasks

    @staticmethod
    def should_return_home(unit: Unit) -> bool:
        """Return True if the unit carries nectar or is nearly full."""
        if unit.cargo.is_empty:
            return False
        if unit.cargo.type is ResourceType.NECTAR:
            return True
        capacity = unit_stats(unit.type).cargo
        return unit.cargo.amount >= capacity * RETURN_CARGO_FRACTION

    @staticmethod
    def must_head_home(unit: Unit, analysis: Analysis) -> bool:
        """Return True late in the game once the unit is too far out.

        From ``END_GAME_TURN`` on, a unit farther from the anthill than
        half the distance it can still cover (less a small margin) is
        recalled so it is home before ``GAME_END_TURN``.
        """
        anthill = analysis.units.anthill
        if analysis.turn < END_GAME_TURN or anthill is None:
            return False
        turns_left = max(0, GAME_END_TURN - analysis.turn)
        reach = turns_left * unit_stats(unit.type).speed // 2 - END_GAME_MARGIN
        return hexmath.distance(unit.position, anthill) > reach

    def execute_task(
        self, task: Task, unit: Unit, analysis: Analysis, strategy: Strategy
    ) -> Move | None:
        match task:
            case Task.RETURN_HOME:
                return self.return_home(unit, analysis)
            case Task.IMMEDIATE_DEFENSE:
                return self.defend_anthill(unit, analysis)
            case Task.NECTAR_COLLECTION | Task.BREAD_COLLECTION | Task.APPLE_COLLECTION:
                resource_type, priority = _COLLECTION_TASKS[task]
                return self.collect(unit, resource_type, priority, analysis, strategy)
            case Task.EXPLORATION:
                return self.explore(unit, analysis)
            case Task.RESOURCE_SCOUTING:
                return self.scout_resources(unit, analysis)
            case Task.COMBAT:
                return self.engage(unit, analysis, strategy)
            case Task.CONVOY_PROTECTION:
                return self.protect_convoy(unit, analysis)
            case Task.TERRITORY_DEFENSE:
                return self.defend_territory(unit, analysis, strategy)
            case Task.RAID_ENEMY_BASE:
                return self.raid_enemy_base(unit, analysis)
        return None

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def return_home(self, unit: Unit, analysis: Analysis) -> Move | None:
        anthill = analysis.units.anthill
        if anthill is None:
            return None
        if unit.cargo.is_empty:
            log.info("Unit %s recalled to anthill on turn %d", unit.id, analysis.turn)
        else:
            log.info(
                "Unit %s returning to anthill with %d %s",
                unit.id,
                unit.cargo.amount,
                unit.cargo.type.name.lower(),
            )
        return self._assign(
            unit, TaskType.RETURN_HOME, anthill, TaskPriority.CRITICAL, analysis
        )

    def defend_anthill(self, unit: Unit, analysis: Analysis) -> Move | None:
        """Move to the midpoint between the nearest immediate threat and home."""
        anthill = analysis.units.anthill
        if anthill is None or not analysis.threats.immediate:
            return None
        threat = min(
            analysis.threats.immediate,
            key=lambda t: hexmath.distance(unit.position, t.unit.position),
        )
        enemy = threat.unit.position
        intercept = Position(
            round(enemy.q + (anthill.q - enemy.q) * 0.5),
            round(enemy.r + (anthill.r - enemy.r) * 0.5),
        )
        return self._assign(
            unit,
            TaskType.IMMEDIATE_DEFENSE,
            intercept,
            TaskPriority.CRITICAL,
            analysis,
            target_id=threat.unit.id or None,
        )

    def collect(
        self,
        unit: Unit,
        resource_type: ResourceType,
        priority: TaskPriority,
        analysis: Analysis,
        strategy: Strategy,
    ) -> Move | None:
        """Head for the nearest free resource of ``resource_type``."""
        if not unit.cargo.is_empty and unit.cargo.type is not resource_type:
            log.debug(
                "Unit %s cannot collect %s while carrying %s",
                unit.id,
                resource_type.name.lower(),
                unit.cargo.type.name.lower(),
            )
            return None
        plan = strategy.resources
        if not plan.may_collect(unit.type):
            return None

        limits = [plan.max_collection_distance]
        if unit.type is UnitType.WORKER:
            limits.append(plan.max_worker_distance)
        reach = min((d for d in limits if d is not None), default=None)

        taken = self._claimed_resources(unit.id)
        anthill = analysis.units.anthill
        candidates: list[Resource] = []
        for resource in analysis.resources.of_type(resource_type):
            if resource.position in taken:
                continue
            if reach is not None:
                if hexmath.distance(anthill, resource.position) > reach:
                    continue
            candidates.append(resource)
        if not candidates:
            return None

        nearest = min(
            candidates, key=lambda r: hexmath.distance(unit.position, r.position)
        )
        move = self._assign(
            unit,
            TaskType.RESOURCE_COLLECTION,
            nearest.position,
            priority,
            analysis,
            resource_type=resource_type,
        )
        if move is not None:
            log.info(
                "Unit %s assigned to collect %s at (%d, %d)",
                unit.id,
                resource_type.name.lower(),
                nearest.position.q,
                nearest.position.r,
            )
        return move

    def _claimed_resources(self, unit_id: str) -> set[Position]:
        return {
            a.target
            for uid, a in self.assignments.items()
            if uid != unit_id and a.type is TaskType.RESOURCE_COLLECTION
        }

    def exploration_targets(self, unit: Unit, analysis: Analysis) -> list[Position]:
        """Six ring points at one, two and three times the unit's vision."""
        anthill = analysis.units.anthill
        if anthill is None:
            return []
        sight = hexmath.vision(unit.type)
        targets: list[Position] = []
        for radius in range(sight, sight * 3 + 1, sight):
            targets.extend(hexmath.ring(anthill, radius))
        return [t for t in targets if not self.is_area_explored(t, analysis)]

    def explore(self, unit: Unit, analysis: Analysis) -> Move | None:
        targets = self.exploration_targets(unit, analysis)
        if not targets:
            return None
        hotspots = find_hotspots(analysis.resources.visible)
        if hotspots:
            lure = hotspots[0].center
            target = min(targets, key=lambda t: hexmath.distance(t, lure))
        else:
            target = targets[0]
        return self._assign(
            unit, TaskType.EXPLORATION, target, TaskPriority.MEDIUM, analysis
        )

    def scout_resources(self, unit: Unit, analysis: Analysis) -> Move | None:
        """Visit the threat map's scout targets, then resource hotspots."""
        targets = [t.position for t in analysis.threat_map.recommended_scout_targets]
        targets += [h.center for h in find_hotspots(analysis.resources.visible)]
        for target in targets:
            move = self._assign(
                unit, TaskType.RESOURCE_SCOUTING, target, TaskPriority.MEDIUM, analysis
            )
            if move is not None:
                return move
        return None

    def engage(self, unit: Unit, analysis: Analysis, strategy: Strategy) -> Move | None:
        """Attack the most dangerous enemy this unit can take on."""
        combat = strategy.combat
        reach = combat.max_patrol_distance
        attack = unit_stats(unit.type).attack
        viable: list[Threat] = []
        for threat in analysis.threats.threats:
            if attack < unit_stats(threat.unit.type).attack * ENGAGE_STRENGTH_FRACTION:
                continue
            if reach is not None and threat.distance > reach:
                continue
            viable.append(threat)
        if not viable:
            return None
        if combat.prioritize_targets:
            viable.sort(key=lambda t: t.unit.type not in combat.prioritize_targets)

        target = viable[0].unit
        return self._assign(
            unit,
            TaskType.COMBAT,
            target.position,
            TaskPriority.HIGH,
            analysis,
            target_id=target.id or None,
        )

    def protect_convoy(self, unit: Unit, analysis: Analysis) -> Move | None:
        """Stand between an unescorted worker and the enemy nearest to it."""
        threats = analysis.threats.threats
        if not threats:
            return None
        soldiers = [u for u in analysis.units.own if u.type is UnitType.SOLDIER]
        for worker in analysis.units.own:
            if worker.type is not UnitType.WORKER:
                continue
            here = worker.position
            close = [
                t
                for t in threats
                if hexmath.distance(here, t.unit.position) <= VULNERABLE_THREAT_RANGE
            ]
            escorted = any(
                hexmath.distance(here, s.position) <= ESCORT_RANGE for s in soldiers
            )
            if not close or escorted:
                continue
            nearest = min(close, key=lambda t: hexmath.distance(here, t.unit.position))
            dq = worker.position.q - nearest.unit.position.q
            dr = worker.position.r - nearest.unit.position.r
            guard = worker.position.offset((dq > 0) - (dq < 0), (dr > 0) - (dr < 0))
            move = self._assign(
                unit, TaskType.CONVOY_PROTECTION, guard, TaskPriority.MEDIUM, analysis
            )
            if move is not None:
                return move
        return None

    def defend_territory(
        self, unit: Unit, analysis: Analysis, strategy: Strategy
    ) -> Move | None:
        """Patrol toward the ring point farthest from the unit."""
        anthill = analysis.units.anthill
        if anthill is None:
            return None
        radius = TERRITORY_PATROL_RADIUS
        if strategy.combat.max_patrol_distance is not None:
            radius = min(radius, strategy.combat.max_patrol_distance)
        points = hexmath.ring(anthill, radius)
        target = max(points, key=lambda p: hexmath.distance(unit.position, p))
        return self._assign(
            unit, TaskType.TERRITORY_DEFENSE, target, TaskPriority.MEDIUM, analysis
        )

    def raid_enemy_base(self, unit: Unit, analysis: Analysis) -> Move | None:
        bases = analysis.units.enemy_bases
        if not bases:
            return None
        target = min(bases, key=lambda b: hexmath.distance(unit.position, b))
        return self._assign(
            unit, TaskType.RAID_ENEMY_BASE, target, TaskPriority.HIGH, analysis
        )

    def default_patrol(self, unit: Unit, analysis: Analysis) -> Move | None:
        """Walk toward a random cell within five hexes of the anthill."""
        anthill = analysis.units.anthill
        if anthill is None:
            return None
        cells = [c for c in hexmath.disk(anthill, PATROL_RADIUS) if c != unit.position]
        target = cells[int(self.rng.integers(len(cells)))]
        return self._assign(unit, TaskType.PATROL, target, TaskPriority.LOW, analysis)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _assign(
        self,
        unit: Unit,
        task_type: TaskType,
        target: Position,
        priority: TaskPriority,
        analysis: Analysis,
        target_id: str | None = None,
        resource_type: ResourceType | None = None,
    ) -> Move | None:
        assignment = Assignment(
            type=task_type,
            target=target,
            priority=priority,
            timestamp=self.clock(),
            target_id=target_id,
            resource_type=resource_type,
        )
        return self._step(unit, assignment, analysis)

    def _step(
        self, unit: Unit, assignment: Assignment, analysis: Analysis
    ) -> Move | None:
        threats = [t.unit.position for t in analysis.threats.threats]
        step = plan_step(unit.position, assignment.target, threats, self.safety_radius)
        if step is None:
            return None
        return Move(unit_id=unit.id, path=(step,), assignment=assignment)
