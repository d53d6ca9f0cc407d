"""Tests for formicary.tasks — per-unit task selection and movement."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace

import pytest

from formicary.analysis.analyzer import GameStateAnalyzer
from formicary.analysis.report import Analysis
from formicary.grid import hexmath
from formicary.grid.position import Position
from formicary.strategy.planner import StrategyPlanner
from formicary.strategy.recovery import RecoveryState
from formicary.strategy.report import Strategy
from formicary.tasks.assignment import Move, TaskType
from formicary.tasks.hotspots import find_hotspots
from formicary.tasks.movement import candidate_steps, plan_step
from formicary.tasks.planner import UnitTaskPlanner
from formicary.world.entities import Cargo, Resource, ResourceType, Unit, UnitType
from formicary.world.snapshot import WorldSnapshot

HOME = Position(0, 0)

SnapshotFactory = Callable[..., WorldSnapshot]
UnitFactory = Callable[..., Unit]
ResourceFactory = Callable[..., Resource]


class FakeClock:
    """Manually advanced seconds counter."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def plan_turn(
    snap: WorldSnapshot, recovery: RecoveryState | None = None
) -> tuple[Analysis, Strategy]:
    analysis = GameStateAnalyzer().analyze(snap)
    return analysis, StrategyPlanner(recovery).determine_strategy(analysis)


@pytest.fixture
def clock() -> FakeClock:
    """A fake clock starting at t=1000s."""
    return FakeClock()


@pytest.fixture
def planner(clock: FakeClock) -> UnitTaskPlanner:
    """A seeded task planner on the fake clock."""
    return UnitTaskPlanner(seed=3, clock=clock)


def only_move(
    planner: UnitTaskPlanner,
    snap: WorldSnapshot,
    recovery: RecoveryState | None = None,
) -> Move:
    moves = planner.plan_unit_actions(*plan_turn(snap, recovery))
    assert len(moves) == 1
    return moves[0]


class TestRoleTasks:
    """Tests for role-ordered task choice."""

    def test_worker_ignores_nectar_and_patrols(
        self,
        planner: UnitTaskPlanner,
        make_snapshot: SnapshotFactory,
        make_unit: UnitFactory,
        make_resource: ResourceFactory,
    ) -> None:
        snap = make_snapshot(
            units=(make_unit("w1", 2, 0, UnitType.WORKER),),
            resources=(make_resource(3, 0, ResourceType.NECTAR),),
        )
        move = only_move(planner, snap)
        assert move.assignment.type is TaskType.PATROL
        assert hexmath.distance(HOME, move.assignment.target) <= 5
        assert move.assignment.target != Position(2, 0)

    def test_worker_collects_bread(
        self,
        planner: UnitTaskPlanner,
        make_snapshot: SnapshotFactory,
        make_unit: UnitFactory,
        make_resource: ResourceFactory,
    ) -> None:
        snap = make_snapshot(
            units=(make_unit("w1", 2, 0, UnitType.WORKER),),
            resources=(
                make_resource(3, 3, ResourceType.APPLE),
                make_resource(5, 0, ResourceType.BREAD),
            ),
        )
        move = only_move(planner, snap)
        assert move.assignment.type is TaskType.RESOURCE_COLLECTION
        assert move.assignment.target == Position(5, 0)
        assert move.assignment.resource_type is ResourceType.BREAD
        assert move.path == (Position(3, 0),)

    def test_scout_prefers_nectar(
        self,
        planner: UnitTaskPlanner,
        make_snapshot: SnapshotFactory,
        make_unit: UnitFactory,
        make_resource: ResourceFactory,
    ) -> None:
        snap = make_snapshot(
            units=(make_unit("c1", 1, 1, UnitType.SCOUT),),
            resources=(
                make_resource(4, 0, ResourceType.NECTAR),
                make_resource(1, 2, ResourceType.BREAD),
            ),
        )
        move = only_move(planner, snap)
        assert move.assignment.resource_type is ResourceType.NECTAR

    def test_scout_explores_without_nectar(
        self,
        planner: UnitTaskPlanner,
        make_snapshot: SnapshotFactory,
        make_unit: UnitFactory,
    ) -> None:
        scout = make_unit("c1", 1, 1, UnitType.SCOUT)
        move = only_move(planner, make_snapshot(units=(scout,)))
        assert move.assignment.type is TaskType.EXPLORATION
        assert move.assignment.target == Position(4, 0)

    def test_full_worker_returns_home(
        self,
        planner: UnitTaskPlanner,
        make_snapshot: SnapshotFactory,
        make_unit: UnitFactory,
    ) -> None:
        worker = make_unit("w1", 3, 0, UnitType.WORKER, Cargo(ResourceType.BREAD, 7))
        move = only_move(planner, make_snapshot(units=(worker,)))
        assert move.assignment.type is TaskType.RETURN_HOME
        assert move.path == (Position(2, 0),)

    def test_any_nectar_sends_unit_home(
        self,
        planner: UnitTaskPlanner,
        make_snapshot: SnapshotFactory,
        make_unit: UnitFactory,
    ) -> None:
        scout = make_unit("c1", 0, 4, UnitType.SCOUT, Cargo(ResourceType.NECTAR, 1))
        move = only_move(planner, make_snapshot(units=(scout,)))
        assert move.assignment.type is TaskType.RETURN_HOME

    def test_cargo_type_blocks_other_food(
        self,
        planner: UnitTaskPlanner,
        make_snapshot: SnapshotFactory,
        make_unit: UnitFactory,
        make_resource: ResourceFactory,
    ) -> None:
        worker = make_unit("w1", 2, 0, UnitType.WORKER, Cargo(ResourceType.APPLE, 2))
        snap = make_snapshot(
            units=(worker,),
            resources=(
                make_resource(3, 0, ResourceType.BREAD),
                make_resource(0, 4, ResourceType.APPLE),
            ),
        )
        move = only_move(planner, snap)
        assert move.assignment.resource_type is ResourceType.APPLE
        assert move.assignment.target == Position(0, 4)

    def test_two_workers_split_resources(
        self,
        planner: UnitTaskPlanner,
        make_snapshot: SnapshotFactory,
        make_unit: UnitFactory,
        make_resource: ResourceFactory,
    ) -> None:
        snap = make_snapshot(
            units=(make_unit("w1", 2, 0), make_unit("w2", 2, 1)),
            resources=(
                make_resource(4, 0, ResourceType.BREAD),
                make_resource(4, 1, ResourceType.BREAD),
            ),
        )
        moves = planner.plan_unit_actions(*plan_turn(snap))
        targets = {m.assignment.target for m in moves}
        assert targets == {Position(4, 0), Position(4, 1)}

    def test_worker_leash(
        self,
        planner: UnitTaskPlanner,
        make_snapshot: SnapshotFactory,
        make_unit: UnitFactory,
        make_resource: ResourceFactory,
    ) -> None:
        snap = make_snapshot(
            units=(make_unit("w1", 2, 0),),
            resources=(make_resource(6, 0, ResourceType.BREAD),),
        )
        analysis, strategy = plan_turn(snap)
        leashed = replace(strategy.resources, max_worker_distance=4)
        strategy = replace(strategy, resources=leashed)
        moves = planner.plan_unit_actions(analysis, strategy)
        assert moves[0].assignment.type is TaskType.PATROL


class TestSoldierTasks:
    """Tests for soldier task ordering."""

    def test_immediate_defense_intercepts(
        self,
        planner: UnitTaskPlanner,
        make_snapshot: SnapshotFactory,
        make_unit: UnitFactory,
    ) -> None:
        snap = make_snapshot(
            units=(make_unit("s1", 0, 3, UnitType.SOLDIER),),
            enemies=(make_unit("e1", 4, 0, UnitType.SOLDIER),),
        )
        move = only_move(planner, snap)
        assert move.assignment.type is TaskType.IMMEDIATE_DEFENSE
        assert move.assignment.target == Position(2, 0)

    def test_engages_distant_enemy(
        self,
        planner: UnitTaskPlanner,
        make_snapshot: SnapshotFactory,
        make_unit: UnitFactory,
    ) -> None:
        snap = make_snapshot(
            units=(make_unit("s1", 0, 8, UnitType.SOLDIER),),
            enemies=(make_unit("e1", 0, 12, UnitType.WORKER),),
        )
        move = only_move(planner, snap)
        assert move.assignment.type is TaskType.COMBAT
        assert move.assignment.target_id == "e1"
        assert move.path == (Position(0, 9),)

    def test_workers_do_not_engage(
        self,
        planner: UnitTaskPlanner,
        make_snapshot: SnapshotFactory,
        make_unit: UnitFactory,
    ) -> None:
        snap = make_snapshot(
            units=(make_unit("w1", 0, 8, UnitType.WORKER),),
            enemies=(make_unit("e1", 0, 12, UnitType.SOLDIER),),
        )
        move = only_move(planner, snap)
        assert move.assignment.type is TaskType.PATROL

    def test_recovery_soldier_defends_territory(
        self,
        planner: UnitTaskPlanner,
        make_snapshot: SnapshotFactory,
        make_unit: UnitFactory,
    ) -> None:
        snap = make_snapshot(turn=12, units=(make_unit("s1", 1, 0, UnitType.SOLDIER),))
        move = only_move(planner, snap, RecoveryState(triggered=True, start_turn=10))
        assert move.assignment.type is TaskType.TERRITORY_DEFENSE
        assert hexmath.distance(HOME, move.assignment.target) == 10

    def test_late_game_raid(
        self,
        planner: UnitTaskPlanner,
        make_snapshot: SnapshotFactory,
        make_unit: UnitFactory,
    ) -> None:
        snap = make_snapshot(
            turn=301,
            units=(make_unit("s1", 1, 0, UnitType.SOLDIER),),
            enemy_bases=(Position(20, 0),),
        )
        move = only_move(planner, snap)
        assert move.assignment.type is TaskType.RAID_ENEMY_BASE
        assert move.assignment.target == Position(20, 0)

    def test_convoy_protection(
        self,
        planner: UnitTaskPlanner,
        make_snapshot: SnapshotFactory,
        make_unit: UnitFactory,
    ) -> None:
        snap = make_snapshot(
            units=(
                make_unit("s1", 0, 12, UnitType.SOLDIER),
                make_unit("w1", 12, 0, UnitType.WORKER),
            ),
            enemies=(make_unit("e1", 16, 0, UnitType.SOLDIER),),
        )
        moves = {m.unit_id: m for m in planner.plan_unit_actions(*plan_turn(snap))}
        # the enemy is past the 15-hex leash a lone soldier rush imposes
        assert moves["s1"].assignment.type is TaskType.CONVOY_PROTECTION
        assert moves["s1"].assignment.target == Position(11, 0)


class TestContinuity:
    """Tests for sticky assignments and eviction."""

    def test_collection_continues(
        self,
        planner: UnitTaskPlanner,
        clock: FakeClock,
        make_snapshot: SnapshotFactory,
        make_unit: UnitFactory,
        make_resource: ResourceFactory,
    ) -> None:
        bread = make_resource(6, 0, ResourceType.BREAD)
        first = only_move(
            planner, make_snapshot(units=(make_unit("w1", 2, 0),), resources=(bread,))
        )
        clock.now += 5
        second = only_move(
            planner,
            make_snapshot(turn=2, units=(make_unit("w1", 3, 0),), resources=(bread,)),
        )
        assert second.assignment == first.assignment
        assert second.path == (Position(4, 0),)

    def test_collection_dropped_when_resource_gone(
        self,
        planner: UnitTaskPlanner,
        make_snapshot: SnapshotFactory,
        make_unit: UnitFactory,
        make_resource: ResourceFactory,
    ) -> None:
        bread = make_resource(6, 0, ResourceType.BREAD)
        only_move(
            planner, make_snapshot(units=(make_unit("w1", 2, 0),), resources=(bread,))
        )
        move = only_move(planner, make_snapshot(turn=2, units=(make_unit("w1", 3, 0),)))
        assert move.assignment.type is TaskType.PATROL

    def test_combat_follows_target(
        self,
        planner: UnitTaskPlanner,
        make_snapshot: SnapshotFactory,
        make_unit: UnitFactory,
    ) -> None:
        soldier = make_unit("s1", 0, 8, UnitType.SOLDIER)
        before = make_unit("e1", 0, 12, UnitType.WORKER)
        after = make_unit("e1", 0, 14, UnitType.WORKER)
        only_move(planner, make_snapshot(units=(soldier,), enemies=(before,)))
        move = only_move(
            planner, make_snapshot(turn=2, units=(soldier,), enemies=(after,))
        )
        assert move.assignment.type is TaskType.COMBAT
        assert move.assignment.target == Position(0, 14)
        assert planner.assignments["s1"].target == Position(0, 14)

    def test_stale_assignments_evicted(
        self,
        planner: UnitTaskPlanner,
        clock: FakeClock,
        make_snapshot: SnapshotFactory,
        make_unit: UnitFactory,
        make_resource: ResourceFactory,
    ) -> None:
        bread = make_resource(6, 0, ResourceType.BREAD)
        only_move(
            planner, make_snapshot(units=(make_unit("w1", 2, 0),), resources=(bread,))
        )
        clock.now += 29
        assert planner.evict_stale() == 0
        clock.now += 2
        assert planner.evict_stale() == 1
        assert planner.assignments == {}

    def test_exploration_held_until_evicted(
        self,
        planner: UnitTaskPlanner,
        clock: FakeClock,
        make_snapshot: SnapshotFactory,
        make_unit: UnitFactory,
    ) -> None:
        def scout_at(turn: int, q: int) -> WorldSnapshot:
            scout = make_unit("c1", q, 1, UnitType.SCOUT)
            return make_snapshot(turn=turn, units=(scout,))

        first = only_move(planner, scout_at(1, 1))
        clock.now += 10
        second = only_move(planner, scout_at(2, 2))
        assert second.assignment.timestamp == first.assignment.timestamp
        clock.now += 25
        third = only_move(planner, scout_at(3, 3))
        assert third.assignment.timestamp == clock.now

    def test_dead_units_forgotten(
        self,
        planner: UnitTaskPlanner,
        make_snapshot: SnapshotFactory,
        make_unit: UnitFactory,
    ) -> None:
        both = make_snapshot(units=(make_unit("w1", 2, 0), make_unit("w2", 0, 2)))
        survivor = make_snapshot(turn=2, units=(make_unit("w2", 0, 2),))
        planner.plan_unit_actions(*plan_turn(both))
        planner.plan_unit_actions(*plan_turn(survivor))
        assert set(planner.assignments) == {"w2"}


class TestEndGame:
    """Tests for recalling units before the game ends."""

    def test_far_worker_recalled_late(
        self,
        planner: UnitTaskPlanner,
        make_snapshot: SnapshotFactory,
        make_unit: UnitFactory,
        make_resource: ResourceFactory,
    ) -> None:
        snap = make_snapshot(
            turn=415,
            units=(make_unit("w1", 10, 0),),
            resources=(make_resource(11, 0, ResourceType.BREAD),),
        )
        move = only_move(planner, snap)
        # 5 turns left at speed 3: reach is 15 // 2 - 2 = 5 hexes
        assert move.assignment.type is TaskType.RETURN_HOME
        assert move.path == (Position(9, 0),)

    def test_no_recall_while_there_is_time(
        self,
        planner: UnitTaskPlanner,
        make_snapshot: SnapshotFactory,
        make_unit: UnitFactory,
        make_resource: ResourceFactory,
    ) -> None:
        snap = make_snapshot(
            turn=400,
            units=(make_unit("w1", 10, 0),),
            resources=(make_resource(11, 0, ResourceType.BREAD),),
        )
        move = only_move(planner, snap)
        assert move.assignment.type is TaskType.RESOURCE_COLLECTION

    @pytest.mark.parametrize(
        ("unit_type", "turn", "expected"),
        [
            (UnitType.WORKER, 379, False),
            (UnitType.WORKER, 415, True),
            (UnitType.SCOUT, 415, False),
            (UnitType.SCOUT, 419, True),
            (UnitType.SOLDIER, 415, True),
            (UnitType.SOLDIER, 414, False),
        ],
    )
    def test_reach_follows_unit_speed(
        self,
        make_snapshot: SnapshotFactory,
        make_unit: UnitFactory,
        unit_type: UnitType,
        turn: int,
        expected: bool,
    ) -> None:
        unit = make_unit("u1", 10, 0, unit_type)
        analysis, _ = plan_turn(make_snapshot(turn=turn, units=(unit,)))
        assert UnitTaskPlanner.must_head_home(unit, analysis) is expected

    def test_recall_overrides_sticky_collection(
        self,
        planner: UnitTaskPlanner,
        make_snapshot: SnapshotFactory,
        make_unit: UnitFactory,
        make_resource: ResourceFactory,
    ) -> None:
        bread = make_resource(11, 0, ResourceType.BREAD)
        worker = make_unit("w1", 10, 0)
        first = only_move(
            planner, make_snapshot(turn=370, units=(worker,), resources=(bread,))
        )
        assert first.assignment.type is TaskType.RESOURCE_COLLECTION
        later = only_move(
            planner, make_snapshot(turn=416, units=(worker,), resources=(bread,))
        )
        assert later.assignment.type is TaskType.RETURN_HOME


class TestPlannerEdges:
    """Tests for degenerate turns."""

    def test_no_anthill_no_fallback(
        self,
        planner: UnitTaskPlanner,
        make_snapshot: SnapshotFactory,
        make_unit: UnitFactory,
    ) -> None:
        snap = make_snapshot(home=(), units=(make_unit("w1", 2, 0),))
        assert planner.plan_unit_actions(*plan_turn(snap)) == []

    def test_patrol_is_seeded(
        self,
        clock: FakeClock,
        make_snapshot: SnapshotFactory,
        make_unit: UnitFactory,
    ) -> None:
        snap = make_snapshot(units=(make_unit("w1", 2, 0),))
        a = UnitTaskPlanner(seed=11, clock=clock).plan_unit_actions(*plan_turn(snap))
        b = UnitTaskPlanner(seed=11, clock=clock).plan_unit_actions(*plan_turn(snap))
        assert a[0].assignment.target == b[0].assignment.target

    def test_move_payload(
        self,
        planner: UnitTaskPlanner,
        make_snapshot: SnapshotFactory,
        make_unit: UnitFactory,
        make_resource: ResourceFactory,
    ) -> None:
        snap = make_snapshot(
            units=(make_unit("w1", 2, 0),),
            resources=(make_resource(5, 0, ResourceType.BREAD),),
        )
        move = only_move(planner, snap)
        assert move.to_payload() == {"ant": "w1", "path": [{"q": 3, "r": 0}]}


class TestMovement:
    """Tests for the single-step mover."""

    def test_candidates_all_close_in(self) -> None:
        origin, target = Position(0, 0), Position(3, 3)
        for cell in candidate_steps(origin, target):
            assert hexmath.distance(cell, target) < hexmath.distance(origin, target)

    def test_no_step_on_target(self) -> None:
        assert plan_step(Position(2, 2), Position(2, 2)) is None

    def test_avoids_threatened_cell(self) -> None:
        origin, target = Position(0, 0), Position(3, 3)
        step = plan_step(origin, target, threats=[Position(3, -1)], safety_radius=2)
        assert step == Position(0, 1)

    def test_falls_back_to_greedy_step(self) -> None:
        step = plan_step(
            Position(0, 0), Position(6, 0), threats=[Position(1, 0)], safety_radius=3
        )
        assert step == Position(1, 0)


class TestHotspots:
    """Tests for resource clustering."""

    def test_cluster_and_centroid(self, make_resource: ResourceFactory) -> None:
        resources = [
            make_resource(0, 0, ResourceType.NECTAR),
            make_resource(2, 0, ResourceType.NECTAR),
            make_resource(20, 0, ResourceType.APPLE),
            make_resource(21, 0, ResourceType.APPLE),
            make_resource(-20, 5, ResourceType.BREAD),
        ]
        hotspots = find_hotspots(resources)
        assert len(hotspots) == 2
        assert hotspots[0].center == Position(1, 0)
        assert hotspots[0].value == 120
        assert hotspots[1].value == 20

    def test_singletons_ignored(self, make_resource: ResourceFactory) -> None:
        assert find_hotspots([make_resource(0, 0), make_resource(10, 10)]) == []
