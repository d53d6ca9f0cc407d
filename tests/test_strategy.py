"""Tests for formicary.strategy — recovery hysteresis, naming, plans."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from formicary.analysis.analyzer import GameStateAnalyzer
from formicary.analysis.report import Analysis, Phase, UnitCounts
from formicary.grid.position import Position
from formicary.strategy.enemy import (
    analyze_enemy_composition,
    assess_threat,
    classify_strategy,
    determine_tactical_adaptations,
)
from formicary.strategy.planner import StrategyPlanner
from formicary.strategy.recovery import RecoveryState
from formicary.strategy.report import EnemyComposition, Strategy
from formicary.world.entities import Resource, ResourceType, Unit, UnitType
from formicary.world.snapshot import WorldSnapshot

SnapshotFactory = Callable[..., WorldSnapshot]
UnitFactory = Callable[..., Unit]
ResourceFactory = Callable[..., Resource]


def counts(total: int, soldiers: int = 1) -> UnitCounts:
    workers = max(0, total - soldiers)
    return UnitCounts(workers=workers, soldiers=soldiers, scouts=0, total=total)


def analyse(snap: WorldSnapshot) -> Analysis:
    return GameStateAnalyzer().analyze(snap)


def plan(snap: WorldSnapshot, planner: StrategyPlanner | None = None) -> Strategy:
    planner = planner if planner is not None else StrategyPlanner()
    return planner.determine_strategy(analyse(snap))


class TestRecoveryEntry:
    """Tests for entering the recovery override."""

    def test_sharp_loss_triggers(self) -> None:
        state = RecoveryState()
        results = [
            state.update(turn, counts(total), enemies_present=False)
            for turn, total in zip(range(10, 14), [10, 10, 9, 6])
        ]
        assert results == [False, False, False, True]
        assert state.start_turn == 13

    def test_small_loss_does_not_trigger(self) -> None:
        state = RecoveryState()
        for turn, total in zip(range(10, 14), [10, 10, 9, 8]):
            state.update(turn, counts(total), enemies_present=False)
        assert not state.triggered

    def test_loss_ignored_on_small_army(self) -> None:
        state = RecoveryState()
        for turn, total in zip(range(10, 13), [6, 5, 3]):
            state.update(turn, counts(total), enemies_present=False)
        assert not state.triggered

    def test_too_early_never_triggers(self) -> None:
        state = RecoveryState()
        for turn in range(1, 10):
            state.update(turn, counts(1, soldiers=0), enemies_present=True)
        assert not state.triggered

    def test_needs_three_records(self) -> None:
        state = RecoveryState()
        assert not state.update(20, counts(1), enemies_present=False)
        assert not state.update(21, counts(1), enemies_present=False)
        assert state.update(22, counts(1), enemies_present=False)

    def test_undefended_under_contact(self) -> None:
        state = RecoveryState()
        for turn in (14, 15):
            state.update(turn, counts(6, soldiers=0), enemies_present=True)
        assert not state.triggered
        assert state.update(16, counts(6, soldiers=0), enemies_present=True)

    def test_history_window_bounded(self) -> None:
        state = RecoveryState()
        for turn in range(30):
            state.record(turn, counts(9))
        assert len(state.history) == 10
        assert state.history[0].turn == 20

    def test_same_turn_recorded_once(self) -> None:
        state = RecoveryState()
        state.record(20, counts(10))
        for _ in range(3):
            state.record(21, counts(10))
        state.record(21, counts(8))
        assert [r.turn for r in state.history] == [20, 21]
        assert state.history[-1].total == 8

    def test_repolled_turn_does_not_shrink_the_window(self) -> None:
        state = RecoveryState()
        for turn, total in ((10, 10), (11, 8), (11, 8), (11, 8)):
            state.update(turn, counts(total), enemies_present=False)
        # loss is measured from turn 10, not from a repeat of turn 11
        assert state.update(12, counts(6), enemies_present=False)


class TestRecoveryExit:
    """Tests for leaving the recovery override."""

    @pytest.fixture
    def triggered(self) -> RecoveryState:
        """A state that entered recovery on turn 20."""
        return RecoveryState(triggered=True, start_turn=20)

    def test_dwell_time_enforced(self, triggered: RecoveryState) -> None:
        rebuilt = counts(12, soldiers=4)
        for turn in range(21, 25):
            assert triggered.update(turn, rebuilt, enemies_present=False)
        assert not triggered.update(25, rebuilt, enemies_present=False)
        assert triggered.start_turn is None

    def test_needs_rebuilt_army(self, triggered: RecoveryState) -> None:
        assert triggered.update(30, counts(12, soldiers=1), enemies_present=False)
        assert triggered.update(31, counts(7, soldiers=3), enemies_present=False)
        assert not triggered.update(32, counts(8, soldiers=2), enemies_present=False)

    def test_no_reentry_while_active(self, triggered: RecoveryState) -> None:
        assert not triggered.should_enter(40, counts(1), enemies_present=True)


class TestStrategyName:
    """Tests for strategy naming and priorities."""

    def test_balanced_early(
        self, make_snapshot: SnapshotFactory, make_unit: UnitFactory
    ) -> None:
        strategy = plan(make_snapshot(turn=1, units=(make_unit("w1", 1, 0),)))
        assert strategy.name == "balanced_aggressive_early"
        assert strategy.priorities == (
            "economic_expansion",
            "aggressive_scouting",
            "resource_mapping",
        )

    def test_enemies_visible(
        self, make_snapshot: SnapshotFactory, make_unit: UnitFactory
    ) -> None:
        enemy = make_unit("e1", 20, 0, UnitType.WORKER)
        snap = make_snapshot(turn=60, enemies=(enemy,))
        assert plan(snap).name == "aggressive_combat_mid"

    def test_mid_without_contact(self, make_snapshot: SnapshotFactory) -> None:
        assert plan(make_snapshot(turn=60)).name == "aggressive_exploration_mid"

    def test_raid_and_defense_priorities_first(
        self, make_snapshot: SnapshotFactory, make_unit: UnitFactory
    ) -> None:
        snap = make_snapshot(
            turn=60,
            enemies=(make_unit("e1", 2, 0, UnitType.SOLDIER),),
            enemy_bases=(Position(30, 0),),
        )
        priorities = plan(snap).priorities
        assert priorities[:2] == ("raid_enemy_bases", "immediate_defense")

    def test_recovery_overrides_phase(
        self, make_snapshot: SnapshotFactory, make_unit: UnitFactory
    ) -> None:
        planner = StrategyPlanner(RecoveryState(triggered=True, start_turn=10))
        snap = make_snapshot(turn=12, units=(make_unit("w1", 1, 0),))
        strategy = plan(snap, planner)
        assert strategy.name == "emergency_recovery"
        assert strategy.phase is Phase.RECOVERY
        assert strategy.base_phase is Phase.EARLY
        assert strategy.recovery_mode
        assert strategy.recovery_start_turn == 10
        assert strategy.priorities[0] == "emergency_economy"
        assert strategy.reasoning[-1].category == "recovery"


class TestPlans:
    """Tests for the resource and combat plans."""

    def test_recovery_restricts_collection_and_patrol(
        self, make_snapshot: SnapshotFactory, make_unit: UnitFactory
    ) -> None:
        planner = StrategyPlanner(RecoveryState(triggered=True, start_turn=10))
        snap = make_snapshot(turn=12, units=(make_unit("w1", 1, 0),))
        strategy = plan(snap, planner)
        assert strategy.resources.max_collection_distance == 15
        assert strategy.resources.allowed_collectors == (UnitType.WORKER,)
        assert not strategy.resources.may_collect(UnitType.SCOUT)
        assert strategy.resources.safety_priority == "critical"
        assert strategy.combat.stance == "defensive"
        assert strategy.combat.engagement == "avoid_unless_necessary"
        assert strategy.combat.max_patrol_distance == 10

    def test_normal_plan_unrestricted(self, make_snapshot: SnapshotFactory) -> None:
        strategy = plan(make_snapshot(turn=1))
        assert strategy.resources.max_collection_distance is None
        assert strategy.resources.may_collect(UnitType.SCOUT)
        assert strategy.combat.stance == "aggressive"

    def test_resource_priorities_ordered(
        self, make_snapshot: SnapshotFactory, make_resource: ResourceFactory
    ) -> None:
        snap = make_snapshot(
            resources=(
                make_resource(9, 0, ResourceType.APPLE),
                make_resource(3, 0, ResourceType.BREAD),
                make_resource(5, 0, ResourceType.NECTAR),
            )
        )
        priorities = plan(snap).resources.priorities
        assert [p.type for p in priorities] == [
            ResourceType.NECTAR,
            ResourceType.BREAD,
            ResourceType.APPLE,
        ]
        assert priorities[0].avg_distance == pytest.approx(5.0)

    def test_scout_preferred_for_nectar(
        self,
        make_snapshot: SnapshotFactory,
        make_unit: UnitFactory,
        make_resource: ResourceFactory,
    ) -> None:
        snap = make_snapshot(
            units=(
                make_unit("w1", 4, 0, UnitType.WORKER),
                make_unit("c1", 0, 1, UnitType.SCOUT),
            ),
            resources=(make_resource(5, 0, ResourceType.NECTAR),),
        )
        assignments = plan(snap).resources.assignments
        assert assignments[0].unit.id == "c1"

    def test_readiness_without_enemies(
        self, make_snapshot: SnapshotFactory, make_unit: UnitFactory
    ) -> None:
        analysis = analyse(make_snapshot(units=(make_unit("s", 1, 0),)))
        readiness = StrategyPlanner.combat_readiness(analysis)
        assert readiness.ratio == 2.0
        assert readiness.recommendation == "attack"

    def test_targets_ranked(
        self, make_snapshot: SnapshotFactory, make_unit: UnitFactory
    ) -> None:
        snap = make_snapshot(
            enemies=(
                make_unit("far", 30, 0, UnitType.SCOUT),
                make_unit("near", 2, 0, UnitType.WORKER),
            )
        )
        targets = plan(snap).combat.targets
        assert [t.unit.id for t in targets] == ["near", "far"]
        assert targets[0].priority == 3
        assert "close_to_anthill" in targets[0].reasons

    def test_worker_shortage_flagged(
        self, make_snapshot: SnapshotFactory, make_unit: UnitFactory
    ) -> None:
        units = (
            make_unit("s1", 1, 0, UnitType.SOLDIER),
            make_unit("s2", 2, 0, UnitType.SOLDIER),
        )
        adaptations = plan(make_snapshot(units=units)).adaptations
        assert [a.type for a in adaptations] == ["economic_focus"]


class TestEnemyComposition:
    """Tests for enemy army classification and the responses to it."""

    @pytest.mark.parametrize(
        ("workers", "soldiers", "scouts", "expected"),
        [
            (7, 2, 1, "economic_boom"),
            (1, 3, 1, "military_rush"),
            (1, 1, 3, "scout_harassment"),
            (2, 1, 1, "early_development"),
            (4, 3, 3, "balanced_expansion"),
            (9, 7, 4, "late_game_military"),
            (12, 5, 4, "late_game_economic"),
        ],
    )
    def test_classification(
        self, workers: int, soldiers: int, scouts: int, expected: str
    ) -> None:
        total = workers + soldiers + scouts
        ratios = (workers / total, soldiers / total, scouts / total)
        assert classify_strategy(ratios, workers, soldiers, total) == expected

    def test_threat_tiers(self) -> None:
        assert assess_threat(1, 0, 0, (1.0, 0.0, 0.0), near_base=False) == "minimal"
        assert assess_threat(0, 10, 0, (0.0, 1.0, 0.0), near_base=True) == "critical"

    def test_no_enemies(self, make_snapshot: SnapshotFactory) -> None:
        composition = analyze_enemy_composition(analyse(make_snapshot()))
        assert composition.strategy_type == "unknown"
        assert composition.threat == "minimal"

    def test_military_rush_keeps_soldiers_close(self) -> None:
        rush = EnemyComposition(strategy_type="military_rush")
        tactical = determine_tactical_adaptations(rush)
        assert tactical.increase_base_defense
        assert tactical.keep_soldiers_close
        assert tactical.max_patrol_distance == 15

    def test_high_threat_restricts_collection(self) -> None:
        unknown = EnemyComposition(strategy_type="unknown", threat="high")
        tactical = determine_tactical_adaptations(unknown)
        assert tactical.restrict_collection
        assert tactical.max_collection_distance == 12
        assert tactical.production.soldiers == 0.5

    def test_scout_harassment_protects_workers(
        self, make_snapshot: SnapshotFactory, make_unit: UnitFactory
    ) -> None:
        enemies = (
            make_unit("e1", 20, 0, UnitType.SCOUT),
            make_unit("e2", 21, 0, UnitType.SCOUT),
            make_unit("e3", 22, 0, UnitType.WORKER),
        )
        strategy = plan(make_snapshot(turn=5, enemies=enemies))
        assert strategy.enemy.strategy_type == "scout_harassment"
        assert strategy.resources.require_escort
        assert strategy.resources.max_worker_distance == 10
        assert strategy.combat.stance == "defensive"
        assert strategy.combat.prioritize_targets == (UnitType.SCOUT,)
        assert strategy.combat.intercept_scouts
