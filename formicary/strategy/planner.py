"""StrategyPlanner — choose the colony's posture for the turn.

The planner layers the recovery override over the analyzer's phase
guess, then derives a name, a priority list, a resource plan and a
combat plan from the effective phase.  It owns the ``RecoveryState``;
nothing else mutates it.
"""

from __future__ import annotations

import logging
import math

from formicary.analysis.report import (
    Analysis,
    Phase,
    ResourceDistance,
    ResourcePriority,
)
from formicary.grid import hexmath
from formicary.strategy.enemy import (
    analyze_enemy_composition,
    determine_tactical_adaptations,
)
from formicary.strategy.recovery import RecoveryState
from formicary.strategy.report import (
    Adaptation,
    CombatPosture,
    CombatReadiness,
    CombatStrategy,
    CombatTarget,
    Distribution,
    Formation,
    Logistics,
    ProtectedRoute,
    Reasoning,
    ResourceStrategy,
    ResourceTarget,
    ResourceTypePriority,
    Strategy,
    TacticalAdaptations,
)
from formicary.world.entities import Resource, ResourceType, Unit, UnitType
from formicary.world.stats import collection_efficiency, unit_stats

log = logging.getLogger(__name__)

_PHASE_PRIORITIES: dict[Phase, tuple[str, ...]] = {
    Phase.EARLY: ("economic_expansion", "aggressive_scouting", "resource_mapping"),
    Phase.MID: ("find_enemy_anthills", "aggressive_expansion", "territory_control"),
    Phase.LATE: (
        "enemy_base_destruction",
        "aggressive_raiding",
        "optimization_dominance",
        "high_value_resources",
    ),
    Phase.RECOVERY: (
        "emergency_economy",
        "safe_resource_collection",
        "defensive_reconstruction",
        "unit_rebuild",
    ),
}

_NECTAR_PRIORITY_RANGE = 6
_BREAD_PRIORITY_RANGE = 4
_CONVOY_DISTANCE = 6
_CONVOY_THREAT = 0.3
_GUARD_RANGE = 4

_RECOVERY_MAX_COLLECTION = 15
_RECOVERY_MAX_PATROL = 10
_DEFAULT_RESTRICTION = 25

_TARGET_BASE_PRIORITY: dict[UnitType, int] = {
    UnitType.SOLDIER: 3,
    UnitType.SCOUT: 2,
    UnitType.WORKER: 1,
}


def force_strength(units: tuple[Unit, ...]) -> float:
    """Sum attack ratings; unknown roles count with the default attack."""
    return float(sum(unit_stats(u.type).attack for u in units))


def _mean_distance(measured: list[ResourceDistance]) -> float:
    return sum(rd.distance for rd in measured) / len(measured)


class StrategyPlanner:
    """Pick a strategy each turn, with recovery hysteresis."""

    def __init__(self, recovery: RecoveryState | None = None) -> None:
        self.recovery = recovery if recovery is not None else RecoveryState()

    def determine_strategy(
        self, analysis: Analysis, turn: int | None = None
    ) -> Strategy:
        """Choose this turn's strategy.

        Args:
            analysis: Current turn's analysis.
            turn: Turn number override; defaults to ``analysis.turn``.

        Returns:
            A frozen Strategy.
        """
        turn = analysis.turn if turn is None else turn
        in_recovery = self.recovery.update(
            turn, analysis.units.counts, enemies_present=bool(analysis.units.enemies)
        )
        phase = Phase.RECOVERY if in_recovery else analysis.phase

        enemy = analyze_enemy_composition(analysis)
        tactical = determine_tactical_adaptations(enemy)

        reasoning = [
            Reasoning(
                "phase",
                phase.value,
                f"Turn {turn}, determining {phase.value} phase strategy",
            )
        ]
        if in_recovery:
            reasoning.append(
                Reasoning(
                    "recovery",
                    "emergency_rebuild",
                    f"Recovery mode since turn {self.recovery.start_turn}, "
                    "focusing on rebuilding army",
                )
            )

        strategy = Strategy(
            name=self.strategy_name(phase, analysis),
            phase=phase,
            base_phase=analysis.phase,
            priorities=self.phase_priorities(phase, analysis),
            resources=self.resource_strategy(analysis, phase, tactical),
            combat=self.combat_strategy(analysis, phase, tactical),
            adaptations=self.adaptations(analysis),
            enemy=enemy,
            tactical=tactical,
            reasoning=tuple(reasoning),
            recovery_mode=in_recovery,
            recovery_start_turn=self.recovery.start_turn,
            enemy_bases=analysis.units.enemy_bases,
        )
        log.debug("Turn %d strategy: %s (%s)", turn, strategy.name, phase.value)
        return strategy

    # ------------------------------------------------------------------
    # Name and priorities
    # ------------------------------------------------------------------

    @staticmethod
    def strategy_name(phase: Phase, analysis: Analysis) -> str:
        if phase is Phase.RECOVERY:
            return "emergency_recovery"
        suffix = phase.value
        if analysis.units.enemies:
            return f"aggressive_combat_{suffix}"
        if phase in (Phase.MID, Phase.LATE):
            return f"aggressive_exploration_{suffix}"
        if len(analysis.threats.immediate) > 2:
            return f"defensive_{suffix}"
        if len(analysis.resources.high_value) > 5:
            return f"economic_{suffix}"
        return f"balanced_aggressive_{suffix}"

    @staticmethod
    def phase_priorities(phase: Phase, analysis: Analysis) -> tuple[str, ...]:
        priorities: list[str] = []
        if analysis.units.enemy_bases:
            priorities.append("raid_enemy_bases")
        if analysis.threats.immediate:
            priorities.append("immediate_defense")
        priorities.extend(_PHASE_PRIORITIES[phase])
        return tuple(priorities)

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    def resource_strategy(
        self,
        analysis: Analysis,
        phase: Phase,
        tactical: TacticalAdaptations | None = None,
    ) -> ResourceStrategy:
        """Build the collection plan, tightened in recovery or under threat."""
        recovery = phase is Phase.RECOVERY
        max_distance: int | None = _RECOVERY_MAX_COLLECTION if recovery else None
        safety = "critical" if recovery else "normal"
        collectors: tuple[UnitType, ...] = (UnitType.WORKER,) if recovery else ()
        require_escort = False
        max_worker_distance: int | None = None

        if tactical is not None:
            if tactical.restrict_collection:
                max_distance = min(
                    max_distance if max_distance is not None else _DEFAULT_RESTRICTION,
                    tactical.max_collection_distance or 12,
                )
                if safety != "critical":
                    safety = "high"
                log.info(
                    "Restricting resource collection to %d hexes due to enemy threat",
                    max_distance,
                )
            if tactical.protect_workers:
                require_escort = True
                max_worker_distance = tactical.max_worker_distance or 10
                log.info(
                    "Worker protection enabled, max distance %d", max_worker_distance
                )

        return ResourceStrategy(
            priorities=self.resource_priorities(analysis),
            assignments=self.assign_resource_targets(analysis),
            logistics=self.plan_logistics(analysis),
            recovery_mode=recovery,
            max_collection_distance=max_distance,
            allowed_collectors=collectors,
            safety_priority=safety,
            require_escort=require_escort,
            max_worker_distance=max_worker_distance,
        )

    @staticmethod
    def resource_priorities(analysis: Analysis) -> tuple[ResourceTypePriority, ...]:
        resources = analysis.resources
        near_nectar = [
            rd
            for rd in resources.distances_of(ResourceType.NECTAR)
            if rd.distance <= _NECTAR_PRIORITY_RANGE
        ]
        near_bread = [
            rd
            for rd in resources.distances_of(ResourceType.BREAD)
            if rd.distance <= _BREAD_PRIORITY_RANGE
        ]
        apples = resources.of_type(ResourceType.APPLE)

        priorities: list[ResourceTypePriority] = []
        if near_nectar:
            priorities.append(
                ResourceTypePriority(
                    type=ResourceType.NECTAR,
                    priority=ResourcePriority.HIGH,
                    reason="high_calories_close",
                    count=len(near_nectar),
                    avg_distance=_mean_distance(near_nectar),
                )
            )
        if near_bread:
            priorities.append(
                ResourceTypePriority(
                    type=ResourceType.BREAD,
                    priority=ResourcePriority.MEDIUM,
                    reason="medium_calories_close",
                    count=len(near_bread),
                    avg_distance=_mean_distance(near_bread),
                )
            )
        if apples:
            priorities.append(
                ResourceTypePriority(
                    type=ResourceType.APPLE,
                    priority=ResourcePriority.LOW,
                    reason="low_calories_available",
                    count=len(apples),
                )
            )
        priorities.sort(key=lambda p: p.priority.value, reverse=True)
        return tuple(priorities)

    @staticmethod
    def suitability(unit: Unit, resource: Resource) -> int:
        """Role/resource affinity used to pick collectors."""
        score = 0
        if resource.type is ResourceType.NECTAR and unit.type is UnitType.SCOUT:
            score += 3
        elif resource.type is ResourceType.BREAD and unit.type is UnitType.WORKER:
            score += 2
        elif resource.type is ResourceType.APPLE:
            score += 1
        if unit.type is UnitType.WORKER:
            score += 1
        return score

    def assign_resource_targets(self, analysis: Analysis) -> tuple[ResourceTarget, ...]:
        """Greedily pair each high-value resource with its best free unit."""
        available = list(analysis.units.own)
        targets: list[ResourceTarget] = []
        for hv in analysis.resources.high_value:
            if not available:
                break
            best = min(
                available,
                key=lambda u: (
                    -self.suitability(u, hv.resource),
                    hexmath.distance(u.position, hv.resource.position),
                    -collection_efficiency(hv.resource.type, u.type),
                ),
            )
            targets.append(ResourceTarget(best, hv.resource, hv.distance, hv.priority))
            available.remove(best)
        return tuple(targets)

    @staticmethod
    def plan_logistics(analysis: Analysis) -> Logistics:
        high_value = analysis.resources.high_value
        convoy = (
            any(hv.distance > _CONVOY_DISTANCE for hv in high_value)
            and analysis.threats.overall_level > _CONVOY_THREAT
        )

        soldiers = [u for u in analysis.units.own if u.type is UnitType.SOLDIER]
        routes: list[ProtectedRoute] = []
        for hv in high_value:
            guards = tuple(
                s
                for s in soldiers
                if hexmath.distance(s.position, hv.resource.position) <= _GUARD_RANGE
            )
            if guards:
                routes.append(ProtectedRoute(resource=hv.resource, guards=guards))

        total = analysis.units.counts.total
        distribution = Distribution(
            on_route=math.ceil(total * 0.2),
            collecting=math.ceil(total * 0.6),
            returning=math.ceil(total * 0.2),
        )
        return Logistics(
            convoy_formation=convoy,
            protected_routes=tuple(routes),
            distribution=distribution,
        )

    # ------------------------------------------------------------------
    # Combat
    # ------------------------------------------------------------------

    def combat_strategy(
        self,
        analysis: Analysis,
        phase: Phase,
        tactical: TacticalAdaptations | None = None,
    ) -> CombatStrategy:
        """Build the engagement plan; recovery and enemy reads override the stance."""
        readiness = self.combat_readiness(analysis)
        posture = self.select_posture(readiness, analysis, phase)

        recovery = phase is Phase.RECOVERY
        stance = posture.stance
        engagement = "seek"
        max_patrol: int | None = None
        prioritize_defense = False
        prioritize_targets: tuple[UnitType, ...] = ()
        intercept_scouts = False
        production = None

        if recovery:
            stance = "defensive"
            engagement = "avoid_unless_necessary"
            max_patrol = _RECOVERY_MAX_PATROL
            prioritize_defense = True

        if tactical is not None:
            if tactical.increase_base_defense:
                stance = "defensive"
                prioritize_defense = True
                log.info("Increased base defense due to enemy threat")
            if tactical.keep_soldiers_close:
                max_patrol = min(
                    max_patrol if max_patrol is not None else _DEFAULT_RESTRICTION,
                    tactical.max_patrol_distance or 15,
                )
                log.info("Keeping soldiers within %d hexes of the anthill", max_patrol)
            if tactical.anti_scout_measures:
                prioritize_targets = (UnitType.SCOUT,)
                intercept_scouts = True
                log.info("Anti-scout measures activated")
            production = tactical.production

        return CombatStrategy(
            readiness=readiness,
            posture=posture,
            formations=self.recommend_formations(analysis),
            targets=self.identify_targets(analysis),
            recovery_mode=recovery,
            stance=stance,
            engagement=engagement,
            max_patrol_distance=max_patrol,
            prioritize_defense=prioritize_defense,
            prioritize_targets=prioritize_targets,
            intercept_scouts=intercept_scouts,
            production_ratios=production,
        )

    @staticmethod
    def combat_readiness(analysis: Analysis) -> CombatReadiness:
        own = force_strength(analysis.units.own)
        enemy = force_strength(analysis.units.enemies)
        ratio = own * 1.5 / enemy if enemy > 0 else 2.0
        return CombatReadiness(
            own_force=own,
            enemy_force=enemy,
            ratio=ratio,
            recommendation="attack" if ratio > 0.5 else "guerrilla_attack",
        )

    @staticmethod
    def select_posture(
        readiness: CombatReadiness, analysis: Analysis, phase: Phase
    ) -> CombatPosture:
        tactics = ["hunt_enemies", "find_enemy_bases", "raid_enemy_territory"]
        priorities = [
            "destroy_enemy_anthills",
            "eliminate_all_threats",
            "total_domination",
        ]

        if analysis.threats.immediate:
            tactics.insert(0, "immediate_offense")
            priorities.insert(0, "destroy_immediate_threats")

        if readiness.ratio > 1.0:
            tactics.append("total_war")
            priorities.append("annihilate_enemies")
        else:
            tactics.append("guerrilla_warfare")
            priorities.append("harass_and_retreat")

        if phase is Phase.LATE:
            tactics.append("scorched_earth")
            priorities.append("deny_all_resources")

        return CombatPosture(
            stance="aggressive", tactics=tuple(tactics), priorities=tuple(priorities)
        )

    @staticmethod
    def recommend_formations(analysis: Analysis) -> tuple[Formation, ...]:
        soldiers = [u for u in analysis.units.own if u.type is UnitType.SOLDIER]
        scouts = [u for u in analysis.units.own if u.type is UnitType.SCOUT]
        formations: list[Formation] = []
        if len(soldiers) >= 3 and len(scouts) >= 2:
            members = tuple(soldiers[:3] + scouts[:2])
            formations.append(Formation("trileaf", members, "attack"))
        if analysis.threats.immediate:
            formations.append(
                Formation("concentric_defense", analysis.units.own, "defense")
            )
        return tuple(formations)

    @staticmethod
    def identify_targets(analysis: Analysis) -> tuple[CombatTarget, ...]:
        anthill = analysis.units.anthill
        targets: list[CombatTarget] = []
        for enemy in analysis.units.enemies:
            priority = _TARGET_BASE_PRIORITY.get(enemy.type, 0)
            reasons: list[str] = []
            if enemy.type is UnitType.SOLDIER:
                reasons.append("high_threat_unit")
            dist = hexmath.distance(anthill, enemy.position)
            if dist <= 5:
                priority += 2
                reasons.append("close_to_anthill")
            elif dist <= 10:
                priority += 1
            targets.append(
                CombatTarget(unit=enemy, priority=priority, reasons=tuple(reasons))
            )
        targets.sort(key=lambda t: t.priority, reverse=True)
        return tuple(targets)

    # ------------------------------------------------------------------
    # Adaptations
    # ------------------------------------------------------------------

    @staticmethod
    def adaptations(analysis: Analysis) -> tuple[Adaptation, ...]:
        """Flag a worker or soldier shortage relative to the threat level."""
        counts = analysis.units.counts
        if counts.total == 0:
            return ()

        threat = analysis.threats.overall_level
        worker_ratio = counts.workers / counts.total
        soldier_ratio = counts.soldiers / counts.total

        found: list[Adaptation] = []
        if worker_ratio < 0.4 and threat < 0.5:
            found.append(
                Adaptation(
                    type="economic_focus",
                    action="prioritize_resource_gathering",
                    reason="low_worker_ratio",
                    details=(
                        f"Worker ratio: {worker_ratio:.1%}, Threat level: {threat:.1%}"
                    ),
                )
            )
        if soldier_ratio < 0.25 and threat > 0.5:
            found.append(
                Adaptation(
                    type="military_focus",
                    action="prioritize_defense_and_attack",
                    reason="low_soldier_ratio_under_threat",
                    details=(
                        f"Soldier ratio: {soldier_ratio:.1%}, "
                        f"Threat level: {threat:.1%}"
                    ),
                )
            )
        return tuple(found)
