"""Enemy composition — classify the visible enemy army and pick counters.

The classification is a coarse rule table over role ratios; its output
feeds tactical adaptations that tighten collection and patrol ranges
when the enemy looks dangerous.
"""

from __future__ import annotations

import logging

from formicary.analysis.report import Analysis
from formicary.grid import hexmath
from formicary.strategy.report import (
    EnemyComposition,
    ProductionRatios,
    TacticalAdaptations,
)
from formicary.world.entities import UnitType

log = logging.getLogger(__name__)

_NEAR_BASE_RANGE = 15

# (upper bound, tier); the last tier catches everything above.
_THREAT_TIERS: tuple[tuple[float, str], ...] = (
    (5.0, "minimal"),
    (15.0, "low"),
    (30.0, "moderate"),
    (50.0, "high"),
)

_RESPONSES: dict[str, str] = {
    "military_rush": "defensive_preparation",
    "scout_harassment": "base_defense_enhancement",
    "balanced_expansion": "counter_expansion",
    "late_game_military": "defensive_positioning",
    "late_game_economic": "military_pressure",
}


def analyze_enemy_composition(analysis: Analysis) -> EnemyComposition:
    """Count and classify the visible enemy army.

    Args:
        analysis: Current turn's analysis.

    Returns:
        The composition with strategy type, threat tier and a suggested
        response.  An empty army yields the ``unknown``/``minimal`` default.
    """
    enemies = analysis.units.enemies
    if not enemies:
        return EnemyComposition()

    workers = sum(1 for e in enemies if e.type is UnitType.WORKER)
    soldiers = sum(1 for e in enemies if e.type is UnitType.SOLDIER)
    scouts = sum(1 for e in enemies if e.type is UnitType.SCOUT)
    total = workers + soldiers + scouts
    ratios = (
        (workers / total, soldiers / total, scouts / total)
        if total
        else (0.0, 0.0, 0.0)
    )

    strategy_type = classify_strategy(ratios, workers, soldiers, total)
    near_base = any(
        hexmath.distance(analysis.units.anthill, e.position) <= _NEAR_BASE_RANGE
        for e in enemies
    )
    threat = assess_threat(workers, soldiers, scouts, ratios, near_base)
    composition = EnemyComposition(
        total=total,
        workers=workers,
        soldiers=soldiers,
        scouts=scouts,
        worker_ratio=ratios[0],
        soldier_ratio=ratios[1],
        scout_ratio=ratios[2],
        strategy_type=strategy_type,
        threat=threat,
        recommended_response=recommended_response(strategy_type, threat),
    )
    log.info(
        "Enemy composition: %dW/%dS/%dSc (%s strategy, %s threat)",
        workers,
        soldiers,
        scouts,
        strategy_type,
        threat,
    )
    return composition


def classify_strategy(
    ratios: tuple[float, float, float], workers: int, soldiers: int, total: int
) -> str:
    """Name the plan an enemy army of this shape is most likely following."""
    worker_ratio, soldier_ratio, scout_ratio = ratios
    if worker_ratio > 0.6:
        return "economic_boom"
    if soldier_ratio > 0.5:
        return "military_rush"
    if scout_ratio > 0.4:
        return "scout_harassment"
    if total < 5:
        return "early_development"
    if total <= 15:
        if soldiers >= 2 and workers >= 3:
            return "balanced_expansion"
        return "unknown"
    if soldier_ratio > 0.3:
        return "late_game_military"
    return "late_game_economic"


def assess_threat(
    workers: int,
    soldiers: int,
    scouts: int,
    ratios: tuple[float, float, float],
    near_base: bool,
) -> str:
    """Bucket a weighted enemy headcount into a threat tier."""
    score = soldiers * 3.0 + scouts * 1.5 + workers * 0.5
    if ratios[1] > 0.4:
        score *= 1.5
    if ratios[2] > 0.4:
        score *= 1.3
    if near_base:
        score *= 1.5
    for bound, tier in _THREAT_TIERS:
        if score < bound:
            return tier
    return "critical"


def recommended_response(strategy_type: str, threat: str) -> str:
    if strategy_type == "economic_boom":
        return "aggressive_harassment" if threat == "minimal" else "military_buildup"
    return _RESPONSES.get(strategy_type, "adaptive_response")


def determine_tactical_adaptations(
    composition: EnemyComposition,
) -> TacticalAdaptations:
    """Translate an enemy read into concrete posture adjustments.

    Args:
        composition: Output of ``analyze_enemy_composition``.

    Returns:
        Production mix, defensive flags and collection restrictions.
    """
    increase_base_defense = False
    keep_soldiers_close = False
    max_patrol_distance: int | None = None
    protect_workers = False
    max_worker_distance: int | None = None
    priorities: list[str] = []

    match composition.strategy_type:
        case "economic_boom":
            production = ProductionRatios(
                prioritize=(UnitType.SCOUT, UnitType.SOLDIER),
                reason="Harass enemy economy and prepare military response",
                workers=0.4,
                soldiers=0.4,
                scouts=0.2,
            )
            priorities += ["aggressive_scouting", "military_buildup"]
        case "military_rush":
            production = ProductionRatios(
                prioritize=(UnitType.SOLDIER,),
                reason="Counter enemy military buildup",
                workers=0.3,
                soldiers=0.6,
                scouts=0.1,
            )
            increase_base_defense = True
            keep_soldiers_close = True
            max_patrol_distance = 15
            priorities += ["immediate_defense", "military_focus"]
        case "scout_harassment":
            production = ProductionRatios(
                prioritize=(UnitType.SOLDIER,),
                reason="Counter scout raids with defensive soldiers",
                workers=0.4,
                soldiers=0.5,
                scouts=0.1,
            )
            increase_base_defense = True
            protect_workers = True
            max_worker_distance = 10
            priorities += ["worker_protection", "base_defense"]
        case "balanced_expansion":
            production = ProductionRatios(
                prioritize=(UnitType.WORKER, UnitType.SOLDIER),
                reason="Match enemy expansion pace",
                workers=0.5,
                soldiers=0.3,
                scouts=0.2,
            )
            priorities += ["competitive_expansion", "maintain_military"]
        case _:
            production = ProductionRatios(
                prioritize=(UnitType.WORKER,),
                reason="Standard economic development",
                workers=0.5,
                soldiers=0.3,
                scouts=0.2,
            )
            priorities.append("economic_focus")

    restrict_collection = False
    max_collection_distance: int | None = None
    if composition.threat in ("high", "critical"):
        production = ProductionRatios(
            prioritize=production.prioritize,
            reason=production.reason,
            workers=production.workers,
            soldiers=max(0.5, production.soldiers),
            scouts=production.scouts,
        )
        restrict_collection = True
        max_collection_distance = 12

    scout_heavy = composition.scout_ratio > 0.3

    adaptations = TacticalAdaptations(
        production=production,
        increase_base_defense=increase_base_defense,
        keep_soldiers_close=keep_soldiers_close,
        max_patrol_distance=max_patrol_distance,
        protect_workers=protect_workers,
        max_worker_distance=max_worker_distance,
        anti_scout_measures=scout_heavy,
        keep_workers_close=scout_heavy,
        restrict_collection=restrict_collection,
        max_collection_distance=max_collection_distance,
        priorities=tuple(priorities),
    )
    log.debug(
        "Tactical adaptations for %s: %s",
        composition.strategy_type,
        ", ".join(priorities),
    )
    return adaptations
