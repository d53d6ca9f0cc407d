"""GameStateAnalyzer — turns a WorldSnapshot into an Analysis.

Each step is a separate method so it can be exercised on its own.  The
analyzer owns the colony's ThreatMap; it is the only writer of that map
and updates it once per ``analyze`` call, before anything else runs.
"""

from __future__ import annotations

import logging
import math

from formicary.analysis.report import (
    Analysis,
    ContestedArea,
    EconomyAnalysis,
    ExpansionOpportunity,
    HighValueResource,
    Phase,
    ResourceAnalysis,
    ResourceDistance,
    ResourcePriority,
    TerritoryAnalysis,
    Threat,
    ThreatAnalysis,
    UnitAnalysis,
    UnitCounts,
    UnitProportions,
)
from formicary.grid import hexmath
from formicary.grid.position import Position
from formicary.intel.threat_map import Sighting, ThreatMap
from formicary.world.entities import Resource, ResourceType, Unit, UnitType
from formicary.world.snapshot import WorldSnapshot
from formicary.world.stats import calories

log = logging.getLogger(__name__)

# Danger weight per enemy role; anything unrecognised counts as a worker.
_THREAT_WEIGHTS: dict[UnitType, float] = {
    UnitType.SOLDIER: 3.0,
    UnitType.SCOUT: 1.0,
    UnitType.WORKER: 0.5,
}
_UNKNOWN_THREAT_WEIGHT = 0.5

_IMMEDIATE_RANGE = 5
_NEARBY_RANGE = 10
_ALLY_SUPPORT_RANGE = 3
_CONTESTED_RANGE = 5
_EXPANSION_RANGE = 8

_NECTAR_HIGH_VALUE_RANGE = 6
_BREAD_HIGH_VALUE_RANGE = 4

# Heuristic calories per turn contributed by each role.
_INCOME_WEIGHTS: dict[UnitType, float] = {
    UnitType.WORKER: 20.0,
    UnitType.SCOUT: 8.0,
    UnitType.SOLDIER: 4.0,
}

# (last turn of band, calories per turn, total calories)
_ECONOMY_TARGETS: tuple[tuple[int, int, int], ...] = (
    (20, 200, 4000),
    (50, 500, 15000),
)
_LATE_ECONOMY_TARGET = (800, 30000)


def real_units(units: tuple[Unit, ...]) -> tuple[Unit, ...]:
    """Drop nest entries, which are structures rather than units."""
    return tuple(u for u in units if not u.is_nest)


class GameStateAnalyzer:
    """Per-turn situation assessment.

    Args:
        threat_map: Sighting memory to own.  A fresh default map is
            created when omitted.
    """

    def __init__(self, threat_map: ThreatMap | None = None) -> None:
        self.threat_map = threat_map if threat_map is not None else ThreatMap()

    def analyze(self, snapshot: WorldSnapshot) -> Analysis:
        """Run every analysis step for one snapshot.

        Args:
            snapshot: The arena state for this turn.

        Returns:
            A frozen Analysis for the planners.
        """
        self.update_threat_map(snapshot)
        units = self.analyze_units(snapshot)
        analysis = Analysis(
            turn=snapshot.turn,
            phase=self.determine_phase(snapshot),
            units=units,
            resources=self.analyze_resources(snapshot, units.anthill),
            threats=self.analyze_threats(units),
            territory=self.analyze_territory(units, snapshot),
            economy=self.analyze_economy(snapshot, units),
            threat_map=self.threat_map.summarize(units.anthill, snapshot.turn),
        )
        log.debug(
            "Turn %d analysed: phase=%s units=%d enemies=%d resources=%d threat=%.2f",
            analysis.turn,
            analysis.phase.value,
            units.counts.total,
            len(units.enemies),
            len(analysis.resources.visible),
            analysis.threats.overall_level,
        )
        return analysis

    # ------------------------------------------------------------------
    # Threat map
    # ------------------------------------------------------------------

    def update_threat_map(self, snapshot: WorldSnapshot) -> None:
        """Ingest this turn's enemy positions, then decay the map."""
        sightings = [
            Sighting(position=enemy.position, turn=snapshot.turn, unit_type=enemy.type)
            for enemy in snapshot.enemies
            if not enemy.is_nest
        ]
        self.threat_map.ingest(sightings, snapshot.turn)
        self.threat_map.decay(snapshot.turn)

    # ------------------------------------------------------------------
    # Phase
    # ------------------------------------------------------------------

    @staticmethod
    def enemy_bases(snapshot: WorldSnapshot) -> tuple[Position, ...]:
        """Known enemy home cells: revealed anthills plus nest-type enemies."""
        bases = list(snapshot.enemy_bases)
        for enemy in snapshot.enemies:
            if enemy.is_nest and enemy.position not in bases:
                bases.append(enemy.position)
        return tuple(bases)

    def determine_phase(self, snapshot: WorldSnapshot) -> Phase:
        """Guess the game phase; the first matching rule wins."""
        turn = snapshot.turn
        own = len(real_units(snapshot.units))
        enemies = len(real_units(snapshot.enemies))
        base_found = bool(self.enemy_bases(snapshot))

        if turn > 300:
            return Phase.LATE
        if base_found and own >= 10:
            return Phase.LATE
        if enemies > 5 and turn > 30:
            return Phase.LATE
        if turn > 50:
            return Phase.MID
        if own >= 8:
            return Phase.MID
        if enemies > 0 and turn > 15:
            return Phase.MID
        return Phase.EARLY

    # ------------------------------------------------------------------
    # Units
    # ------------------------------------------------------------------

    def analyze_units(self, snapshot: WorldSnapshot) -> UnitAnalysis:
        own = real_units(snapshot.units)
        enemies = real_units(snapshot.enemies)
        counts = UnitCounts(
            workers=sum(1 for u in own if u.type is UnitType.WORKER),
            soldiers=sum(1 for u in own if u.type is UnitType.SOLDIER),
            scouts=sum(1 for u in own if u.type is UnitType.SCOUT),
            total=len(own),
        )
        if counts.total:
            proportions = UnitProportions(
                workers=counts.workers / counts.total,
                soldiers=counts.soldiers / counts.total,
                scouts=counts.scouts / counts.total,
            )
        else:
            proportions = UnitProportions()

        anthill = snapshot.home[0] if snapshot.home else None
        if anthill is None:
            log.warning("Turn %d: snapshot has no home position", snapshot.turn)

        return UnitAnalysis(
            own=own,
            enemies=enemies,
            counts=counts,
            proportions=proportions,
            anthill=anthill,
            enemy_bases=self.enemy_bases(snapshot),
        )

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    def analyze_resources(
        self, snapshot: WorldSnapshot, anthill: Position | None
    ) -> ResourceAnalysis:
        """Group, measure and rank the visible food.

        A resource on the anthill cell is an invalid report and is
        dropped with a warning.
        """
        visible = tuple(
            r for r in snapshot.resources if anthill is None or r.position != anthill
        )
        dropped = len(snapshot.resources) - len(visible)
        if dropped:
            log.warning(
                "Turn %d: excluded %d resource(s) at the anthill %s",
                snapshot.turn,
                dropped,
                anthill,
            )

        by_type: dict[ResourceType, tuple[Resource, ...]] = {}
        for rtype in (ResourceType.NECTAR, ResourceType.BREAD, ResourceType.APPLE):
            by_type[rtype] = tuple(r for r in visible if r.type is rtype)

        distances: dict[ResourceType, tuple[ResourceDistance, ...]] = {}
        if anthill is not None:
            for rtype, group in by_type.items():
                measured = [
                    ResourceDistance(r, hexmath.distance(anthill, r.position))
                    for r in group
                ]
                measured.sort(key=lambda rd: rd.distance)
                distances[rtype] = tuple(measured)

        return ResourceAnalysis(
            visible=visible,
            by_type=by_type,
            distances=distances,
            high_value=self._high_value(distances),
        )

    @staticmethod
    def _high_value(
        distances: dict[ResourceType, tuple[ResourceDistance, ...]],
    ) -> tuple[HighValueResource, ...]:
        found: list[HighValueResource] = []
        for rd in distances.get(ResourceType.NECTAR, ()):
            if rd.distance <= _NECTAR_HIGH_VALUE_RANGE:
                found.append(
                    HighValueResource(
                        rd.resource, rd.distance, ResourcePriority.HIGH, "nectar_close"
                    )
                )
        for rd in distances.get(ResourceType.BREAD, ()):
            if rd.distance <= _BREAD_HIGH_VALUE_RANGE:
                found.append(
                    HighValueResource(
                        rd.resource, rd.distance, ResourcePriority.MEDIUM, "bread_close"
                    )
                )
        found.sort(key=lambda hv: hv.priority.value, reverse=True)
        return tuple(found)

    # ------------------------------------------------------------------
    # Threats
    # ------------------------------------------------------------------

    def analyze_threats(self, units: UnitAnalysis) -> ThreatAnalysis:
        threats: list[Threat] = []
        for enemy in units.enemies:
            dist = hexmath.distance(units.anthill, enemy.position)
            spot = enemy.position
            allies = sum(
                1
                for ally in units.own
                if hexmath.distance(ally.position, spot) <= _ALLY_SUPPORT_RANGE
            )
            threats.append(
                Threat(
                    unit=enemy,
                    distance=dist,
                    level=self.threat_level(enemy.type, dist, allies),
                    nearby_allies=allies,
                )
            )
        threats.sort(key=lambda t: t.level, reverse=True)
        return ThreatAnalysis(
            threats=tuple(threats),
            overall_level=self.overall_threat_level(threats),
            immediate=tuple(t for t in threats if t.distance <= _IMMEDIATE_RANGE),
            nearby=tuple(t for t in threats if t.distance <= _NEARBY_RANGE),
        )

    @staticmethod
    def threat_level(
        unit_type: UnitType, distance: int | float, nearby_allies: int
    ) -> float:
        """Score one enemy.

        Args:
            unit_type: Enemy role.
            distance: Hex distance from the anthill.
            nearby_allies: Own units within three hexes of the enemy.

        Returns:
            ``weight × proximity × max(0.3, 1 − 0.2 × allies)``.
        """
        weight = _THREAT_WEIGHTS.get(unit_type)
        if weight is None:
            log.warning(
                "No threat weight for %s, using %.1f",
                unit_type.name,
                _UNKNOWN_THREAT_WEIGHT,
            )
            weight = _UNKNOWN_THREAT_WEIGHT

        if distance <= _IMMEDIATE_RANGE:
            weight *= 2.0
        elif distance <= _NEARBY_RANGE:
            weight *= 1.5

        return weight * max(0.3, 1.0 - 0.2 * nearby_allies)

    @staticmethod
    def overall_threat_level(threats: list[Threat]) -> float:
        """Squash all threat levels into ``[0, 1]``."""
        if not threats:
            return 0.0
        total = sum(t.level for t in threats)
        worst = max(t.level for t in threats)
        return min(1.0, total / 10.0 + worst / 5.0)

    # ------------------------------------------------------------------
    # Territory
    # ------------------------------------------------------------------

    def analyze_territory(
        self, units: UnitAnalysis, snapshot: WorldSnapshot
    ) -> TerritoryAnalysis:
        controlled: set[Position] = set()
        for unit in units.own:
            controlled.update(hexmath.disk(unit.position, hexmath.vision(unit.type)))

        contested: list[ContestedArea] = []
        for unit in units.own:
            close = tuple(
                e
                for e in units.enemies
                if hexmath.distance(unit.position, e.position) <= _CONTESTED_RANGE
            )
            if close:
                contested.append(
                    ContestedArea(position=unit.position, unit=unit, enemies=close)
                )

        expansion: list[ExpansionOpportunity] = []
        for resource in snapshot.resources:
            if units.anthill is not None and resource.position == units.anthill:
                continue
            nearest = min(
                (hexmath.distance(u.position, resource.position) for u in units.own),
                default=math.inf,
            )
            if nearest > _EXPANSION_RANGE:
                expansion.append(
                    ExpansionOpportunity(
                        resource=resource,
                        distance=nearest,
                        value=calories(resource.type),
                    )
                )
        expansion.sort(key=lambda op: op.score, reverse=True)

        return TerritoryAnalysis(
            controlled_cells=len(controlled),
            contested=tuple(contested),
            expansion=tuple(expansion),
        )

    # ------------------------------------------------------------------
    # Economy
    # ------------------------------------------------------------------

    def analyze_economy(
        self, snapshot: WorldSnapshot, units: UnitAnalysis
    ) -> EconomyAnalysis:
        income = sum(_INCOME_WEIGHTS.get(u.type, 0.0) for u in units.own)
        efficiency = income / units.counts.total if units.counts.total else 0.0
        per_turn, total = self.economic_targets(snapshot.turn)
        return EconomyAnalysis(
            score=snapshot.score,
            calories_per_turn=income,
            efficiency=efficiency,
            target_calories_per_turn=per_turn,
            target_total_calories=total,
        )

    @staticmethod
    def economic_targets(turn: int) -> tuple[int, int]:
        """Return ``(calories per turn, total calories)`` targets for a turn."""
        for last_turn, per_turn, total in _ECONOMY_TARGETS:
            if turn <= last_turn:
                return per_turn, total
        return _LATE_ECONOMY_TARGET
