"""Analysis records — the structured per-turn read of the arena.

Every record here is a frozen dataclass holding tuples, so a published
``Analysis`` can be shared with an observer thread without copying.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from formicary.grid.position import Position
from formicary.intel.threat_map import ThreatSummary
from formicary.world.entities import Resource, ResourceType, Unit


class Phase(Enum):
    """Coarse stage of the game driving strategic posture."""

    EARLY = "early"
    MID = "mid"
    LATE = "late"
    RECOVERY = "recovery"


class ResourcePriority(Enum):
    """Urgency tag attached to a resource; larger value ranks first."""

    LOW = 1
    MEDIUM = 2
    HIGH = 3

    @property
    def label(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class UnitCounts:
    """Own-unit census (nest entries excluded)."""

    workers: int = 0
    soldiers: int = 0
    scouts: int = 0
    total: int = 0


@dataclass(frozen=True)
class UnitProportions:
    """Share of each role in the own-unit total (0 when there are no units)."""

    workers: float = 0.0
    soldiers: float = 0.0
    scouts: float = 0.0


@dataclass(frozen=True)
class UnitAnalysis:
    """Own and enemy units for the turn.

    Attributes:
        own: Own units, nests excluded.
        enemies: Enemy units, nests excluded.
        counts: Own-unit census.
        proportions: Own-unit role shares.
        anthill: First home position, or None if the arena sent none.
        enemy_bases: Known enemy home positions.
    """

    own: tuple[Unit, ...] = ()
    enemies: tuple[Unit, ...] = ()
    counts: UnitCounts = field(default_factory=UnitCounts)
    proportions: UnitProportions = field(default_factory=UnitProportions)
    anthill: Position | None = None
    enemy_bases: tuple[Position, ...] = ()


@dataclass(frozen=True)
class ResourceDistance:
    """A resource and its hex distance from the anthill."""

    resource: Resource
    distance: int | float


@dataclass(frozen=True)
class HighValueResource:
    """A resource worth collecting soon."""

    resource: Resource
    distance: int | float
    priority: ResourcePriority
    reason: str


@dataclass(frozen=True)
class ResourceAnalysis:
    """Visible food, grouped and ranked.

    Attributes:
        visible: Every valid visible resource (anthill cell excluded).
        by_type: Visible resources grouped by type.
        distances: Per type, resources with their anthill distance,
            nearest first.  Empty when the anthill is unknown.
        high_value: Close Nectar and Bread, highest priority first.
    """

    visible: tuple[Resource, ...] = ()
    by_type: dict[ResourceType, tuple[Resource, ...]] = field(default_factory=dict)
    distances: dict[ResourceType, tuple[ResourceDistance, ...]] = field(
        default_factory=dict
    )
    high_value: tuple[HighValueResource, ...] = ()

    def of_type(self, resource_type: ResourceType) -> tuple[Resource, ...]:
        return self.by_type.get(resource_type, ())

    def distances_of(self, resource_type: ResourceType) -> tuple[ResourceDistance, ...]:
        return self.distances.get(resource_type, ())


@dataclass(frozen=True)
class Threat:
    """One enemy unit scored for danger to the colony.

    Attributes:
        unit: The enemy.
        distance: Hex distance from the anthill (``inf`` if unknown).
        level: Role weight scaled by proximity and ally dilution.
        nearby_allies: Own units within three hexes of the enemy.
    """

    unit: Unit
    distance: int | float
    level: float
    nearby_allies: int


@dataclass(frozen=True)
class ThreatAnalysis:
    """Enemy danger for the turn, most dangerous first."""

    threats: tuple[Threat, ...] = ()
    overall_level: float = 0.0
    immediate: tuple[Threat, ...] = ()
    nearby: tuple[Threat, ...] = ()


@dataclass(frozen=True)
class ContestedArea:
    """An own unit with enemies close by."""

    position: Position
    unit: Unit
    enemies: tuple[Unit, ...]


@dataclass(frozen=True)
class ExpansionOpportunity:
    """A resource nobody of ours is near.

    Attributes:
        resource: The uncovered resource.
        distance: Distance to our nearest unit (``inf`` with no units).
        value: Calorie value of the resource.
    """

    resource: Resource
    distance: int | float
    value: int

    @property
    def score(self) -> float:
        if self.distance == 0:
            return float(self.value)
        return self.value / self.distance


@dataclass(frozen=True)
class TerritoryAnalysis:
    """Map control derived from unit vision."""

    controlled_cells: int = 0
    contested: tuple[ContestedArea, ...] = ()
    expansion: tuple[ExpansionOpportunity, ...] = ()


@dataclass(frozen=True)
class EconomyAnalysis:
    """Heuristic income estimate and the turn's targets."""

    score: int = 0
    calories_per_turn: float = 0.0
    efficiency: float = 0.0
    target_calories_per_turn: int = 0
    target_total_calories: int = 0


@dataclass(frozen=True)
class Analysis:
    """Everything the planners need to know about one turn.

    Attributes:
        turn: Arena turn number.
        phase: Phase guessed from turn and events (never RECOVERY).
        units: Own and enemy unit breakdown.
        resources: Visible food breakdown.
        threats: Enemy danger assessment.
        territory: Map-control metrics.
        economy: Income metrics.
        threat_map: Digest of the decaying sighting memory.
    """

    turn: int
    phase: Phase
    units: UnitAnalysis
    resources: ResourceAnalysis
    threats: ThreatAnalysis
    territory: TerritoryAnalysis
    economy: EconomyAnalysis
    threat_map: ThreatSummary
