"""Strategy records — the per-turn posture chosen by the StrategyPlanner."""

from __future__ import annotations

from dataclasses import dataclass, field

from formicary.analysis.report import Phase, ResourcePriority
from formicary.grid.position import Position
from formicary.world.entities import Resource, ResourceType, Unit, UnitType


@dataclass(frozen=True)
class ResourceTypePriority:
    """How urgently one food type should be collected.

    Attributes:
        type: Food type.
        priority: Urgency tag.
        reason: Short machine-readable cause.
        count: Number of qualifying resources.
        avg_distance: Mean anthill distance of those resources, if measured.
    """

    type: ResourceType
    priority: ResourcePriority
    reason: str
    count: int
    avg_distance: float | None = None


@dataclass(frozen=True)
class ResourceTarget:
    """A unit the planner would send to a high-value resource."""

    unit: Unit
    resource: Resource
    distance: int | float
    priority: ResourcePriority


@dataclass(frozen=True)
class ProtectedRoute:
    """A high-value resource with soldiers standing guard near it."""

    resource: Resource
    guards: tuple[Unit, ...]


@dataclass(frozen=True)
class Distribution:
    """Suggested split of units between travel, collection and return."""

    on_route: int = 0
    collecting: int = 0
    returning: int = 0


@dataclass(frozen=True)
class Logistics:
    convoy_formation: bool = False
    protected_routes: tuple[ProtectedRoute, ...] = ()
    distribution: Distribution = field(default_factory=Distribution)


@dataclass(frozen=True)
class ResourceStrategy:
    """Collection plan.

    Attributes:
        priorities: Food types to favour, most urgent first.
        assignments: Greedy unit-to-resource pairing over high-value food.
        logistics: Convoy and distribution advice.
        recovery_mode: True while the colony is rebuilding.
        max_collection_distance: Resources farther than this from the
            anthill are skipped (None means unlimited).
        allowed_collectors: Roles allowed to collect (empty means any).
        safety_priority: ``normal``, ``high`` or ``critical``.
        require_escort: Workers should travel with soldiers.
        max_worker_distance: Workers stay within this of the anthill.
    """

    priorities: tuple[ResourceTypePriority, ...] = ()
    assignments: tuple[ResourceTarget, ...] = ()
    logistics: Logistics = field(default_factory=Logistics)
    recovery_mode: bool = False
    max_collection_distance: int | None = None
    allowed_collectors: tuple[UnitType, ...] = ()
    safety_priority: str = "normal"
    require_escort: bool = False
    max_worker_distance: int | None = None

    def may_collect(self, unit_type: UnitType) -> bool:
        return not self.allowed_collectors or unit_type in self.allowed_collectors


@dataclass(frozen=True)
class CombatReadiness:
    own_force: float
    enemy_force: float
    ratio: float
    recommendation: str


@dataclass(frozen=True)
class CombatPosture:
    """Stance with ordered tactic and priority keywords."""

    stance: str
    tactics: tuple[str, ...]
    priorities: tuple[str, ...]


@dataclass(frozen=True)
class Formation:
    kind: str
    units: tuple[Unit, ...]
    purpose: str


@dataclass(frozen=True)
class CombatTarget:
    """An enemy ranked for engagement."""

    unit: Unit
    priority: int
    reasons: tuple[str, ...]


@dataclass(frozen=True)
class CombatStrategy:
    """Engagement plan.

    Attributes:
        readiness: Own versus enemy force comparison.
        posture: Chosen stance with tactic and priority lists.
        formations: Suggested unit groupings.
        targets: Enemies ranked for engagement.
        recovery_mode: True while the colony is rebuilding.
        stance: Effective stance after overrides.
        engagement: Engagement rule (``seek`` or ``avoid_unless_necessary``).
        max_patrol_distance: Soldiers stay within this of the anthill.
        prioritize_defense: Soldiers defend before hunting.
        prioritize_targets: Enemy roles to strike first.
        intercept_scouts: Soldiers should chase scouts.
        production_ratios: Suggested role mix in response to the enemy.
    """

    readiness: CombatReadiness
    posture: CombatPosture
    formations: tuple[Formation, ...] = ()
    targets: tuple[CombatTarget, ...] = ()
    recovery_mode: bool = False
    stance: str = "aggressive"
    engagement: str = "seek"
    max_patrol_distance: int | None = None
    prioritize_defense: bool = False
    prioritize_targets: tuple[UnitType, ...] = ()
    intercept_scouts: bool = False
    production_ratios: ProductionRatios | None = None


@dataclass(frozen=True)
class Adaptation:
    """A flagged imbalance in the colony's role mix."""

    type: str
    action: str
    reason: str
    details: str


@dataclass(frozen=True)
class EnemyComposition:
    """Read of the visible enemy army.

    Attributes:
        total: Enemy units counted (nests excluded).
        workers: Enemy worker count.
        soldiers: Enemy soldier count.
        scouts: Enemy scout count.
        worker_ratio: Share of workers.
        soldier_ratio: Share of soldiers.
        scout_ratio: Share of scouts.
        strategy_type: Classified enemy plan.
        threat: Threat tier, ``minimal`` to ``critical``.
        recommended_response: Suggested counter-plan keyword.
    """

    total: int = 0
    workers: int = 0
    soldiers: int = 0
    scouts: int = 0
    worker_ratio: float = 0.0
    soldier_ratio: float = 0.0
    scout_ratio: float = 0.0
    strategy_type: str = "unknown"
    threat: str = "minimal"
    recommended_response: str = "normal_expansion"


@dataclass(frozen=True)
class ProductionRatios:
    prioritize: tuple[UnitType, ...]
    reason: str
    workers: float
    soldiers: float
    scouts: float


@dataclass(frozen=True)
class TacticalAdaptations:
    """Adjustments derived from the enemy composition.

    Attributes:
        production: Suggested role mix.
        increase_base_defense: Switch combat to a defensive stance.
        keep_soldiers_close: Cap soldier patrol distance.
        max_patrol_distance: The cap used with ``keep_soldiers_close``.
        protect_workers: Escort workers and keep them near home.
        max_worker_distance: Worker leash used with ``protect_workers``.
        anti_scout_measures: Focus soldiers on enemy scouts.
        keep_workers_close: Workers should avoid the map edge.
        restrict_collection: Cap collection distance.
        max_collection_distance: The cap used with ``restrict_collection``.
        priorities: Extra priority keywords.
    """

    production: ProductionRatios
    increase_base_defense: bool = False
    keep_soldiers_close: bool = False
    max_patrol_distance: int | None = None
    protect_workers: bool = False
    max_worker_distance: int | None = None
    anti_scout_measures: bool = False
    keep_workers_close: bool = False
    restrict_collection: bool = False
    max_collection_distance: int | None = None
    priorities: tuple[str, ...] = ()


@dataclass(frozen=True)
class Reasoning:
    category: str
    decision: str
    details: str


@dataclass(frozen=True)
class Strategy:
    """The colony's posture for one turn.

    Attributes:
        name: Human-readable strategy label.
        phase: Effective phase (RECOVERY while the override is active).
        base_phase: Phase guessed by the analyzer.
        priorities: Ordered priority keywords.
        resources: Collection plan.
        combat: Engagement plan.
        adaptations: Role-mix imbalances worth fixing.
        enemy: Read of the enemy army.
        tactical: Adjustments made in response to the enemy.
        reasoning: Why the phase was chosen.
        recovery_mode: True while the recovery override is active.
        recovery_start_turn: Turn recovery began, or None.
        enemy_bases: Enemy home cells known this turn.
    """

    name: str
    phase: Phase
    base_phase: Phase
    priorities: tuple[str, ...]
    resources: ResourceStrategy
    combat: CombatStrategy
    adaptations: tuple[Adaptation, ...] = ()
    enemy: EnemyComposition = field(default_factory=EnemyComposition)
    tactical: TacticalAdaptations | None = None
    reasoning: tuple[Reasoning, ...] = ()
    recovery_mode: bool = False
    recovery_start_turn: int | None = None
    enemy_bases: tuple[Position, ...] = ()
