"""ThreatMap — decaying spatial memory of enemy sightings.

Each sighting raises an *interest* value over a disk of cells around it.
Interest fades geometrically with the number of turns since a cell was
last refreshed, and cells that fade below a floor or grow too old are
forgotten.  The map is size-capped; after each sighting the oldest
quarter of cells is dropped until the map fits again.

The map is owned by a single ``GameStateAnalyzer`` and mutated only
during its ``analyze`` call.
"""

from __future__ import annotations

import logging
import math
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field

from formicary.grid import hexmath
from formicary.grid.position import Octant, Position
from formicary.world.entities import UnitType

log = logging.getLogger(__name__)


@dataclass
class ThreatCell:
    """Interest held by one cell.

    Attributes:
        interest: Accumulated sighting relevance (≥ 0).
        last_seen_turn: Turn the cell was last refreshed by a sighting.
    """

    interest: float = 0.0
    last_seen_turn: int = 0


@dataclass(frozen=True)
class Sighting:
    """One enemy unit seen at a position on a given turn."""

    position: Position
    turn: int
    unit_type: UnitType


@dataclass(frozen=True)
class InterestArea:
    """A high-interest cell as reported in a summary.

    Attributes:
        position: The cell.
        interest: Current interest value.
        distance: Hex distance from the anthill.
        age: Turns since the cell was last refreshed.
    """

    position: Position
    interest: float
    distance: int
    age: int

    @property
    def score(self) -> float:
        """Interest discounted by distance from the anthill."""
        return self.interest * max(0.1, 1.0 / (1.0 + 0.1 * self.distance))


@dataclass(frozen=True)
class ScoutTarget:
    """A reconnaissance point projected outward from an interesting area."""

    position: Position
    priority: float
    source: Position
    reason: str = "threat_area_exploration"


@dataclass(frozen=True)
class DirectionalThreat:
    """Total interest lying in one compass octant from the anthill."""

    direction: Octant
    level: float


@dataclass(frozen=True)
class ThreatSummary:
    """Read-only digest of the map, relative to the anthill.

    Attributes:
        high_interest_areas: Cells above the threshold, best score first.
        recommended_scout_targets: Projected reconnaissance points.
        threat_directions: Interest per octant, strongest first.
    """

    high_interest_areas: tuple[InterestArea, ...] = ()
    recommended_scout_targets: tuple[ScoutTarget, ...] = ()
    threat_directions: tuple[DirectionalThreat, ...] = ()


@dataclass
class ThreatMap:
    """Bounded, decaying per-cell interest keyed by ``Position``.

    Attributes:
        radius: Cells within this distance of a sighting gain interest.
        soldier_interest: Base interest of a Soldier sighting.
        scout_interest: Base interest of a Scout sighting.
        default_interest: Base interest of any other sighting.
        decay_rate: Per-turn multiplicative fade.
        max_age: Cells not refreshed for longer than this are dropped.
        interest_floor: Cells whose interest falls below this are dropped.
        max_cells: Size cap, enforced after every sighting.
        history_turns: Sightings older than this many turns are forgotten.
        max_history: Hard cap on the number of stored sightings.
        summary_threshold: Minimum interest for a cell to be summarised.
        max_scout_distance: Scout targets must lie within this of home.
        projection_radius: How far scout targets are projected from a cell.
        source_areas: How many top cells seed scout targets.
        reported_areas: How many high-interest cells a summary lists.
        max_scout_targets: How many scout targets a summary lists.
    """

    radius: int = 8
    soldier_interest: float = 20.0
    scout_interest: float = 15.0
    default_interest: float = 10.0
    decay_rate: float = 0.95
    max_age: int = 30
    interest_floor: float = 0.1
    max_cells: int = 1000
    history_turns: int = 50
    max_history: int = 500
    summary_threshold: float = 5.0
    max_scout_distance: int = 40
    projection_radius: int = 5
    source_areas: int = 10
    reported_areas: int = 15
    max_scout_targets: int = 8

    cells: dict[Position, ThreatCell] = field(default_factory=dict, repr=False)
    sightings: deque[Sighting] = field(init=False, repr=False, default_factory=deque)

    def __post_init__(self) -> None:
        self.sightings = deque(maxlen=self.max_history)

    def __len__(self) -> int:
        return len(self.cells)

    def base_interest(self, unit_type: UnitType) -> float:
        """Return the interest a sighting of ``unit_type`` starts with."""
        if unit_type is UnitType.SOLDIER:
            return self.soldier_interest
        if unit_type is UnitType.SCOUT:
            return self.scout_interest
        return self.default_interest

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def ingest(self, sightings: Iterable[Sighting], turn: int) -> None:
        """Record sightings and raise interest around each of them.

        Contributions are merged with ``max``, so the same sighting
        ingested twice in one turn leaves the map unchanged.

        Args:
            sightings: Enemy positions seen this turn.  Nest entries are
                ignored.
            turn: Current turn number.
        """
        for sighting in sightings:
            if sighting.unit_type is UnitType.NEST:
                continue
            self.sightings.append(sighting)
            self._raise_interest(sighting, turn)
            while len(self.cells) > self.max_cells:
                self.prune(turn)

        while self.sightings and turn - self.sightings[0].turn > self.history_turns:
            self.sightings.popleft()

    def _raise_interest(self, sighting: Sighting, turn: int) -> None:
        base = self.base_interest(sighting.unit_type)
        for pos in hexmath.disk(sighting.position, self.radius):
            d = hexmath.distance(sighting.position, pos)
            contribution = base * max(0.1, 1.0 - d / self.radius)
            current = self.cells.get(pos)
            if current is None:
                self.cells[pos] = ThreatCell(contribution, turn)
            else:
                current.interest = max(current.interest, contribution)
                current.last_seen_turn = turn

    def decay(self, turn: int) -> None:
        """Fade every cell by ``decay_rate ** age`` and drop dead cells."""
        expired: list[Position] = []
        for pos, cell in self.cells.items():
            age = turn - cell.last_seen_turn
            if age > self.max_age:
                expired.append(pos)
                continue
            if age > 0:
                cell.interest *= self.decay_rate**age
            if cell.interest < self.interest_floor:
                expired.append(pos)
        for pos in expired:
            del self.cells[pos]

    def prune(self, turn: int) -> None:
        """Delete the oldest quarter of cells by ``last_seen_turn``.

        At least one cell goes whenever the map is non-empty, so repeated
        calls always shrink it.
        """
        ordered = sorted(self.cells.items(), key=lambda item: item[1].last_seen_turn)
        to_remove = min(len(ordered), max(1, math.floor(len(ordered) * 0.25)))
        for pos, _ in ordered[:to_remove]:
            del self.cells[pos]
        log.debug(
            "Turn %d: pruned %d threat cells, %d remaining",
            turn,
            to_remove,
            len(self.cells),
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def cell(self, position: Position) -> ThreatCell:
        """Return the cell at ``position``, or an empty default."""
        found = self.cells.get(position)
        if found is None:
            return ThreatCell()
        return found

    def interest_at(self, position: Position) -> float:
        return self.cell(position).interest

    def summarize(self, anthill: Position | None, turn: int) -> ThreatSummary:
        """Digest the map relative to the anthill.

        Args:
            anthill: Home position, or None if it is unknown.
            turn: Current turn number.

        Returns:
            Ranked high-interest areas, projected scout targets and
            per-octant interest.  Empty when there is no anthill.
        """
        if anthill is None:
            return ThreatSummary()

        areas: list[InterestArea] = []
        by_direction: dict[Octant, float] = {}
        for pos, cell in self.cells.items():
            if cell.interest <= self.summary_threshold:
                continue
            areas.append(
                InterestArea(
                    position=pos,
                    interest=cell.interest,
                    distance=int(hexmath.distance(anthill, pos)),
                    age=turn - cell.last_seen_turn,
                )
            )
            octant = hexmath.direction(anthill, pos)
            by_direction[octant] = by_direction.get(octant, 0.0) + cell.interest

        areas.sort(key=lambda a: a.score, reverse=True)
        directions = sorted(
            (
                DirectionalThreat(direction=d, level=lvl)
                for d, lvl in by_direction.items()
            ),
            key=lambda t: t.level,
            reverse=True,
        )

        return ThreatSummary(
            high_interest_areas=tuple(areas[: self.reported_areas]),
            recommended_scout_targets=tuple(
                self._scout_targets(anthill, areas[: self.source_areas])
            ),
            threat_directions=tuple(directions),
        )

    def _scout_targets(
        self, anthill: Position, areas: list[InterestArea]
    ) -> list[ScoutTarget]:
        targets: list[ScoutTarget] = []
        for area in areas:
            if area.distance > self.max_scout_distance:
                continue
            for candidate in hexmath.ring(area.position, self.projection_radius):
                if hexmath.distance(anthill, candidate) <= self.max_scout_distance:
                    targets.append(
                        ScoutTarget(
                            position=candidate,
                            priority=area.interest,
                            source=area.position,
                        )
                    )
        targets.sort(key=lambda t: t.priority, reverse=True)
        return targets[: self.max_scout_targets]
