"""Single-step movement with a threat-avoidance filter.

Units never plan more than one hex ahead.  The greedy step toward the
target is tried first, then any other neighbour that still closes the
distance; cells too close to a known threat are skipped.  If every
candidate is unsafe the greedy step is taken anyway so a unit is never
frozen in place by nearby enemies.
"""

from __future__ import annotations

from collections.abc import Iterable

from formicary.grid import hexmath
from formicary.grid.position import Position

DEFAULT_SAFETY_RADIUS = 2


def candidate_steps(origin: Position, target: Position) -> list[Position]:
    """Return the greedy step followed by other distance-reducing neighbours."""
    primary = hexmath.step_toward(origin, target)
    if primary is None:
        return []
    current = hexmath.distance(origin, target)
    others = [
        n
        for n in hexmath.neighbours(origin)
        if n != primary and hexmath.distance(n, target) < current
    ]
    return [primary, *others]


def is_safe(cell: Position, threats: Iterable[Position], radius: int) -> bool:
    return all(hexmath.distance(cell, t) > radius for t in threats)


def plan_step(
    origin: Position,
    target: Position,
    threats: Iterable[Position] = (),
    safety_radius: int = DEFAULT_SAFETY_RADIUS,
) -> Position | None:
    """Choose the next cell toward ``target``.

    Args:
        origin: Unit's current cell.
        target: Cell the unit is heading for.
        threats: Positions of known enemy units.
        safety_radius: Cells within this distance of a threat are unsafe.

    Returns:
        An adjacent cell, or None when the unit is already on the target.
    """
    candidates = candidate_steps(origin, target)
    if not candidates:
        return None
    threat_cells = list(threats)
    for cell in candidates:
        if is_safe(cell, threat_cells, safety_radius):
            return cell
    return candidates[0]
