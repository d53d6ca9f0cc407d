"""Hex geometry — pure functions over axial coordinates.

All spatial reasoning in the bot goes through ``distance``; nothing else
measures space.  A missing position is treated as infinitely far away
instead of raising, so callers can pass ``analysis.units.anthill``
without guarding against a snapshot that lacked a home cell.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from formicary.grid.position import Octant, Position
from formicary.world.stats import unit_stats

if TYPE_CHECKING:
    from formicary.world.entities import UnitType

INFINITE_DISTANCE = math.inf

# Axial neighbour offsets, counter-clockwise from east.
HEX_DIRECTIONS: tuple[tuple[int, int], ...] = (
    (1, 0),
    (1, -1),
    (0, -1),
    (-1, 0),
    (-1, 1),
    (0, 1),
)

# Octant names in order of increasing atan2 angle.
_OCTANTS: tuple[Octant, ...] = (
    Octant.E,
    Octant.SE,
    Octant.S,
    Octant.SW,
    Octant.W,
    Octant.NW,
    Octant.N,
    Octant.NE,
)


def distance(a: Position | None, b: Position | None) -> int | float:
    """Return the hex distance ``max(|dq|, |dr|, |ds|)``.

    Args:
        a: First position, or None.
        b: Second position, or None.

    Returns:
        Number of hex steps between the two cells, or ``math.inf`` when
        either side is missing.
    """
    if a is None or b is None:
        return INFINITE_DISTANCE
    return max(abs(a.q - b.q), abs(a.r - b.r), abs(a.s - b.s))


def vision(unit_type: UnitType) -> int:
    """Return the visibility radius for a unit role."""
    return unit_stats(unit_type).vision


def neighbours(pos: Position) -> list[Position]:
    """Return the six adjacent cells of ``pos``."""
    return [pos.offset(dq, dr) for dq, dr in HEX_DIRECTIONS]


def ring(center: Position, radius: int) -> list[Position]:
    """Return the six axial neighbour offsets of ``center`` scaled by ``radius``.

    This is the set of "corner" cells at ``radius``, not every cell of a
    geometric ring.  Exploration and patrol targets only need six evenly
    spread points.
    """
    return [center.offset(dq * radius, dr * radius) for dq, dr in HEX_DIRECTIONS]


def disk(center: Position, radius: int) -> list[Position]:
    """Return every cell within ``radius`` steps of ``center`` (inclusive)."""
    cells: list[Position] = []
    for dq in range(-radius, radius + 1):
        lo = max(-radius, -dq - radius)
        hi = min(radius, -dq + radius)
        for dr in range(lo, hi + 1):
            cells.append(center.offset(dq, dr))
    return cells


def direction(origin: Position, target: Position) -> Octant:
    """Classify the bearing from ``origin`` to ``target`` into an octant.

    Uses ``atan2(dr, dq)`` bucketed into 45-degree slices, so east is
    ``+q`` and south is ``+r``.
    """
    angle = math.atan2(target.r - origin.r, target.q - origin.q)
    index = round(angle / (math.pi / 4)) % 8
    return _OCTANTS[index]


def _sign(value: int) -> int:
    return (value > 0) - (value < 0)


def step_toward(origin: Position, target: Position) -> Position | None:
    """Return the single greedy hex step from ``origin`` toward ``target``.

    The step is the sign of the ``(dq, dr)`` vector.  When both signs
    agree (``(+1, +1)`` or ``(-1, -1)``) that offset is two hexes away,
    so the axis with the smaller magnitude is dropped to stay adjacent.

    Returns:
        The adjacent cell to move into, or None if already at the target.
    """
    dq = target.q - origin.q
    dr = target.r - origin.r
    step_q, step_r = _sign(dq), _sign(dr)
    if step_q == 0 and step_r == 0:
        return None
    if step_q == step_r:
        if abs(dq) >= abs(dr):
            step_r = 0
        else:
            step_q = 0
    return origin.offset(step_q, step_r)
