"""Resource hotspots — clusters of nearby food worth scouting toward."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from formicary.grid import hexmath
from formicary.grid.position import Position
from formicary.world.entities import Resource

CLUSTER_RADIUS = 5


@dataclass(frozen=True)
class Hotspot:
    """A group of resources treated as one destination.

    Attributes:
        center: Rounded centroid of the members.
        value: Summed calorie value of the members.
        members: The clustered resources.
    """

    center: Position
    value: int
    members: tuple[Resource, ...]


def find_hotspots(
    resources: Sequence[Resource], radius: int = CLUSTER_RADIUS
) -> list[Hotspot]:
    """Cluster resources around seeds and keep clusters of two or more.

    Resources are visited in order; each unclaimed resource seeds a
    cluster and claims every other unclaimed resource within ``radius``
    of it.

    Args:
        resources: Visible resources.
        radius: Maximum seed-to-member distance.

    Returns:
        Hotspots sorted by value, most valuable first.
    """
    claimed = [False] * len(resources)
    hotspots: list[Hotspot] = []

    for i, seed in enumerate(resources):
        if claimed[i]:
            continue
        claimed[i] = True
        members = [seed]
        for j in range(i + 1, len(resources)):
            if claimed[j]:
                continue
            if hexmath.distance(seed.position, resources[j].position) <= radius:
                claimed[j] = True
                members.append(resources[j])
        if len(members) < 2:
            continue

        coords = np.array(
            [(m.position.q, m.position.r) for m in members], dtype=np.float64
        )
        q, r = np.rint(coords.mean(axis=0)).astype(int)
        hotspots.append(
            Hotspot(
                center=Position(int(q), int(r)),
                value=sum(m.calories for m in members),
                members=tuple(members),
            )
        )

    hotspots.sort(key=lambda h: h.value, reverse=True)
    return hotspots
