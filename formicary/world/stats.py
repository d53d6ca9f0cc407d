"""Stats — fixed per-role and per-food tables from the arena rules.

Lookups never raise.  An ``UNKNOWN`` role or food falls back to a
conservative default (weak, slow, short-sighted unit; worthless food)
and logs a warning.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from formicary.world.entities import ResourceType, UnitType

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnitStats:
    """Arena statistics for a unit role.

    Attributes:
        speed: Hexes per turn.
        vision: Visibility radius in hexes.
        health: Starting hit points.
        attack: Damage per attack; doubles as the role's force weight.
        cargo: Carrying capacity in food units.
    """

    speed: int
    vision: int
    health: int
    attack: int
    cargo: int


UNIT_STATS: dict[UnitType, UnitStats] = {
    UnitType.SCOUT: UnitStats(speed=7, vision=4, health=100, attack=35, cargo=4),
    UnitType.SOLDIER: UnitStats(speed=4, vision=2, health=180, attack=70, cargo=2),
    UnitType.WORKER: UnitStats(speed=3, vision=2, health=120, attack=25, cargo=8),
}

DEFAULT_STATS = UnitStats(speed=3, vision=2, health=100, attack=10, cargo=2)

FOOD_CALORIES: dict[ResourceType, int] = {
    ResourceType.APPLE: 10,
    ResourceType.BREAD: 25,
    ResourceType.NECTAR: 60,
}

# How well each role gathers each food (1.0 = best suited).
COLLECTION_EFFICIENCY: dict[ResourceType, dict[UnitType, float]] = {
    ResourceType.NECTAR: {
        UnitType.SCOUT: 1.0,
        UnitType.WORKER: 0.8,
        UnitType.SOLDIER: 0.6,
    },
    ResourceType.BREAD: {
        UnitType.WORKER: 1.0,
        UnitType.SCOUT: 0.8,
        UnitType.SOLDIER: 0.6,
    },
    ResourceType.APPLE: {
        UnitType.WORKER: 1.0,
        UnitType.SCOUT: 0.9,
        UnitType.SOLDIER: 0.7,
    },
}


def unit_stats(unit_type: UnitType) -> UnitStats:
    """Return the stats for ``unit_type`` or the conservative default."""
    stats = UNIT_STATS.get(unit_type)
    if stats is None:
        log.warning("No stats for unit type %s, using defaults", unit_type.name)
        return DEFAULT_STATS
    return stats


def calories(resource_type: ResourceType) -> int:
    """Return the calorie value of one unit of food (0 for unknown food)."""
    value = FOOD_CALORIES.get(resource_type)
    if value is None:
        log.warning("No calorie value for %s, assuming 0", resource_type.name)
        return 0
    return value


def collection_efficiency(resource_type: ResourceType, unit_type: UnitType) -> float:
    """Return how efficiently a role gathers a food (0.5 when unknown)."""
    return COLLECTION_EFFICIENCY.get(resource_type, {}).get(unit_type, 0.5)
