"""Assignments and moves — what a unit is doing and where it steps next."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from formicary.grid.position import Position
from formicary.world.entities import ResourceType


class TaskType(Enum):
    """Kind of sticky task a unit can hold."""

    RETURN_HOME = "return_to_anthill"
    IMMEDIATE_DEFENSE = "immediate_defense"
    RESOURCE_COLLECTION = "resource_collection"
    EXPLORATION = "exploration"
    RESOURCE_SCOUTING = "resource_scouting"
    COMBAT = "combat"
    CONVOY_PROTECTION = "convoy_protection"
    TERRITORY_DEFENSE = "territory_defense"
    RAID_ENEMY_BASE = "raid_enemy_anthill"
    PATROL = "patrol"


class TaskPriority(Enum):
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4


@dataclass(frozen=True)
class Assignment:
    """A unit's current task.

    Attributes:
        type: Task kind.
        target: Cell the unit is heading for.
        priority: Task urgency.
        timestamp: Clock reading when the task was first assigned.
        target_id: Enemy unit id for combat tasks.
        resource_type: Food type for collection tasks.
    """

    type: TaskType
    target: Position
    priority: TaskPriority
    timestamp: float
    target_id: str | None = None
    resource_type: ResourceType | None = None


@dataclass(frozen=True)
class Move:
    """One unit's move order for the turn.

    Attributes:
        unit_id: Arena id of the unit.
        path: Cells to walk, in order.  Always a single step here.
        assignment: The task that produced the move.
    """

    unit_id: str
    path: tuple[Position, ...]
    assignment: Assignment

    def to_payload(self) -> dict[str, Any]:
        """Serialise to the arena's ``{"ant", "path"}`` move shape."""
        return {"ant": self.unit_id, "path": [p.to_dict() for p in self.path]}
