"""Entities — units, resources and cargo as reported by the arena.

The arena sends numeric type codes.  They are parsed into closed enums
here; any code the bot does not recognise becomes ``UNKNOWN`` (with a
warning) so that downstream lookups always have a defined default.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from formicary.grid.position import Position
from formicary.world.fields import int_field

log = logging.getLogger(__name__)


class UnitType(Enum):
    """Role of a unit.  ``NEST`` entries are colony home structures."""

    NEST = 0
    WORKER = 1
    SOLDIER = 2
    SCOUT = 3
    UNKNOWN = -1

    @classmethod
    def from_code(cls, code: Any) -> UnitType:
        """Map an arena type code to a role, falling back to ``UNKNOWN``."""
        try:
            return cls(int(code))
        except (TypeError, ValueError):
            log.warning("Unknown unit type code %r, treating as UNKNOWN", code)
            return cls.UNKNOWN


class ResourceType(Enum):
    """Kind of food on the map.  Calories grow Apple < Bread < Nectar."""

    APPLE = 1
    BREAD = 2
    NECTAR = 3
    UNKNOWN = -1

    @classmethod
    def from_code(cls, code: Any) -> ResourceType:
        """Map an arena food code to a resource type, falling back to ``UNKNOWN``."""
        try:
            return cls(int(code))
        except (TypeError, ValueError):
            log.warning("Unknown resource type code %r, treating as UNKNOWN", code)
            return cls.UNKNOWN


@dataclass(frozen=True)
class Cargo:
    """Food carried by a unit.

    Attributes:
        type: Kind of food carried (meaningless when ``amount`` is 0).
        amount: Units of food carried.
    """

    type: ResourceType = ResourceType.UNKNOWN
    amount: int = 0

    @property
    def is_empty(self) -> bool:
        """Return True if the unit carries nothing."""
        return self.amount <= 0

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> Cargo:
        """Parse the arena's ``food`` sub-object; type code 0 means empty."""
        if not isinstance(data, Mapping):
            return cls()
        amount = int_field(data, "amount")
        code = data.get("type") or 0
        if amount <= 0 or code == 0:
            return cls()
        return cls(type=ResourceType.from_code(code), amount=amount)


@dataclass(frozen=True)
class Unit:
    """A unit (or nest structure) seen in a snapshot.

    Attributes:
        id: Arena identifier (empty string if the arena omitted it).
        position: Current cell.
        type: Unit role.
        health: Remaining hit points.
        cargo: Food currently carried.
    """

    id: str
    position: Position
    type: UnitType
    health: int = 0
    cargo: Cargo = field(default_factory=Cargo)

    @property
    def is_nest(self) -> bool:
        """Return True for home-structure entries, which are not real units."""
        return self.type is UnitType.NEST

    @property
    def q(self) -> int:
        return self.position.q

    @property
    def r(self) -> int:
        return self.position.r

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Unit:
        """Build a Unit from an arena ``Ant`` object."""
        return cls(
            id=str(data.get("id") or ""),
            position=Position.from_mapping(data) or Position(0, 0),
            type=UnitType.from_code(data.get("type")),
            health=int_field(data, "health"),
            cargo=Cargo.from_mapping(data.get("food")),
        )


@dataclass(frozen=True)
class Resource:
    """A food pile on the map.

    Attributes:
        position: Cell holding the food.
        type: Kind of food.
        amount: Units available.
    """

    position: Position
    type: ResourceType
    amount: int = 0

    @property
    def calories(self) -> int:
        """Calorie value of one unit of this food."""
        from formicary.world.stats import calories

        return calories(self.type)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Resource:
        """Build a Resource from an arena ``Food`` object."""
        return cls(
            position=Position.from_mapping(data) or Position(0, 0),
            type=ResourceType.from_code(data.get("type")),
            amount=int_field(data, "amount"),
        )
