"""Position — an axial hex coordinate.

Every spatial lookup in the bot keys on ``Position`` directly, so the
class is frozen and hashable.  The cube coordinate ``s`` is derived
rather than stored.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from formicary.world.fields import int_field


@dataclass(frozen=True, order=True)
class Position:
    """A cell on the hex grid in axial coordinates.

    Attributes:
        q: Column axis.
        r: Row axis (grows "south").
    """

    q: int
    r: int

    @property
    def s(self) -> int:
        """Derived cube coordinate, ``-q - r``."""
        return -self.q - self.r

    def offset(self, dq: int, dr: int) -> Position:
        """Return the position shifted by ``(dq, dr)``."""
        return Position(self.q + dq, self.r + dr)

    def to_dict(self) -> dict[str, int]:
        """Serialise to the arena's ``{"q": .., "r": ..}`` shape."""
        return {"q": self.q, "r": self.r}

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> Position | None:
        """Parse a ``{"q", "r"}`` mapping.

        Missing or malformed axes default to 0.  Returns None when ``data`` itself is
        absent or not a mapping.
        """
        if not isinstance(data, Mapping):
            return None
        return cls(q=int_field(data, "q"), r=int_field(data, "r"))


class Octant(Enum):
    """Compass octant used to summarise where threats come from."""

    E = "E"
    SE = "SE"
    S = "S"
    SW = "SW"
    W = "W"
    NW = "NW"
    N = "N"
    NE = "NE"
