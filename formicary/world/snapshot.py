"""WorldSnapshot — one turn of arena state, parsed from the arena JSON.

Parsing is forgiving.  A missing or malformed field becomes an empty
collection or a named default and is logged; nothing here raises for a
bad payload, so a partial response still produces a usable turn.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from formicary.grid.position import Position
from formicary.world.entities import Resource, Unit
from formicary.world.fields import int_field

log = logging.getLogger(__name__)

DEFAULT_TURN = 0
DEFAULT_SCORE = 0


@dataclass(frozen=True)
class WorldSnapshot:
    """Immutable view of the arena for a single turn.

    Attributes:
        turn: Arena turn number.
        score: Current colony score as reported by the arena.
        units: Own units, nest entries included.
        enemies: Visible enemy units, nest entries included.
        resources: Visible food piles.
        home: Cells of the colony's home structure.
        enemy_bases: Enemy home cells the arena has revealed to us.
    """

    turn: int = DEFAULT_TURN
    score: int = DEFAULT_SCORE
    units: tuple[Unit, ...] = ()
    enemies: tuple[Unit, ...] = ()
    resources: tuple[Resource, ...] = ()
    home: tuple[Position, ...] = ()
    enemy_bases: tuple[Position, ...] = ()

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any] | None) -> WorldSnapshot:
        """Build a snapshot from the arena's ``/arena`` response.

        Args:
            payload: Decoded JSON body.  ``None`` or a non-mapping yields an
                empty snapshot.

        Returns:
            A snapshot where every absent field has its default.
        """
        if not isinstance(payload, Mapping):
            log.warning(
                "Arena payload is not an object (%s), using empty snapshot",
                type(payload).__name__,
            )
            return cls()

        return cls(
            turn=int_field(payload, "turnNo", DEFAULT_TURN),
            score=int_field(payload, "score", DEFAULT_SCORE),
            units=tuple(Unit.from_mapping(d) for d in _list_field(payload, "ants")),
            enemies=tuple(
                Unit.from_mapping(d) for d in _list_field(payload, "enemies")
            ),
            resources=tuple(
                Resource.from_mapping(d) for d in _list_field(payload, "food")
            ),
            home=_positions(payload, "home"),
            enemy_bases=_positions(payload, "discoveredEnemyAnthills"),
        )


def _list_field(payload: Mapping[str, Any], key: str) -> list[Mapping[str, Any]]:
    """Return the mapping entries of a list field, skipping anything else."""
    value = payload.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        log.warning("Field %r is not a list, treating as empty", key)
        return []
    entries = [item for item in value if isinstance(item, Mapping)]
    if len(entries) != len(value):
        dropped = len(value) - len(entries)
        log.warning("Field %r: dropped %d malformed entries", key, dropped)
    return entries


def _positions(payload: Mapping[str, Any], key: str) -> tuple[Position, ...]:
    positions: list[Position] = []
    for entry in _list_field(payload, key):
        pos = Position.from_mapping(entry)
        if pos is not None:
            positions.append(pos)
    return tuple(positions)
