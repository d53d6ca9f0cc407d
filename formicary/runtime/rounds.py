"""Round schedule as reported by the arena's ``/rounds`` endpoint."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

log = logging.getLogger(__name__)

ACTIVE = "active"
PENDING = "pending"


def _parse_time(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        log.warning("Unparsable round timestamp %r", value)
        return None


@dataclass(frozen=True)
class Round:
    """One scheduled round.

    Attributes:
        name: Round name shown by the arena.
        status: ``active``, ``pending`` or a finished state.
        start_at: Scheduled start, or None if the arena omitted it.
    """

    name: str
    status: str
    start_at: datetime | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Round:
        return cls(
            name=str(data.get("name") or ""),
            status=str(data.get("status") or ""),
            start_at=_parse_time(data.get("startAt")),
        )


@dataclass(frozen=True)
class RoundSchedule:
    """Server clock plus every round the arena knows about."""

    now: datetime | None = None
    rounds: tuple[Round, ...] = ()

    @classmethod
    def from_dict(cls, payload: Any) -> RoundSchedule:
        """Parse a ``/rounds`` body; anything malformed yields an empty schedule."""
        if not isinstance(payload, Mapping):
            return cls()
        entries = payload.get("rounds")
        if not isinstance(entries, list):
            entries = []
        return cls(
            now=_parse_time(payload.get("now")),
            rounds=tuple(
                Round.from_mapping(e) for e in entries if isinstance(e, Mapping)
            ),
        )

    @property
    def active(self) -> Round | None:
        """The round currently being played, if any."""
        return next((r for r in self.rounds if r.status == ACTIVE), None)

    @property
    def next_round(self) -> Round | None:
        """The earliest pending round with a known start time."""
        pending = [r for r in self.rounds if r.status == PENDING and r.start_at]
        if not pending:
            return None
        return min(pending, key=lambda r: r.start_at)

    def seconds_until_next(self) -> float | None:
        """Seconds from the server clock to the next round's start.

        Returns None when there is no pending round or no server clock.
        The result is never negative.
        """
        upcoming = self.next_round
        if upcoming is None or upcoming.start_at is None or self.now is None:
            return None
        try:
            delta = (upcoming.start_at - self.now).total_seconds()
        except TypeError:
            # naive and aware timestamps mixed
            return None
        return max(0.0, delta)
