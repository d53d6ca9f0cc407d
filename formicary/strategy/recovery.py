"""RecoveryState — hysteresis around the emergency-recovery override.

The state keeps a short rolling history of unit counts.  Recovery is
entered on a sharp loss, a near-wipe, or an undefended colony under
enemy contact, and left only once the army has been rebuilt *and* a
minimum dwell time has passed, so the posture cannot flap from turn to
turn.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field

from formicary.analysis.report import UnitCounts

log = logging.getLogger(__name__)

HISTORY_WINDOW = 10
LOSS_WINDOW = 3
MIN_ENTRY_TURN = 10
LOSS_THRESHOLD = 0.4
MIN_LOSS_BASE = 8
CRITICAL_TOTAL = 3
UNDEFENDED_AFTER_TURN = 15
EXIT_TOTAL = 8
EXIT_SOLDIERS = 2
MIN_DWELL_TURNS = 5


@dataclass(frozen=True)
class UnitCountRecord:
    """Own-unit census for one turn."""

    turn: int
    total: int
    workers: int
    soldiers: int
    scouts: int


@dataclass
class RecoveryState:
    """Process-lifetime recovery flag plus the unit-count history.

    Attributes:
        triggered: True while the override is active.
        start_turn: Turn the override was entered, or None.
        history: Recent unit counts, oldest first.
    """

    triggered: bool = False
    start_turn: int | None = None
    history: deque[UnitCountRecord] = field(
        default_factory=lambda: deque(maxlen=HISTORY_WINDOW)
    )

    def record(self, turn: int, counts: UnitCounts) -> None:
        """Append this turn's census; the window drops the oldest entry.

        Recording the same turn again replaces its row.
        """
        if self.history and self.history[-1].turn == turn:
            self.history.pop()
        self.history.append(
            UnitCountRecord(
                turn=turn,
                total=counts.total,
                workers=counts.workers,
                soldiers=counts.soldiers,
                scouts=counts.scouts,
            )
        )

    def should_enter(
        self, turn: int, counts: UnitCounts, enemies_present: bool
    ) -> bool:
        """Return True if the colony should switch into recovery this turn.

        Args:
            turn: Current turn.
            counts: Current own-unit census.
            enemies_present: Whether any enemy unit is visible.
        """
        if self.triggered:
            return False
        if len(self.history) < LOSS_WINDOW or turn < MIN_ENTRY_TURN:
            return False

        start = list(self.history)[-LOSS_WINDOW].total
        loss = (start - counts.total) / start if start > 0 else 0.0

        significant_loss = loss >= LOSS_THRESHOLD and start >= MIN_LOSS_BASE
        nearly_wiped = counts.total < CRITICAL_TOTAL
        undefended = (
            counts.soldiers == 0 and enemies_present and turn > UNDEFENDED_AFTER_TURN
        )

        if significant_loss or nearly_wiped or undefended:
            log.warning(
                "Recovery triggers on turn %d: "
                "loss=%.1f%% total=%d soldiers=%d enemies=%s",
                turn,
                loss * 100,
                counts.total,
                counts.soldiers,
                enemies_present,
            )
            return True
        return False

    def should_exit(self, turn: int, counts: UnitCounts) -> bool:
        """Return True once the army is rebuilt and the dwell time has passed."""
        if not self.triggered or self.start_turn is None:
            return False
        rebuilt = counts.total >= EXIT_TOTAL and counts.soldiers >= EXIT_SOLDIERS
        dwelled = turn - self.start_turn >= MIN_DWELL_TURNS
        return rebuilt and dwelled

    def update(self, turn: int, counts: UnitCounts, enemies_present: bool) -> bool:
        """Record the census and apply entry/exit rules.

        Returns:
            True if the recovery override is active after this turn.
        """
        self.record(turn, counts)
        if self.should_enter(turn, counts, enemies_present):
            self.triggered = True
            self.start_turn = turn
            log.warning("Recovery mode activated on turn %d", turn)
        elif self.should_exit(turn, counts):
            log.info(
                "Recovery mode deactivated on turn %d after %d turns: "
                "%d units, %d soldiers",
                turn,
                turn - (self.start_turn or turn),
                counts.total,
                counts.soldiers,
            )
            self.triggered = False
            self.start_turn = None
        return self.triggered
