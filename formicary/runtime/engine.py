"""ColonyBot — the turn loop.

Owns the analyzer, strategy planner and task planner and drives them in
the fixed per-turn order:

1. Fetch the arena snapshot
2. Analyse it (threat map update included)
3. Choose a strategy
4. Plan one move per unit
5. Publish the turn's report
6. Dispatch the moves, then sleep the turn interval

Turns never overlap.  The only other reader is an optional status
observer, which sees nothing but the last published ``TurnReport``; the
report is frozen and replaced by a single attribute assignment, so the
observer never sees a half-built turn.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any

from formicary.analysis.analyzer import GameStateAnalyzer
from formicary.analysis.report import Analysis
from formicary.grid.position import Position
from formicary.runtime.client import ArenaClient
from formicary.runtime.config import BotConfig
from formicary.runtime.errors import ApiError, RegistrationError
from formicary.strategy.planner import StrategyPlanner
from formicary.strategy.report import Strategy
from formicary.tasks.assignment import Move
from formicary.tasks.planner import UnitTaskPlanner
from formicary.world.snapshot import WorldSnapshot

log = logging.getLogger(__name__)

AUTH_STATUSES = frozenset({401, 403})


@dataclass(frozen=True)
class TurnReport:
    """Everything decided in one turn, published as a unit.

    Attributes:
        snapshot: The arena state the turn was planned from.
        analysis: The analyzer's read of it.
        strategy: The chosen posture.
        moves: The move orders produced.
        threat_cells: Threat-map interest per cell at publish time.
    """

    snapshot: WorldSnapshot
    analysis: Analysis
    strategy: Strategy
    moves: tuple[Move, ...]
    threat_cells: tuple[tuple[Position, float], ...] = ()


class ColonyBot:
    """Runs the colony against the arena.

    Args:
        config: Runtime configuration.
        client: Arena client; built from ``config`` when omitted.
    """

    def __init__(self, config: BotConfig, client: ArenaClient | None = None) -> None:
        self.config = config
        self.client = client or ArenaClient(
            config.api_url,
            config.token,
            timeout=config.request_timeout,
        )
        self.analyzer = GameStateAnalyzer(config.build_threat_map())
        self.strategy_planner = StrategyPlanner()
        self.task_planner = UnitTaskPlanner(
            seed=config.seed,
            safety_radius=config.safety_radius,
            max_assignment_age=config.assignment_max_age,
        )
        self.latest: TurnReport | None = None
        self.waiting = True
        self.turns_played = 0
        self._stop = threading.Event()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def register(self) -> None:
        """Join a round, waiting for one to open when none is active.

        While no round is active the bot polls the round schedule and
        sleeps until the next start (at most ``round_poll_interval`` at a
        time) with ``waiting`` left True; there is no deadline.

        Raises:
            RegistrationError: If the arena rejects the token, keeps
                rejecting registration ``register_attempts`` times while a
                round is open, or the bot is stopped before joining.
        """
        attempts = max(1, self.config.register_attempts)
        rejected = 0
        self.waiting = True
        while True:
            try:
                self.client.register()
            except ApiError as exc:
                if exc.status in AUTH_STATUSES:
                    raise RegistrationError(
                        f"Arena rejected the team token: {exc}"
                    ) from exc
                delay = self._round_delay()
                if delay is None:
                    rejected += 1
                    log.warning(
                        "Registration attempt %d/%d failed: %s",
                        rejected,
                        attempts,
                        exc,
                    )
                    if rejected >= attempts:
                        raise RegistrationError(
                            f"Could not register after {attempts} attempt(s)"
                        ) from exc
                    delay = self.config.retry_backoff
                if self._stop.wait(delay):
                    raise RegistrationError("Stopped before joining a round") from exc
                continue
            log.info("Registered team %s", self.config.team_name)
            self.waiting = False
            return

    def _round_delay(self) -> float | None:
        """Seconds to wait for the next round, or None if one is open.

        An unreadable schedule also returns None, so the failure counts
        against ``register_attempts``.
        """
        try:
            schedule = self.client.get_rounds()
        except ApiError as exc:
            log.warning("Could not read the round schedule: %s", exc)
            return None
        if schedule.active is not None:
            return None
        poll = self.config.round_poll_interval
        upcoming = schedule.next_round
        remaining = schedule.seconds_until_next()
        if upcoming is None or remaining is None:
            log.info("No active or upcoming round, checking again in %.0fs", poll)
            return poll
        log.info("Waiting for round %s, starting in %.0fs", upcoming.name, remaining)
        return min(poll, max(remaining, self.config.retry_backoff))

    def stop(self) -> None:
        """Ask the loop to finish after the current turn."""
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def run(self, max_turns: int | None = None) -> None:
        """Play turns until stopped or ``max_turns`` turns have been played.

        A failed fetch, or any other failure while playing a turn, is
        logged and retried after ``retry_backoff`` seconds.  A failed
        dispatch is logged and the loop moves on to the next turn.  A
        snapshot of a turn already played is not planned again.
        """
        while not self._stop.is_set():
            if max_turns is not None and self.turns_played >= max_turns:
                break
            try:
                self._step()
            except ApiError as exc:
                log.error("Failed to fetch arena state: %s", exc)
                self._stop.wait(self.config.retry_backoff)
            except Exception:
                log.exception(
                    "Turn failed, retrying in %.1fs", self.config.retry_backoff
                )
                self._stop.wait(self.config.retry_backoff)

    def _step(self) -> None:
        snapshot = self.client.get_arena()
        last = self.latest
        # turn 0 is the parse default, so it is never treated as a repeat
        if last is not None and snapshot.turn and snapshot.turn == last.snapshot.turn:
            log.debug("Turn %d already played, waiting for the next", snapshot.turn)
        else:
            self.dispatch(self.play_turn(snapshot))
        self._stop.wait(self.config.turn_interval)

    # ------------------------------------------------------------------
    # One turn
    # ------------------------------------------------------------------

    def play_turn(self, snapshot: WorldSnapshot) -> list[Move]:
        """Analyse, plan and publish one turn.

        Args:
            snapshot: The arena state for this turn.

        Returns:
            The turn's move orders.
        """
        analysis = self.analyzer.analyze(snapshot)
        strategy = self.strategy_planner.determine_strategy(analysis, snapshot.turn)
        moves = self.task_planner.plan_unit_actions(analysis, strategy)

        self.latest = TurnReport(
            snapshot=snapshot,
            analysis=analysis,
            strategy=strategy,
            moves=tuple(moves),
            threat_cells=tuple(
                (pos, cell.interest)
                for pos, cell in self.analyzer.threat_map.cells.items()
            ),
        )
        self.turns_played += 1
        log.info(
            "Turn %d: %s, %d units, %d moves",
            snapshot.turn,
            strategy.name,
            analysis.units.counts.total,
            len(moves),
        )
        return moves

    def dispatch(self, moves: list[Move]) -> bool:
        """Send moves; return False (after logging) if the arena rejected them."""
        if not moves:
            return True
        try:
            self.client.send_moves(moves)
        except ApiError as exc:
            log.error("Failed to send %d moves: %s", len(moves), exc)
            return False
        return True

    # ------------------------------------------------------------------
    # Observer
    # ------------------------------------------------------------------

    def status(self) -> dict[str, Any]:
        """Return the observer payload built from the last published report."""
        report = self.latest
        if report is None:
            return {
                "type": "status",
                "waiting": self.waiting,
                "turn": None,
                "analysis": None,
                "strategy": None,
            }
        return {
            "type": "status",
            "waiting": self.waiting,
            "turn": report.analysis.turn,
            "analysis": report.analysis,
            "strategy": report.strategy,
        }
