"""Shared fixtures for the Formicary test suite."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from formicary.analysis.analyzer import GameStateAnalyzer
from formicary.grid.position import Position
from formicary.runtime.config import BotConfig
from formicary.runtime.errors import ApiError
from formicary.runtime.rounds import Round, RoundSchedule
from formicary.tasks.assignment import Move
from formicary.world.entities import Cargo, Resource, ResourceType, Unit, UnitType
from formicary.world.snapshot import WorldSnapshot

HOME = Position(0, 0)
OPEN_ROUND = RoundSchedule(rounds=(Round("open", "active"),))


def unit(
    uid: str,
    q: int,
    r: int,
    unit_type: UnitType = UnitType.WORKER,
    cargo: Cargo | None = None,
) -> Unit:
    return Unit(
        id=uid,
        position=Position(q, r),
        type=unit_type,
        health=100,
        cargo=cargo or Cargo(),
    )


def resource(
    q: int,
    r: int,
    resource_type: ResourceType = ResourceType.APPLE,
    amount: int = 5,
) -> Resource:
    return Resource(position=Position(q, r), type=resource_type, amount=amount)


def snapshot(
    turn: int = 1,
    units: tuple[Unit, ...] = (),
    enemies: tuple[Unit, ...] = (),
    resources: tuple[Resource, ...] = (),
    home: tuple[Position, ...] = (HOME,),
    enemy_bases: tuple[Position, ...] = (),
    score: int = 0,
) -> WorldSnapshot:
    return WorldSnapshot(
        turn=turn,
        score=score,
        units=units,
        enemies=enemies,
        resources=resources,
        home=home,
        enemy_bases=enemy_bases,
    )


@pytest.fixture
def make_unit() -> Callable[..., Unit]:
    """Factory for units: ``make_unit(id, q, r, type, cargo)``."""
    return unit


@pytest.fixture
def make_resource() -> Callable[..., Resource]:
    """Factory for resources: ``make_resource(q, r, type, amount)``."""
    return resource


@pytest.fixture
def make_snapshot() -> Callable[..., WorldSnapshot]:
    """Factory for snapshots with the anthill at the origin by default."""
    return snapshot


@pytest.fixture
def analyzer() -> GameStateAnalyzer:
    """An analyzer with a fresh default threat map."""
    return GameStateAnalyzer()


@pytest.fixture
def quiet_config() -> BotConfig:
    """Config with no sleeping between turns or retries."""
    return BotConfig(
        token="test-token",
        turn_interval=0.0,
        retry_backoff=0.0,
        register_attempts=3,
        round_poll_interval=0.0,
        seed=7,
    )


class FakeClient:
    """In-memory stand-in for ArenaClient.

    Attributes:
        snapshots: Queue of snapshots (or exceptions) returned by ``get_arena``.
        register_failures: Number of ``register`` calls that raise first.
        register_status: HTTP status carried by those failures.
        rounds: Schedule returned by ``get_rounds`` (one open round by default).
        sent: Every move batch passed to ``send_moves``.
        fail_moves: When True, ``send_moves`` raises ApiError.
    """

    def __init__(
        self,
        snapshots: list[Any] | None = None,
        register_failures: int = 0,
        register_status: int = 409,
        rounds: RoundSchedule | None = None,
    ) -> None:
        self.snapshots = list(snapshots or [])
        self.register_failures = register_failures
        self.register_status = register_status
        self.rounds = rounds if rounds is not None else OPEN_ROUND
        self.rounds_calls = 0
        self.register_calls = 0
        self.sent: list[list[Move]] = []
        self.fail_moves = False
        self.closed = False

    def register(self) -> dict[str, Any]:
        self.register_calls += 1
        if self.register_calls <= self.register_failures:
            raise ApiError("registration refused", status=self.register_status)
        return {"ok": True}

    def get_rounds(self) -> RoundSchedule:
        self.rounds_calls += 1
        return self.rounds

    def get_arena(self) -> WorldSnapshot:
        if not self.snapshots:
            raise ApiError("no more turns")
        item = self.snapshots.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def send_moves(self, moves: list[Move]) -> None:
        if self.fail_moves:
            raise ApiError("rejected", status=400)
        self.sent.append(list(moves))

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def make_client() -> Callable[..., FakeClient]:
    """Factory for FakeClient; see its attributes for the keyword options."""
    return FakeClient
