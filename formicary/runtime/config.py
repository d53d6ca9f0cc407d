"""Config — load bot parameters from YAML files.

Every tunable the runtime needs (arena endpoint, timing, retry policy,
planner knobs and threat-map overrides) is read from YAML into a typed
dataclass here.  The ``API_TOKEN``, ``API_URL`` and ``TEAM_NAME``
environment variables win over the file when set.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from formicary.intel.threat_map import ThreatMap
from formicary.runtime.errors import ConfigError

TOKEN_ENV_VAR = "API_TOKEN"
URL_ENV_VAR = "API_URL"
TEAM_ENV_VAR = "TEAM_NAME"


@dataclass
class BotConfig:
    """Top-level bot configuration.

    Attributes:
        team_name: Name registered with the arena.
        api_url: Base URL of the arena API.
        token: Auth token sent as ``X-Auth-Token``.
        request_timeout: Seconds before any single request is abandoned.
        turn_interval: Seconds slept between turns.
        retry_backoff: Seconds slept after a failed turn or registration.
        register_attempts: Rejected registrations tolerated while a round is
            open before giving up.
        round_poll_interval: Longest sleep between round-schedule checks
            while waiting for a round to open.
        status_interval: Seconds between viewer refreshes.
        seed: RNG seed for patrol targets (None for nondeterministic).
        log_level: Root logging level name.
        safety_radius: Steps within this distance of an enemy are avoided.
        assignment_max_age: Seconds before a sticky task is dropped.
        threat_map: Overrides for ``ThreatMap`` tunables.
    """

    team_name: str = "formicary"
    api_url: str = "http://localhost:8080/api"
    token: str = ""
    request_timeout: float = 10.0
    turn_interval: float = 0.5
    retry_backoff: float = 2.0
    register_attempts: int = 5
    round_poll_interval: float = 10.0
    status_interval: float = 1.0
    seed: int | None = None
    log_level: str = "INFO"

    safety_radius: int = 2
    assignment_max_age: float = 30.0

    threat_map: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_yaml(cls, path: str | Path) -> BotConfig:
        """Load configuration from a YAML file.

        Args:
            path: Path to the YAML config file.

        Returns:
            A populated BotConfig instance.

        Raises:
            ConfigError: If the file is missing, unparsable, or not a
                mapping.
        """
        path = Path(path)
        try:
            with path.open("r") as f:
                data = yaml.safe_load(f) or {}
        except FileNotFoundError as exc:
            raise ConfigError(f"Config file not found: {path}") from exc
        except yaml.YAMLError as exc:
            raise ConfigError(f"Config file {path} is not valid YAML: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")

        threat_map = data.get("threat_map") or {}
        if not isinstance(threat_map, dict):
            raise ConfigError("threat_map must be a mapping")
        known = {f.name for f in fields(ThreatMap) if f.init} - {"cells"}
        unknown = set(threat_map) - known
        if unknown:
            raise ConfigError(f"Unknown threat_map keys: {', '.join(sorted(unknown))}")

        config = cls(
            team_name=data.get("team_name", cls.team_name),
            api_url=data.get("api_url", cls.api_url),
            token=data.get("token", cls.token) or "",
            request_timeout=data.get("request_timeout", cls.request_timeout),
            turn_interval=data.get("turn_interval", cls.turn_interval),
            retry_backoff=data.get("retry_backoff", cls.retry_backoff),
            register_attempts=data.get("register_attempts", cls.register_attempts),
            round_poll_interval=data.get(
                "round_poll_interval",
                cls.round_poll_interval,
            ),
            status_interval=data.get("status_interval", cls.status_interval),
            seed=data.get("seed", cls.seed),
            log_level=data.get("log_level", cls.log_level),
            safety_radius=data.get("safety_radius", cls.safety_radius),
            assignment_max_age=data.get(
                "assignment_max_age",
                cls.assignment_max_age,
            ),
            threat_map=threat_map,
        )
        return config.with_env()

    def with_env(self) -> BotConfig:
        """Apply environment overrides in place and return self."""
        token = os.environ.get(TOKEN_ENV_VAR)
        if token:
            self.token = token
        self.api_url = os.environ.get(URL_ENV_VAR) or self.api_url
        self.team_name = os.environ.get(TEAM_ENV_VAR) or self.team_name
        return self

    def build_threat_map(self) -> ThreatMap:
        return ThreatMap(**self.threat_map)
