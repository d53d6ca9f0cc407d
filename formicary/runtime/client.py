"""ArenaClient — thin HTTP wrapper around the arena API.

Every call carries a timeout.  Transport failures, non-2xx statuses and
undecodable bodies all surface as ``ApiError`` so the turn loop has a
single exception to retry on.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

import requests

from formicary.runtime.errors import ApiError
from formicary.runtime.rounds import RoundSchedule
from formicary.tasks.assignment import Move
from formicary.world.snapshot import WorldSnapshot

log = logging.getLogger(__name__)


class ArenaClient:
    """Arena API client bound to one team token.

    Args:
        base_url: API root, e.g. ``http://host/api``.
        token: Team token sent as ``X-Auth-Token``.
        timeout: Seconds before a request is abandoned.
        session: HTTP session to use; a new one is created when omitted.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        if token:
            self.session.headers["X-Auth-Token"] = token
        else:
            log.warning("No API token configured; arena requests may be rejected")

    def register(self) -> Any:
        """Join the current round (the token identifies the team)."""
        return self._request("POST", "/register")

    def get_rounds(self) -> RoundSchedule:
        """Fetch the round schedule."""
        return RoundSchedule.from_dict(self._request("GET", "/rounds"))

    def get_arena(self) -> WorldSnapshot:
        """Fetch and parse the current turn's world state."""
        return WorldSnapshot.from_dict(self._request("GET", "/arena"))

    def send_moves(self, moves: Iterable[Move]) -> Any:
        """Submit move orders in the ``{"moves": [{"ant", "path"}]}`` shape."""
        payload = {"moves": [m.to_payload() for m in moves]}
        log.debug("Sending %d moves", len(payload["moves"]))
        return self._request("POST", "/move", payload)

    def close(self) -> None:
        self.session.close()

    def _request(
        self, method: str, endpoint: str, payload: dict[str, Any] | None = None
    ) -> Any:
        url = f"{self.base_url}{endpoint}"
        try:
            response = self.session.request(
                method, url, json=payload, timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise ApiError(f"{method} {endpoint} failed: {exc}") from exc

        if not response.ok:
            raise ApiError(
                f"{method} {endpoint} returned {response.status_code}: "
                f"{response.text[:200]}",
                status=response.status_code,
            )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ApiError(
                f"{method} {endpoint} returned invalid JSON",
                status=response.status_code,
            ) from exc
