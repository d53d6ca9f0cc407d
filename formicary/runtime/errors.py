"""Exception types raised by the runtime layer.

The decision core never raises for bad data; these cover the network and
startup failures that the bootstrap has to decide about.
"""

from __future__ import annotations


class FormicaryError(Exception):
    """Base class for every error raised by this package."""


class ApiError(FormicaryError):
    """A single arena request failed.  Transient; the turn is retried.

    Attributes:
        status: HTTP status code, or None if no response arrived.
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class RegistrationError(FormicaryError):
    """The bot could not join a round.  Fatal at startup."""


class ConfigError(FormicaryError):
    """The configuration file is missing or malformed.  Fatal at startup."""
