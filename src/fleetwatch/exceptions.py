"""Custom exception hierarchy for fleetwatch."""

from __future__ import annotations


class FleetwatchError(Exception):
    """Base exception for all fleetwatch errors."""


class FleetwatchConfigError(FleetwatchError):
    """Invalid or missing configuration."""


class FleetwatchTransportError(FleetwatchError):
    """Realtime channel failure (connect refused, dropped session, probe timeout)."""

    def __init__(self, message: str, *, endpoint: str = "") -> None:
        self.endpoint = endpoint
        super().__init__(message)


class FleetwatchProtocolError(FleetwatchError):
    """Inbound frame could not be decoded into a message object."""

    def __init__(self, message: str, *, raw: str = "") -> None:
        self.raw = raw
        super().__init__(message)


class FleetwatchServerError(FleetwatchError):
    """The telemetry source reported an error over the channel.

    Server errors are informational: the connection stays up and the
    instance is handed to the ``on_server_error`` callback rather than
    raised.
    """

    def __init__(self, message: str, *, code: str = "") -> None:
        self.code = code
        super().__init__(message)
