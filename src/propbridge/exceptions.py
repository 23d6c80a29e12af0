"""Custom exception hierarchy for propbridge."""

from __future__ import annotations


class PropError(Exception):
    """Base exception for all propbridge errors."""


class PropConfigError(PropError):
    """Invalid or missing configuration."""


class ProtocolError(PropError):
    """Malformed or unrecognized payload on the bus or the local link.

    Raised by the parsing helpers only.  Channel boundaries catch it and
    drop the offending message.
    """

    def __init__(self, message: str, *, channel: str = "") -> None:
        self.channel = channel
        super().__init__(message)


class ActuationError(PropError):
    """The line-setting process could not be started."""

    def __init__(self, message: str, *, locked: bool | None = None) -> None:
        self.locked = locked
        super().__init__(message)
