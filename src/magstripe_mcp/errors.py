"""Exception hierarchy for the card reader protocol engine."""

from __future__ import annotations


class MagstripeError(Exception):
    """Base class for every error raised by this package."""


class TransportError(MagstripeError, IOError):
    """A control transfer failed at the USB layer.

    The backend exception is chained as ``__cause__``.
    """


class ProtocolError(MagstripeError):
    """The device rejected a command or answered with garbage.

    Attributes:
        code: Raw response code byte, or ``None`` when there was no
            usable response at all.
        description: Human-readable meaning of ``code``.
        payload: Whatever payload could still be extracted from the
            response. IDTech errors keep it so callers can inspect it.
    """

    def __init__(
        self,
        message: str,
        code: int | None = None,
        description: str = "",
        payload: bytes = b"",
    ) -> None:
        super().__init__(message)
        self.code = code
        self.description = description
        self.payload = payload


class NegotiationError(MagstripeError):
    """No candidate control buffer size worked for a Magtek device."""


class LocalValidationError(MagstripeError, ValueError):
    """A request was refused before anything was sent to the device."""
