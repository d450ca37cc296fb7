"""Response code classification and Magtek device-state decoding."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import ClassVar, Mapping

UNKNOWN_RESULT = "Unknown result code"


@dataclass(frozen=True)
class ResponseCode:
    """A vendor result byte together with what it means.

    Each vendor subclass defines exactly one success value and a table of
    known failure descriptions. Bytes missing from the table are still
    valid codes; they describe themselves as an unknown result.
    """

    value: int

    SUCCESS: ClassVar[int] = 0x00
    DESCRIPTIONS: ClassVar[Mapping[int, str]] = MappingProxyType({})

    @classmethod
    def from_byte(cls, value: int) -> ResponseCode:
        return cls(value & 0xFF)

    @property
    def ok(self) -> bool:
        return self.value == self.SUCCESS

    @property
    def known(self) -> bool:
        return self.value in self.DESCRIPTIONS

    @property
    def description(self) -> str:
        return self.DESCRIPTIONS.get(self.value, UNKNOWN_RESULT)

    def __str__(self) -> str:
        return f"0x{self.value:02X} ({self.description})"


@dataclass(frozen=True)
class MagtekResponseCode(ResponseCode):
    """Result byte in position 0 of a Magtek response report."""

    SUCCESS: ClassVar[int] = 0x00
    DESCRIPTIONS: ClassVar[Mapping[int, str]] = MappingProxyType({
        0x00: "Success",
        0x01: "Failure",
        0x02: "Bad parameter",
        0x05: "Delayed, request refused by anti-hacking timer",
        0x07: "Invalid operation, value may already be set",
    })


@dataclass(frozen=True)
class IDTechResponseCode(ResponseCode):
    """Leading byte of an IDTech response."""

    SUCCESS: ClassVar[int] = 0x06
    DESCRIPTIONS: ClassVar[Mapping[int, str]] = MappingProxyType({
        0x06: "Acknowledge",
        0x15: "Negative acknowledge",
        0x16: "Unknown ID",
        0x17: "Already in POS mode",
        0xFD: "Negative acknowledge (keyboard interface)",
    })


# ─── DEVICE STATE ────────────────────────────────────────────────────

DEVICE_STATES: Mapping[int, str] = MappingProxyType({
    0x00: "Waiting for activate authenticated mode",
    0x01: "Waiting for activation challenge reply",
    0x02: "Waiting for swipe",
    0x03: "Waiting for anti-hacking delay to expire",
})

STATE_ANTECEDENTS: Mapping[int, str] = MappingProxyType({
    0x00: "Powered up",
    0x01: "Authentication succeeded",
    0x02: "Swipe succeeded",
    0x03: "Swipe failed",
    0x04: "Authentication failed",
    0x05: "Authentication cancelled",
    0x06: "Swipe timed out",
    0x07: "Deactivated by command",
    0x08: "Activation challenge reply timed out",
})


@dataclass(frozen=True)
class DeviceState:
    """Magtek reader state: current state plus the event that led to it."""

    state: int | None
    antecedent: int | None

    @property
    def state_description(self) -> str:
        return _lookup(DEVICE_STATES, self.state, "state")

    @property
    def antecedent_description(self) -> str:
        return _lookup(STATE_ANTECEDENTS, self.antecedent, "antecedent")

    @property
    def description(self) -> str:
        return f"{self.state_description}; {self.antecedent_description}"

    def __str__(self) -> str:
        return self.description


def _lookup(table: Mapping[int, str], value: int | None, what: str) -> str:
    if value is None:
        return f"Undefined {what} (missing)"
    if value in table:
        return table[value]
    return f"Undefined {what} (0x{value:02X})"


def decode_state(data: bytes) -> DeviceState:
    """Decode the two-byte value of a Magtek get-state response.

    Never raises: missing bytes decode as undefined.
    """
    state = data[0] if len(data) > 0 else None
    antecedent = data[1] if len(data) > 1 else None
    return DeviceState(state=state, antecedent=antecedent)
