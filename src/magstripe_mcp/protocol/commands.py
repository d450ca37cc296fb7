"""Command opcodes, NVRAM property IDs, and request builders.

Magtek requests are whole fixed-size reports; IDTech requests are raw
command bytes that still have to go through :func:`~.framing.wrap_frame`.
"""

from __future__ import annotations

from enum import Enum, IntEnum

from ..errors import LocalValidationError
from .framing import build_report


class MagtekCommand(IntEnum):
    """Magtek vendor command opcodes."""

    GET_PROPERTY = 0x00
    SET_PROPERTY = 0x01
    RESET = 0x02
    GET_STATE = 0x14


class MagtekProperty(IntEnum):
    """Magtek NVRAM property IDs."""

    SOFTWARE_ID = 0x00
    DEVICE_SN = 0x01
    FACTORY_SN = 0x03
    PRODUCT_VER = 0x04


class IDTechCommand(IntEnum):
    """IDTech command bytes."""

    COPYRIGHT = 0x38
    VERSION = 0x39
    RESET = 0x49
    REVIEW_SETTING = 0x52  # 'R'
    SEND_SETTING = 0x53  # 'S'


class IDTechProperty(IntEnum):
    """IDTech setting function IDs."""

    BEEP = 0x11
    FIRMWARE_VER = 0x22
    DEVICE_SN = 0x4E


class IDTechBeep(str, Enum):
    """Values accepted by the IDTech beep setting."""

    NONE = "0"
    LOW_LONG = "1"
    HIGH_LONG = "2"
    HIGH_SHORT = "3"
    LOW_SHORT = "4"


def encode_value(value: str) -> bytes:
    """Encode a property value as ASCII, the only charset the readers store."""
    try:
        data = value.encode("ascii")
    except UnicodeEncodeError as e:
        raise LocalValidationError(f"Property value must be ASCII: {value!r}") from e
    if len(data) > 0xFF:
        raise LocalValidationError(
            f"Property value must be at most 255 bytes, got {len(data)}"
        )
    return data


def decode_value(data: bytes) -> str:
    """Decode a property value read back from the device."""
    return data.decode("ascii", errors="replace")


# ─── MAGTEK ──────────────────────────────────────────────────────────


def build_magtek_get_property(buffer_size: int, prop: int) -> bytearray:
    """Build a get-property report: ``00 01 <prop>`` plus padding."""
    return build_report(buffer_size, MagtekCommand.GET_PROPERTY, bytes([prop]))


def build_magtek_set_property(buffer_size: int, prop: int, value: str) -> bytearray:
    """Build a set-property report: ``01 <len+1> <prop> <value>`` plus padding.

    Raises:
        LocalValidationError: If the value is not ASCII or would overflow
            the negotiated buffer.
    """
    data = bytes([prop]) + encode_value(value)
    return build_report(buffer_size, MagtekCommand.SET_PROPERTY, data)


def build_magtek_command(buffer_size: int, command: MagtekCommand) -> bytearray:
    """Build a report for a command that takes no data (reset, get-state)."""
    return build_report(buffer_size, command)


# ─── IDTECH ──────────────────────────────────────────────────────────


def build_idtech_get_property(prop: int) -> bytes:
    """Build a review-setting command: ``R <prop>``."""
    return bytes([IDTechCommand.REVIEW_SETTING, prop])


def build_idtech_set_property(prop: int, value: str) -> bytes:
    """Build a send-setting command: ``S <prop> <len> <value>``."""
    data = encode_value(value)
    return bytes([IDTechCommand.SEND_SETTING, prop, len(data)]) + data


def build_idtech_command(command: IDTechCommand) -> bytes:
    """Build a single-opcode command (version, copyright, reset)."""
    return bytes([command])
