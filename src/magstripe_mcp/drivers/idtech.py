"""IDTech vendor command protocol.

Setting command::

    <STX> <S> <FuncID> <Len> <FuncData> <ETX> <LRC>

Get setting command::

    <STX> <R> <FuncID> <ETX> <LRC>

Response::

    <ACK> [<STX> [<FuncID> <Len>] <FuncData> <ETX> <LRC>]

Frames go out as 8-byte feature reports. After a fixed settle delay the
response is polled out 8 bytes at a time until the device returns an
empty report.
"""

from __future__ import annotations

import logging
import time

from ..errors import LocalValidationError, ProtocolError
from ..protocol.commands import (
    IDTechBeep,
    IDTechCommand,
    IDTechProperty,
    build_idtech_command,
    build_idtech_get_property,
    build_idtech_set_property,
    decode_value,
)
from ..protocol.framing import IDTECH_CHUNK_SIZE, Frame, chunk_frame, extract_payload
from ..protocol.parser import IDTechResponseCode
from .base import Device, exclusive

logger = logging.getLogger(__name__)

IDTECH_VID = 0x0ACD
IDTECH_KB_PID = 0x2030
IDTECH_HID_PID = 0x2010

SETTLE_DELAY_S = 1.0
MAX_RESPONSE_READS = 256
PROPERTY_PREFIX_SIZE = 2  # FuncID + Len
ASCII_WHITESPACE = b" \t\n\v\f\r"


class IDTechDevice(Device):
    """IDTech SecureMag reader."""

    def __init__(self, transport, info, max_response_reads: int = MAX_RESPONSE_READS) -> None:
        super().__init__(transport, info)
        self._max_response_reads = max_response_reads

    def initialize(self) -> None:
        self.info.firmware_ver = self.get_firmware_ver()
        self.info.product_ver = self.get_product_ver()
        self.refresh()
        self.info.software_id = self.info.firmware_ver

    @exclusive
    def send_command(self, command: bytes) -> bytes:
        """Frame and send ``command``, then collect and unwrap the response.

        Returns:
            The bytes between STX and ETX, or the whole trimmed response
            when the markers are missing.

        Raises:
            TransportError: If any transfer fails.
            ProtocolError: If there is no response or it is not an ACK.
                The extracted payload rides along on the exception.
        """
        frame = Frame(command)
        logger.debug("Sending %r", frame)

        for chunk in chunk_frame(frame.to_bytes(), IDTECH_CHUNK_SIZE):
            self.transport.set_report(bytearray(chunk))

        time.sleep(SETTLE_DELAY_S)

        response = bytearray()
        for _ in range(self._max_response_reads):
            buf = bytearray(IDTECH_CHUNK_SIZE)
            n = self.transport.get_report(buf)
            if n == 0:
                break
            response += buf[:n]
        else:
            raise ProtocolError(
                f"Response did not end within {self._max_response_reads} reads",
                payload=bytes(response),
            )

        response = bytes(response).rstrip(b"\x00")
        if not response:
            raise ProtocolError("No response")

        code = IDTechResponseCode.from_byte(response[0])
        payload = extract_payload(response)

        if not code.ok:
            raise ProtocolError(
                f"Device command response {code}",
                code=code.value,
                description=code.description,
                payload=payload,
            )
        return payload

    # ─── PROPERTY STORE ──────────────────────────────────────────────

    @exclusive
    def get_property(self, prop: int) -> str:
        payload = self.send_command(build_idtech_get_property(prop))
        # Some firmware echoes <FuncID> <Len> before the value, some does not
        if len(payload) > PROPERTY_PREFIX_SIZE and payload[0] == prop:
            payload = payload[PROPERTY_PREFIX_SIZE:]
        return decode_value(payload.strip(ASCII_WHITESPACE))

    @exclusive
    def set_property(self, prop: int, value: str) -> None:
        self.send_command(build_idtech_set_property(prop, value))
        logger.debug("Set property 0x%02X on %s", prop, self.id())

    @exclusive
    def reset(self) -> None:
        self.send_command(build_idtech_command(IDTechCommand.RESET))
        logger.info("Reset %s", self.id())

    @exclusive
    def refresh(self) -> None:
        self.info.device_sn = self.get_device_sn()
        self.info.descriptor_sn = self.descriptor_sn()
        self.info.serial_number = self.info.device_sn

    # ─── NAMED PROPERTIES ────────────────────────────────────────────

    @exclusive
    def get_product_ver(self) -> str:
        payload = self.send_command(build_idtech_command(IDTechCommand.VERSION))
        return decode_value(payload.strip(ASCII_WHITESPACE))

    get_product_version = get_product_ver

    @exclusive
    def get_copyright(self) -> str:
        payload = self.send_command(build_idtech_command(IDTechCommand.COPYRIGHT))
        return decode_value(payload.strip(ASCII_WHITESPACE))

    def get_firmware_ver(self) -> str:
        return self.get_property(IDTechProperty.FIRMWARE_VER)

    def get_device_sn(self) -> str:
        return self.get_property(IDTechProperty.DEVICE_SN)

    def set_device_sn(self, value: str) -> None:
        self.set_property(IDTechProperty.DEVICE_SN, value)

    def erase_device_sn(self) -> None:
        self.set_property(IDTechProperty.DEVICE_SN, "")

    def set_beep(self, value: IDTechBeep | str) -> None:
        """Set beep tone and duration, one of the :class:`IDTechBeep` values."""
        try:
            beep = IDTechBeep(value)
        except ValueError as e:
            raise LocalValidationError(
                f"Unknown beep setting {value!r}. Valid: {[b.value for b in IDTechBeep]}"
            ) from e
        self.set_property(IDTechProperty.BEEP, beep.value)
