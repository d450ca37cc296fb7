"""Magtek vendor command protocol.

Every command is one report of the device's control buffer size, sent
with a single SET_REPORT and answered in place by a single GET_REPORT.
Using the wrong buffer size makes the device stall the control pipe, so
the size is discovered once when the device is opened.
"""

from __future__ import annotations

import logging
import time

from ..errors import LocalValidationError, NegotiationError, ProtocolError, TransportError
from ..protocol.commands import (
    MagtekCommand,
    MagtekProperty,
    build_magtek_command,
    build_magtek_get_property,
    build_magtek_set_property,
    decode_value,
)
from ..protocol.framing import report_value
from ..protocol.parser import DeviceState, MagtekResponseCode, decode_state
from .base import Device, exclusive

logger = logging.getLogger(__name__)

MAGTEK_VID = 0x0801
SURESWIPE_KB_PID = 0x0001
MAGNESAFE_KB_PID = 0x0001
SURESWIPE_HID_PID = 0x0002
MAGNESAFE_HID_PID = 0x0011

BUFFER_SIZES = (24, 60)
DEFAULT_SN_LENGTH = 7
RESET_SETTLE_S = 5.0


class MagtekDevice(Device):
    """Magtek SureSwipe / MagneSafe reader."""

    def __init__(self, transport, info, strict_negotiation: bool = False) -> None:
        super().__init__(transport, info)
        self._strict_negotiation = strict_negotiation

    @property
    def buffer_size(self) -> int:
        if not self.info.buffer_size:
            raise LocalValidationError("Control buffer size has not been negotiated")
        return self.info.buffer_size

    def initialize(self) -> None:
        self.negotiate_buffer_size()
        self.info.software_id = self.get_software_id()
        self.info.product_ver = self.get_product_ver()
        self.refresh()
        self.info.firmware_ver = self.info.software_id

    @exclusive
    def negotiate_buffer_size(self) -> int:
        """Find the control buffer size by trying each candidate in turn.

        The first size for which both transfers succeed is kept. With
        ``strict_negotiation`` the response code must also be success.

        Raises:
            NegotiationError: If no candidate size works.
        """
        last_error: Exception | None = None

        for size in BUFFER_SIZES:
            report = build_magtek_get_property(size, MagtekProperty.SOFTWARE_ID)
            try:
                self.transport.set_report(report)
                self.transport.get_report(report)
            except TransportError as e:
                logger.debug("Buffer size %d rejected: %s", size, e)
                last_error = e
                continue

            code = MagtekResponseCode.from_byte(report[0])
            if self._strict_negotiation and not code.ok:
                logger.debug("Buffer size %d answered %s", size, code)
                last_error = ProtocolError(
                    f"Device command response {code}",
                    code=code.value,
                    description=code.description,
                )
                continue

            self.info.buffer_size = size
            logger.info("Negotiated %d-byte control buffer for %s", size, self.id())
            return size

        raise NegotiationError(
            f"No control buffer size in {list(BUFFER_SIZES)} worked"
        ) from last_error

    def _transact(self, report: bytearray) -> bytes:
        """Send ``report``, read the answer into it, and return the value."""
        self.transport.set_report(report)
        self.transport.get_report(report)

        code = MagtekResponseCode.from_byte(report[0])
        if not code.ok:
            raise ProtocolError(
                f"Device command response {code}",
                code=code.value,
                description=code.description,
            )
        return report_value(report)

    # ─── PROPERTY STORE ──────────────────────────────────────────────

    @exclusive
    def get_property(self, prop: int) -> str:
        report = build_magtek_get_property(self.buffer_size, prop)
        return decode_value(self._transact(report))

    @exclusive
    def set_property(self, prop: int, value: str) -> None:
        """Write a property, then refresh cached fields.

        A failed refresh is raised but the value stays written.
        """
        report = build_magtek_set_property(self.buffer_size, prop, value)
        self._transact(report)
        logger.debug("Set property 0x%02X on %s", prop, self.id())

        try:
            self.refresh()
        except Exception as e:
            logger.warning("Refresh after setting property 0x%02X failed: %s", prop, e)
            raise

    @exclusive
    def reset(self) -> None:
        """Reset the reader and wait for it to re-enumerate."""
        self._transact(build_magtek_command(self.buffer_size, MagtekCommand.RESET))
        logger.info("Reset %s, waiting %.0fs", self.id(), RESET_SETTLE_S)
        time.sleep(RESET_SETTLE_S)

    @exclusive
    def refresh(self) -> None:
        self.info.device_sn = self.get_device_sn()
        self.info.factory_sn = self.get_factory_sn()
        self.info.descriptor_sn = self.descriptor_sn()
        self.info.serial_number = self.info.device_sn

    @exclusive
    def get_state(self) -> DeviceState:
        report = build_magtek_command(self.buffer_size, MagtekCommand.GET_STATE)
        return decode_state(self._transact(report))

    # ─── NAMED PROPERTIES ────────────────────────────────────────────

    def get_software_id(self) -> str:
        return self.get_property(MagtekProperty.SOFTWARE_ID)

    def get_product_ver(self) -> str:
        value = self.get_property(MagtekProperty.PRODUCT_VER)
        # A lone byte here is filler, not a version
        return value if len(value) > 1 else ""

    def get_device_sn(self) -> str:
        return self.get_property(MagtekProperty.DEVICE_SN)

    def set_device_sn(self, value: str) -> None:
        self.set_property(MagtekProperty.DEVICE_SN, value)

    def erase_device_sn(self) -> None:
        self.set_property(MagtekProperty.DEVICE_SN, "")

    def get_factory_sn(self) -> str:
        value = self.get_property(MagtekProperty.FACTORY_SN)
        return value if len(value) > 1 else ""

    def set_factory_sn(self, value: str) -> None:
        """Write the factory serial number.

        The device refuses this once a factory serial number exists.
        """
        self.set_property(MagtekProperty.FACTORY_SN, value)

    @exclusive
    def copy_factory_sn(self, length: int) -> None:
        """Copy the first ``length`` factory serial characters to the device SN.

        Raises:
            LocalValidationError: If there is no factory serial number.
        """
        if length < 0:
            raise LocalValidationError(f"Length must not be negative, got {length}")

        factory_sn = self.get_factory_sn()
        if not factory_sn:
            raise LocalValidationError("No factory serial number")

        self.set_device_sn(factory_sn[: min(length, len(factory_sn))])

    def set_default_sn(self) -> None:
        self.copy_factory_sn(DEFAULT_SN_LENGTH)
