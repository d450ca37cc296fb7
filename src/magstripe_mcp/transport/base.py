"""Abstract control-transfer transport that the protocol drivers talk to.

Both vendor protocols ride on HID feature reports sent through the
default control pipe. A transport only needs to know how to perform a
single blocking control transfer; :meth:`Transport.set_report` and
:meth:`Transport.get_report` pin down the flags every driver uses.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from enum import IntEnum

from ..errors import LocalValidationError

logger = logging.getLogger(__name__)

REQ_GET_REPORT = 0x01
REQ_SET_REPORT = 0x09
REQ_GET_DESCRIPTOR = 0x06

FEATURE_REPORT = 0x0300
CONTROL_INTERFACE = 0x0000


class Direction(IntEnum):
    OUT = 0x00
    IN = 0x80


class RequestType(IntEnum):
    STANDARD = 0x00
    CLASS = 0x20
    VENDOR = 0x40


class Recipient(IntEnum):
    DEVICE = 0x00
    INTERFACE = 0x01
    ENDPOINT = 0x02
    OTHER = 0x03


def request_type_byte(
    direction: Direction, request_type: RequestType, recipient: Recipient
) -> int:
    """Combine the three flag groups into a ``bmRequestType`` byte."""
    return direction | request_type | recipient


class Transport(ABC):
    """One open USB device handle capable of control transfers.

    A handle must not be shared by two protocol operations at the same
    time; the drivers serialize their own calls.
    """

    @abstractmethod
    def control_transfer(
        self,
        direction: Direction,
        request_type: RequestType,
        recipient: Recipient,
        request: int,
        value: int,
        index: int,
        buffer: bytearray,
    ) -> int:
        """Perform a single blocking control transfer.

        For ``Direction.IN`` the bytes read are written into ``buffer``
        in place.

        Returns:
            Number of bytes transferred.

        Raises:
            TransportError: If the transfer fails.
        """

    @abstractmethod
    def serial_number(self) -> str:
        """Return the serial number string from the USB device descriptor."""

    def reset_port(self) -> None:
        """Perform a USB port reset, re-enumerating the device.

        Raises:
            LocalValidationError: If this transport cannot reset the port.
            TransportError: If the reset fails.
        """
        raise LocalValidationError(f"{type(self).__name__} cannot reset the USB port")

    def set_report(self, buffer: bytearray) -> int:
        """Send ``buffer`` to the device as a HID feature report."""
        n = self.control_transfer(
            Direction.OUT,
            RequestType.CLASS,
            Recipient.INTERFACE,
            REQ_SET_REPORT,
            FEATURE_REPORT,
            CONTROL_INTERFACE,
            buffer,
        )
        logger.debug("SET_REPORT %d bytes: %s", n, bytes(buffer).hex(" "))
        return n

    def get_report(self, buffer: bytearray) -> int:
        """Read a HID feature report from the device into ``buffer``."""
        n = self.control_transfer(
            Direction.IN,
            RequestType.CLASS,
            Recipient.INTERFACE,
            REQ_GET_REPORT,
            FEATURE_REPORT,
            CONTROL_INTERFACE,
            buffer,
        )
        logger.debug("GET_REPORT %d bytes: %s", n, bytes(buffer[:n]).hex(" "))
        return n
