"""USB connection to a magnetic-stripe card reader.

Supports both ``hidapi`` (preferred) and ``pyusb`` backends. Both
vendor protocols use HID feature reports on the control pipe, so with
hidapi a transfer maps onto ``send_feature_report`` /
``get_feature_report``; with pyusb it is a plain ``ctrl_transfer``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..errors import LocalValidationError, TransportError
from .base import (
    FEATURE_REPORT,
    REQ_GET_REPORT,
    REQ_SET_REPORT,
    Direction,
    Recipient,
    RequestType,
    Transport,
    request_type_byte,
)

logger = logging.getLogger(__name__)

HID_INTERFACE = 0
FEATURE_REPORT_ID = 0
TRANSFER_TIMEOUT_MS = 1000


@dataclass
class DeviceDescriptor:
    """Identification read from the USB device descriptor."""

    vendor_id: int = 0
    product_id: int = 0
    manufacturer: str = ""
    product: str = ""
    serial_number: str = ""
    bus_number: int = 0
    bus_address: int = 0
    usb_spec: str = ""
    device_ver: str = ""
    path: str = ""


class USBConnection(Transport):
    """Manages the USB connection to a card reader.

    Usage::

        conn = USBConnection(0x0801, 0x0002)
        conn.open()
        conn.set_report(report)
        conn.get_report(report)
        conn.close()
    """

    def __init__(
        self,
        vendor_id: int,
        product_id: int,
        timeout_ms: int = TRANSFER_TIMEOUT_MS,
    ) -> None:
        self._vendor_id = vendor_id
        self._product_id = product_id
        self._timeout_ms = timeout_ms
        self._device = None
        self._backend: str = ""
        self._connected = False
        self._descriptor = DeviceDescriptor(vendor_id=vendor_id, product_id=product_id)

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def backend(self) -> str:
        return self._backend

    @property
    def descriptor(self) -> DeviceDescriptor:
        return self._descriptor

    def open(self) -> DeviceDescriptor:
        """Open the reader, trying hidapi first, then pyusb.

        Returns:
            DeviceDescriptor with USB descriptor information.

        Raises:
            ConnectionError: If the device cannot be found or opened.
        """
        try:
            return self._open_hidapi()
        except Exception as e:
            logger.debug("hidapi backend failed: %s, trying pyusb", e)

        try:
            return self._open_pyusb()
        except Exception as e:
            raise ConnectionError(
                f"Could not connect to card reader "
                f"({self._vendor_id:#06x}:{self._product_id:#06x}). "
                f"Ensure the device is connected and you have permissions. "
                f"Last error: {e}"
            ) from e

    def _open_hidapi(self) -> DeviceDescriptor:
        """Open using the hidapi library."""
        import hid

        device = hid.device()
        device.open(self._vendor_id, self._product_id)
        device.set_nonblocking(False)

        self._device = device
        self._backend = "hidapi"
        self._connected = True
        self._descriptor = DeviceDescriptor(
            vendor_id=self._vendor_id,
            product_id=self._product_id,
            manufacturer=device.get_manufacturer_string() or "",
            product=device.get_product_string() or "",
            serial_number=device.get_serial_number_string() or "",
        )

        logger.info(
            "Connected via hidapi: %s %s",
            self._descriptor.manufacturer,
            self._descriptor.product,
        )
        return self._descriptor

    def _open_pyusb(self) -> DeviceDescriptor:
        """Open using pyusb + libusb."""
        import usb.core
        import usb.util

        dev = usb.core.find(idVendor=self._vendor_id, idProduct=self._product_id)
        if dev is None:
            raise ConnectionError("Device not found via pyusb")

        # Detach kernel driver if needed
        if dev.is_kernel_driver_active(HID_INTERFACE):
            dev.detach_kernel_driver(HID_INTERFACE)

        usb.util.claim_interface(dev, HID_INTERFACE)

        self._device = dev
        self._backend = "pyusb"
        self._connected = True
        self._descriptor = DeviceDescriptor(
            vendor_id=self._vendor_id,
            product_id=self._product_id,
            manufacturer=_get_string(dev, dev.iManufacturer),
            product=_get_string(dev, dev.iProduct),
            serial_number=_get_string(dev, dev.iSerialNumber),
            bus_number=dev.bus or 0,
            bus_address=dev.address or 0,
            usb_spec=_bcd(dev.bcdUSB),
            device_ver=_bcd(dev.bcdDevice),
        )

        logger.info(
            "Connected via pyusb: %s %s",
            self._descriptor.manufacturer,
            self._descriptor.product,
        )
        return self._descriptor

    def close(self) -> None:
        """Close the USB connection."""
        if not self._connected:
            return

        try:
            if self._backend == "hidapi":
                self._device.close()
            elif self._backend == "pyusb":
                import usb.util
                usb.util.release_interface(self._device, HID_INTERFACE)
                usb.util.dispose_resources(self._device)
        except Exception as e:
            logger.warning("Error closing device: %s", e)
        finally:
            self._device = None
            self._connected = False
            logger.info("Disconnected")

    def serial_number(self) -> str:
        """Re-read the descriptor serial number from the device."""
        if not self._connected:
            raise ConnectionError("Not connected to device")

        try:
            if self._backend == "hidapi":
                serial = self._device.get_serial_number_string() or ""
            else:
                serial = _get_string(self._device, self._device.iSerialNumber)
        except Exception as e:
            raise TransportError(f"Could not read descriptor serial number: {e}") from e

        self._descriptor.serial_number = serial
        return serial

    def reset_port(self) -> None:
        """Reset the USB port the reader is attached to.

        Only the pyusb backend can do this; hidapi has no port reset.

        Raises:
            ConnectionError: If not connected.
            LocalValidationError: If the backend cannot reset the port.
            TransportError: If the reset fails.
        """
        if not self._connected:
            raise ConnectionError("Not connected to device")
        if self._backend != "pyusb":
            raise LocalValidationError(
                f"USB port reset is not available with the {self._backend} backend"
            )

        try:
            self._device.reset()
        except Exception as e:
            raise TransportError(f"USB port reset failed: {e}") from e
        logger.info("Reset USB port of %04x:%04x", self._vendor_id, self._product_id)

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
        """Perform one control transfer on the open device.

        Raises:
            ConnectionError: If not connected.
            TransportError: If the backend reports a failure.
        """
        if not self._connected:
            raise ConnectionError("Not connected to device")

        try:
            if self._backend == "hidapi":
                return self._hidapi_transfer(direction, request, value, buffer)
            elif self._backend == "pyusb":
                return self._pyusb_transfer(
                    request_type_byte(direction, request_type, recipient),
                    request,
                    value,
                    index,
                    direction,
                    buffer,
                )
            else:
                raise RuntimeError(f"Unknown backend: {self._backend}")
        except TransportError:
            raise
        except Exception as e:
            raise TransportError(
                f"Control transfer 0x{request:02X} failed: {e}"
            ) from e

    def _pyusb_transfer(
        self,
        bm_request_type: int,
        request: int,
        value: int,
        index: int,
        direction: Direction,
        buffer: bytearray,
    ) -> int:
        if direction == Direction.OUT:
            return self._device.ctrl_transfer(
                bm_request_type, request, value, index, bytes(buffer),
                timeout=self._timeout_ms,
            )

        data = self._device.ctrl_transfer(
            bm_request_type, request, value, index, len(buffer),
            timeout=self._timeout_ms,
        )
        buffer[: len(data)] = bytes(data)
        return len(data)

    def _hidapi_transfer(
        self,
        direction: Direction,
        request: int,
        value: int,
        buffer: bytearray,
    ) -> int:
        # hidapi only exposes feature reports, so only those transfers map.
        if value != FEATURE_REPORT | FEATURE_REPORT_ID:
            raise TransportError(f"hidapi cannot send report value 0x{value:04X}")

        if direction == Direction.OUT and request == REQ_SET_REPORT:
            n = self._device.send_feature_report(bytes([FEATURE_REPORT_ID]) + bytes(buffer))
            if n < 0:
                raise TransportError(self._device.error() or "send_feature_report failed")
            # hidapi counts the report ID byte
            return max(n - 1, 0)

        if direction == Direction.IN and request == REQ_GET_REPORT:
            data = self._device.get_feature_report(FEATURE_REPORT_ID, len(buffer) + 1)
            if data is None:
                raise TransportError(self._device.error() or "get_feature_report failed")
            data = bytes(data[1:])
            buffer[: len(data)] = data
            return len(data)

        raise TransportError(
            f"hidapi cannot perform request 0x{request:02X} "
            f"in direction 0x{int(direction):02X}"
        )


def _get_string(dev, index: int) -> str:
    if not index:
        return ""
    import usb.util
    return usb.util.get_string(dev, index) or ""


def _bcd(value: int | None) -> str:
    if value is None:
        return ""
    return f"{(value >> 8) & 0xFF:x}.{(value >> 4) & 0x0F:x}{value & 0x0F:x}"
