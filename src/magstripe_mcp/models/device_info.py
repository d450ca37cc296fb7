"""Cached identification and NVRAM fields for one card reader."""

from __future__ import annotations

import socket
from dataclasses import asdict, dataclass
from enum import Enum

from ..transport.usb_connection import DeviceDescriptor


class DeviceSource(str, Enum):
    """What a device record was built from."""

    LIVE = "live"  # open handle, protocol calls allowed
    DESCRIPTOR = "descriptor"  # descriptor data only
    EMPTY = "empty"  # nothing, e.g. a record to be filled in later


@dataclass
class DeviceInfo:
    """Device record that drivers keep current after refreshes.

    ``serial_number`` mirrors ``device_sn`` once a vendor driver has
    refreshed; before that it holds the descriptor serial number.
    """

    host_name: str = ""
    vendor_id: str = ""
    product_id: str = ""
    serial_number: str = ""
    vendor_name: str = ""
    product_name: str = ""
    product_ver: str = ""
    firmware_ver: str = ""
    software_id: str = ""

    bus_number: int = 0
    bus_address: int = 0
    buffer_size: int = 0
    usb_spec: str = ""
    device_ver: str = ""
    object_type: str = ""

    device_sn: str = ""
    factory_sn: str = ""
    descriptor_sn: str = ""

    source: DeviceSource = DeviceSource.EMPTY

    @classmethod
    def from_descriptor(
        cls,
        desc: DeviceDescriptor,
        source: DeviceSource = DeviceSource.DESCRIPTOR,
    ) -> DeviceInfo:
        return cls(
            host_name=socket.gethostname(),
            vendor_id=f"{desc.vendor_id:04x}",
            product_id=f"{desc.product_id:04x}",
            serial_number=desc.serial_number,
            vendor_name=desc.manufacturer,
            product_name=desc.product,
            bus_number=desc.bus_number,
            bus_address=desc.bus_address,
            usb_spec=desc.usb_spec,
            device_ver=desc.device_ver,
            descriptor_sn=desc.serial_number,
            source=source,
        )

    @classmethod
    def empty(cls) -> DeviceInfo:
        return cls(host_name=socket.gethostname())

    def id(self) -> str:
        """Identifier used for device records: serial number, else bus position."""
        if self.serial_number:
            return self.serial_number
        return f"{self.vendor_id}-{self.product_id}-{self.bus_number}-{self.bus_address}"

    def to_dict(self) -> dict:
        data = asdict(self)
        data["source"] = self.source.value
        return data
