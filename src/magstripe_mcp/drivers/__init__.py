"""Vendor protocol drivers built around a shared USB transport."""

from __future__ import annotations

from ..transport.base import Transport
from ..transport.usb_connection import DeviceDescriptor
from .base import Device, DeviceProtocol, GenericDevice
from .idtech import IDTECH_VID, IDTechDevice
from .magtek import MAGTEK_VID, MagtekDevice

DRIVERS: dict[int, type[Device]] = {
    MAGTEK_VID: MagtekDevice,
    IDTECH_VID: IDTechDevice,
}


def driver_for(vendor_id: int) -> type[Device]:
    """Return the driver class for a USB vendor ID, generic if unsupported."""
    return DRIVERS.get(vendor_id, GenericDevice)


def create_device(transport: Transport, descriptor: DeviceDescriptor, **kwargs) -> Device:
    """Wrap an open transport in the driver matching its vendor ID."""
    return driver_for(descriptor.vendor_id).from_transport(transport, descriptor, **kwargs)
