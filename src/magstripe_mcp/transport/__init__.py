"""USB transport: control transfers carrying HID feature reports."""

from .base import Transport, Direction, RequestType, Recipient
from .usb_connection import USBConnection, DeviceDescriptor
