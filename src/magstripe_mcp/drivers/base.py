"""Shared device wrapper and the property-store interface every driver offers."""

from __future__ import annotations

import functools
import logging
import threading
from abc import ABC, abstractmethod

from ..errors import LocalValidationError
from ..models.device_info import DeviceInfo, DeviceSource
from ..transport.base import Transport
from ..transport.usb_connection import DeviceDescriptor

logger = logging.getLogger(__name__)


def exclusive(method):
    """Run ``method`` holding the device's handle lock.

    The reader has no notion of interleaved transactions, so two protocol
    operations on one handle must never overlap.
    """

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)

    return wrapper


class DeviceProtocol(ABC):
    """Property store operations exposed by every reader driver."""

    @abstractmethod
    def get_property(self, prop: int) -> str:
        """Read a named NVRAM field."""

    @abstractmethod
    def set_property(self, prop: int, value: str) -> None:
        """Write a named NVRAM field."""

    @abstractmethod
    def reset(self) -> None:
        """Reset the device so configuration changes take effect."""

    @abstractmethod
    def refresh(self) -> None:
        """Re-read fields that may have changed into :attr:`Device.info`."""


class Device(DeviceProtocol):
    """A reader handle plus its cached :class:`DeviceInfo`.

    Build instances through one of the explicit constructors:

    - :meth:`from_transport` for an open handle (runs vendor init)
    - :meth:`from_descriptor` for descriptor data only
    - :meth:`empty` for a blank record
    """

    def __init__(self, transport: Transport | None, info: DeviceInfo) -> None:
        self._transport = transport
        self._lock = threading.RLock()
        self.info = info
        self.info.object_type = type(self).__name__

    @classmethod
    def from_transport(
        cls,
        transport: Transport,
        descriptor: DeviceDescriptor | None = None,
        **kwargs,
    ):
        info = (
            DeviceInfo.from_descriptor(descriptor, source=DeviceSource.LIVE)
            if descriptor is not None
            else DeviceInfo(source=DeviceSource.LIVE)
        )
        device = cls(transport, info, **kwargs)
        device.initialize()
        return device

    @classmethod
    def from_descriptor(cls, descriptor: DeviceDescriptor, **kwargs):
        return cls(None, DeviceInfo.from_descriptor(descriptor), **kwargs)

    @classmethod
    def empty(cls, **kwargs):
        return cls(None, DeviceInfo.empty(), **kwargs)

    @property
    def live(self) -> bool:
        return self._transport is not None

    @property
    def transport(self) -> Transport:
        if self._transport is None:
            raise LocalValidationError(
                f"{type(self).__name__} has no open device handle "
                f"(source: {self.info.source.value})"
            )
        return self._transport

    def initialize(self) -> None:
        """Read the initial NVRAM fields. Vendor drivers extend this."""

    def id(self) -> str:
        return self.info.id()

    def descriptor_sn(self) -> str:
        return self.transport.serial_number()


class GenericDevice(Device):
    """A reader with no supported vendor command set."""

    def get_property(self, prop: int) -> str:
        raise LocalValidationError(
            f"{type(self).__name__} does not support NVRAM properties"
        )

    def set_property(self, prop: int, value: str) -> None:
        raise LocalValidationError(
            f"{type(self).__name__} does not support NVRAM properties"
        )

    @exclusive
    def reset(self) -> None:
        """Reset the USB port, since there is no vendor reset command.

        Raises:
            LocalValidationError: If the transport cannot reset the port.
        """
        self.transport.reset_port()
        logger.info("Reset %s", self.id())

    @exclusive
    def refresh(self) -> None:
        self.info.descriptor_sn = self.descriptor_sn()
        self.info.serial_number = self.info.descriptor_sn
