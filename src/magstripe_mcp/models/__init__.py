"""Data models for card reader records."""

from .device_info import DeviceInfo, DeviceSource
