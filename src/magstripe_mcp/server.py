"""MCP server entry point for USB magnetic-stripe card readers.

Exposes the reader property store (serial numbers, state, reset) as
tools via the Model Context Protocol using the official Python MCP SDK
with stdio transport. Persisting device records is left to the client.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .drivers import create_device
from .drivers.base import Device
from .drivers.idtech import IDTechDevice
from .drivers.magtek import MAGTEK_VID, SURESWIPE_HID_PID, MagtekDevice
from .errors import MagstripeError
from .transport.usb_connection import USBConnection

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "magstripe",
    instructions="MCP server for Magtek and IDTech USB card readers",
)

# Global connection state
_connection: USBConnection | None = None
_device: Device | None = None


def _get_device() -> Device:
    """Get the active device, raising if not connected."""
    if _device is None or _connection is None or not _connection.connected:
        raise RuntimeError(
            "Not connected to device. Use the 'connect' tool first."
        )
    return _device


def _require(kind: type | tuple[type, ...], operation: str) -> Device:
    device = _get_device()
    if not isinstance(device, kind):
        raise RuntimeError(
            f"{type(device).__name__} does not support {operation}"
        )
    return device


def _error(e: Exception) -> dict[str, Any]:
    result: dict[str, Any] = {"error": str(e)}
    code = getattr(e, "code", None)
    if code is not None:
        result["code"] = f"0x{code:02X}"
        result["description"] = e.description
    return result


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(
    vendor_id: int = MAGTEK_VID,
    product_id: int = SURESWIPE_HID_PID,
) -> dict[str, Any]:
    """Open a card reader and read its identification and serial numbers.

    Args:
        vendor_id: USB vendor ID (Magtek 0x0801, IDTech 0x0ACD).
        product_id: USB product ID.
    """
    global _connection, _device
    if _connection is not None and _connection.connected and _device is not None:
        return {
            "connected": True,
            "message": "Already connected",
            "device": _device.info.to_dict(),
        }

    _connection = USBConnection(vendor_id, product_id)
    descriptor = _connection.open()

    try:
        _device = create_device(_connection, descriptor)
    except MagstripeError as e:
        _connection.close()
        _connection = None
        return _error(e)

    return {"connected": True, "device": _device.info.to_dict()}


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the USB connection to the reader."""
    global _connection, _device
    if _connection is None:
        return {"disconnected": True}
    _connection.close()
    _connection = None
    _device = None
    return {"disconnected": True}


@mcp.tool()
def get_device_info() -> dict[str, Any]:
    """Refresh and return the cached device record."""
    device = _get_device()
    try:
        device.refresh()
    except MagstripeError as e:
        return _error(e)
    return device.info.to_dict()


# ─── SERIAL NUMBER TOOLS ──────────────────────────────────────────────

@mcp.tool()
def get_device_sn() -> dict[str, Any]:
    """Read the configurable device serial number from NVRAM."""
    device = _require((MagtekDevice, IDTechDevice), "device serial numbers")
    try:
        return {"device_sn": device.get_device_sn()}
    except MagstripeError as e:
        return _error(e)


@mcp.tool()
def set_device_sn(value: str) -> dict[str, Any]:
    """Write the configurable device serial number to NVRAM.

    Args:
        value: New serial number (ASCII).
    """
    device = _require((MagtekDevice, IDTechDevice), "device serial numbers")
    try:
        device.set_device_sn(value)
    except MagstripeError as e:
        return _error(e)
    return {"stored": True, "device_sn": value}


@mcp.tool()
def erase_device_sn() -> dict[str, Any]:
    """Clear the configurable device serial number."""
    device = _require((MagtekDevice, IDTechDevice), "device serial numbers")
    try:
        device.erase_device_sn()
    except MagstripeError as e:
        return _error(e)
    return {"erased": True}


@mcp.tool()
def get_factory_sn() -> dict[str, Any]:
    """Read the factory serial number (Magtek only)."""
    device = _require(MagtekDevice, "factory serial numbers")
    try:
        return {"factory_sn": device.get_factory_sn()}
    except MagstripeError as e:
        return _error(e)


@mcp.tool()
def set_factory_sn(value: str) -> dict[str, Any]:
    """Write the factory serial number (Magtek only).

    The reader rejects this if a factory serial number is already set.

    Args:
        value: Factory serial number (ASCII).
    """
    device = _require(MagtekDevice, "factory serial numbers")
    try:
        device.set_factory_sn(value)
    except MagstripeError as e:
        return _error(e)
    return {"stored": True, "factory_sn": value}


@mcp.tool()
def copy_factory_sn(length: int = 7) -> dict[str, Any]:
    """Copy the first characters of the factory serial to the device serial.

    Args:
        length: Number of characters to copy (default 7).
    """
    device = _require(MagtekDevice, "factory serial numbers")
    try:
        device.copy_factory_sn(length)
    except MagstripeError as e:
        return _error(e)
    return {"copied": True, "device_sn": device.info.device_sn}


# ─── DEVICE CONTROL TOOLS ─────────────────────────────────────────────

@mcp.tool()
def get_state() -> dict[str, Any]:
    """Read the reader state and the event that led to it (Magtek only)."""
    device = _require(MagtekDevice, "state queries")
    try:
        state = device.get_state()
    except MagstripeError as e:
        return _error(e)
    return {
        "state": state.state,
        "antecedent": state.antecedent,
        "description": state.description,
    }


@mcp.tool()
def set_beep(value: str) -> dict[str, Any]:
    """Set the beep tone and duration (IDTech only).

    Args:
        value: "0" none, "1" low long, "2" high long, "3" high short,
               "4" low short.
    """
    device = _require(IDTechDevice, "beep settings")
    try:
        device.set_beep(value)
    except MagstripeError as e:
        return _error(e)
    return {"stored": True, "beep": value}


@mcp.tool()
def reset_device() -> dict[str, Any]:
    """Reset the reader so configuration changes take effect.

    Magtek readers take about five seconds to come back.
    """
    device = _get_device()
    try:
        device.reset()
    except MagstripeError as e:
        return _error(e)
    return {"reset": True}


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("magstripe://device/info")
def resource_device_info() -> str:
    """Cached device record and connection state."""
    if _device is None or _connection is None or not _connection.connected:
        return json.dumps({"connected": False})

    info = _device.info.to_dict()
    info["connected"] = True
    info["backend"] = _connection.backend
    return json.dumps(info)


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
