"""Simulated readers that answer vendor commands from in-memory NVRAM."""

from __future__ import annotations

import pytest

from magstripe_mcp.errors import TransportError
from magstripe_mcp.protocol.framing import STX, wrap_frame
from magstripe_mcp.transport.base import Direction, Transport
from magstripe_mcp.transport.usb_connection import DeviceDescriptor


class FakeMagtekTransport(Transport):
    """Magtek reader that only accepts reports of ``buffer_size`` bytes.

    Any other size stalls the pipe, like real hardware does.
    """

    def __init__(self, buffer_size: int = 24, descriptor_sn: str = "DESC0001") -> None:
        self.buffer_size = buffer_size
        self.descriptor_sn = descriptor_sn
        self.nvram: dict[int, bytes] = {
            0x00: b"21042840G01",
            0x01: b"",
            0x03: b"B164F78011234AB",
            0x04: b"\x00",
        }
        self.state = bytes([0x02, 0x01])
        self.transfer_sizes: list[int] = []
        self.commands: list[int] = []
        self.fail_next_code: int | None = None
        self._pending = b""

    def control_transfer(self, direction, request_type, recipient, request, value, index, buffer):
        self.transfer_sizes.append(len(buffer))
        if len(buffer) != self.buffer_size:
            raise TransportError("LIBUSB_ERROR_PIPE")

        if direction == Direction.OUT:
            self._pending = self._answer(bytes(buffer))
            return len(buffer)

        buffer[:] = self._pending.ljust(self.buffer_size, b"\x00")
        return len(buffer)

    def serial_number(self) -> str:
        return self.descriptor_sn

    def _answer(self, request: bytes) -> bytes:
        command, length = request[0], request[1]
        self.commands.append(command)

        if self.fail_next_code is not None:
            code, self.fail_next_code = self.fail_next_code, None
            return bytes([code, 0])

        if command == 0x00:
            prop = request[2]
            if prop not in self.nvram:
                return bytes([0x02, 0])
            value = self.nvram[prop]
            return bytes([0x00, len(value)]) + value
        if command == 0x01:
            prop = request[2]
            value = request[3 : 2 + length]
            if prop == 0x03 and len(self.nvram.get(0x03, b"")) > 1:
                return bytes([0x07, 0])
            self.nvram[prop] = value
            return bytes([0x00, 0])
        if command == 0x02:
            return bytes([0x00, 0])
        if command == 0x14:
            return bytes([0x00, len(self.state)]) + self.state
        return bytes([0x01, 0])


class FakeIDTechTransport(Transport):
    """IDTech reader that reassembles 8-byte chunks into commands.

    ``echo_prefix`` controls whether get-setting answers start with
    ``<FuncID> <Len>``, which real firmware does inconsistently.
    """

    def __init__(self, echo_prefix: bool = True, descriptor_sn: str = "IDT0001") -> None:
        self.echo_prefix = echo_prefix
        self.descriptor_sn = descriptor_sn
        self.settings: dict[int, bytes] = {
            0x11: b"2",
            0x22: b"V2.01",
            0x4E: b"SN00001",
        }
        self.version = b"ID TECH SecureMag V2.01 "
        self.copyright = b"(c) ID TECH"
        self.chunks: list[bytes] = []
        self.frames: list[bytes] = []
        self.response_code: int = 0x06
        self.raw_response: bytes | None = None
        self._outgoing = bytearray()
        self._reads: list[bytes] = []

    def control_transfer(self, direction, request_type, recipient, request, value, index, buffer):
        if direction == Direction.OUT:
            chunk = bytes(buffer)
            self.chunks.append(chunk)
            self._outgoing += chunk
            return len(chunk)

        if self._outgoing:
            self._queue_response(self._take_frame())

        if not self._reads:
            buffer[:] = bytes(len(buffer))
            return 0
        data = self._reads.pop(0)
        buffer[: len(data)] = data
        return len(data)

    def serial_number(self) -> str:
        return self.descriptor_sn

    def _take_frame(self) -> bytes:
        raw = bytes(self._outgoing)
        self._outgoing.clear()
        assert raw[0] == STX
        opcode = raw[1]
        if opcode == 0x53:
            size = 3 + raw[3]
        elif opcode == 0x52:
            size = 2
        else:
            size = 1
        frame = raw[: size + 3]
        assert frame == wrap_frame(raw[1 : 1 + size])
        self.frames.append(frame)
        return frame[1 : 1 + size]

    def _queue_response(self, command: bytes) -> None:
        if self.raw_response is not None:
            response = self.raw_response
        else:
            response = bytes([self.response_code]) + self._answer(command)
        self._reads = [response[i : i + 8] for i in range(0, len(response), 8)]

    def _answer(self, command: bytes) -> bytes:
        opcode = command[0]
        if opcode == 0x52:
            prop = command[1]
            value = self.settings.get(prop, b"")
            if self.echo_prefix:
                value = bytes([prop, len(value)]) + value
            return wrap_frame(value)
        if opcode == 0x53:
            prop, length = command[1], command[2]
            self.settings[prop] = command[3 : 3 + length]
            return b""
        if opcode == 0x39:
            return wrap_frame(self.version)
        if opcode == 0x38:
            return wrap_frame(self.copyright)
        return b""


@pytest.fixture
def sleeps(monkeypatch):
    """Record settle delays instead of sleeping."""
    calls: list[float] = []
    monkeypatch.setattr("time.sleep", calls.append)
    return calls


@pytest.fixture
def magtek_transport():
    return FakeMagtekTransport()


@pytest.fixture
def idtech_transport():
    return FakeIDTechTransport()


@pytest.fixture
def magtek_descriptor():
    return DeviceDescriptor(
        vendor_id=0x0801,
        product_id=0x0002,
        manufacturer="Mag-Tek",
        product="USB Swipe Reader",
        serial_number="DESC0001",
    )


@pytest.fixture
def idtech_descriptor():
    return DeviceDescriptor(
        vendor_id=0x0ACD,
        product_id=0x2010,
        manufacturer="ID TECH",
        product="SecureMag",
        serial_number="IDT0001",
    )
