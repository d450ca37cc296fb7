"""Byte envelopes for the two supported card reader families.

IDTech frame layout::

    +------+-----------------+------+------+
    | STX  |     Payload     | ETX  | LRC  |
    | 0x02 | variable length | 0x03 | 1 B  |
    +------+-----------------+------+------+

- LRC: XOR of STX, every payload byte and ETX
- The frame is sent as a series of 8-byte feature reports; the last one
  is zero-padded

Magtek report layout::

    +--------+--------+------------------+---------+
    | Opcode | Length |       Data       | Padding |
    | 1 byte | 1 byte | ``Length`` bytes | to size |
    +--------+--------+------------------+---------+

- The whole report is exactly the negotiated buffer size
- On the way back, byte 0 is the result code and bytes ``[2, 2+Length)``
  carry the value
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from ..errors import LocalValidationError
from ..utils.lrc import lrc

STX = 0x02
ETX = 0x03
IDTECH_CHUNK_SIZE = 8
MAGTEK_HEADER_SIZE = 2  # opcode + length


@dataclass
class Frame:
    """An IDTech command frame before it is split into reports."""

    payload: bytes

    @property
    def lrc(self) -> int:
        return lrc(bytes([STX]) + self.payload + bytes([ETX]))

    def to_bytes(self) -> bytes:
        return wrap_frame(self.payload)

    def __repr__(self) -> str:
        return (
            f"Frame(payload={self.payload.hex(' ') if self.payload else '(empty)'}, "
            f"lrc=0x{self.lrc:02X})"
        )


def wrap_frame(payload: bytes) -> bytes:
    """Wrap a raw IDTech command in STX/ETX and append its LRC.

    Args:
        payload: Command bytes, e.g. ``b"R\\x4e"`` for a setting review.

    Returns:
        ``STX + payload + ETX + LRC``, always ``len(payload) + 3`` bytes.
    """
    body = bytes([STX]) + bytes(payload) + bytes([ETX])
    return body + bytes([lrc(body)])


def chunk_frame(frame: bytes, chunk_size: int = IDTECH_CHUNK_SIZE) -> Iterator[bytes]:
    """Yield ``frame`` in ``chunk_size`` pieces, zero-padding the last one.

    An empty frame yields nothing.
    """
    if chunk_size < 1:
        raise ValueError(f"Chunk size must be positive, got {chunk_size}")

    for offset in range(0, len(frame), chunk_size):
        chunk = frame[offset : offset + chunk_size]
        yield bytes(chunk) + b"\x00" * (chunk_size - len(chunk))


def extract_payload(response: bytes) -> bytes:
    """Return the bytes strictly between the first STX and the first ETX.

    If the markers are missing or out of order the response is returned
    unchanged.
    """
    start = response.find(STX) + 1
    end = response.find(ETX)
    if end > start:
        return response[start:end]
    return response


def build_report(buffer_size: int, command: int, data: bytes = b"") -> bytearray:
    """Build a Magtek request report of exactly ``buffer_size`` bytes.

    Args:
        buffer_size: The negotiated control buffer size of the device.
        command: Opcode placed in byte 0.
        data: Bytes following the length byte (property ID, then value).

    Raises:
        LocalValidationError: If ``data`` does not fit in the report.
    """
    if len(data) > 0xFF:
        raise LocalValidationError(
            f"Report data must be at most 255 bytes, got {len(data)}"
        )
    if MAGTEK_HEADER_SIZE + len(data) > buffer_size:
        raise LocalValidationError(
            f"Report data of {len(data)} bytes does not fit "
            f"a {buffer_size}-byte buffer"
        )

    report = bytearray(buffer_size)
    report[0] = command
    report[1] = len(data)
    report[MAGTEK_HEADER_SIZE : MAGTEK_HEADER_SIZE + len(data)] = data
    return report


def report_value(report: bytes) -> bytes:
    """Extract the value carried by a Magtek response report."""
    if len(report) < MAGTEK_HEADER_SIZE:
        return b""
    length = report[1]
    if length == 0:
        return b""
    return bytes(report[MAGTEK_HEADER_SIZE : MAGTEK_HEADER_SIZE + length])
