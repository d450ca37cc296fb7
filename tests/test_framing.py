"""Tests for IDTech frame wrapping/chunking and Magtek report layout."""

import pytest

from magstripe_mcp.errors import LocalValidationError
from magstripe_mcp.protocol.framing import (
    ETX,
    IDTECH_CHUNK_SIZE,
    STX,
    Frame,
    build_report,
    chunk_frame,
    extract_payload,
    report_value,
    wrap_frame,
)
from magstripe_mcp.utils.lrc import lrc


def test_wrap_frame_layout():
    """STX, payload, ETX, then the LRC byte."""
    frame = wrap_frame(b"\x52\x4E")
    assert frame[0] == STX
    assert frame[1:3] == b"\x52\x4E"
    assert frame[3] == ETX
    assert frame[4] == 0x1D


@pytest.mark.parametrize("payload", [b"", b"\x39", b"\x53\x4E\x07ABCDEFG", bytes(range(40))])
def test_wrap_frame_checksum_is_self_consistent(payload):
    """The last byte is the LRC of everything before it."""
    frame = wrap_frame(payload)
    assert len(frame) == len(payload) + 3
    assert lrc(frame[:-1]) == frame[-1]


def test_wrap_frame_empty_payload():
    assert wrap_frame(b"") == bytes([STX, ETX, STX ^ ETX])


@pytest.mark.parametrize("length", [0, 1, 8, 9, 16])
def test_chunks_reassemble_to_frame(length):
    """Joined chunks minus the trailing padding give back the frame."""
    frame = bytes((i * 7 + 1) & 0xFF for i in range(length))
    chunks = list(chunk_frame(frame, 8))
    joined = b"".join(chunks)
    assert joined[:length] == frame
    assert set(joined[length:]) <= {0}
    assert len(joined) - length < 8


def test_chunks_are_fixed_size():
    frame = wrap_frame(b"\x53\x4E\x0A0123456789")
    chunks = list(chunk_frame(frame))
    assert len(chunks) == 2
    for chunk in chunks:
        assert len(chunk) == IDTECH_CHUNK_SIZE


def test_chunk_last_is_zero_padded():
    chunks = list(chunk_frame(b"\x01" * 9, 8))
    assert chunks[1] == b"\x01" + b"\x00" * 7


def test_chunk_empty_frame_yields_nothing():
    assert list(chunk_frame(b"")) == []


def test_chunk_is_restartable():
    """Each call starts over; it is a pure function of its input."""
    frame = wrap_frame(b"\x39")
    assert list(chunk_frame(frame)) == list(chunk_frame(frame))


def test_chunk_rejects_bad_size():
    with pytest.raises(ValueError):
        list(chunk_frame(b"\x01", 0))


def test_extract_payload_between_markers():
    response = bytes([0x06, STX]) + b"V2.01" + bytes([ETX, 0x55])
    assert extract_payload(response) == b"V2.01"


def test_extract_payload_without_markers():
    """A bare ACK has no markers and comes back unchanged."""
    assert extract_payload(b"\x06") == b"\x06"


def test_extract_payload_markers_out_of_order():
    response = bytes([0x06, ETX, 0x41, STX])
    assert extract_payload(response) == response


def test_frame_dataclass():
    f = Frame(payload=b"\x39")
    assert f.to_bytes() == wrap_frame(b"\x39")
    assert f.lrc == f.to_bytes()[-1]
    assert "lrc=0x" in repr(f)


def test_build_report_size_and_header():
    report = build_report(24, 0x01, b"\x01ABC")
    assert len(report) == 24
    assert report[0] == 0x01
    assert report[1] == 4
    assert report[2:6] == b"\x01ABC"
    assert report[6:] == bytes(18)


def test_build_report_no_data():
    report = build_report(60, 0x02)
    assert len(report) == 60
    assert report[:2] == b"\x02\x00"


def test_build_report_overflow():
    """Data that would not fit the negotiated buffer is refused locally."""
    with pytest.raises(LocalValidationError):
        build_report(24, 0x01, bytes(23))


def test_build_report_exact_fit():
    report = build_report(24, 0x01, bytes(22))
    assert len(report) == 24


def test_report_value():
    report = bytes([0x00, 0x03]) + b"ABC" + bytes(19)
    assert report_value(report) == b"ABC"


def test_report_value_zero_length():
    assert report_value(bytes([0x00, 0x00]) + b"junk") == b""
