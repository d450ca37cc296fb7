"""Longitudinal redundancy check used by IDTech command frames."""

from __future__ import annotations


def lrc(data: bytes) -> int:
    """XOR every byte of ``data`` together, left to right, starting at 0."""
    result = 0
    for b in data:
        result ^= b
    return result
