"""Two's-complement checksum used by the C-Bus serial interface.

The checksum byte is chosen so that the sum of every byte in a frame,
checksum included, is 0 modulo 256.
"""

from typing import Iterable


def checksum(data: Iterable[int]) -> int:
    """Return the checksum byte for ``data`` (excluding the checksum slot)."""
    return (256 - (sum(data) % 256)) % 256


def verify(frame: Iterable[int]) -> bool:
    """Check a complete frame whose last byte is its checksum."""
    return sum(frame) % 256 == 0
