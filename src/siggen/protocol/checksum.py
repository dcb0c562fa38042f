"""
Two's-Complement Checksum for the Signal Generator Protocol
===========================================================

Every frame ends with a single checksum byte chosen so that the byte sum
of the whole frame (header, payload and the checksum itself) is zero
modulo 256.

Usage
-----
    from siggen.protocol.checksum import checksum, verify_checksum

    body = bytes([0xAA, 0x00, 0x00, 0x06, 0x00, 0x00, 0x00, 0x00, 0x62, 0x03])
    frame = body + bytes([checksum(body)])
    assert verify_checksum(frame)
    assert sum(frame) % 256 == 0
"""

from typing import Final

# Checksum arithmetic is modulo one byte
CHECKSUM_MODULUS: Final[int] = 0x100


def checksum(data: bytes) -> int:
    """
    Calculate the two's-complement byte sum of data.

    Args:
        data: Bytes to sum (any length, including empty).

    Returns:
        Checksum byte (0x00 to 0xFF).

    Example:
        >>> checksum(b"")
        0
        >>> hex(checksum(bytes([0x01])))
        '0xff'
    """
    return (CHECKSUM_MODULUS - sum(data) % CHECKSUM_MODULUS) % CHECKSUM_MODULUS


def verify_checksum(frame: bytes) -> bool:
    """
    Verify a frame that has its checksum byte appended.

    Args:
        frame: Frame bytes including the trailing checksum.

    Returns:
        True if the trailer matches the preceding bytes. An empty
        sequence has no trailer and is never valid.
    """
    if not frame:
        return False
    return checksum(frame[:-1]) == frame[-1]


def append_checksum(data: bytes) -> bytes:
    """Return data with its checksum byte appended."""
    return bytes(data) + bytes([checksum(data)])
