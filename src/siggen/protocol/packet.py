"""
Packet Codec for the Signal Generator Protocol
==============================================

This module serializes commands into wire frames and parses received
frames into structured packets, independently of any transport.

Frame Layout
------------

    ┌─────┬────────┬────────┬───────┬────────┬─────────┬──────────┬─────┐
    │ Dir │ Dev ID │ Length │ Group │ Device │ Command │ Payload  │ Sum │
    │ 1 B │  2 B   │  2 B   │  1 B  │  1 B   │   2 B   │ 0-246 B  │ 1 B │
    │     │ (LE)   │ (LE)   │       │        │  (BE)   │          │     │
    └─────┴────────┴────────┴───────┴────────┴─────────┴──────────┴─────┘

- Dir: 0xAA from the host, 0xAB from the generator
- Dev ID: reserved, always 0 when sent
- Length: payload length + 5, low byte first
- Command: 16-bit key, high byte first
- Sum: two's-complement checksum, the whole frame sums to 0 mod 256

A complete frame is therefore ``5 + length`` bytes long and never more
than 256 bytes.

Decoding is deliberately lenient. A bad checksum, an unknown direction
byte or an unknown command still produce a DecodedPacket, flagged
accordingly, because monitor output has to show corrupt traffic. Only a
frame shorter than its own header or declared length is rejected.
"""

import logging
from dataclasses import dataclass
from typing import Final

from siggen.errors import (
    BufferTooLargeError,
    ChecksumMismatchError,
    MalformedPacketError,
)
from siggen.protocol.checksum import append_checksum, checksum
from siggen.protocol.commands import CommandInfo, describe, lookup

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Protocol Constants
# =============================================================================

# Direction markers
HOST_TO_DEVICE: Final[int] = 0xAA
DEVICE_TO_HOST: Final[int] = 0xAB

DIRECTION_LABELS: Final[dict[int, str]] = {
    HOST_TO_DEVICE: "PC->MCU",
    DEVICE_TO_HOST: "MCU->PC",
}

UNKNOWN_DIRECTION: Final[str] = "unknown"

# Fixed header: dir(1) + dev_id(2) + len(2) + group(1) + device(1) + cmd(2)
HEADER_SIZE: Final[int] = 9

# Trailing checksum byte
CHECKSUM_SIZE: Final[int] = 1

# Largest frame the receive/transmit buffer holds
MAX_FRAME_SIZE: Final[int] = 256

# Largest payload that still fits MAX_FRAME_SIZE
MAX_PAYLOAD_SIZE: Final[int] = MAX_FRAME_SIZE - HEADER_SIZE - CHECKSUM_SIZE

# Length field = payload length + LENGTH_OVERHEAD, and a whole frame is
# LENGTH_OVERHEAD + length field bytes long
LENGTH_OVERHEAD: Final[int] = 5

# Header field offsets
_OFFSET_DIRECTION: Final[int] = 0
_OFFSET_DEVICE_ID: Final[int] = 1
_OFFSET_LENGTH: Final[int] = 3
_OFFSET_GROUP: Final[int] = 5
_OFFSET_DEVICE: Final[int] = 6
_OFFSET_COMMAND: Final[int] = 7


# =============================================================================
# Outbound Packet
# =============================================================================

@dataclass(frozen=True)
class Packet:
    """
    A packet to be sent to the signal generator.

    Attributes:
        command: 16-bit command key.
        payload: Command-specific data (0-246 bytes).
        group: Group address byte (0 addresses the default group).
        device: Device address byte.
        direction: Direction marker, host-to-device unless simulating the
                   generator side.

    Example:
        packet = Packet(0x0062, bytes([3]))
        wire_bytes = packet.to_bytes()
    """

    command: int
    payload: bytes = b""
    group: int = 0
    device: int = 0
    direction: int = HOST_TO_DEVICE

    def __post_init__(self) -> None:
        """Validate packet fields after initialization."""
        if not 0 <= self.command <= 0xFFFF:
            raise ValueError(f"Command key must be 0-0xFFFF, got {self.command}")

        for field_name in ("group", "device", "direction"):
            value = getattr(self, field_name)
            if not 0 <= value <= 0xFF:
                raise ValueError(f"{field_name} must be 0-255, got {value}")

        if not isinstance(self.payload, (bytes, bytearray)):
            raise TypeError(
                f"Payload must be bytes, got {type(self.payload).__name__}"
            )

        if len(self.payload) > MAX_PAYLOAD_SIZE:
            raise BufferTooLargeError(len(self.payload), MAX_PAYLOAD_SIZE)

    @property
    def length_field(self) -> int:
        """Value written to the header length field."""
        return len(self.payload) + LENGTH_OVERHEAD

    def to_bytes(self) -> bytes:
        """
        Serialize the packet for transmission.

        Returns:
            Complete frame including the checksum trailer.
        """
        length = self.length_field

        frame = bytearray()
        frame.append(self.direction)
        frame.extend((0).to_bytes(2, "little"))        # device id
        frame.extend(length.to_bytes(2, "little"))
        frame.append(self.group)
        frame.append(self.device)
        frame.extend(self.command.to_bytes(2, "big"))
        frame.extend(self.payload)

        wire = append_checksum(bytes(frame))

        logger.debug(
            "Encoded packet: cmd=%s (0x%04X) payload_len=%d wire_len=%d sum=%02X",
            describe(self.command), self.command, len(self.payload),
            len(wire), wire[-1]
        )

        return wire


def encode_packet(
    command: int,
    payload: bytes = b"",
    group: int = 0,
    device: int = 0,
) -> bytes:
    """
    Build the wire frame for a host-to-device command.

    Args:
        command: 16-bit command key.
        payload: Command data (at most 246 bytes).
        group: Group address (default 0).
        device: Device address (default 0).

    Returns:
        Frame bytes ready to write to the serial port.

    Raises:
        BufferTooLargeError: If the frame would exceed 256 bytes.
        ValueError: If the key or an address is out of range.
    """
    return Packet(command, bytes(payload), group=group, device=device).to_bytes()


# =============================================================================
# Inbound Packet
# =============================================================================

@dataclass(frozen=True)
class DecodedPacket:
    """
    A parsed frame, valid or not.

    Attributes:
        raw: The frame bytes, truncated to the declared length.
        direction: Raw direction byte.
        device_id: Device id field.
        declared_length: Header length field.
        group: Group address.
        device: Device address.
        command: 16-bit command key.
        payload: Payload bytes.
        checksum: Checksum byte as received.
        computed_checksum: Checksum calculated over the rest of the frame.
    """

    raw: bytes
    direction: int
    device_id: int
    declared_length: int
    group: int
    device: int
    command: int
    payload: bytes
    checksum: int
    computed_checksum: int

    @property
    def direction_label(self) -> str:
        """'PC->MCU', 'MCU->PC' or 'unknown'."""
        return DIRECTION_LABELS.get(self.direction, UNKNOWN_DIRECTION)

    @property
    def payload_length(self) -> int:
        return len(self.payload)

    @property
    def checksum_valid(self) -> bool:
        return self.checksum == self.computed_checksum

    @property
    def info(self) -> CommandInfo:
        """Registry entry for the command key."""
        return lookup(self.command)

    def require_valid(self) -> "DecodedPacket":
        """
        Return self if the checksum matches.

        Raises:
            ChecksumMismatchError: If the trailer does not match.
        """
        if not self.checksum_valid:
            raise ChecksumMismatchError(self.computed_checksum, self.checksum)
        return self

    def __repr__(self) -> str:
        """Return detailed string representation for debugging."""
        data_repr = (
            self.payload[:20].hex() + "..."
            if len(self.payload) > 20
            else self.payload.hex()
        )
        return (
            f"DecodedPacket(dir={self.direction_label}, "
            f"cmd=0x{self.command:04X}, "
            f"data[{len(self.payload)}]={data_repr}, "
            f"checksum={'ok' if self.checksum_valid else 'failed'})"
        )


def declared_length(header: bytes) -> int:
    """
    Read the length field from a header.

    Args:
        header: At least the first HEADER_SIZE bytes of a frame.

    Raises:
        MalformedPacketError: If header is shorter than HEADER_SIZE.
    """
    if len(header) < HEADER_SIZE:
        raise MalformedPacketError(
            f"Header too short: {len(header)} bytes, need {HEADER_SIZE}"
        )
    return int.from_bytes(
        header[_OFFSET_LENGTH:_OFFSET_LENGTH + 2], "little"
    )


def frame_length(header: bytes) -> int:
    """Total frame size implied by a header (LENGTH_OVERHEAD + length)."""
    return LENGTH_OVERHEAD + declared_length(header)


def decode_packet(data: bytes) -> DecodedPacket:
    """
    Parse a received frame.

    Args:
        data: Frame bytes. Bytes beyond the declared frame are ignored.

    Returns:
        DecodedPacket with checksum_valid set from the trailer.

    Raises:
        MalformedPacketError: If data is shorter than the header, the
            declared length is below LENGTH_OVERHEAD, or data is shorter
            than the declared frame.
    """
    data = bytes(data)
    length = declared_length(data)

    if length < LENGTH_OVERHEAD:
        raise MalformedPacketError(
            f"Declared length {length} is below minimum {LENGTH_OVERHEAD}"
        )

    total = LENGTH_OVERHEAD + length
    if len(data) < total:
        raise MalformedPacketError(
            f"Packet truncated: {len(data)} bytes, declared {total}"
        )

    frame = data[:total]
    payload_end = HEADER_SIZE + (length - LENGTH_OVERHEAD)

    packet = DecodedPacket(
        raw=frame,
        direction=frame[_OFFSET_DIRECTION],
        device_id=int.from_bytes(
            frame[_OFFSET_DEVICE_ID:_OFFSET_DEVICE_ID + 2], "little"
        ),
        declared_length=length,
        group=frame[_OFFSET_GROUP],
        device=frame[_OFFSET_DEVICE],
        command=int.from_bytes(
            frame[_OFFSET_COMMAND:_OFFSET_COMMAND + 2], "big"
        ),
        payload=frame[HEADER_SIZE:payload_end],
        checksum=frame[-1],
        computed_checksum=checksum(frame[:-1]),
    )

    if packet.direction not in DIRECTION_LABELS:
        logger.warning("Unknown direction byte: 0x%02X", packet.direction)
    if not packet.checksum_valid:
        logger.warning(
            "Checksum mismatch: computed %02X, received %02X",
            packet.computed_checksum, packet.checksum
        )

    logger.debug("Decoded %r", packet)

    return packet
