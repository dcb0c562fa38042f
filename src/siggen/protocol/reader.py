"""
Response Reader
===============

Reassembles exactly one frame from a byte stream within a fixed deadline.

State Machine
-------------

    IDLE ──► ACCUMULATING ──┬──► COMPLETE
                            ├──► TIMED_OUT
                            ├──► TRANSPORT_ERROR
                            └──► MALFORMED

The deadline is fixed when the read starts (1 second by default). Rather
than spinning on a non-blocking descriptor, each read blocks on the
transport's own timeout, set to whatever is left of the deadline, and asks
only for the bytes still missing: the rest of the header first, then the
rest of the frame declared by the header's length field. The port timeout
is only rewritten once the deadline has moved on by more than the poll
interval, since pyserial reconfigures the device on every assignment.
Transports that return immediately with no data are polled at a short
interval.

A frame whose declared size cannot fit the 256-byte buffer can never
complete and is reported as a timeout. A header declaring a length too
short to hold its own fields is reported as malformed.
"""

import logging
import time
from enum import Enum
from typing import Callable, Final, Optional, Protocol

import serial

from siggen.errors import (
    MalformedPacketError,
    ResponseTimeoutError,
    TransportError,
)
from siggen.protocol.packet import (
    HEADER_SIZE,
    MAX_FRAME_SIZE,
    LENGTH_OVERHEAD,
    DecodedPacket,
    decode_packet,
    declared_length,
)

# Configure module logger
logger = logging.getLogger(__name__)


# Default response deadline (seconds)
RESPONSE_TIMEOUT: Final[float] = 1.0

# Pause after an empty read from a transport that does not block
POLL_INTERVAL: Final[float] = 0.01


class Transport(Protocol):
    """
    Byte stream the protocol engine talks to.

    A configured ``serial.Serial`` satisfies this protocol. ``read`` may
    return fewer bytes than requested, or none, when nothing arrived
    before ``timeout`` seconds elapsed.
    """

    timeout: Optional[float]

    def read(self, size: int = 1) -> bytes: ...

    def write(self, data: bytes) -> Optional[int]: ...


class ReaderState(Enum):
    """Reassembly states."""

    IDLE = "idle"
    ACCUMULATING = "accumulating"
    COMPLETE = "complete"
    TIMED_OUT = "timed_out"
    TRANSPORT_ERROR = "transport_error"
    MALFORMED = "malformed"


class ResponseReader:
    """
    Deadline-bounded single-frame reader.

    Usage:
        reader = ResponseReader(port)
        try:
            packet = reader.read_packet()
        except ResponseTimeoutError:
            print("no response")

    Attributes:
        port: Transport to read from. Owned exclusively for the
              duration of read_packet().
        timeout: Deadline in seconds for one frame.
    """

    def __init__(
        self,
        port: Transport,
        timeout: float = RESPONSE_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if timeout <= 0:
            raise ValueError(f"Timeout must be positive, got {timeout}")
        self.port = port
        self.timeout = timeout
        self._clock = clock
        self._sleep = sleep
        self._state = ReaderState.IDLE
        self._received = 0

    @property
    def state(self) -> ReaderState:
        """State reached by the most recent read_packet() call."""
        return self._state

    @property
    def received(self) -> int:
        """Bytes accumulated by the most recent read_packet() call."""
        return self._received

    def read_packet(self) -> DecodedPacket:
        """
        Read one complete frame.

        Returns:
            The decoded frame. A checksum mismatch is flagged on the packet,
            not raised.

        Raises:
            ResponseTimeoutError: If no complete frame arrived in time.
            TransportError: If the transport reports a read failure.
            MalformedPacketError: If the header declares an impossible length.
        """
        self._state = ReaderState.ACCUMULATING
        self._received = 0

        deadline = self._clock() + self.timeout
        buffer = bytearray()
        expected = HEADER_SIZE
        header_parsed = False

        old_timeout = self.port.timeout
        applied: Optional[float] = None

        try:
            while True:
                remaining = deadline - self._clock()
                if remaining <= 0:
                    break

                if applied is None or applied - remaining > POLL_INTERVAL:
                    self.port.timeout = remaining
                    applied = remaining

                try:
                    chunk = self.port.read(expected - len(buffer))
                except (serial.SerialException, OSError) as e:
                    self._state = ReaderState.TRANSPORT_ERROR
                    logger.debug("Read failed after %d bytes: %s", len(buffer), e)
                    raise TransportError(f"Read failed: {e}") from e

                if not chunk:
                    self._sleep(min(POLL_INTERVAL, max(remaining, 0.0)))
                    continue

                buffer.extend(chunk)
                self._received = len(buffer)
                logger.debug("Buffer now %d bytes", len(buffer))

                if not header_parsed and len(buffer) >= HEADER_SIZE:
                    header_parsed = True
                    length = declared_length(buffer)
                    if length < LENGTH_OVERHEAD:
                        self._state = ReaderState.MALFORMED
                        raise MalformedPacketError(
                            f"Declared length {length} is below minimum "
                            f"{LENGTH_OVERHEAD}"
                        )
                    expected = LENGTH_OVERHEAD + length
                    logger.debug("Header declares %d byte frame", expected)
                    if expected > MAX_FRAME_SIZE:
                        logger.warning(
                            "Declared frame of %d bytes exceeds %d byte buffer",
                            expected, MAX_FRAME_SIZE
                        )
                        break

                if header_parsed and len(buffer) >= expected:
                    frame = bytes(buffer[:expected])
                    logger.debug(
                        "Received %d bytes: %s", len(frame), frame.hex()
                    )
                    packet = decode_packet(frame)
                    self._state = ReaderState.COMPLETE
                    return packet

        finally:
            self.port.timeout = old_timeout

        self._state = ReaderState.TIMED_OUT
        logger.debug("Timed out, discarding %d bytes", len(buffer))
        raise ResponseTimeoutError(self.timeout, len(buffer))
