"""
Signal Generator Error Hierarchy
================================

This module defines the exception hierarchy for the siggen package.
All exceptions inherit from SiggenError, allowing callers to catch all
package-related errors with a single except clause if desired.

Exception Hierarchy
-------------------
SiggenError (base)
├── ProtocolError (wire format)
│   ├── EncodingError - a packet cannot be built
│   │   └── BufferTooLargeError - payload overflows the frame buffer
│   ├── MalformedPacketError - frame shorter than its declared length
│   └── ChecksumMismatchError - trailer does not match (soft, opt-in)
├── RegistryError (command registry, also a LookupError)
│   ├── IndexOutOfRangeError - raw value has no value-table entry
│   └── UnknownCommandError - command has no registry entry/value table
└── CommsError (serial communication)
    ├── ConnectionError - cannot open the serial device
    ├── TransportError - read/write failure on an open device
    └── TimeoutError - nothing complete arrived in time
        └── ResponseTimeoutError - no complete frame before the deadline

Checksum mismatches are normally reported inline on the decoded packet
rather than raised, because monitor and diagnostic output must show
corrupt traffic instead of discarding it.
"""

from typing import Optional


# =============================================================================
# Base Exception Class
# =============================================================================

class SiggenError(Exception):
    """
    Base exception for all siggen errors.

        try:
            generator.set_parameter("pattern", 3)
        except SiggenError as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Protocol Exceptions
# =============================================================================

class ProtocolError(SiggenError):
    """Base exception for wire-format errors."""
    pass


class EncodingError(ProtocolError):
    """A packet could not be encoded."""
    pass


class BufferTooLargeError(EncodingError):
    """
    Payload does not fit the fixed frame buffer.

    A frame is header (9 bytes) + payload + checksum (1 byte) and may not
    exceed 256 bytes, so payloads are limited to 246 bytes.
    """

    def __init__(self, payload_size: int, max_payload: int):
        self.payload_size = payload_size
        self.max_payload = max_payload
        super().__init__(
            f"Payload too large: {payload_size} bytes, maximum {max_payload}"
        )


class MalformedPacketError(ProtocolError):
    """
    Frame cannot be decoded.

    Raised when:
    - Buffer is shorter than the fixed header
    - Declared length is smaller than the addressing/command overhead
    - Buffer is shorter than the length declared in its own header
    """
    pass


class ChecksumMismatchError(ProtocolError):
    """
    Checksum trailer does not match the frame contents.

    Decoding never raises this on its own. It is raised only by callers
    that explicitly ask for a valid packet (DecodedPacket.require_valid).
    """

    def __init__(self, expected: int, actual: int, message: str = ""):
        self.expected = expected
        self.actual = actual
        if not message:
            message = f"Checksum mismatch: expected {expected:02X}, got {actual:02X}"
        super().__init__(message)


# =============================================================================
# Registry Exceptions
# =============================================================================

class RegistryError(SiggenError, LookupError):
    """Base exception for command registry lookups."""
    pass


class IndexOutOfRangeError(RegistryError):
    """
    Raw value has no entry in a value table.

    Valid indices are 0 <= index < len(table). The last entry is valid,
    one past it is not.
    """

    def __init__(self, table: str, index: int, size: int):
        self.table = table
        self.index = index
        self.size = size
        super().__init__(
            f"Index {index} out of range for {table} (0-{size - 1})"
        )


class UnknownCommandError(RegistryError):
    """Command name or key is not in the registry, or has no value table."""

    def __init__(self, command: object, reason: Optional[str] = None):
        self.command = command
        if isinstance(command, int):
            text = f"0x{command:04X}"
        else:
            text = repr(command)
        message = f"Unknown command {text}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


# =============================================================================
# Communication Exceptions
# =============================================================================

class CommsError(SiggenError):
    """Base exception for serial communication errors."""
    pass


class ConnectionError(CommsError):
    """
    Cannot open the signal generator's serial device.

    Raised when:
    - Serial port not found
    - Permission denied
    - Port busy
    """
    pass


class TransportError(CommsError):
    """
    Read or write failure on an already-open serial device.

    Generally fatal to the current command; the caller decides whether to
    retry the whole request.
    """
    pass


class TimeoutError(CommsError):
    """
    Communication timeout error.

    Note:
        This is a siggen-specific TimeoutError, distinct from the
        Python builtin TimeoutError. It inherits from CommsError
        for consistent error handling in the protocol package.
    """
    pass


class ResponseTimeoutError(TimeoutError):
    """
    No complete frame was assembled before the response deadline.

    Any partially received bytes are discarded. Their count is kept for
    diagnostics.
    """

    def __init__(self, timeout: float, received: int = 0):
        self.timeout = timeout
        self.received = received
        if received:
            message = (
                f"No complete packet within {timeout}s "
                f"({received} bytes discarded)"
            )
        else:
            message = f"No packet received within {timeout}s"
        super().__init__(message)
