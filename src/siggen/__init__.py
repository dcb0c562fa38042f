"""
siggen - Host Controller for Serial HDMI Test-Signal Generators
===============================================================

This package talks to an HDMI test-signal generator over its serial
control port. It can switch timings, patterns, colorspaces and audio
settings, query the generator's status, and decode any traffic on the
link into a readable report.

Main Components
---------------
- **protocol**: wire protocol engine (framing, checksum, command
  registry, response reader, diagnostics) and serial session
- **cli**: the ``siggen`` command-line tool

Quick Start
-----------
    >>> from siggen import encode_packet, decode_packet, format_packet
    >>> frame = encode_packet(0x0062, bytes([3]))   # set pattern 3
    >>> print(format_packet(decode_packet(frame)))

Or use the command-line tool:
    $ siggen --port /dev/ttyUSB0 set pattern 3
    $ siggen tables pattern
    $ siggen --port /dev/ttyUSB0 monitor
"""

__version__ = "1.0.0"

# =============================================================================
# Public API Exports
# =============================================================================

from siggen.errors import (
    SiggenError,
    ProtocolError,
    EncodingError,
    BufferTooLargeError,
    MalformedPacketError,
    ChecksumMismatchError,
    RegistryError,
    IndexOutOfRangeError,
    UnknownCommandError,
    CommsError,
    ConnectionError,
    TransportError,
    TimeoutError,
    ResponseTimeoutError,
)

from siggen.protocol import (
    DecodedPacket,
    Packet,
    SerialConfig,
    SignalGenerator,
    checksum,
    decode_packet,
    describe,
    encode_packet,
    format_packet,
    value_label,
    verify_checksum,
)

__all__ = [
    "__version__",
    # Errors
    "SiggenError",
    "ProtocolError",
    "EncodingError",
    "BufferTooLargeError",
    "MalformedPacketError",
    "ChecksumMismatchError",
    "RegistryError",
    "IndexOutOfRangeError",
    "UnknownCommandError",
    "CommsError",
    "ConnectionError",
    "TransportError",
    "TimeoutError",
    "ResponseTimeoutError",
    # Protocol
    "Packet",
    "DecodedPacket",
    "SerialConfig",
    "SignalGenerator",
    "checksum",
    "verify_checksum",
    "encode_packet",
    "decode_packet",
    "describe",
    "value_label",
    "format_packet",
]
