"""
Signal Generator Protocol Module
================================

This module implements the binary serial protocol spoken by the HDMI
test-signal generator: packet framing and checksums, the command key
registry with its value tables, deadline-bounded response reassembly and
diagnostic rendering of any traffic seen on the wire.

Module Structure
----------------
- **checksum**: two's-complement frame checksum
- **commands**: command keys, read/set convention and value tables
- **packet**: frame encoding/decoding
- **reader**: single-frame reassembly within a deadline
- **diagnostics**: hex dump and field-by-field packet reports
- **serial**: serial port discovery and configuration
- **controller**: request/response session and monitor loop

Quick Start
-----------
    from siggen.protocol import (
        SerialConfig,
        SignalGenerator,
        format_packet,
        open_serial_port,
        close_serial_port,
    )

    port = open_serial_port(SerialConfig("/dev/ttyUSB0"))
    try:
        generator = SignalGenerator(port, on_packet=lambda p: print(format_packet(p)))
        generator.set_parameter("pattern", 3)
    finally:
        close_serial_port(port)

Offline decoding of a captured frame:

    from siggen.protocol import decode_packet, format_packet

    packet = decode_packet(bytes.fromhex("ab000008000000ffff006200ed"))
    print(format_packet(packet))

Error Handling
--------------
Encoding, decoding and lookup failures inherit from `ProtocolError` or
`RegistryError`; serial failures inherit from `CommsError`. These
exceptions are defined in `siggen.errors`.

Thread Safety
-------------
Nothing here is thread-safe. One session owns its port; use it from a
single thread.
"""

# =============================================================================
# Public API Exports
# =============================================================================

from siggen.protocol.checksum import append_checksum, checksum, verify_checksum

from siggen.protocol.commands import (
    READ_FLAG,
    VALUE_TABLES,
    RESPONSE_STATUSES,
    CommandFamily,
    CommandInfo,
    LiteralCommand,
    ParameterCommand,
    ResponseStatus,
    command_key,
    describe,
    format_value_table,
    lookup,
    parameter_key,
    parameter_names,
    response_status_label,
    table_names,
    value_label,
    value_table,
)

from siggen.protocol.packet import (
    DEVICE_TO_HOST,
    HEADER_SIZE,
    HOST_TO_DEVICE,
    MAX_FRAME_SIZE,
    MAX_PAYLOAD_SIZE,
    DecodedPacket,
    Packet,
    decode_packet,
    encode_packet,
)

from siggen.protocol.reader import (
    RESPONSE_TIMEOUT,
    ReaderState,
    ResponseReader,
    Transport,
)

from siggen.protocol.diagnostics import format_packet, hexdump, interpret_payload

from siggen.protocol.serial import (
    DEFAULT_BAUD_RATE,
    VALID_BAUD_RATES,
    PortInfo,
    SerialConfig,
    close_serial_port,
    find_generator_port,
    format_port_list,
    list_serial_ports,
    open_serial_port,
)

from siggen.protocol.controller import SignalGenerator, response_status

__all__ = [
    # Checksum
    "checksum",
    "verify_checksum",
    "append_checksum",
    # Registry
    "READ_FLAG",
    "VALUE_TABLES",
    "RESPONSE_STATUSES",
    "CommandFamily",
    "CommandInfo",
    "LiteralCommand",
    "ParameterCommand",
    "ResponseStatus",
    "command_key",
    "describe",
    "format_value_table",
    "lookup",
    "parameter_key",
    "parameter_names",
    "response_status_label",
    "table_names",
    "value_label",
    "value_table",
    # Codec
    "HOST_TO_DEVICE",
    "DEVICE_TO_HOST",
    "HEADER_SIZE",
    "MAX_FRAME_SIZE",
    "MAX_PAYLOAD_SIZE",
    "Packet",
    "DecodedPacket",
    "encode_packet",
    "decode_packet",
    # Reader
    "RESPONSE_TIMEOUT",
    "ReaderState",
    "ResponseReader",
    "Transport",
    # Diagnostics
    "format_packet",
    "hexdump",
    "interpret_payload",
    # Serial
    "DEFAULT_BAUD_RATE",
    "VALID_BAUD_RATES",
    "PortInfo",
    "SerialConfig",
    "list_serial_ports",
    "find_generator_port",
    "format_port_list",
    "open_serial_port",
    "close_serial_port",
    # Session
    "SignalGenerator",
    "response_status",
]
