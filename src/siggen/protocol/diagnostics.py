"""
Packet Diagnostics
==================

Renders decoded packets, valid or not, as a detailed text report:

    00000000  aa 00 00 06 00 00 00 00  62 03 eb                  |........b..     |
            PC->MCU
            dev_id=0x0000
            command=set pattern (0x0062)
            len=6
            data: 1 bytes
            addr=0x00 0x00
            checksum: 0xeb (0xeb) ok
            pattern: RedScreen (3)

Nothing here raises for a packet that decode_packet() returned. Unknown
commands render as ``unk``, out-of-range table values as ``invalid``.
"""

from typing import Final, Optional

from siggen.errors import IndexOutOfRangeError
from siggen.protocol.commands import (
    CommandFamily,
    LiteralCommand,
    ParameterCommand,
    UNKNOWN_NAME,
    describe,
    response_status_label,
    value_label,
)
from siggen.protocol.packet import DecodedPacket

# Bytes per hexdump row, split into groups of _GROUP_WIDTH
_ROW_WIDTH: Final[int] = 16
_GROUP_WIDTH: Final[int] = 8

NO_DATA: Final[str] = "(no data)"


def hexdump(data: bytes) -> str:
    """
    Format bytes as a classic hex dump.

    Each row holds 16 bytes in two groups of 8, prefixed by the offset and
    followed by an ASCII column where non-printable bytes show as ``.``.

    Args:
        data: Bytes to dump.

    Returns:
        Multi-line dump, empty string for empty data.
    """
    lines = []
    for offset in range(0, len(data), _ROW_WIDTH):
        row = data[offset:offset + _ROW_WIDTH]
        cells = []
        for i in range(_ROW_WIDTH):
            if i % _GROUP_WIDTH == 0:
                cells.append(" ")
            cells.append(f"{row[i]:02x} " if i < len(row) else "   ")
        text = "".join(chr(b) if 0x20 <= b < 0x7F else "." for b in row)
        lines.append(f"{offset:08x} {''.join(cells)}  |{text:<{_ROW_WIDTH}}|")
    return "\n".join(lines)


def _table_value(parameter: ParameterCommand, raw: int) -> str:
    try:
        label = value_label(parameter, raw)
    except IndexOutOfRangeError:
        return f"invalid ({raw})"
    return f"{label} ({raw})"


def _interpret_literal(packet: DecodedPacket) -> Optional[str]:
    d = packet.payload
    key = packet.command

    if key == LiteralCommand.RESET:
        return None

    if key in (LiteralCommand.SET_ADDR, LiteralCommand.READ_ADDRESS):
        name = LiteralCommand(key).label
        if len(d) < 2:
            return f"{name}: {NO_DATA}"
        return f"{name}: group={d[0]} device={d[1]}"

    if key == LiteralCommand.READ_HPD_STATUS:
        if not d:
            return f"hpd_status: {NO_DATA}"
        return f"hpd_status: {'high' if d[0] else 'low'} ({d[0]})"

    if key == LiteralCommand.READ_EDID:
        if not d:
            return f"read_edid: {NO_DATA}"
        return f"read_edid: output_port={d[0]} ({len(d)} bytes)"

    if key == LiteralCommand.RESPONSE:
        return _interpret_response(d)

    # read_native_timing / read_output_status: raw bytes only
    name = LiteralCommand(key).label
    return f"{name}: {d.hex(' ') if d else NO_DATA}"


def _interpret_response(d: bytes) -> str:
    if len(d) < 3:
        return f"response: {NO_DATA}" if not d else f"response: short ({d.hex(' ')})"

    echoed = (d[0] << 8) | d[1]
    try:
        status = response_status_label(d[2])
    except IndexOutOfRangeError:
        status = f"invalid ({d[2]})"
    return f"response to {describe(echoed)} (0x{echoed:04x}): {status}"


def _interpret_parameter(packet: DecodedPacket) -> str:
    parameter = packet.info.parameter
    name = parameter.label
    d = packet.payload

    if not d:
        return f"{name}: {NO_DATA}"

    if parameter in (ParameterCommand.USER_TIMING, ParameterCommand.SINK_EDID):
        return f"{name}: index={d[0]}"

    return f"{name}: {_table_value(parameter, d[0])}"


def interpret_payload(packet: DecodedPacket) -> Optional[str]:
    """
    Command-specific reading of a packet's payload.

    Args:
        packet: Any decoded packet.

    Returns:
        One line of interpretation, or None when the command carries
        nothing worth showing (reset).
    """
    family = packet.info.family

    if family is CommandFamily.LITERAL:
        return _interpret_literal(packet)
    if family is CommandFamily.PARAMETER:
        return _interpret_parameter(packet)
    return UNKNOWN_NAME


def format_packet(packet: DecodedPacket) -> str:
    """
    Build the full diagnostic report for a packet.

    Args:
        packet: Any decoded packet.

    Returns:
        Hex dump followed by tab-indented field lines.
    """
    lines = []
    dump = hexdump(packet.raw)
    if dump:
        lines.append(dump)

    lines.append(f"\t{packet.direction_label}")
    lines.append(f"\tdev_id=0x{packet.device_id:04x}")
    lines.append(
        f"\tcommand={describe(packet.command)} (0x{packet.command:04x})"
    )
    lines.append(f"\tlen={packet.declared_length}")
    lines.append(f"\tdata: {packet.payload_length} bytes")
    lines.append(f"\taddr=0x{packet.group:02x} 0x{packet.device:02x}")
    lines.append(
        f"\tchecksum: 0x{packet.computed_checksum:02x} "
        f"(0x{packet.checksum:02x}) "
        f"{'ok' if packet.checksum_valid else 'failed'}"
    )

    interpretation = interpret_payload(packet)
    if interpretation is not None:
        lines.append(f"\t{interpretation}")

    return "\n".join(lines)
