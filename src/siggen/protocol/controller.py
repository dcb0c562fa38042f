"""
Signal Generator Session
========================

Drives one request/response exchange at a time over an open port:

1. Encode the command and write it
2. Read exactly one response within the deadline
3. Hand every packet, outbound and inbound, to an optional observer

There is no pipelining and no automatic retry. A timed-out request
raises ResponseTimeoutError and the caller decides whether to try again.
Monitor mode reads forever without sending anything; stopping it is up to
the caller (Ctrl+C, max_packets, or simply not iterating further).

Usage:
    port = open_serial_port(SerialConfig("/dev/ttyUSB0"))
    generator = SignalGenerator(port)
    response = generator.set_parameter("pattern", 3)
    echoed, status = response_status(response)
"""

import logging
from typing import Callable, Iterator, Optional

import serial

from siggen.errors import (
    MalformedPacketError,
    ResponseTimeoutError,
    TransportError,
)
from siggen.protocol.commands import (
    CommandFamily,
    LiteralCommand,
    describe,
    lookup,
    parameter_key,
    response_status_label,
    value_label,
)
from siggen.protocol.packet import DecodedPacket, decode_packet, encode_packet
from siggen.protocol.reader import RESPONSE_TIMEOUT, ResponseReader, Transport

# Configure module logger
logger = logging.getLogger(__name__)

PacketObserver = Callable[[DecodedPacket], None]


def response_status(packet: DecodedPacket) -> tuple[int, str]:
    """
    Extract the echoed command key and status label from a response.

    Args:
        packet: A packet with the response key (0xFFFF).

    Returns:
        (echoed_key, status_label); the echoed key is read high byte first.

    Raises:
        MalformedPacketError: If packet is not a response or is too short.
        IndexOutOfRangeError: If the status byte has no table entry.
    """
    if packet.command != LiteralCommand.RESPONSE:
        raise MalformedPacketError(
            f"Not a response packet: {describe(packet.command)}"
        )
    if len(packet.payload) < 3:
        raise MalformedPacketError(
            f"Response payload too short: {len(packet.payload)} bytes, need 3"
        )
    echoed = (packet.payload[0] << 8) | packet.payload[1]
    return echoed, response_status_label(packet.payload[2])


class SignalGenerator:
    """
    Command/response session with one signal generator.

    Attributes:
        port: Open transport, owned exclusively by this session.
        reader: Response reader bound to the same port.
    """

    def __init__(
        self,
        port: Transport,
        timeout: float = RESPONSE_TIMEOUT,
        on_packet: Optional[PacketObserver] = None,
    ):
        self.port = port
        self.reader = ResponseReader(port, timeout=timeout)
        self.on_packet = on_packet

    # -------------------------------------------------------------------------
    # Low-Level Exchange
    # -------------------------------------------------------------------------

    def _notify(self, packet: DecodedPacket) -> None:
        if self.on_packet is not None:
            self.on_packet(packet)

    def send(self, command: int, payload: bytes = b"") -> bytes:
        """
        Encode and write one command.

        Args:
            command: 16-bit command key.
            payload: Command data.

        Returns:
            The frame that was written.

        Raises:
            BufferTooLargeError: If payload does not fit a frame.
            TransportError: If the write fails or is short.
        """
        frame = encode_packet(command, payload)
        logger.debug(
            "Sending %s (0x%04X), %d bytes", describe(command), command, len(frame)
        )
        self._notify(decode_packet(frame))

        try:
            written = self.port.write(frame)
            flush = getattr(self.port, "flush", None)
            if flush is not None:
                flush()
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"Write failed: {e}") from e

        if written is not None and written != len(frame):
            raise TransportError(
                f"Short write: {written} of {len(frame)} bytes"
            )

        return frame

    def receive(self) -> DecodedPacket:
        """Read one packet within the response deadline."""
        packet = self.reader.read_packet()
        self._notify(packet)
        return packet

    def request(self, command: int, payload: bytes = b"") -> DecodedPacket:
        """
        Send a command and wait for its response.

        Raises:
            ResponseTimeoutError: If no complete response arrived in time.
            TransportError: If the port fails.
        """
        self.send(command, payload)
        logger.debug("Waiting for response...")
        return self.receive()

    # -------------------------------------------------------------------------
    # Parameter Commands
    # -------------------------------------------------------------------------

    def set_parameter(self, name: str, index: int) -> DecodedPacket:
        """
        Set a parameter to a table index.

        The index is checked against the value table before anything is
        sent. Parameters without a table (user_timing, sink_edid) take any
        byte value.

        Raises:
            UnknownCommandError: If name is not a parameter.
            IndexOutOfRangeError: If index is outside the value table.
        """
        key = parameter_key(name)
        info = lookup(key)
        if info.table is not None:
            label = value_label(key, index)
            logger.info("%s: %s (%d)", info.name, label, index)
        elif not 0 <= index <= 0xFF:
            raise ValueError(f"{info.name} index must be 0-255, got {index}")
        return self.request(key, bytes([index]))

    def read_parameter(self, name: str) -> DecodedPacket:
        """Query the current value of a parameter."""
        return self.request(parameter_key(name, read=True))

    # -------------------------------------------------------------------------
    # Literal Commands
    # -------------------------------------------------------------------------

    def reset(self) -> DecodedPacket:
        # The generator expects one (ignored) data byte with reset
        return self.request(LiteralCommand.RESET, b"\x00")

    def set_address(self, group: int, device: int) -> DecodedPacket:
        """Assign the generator's group and device address."""
        for name, value in (("group", group), ("device", device)):
            if not 0 <= value <= 0xFF:
                raise ValueError(f"{name} address must be 0-255, got {value}")
        return self.request(LiteralCommand.SET_ADDR, bytes([group, device]))

    def read_address(self) -> DecodedPacket:
        return self.request(LiteralCommand.READ_ADDRESS)

    def read_edid(self, output_port: int = 0) -> DecodedPacket:
        if not 0 <= output_port <= 0xFF:
            raise ValueError(f"Output port must be 0-255, got {output_port}")
        return self.request(LiteralCommand.READ_EDID, bytes([output_port]))

    def read_hpd_status(self) -> DecodedPacket:
        return self.request(LiteralCommand.READ_HPD_STATUS)

    def read_native_timing(self) -> DecodedPacket:
        return self.request(LiteralCommand.READ_NATIVE_TIMING)

    def read_output_status(self) -> DecodedPacket:
        return self.request(LiteralCommand.READ_OUTPUT_STATUS)

    # -------------------------------------------------------------------------
    # Monitor Mode
    # -------------------------------------------------------------------------

    def monitor(self, max_packets: Optional[int] = None) -> Iterator[DecodedPacket]:
        """
        Yield unsolicited packets as they arrive.

        Deadlines with no traffic are skipped. Frames with an impossible
        length are logged and skipped. Transport errors propagate.

        Args:
            max_packets: Stop after this many packets (None runs forever).
        """
        count = 0
        logger.info("Monitoring status...")
        while max_packets is None or count < max_packets:
            try:
                packet = self.receive()
            except ResponseTimeoutError as e:
                if e.received:
                    logger.warning("Incomplete frame: %s", e)
                continue
            except MalformedPacketError as e:
                logger.warning("Skipping malformed frame: %s", e)
                continue

            if packet.info.family is CommandFamily.UNKNOWN:
                logger.debug("Unknown command 0x%04X", packet.command)
            count += 1
            yield packet
