"""
Tests for the Response Reader and Signal Generator Session
==========================================================

This module tests the parts of the protocol engine that touch a port:
- Frame reassembly within a deadline
- Timeout, truncation and transport failure outcomes
- Request/response exchanges and argument validation
- Monitor mode

All tests run against scripted in-memory ports (see conftest.py); no
hardware is needed.
"""

import pytest
from unittest.mock import Mock

import serial

from siggen.errors import (
    IndexOutOfRangeError,
    MalformedPacketError,
    ResponseTimeoutError,
    TimeoutError,
    TransportError,
    UnknownCommandError,
)
from siggen.protocol.commands import LiteralCommand
from siggen.protocol.controller import SignalGenerator, response_status
from siggen.protocol.packet import DEVICE_TO_HOST, Packet, decode_packet
from siggen.protocol.reader import ReaderState, ResponseReader

SET_PATTERN_3 = bytes.fromhex("aa000006000000006203eb")
OK_RESPONSE = bytes.fromhex("ab000008000000ffff006200ed")
RESET_FRAME = bytes.fromhex("aa000006000000780200d6")


def device_frame(command: int, payload: bytes = b"") -> bytes:
    return Packet(command, payload, direction=DEVICE_TO_HOST).to_bytes()


def response_frame(echoed: int, status: int) -> bytes:
    return device_frame(
        LiteralCommand.RESPONSE, bytes([echoed >> 8, echoed & 0xFF, status])
    )


# =============================================================================
# Response Reader Tests
# =============================================================================

class TestResponseReader:
    """Tests for single-frame reassembly."""

    def test_complete_in_one_read(self, make_port, clock):
        port = make_port([OK_RESPONSE])
        reader = ResponseReader(port, clock=clock, sleep=clock.sleep)

        packet = reader.read_packet()

        assert packet.raw == OK_RESPONSE
        assert reader.state is ReaderState.COMPLETE
        assert reader.received == len(OK_RESPONSE)

    def test_complete_from_fragments(self, make_port, clock):
        """Reads ask only for the bytes still missing."""
        port = make_port([OK_RESPONSE[:4], OK_RESPONSE[4:10], OK_RESPONSE[10:]])
        reader = ResponseReader(port, clock=clock, sleep=clock.sleep)

        packet = reader.read_packet()

        assert packet.checksum_valid
        assert port.read_sizes == [9, 5, 4, 3]

    def test_bytes_after_frame_left_on_port(self, make_port, clock):
        port = make_port([OK_RESPONSE + b"\x55"])
        reader = ResponseReader(port, clock=clock, sleep=clock.sleep)

        reader.read_packet()

        assert port.chunks == [b"\x55"]

    def test_gaps_between_fragments(self, make_port, clock):
        port = make_port([OK_RESPONSE[:3], b"", b"", OK_RESPONSE[3:]])
        reader = ResponseReader(port, clock=clock, sleep=clock.sleep)

        assert reader.read_packet().raw == OK_RESPONSE

    def test_timeout_with_no_data(self, make_port, clock):
        port = make_port()
        reader = ResponseReader(port, timeout=1.0, clock=clock, sleep=clock.sleep)

        with pytest.raises(ResponseTimeoutError) as exc_info:
            reader.read_packet()

        assert exc_info.value.received == 0
        assert reader.state is ReaderState.TIMED_OUT
        assert clock.now == pytest.approx(1.0)

    def test_timeout_is_comms_timeout(self, make_port, clock):
        reader = ResponseReader(make_port(), clock=clock, sleep=clock.sleep)
        with pytest.raises(TimeoutError):
            reader.read_packet()

    def test_truncated_frame_times_out(self, make_port, clock):
        """A frame cut short never completes."""
        port = make_port([OK_RESPONSE[:-2]])
        reader = ResponseReader(port, clock=clock, sleep=clock.sleep)

        with pytest.raises(ResponseTimeoutError) as exc_info:
            reader.read_packet()

        assert exc_info.value.received == len(OK_RESPONSE) - 2
        assert reader.state is ReaderState.TIMED_OUT

    def test_header_only_times_out(self, make_port, clock):
        reader = ResponseReader(
            make_port([SET_PATTERN_3[:9]]), clock=clock, sleep=clock.sleep
        )
        with pytest.raises(ResponseTimeoutError):
            reader.read_packet()

    def test_oversized_declared_length_times_out(self, make_port, clock):
        """A frame larger than the 256-byte buffer can never complete."""
        header = bytes([0xAB, 0x00, 0x00]) + (300).to_bytes(2, "little") + bytes(4)
        port = make_port([header, bytes(400)])
        reader = ResponseReader(port, clock=clock, sleep=clock.sleep)

        with pytest.raises(ResponseTimeoutError) as exc_info:
            reader.read_packet()

        assert exc_info.value.received == 9
        assert reader.state is ReaderState.TIMED_OUT

    def test_declared_length_below_minimum(self, make_port, clock):
        header = bytes([0xAB, 0x00, 0x00, 0x02, 0x00, 0x00, 0x00, 0xFF, 0xFF])
        port = make_port([header])
        reader = ResponseReader(port, clock=clock, sleep=clock.sleep)

        with pytest.raises(MalformedPacketError):
            reader.read_packet()

        assert reader.state is ReaderState.MALFORMED
        assert port.timeout == 5.0

    def test_bad_checksum_still_completes(self, make_port, clock):
        reader = ResponseReader(
            make_port([OK_RESPONSE[:-1] + b"\x00"]), clock=clock, sleep=clock.sleep
        )

        packet = reader.read_packet()

        assert reader.state is ReaderState.COMPLETE
        assert not packet.checksum_valid

    def test_transport_error(self, make_port, clock):
        port = make_port(fail_reads=True)
        reader = ResponseReader(port, clock=clock, sleep=clock.sleep)

        with pytest.raises(TransportError):
            reader.read_packet()

        assert reader.state is ReaderState.TRANSPORT_ERROR

    def test_port_timeout_restored(self, make_port, clock):
        """Per-read timeouts never exceed the deadline and are undone."""
        port = make_port([OK_RESPONSE[:5], b"", OK_RESPONSE[5:]])
        reader = ResponseReader(port, timeout=0.5, clock=clock, sleep=clock.sleep)

        reader.read_packet()

        assert port.timeout == 5.0
        assert all(0 < t <= 0.5 for t in port.read_timeouts)

    def test_port_timeout_restored_after_error(self, make_port, clock):
        port = make_port(fail_reads=True)
        reader = ResponseReader(port, clock=clock, sleep=clock.sleep)

        with pytest.raises(TransportError):
            reader.read_packet()

        assert port.timeout == 5.0

    def test_timeout_set_once_for_back_to_back_reads(self, make_port, clock):
        """Fragments arriving without delay reuse the applied timeout."""
        port = make_port([OK_RESPONSE[:4], OK_RESPONSE[4:10], OK_RESPONSE[10:]])
        reader = ResponseReader(port, clock=clock, sleep=clock.sleep)

        reader.read_packet()

        # once for the read, once to restore
        assert port.timeout_writes == 2
        assert len(port.read_sizes) == 4

    def test_timeout_tightened_as_deadline_nears(self, make_port, clock):
        port = make_port([OK_RESPONSE[:5]] + [b""] * 5 + [OK_RESPONSE[5:]])
        reader = ResponseReader(port, timeout=0.5, clock=clock, sleep=clock.sleep)

        reader.read_packet()

        assert 2 < port.timeout_writes < len(port.read_sizes) + 1
        assert min(port.read_timeouts) < 0.5

    def test_reader_reusable(self, make_port, clock):
        port = make_port([SET_PATTERN_3, OK_RESPONSE])
        reader = ResponseReader(port, clock=clock, sleep=clock.sleep)

        assert reader.read_packet().raw == SET_PATTERN_3
        assert reader.read_packet().raw == OK_RESPONSE

    def test_invalid_timeout(self, make_port):
        with pytest.raises(ValueError):
            ResponseReader(make_port(), timeout=0)

    def test_initial_state(self, make_port):
        assert ResponseReader(make_port()).state is ReaderState.IDLE


# =============================================================================
# Response Status Tests
# =============================================================================

class TestResponseStatus:
    """Tests for response_status()."""

    def test_ok(self):
        assert response_status(decode_packet(OK_RESPONSE)) == (0x0062, "ok")

    def test_echoed_key_high_byte_first(self):
        packet = decode_packet(response_frame(0x8061, 2))
        assert response_status(packet) == (0x8061, "invalid_cmd")

    def test_not_a_response(self):
        with pytest.raises(MalformedPacketError):
            response_status(decode_packet(SET_PATTERN_3))

    def test_short_payload(self):
        with pytest.raises(MalformedPacketError):
            response_status(decode_packet(device_frame(0xFFFF, b"\x00\x62")))

    def test_status_out_of_range(self):
        with pytest.raises(IndexOutOfRangeError):
            response_status(decode_packet(response_frame(0x0062, 9)))


# =============================================================================
# Signal Generator Session Tests
# =============================================================================

class TestSignalGenerator:
    """Tests for request/response exchanges."""

    def test_set_parameter(self, make_port):
        port = make_port([OK_RESPONSE])
        generator = SignalGenerator(port, timeout=0.05)

        response = generator.set_parameter("pattern", 3)

        assert bytes(port.written) == SET_PATTERN_3
        assert response_status(response) == (0x0062, "ok")

    def test_observer_sees_both_directions(self, make_port):
        observer = Mock()
        generator = SignalGenerator(
            make_port([OK_RESPONSE]), timeout=0.05, on_packet=observer
        )

        generator.set_parameter("pattern", 3)

        assert observer.call_count == 2
        outbound = observer.call_args_list[0].args[0]
        inbound = observer.call_args_list[1].args[0]
        assert outbound.direction_label == "PC->MCU"
        assert outbound.raw == SET_PATTERN_3
        assert inbound.direction_label == "MCU->PC"

    def test_set_parameter_out_of_range(self, make_port):
        """Nothing is sent for an index outside the table."""
        port = make_port([OK_RESPONSE])
        generator = SignalGenerator(port, timeout=0.05)

        with pytest.raises(IndexOutOfRangeError):
            generator.set_parameter("pattern", 34)

        assert port.written == b""

    def test_set_parameter_last_index(self, make_port):
        port = make_port([response_frame(0x0063, 0)])
        generator = SignalGenerator(port, timeout=0.05)

        generator.set_parameter("colorspace", 4)

        assert decode_packet(bytes(port.written)).payload == b"\x04"

    def test_set_unknown_parameter(self, make_port):
        generator = SignalGenerator(make_port(), timeout=0.05)
        with pytest.raises(UnknownCommandError):
            generator.set_parameter("brightness", 1)

    def test_tableless_parameter(self, make_port):
        port = make_port([response_frame(0x00A0, 0)])
        generator = SignalGenerator(port, timeout=0.05)

        generator.set_parameter("user_timing", 200)

        assert decode_packet(bytes(port.written)).payload == bytes([200])
        with pytest.raises(ValueError):
            generator.set_parameter("user_timing", 256)

    def test_read_parameter(self, make_port):
        port = make_port([device_frame(0x8061, b"\x0c")])
        generator = SignalGenerator(port, timeout=0.05)

        packet = generator.read_parameter("timing")

        sent = decode_packet(bytes(port.written))
        assert sent.command == 0x8061
        assert sent.payload == b""
        assert packet.payload == b"\x0c"

    def test_reset(self, make_port):
        """Reset carries a single zero data byte."""
        port = make_port([response_frame(0x7802, 0)])

        SignalGenerator(port, timeout=0.05).reset()

        assert bytes(port.written) == RESET_FRAME

    def test_set_address(self, make_port):
        port = make_port([response_frame(0x7801, 0)])
        generator = SignalGenerator(port, timeout=0.05)

        generator.set_address(1, 2)

        sent = decode_packet(bytes(port.written))
        assert sent.command == 0x7801
        assert sent.payload == bytes([1, 2])

    def test_set_address_out_of_range(self, make_port):
        generator = SignalGenerator(make_port(), timeout=0.05)
        with pytest.raises(ValueError):
            generator.set_address(1, 256)

    @pytest.mark.parametrize("method,key", [
        ("read_address", 0xF801),
        ("read_hpd_status", 0xB839),
        ("read_native_timing", 0x80A1),
        ("read_output_status", 0x80A9),
    ])
    def test_literal_reads(self, make_port, method, key):
        port = make_port([device_frame(key, b"\x01")])
        generator = SignalGenerator(port, timeout=0.05)

        packet = getattr(generator, method)()

        assert decode_packet(bytes(port.written)).command == key
        assert packet.command == key

    def test_read_edid(self, make_port):
        port = make_port([device_frame(0xB838, bytes(16))])
        generator = SignalGenerator(port, timeout=0.05)

        generator.read_edid(1)

        assert decode_packet(bytes(port.written)).payload == b"\x01"

    def test_no_response(self, make_port):
        generator = SignalGenerator(make_port(), timeout=0.05)
        with pytest.raises(ResponseTimeoutError):
            generator.set_parameter("pattern", 3)

    def test_short_write(self, make_port):
        port = make_port([OK_RESPONSE])
        port.short_write = True
        generator = SignalGenerator(port, timeout=0.05)

        with pytest.raises(TransportError):
            generator.set_parameter("pattern", 3)

    def test_write_failure(self, make_port):
        port = make_port()
        port.write = Mock(side_effect=serial.SerialException("write failed"))
        generator = SignalGenerator(port, timeout=0.05)

        with pytest.raises(TransportError):
            generator.reset()


# =============================================================================
# Monitor Mode Tests
# =============================================================================

class TestMonitor:
    """Tests for passive status monitoring."""

    def test_yields_packets(self, make_port):
        frames = [device_frame(0xB839, b"\x01"), device_frame(0x8062, b"\x03")]
        port = make_port(frames)
        generator = SignalGenerator(port, timeout=0.05)

        packets = list(generator.monitor(max_packets=2))

        assert [p.raw for p in packets] == frames
        assert port.written == b""

    def test_skips_timeouts(self, make_port, clock):
        frame = device_frame(0xB839, b"\x00")
        port = make_port([b""] * 60 + [frame])
        generator = SignalGenerator(port, timeout=0.5)
        generator.reader = ResponseReader(
            port, timeout=0.5, clock=clock, sleep=clock.sleep
        )

        packets = list(generator.monitor(max_packets=1))

        assert packets[0].raw == frame

    def test_skips_incomplete_frames(self, make_port, clock):
        frame = device_frame(0xB839, b"\x01")
        port = make_port([frame[:5]] + [b""] * 60 + [frame])
        generator = SignalGenerator(port, timeout=0.5)
        generator.reader = ResponseReader(
            port, timeout=0.5, clock=clock, sleep=clock.sleep
        )

        packets = list(generator.monitor(max_packets=1))

        assert packets[0].raw == frame

    def test_skips_malformed_frames(self, make_port):
        bad_header = bytes([0xAB, 0x00, 0x00, 0x02, 0x00, 0x00, 0x00, 0xB8, 0x39])
        frame = device_frame(0xB839, b"\x01")
        generator = SignalGenerator(make_port([bad_header, frame]), timeout=0.05)

        packets = list(generator.monitor(max_packets=1))

        assert packets[0].raw == frame

    def test_unknown_commands_yielded(self, make_port):
        frame = device_frame(0x1234, b"\x01")
        generator = SignalGenerator(make_port([frame]), timeout=0.05)

        packets = list(generator.monitor(max_packets=1))

        assert packets[0].info.name == "unk"

    def test_observer_called(self, make_port):
        observer = Mock()
        generator = SignalGenerator(
            make_port([device_frame(0xB839, b"\x01")]),
            timeout=0.05,
            on_packet=observer,
        )

        list(generator.monitor(max_packets=1))

        observer.assert_called_once()

    def test_transport_error_propagates(self, make_port):
        generator = SignalGenerator(make_port(fail_reads=True), timeout=0.05)
        with pytest.raises(TransportError):
            next(generator.monitor())
