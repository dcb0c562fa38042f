"""
Shared test fixtures for siggen.

Provides an in-memory stand-in for a serial port and a manual clock so
that reader deadlines can be tested without hardware or real waiting.
"""

import pytest
import serial


class FakePort:
    """
    Scripted serial port.

    Each entry in ``chunks`` is what the device makes available to one
    read: reads return at most the requested size, leaving the rest of the
    chunk for the next read. An empty chunk models a read that timed out
    with nothing received.
    """

    def __init__(self, chunks=(), fail_reads=False):
        self.chunks = [bytes(c) for c in chunks]
        self.fail_reads = fail_reads
        self.timeout_writes = 0
        self._timeout = 5.0
        self.is_open = True
        self.written = bytearray()
        self.read_sizes = []
        self.read_timeouts = []
        self.short_write = False

    @property
    def timeout(self):
        return self._timeout

    @timeout.setter
    def timeout(self, value):
        self.timeout_writes += 1
        self._timeout = value

    def read(self, size=1):
        self.read_sizes.append(size)
        self.read_timeouts.append(self.timeout)
        if self.fail_reads:
            raise serial.SerialException("device reports readiness to read but returned no data")
        if not self.chunks:
            return b""
        chunk = self.chunks[0]
        if len(chunk) > size:
            self.chunks[0] = chunk[size:]
            return chunk[:size]
        self.chunks.pop(0)
        return chunk

    def write(self, data):
        if self.short_write:
            data = data[:-1]
        self.written.extend(data)
        return len(data)

    def flush(self):
        pass

    def close(self):
        self.is_open = False


class FakeClock:
    """Monotonic clock that only advances when sleep() is called."""

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.now += seconds


@pytest.fixture
def make_port():
    """Factory for scripted ports."""
    return FakePort


@pytest.fixture
def clock():
    return FakeClock()
