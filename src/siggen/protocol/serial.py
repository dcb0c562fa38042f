"""
Serial Port Utilities for the Signal Generator
==============================================

This module handles the serial side of talking to the generator:

- Port enumeration and auto-detection
- Opening a port with the generator's line settings
- Closing a port without leaking errors

Serial Port Settings
--------------------
The generator's control port uses:
- Baud Rate: 115200
- Data Bits: 8
- Parity: None
- Stop Bits: 1
- Flow Control: None

pyserial restores the device's previous line state on close, so no
terminal settings are kept around between calls. All settings travel in an
explicit SerialConfig value.
"""

import logging
from dataclasses import dataclass
from typing import Final, Optional

import serial
import serial.tools.list_ports

from siggen.errors import ConnectionError
from siggen.protocol.reader import RESPONSE_TIMEOUT

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Line rate of the generator's control port
DEFAULT_BAUD_RATE: Final[int] = 115200

# Rates accepted on the command line
VALID_BAUD_RATES: Final[tuple[int, ...]] = (9600, 19200, 38400, 57600, 115200)


# =============================================================================
# Configuration
# =============================================================================

@dataclass(frozen=True)
class SerialConfig:
    """
    Settings for one connection to the generator.

    Attributes:
        device: System device path (e.g., '/dev/ttyUSB0', 'COM3').
        baud_rate: Line rate.
        read_timeout: Default pyserial read timeout in seconds. The
                      response reader overrides it per read.
    """

    device: str
    baud_rate: int = DEFAULT_BAUD_RATE
    read_timeout: float = RESPONSE_TIMEOUT

    def __post_init__(self) -> None:
        if self.baud_rate not in VALID_BAUD_RATES:
            valid_str = ", ".join(str(b) for b in VALID_BAUD_RATES)
            raise ValueError(
                f"Invalid baud rate: {self.baud_rate}. Valid rates: {valid_str}"
            )
        if self.read_timeout <= 0:
            raise ValueError(
                f"Read timeout must be positive, got {self.read_timeout}"
            )


# =============================================================================
# Port Discovery
# =============================================================================

@dataclass(frozen=True)
class PortInfo:
    """
    A serial device the generator might be attached to.

    Attributes:
        device: System device path
        description: Driver description, may be empty
        usb_id: "VID:PID" for USB adapters, None for built-in UARTs
    """

    device: str
    description: str
    usb_id: Optional[str]

    def __str__(self) -> str:
        if self.description and self.description != "n/a":
            return f"{self.device} - {self.description}"
        return self.device


def list_serial_ports() -> list[PortInfo]:
    """Enumerate serial devices known to the system, sorted by path."""
    ports = []
    for port in sorted(serial.tools.list_ports.comports(), key=lambda p: p.device):
        usb_id = None
        if port.vid is not None:
            usb_id = f"{port.vid:04X}:{port.pid or 0:04X}"
        ports.append(PortInfo(port.device, port.description or "", usb_id))
        logger.debug("Found port: %s (usb=%s)", port.device, usb_id or "no")
    return ports


def find_generator_port() -> Optional[str]:
    """
    Pick the generator's port when the choice is unambiguous.

    The generator's control port enumerates as a USB-serial adapter. With
    exactly one such adapter present it is used; with none or several the
    user has to name the port.

    Returns:
        Device path, or None if auto-detection is not possible.
    """
    usb_ports = [p for p in list_serial_ports() if p.usb_id is not None]

    if len(usb_ports) == 1:
        logger.info("Auto-detected port: %s", usb_ports[0].device)
        return usb_ports[0].device

    logger.debug("Cannot auto-detect: %d USB serial ports", len(usb_ports))
    return None


def format_port_list(ports: list[PortInfo], verbose: bool = False) -> str:
    """
    Format ports for display, one per line.

    With verbose, the USB id is appended (or "built-in" for other ports).
    """
    if not ports:
        return "No serial ports found."

    lines = []
    for port in ports:
        line = f"  {port}"
        if verbose:
            line += f" [{port.usb_id or 'built-in'}]"
        lines.append(line)
    return "\n".join(lines)


# =============================================================================
# Open / Close
# =============================================================================

def open_serial_port(config: SerialConfig) -> serial.Serial:
    """
    Open and configure a serial port for the generator (8N1, no flow control).

    Args:
        config: Connection settings.

    Returns:
        Opened serial.Serial object with empty buffers.

    Raises:
        ConnectionError: If the port cannot be opened.
    """
    logger.info("Opening serial port: %s at %d baud", config.device, config.baud_rate)

    try:
        port = serial.Serial(
            port=config.device,
            baudrate=config.baud_rate,
            bytesize=serial.EIGHTBITS,
            parity=serial.PARITY_NONE,
            stopbits=serial.STOPBITS_ONE,
            timeout=config.read_timeout,
            xonxoff=False,
            rtscts=False,
            dsrdtr=False,
        )
    except serial.SerialException as e:
        error_msg = str(e)

        if "Permission denied" in error_msg:
            raise ConnectionError(
                f"Permission denied accessing {config.device}. "
                "You may need to add your user to the 'dialout' group."
            ) from e
        elif "No such file" in error_msg or "not found" in error_msg.lower():
            raise ConnectionError(
                f"Serial port not found: {config.device}. "
                "Use 'siggen ports' to list available ports."
            ) from e
        elif "busy" in error_msg.lower() or "in use" in error_msg.lower():
            raise ConnectionError(
                f"Serial port {config.device} is busy. "
                "Close any other programs using the port."
            ) from e
        raise ConnectionError(f"Cannot open {config.device}: {e}") from e

    port.reset_input_buffer()
    port.reset_output_buffer()
    logger.debug("Port opened: %s (timeout=%.1f)", config.device, config.read_timeout)

    return port


def close_serial_port(port: Optional[serial.Serial]) -> None:
    """
    Close a serial port, logging rather than raising on failure.

    Args:
        port: Serial port object to close (None is ignored).
    """
    if port is None:
        return

    try:
        if port.is_open:
            port.close()
            logger.info("Serial port closed")
    except (serial.SerialException, OSError) as e:
        logger.warning("Error closing serial port: %s", e)
