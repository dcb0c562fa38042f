"""
siggen - Signal Generator Command-Line Interface
================================================

This module implements the command-line interface for controlling an
HDMI test-signal generator over its serial control port. Every packet
sent or received is printed as a diagnostic report.

Usage Examples
--------------
List available serial ports:
    $ siggen ports

Show the value tables:
    $ siggen tables
    $ siggen tables pattern

Change the output pattern and timing:
    $ siggen -p /dev/ttyUSB0 set pattern 3
    $ siggen -p /dev/ttyUSB0 set timing 20

Query the generator:
    $ siggen -p /dev/ttyUSB0 get colorspace
    $ siggen -p /dev/ttyUSB0 hpd
    $ siggen -p /dev/ttyUSB0 address

Watch status changes until Ctrl+C:
    $ siggen -p /dev/ttyUSB0 monitor

Decode a captured frame without hardware:
    $ siggen decode "aa 00 00 06 00 00 00 00 62 03 eb"

The port may also be given in the SIGGEN_PORT environment variable.

Exit Codes
----------
0 - Success
1 - Connection, transport, timeout or device-reported error
2 - Invalid arguments (including values outside a table)
3 - Internal error
"""

import logging
from typing import Callable, Optional

import click

from siggen import __version__
from siggen.cli.errors import ExitCode, handle_cli_exception
from siggen.errors import IndexOutOfRangeError
from siggen.protocol import (
    DEFAULT_BAUD_RATE,
    RESPONSE_STATUSES,
    RESPONSE_TIMEOUT,
    VALID_BAUD_RATES,
    DecodedPacket,
    LiteralCommand,
    ResponseStatus,
    SerialConfig,
    SignalGenerator,
    close_serial_port,
    decode_packet,
    describe,
    find_generator_port,
    format_packet,
    format_port_list,
    format_value_table,
    list_serial_ports,
    lookup,
    open_serial_port,
    parameter_key,
    parameter_names,
    response_status,
    table_names,
    value_label,
)

# Configure logging
logger = logging.getLogger(__name__)


# =============================================================================
# CLI Context and Utilities
# =============================================================================

class Context:
    """
    Shared context for CLI commands.

    Stores common options like port, baud rate, timeout and verbosity.
    """

    def __init__(self) -> None:
        self.port: Optional[str] = None
        self.baud: int = DEFAULT_BAUD_RATE
        self.verbose: bool = False
        self.timeout: float = RESPONSE_TIMEOUT

    def setup_logging(self) -> None:
        """Configure logging based on verbosity."""
        level = logging.DEBUG if self.verbose else logging.WARNING
        logging.basicConfig(
            level=level,
            format="%(levelname)s: %(name)s: %(message)s" if self.verbose else "%(message)s",
        )

    def serial_config(self, device: str) -> SerialConfig:
        return SerialConfig(device, baud_rate=self.baud, read_timeout=self.timeout)


pass_context = click.make_pass_decorator(Context, ensure=True)


def echo_packet(packet: DecodedPacket) -> None:
    """Print a diagnostic report for one packet."""
    click.echo(format_packet(packet))
    click.echo()


def require_port(ctx: Context) -> str:
    """Get the configured port, auto-detecting if none was given."""
    device = ctx.port or find_generator_port()
    if not device:
        click.echo("Error: No serial port specified and auto-detect failed.", err=True)
        click.echo("Use --port option or 'siggen ports' to find available ports.", err=True)
        raise SystemExit(ExitCode.DEVICE_ERROR)
    return device


def report_response(packet: DecodedPacket) -> None:
    """
    Summarize a response packet and exit non-zero on device errors.

    Non-response packets (e.g. the answer to a read) are already shown in
    full by echo_packet, so only checksum problems are reported for them.
    """
    if not packet.checksum_valid:
        click.echo("Warning: response checksum failed", err=True)

    if packet.command != LiteralCommand.RESPONSE:
        return

    try:
        echoed, status = response_status(packet)
    except IndexOutOfRangeError:
        click.echo(f"Response status invalid: {packet.payload[2]}", err=True)
        raise SystemExit(ExitCode.DEVICE_ERROR)

    click.echo(f"Response to {describe(echoed)}: {status}")
    if status != RESPONSE_STATUSES[ResponseStatus.OK]:
        raise SystemExit(ExitCode.DEVICE_ERROR)


def run_session(
    ctx: Context,
    action: Callable[[SignalGenerator], Optional[DecodedPacket]],
) -> None:
    """
    Open the port, run one action against the generator and close the port.

    Args:
        ctx: CLI context with port settings.
        action: Callable performing the exchange. A returned packet is
                summarized with report_response().
    """
    device = require_port(ctx)

    try:
        port = open_serial_port(ctx.serial_config(device))
        try:
            generator = SignalGenerator(
                port, timeout=ctx.timeout, on_packet=echo_packet
            )
            response = action(generator)
            if response is not None:
                report_response(response)
        finally:
            close_serial_port(port)

    except Exception as e:
        handle_cli_exception(e, verbose=ctx.verbose)


# =============================================================================
# Main CLI Group
# =============================================================================

@click.group()
@click.option(
    "-p", "--port",
    type=str,
    default=None,
    envvar="SIGGEN_PORT",
    help="Serial port device (auto-detect if not specified)",
)
@click.option(
    "-b", "--baud",
    type=click.Choice([str(b) for b in VALID_BAUD_RATES]),
    default=str(DEFAULT_BAUD_RATE),
    help=f"Baud rate (default: {DEFAULT_BAUD_RATE})",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=RESPONSE_TIMEOUT,
    help=f"Response timeout in seconds (default: {RESPONSE_TIMEOUT})",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Enable verbose output",
)
@click.version_option(version=__version__, prog_name="siggen")
@pass_context
def main(ctx: Context, port: Optional[str], baud: str, timeout: float, verbose: bool) -> None:
    """
    Control an HDMI test-signal generator over its serial port.

    Every packet sent and received is printed as a hex dump followed by
    its decoded fields.

    Use 'siggen tables' to see valid values for each parameter and
    'siggen ports' to list available serial ports.
    """
    ctx.port = port
    ctx.baud = int(baud)
    ctx.timeout = timeout
    ctx.verbose = verbose
    ctx.setup_logging()


# =============================================================================
# Offline Commands
# =============================================================================

@main.command()
@click.option(
    "--detailed", "-d",
    is_flag=True,
    help="Show detailed port information",
)
def ports(detailed: bool) -> None:
    """
    List available serial ports.

    Example:
        siggen ports
        siggen ports --detailed
    """
    port_list = list_serial_ports()

    if not port_list:
        click.echo("No serial ports found.")
        click.echo("\nTips:")
        click.echo("  - Connect your USB-serial adapter")
        click.echo("  - On Linux, ensure you have permission (dialout group)")
        return

    click.echo("Available serial ports:")
    click.echo(format_port_list(port_list, verbose=detailed))

    auto_port = find_generator_port()
    if auto_port:
        click.echo(f"\nSuggested port: {auto_port}")


@main.command()
@click.argument(
    "name",
    type=click.Choice(table_names() + ["response"]),
    required=False,
)
def tables(name: Optional[str]) -> None:
    """
    Show value tables for parameter commands.

    NAME limits the output to one table. Indices shown here are the
    values accepted by 'siggen set'.

    Example:
        siggen tables
        siggen tables timing
    """
    names = [name] if name else table_names()
    for i, table in enumerate(names):
        if i:
            click.echo()
        click.echo(f"{table}:")
        click.echo(format_value_table(table))


@main.command()
@click.argument("frame", nargs=-1, required=True)
@pass_context
def decode(ctx: Context, frame: tuple[str, ...]) -> None:
    """
    Decode a captured frame given as hex.

    FRAME may be split into several arguments and may contain spaces or
    colons between bytes.

    Example:
        siggen decode aa 00 00 06 00 00 00 00 62 03 eb
        siggen decode ab:00:00:08:00:00:00:ff:ff:00:62:00:ed
    """
    text = "".join(frame).replace(":", "").replace(" ", "")
    try:
        data = bytes.fromhex(text)
    except ValueError:
        click.echo(f"Error: not a hex string: {''.join(frame)}", err=True)
        raise SystemExit(ExitCode.INVALID_ARGS)

    try:
        packet = decode_packet(data)
    except Exception as e:
        handle_cli_exception(e, verbose=ctx.verbose, error_type="Decode")

    echo_packet(packet)
    if not packet.checksum_valid:
        raise SystemExit(ExitCode.DEVICE_ERROR)


# =============================================================================
# Parameter Commands
# =============================================================================

@main.command("set")
@click.argument("name", type=click.Choice(parameter_names()))
@click.argument("index", type=int)
@pass_context
def set_command(ctx: Context, name: str, index: int) -> None:
    """
    Set a parameter to a table index.

    NAME is the parameter, INDEX its value (see 'siggen tables NAME').

    Example:
        siggen set pattern 3
        siggen set audio_sampling 2
    """
    info = lookup(parameter_key(name))
    try:
        if info.table is not None:
            click.echo(f"{name}: {value_label(name, index)} ({index})")
        elif not 0 <= index <= 0xFF:
            raise ValueError(f"{name} index must be 0-255, got {index}")
        else:
            click.echo(f"{name}: index={index}")
    except Exception as e:
        handle_cli_exception(e, verbose=ctx.verbose)

    run_session(ctx, lambda generator: generator.set_parameter(name, index))


@main.command("get")
@click.argument("name", type=click.Choice(parameter_names()))
@pass_context
def get_command(ctx: Context, name: str) -> None:
    """
    Read the current value of a parameter.

    Example:
        siggen get timing
    """
    run_session(ctx, lambda generator: generator.read_parameter(name))


# =============================================================================
# Literal Commands
# =============================================================================

@main.command()
@pass_context
def reset(ctx: Context) -> None:
    """Reset the generator."""
    run_session(ctx, lambda generator: generator.reset())


@main.command()
@click.argument("group", type=click.IntRange(0, 255), required=False)
@click.argument("device", type=click.IntRange(0, 255), required=False)
@pass_context
def address(ctx: Context, group: Optional[int], device: Optional[int]) -> None:
    """
    Read or set the generator's group/device address.

    Without arguments the current address is read.

    Example:
        siggen address
        siggen address 1 2
    """
    if group is None:
        run_session(ctx, lambda generator: generator.read_address())
        return
    if device is None:
        raise click.UsageError("DEVICE is required when GROUP is given")
    run_session(ctx, lambda generator: generator.set_address(group, device))


@main.command()
@click.argument("output_port", type=click.IntRange(0, 255), default=0)
@pass_context
def edid(ctx: Context, output_port: int) -> None:
    """Read the EDID seen on OUTPUT_PORT (default 0)."""
    run_session(ctx, lambda generator: generator.read_edid(output_port))


@main.command()
@pass_context
def hpd(ctx: Context) -> None:
    """Read the hot-plug detect status."""
    run_session(ctx, lambda generator: generator.read_hpd_status())


@main.command("native-timing")
@pass_context
def native_timing(ctx: Context) -> None:
    """Read the sink's native timing."""
    run_session(ctx, lambda generator: generator.read_native_timing())


@main.command("output-status")
@pass_context
def output_status(ctx: Context) -> None:
    """Read the output status."""
    run_session(ctx, lambda generator: generator.read_output_status())


# =============================================================================
# Monitor Command
# =============================================================================

@main.command()
@click.option(
    "--count", "-n",
    type=click.IntRange(min=1),
    default=None,
    help="Stop after this many packets (default: run until Ctrl+C)",
)
@pass_context
def monitor(ctx: Context, count: Optional[int]) -> None:
    """
    Print status packets sent by the generator.

    Nothing is sent. Runs until interrupted unless --count is given.

    Example:
        siggen monitor
        siggen monitor --count 5
    """
    def watch(generator: SignalGenerator) -> None:
        click.echo("Monitoring status... (Ctrl+C to stop)")
        try:
            for _ in generator.monitor(max_packets=count):
                pass
        except KeyboardInterrupt:
            click.echo("\nStopped")

    run_session(ctx, watch)


# =============================================================================
# Entry Point
# =============================================================================

if __name__ == "__main__":
    main()
