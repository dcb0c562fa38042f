"""
Command Registry for the Signal Generator Protocol
===================================================

Every packet carries a 16-bit command key. Keys come in two families:

- **Literal keys** are fixed values with no bit convention: addressing,
  reset, the read-only status queries and the reserved response key.
- **Parameter keys** live in the low byte range 0x61-0xAB. The "set"
  variant is the base key itself; the "read" variant has bit 0x8000 set.

Literal keys are checked first, so 0x80A1 is ``read_native_timing`` and
never a read of parameter 0xA1. Keys in neither family resolve to an
explicit UNKNOWN variant named ``unk`` so diagnostics can always render
them.

Most parameters take a single payload byte that indexes a value table of
human-readable labels. Valid indices are strictly ``0 <= n < len(table)``.

Usage
-----
    from siggen.protocol.commands import describe, parameter_key, value_label

    key = parameter_key("pattern")            # 0x0062
    describe(key | READ_FLAG)                 # 'read pattern'
    value_label("pattern", 3)                 # 'RedScreen'
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Final, Optional, Union

from siggen.errors import IndexOutOfRangeError, UnknownCommandError

# Bit that turns a parameter "set" key into its "read" key
READ_FLAG: Final[int] = 0x8000

# Mask that strips the read flag from a parameter key
BASE_MASK: Final[int] = 0x7FFF

# Name rendered for keys outside both families
UNKNOWN_NAME: Final[str] = "unk"


# =============================================================================
# Command Keys
# =============================================================================

class ParameterCommand(IntEnum):
    """Base keys of parameter commands (the "set" variant)."""

    TIMING = 0x61
    PATTERN = 0x62
    COLORSPACE = 0x63
    DEEPCOLOR = 0x64
    HDCP = 0x65
    OUTPUT_TYPE = 0x66
    AUDIO_SAMPLING = 0x67
    AUDIO_WIDTH = 0x68
    AUDIO_SOURCE = 0x69
    AUDIO_CHANNEL = 0x6A
    USER_TIMING = 0xA0
    SINK_EDID = 0xAA
    OUTPUT_POWER = 0xAB

    @property
    def label(self) -> str:
        """Lower-case name used on the command line and in diagnostics."""
        return self.name.lower()

    @property
    def read_key(self) -> int:
        return self.value | READ_FLAG


class LiteralCommand(IntEnum):
    """Keys that do not follow the read/set bit convention."""

    SET_ADDR = 0x7801
    RESET = 0x7802
    READ_NATIVE_TIMING = 0x80A1
    READ_OUTPUT_STATUS = 0x80A9
    READ_EDID = 0xB838
    READ_HPD_STATUS = 0xB839
    READ_ADDRESS = 0xF801
    RESPONSE = 0xFFFF

    @property
    def label(self) -> str:
        return self.name.lower()


class CommandFamily(Enum):
    """Tag for the closed set of command key variants."""

    LITERAL = "literal"
    PARAMETER = "parameter"
    UNKNOWN = "unknown"


class ResponseStatus(IntEnum):
    """Status byte carried in a response packet."""

    OK = 0
    CRC_ERR = 1
    INVALID_CMD = 2
    FAILED = 3
    INVALID_PARAM = 4


# =============================================================================
# Value Tables
# =============================================================================

TIMINGS: Final[tuple[str, ...]] = (
    "VESA640x480P_60HZ",
    "VESA800x600P_60HZ",
    "VESA1024x768P_60HZ",
    "VESA1280x768P_60HZ",
    "VESA1360x768P_60HZ",
    "VESA1280x960P_60HZ",
    "VESA1280x1024P_60HZ",
    "VESA1400x1050P_60HZ",
    "VESA1600x1200P_60HZ",
    "VESA1920x1200P_60HZ",
    "CEAVIC1440x480I_60HZ",
    "CEAVIC720x480P_60HZ",
    "CEAVIC1280x720P_60HZ",
    "CEAVIC1280x720P_59.94",
    "CEAVIC1920x1080I_60HZ",
    "CEAVIC1920x1080I_59.95HZ",
    "CEAVIC1920x1080P_30HZ",
    "CEAVIC1920x1080P_29.95HZ",
    "CEAVIC1920x1080P_24HZ",
    "CEAVIC1920x1080P_23.976HZ",
    "CEAVIC1920x1080P_60HZ",
    "CEAVIC1920x1080P_59.94HZ",
    "CEAVIC1440x576I_50HZ",
    "CEAVIC720x576P_50HZ",
    "CEAVIC1280x720P_50HZ",
    "CEAVIC1920x1080I_50HZ",
    "CEAVIC1920x1080P_25HZ",
    "CEAVIC1920x1080P_50HZ",
    "HDMIVIC4Kx2K_30HZ",
    "HDMIVIC4Kx2K_29.97HZ",
    "HDMIVIC4Kx2K_25HZ",
    "HDMIVIC4Kx2K_24HZ",
    "HDMIVIC4Kx2K_23.98HZ",
    "SMPTE4Kx2K_24HZ",
    "H20_4KYUV420_60HZ",
    "H20_4KYUV420_59.94HZ",
    "H20_4KYUV420_50HZ",
    "FP3D_1280x720P_60HZ",
    "FP3D_1280x720P_59.94HZ",
    "FP3D_1920x1080P_24HZ",
    "FP3D_1920x1080P_23.976HZ",
    "FP3D_1920x1080P_50HZ",
    "SBSHALF3D_1280x720P_59HZ",
    "SBSHALF3D_1920x1080I_59.94HZ",
    "SBSHALF3D_1920x1080P_59.94HZ",
    "SBSHALF3D_1920x1080P_23.976HZ",
    "SBSHALF3D_1280x720P_50HZ",
    "SBSHALF3D_1920x1080I_50HZ",
    "SBSHALF3D_1920x1080P_50HZ",
    "TAB3D_1280x720P_59.94HZ",
    "TAB3D_1920x1080P_59.94HZ",
    "TAB3D_1920x1080P_23.976HZ",
    "TAB3D_1280x1080P_23.976HZ",
    "TAB3D_1280x720P_50HZ",
    "TAB3D_1920x1080P_50HZ",
    "Auto",
    "User1",
    "User2",
    "User3",
    "User4",
    "User5",
    "User6",
    "User7",
    "User8",
    "User9",
    "User10",
)

PATTERNS: Final[tuple[str, ...]] = (
    "100% ColorBar",
    "75% ColorBar",
    "8 StepGrayBar",
    "RedScreen",
    "GreenScreen",
    "BlueScreen",
    "YellowScreen",
    "CyanScreen",
    "MagentaScreen",
    "16 StepGrayBar",
    "WhiteScreen",
    "RGB Ramp",
    "Cross Black",
    "Cross Red",
    "Cross Green",
    "Cross Blue",
    "Square",
    "White dots",
    "AlternateWB",
    "White HScroll",
    "White VScroll",
    "Multiburst",
    "Ver-split",
    "Hor-split",
    "Red Ramp",
    "Green Ramp",
    "Blue Ramp",
    "W/B Bounce",
    "Border lines",
    "Window",
    "Target Circle",
    "Moving Ball",
    "3D boxes",
    "SMPTE ColorBar",
)

COLORSPACES: Final[tuple[str, ...]] = (
    "RGB444",
    "YUV444",
    "YUV422",
    "Auto",
    "YUV420",
)

DEEP_COLORS: Final[tuple[str, ...]] = (
    "24bit",
    "30bit",
    "36bit",
    "48bit",
    "Auto",
)

OUTPUT_TYPES: Final[tuple[str, ...]] = (
    "DVI",
    "HDMI",
    "Auto",
)

AUDIO_SAMPLE_RATES: Final[tuple[str, ...]] = (
    "32KHz",
    "44.1KHz",
    "48KHz",
    "88KHz",
    "96KHz",
    "176KHz",
    "192KHz",
    "Auto",
)

AUDIO_WIDTHS: Final[tuple[str, ...]] = (
    "16bit",
    "20bit",
    "24bit",
    "Auto",
)

AUDIO_CHANNELS: Final[tuple[str, ...]] = (
    "2ch",
    "3ch",
    "4ch",
    "5ch",
    "6ch",
    "7ch",
    "8ch",
    "Auto",
)

ENABLES: Final[tuple[str, ...]] = ("off", "on")

OUTPUT_POWER: Final[tuple[str, ...]] = ("normal", "standby")

RESPONSE_STATUSES: Final[tuple[str, ...]] = tuple(
    status.name.lower() for status in ResponseStatus
)

# Parameter commands whose payload byte indexes a label table.
# USER_TIMING and SINK_EDID carry a raw index with no table.
VALUE_TABLES: Final[dict[ParameterCommand, tuple[str, ...]]] = {
    ParameterCommand.TIMING: TIMINGS,
    ParameterCommand.PATTERN: PATTERNS,
    ParameterCommand.COLORSPACE: COLORSPACES,
    ParameterCommand.DEEPCOLOR: DEEP_COLORS,
    ParameterCommand.HDCP: ENABLES,
    ParameterCommand.OUTPUT_TYPE: OUTPUT_TYPES,
    ParameterCommand.AUDIO_SAMPLING: AUDIO_SAMPLE_RATES,
    ParameterCommand.AUDIO_WIDTH: AUDIO_WIDTHS,
    ParameterCommand.AUDIO_SOURCE: ENABLES,
    ParameterCommand.AUDIO_CHANNEL: AUDIO_CHANNELS,
    ParameterCommand.OUTPUT_POWER: OUTPUT_POWER,
}


# =============================================================================
# Lookup
# =============================================================================

@dataclass(frozen=True)
class CommandInfo:
    """
    Registry entry for one 16-bit command key.

    Attributes:
        key: The full wire key.
        family: LITERAL, PARAMETER or UNKNOWN.
        name: Registry name, or "unk" for unknown keys.
        is_read: True when the read flag (0x8000) is set.
        parameter: Base parameter command for the PARAMETER family.
    """

    key: int
    family: CommandFamily
    name: str
    is_read: bool
    parameter: Optional[ParameterCommand] = None

    @property
    def table(self) -> Optional[tuple[str, ...]]:
        """Value table for this command, if it has one."""
        if self.parameter is not None:
            return VALUE_TABLES.get(self.parameter)
        if self.key == LiteralCommand.RESPONSE:
            return RESPONSE_STATUSES
        return None

    def describe(self) -> str:
        """Human-readable command description."""
        if self.family is CommandFamily.LITERAL:
            return self.name
        return f"{'read' if self.is_read else 'set'} {self.name}"


_LITERAL_KEYS: Final[frozenset[int]] = frozenset(LiteralCommand)
_PARAMETER_KEYS: Final[frozenset[int]] = frozenset(ParameterCommand)


def lookup(key: int) -> CommandInfo:
    """
    Resolve a wire key to its registry entry.

    This never raises: keys in neither family come back as the UNKNOWN
    variant so that diagnostics can render any traffic.

    Args:
        key: 16-bit command key.

    Returns:
        CommandInfo for the key.
    """
    is_read = bool(key & READ_FLAG)

    if key in _LITERAL_KEYS:
        literal = LiteralCommand(key)
        return CommandInfo(key, CommandFamily.LITERAL, literal.label, is_read)

    base = key & BASE_MASK
    if base in _PARAMETER_KEYS:
        parameter = ParameterCommand(base)
        return CommandInfo(
            key, CommandFamily.PARAMETER, parameter.label, is_read, parameter
        )

    return CommandInfo(key, CommandFamily.UNKNOWN, UNKNOWN_NAME, is_read)


def describe(key: int) -> str:
    """
    Describe a command key for display.

    Returns ``"<read|set> <name>"`` for parameter keys, the literal name for
    literal keys and ``"<read|set> unk"`` for anything else.

    Example:
        >>> describe(0x0062)
        'set pattern'
        >>> describe(0x8062)
        'read pattern'
        >>> describe(0x7802)
        'reset'
        >>> describe(0x1234)
        'set unk'
    """
    return lookup(key).describe()


CommandRef = Union[str, int]


def _resolve(command: CommandRef) -> CommandInfo:
    """Resolve a name, base key or wire key to a known registry entry."""
    if isinstance(command, str):
        name = command.strip().lower().replace("-", "_")
        for parameter in ParameterCommand:
            if parameter.label == name:
                return lookup(parameter.value)
        for literal in LiteralCommand:
            if literal.label == name:
                return lookup(literal.value)
        raise UnknownCommandError(command)

    info = lookup(int(command))
    if info.family is CommandFamily.UNKNOWN:
        raise UnknownCommandError(int(command))
    return info


def parameter_names() -> list[str]:
    """Names of all parameter commands, in key order."""
    return [parameter.label for parameter in ParameterCommand]


def table_names() -> list[str]:
    """Names of parameter commands that have a value table."""
    return [parameter.label for parameter in VALUE_TABLES]


def parameter_key(name: str, read: bool = False) -> int:
    """
    Get the wire key for a parameter command.

    Args:
        name: Parameter name, e.g. "pattern".
        read: Return the read variant (base | 0x8000).

    Raises:
        UnknownCommandError: If name is not a parameter command.
    """
    info = _resolve(name)
    if info.parameter is None:
        raise UnknownCommandError(name, "not a parameter command")
    return info.parameter.read_key if read else info.parameter.value


def command_key(name: str) -> int:
    """Get the wire key for any command name (parameters return the set key)."""
    return _resolve(name).key


def value_table(command: CommandRef) -> tuple[str, ...]:
    """
    Get the value table for a command.

    Args:
        command: Parameter name, base key, read/set key, or "response".

    Raises:
        UnknownCommandError: If the command is unknown or has no table.
    """
    info = _resolve(command)
    table = info.table
    if table is None:
        raise UnknownCommandError(command, "no value table")
    return table


def value_label(command: CommandRef, raw_value: int) -> str:
    """
    Look up the label for a raw payload byte.

    Bounds are strict: the last table entry is valid, one past it is not.

    Args:
        command: Parameter name, base key, read/set key, or "response".
        raw_value: Raw payload byte.

    Returns:
        The label at raw_value.

    Raises:
        IndexOutOfRangeError: If raw_value is negative or >= len(table).
        UnknownCommandError: If the command is unknown or has no table.

    Example:
        >>> value_label("colorspace", 4)
        'YUV420'
    """
    info = _resolve(command)
    table = info.table
    if table is None:
        raise UnknownCommandError(command, "no value table")
    if not 0 <= raw_value < len(table):
        raise IndexOutOfRangeError(info.name, raw_value, len(table))
    return table[raw_value]


def response_status_label(raw_value: int) -> str:
    """Label for a response status byte (strict bounds)."""
    if not 0 <= raw_value < len(RESPONSE_STATUSES):
        raise IndexOutOfRangeError("response", raw_value, len(RESPONSE_STATUSES))
    return RESPONSE_STATUSES[raw_value]


def format_value_table(command: CommandRef) -> str:
    """
    Format a value table for display, one ``index: label`` per line.

    Args:
        command: Anything value_table() accepts.

    Returns:
        Indented listing of the table.
    """
    table = value_table(command)
    width = len(str(len(table) - 1))
    return "\n".join(
        f"  {index:>{width}}: {label}" for index, label in enumerate(table)
    )
