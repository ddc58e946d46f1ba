"""Outbound frame encoders for the C-Bus gateway and the MRC88 matrix.

C-Bus frame format (Clipsal 5500PC serial interface, "smart" mode):
- Frames start with a backslash followed by upper-case hex bytes
- Every frame ends with a two's-complement checksum byte
- Frames are terminated with \\r

MRC88 frame format (Xantech MRC88):
- Commands: !{zone}{op}{value}+
- Queries: ?{zone}{op}+
- No checksum, no trailing terminator
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from .checksum import checksum
from .const import (
    CBUS_APP_LIGHTING,
    CBUS_BLOCK_SIZE,
    CBUS_FRAME_PREFIX,
    CBUS_HEADER_P2MP,
    CBUS_INIT_FRAMES,
    CBUS_MAX_GROUPS,
    CBUS_RESET,
    CBUS_STATUS_REQUEST,
    MRC88_ACTIVITY_ON,
    MRC88_MAX_SOURCES,
    MRC88_MAX_ZONES,
    MRC88_SINGLE_ZONES,
)
from .exceptions import OutOfRangeTargetError
from .models import BALANCE_SCALE, LEVEL_SCALE, TONE_SCALE, VOLUME_SCALE

# Opcodes accepted by encode(). Values for level-like opcodes are on the
# external 0-100 scale.
OP_ON = "on"
OP_OFF = "off"
OP_RAMP = "ramp"
OP_TERMINATE_RAMP = "terminate_ramp"

OP_POWER = "power"
OP_POWER_TOGGLE = "power_toggle"
OP_MUTE = "mute"
OP_MUTE_TOGGLE = "mute_toggle"
OP_VOLUME = "volume"
OP_VOLUME_UP = "volume_up"
OP_VOLUME_DOWN = "volume_down"
OP_BASS = "bass"
OP_BASS_UP = "bass_up"
OP_BASS_DOWN = "bass_down"
OP_TREBLE = "treble"
OP_TREBLE_UP = "treble_up"
OP_TREBLE_DOWN = "treble_down"
OP_BALANCE = "balance"
OP_BALANCE_LEFT = "balance_left"
OP_BALANCE_RIGHT = "balance_right"
OP_SOURCE = "source"


@dataclass(frozen=True)
class Command:
    """A single device command.

    ``opcode`` is one of the ``OP_*`` constants; ``target`` is the zone or
    group; ``value`` is the opcode's argument, if any. ``rate`` names a
    C-Bus ramp rate (see :data:`RAMP_RATES`).
    """

    opcode: str
    target: Optional[int] = None
    value: Any = None
    rate: Optional[str] = None


def build_frame(fields: Iterable[int]) -> str:
    """Render C-Bus bytes as a backslash-prefixed hex frame with checksum."""
    data = bytes(fields)
    return CBUS_FRAME_PREFIX + (data + bytes([checksum(data)])).hex().upper()


def _is_index(value: Any) -> bool:
    # bool is an int subclass but never a valid target
    return isinstance(value, int) and not isinstance(value, bool)


# ============================================================================
# C-BUS LIGHTING
# ============================================================================

CBUS_ON = 0x79
CBUS_OFF = 0x01
CBUS_TERMINATE_RAMP = 0x09

RAMP_RATES: Dict[str, int] = {
    "0 Sec": 0x02,
    "4 Sec": 0x0A,
    "8 Sec": 0x12,
    "12 Sec": 0x1A,
    "20 Sec": 0x22,
    "30 Sec": 0x2A,
    "40 Sec": 0x32,
    "60 Sec": 0x3A,
    "90 Sec": 0x42,
    "2 Min": 0x4A,
    "3 Min": 0x52,
    "5 Min": 0x5A,
    "7 Min": 0x62,
    "10 Min": 0x6A,
    "15 Min": 0x72,
    "17 Min": 0x7A,
    "Stop Ramp": CBUS_TERMINATE_RAMP,
}

DEFAULT_RAMP_RATE = "0 Sec"


class CBusCommands:
    """C-Bus lighting application commands.

    Only groups ``0 .. group_count - 1`` may be addressed.
    """

    def __init__(self, group_count: int = CBUS_MAX_GROUPS) -> None:
        if not 1 <= group_count <= CBUS_MAX_GROUPS:
            raise ValueError(f"Group count must be 1-{CBUS_MAX_GROUPS}, got {group_count}")
        self.group_count = group_count

    def validate_group(self, group: int) -> None:
        """Validate group address is in the configured range."""
        if not _is_index(group):
            raise OutOfRangeTargetError(f"Group must be an integer, got {group!r}")
        if not 0 <= group < self.group_count:
            raise OutOfRangeTargetError(
                f"Group must be 0-{self.group_count - 1}, got {group}"
            )

    def encode(self, command: Command) -> str:
        """Encode a command into a wire frame."""
        if command.opcode == OP_ON:
            return self.turn_on(command.target)
        if command.opcode == OP_OFF:
            return self.turn_off(command.target)
        if command.opcode == OP_RAMP:
            return self.ramp(command.target, command.value, command.rate or DEFAULT_RAMP_RATE)
        if command.opcode == OP_TERMINATE_RAMP:
            return self.terminate_ramp(command.target)
        raise ValueError(f"Unknown C-Bus opcode: {command.opcode}")

    # ========================================================================
    # SWITCHING / RAMPING
    # ========================================================================

    def switch(self, group: int, on: bool) -> str:
        """Switch a group fully on or off.

        Frame: \\05 38 00 {79|01} {group} {checksum}
        """
        self.validate_group(group)
        return build_frame(
            (CBUS_HEADER_P2MP, CBUS_APP_LIGHTING, 0x00, CBUS_ON if on else CBUS_OFF, group)
        )

    def turn_on(self, group: int) -> str:
        return self.switch(group, True)

    def turn_off(self, group: int) -> str:
        return self.switch(group, False)

    def ramp(self, group: int, level: float, rate: str = DEFAULT_RAMP_RATE) -> str:
        """Ramp a group to a level (0-100) over a named rate.

        Frame: \\05 38 00 {ramp code} {group} {level 00-FF} {checksum}

        "Stop Ramp" is encoded as a terminate-ramp frame without a level.
        """
        self.validate_group(group)
        try:
            code = RAMP_RATES[rate]
        except KeyError:
            raise ValueError(f"Unknown ramp rate: {rate!r}") from None
        if code == CBUS_TERMINATE_RAMP:
            return self.terminate_ramp(group)

        return build_frame(
            (
                CBUS_HEADER_P2MP,
                CBUS_APP_LIGHTING,
                0x00,
                code,
                group,
                LEVEL_SCALE.to_native(level),
            )
        )

    def terminate_ramp(self, group: int) -> str:
        """Stop a ramp in progress, leaving the group at its current level."""
        self.validate_group(group)
        return build_frame(
            (CBUS_HEADER_P2MP, CBUS_APP_LIGHTING, 0x00, CBUS_TERMINATE_RAMP, group)
        )

    # ========================================================================
    # STATUS REQUESTS
    # ========================================================================

    @staticmethod
    def status_request(base: int) -> str:
        """Request level status of the 32-group block starting at ``base``.

        Frame: \\05 FF 00 73 07 38 {base} {checksum}
        """
        if base % CBUS_BLOCK_SIZE or not 0 <= base < CBUS_MAX_GROUPS:
            raise ValueError(f"Block base must be a multiple of 32 below 256, got {base}")
        return build_frame(CBUS_STATUS_REQUEST + (base,))

    def status_requests(self) -> List[str]:
        """Status requests covering every configured group."""
        return [
            self.status_request(base)
            for base in range(0, self.group_count, CBUS_BLOCK_SIZE)
        ]

    def refresh_frames(self, group: int) -> List[str]:
        """Frames that refresh one group: the status request for its block."""
        self.validate_group(group)
        return [self.status_request(group - group % CBUS_BLOCK_SIZE)]

    @staticmethod
    def init_frames() -> List[str]:
        """Interface set-up sequence sent after every connect."""
        return [CBUS_RESET, *CBUS_INIT_FRAMES]


# ============================================================================
# MRC88 AUDIO MATRIX
# ============================================================================

_MRC88_TOKENS = {
    OP_POWER: "PR",
    OP_POWER_TOGGLE: "PT",
    OP_MUTE: "MU",
    OP_MUTE_TOGGLE: "MT",
    OP_VOLUME: "VO",
    OP_VOLUME_UP: "VI",
    OP_VOLUME_DOWN: "VD",
    OP_BASS: "BS",
    OP_BASS_UP: "BI",
    OP_BASS_DOWN: "BD",
    OP_TREBLE: "TR",
    OP_TREBLE_UP: "TI",
    OP_TREBLE_DOWN: "TD",
    OP_BALANCE: "BA",
    OP_BALANCE_LEFT: "BL",
    OP_BALANCE_RIGHT: "BR",
    OP_SOURCE: "SS",
}

_MRC88_SCALES = {
    OP_VOLUME: VOLUME_SCALE,
    OP_BASS: TONE_SCALE,
    OP_TREBLE: TONE_SCALE,
    OP_BALANCE: BALANCE_SCALE,
}


class MRC88Commands:
    """Xantech MRC88 zone commands.

    Zones are 1-based: 1-8 on a single unit, 1-16 on an expanded system.
    """

    def __init__(
        self,
        zone_count: int = MRC88_SINGLE_ZONES,
        source_count: int = MRC88_MAX_SOURCES,
    ) -> None:
        if not 1 <= zone_count <= MRC88_MAX_ZONES:
            raise ValueError(f"Zone count must be 1-{MRC88_MAX_ZONES}, got {zone_count}")
        self.zone_count = zone_count
        self.source_count = source_count

    def validate_zone(self, zone: int) -> None:
        """Validate zone number is in the configured range."""
        if not _is_index(zone):
            raise OutOfRangeTargetError(f"Zone must be an integer, got {zone!r}")
        if not 1 <= zone <= self.zone_count:
            raise OutOfRangeTargetError(f"Zone must be 1-{self.zone_count}, got {zone}")

    def clamp_source(self, source: int) -> int:
        """Clamp a source number to 1..source_count."""
        return max(1, min(self.source_count, int(source)))

    def encode(self, command: Command) -> str:
        """Encode a command into a wire frame.

        Boolean opcodes take a bool; scaled opcodes take 0-100; toggles and
        steps take no value.
        """
        try:
            token = _MRC88_TOKENS[command.opcode]
        except KeyError:
            raise ValueError(f"Unknown MRC88 opcode: {command.opcode}") from None
        self.validate_zone(command.target)

        if command.opcode in (OP_POWER, OP_MUTE):
            value = "1" if command.value else "0"
        elif command.opcode in _MRC88_SCALES:
            value = str(_MRC88_SCALES[command.opcode].to_native(command.value))
        elif command.opcode == OP_SOURCE:
            value = str(self.clamp_source(command.value))
        else:
            value = ""
        return f"!{command.target}{token}{value}+"

    # ========================================================================
    # ZONE COMMANDS
    # ========================================================================

    def set_power(self, zone: int, on: bool) -> str:
        """Command: !{zone}PR{0|1}+"""
        return self.encode(Command(OP_POWER, zone, on))

    def toggle_power(self, zone: int) -> str:
        """Command: !{zone}PT+"""
        return self.encode(Command(OP_POWER_TOGGLE, zone))

    def set_mute(self, zone: int, mute: bool) -> str:
        """Command: !{zone}MU{0|1}+"""
        return self.encode(Command(OP_MUTE, zone, mute))

    def toggle_mute(self, zone: int) -> str:
        """Command: !{zone}MT+"""
        return self.encode(Command(OP_MUTE_TOGGLE, zone))

    def set_volume(self, zone: int, volume: float) -> str:
        """Set volume (0-100, sent as 0-38).

        Command: !{zone}VO{0-38}+
        """
        return self.encode(Command(OP_VOLUME, zone, volume))

    def volume_up(self, zone: int) -> str:
        return self.encode(Command(OP_VOLUME_UP, zone))

    def volume_down(self, zone: int) -> str:
        return self.encode(Command(OP_VOLUME_DOWN, zone))

    def set_bass(self, zone: int, bass: float) -> str:
        """Set bass (0-100, sent as 0-14; 7 is flat).

        Command: !{zone}BS{0-14}+
        """
        return self.encode(Command(OP_BASS, zone, bass))

    def bass_up(self, zone: int) -> str:
        return self.encode(Command(OP_BASS_UP, zone))

    def bass_down(self, zone: int) -> str:
        return self.encode(Command(OP_BASS_DOWN, zone))

    def set_treble(self, zone: int, treble: float) -> str:
        """Set treble (0-100, sent as 0-14; 7 is flat).

        Command: !{zone}TR{0-14}+
        """
        return self.encode(Command(OP_TREBLE, zone, treble))

    def treble_up(self, zone: int) -> str:
        return self.encode(Command(OP_TREBLE_UP, zone))

    def treble_down(self, zone: int) -> str:
        return self.encode(Command(OP_TREBLE_DOWN, zone))

    def set_balance(self, zone: int, balance: float) -> str:
        """Set balance (0-100, sent as 0-63; 32 is centre).

        Command: !{zone}BA{0-63}+
        """
        return self.encode(Command(OP_BALANCE, zone, balance))

    def balance_left(self, zone: int) -> str:
        return self.encode(Command(OP_BALANCE_LEFT, zone))

    def balance_right(self, zone: int) -> str:
        return self.encode(Command(OP_BALANCE_RIGHT, zone))

    def set_source(self, zone: int, source: int) -> str:
        """Route a source to a zone (clamped to 1-8).

        Command: !{zone}SS{1-8}+
        """
        return self.encode(Command(OP_SOURCE, zone, source))

    # ========================================================================
    # QUERIES
    # ========================================================================

    def zone_refresh(self, zone: int) -> str:
        """Ask the zone to report its data after a change.

        Command: !{zone}ZD+
        """
        self.validate_zone(zone)
        return f"!{zone}ZD+"

    def status_query(self, zone: int) -> str:
        """Command: ?{zone}ZS+"""
        self.validate_zone(zone)
        return f"?{zone}ZS+"

    def refresh_query(self, zone: int) -> str:
        """Command: ?{zone}ZD+"""
        self.validate_zone(zone)
        return f"?{zone}ZD+"

    def status_requests(self) -> List[str]:
        """Status queries for every configured zone."""
        return [self.status_query(zone) for zone in range(1, self.zone_count + 1)]

    def refresh_frames(self, zone: int) -> List[str]:
        return [self.refresh_query(zone)]

    @staticmethod
    def activity_on() -> str:
        """Enable unsolicited activity reports. Doubles as the keepalive."""
        return MRC88_ACTIVITY_ON

    def init_frames(self) -> List[str]:
        """Sent after every connect."""
        return [self.activity_on()]
