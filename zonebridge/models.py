"""Data models for zonebridge."""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Optional

from .exceptions import BridgeError


class Readiness(Enum):
    """Externally visible engine readiness."""

    NOT_READY = "not_ready"
    READY = "ready"


class GroupState(IntEnum):
    """C-Bus group status as reported by a CAL bit pair."""

    ABSENT = 0  # group address does not exist on the network
    ON = 1
    OFF = 2
    ERROR = 3


class FrameKind(Enum):
    """Classification of a received frame."""

    LEVEL_STATUS = "level_status"
    CAL_STATUS = "cal_status"
    POINT_TO_MULTIPOINT = "point_to_multipoint"
    ACK = "ack"
    ERROR_REPLY = "error_reply"
    QUERY_ECHO = "query_echo"
    ZONE_STATUS = "zone_status"
    ZONE_MESSAGE = "zone_message"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Scale:
    """Conversion between the external 0-100 scale and a device-native range.

    ``step`` is the number of native units per external unit.
    """

    native_max: int
    step: float

    def to_native(self, value: float) -> int:
        """Clamp an external value to 0-100 and convert it."""
        value = max(0, min(100, value))
        return min(self.native_max, round(abs(value * self.step)))

    def to_external(self, native: int) -> int:
        """Convert a native value back to 0-100."""
        return min(100, round(abs(native / self.step)))


LEVEL_SCALE = Scale(native_max=255, step=2.55)
VOLUME_SCALE = Scale(native_max=38, step=0.38)
TONE_SCALE = Scale(native_max=14, step=0.14)
BALANCE_SCALE = Scale(native_max=63, step=0.64)


@dataclass
class ZoneState:
    """Represents the current state of a zone or lighting group.

    Levels are held in device-native units; see :class:`Scale`.
    """

    zone_id: int
    name: str = ""
    power: Optional[bool] = None
    mute: Optional[bool] = None
    level: Optional[int] = None  # 0-255 lighting level
    volume: Optional[int] = None  # 0-38
    bass: Optional[int] = None  # 0-14
    treble: Optional[int] = None  # 0-14
    balance: Optional[int] = None  # 0-63
    source: Optional[int] = None  # 1-8, None until first report
    group_state: Optional[GroupState] = None
    last_updated: float = float("-inf")

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"ZoneState(zone={self.zone_id}, power={self.power}, "
            f"level={self.level}, volume={self.volume}, source={self.source})"
        )


@dataclass(frozen=True)
class ZoneUpdate:
    """One decoded (zone, attribute, value) change.

    ``value`` is what listeners are told; ``native`` (when set) is what the
    store keeps.
    """

    zone: int
    attribute: str
    value: Any
    native: Optional[int] = None

    @property
    def stored_value(self) -> Any:
        return self.value if self.native is None else self.native


@dataclass(frozen=True)
class DecodeResult:
    """Outcome of decoding one frame."""

    kind: FrameKind
    updates: tuple[ZoneUpdate, ...] = ()
    touched: tuple[int, ...] = ()
    error: Optional[BridgeError] = None
    zone_errors: tuple[BridgeError, ...] = field(default=())

    @property
    def ok(self) -> bool:
        return self.error is None
