"""Async protocol bridges for C-Bus lighting and Xantech MRC88 audio controllers."""

from .cbus_client import CBusClient
from .cbus_parser import CBusParser
from .commands import RAMP_RATES, CBusCommands, Command, MRC88Commands
from .config import build_client, parse_names_csv, validate_config
from .connection import BridgeConnection, SerialConnection, TcpConnection
from .exceptions import (
    BridgeConfigError,
    BridgeConnectionError,
    BridgeError,
    BridgeTimeoutError,
    BridgeTransportError,
    MalformedFrameError,
    OutOfRangeTargetError,
    UnknownOpcodeError,
)
from .models import DecodeResult, FrameKind, GroupState, Readiness, ZoneState, ZoneUpdate
from .mrc88_client import MRC88Client
from .mrc88_parser import MRC88Parser
from .store import ZoneStateStore

__all__ = [
    "BridgeConfigError",
    "BridgeConnection",
    "BridgeConnectionError",
    "BridgeError",
    "BridgeTimeoutError",
    "BridgeTransportError",
    "CBusClient",
    "CBusCommands",
    "CBusParser",
    "Command",
    "DecodeResult",
    "FrameKind",
    "GroupState",
    "MalformedFrameError",
    "MRC88Client",
    "MRC88Commands",
    "MRC88Parser",
    "OutOfRangeTargetError",
    "RAMP_RATES",
    "Readiness",
    "SerialConnection",
    "TcpConnection",
    "UnknownOpcodeError",
    "ZoneState",
    "ZoneStateStore",
    "ZoneUpdate",
    "build_client",
    "parse_names_csv",
    "validate_config",
]
