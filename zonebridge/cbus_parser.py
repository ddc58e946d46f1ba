"""Decoder for frames received from the C-Bus serial interface.

Frames arrive as upper-case hex text, one per line. The first byte selects
the frame type:

- 0xE0-0xF9: level status reply (two bytes per group, nibble coded)
- 0xC0-0xD8: CAL extended status reply (two bits per group)
- 0x05: point-to-multipoint traffic from other units, in (command, group,
  value) blocks

Example level status:
    F9 07 38 2B AA AA ... A5 A5 AA AA 04
    |  |  |  |  '-- data: one nibble-coded byte pair per group
    |  |  |  '-- first group in this block
    |  |  '-- application (0x38 lighting)
    |  '-- coding (0x07 from this interface, 0x47 from elsewhere)
    '-- 0xE0 + byte count (excluding header and checksum)
"""

import logging
from typing import List

from .checksum import verify
from .commands import CBUS_OFF, CBUS_ON
from .const import (
    ATTR_GROUP_STATE,
    ATTR_LEVEL,
    ATTR_POWER,
    CBUS_APP_LIGHTING,
    CBUS_HEADER_P2MP,
    CBUS_LEVEL_CODINGS,
    CBUS_MAX_GROUPS,
)
from .exceptions import BridgeError, MalformedFrameError, UnknownOpcodeError
from .models import LEVEL_SCALE, DecodeResult, FrameKind, GroupState, ZoneUpdate

_LOGGER = logging.getLogger(__name__)

# Each nibble of a level pair carries one base-4 digit
NIBBLE_VALUES = {0x5: 3, 0x6: 2, 0x9: 1, 0xA: 0}

# command, group, value
_P2M_BLOCK = 3


def decode_nibble(nibble: int) -> int:
    """Decode one level nibble into its base-4 digit."""
    try:
        return NIBBLE_VALUES[nibble]
    except KeyError:
        raise MalformedFrameError(f"Illegal level nibble 0x{nibble:X}") from None


def decode_level_pair(lo: int, hi: int) -> int:
    """Decode a nibble-coded byte pair into a native level 0-255.

    level = n1 + 4*n2 + 16*n3 + 64*n4, where n1/n2 are the low/high
    nibbles of the first byte and n3/n4 those of the second.
    """
    return (
        decode_nibble(lo & 0x0F)
        + 4 * decode_nibble(lo >> 4)
        + 16 * decode_nibble(hi & 0x0F)
        + 64 * decode_nibble(hi >> 4)
    )


def parse_hex(raw: str) -> bytes:
    """Convert a hex text frame into bytes (whitespace ignored)."""
    text = "".join(raw.split())
    if not text or len(text) % 2:
        raise MalformedFrameError(f"Odd length or empty hex frame: {raw!r}")
    try:
        return bytes.fromhex(text)
    except ValueError as err:
        raise MalformedFrameError(f"Not a hex frame: {raw!r}") from err


class CBusParser:
    """Classify and decode C-Bus frames.

    ``decode`` never raises: every problem is reported in the returned
    :class:`DecodeResult`.
    """

    def __init__(self, verify_checksum: bool = True) -> None:
        self.verify_checksum = verify_checksum

    def decode(self, raw: str) -> DecodeResult:
        """Decode one received frame."""
        try:
            payload = parse_hex(raw)
            if self.verify_checksum and not verify(payload):
                raise MalformedFrameError(f"Checksum mismatch: {raw!r}")

            header = payload[0]
            if 0xE0 <= header <= 0xF9:
                return self._decode_level_status(payload)
            if 0xC0 <= header <= 0xD8:
                return self._decode_cal_status(payload)
            if header == CBUS_HEADER_P2MP:
                return self._decode_point_to_multipoint(payload)

            _LOGGER.debug("Ignoring frame with unknown header 0x%02X", header)
            return DecodeResult(FrameKind.UNKNOWN)

        except (MalformedFrameError, UnknownOpcodeError) as err:
            return DecodeResult(FrameKind.UNKNOWN, error=err)

        except Exception as err:  # never let a frame take down the read loop
            _LOGGER.exception("Unexpected error decoding %r", raw)
            return DecodeResult(FrameKind.UNKNOWN, error=MalformedFrameError(str(err)))

    @staticmethod
    def _check_length(payload: bytes, length: int) -> None:
        # header byte + length bytes + checksum
        if len(payload) < length + 2:
            raise MalformedFrameError(
                f"Truncated frame: expected {length + 2} bytes, got {len(payload)}"
            )

    # ========================================================================
    # LEVEL STATUS (0xE0-0xF9)
    # ========================================================================

    def _decode_level_status(self, payload: bytes) -> DecodeResult:
        length = payload[0] - 0xE0
        self._check_length(payload, length)
        if length < 3:
            raise MalformedFrameError(f"Level status too short: {length} bytes")

        coding, application, start = payload[1], payload[2], payload[3]
        if coding not in CBUS_LEVEL_CODINGS or application != CBUS_APP_LIGHTING:
            raise UnknownOpcodeError(
                f"Level status with coding 0x{coding:02X} app 0x{application:02X}"
            )

        count = (length - 3) // 2
        _LOGGER.debug("Level status block %d for %d groups", start, count)

        updates: List[ZoneUpdate] = []
        touched: List[int] = []
        zone_errors: List[BridgeError] = []

        for i in range(count):
            group = start + i
            if group >= CBUS_MAX_GROUPS:
                break
            lo, hi = payload[4 + 2 * i], payload[5 + 2 * i]

            if lo == 0 and hi == 0:
                # group does not exist on the network
                updates.append(ZoneUpdate(group, ATTR_GROUP_STATE, GroupState.ABSENT))
                touched.append(group)
                continue

            try:
                level = decode_level_pair(lo, hi)
            except MalformedFrameError as err:
                _LOGGER.debug("Group %d: %s", group, err)
                zone_errors.append(MalformedFrameError(f"Group {group}: {err}"))
                continue

            updates.append(
                ZoneUpdate(group, ATTR_LEVEL, LEVEL_SCALE.to_external(level), native=level)
            )
            touched.append(group)

        return DecodeResult(
            FrameKind.LEVEL_STATUS,
            updates=tuple(updates),
            touched=tuple(touched),
            zone_errors=tuple(zone_errors),
        )

    # ========================================================================
    # CAL EXTENDED STATUS (0xC0-0xD8)
    # ========================================================================

    def _decode_cal_status(self, payload: bytes) -> DecodeResult:
        length = payload[0] - 0xC0
        self._check_length(payload, length)
        if length < 2:
            raise MalformedFrameError(f"CAL status too short: {length} bytes")

        application, start = payload[1], payload[2]
        if application != CBUS_APP_LIGHTING:
            raise UnknownOpcodeError(f"CAL status for app 0x{application:02X}")

        data = payload[3:3 + length - 2]
        _LOGGER.debug("CAL status block %d for %d groups", start, len(data) * 4)

        updates: List[ZoneUpdate] = []
        touched: List[int] = []
        for i, bits in enumerate(data):
            for k in range(4):
                group = start + i * 4 + k
                if group >= CBUS_MAX_GROUPS:
                    break
                state = GroupState((bits >> (2 * k)) & 0x03)
                updates.append(ZoneUpdate(group, ATTR_POWER, state == GroupState.ON))
                updates.append(ZoneUpdate(group, ATTR_GROUP_STATE, state))
                touched.append(group)

        return DecodeResult(
            FrameKind.CAL_STATUS, updates=tuple(updates), touched=tuple(touched)
        )

    # ========================================================================
    # POINT TO MULTIPOINT (0x05)
    # ========================================================================

    def _decode_point_to_multipoint(self, payload: bytes) -> DecodeResult:
        # 05 {source unit} 38 00 {command group value}... {checksum}
        if len(payload) < 5:
            raise MalformedFrameError(f"Point-to-multipoint too short: {len(payload)} bytes")
        if payload[2] != CBUS_APP_LIGHTING:
            raise UnknownOpcodeError(f"Point-to-multipoint for app 0x{payload[2]:02X}")

        body = payload[4:-1]
        updates: List[ZoneUpdate] = []
        touched: List[int] = []
        zone_errors: List[BridgeError] = []

        whole = len(body) - len(body) % _P2M_BLOCK
        for pos in range(0, whole, _P2M_BLOCK):
            command, group, value = body[pos:pos + _P2M_BLOCK]
            updates.extend(self._decode_block(command, group, value))
            touched.append(group)

        if whole < len(body):
            _LOGGER.debug("Ignoring %d trailing point-to-multipoint bytes", len(body) - whole)
            zone_errors.append(
                MalformedFrameError(f"Incomplete block at offset {whole}: {body[whole:].hex()}")
            )

        return DecodeResult(
            FrameKind.POINT_TO_MULTIPOINT,
            updates=tuple(updates),
            touched=tuple(touched),
            zone_errors=tuple(zone_errors),
        )

    @staticmethod
    def _decode_block(command: int, group: int, value: int) -> List[ZoneUpdate]:
        """Switch commands force the level; any other command carries it."""
        if command == CBUS_ON:
            return [
                ZoneUpdate(group, ATTR_POWER, True),
                ZoneUpdate(group, ATTR_LEVEL, 100, native=255),
            ]
        if command == CBUS_OFF:
            return [
                ZoneUpdate(group, ATTR_POWER, False),
                ZoneUpdate(group, ATTR_LEVEL, 0, native=0),
            ]
        _LOGGER.debug("Group %d level 0x%02X (command 0x%02X)", group, value, command)
        return [ZoneUpdate(group, ATTR_LEVEL, LEVEL_SCALE.to_external(value), native=value)]
