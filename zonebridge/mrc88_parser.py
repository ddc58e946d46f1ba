"""Decoder for lines received from the Xantech MRC88.

Reply types, selected by the first character:

- ``O``: command acknowledged
- ``E``: command rejected
- ``?``: echo of a query
- ``#``: zone report, e.g. ``#5ZS PR0 SS2 VO8 MU1 TR7 BS7 BA32 LS0 PS0+``

Zone reports come in two flavours: ``ZS`` (zone status, decoded) and
``ZM`` (zone message, e.g. source metadata, logged only).
"""

import logging
from typing import List

from .const import (
    ATTR_BALANCE,
    ATTR_BASS,
    ATTR_MUTE,
    ATTR_POWER,
    ATTR_SOURCE,
    ATTR_TREBLE,
    ATTR_VOLUME,
)
from .exceptions import MalformedFrameError, UnknownOpcodeError
from .models import (
    BALANCE_SCALE,
    TONE_SCALE,
    VOLUME_SCALE,
    DecodeResult,
    FrameKind,
    ZoneUpdate,
)

_LOGGER = logging.getLogger(__name__)

_BOOL_TOKENS = {"PR": ATTR_POWER, "MU": ATTR_MUTE}
_SCALED_TOKENS = {
    "VO": (ATTR_VOLUME, VOLUME_SCALE),
    "BS": (ATTR_BASS, TONE_SCALE),
    "TR": (ATTR_TREBLE, TONE_SCALE),
    "BA": (ATTR_BALANCE, BALANCE_SCALE),
}
_SOURCE_TOKEN = "SS"

_REPLY_KINDS = {
    "O": FrameKind.ACK,
    "E": FrameKind.ERROR_REPLY,
    "?": FrameKind.QUERY_ECHO,
}


class MRC88Parser:
    """Classify and decode MRC88 replies. ``decode`` never raises."""

    def decode(self, raw: str) -> DecodeResult:
        """Decode one received line."""
        line = raw.strip()
        if not line:
            return DecodeResult(FrameKind.UNKNOWN, error=MalformedFrameError("Empty frame"))

        kind = _REPLY_KINDS.get(line[0])
        if kind is not None:
            _LOGGER.debug("Received %s reply: %s", kind.value, line)
            return DecodeResult(kind)

        if line[0] != "#":
            _LOGGER.debug("Ignoring unknown reply: %s", line)
            return DecodeResult(FrameKind.UNKNOWN)

        try:
            return self._decode_report(line)
        except (MalformedFrameError, UnknownOpcodeError) as err:
            return DecodeResult(FrameKind.UNKNOWN, error=err)
        except Exception as err:  # never let a frame take down the read loop
            _LOGGER.exception("Unexpected error decoding %r", raw)
            return DecodeResult(FrameKind.UNKNOWN, error=MalformedFrameError(str(err)))

    def _decode_report(self, line: str) -> DecodeResult:
        marker = line.find("Z")
        if marker < 2:
            raise MalformedFrameError(f"No zone in report: {line!r}")
        try:
            zone = int(line[1:marker])
        except ValueError:
            raise MalformedFrameError(f"Bad zone in report: {line!r}") from None

        report_type = line[marker:marker + 2]
        body = line[marker + 2:].rstrip("+").strip()

        if report_type == "ZM":
            _LOGGER.debug("Zone %d message: %s", zone, body)
            return DecodeResult(FrameKind.ZONE_MESSAGE)
        if report_type != "ZS":
            raise UnknownOpcodeError(f"Unknown report type {report_type!r}: {line!r}")

        updates: List[ZoneUpdate] = []
        for token in body.split():
            code, text = token[:2], token[2:]
            try:
                value = int(text)
            except ValueError:
                raise MalformedFrameError(f"Bad value in token {token!r}: {line!r}") from None

            if code in _BOOL_TOKENS:
                updates.append(ZoneUpdate(zone, _BOOL_TOKENS[code], value == 1))
            elif code in _SCALED_TOKENS:
                attribute, scale = _SCALED_TOKENS[code]
                updates.append(
                    ZoneUpdate(zone, attribute, scale.to_external(value), native=value)
                )
            elif code == _SOURCE_TOKEN:
                updates.append(ZoneUpdate(zone, ATTR_SOURCE, value))
            else:
                _LOGGER.debug("Zone %d: ignoring status token %s", zone, token)

        return DecodeResult(FrameKind.ZONE_STATUS, updates=tuple(updates), touched=(zone,))
