"""Configuration validation and client construction."""

import csv
import io
import logging
from typing import Any, Dict, Union

import voluptuous as vol

from .cbus_client import CBusClient
from .connection import BridgeConnection, SerialConnection, TcpConnection
from .const import (
    CBUS_MAX_GROUPS,
    CBUS_MONITOR_TIMEOUT,
    CBUS_POLL_INTERVAL,
    CBUS_READINESS_THRESHOLD,
    CBUS_REFRESH_THRESHOLD,
    CBUS_RX_DELIMITER,
    CBUS_TX_TERMINATOR,
    CONF_BAUDRATE,
    CONF_EXPANDED,
    CONF_HOST,
    CONF_MONITOR_TIMEOUT,
    CONF_POLL_INTERVAL,
    CONF_PORT,
    CONF_PROTOCOL,
    CONF_READINESS_THRESHOLD,
    CONF_REFRESH_THRESHOLD,
    CONF_SEND_TIMEOUT,
    CONF_SERIAL_PORT,
    CONF_SOURCE_NAMES,
    CONF_ZONE_COUNT,
    CONF_ZONE_NAMES,
    DEFAULT_BAUDRATE,
    DEFAULT_PORT,
    DEFAULT_SEND_TIMEOUT,
    MRC88_ACTIVITY_ON,
    MRC88_MAX_SOURCES,
    MRC88_MAX_ZONES,
    MRC88_MONITOR_TIMEOUT,
    MRC88_POLL_INTERVAL,
    MRC88_READINESS_THRESHOLD,
    MRC88_REFRESH_THRESHOLD,
    MRC88_RX_DELIMITER,
    MRC88_SINGLE_ZONES,
    MRC88_TX_TERMINATOR,
    PROTOCOL_CBUS,
    PROTOCOL_MRC88,
    PROTOCOLS,
)
from .exceptions import BridgeConfigError
from .mrc88_client import MRC88Client

_LOGGER = logging.getLogger(__name__)

_TRANSPORT = "transport"

_POSITIVE = vol.All(vol.Coerce(float), vol.Range(min=0, min_included=False))

NAMES_SCHEMA = vol.Schema({vol.Coerce(int): vol.All(str, vol.Strip, vol.Length(min=1))})

_DEFAULTS = {
    PROTOCOL_CBUS: {
        CONF_POLL_INTERVAL: CBUS_POLL_INTERVAL,
        CONF_REFRESH_THRESHOLD: CBUS_REFRESH_THRESHOLD,
        CONF_READINESS_THRESHOLD: CBUS_READINESS_THRESHOLD,
        CONF_MONITOR_TIMEOUT: CBUS_MONITOR_TIMEOUT,
    },
    PROTOCOL_MRC88: {
        CONF_POLL_INTERVAL: MRC88_POLL_INTERVAL,
        CONF_REFRESH_THRESHOLD: MRC88_REFRESH_THRESHOLD,
        CONF_READINESS_THRESHOLD: MRC88_READINESS_THRESHOLD,
        CONF_MONITOR_TIMEOUT: MRC88_MONITOR_TIMEOUT,
    },
}


def _require_transport(config: Dict[str, Any]) -> Dict[str, Any]:
    if CONF_HOST not in config and CONF_SERIAL_PORT not in config:
        raise vol.Invalid(f"One of {CONF_HOST} or {CONF_SERIAL_PORT} is required")
    return config


def _apply_protocol_defaults(config: Dict[str, Any]) -> Dict[str, Any]:
    protocol = config[CONF_PROTOCOL]
    for key, default in _DEFAULTS[protocol].items():
        config.setdefault(key, default)

    if protocol == PROTOCOL_MRC88:
        limit = MRC88_MAX_ZONES
        config.setdefault(
            CONF_ZONE_COUNT, MRC88_MAX_ZONES if config[CONF_EXPANDED] else MRC88_SINGLE_ZONES
        )
        first = 1
    else:
        limit = CBUS_MAX_GROUPS
        config.setdefault(CONF_ZONE_COUNT, CBUS_MAX_GROUPS)
        first = 0

    count = config[CONF_ZONE_COUNT]
    if count > limit:
        raise vol.Invalid(f"{protocol} supports at most {limit} zones, got {count}", [CONF_ZONE_COUNT])
    for zone in config[CONF_ZONE_NAMES]:
        if not first <= zone < first + count:
            raise vol.Invalid(f"Named zone {zone} is not configured", [CONF_ZONE_NAMES])
    for source in config[CONF_SOURCE_NAMES]:
        if not 1 <= source <= MRC88_MAX_SOURCES:
            raise vol.Invalid(f"Source must be 1-{MRC88_MAX_SOURCES}, got {source}", [CONF_SOURCE_NAMES])

    if config[CONF_REFRESH_THRESHOLD] >= config[CONF_READINESS_THRESHOLD]:
        raise vol.Invalid(
            f"{CONF_REFRESH_THRESHOLD} must be below {CONF_READINESS_THRESHOLD}",
            [CONF_REFRESH_THRESHOLD],
        )
    return config


CONFIG_SCHEMA = vol.All(
    vol.Schema(
        {
            vol.Required(CONF_PROTOCOL): vol.All(vol.Lower, vol.In(PROTOCOLS)),
            vol.Exclusive(CONF_HOST, _TRANSPORT): vol.All(str, vol.Length(min=1)),
            vol.Optional(CONF_PORT, default=DEFAULT_PORT): vol.All(
                vol.Coerce(int), vol.Range(min=1, max=65535)
            ),
            vol.Exclusive(CONF_SERIAL_PORT, _TRANSPORT): vol.All(str, vol.Length(min=1)),
            vol.Optional(CONF_BAUDRATE, default=DEFAULT_BAUDRATE): vol.All(
                vol.Coerce(int), vol.Range(min=1)
            ),
            vol.Optional(CONF_ZONE_COUNT): vol.All(
                vol.Coerce(int), vol.Range(min=1, max=CBUS_MAX_GROUPS)
            ),
            vol.Optional(CONF_EXPANDED, default=False): vol.Boolean(),
            vol.Optional(CONF_ZONE_NAMES, default=dict): NAMES_SCHEMA,
            vol.Optional(CONF_SOURCE_NAMES, default=dict): NAMES_SCHEMA,
            vol.Optional(CONF_POLL_INTERVAL): _POSITIVE,
            vol.Optional(CONF_REFRESH_THRESHOLD): _POSITIVE,
            vol.Optional(CONF_READINESS_THRESHOLD): _POSITIVE,
            vol.Optional(CONF_SEND_TIMEOUT, default=DEFAULT_SEND_TIMEOUT): _POSITIVE,
            vol.Optional(CONF_MONITOR_TIMEOUT): _POSITIVE,
        }
    ),
    _require_transport,
    _apply_protocol_defaults,
)


def validate_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Validate a configuration dict and fill in per-protocol defaults.

    Raises:
        BridgeConfigError: Invalid configuration
    """
    try:
        return CONFIG_SCHEMA(dict(config))
    except vol.Invalid as err:
        raise BridgeConfigError(f"Invalid configuration: {err}") from err


def parse_names_csv(text: str) -> Dict[int, str]:
    """Parse ``id,name`` rows into a name map.

    A first row whose first cell mentions zone, group or id is treated as a
    header. Rows without a numeric id or a name are skipped.

    Raises:
        BridgeConfigError: No usable rows
    """
    names: Dict[int, str] = {}
    reader = csv.reader(io.StringIO(text.strip()))

    for line_no, row in enumerate(reader):
        if not row:
            continue
        if line_no == 0 and any(word in row[0].lower() for word in ("zone", "group", "id")):
            # Skip header row
            continue
        if len(row) < 2:
            continue
        try:
            zone = int(row[0].strip())
        except ValueError:
            _LOGGER.debug("Skipping CSV row %d: %r", line_no + 1, row)
            continue
        name = row[1].strip()
        if name:
            names[zone] = name

    if not names:
        raise BridgeConfigError("No valid id,name rows in CSV data")
    return names


def build_connection(config: Dict[str, Any]) -> BridgeConnection:
    """Create the transport described by a validated config."""
    if config[CONF_PROTOCOL] == PROTOCOL_MRC88:
        framing = {
            "delimiter": MRC88_RX_DELIMITER,
            "terminator": MRC88_TX_TERMINATOR,
            "keepalive": MRC88_ACTIVITY_ON,
        }
    else:
        framing = {"delimiter": CBUS_RX_DELIMITER, "terminator": CBUS_TX_TERMINATOR}
    framing["monitor_timeout"] = config[CONF_MONITOR_TIMEOUT]

    if CONF_HOST in config:
        return TcpConnection(config[CONF_HOST], config[CONF_PORT], **framing)
    return SerialConnection(config[CONF_SERIAL_PORT], config[CONF_BAUDRATE], **framing)


def build_client(config: Dict[str, Any]) -> Union[CBusClient, MRC88Client]:
    """Validate a config and return a client ready to ``start()``."""
    config = validate_config(config)
    connection = build_connection(config)
    common = {
        "poll_interval": config[CONF_POLL_INTERVAL],
        "refresh_threshold": config[CONF_REFRESH_THRESHOLD],
        "readiness_threshold": config[CONF_READINESS_THRESHOLD],
        "send_timeout": config[CONF_SEND_TIMEOUT],
    }

    _LOGGER.debug("Building %s client for %s", config[CONF_PROTOCOL], connection)
    if config[CONF_PROTOCOL] == PROTOCOL_MRC88:
        return MRC88Client(
            connection,
            zone_count=config[CONF_ZONE_COUNT],
            zone_names=config[CONF_ZONE_NAMES],
            source_names=config[CONF_SOURCE_NAMES],
            **common,
        )
    return CBusClient(
        connection,
        group_count=config[CONF_ZONE_COUNT],
        group_names=config[CONF_ZONE_NAMES],
        **common,
    )
