"""Command-line monitor.

Connects to a controller, prints every state change and readiness
transition, and optionally sends raw frames.

Usage:
    python -m zonebridge --protocol mrc88 --host 192.168.0.50 --port 10001
    python -m zonebridge --protocol cbus --serial-port /dev/ttyUSB0 --zones-csv groups.csv
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from .config import build_client, parse_names_csv
from .const import (
    CONF_BAUDRATE,
    CONF_EXPANDED,
    CONF_HOST,
    CONF_PORT,
    CONF_PROTOCOL,
    CONF_SERIAL_PORT,
    CONF_ZONE_COUNT,
    CONF_ZONE_NAMES,
    DEFAULT_BAUDRATE,
    DEFAULT_PORT,
    PROTOCOLS,
)
from .exceptions import BridgeError

_LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="zonebridge", description="Zone controller monitor")
    parser.add_argument("--protocol", required=True, choices=PROTOCOLS, help="Controller type")
    transport = parser.add_mutually_exclusive_group(required=True)
    transport.add_argument("--host", help="Serial-to-ethernet adapter address")
    transport.add_argument("--serial-port", help="Local serial port, e.g. /dev/ttyUSB0")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT,
                        help=f"TCP port (default {DEFAULT_PORT})")
    parser.add_argument("--baudrate", type=int, default=DEFAULT_BAUDRATE,
                        help=f"Serial baud rate (default {DEFAULT_BAUDRATE})")
    parser.add_argument("--zones", type=int, help="Number of zones/groups in use")
    parser.add_argument("--expanded", action="store_true", help="MRC88 expanded to 16 zones")
    parser.add_argument("--zones-csv", help="CSV file of id,name rows")
    parser.add_argument("--send", action="append", default=[], metavar="RAW",
                        help="Raw frame to send once connected (repeatable)")
    parser.add_argument("--duration", type=float, default=0,
                        help="Seconds to run (default: until interrupted)")
    parser.add_argument("--debug", action="store_true", help="Log frame traffic")
    return parser


def config_from_args(args: argparse.Namespace) -> dict:
    config = {
        CONF_PROTOCOL: args.protocol,
        CONF_EXPANDED: args.expanded,
    }
    if args.host:
        config[CONF_HOST] = args.host
        config[CONF_PORT] = args.port
    else:
        config[CONF_SERIAL_PORT] = args.serial_port
        config[CONF_BAUDRATE] = args.baudrate
    if args.zones:
        config[CONF_ZONE_COUNT] = args.zones
    if args.zones_csv:
        with open(args.zones_csv, encoding="utf-8") as csv_file:
            config[CONF_ZONE_NAMES] = parse_names_csv(csv_file.read())
    return config


async def run(args: argparse.Namespace) -> None:
    client = build_client(config_from_args(args))
    names = client.zone_names

    def on_change(attribute, zone, value):
        print(f"{zone:>3} {names.get(zone, ''):<20} {attribute}={value}")

    def on_ready(ready):
        print(f"--- {'READY' if ready else 'NOT READY'} ---")

    client.add_listener(on_change)
    client.add_ready_listener(on_ready)

    await client.start()
    try:
        if args.send:
            while not client.is_connected:
                await asyncio.sleep(0.1)
            for frame in args.send:
                await client.send_raw(frame)

        if args.duration:
            await asyncio.sleep(args.duration)
        else:
            await asyncio.Event().wait()
    finally:
        await client.stop()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:
        print("\nInterrupted.")
    except BridgeError as err:
        _LOGGER.error("%s", err)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
