#!/usr/bin/env python3
"""
Fake controller servers for testing without hardware.

Simulates an MRC88 audio matrix or a C-Bus serial interface behind a
serial-to-ethernet adapter, with a failure mode for idle-link handling.

Usage:
    python3 server.py --device mrc88 --port 10001 --mode normal

Modes:
    - normal: Standard responses
    - silent: Records commands but never answers (tests keepalive/idle drop)
"""

import argparse
import asyncio
import logging
from typing import Dict, List, Optional

_LOGGER = logging.getLogger(__name__)

_NIBBLES = {3: 0x5, 2: 0x6, 1: 0x9, 0: 0xA}


def _checksum(data: bytes) -> int:
    return (256 - (sum(data) % 256)) % 256


class FakeMRC88Device:
    """Fake Xantech MRC88 for testing. Commands end with '+'."""

    separator = b"+"

    def __init__(self, zones: int = 16):
        self._zones: Dict[int, Dict[str, int]] = {}
        for z in range(1, zones + 1):
            self._zones[z] = {"PR": 0, "SS": 1, "VO": 19, "MU": 0, "TR": 7, "BS": 7, "BA": 32}

    def zone(self, zone: int) -> Dict[str, int]:
        return self._zones[zone]

    def status_line(self, zone: int) -> str:
        state = self._zones[zone]
        tokens = " ".join(f"{key}{state[key]}" for key in ("PR", "SS", "VO", "MU", "TR", "BS", "BA"))
        return f"#{zone}ZS {tokens} LS0 PS0+"

    def process_command(self, command: str) -> List[str]:
        """Process a command and return response lines."""
        if command == "!ZA1":
            return ["OK"]

        prefix, body = command[0], command[1:]
        digits = ""
        while body and body[0].isdigit():
            digits, body = digits + body[0], body[1:]
        if not digits or int(digits) not in self._zones:
            return ["ERROR"]
        zone = int(digits)
        state = self._zones[zone]
        op, value = body[:2], body[2:]

        if prefix == "?" or op == "ZD":
            return [self.status_line(zone)]

        if op in ("PR", "MU", "SS", "VO", "BS", "TR", "BA") and value.isdigit():
            state[op] = int(value)
        elif op == "PT":
            state["PR"] = 1 - state["PR"]
        elif op == "MT":
            state["MU"] = 1 - state["MU"]
        elif op in ("VI", "VD"):
            state["VO"] = max(0, min(38, state["VO"] + (1 if op == "VI" else -1)))
        else:
            return ["ERROR"]
        return ["OK"]


class FakeCBusGateway:
    """Fake C-Bus PC interface for testing. Commands end with CR."""

    separator = b"\r"

    def __init__(self, levels: Optional[Dict[int, int]] = None):
        # group -> native level; groups not listed are absent from the network
        self.levels: Dict[int, int] = dict(levels or {})

    @staticmethod
    def frame(data: bytes) -> str:
        return (data + bytes([_checksum(data)])).hex().upper()

    def level_pair(self, group: int) -> bytes:
        if group not in self.levels:
            return b"\x00\x00"
        level = self.levels[group]
        digits = [(level >> (2 * i)) & 0x03 for i in range(4)]
        lo = _NIBBLES[digits[0]] | (_NIBBLES[digits[1]] << 4)
        hi = _NIBBLES[digits[2]] | (_NIBBLES[digits[3]] << 4)
        return bytes([lo, hi])

    def level_status(self, base: int) -> List[str]:
        """Level status reply for a 32-group block, 11 groups per frame."""
        lines = []
        for start in range(base, base + 32, 11):
            count = min(11, base + 32 - start)
            body = b"".join(self.level_pair(g) for g in range(start, start + count))
            header = bytes([0xE0 + 3 + 2 * count, 0x07, 0x38, start])
            lines.append(self.frame(header + body))
        return lines

    def process_command(self, command: str) -> List[str]:
        if not command.startswith("\\"):
            # reset and interface set-up
            return []
        data = bytes.fromhex(command[1:])
        if data[:6] == bytes([0x05, 0xFF, 0x00, 0x73, 0x07, 0x38]):
            return self.level_status(data[6])
        if data[:3] == bytes([0x05, 0x38, 0x00]):
            op, group = data[3], data[4]
            if op == 0x79:
                self.levels[group] = 255
            elif op == 0x01:
                self.levels[group] = 0
            elif len(data) == 7:
                self.levels[group] = data[5]
        return []


class FakeServer:
    """TCP server for a fake device."""

    def __init__(self, device, host: str = "127.0.0.1", port: int = 0, mode: str = "normal"):
        self.host = host
        self.port = port
        self.device = device
        self.mode = mode
        self.received: List[str] = []
        self.connections = 0
        self._writers: List[asyncio.StreamWriter] = []
        self._server: Optional[asyncio.AbstractServer] = None

    async def handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        """Handle a client connection."""
        addr = writer.get_extra_info("peername")
        _LOGGER.info("Client connected: %s", addr)
        self.connections += 1
        self._writers.append(writer)

        # Send init bytes (like HF2211A)
        writer.write(b"\xff\xfe")
        await writer.drain()

        try:
            while True:
                data = await reader.readuntil(self.device.separator)
                command = data.decode("latin-1").strip().rstrip("+")
                if not command:
                    continue
                self.received.append(command)
                _LOGGER.info("[CMD #%d] %s", len(self.received), command)

                if self.mode == "silent":
                    continue
                for line in self.device.process_command(command):
                    writer.write(f"{line}\r\n".encode("latin-1"))
                await writer.drain()

        except (asyncio.IncompleteReadError, ConnectionError):
            _LOGGER.info("Client disconnected: %s", addr)
        finally:
            if writer in self._writers:
                self._writers.remove(writer)
            writer.close()

    async def push(self, line: str) -> None:
        """Send an unsolicited line to every connected client."""
        for writer in list(self._writers):
            writer.write(f"{line}\r\n".encode("latin-1"))
            await writer.drain()

    async def drop_clients(self) -> None:
        """Close every client connection from the device side."""
        for writer in list(self._writers):
            writer.close()
        self._writers.clear()

    async def start(self) -> int:
        """Start the server; returns the listening port."""
        self._server = await asyncio.start_server(self.handle_client, self.host, self.port)
        self.port = self._server.sockets[0].getsockname()[1]
        _LOGGER.info("Fake server listening on %s:%d (mode %s)", self.host, self.port, self.mode)
        return self.port

    async def stop(self) -> None:
        await self.drop_clients()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None


async def main():
    parser = argparse.ArgumentParser(description="Fake controller server")
    parser.add_argument("--device", choices=["mrc88", "cbus"], default="mrc88")
    parser.add_argument("--host", default="127.0.0.1", help="Listen address")
    parser.add_argument("--port", type=int, default=10001, help="Listen port")
    parser.add_argument("--mode", choices=["normal", "silent"], default="normal",
                        help="Failure mode")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG)
    if args.device == "mrc88":
        device = FakeMRC88Device()
    else:
        device = FakeCBusGateway({g: (g * 37) % 256 for g in range(1, 64)})
    server = FakeServer(device, args.host, args.port, args.mode)
    await server.start()
    try:
        await asyncio.Event().wait()
    finally:
        await server.stop()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nServer stopped.")
