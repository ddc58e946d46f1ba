"""Persistent async link to a controller over TCP or a local serial port.

The connection owns a supervisor task that keeps the link up: it opens the
transport, reads delimited frames and hands them to frame listeners, and
reconnects with exponential backoff plus jitter whenever the link drops.
Link listeners are told each time the link comes up or goes down.
"""

import asyncio
import logging
import random
from typing import Callable, List, Optional, Tuple

import serial_asyncio

from .const import DEFAULT_CONNECT_TIMEOUT, DEFAULT_PORT, DEFAULT_SEND_TIMEOUT
from .exceptions import BridgeConnectionError, BridgeTimeoutError

_LOGGER = logging.getLogger(__name__)

FrameListener = Callable[[str], None]
LinkListener = Callable[[bool], None]


class BridgeConnection:
    """Base class: supervised, delimited, half-duplex text link."""

    def __init__(
        self,
        delimiter: str = "\r",
        terminator: str = "\r",
        encoding: str = "latin-1",
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        monitor_timeout: Optional[float] = None,
        keepalive: Optional[str] = None,
        reconnect_delay: float = 1.0,
        max_reconnect_delay: float = 60.0,
    ) -> None:
        """Initialize connection.

        Args:
            delimiter: Character that ends each received frame
            terminator: Appended to each sent frame
            encoding: Text encoding on the wire
            connect_timeout: Seconds allowed for opening the transport
            monitor_timeout: Idle seconds before the link is probed (None: never)
            keepalive: Frame sent to probe an idle link
            reconnect_delay: Initial reconnect backoff in seconds
            max_reconnect_delay: Backoff ceiling in seconds
        """
        self.delimiter = delimiter
        self.terminator = terminator
        self.encoding = encoding
        self.connect_timeout = connect_timeout
        self.monitor_timeout = monitor_timeout
        self.keepalive = keepalive

        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._connected = False
        self._closing = False
        self._lock = asyncio.Lock()  # Serialize writes
        self._supervisor: Optional[asyncio.Task] = None

        self._frame_listeners: List[FrameListener] = []
        self._link_listeners: List[LinkListener] = []

        # Reconnection backoff
        self._initial_delay = reconnect_delay
        self._reconnect_delay = reconnect_delay
        self._max_reconnect_delay = max_reconnect_delay

    def __str__(self) -> str:
        return "device"

    @property
    def is_connected(self) -> bool:
        """Check if connection is active."""
        return self._connected and self._writer is not None

    def add_frame_listener(self, listener: FrameListener) -> None:
        """Register a callback for every received frame."""
        self._frame_listeners.append(listener)

    def add_link_listener(self, listener: LinkListener) -> None:
        """Register a callback for link up (True) / link down (False)."""
        self._link_listeners.append(listener)

    async def _open(self) -> Tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        raise NotImplementedError

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    async def start(self) -> None:
        """Start the supervisor task; returns without waiting for the link."""
        if self._supervisor is not None:
            return
        self._closing = False
        self._supervisor = asyncio.create_task(self._supervise())

    async def stop(self) -> None:
        """Stop the supervisor and close the link. No callbacks fire afterwards."""
        self._closing = True
        if self._supervisor:
            self._supervisor.cancel()
            try:
                await self._supervisor
            except asyncio.CancelledError:
                pass
            self._supervisor = None
        await self._close()

    async def _close(self) -> None:
        writer = self._writer
        self._reader = None
        self._writer = None
        self._connected = False
        if writer is None:
            return
        try:
            _LOGGER.info("Disconnecting from %s", self)
            writer.close()
            await writer.wait_closed()
        except Exception as err:
            _LOGGER.warning("Error closing connection: %s", err)

    async def _supervise(self) -> None:
        while not self._closing:
            try:
                _LOGGER.info("Connecting to %s", self)
                self._reader, self._writer = await asyncio.wait_for(
                    self._open(), timeout=self.connect_timeout
                )
            except asyncio.TimeoutError:
                _LOGGER.warning("Timeout connecting to %s", self)
                await self._backoff()
                continue
            except OSError as err:
                _LOGGER.warning("Failed to connect to %s: %s", self, err)
                await self._backoff()
                continue

            self._connected = True
            self._reconnect_delay = self._initial_delay  # Reset backoff on successful connect
            _LOGGER.info("Connected to %s", self)
            self._notify_link(True)

            try:
                await self._read_loop()
            except (OSError, asyncio.IncompleteReadError) as err:
                _LOGGER.warning("Connection to %s lost: %s", self, err)

            await self._close()
            self._notify_link(False)
            await self._backoff()

    async def _backoff(self) -> None:
        """Sleep with exponential backoff + jitter."""
        if self._closing:
            return
        delay = min(self._reconnect_delay, self._max_reconnect_delay)
        jitter = random.uniform(0, delay * 0.1)  # 10% jitter
        total_delay = delay + jitter

        _LOGGER.info("Reconnecting to %s in %.1f seconds", self, total_delay)
        await asyncio.sleep(total_delay)

        # Increase backoff for next time (exponential)
        self._reconnect_delay = min(self._reconnect_delay * 2, self._max_reconnect_delay)

    # ========================================================================
    # RECEIVE
    # ========================================================================

    async def _read_loop(self) -> None:
        """Read frames until EOF or until the idle monitor gives up."""
        separator = self.delimiter.encode(self.encoding)
        probed = False

        while not self._closing:
            try:
                if self.monitor_timeout:
                    data = await asyncio.wait_for(
                        self._reader.readuntil(separator), timeout=self.monitor_timeout
                    )
                else:
                    data = await self._reader.readuntil(separator)
            except asyncio.TimeoutError:
                if self.keepalive and not probed:
                    _LOGGER.debug("Link to %s idle, sending keepalive", self)
                    probed = True
                    await self._write(self.keepalive)
                    continue
                _LOGGER.warning("No data from %s for %.0fs, dropping link", self, self.monitor_timeout)
                return
            except asyncio.IncompleteReadError as err:
                if err.partial:
                    _LOGGER.debug("Discarding partial frame at EOF: %r", err.partial)
                _LOGGER.warning("Connection to %s closed by peer", self)
                return
            except asyncio.LimitOverrunError as err:
                # no delimiter within the stream limit: drop the garbage
                await self._reader.readexactly(err.consumed)
                _LOGGER.warning("Discarded %d bytes without frame delimiter", err.consumed)
                continue

            probed = False
            frame = data.decode(self.encoding, errors="ignore").strip()
            if frame:
                _LOGGER.debug("Received frame: %s", frame)
                self._notify_frame(frame)

    def _notify_frame(self, frame: str) -> None:
        for listener in list(self._frame_listeners):
            if self._closing:
                return
            try:
                listener(frame)
            except Exception:
                _LOGGER.exception("Error in frame listener for %r", frame)

    def _notify_link(self, established: bool) -> None:
        for listener in list(self._link_listeners):
            if self._closing:
                return
            try:
                listener(established)
            except Exception:
                _LOGGER.exception("Error in link listener")

    # ========================================================================
    # SEND
    # ========================================================================

    async def send(self, frame: str, timeout: float = DEFAULT_SEND_TIMEOUT) -> None:
        """Send one frame.

        Args:
            frame: Frame text (without terminator)
            timeout: Seconds allowed for the write to drain

        Raises:
            BridgeConnectionError: Not connected or write failed
            BridgeTimeoutError: Write did not complete in time
        """
        if not self.is_connected:
            raise BridgeConnectionError(f"Not connected to {self}")
        try:
            await asyncio.wait_for(self._write(frame), timeout=timeout)
        except asyncio.TimeoutError as err:
            self._drop_link(f"send of {frame!r} timed out")
            raise BridgeTimeoutError(f"Send of {frame!r} timed out") from err
        except OSError as err:
            self._drop_link(f"send of {frame!r} failed: {err}")
            raise BridgeConnectionError(f"Send of {frame!r} failed: {err}") from err

    def _drop_link(self, reason: str) -> None:
        """Close the transport so the read loop ends and the supervisor reconnects."""
        writer = self._writer
        if not self._connected or writer is None:
            return
        _LOGGER.warning("Dropping link to %s: %s", self, reason)
        self._connected = False
        writer.close()

    async def _write(self, frame: str) -> None:
        async with self._lock:
            if self._writer is None:
                raise BridgeConnectionError(f"Not connected to {self}")
            _LOGGER.debug("Sending frame: %s", frame)
            self._writer.write(f"{frame}{self.terminator}".encode(self.encoding))
            await self._writer.drain()


class TcpConnection(BridgeConnection):
    """Link through a serial-to-ethernet adapter."""

    def __init__(self, host: str, port: int = DEFAULT_PORT, **kwargs) -> None:
        super().__init__(**kwargs)
        self.host = host
        self.port = port

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"

    async def _open(self) -> Tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        reader, writer = await asyncio.open_connection(self.host, self.port)

        # Small delay and clear any initialization bytes from serial adapter
        await asyncio.sleep(0.2)
        try:
            leftover = await asyncio.wait_for(reader.read(1024), timeout=0.1)
            if leftover:
                _LOGGER.debug("Cleared %d initialization bytes from adapter", len(leftover))
        except asyncio.TimeoutError:
            # No initialization bytes, this is fine
            pass

        return reader, writer


class SerialConnection(BridgeConnection):
    """Link over a local serial port (9600 8N1)."""

    def __init__(self, url: str, baudrate: int = 9600, **kwargs) -> None:
        super().__init__(**kwargs)
        self.url = url
        self.baudrate = baudrate

    def __str__(self) -> str:
        return self.url

    async def _open(self) -> Tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        return await serial_asyncio.open_serial_connection(
            url=self.url, baudrate=self.baudrate
        )
