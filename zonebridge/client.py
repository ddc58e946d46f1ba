"""Bridge client base: ties connection, decoder, store and schedulers together."""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Union

from .cbus_parser import CBusParser
from .commands import CBusCommands, MRC88Commands
from .connection import BridgeConnection
from .const import DEFAULT_SEND_TIMEOUT
from .exceptions import BridgeError, UnknownOpcodeError
from .models import DecodeResult, Readiness
from .mrc88_parser import MRC88Parser
from .scheduler import CommandScheduler, PollScheduler
from .store import ZoneStateStore

_LOGGER = logging.getLogger(__name__)

ChangeListener = Callable[[str, int, Any], None]
ReadyListener = Callable[[bool], None]


class BridgeClient:
    """Async protocol bridge for one controller link.

    Inbound frames are decoded and applied to the store, and every applied
    update is announced to change listeners as ``(attribute, zone, value)``
    with the value on the external scale. Outbound frames go through a
    priority queue: user commands first, poll queries when idle.
    """

    def __init__(
        self,
        connection: BridgeConnection,
        store: ZoneStateStore,
        commands: Union[CBusCommands, MRC88Commands],
        parser: Union[CBusParser, MRC88Parser],
        poll_interval: float,
        refresh_threshold: float,
        readiness_threshold: float,
        send_timeout: float = DEFAULT_SEND_TIMEOUT,
    ) -> None:
        """Initialize client.

        Args:
            connection: Transport to the controller (not yet started)
            store: Zone state store sized for the controller
            commands: Frame encoder
            parser: Frame decoder
            poll_interval: Seconds between poll ticks
            refresh_threshold: Zones older than this are re-queried
            readiness_threshold: All zones younger than this means READY
            send_timeout: Seconds allowed for each send
        """
        self.store = store
        self.commands = commands
        self._connection = connection
        self._parser = parser
        self._send_timeout = send_timeout

        self._listeners: List[ChangeListener] = []
        self._ready_listeners: List[ReadyListener] = []
        self._link_task: Optional[asyncio.Task] = None

        self._scheduler = CommandScheduler(self._transmit)
        self._poller = PollScheduler(
            store,
            send=self._scheduler.submit_low,
            bulk_frames=commands.status_requests,
            refresh_frames=commands.refresh_frames,
            interval=poll_interval,
            refresh_threshold=refresh_threshold,
            readiness_threshold=readiness_threshold,
            is_connected=lambda: self.is_connected,
            on_readiness=self._notify_ready,
        )

        connection.add_frame_listener(self.handle_frame)
        connection.add_link_listener(self._on_link)

    @property
    def is_connected(self) -> bool:
        """Check if client is connected."""
        return self._connection.is_connected

    @property
    def readiness(self) -> Readiness:
        return self._poller.readiness

    @property
    def is_ready(self) -> bool:
        """True once every configured zone has reported recently."""
        return self._poller.readiness is Readiness.READY

    @property
    def zone_names(self) -> Dict[int, str]:
        return self.store.names

    @property
    def poller(self) -> PollScheduler:
        return self._poller

    async def start(self) -> None:
        """Start queue, poll loop and connection supervisor."""
        await self._scheduler.start()
        await self._poller.start()
        await self._connection.start()

    async def stop(self) -> None:
        """Stop everything. No listener is called after this returns."""
        await self._connection.stop()
        if self._link_task is not None:
            self._link_task.cancel()
            try:
                await self._link_task
            except asyncio.CancelledError:
                pass
            self._link_task = None
        await self._poller.stop()
        await self._scheduler.stop()
        self._listeners.clear()
        self._ready_listeners.clear()

    # ========================================================================
    # LISTENERS
    # ========================================================================

    def add_listener(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a change listener. Returns a function that removes it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def add_ready_listener(self, listener: ReadyListener) -> Callable[[], None]:
        """Register a readiness listener, called with True/False on transitions."""
        self._ready_listeners.append(listener)

        def remove() -> None:
            if listener in self._ready_listeners:
                self._ready_listeners.remove(listener)

        return remove

    def _notify(self, attribute: str, zone: int, value: Any) -> None:
        for listener in list(self._listeners):
            try:
                listener(attribute, zone, value)
            except Exception:
                _LOGGER.exception("Error in change listener for zone %d %s", zone, attribute)

    def _notify_ready(self, readiness: Readiness) -> None:
        for listener in list(self._ready_listeners):
            try:
                listener(readiness is Readiness.READY)
            except Exception:
                _LOGGER.exception("Error in readiness listener")

    # ========================================================================
    # INBOUND
    # ========================================================================

    def handle_frame(self, raw: str) -> None:
        """Decode one received frame and apply it."""
        result = self._parser.decode(raw)
        if not result.ok:
            if isinstance(result.error, UnknownOpcodeError):
                _LOGGER.debug("Ignoring frame %r: %s", raw, result.error)
            else:
                _LOGGER.warning("Dropping malformed frame %r: %s", raw, result.error)
            return

        for err in result.zone_errors:
            _LOGGER.debug("Partial decode of %r: %s", raw, err)
        self.apply(result)

    def apply(self, result: DecodeResult) -> None:
        """Write decoded updates to the store and notify listeners."""
        for update in result.updates:
            if not self.store.in_range(update.zone):
                _LOGGER.debug(
                    "Dropping %s update for unconfigured zone %d", update.attribute, update.zone
                )
                continue
            self.store.set(update.zone, update.attribute, update.stored_value)
            self._notify(update.attribute, update.zone, update.value)

        for zone in result.touched:
            if self.store.in_range(zone):
                self.store.touch(zone)

        if result.updates or result.touched:
            self._poller.check_ready()

    def _on_link(self, established: bool) -> None:
        if established:
            self._link_task = asyncio.create_task(self._link_up())
        else:
            _LOGGER.info("Link lost")
            self._poller.link_lost()

    async def _link_up(self) -> None:
        for frame in self.commands.init_frames():
            await self._send(frame)
        self._poller.request_resync()

    # ========================================================================
    # OUTBOUND
    # ========================================================================

    async def _transmit(self, frame: str) -> None:
        await self._connection.send(frame, timeout=self._send_timeout)

    async def _send(self, frame: str) -> bool:
        """Queue a user frame ahead of polling. Failures are logged, not retried."""
        try:
            await self._scheduler.submit_high(frame)
        except BridgeError as err:
            _LOGGER.warning("Failed to send %s: %s", frame, err)
            return False
        return True

    async def send_raw(self, frame: str) -> bool:
        """Send a frame exactly as given (terminator added by the link)."""
        _LOGGER.info("Sending raw frame %s", frame)
        return await self._send(frame)
