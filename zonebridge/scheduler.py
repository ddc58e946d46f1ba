"""Outbound command queue and poll/staleness scheduler.

CommandScheduler is a two-queue scheduler that ensures user commands
(HIGH priority) always preempt poll queries (LOW priority) on the
half-duplex link:

    ┌─────────────────────────────────────────────────────────────┐
    │                    Command Scheduler                         │
    ├─────────────────────────────────────────────────────────────┤
    │  HIGH Queue (user commands, link set-up)                     │
    │  LOW Queue (status and refresh queries)                      │
    │  Worker: pulls from HIGH first, always                       │
    └─────────────────────────────────────────────────────────────┘

PollScheduler is the periodic loop that keeps the zone state store fresh:
each tick publishes readiness and re-queries zones that have gone stale.
After a reconnect the next iteration re-queries every zone instead.
"""

import asyncio
import itertools
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from .exceptions import BridgeError
from .models import Readiness
from .store import ZoneStateStore

_LOGGER = logging.getLogger(__name__)

# Trace ID counter
_trace_counter = itertools.count(1)


class Priority(Enum):
    """Command priority levels."""
    HIGH = 1  # User actions - preempt everything
    LOW = 2   # Poll queries - yield to HIGH


@dataclass
class CommandRequest:
    """A frame waiting to be sent."""
    command: str
    priority: Priority
    trace_id: int = field(default_factory=lambda: next(_trace_counter))
    queued_at: float = field(default_factory=time.monotonic)
    future: asyncio.Future = field(default_factory=lambda: asyncio.get_running_loop().create_future())

    def set_result(self, result: None) -> None:
        """Set the command result."""
        if not self.future.done():
            self.future.set_result(result)

    def set_exception(self, exc: BaseException) -> None:
        """Set an exception as the result."""
        if not self.future.done():
            self.future.set_exception(exc)


class CommandScheduler:
    """Priority-based command scheduler.

    Ensures user commands (HIGH) always preempt poll queries (LOW).
    The worker pulls from HIGH first, so a user command waits at most for
    the frame currently on the wire.
    """

    def __init__(
        self,
        execute_fn: Callable[[str], Awaitable[None]],
        max_queue_size: int = 100,
        recovery_delay: float = 2.0,
    ):
        """Initialize scheduler.

        Args:
            execute_fn: Coroutine function that sends one frame.
                       Signature: (frame: str) -> None
            max_queue_size: Maximum commands per queue
            recovery_delay: Seconds to back off per consecutive failure
        """
        self._execute_fn = execute_fn
        self._high_queue: asyncio.Queue[CommandRequest] = asyncio.Queue(maxsize=max_queue_size)
        self._low_queue: asyncio.Queue[CommandRequest] = asyncio.Queue(maxsize=max_queue_size)
        self._worker_task: Optional[asyncio.Task] = None
        self._running = False
        self._current_request: Optional[CommandRequest] = None

        # Circuit breaker state
        self._consecutive_failures = 0
        self._recovery_delay = recovery_delay

    @property
    def high_queue_size(self) -> int:
        """Number of HIGH priority commands waiting."""
        return self._high_queue.qsize()

    @property
    def low_queue_size(self) -> int:
        """Number of LOW priority commands waiting."""
        return self._low_queue.qsize()

    @property
    def current_command(self) -> Optional[str]:
        """Get the currently executing command."""
        return self._current_request.command if self._current_request else None

    async def start(self) -> None:
        """Start the scheduler worker."""
        if self._running:
            return

        self._running = True
        self._worker_task = asyncio.create_task(self._worker_loop())
        _LOGGER.debug("Command scheduler started")

    async def stop(self) -> None:
        """Stop the scheduler worker."""
        self._running = False
        if self._worker_task:
            self._worker_task.cancel()
            try:
                await self._worker_task
            except asyncio.CancelledError:
                pass
            self._worker_task = None

        # Cancel any pending requests
        for queue in (self._high_queue, self._low_queue):
            while not queue.empty():
                req = queue.get_nowait()
                req.future.cancel()

        _LOGGER.debug("Command scheduler stopped")

    async def submit(self, command: str, priority: Priority = Priority.LOW) -> None:
        """Queue a frame and wait until it has been sent.

        Args:
            command: Frame text
            priority: HIGH for user actions, LOW for polling

        Raises:
            BridgeTransportError: If the send failed
        """
        request = CommandRequest(command=command, priority=priority)
        queue = self._high_queue if priority == Priority.HIGH else self._low_queue

        _LOGGER.debug(
            "cmd id=%d cmd=%s prio=%s queue_depth=%d submitted",
            request.trace_id, command, priority.name, queue.qsize()
        )

        await queue.put(request)
        await request.future

    async def submit_high(self, command: str) -> None:
        """Submit a HIGH priority command (user action)."""
        await self.submit(command, Priority.HIGH)

    async def submit_low(self, command: str) -> None:
        """Submit a LOW priority command (poll query)."""
        await self.submit(command, Priority.LOW)

    async def _next_request(self) -> CommandRequest:
        # Try HIGH queue first (non-blocking), then LOW
        for queue in (self._high_queue, self._low_queue):
            try:
                return queue.get_nowait()
            except asyncio.QueueEmpty:
                pass

        # Both empty: wait for any command
        high_get = asyncio.create_task(self._high_queue.get())
        low_get = asyncio.create_task(self._low_queue.get())
        try:
            done, _ = await asyncio.wait(
                [high_get, low_get], return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for task in (high_get, low_get):
                if not task.done():
                    task.cancel()

        # Both may have completed; put LOW back behind HIGH
        if high_get in done and low_get in done:
            self._low_queue.put_nowait(low_get.result())
        return high_get.result() if high_get in done else low_get.result()

    async def _worker_loop(self) -> None:
        """Worker loop that processes commands by priority."""
        while self._running:
            request = None
            try:
                request = await self._next_request()
                if request.future.done():
                    # caller gave up waiting
                    continue

                self._current_request = request
                queue_wait_ms = int((time.monotonic() - request.queued_at) * 1000)
                io_start = time.monotonic()

                try:
                    await self._execute_fn(request.command)
                except BridgeError as e:
                    io_ms = int((time.monotonic() - io_start) * 1000)
                    _LOGGER.warning(
                        "cmd id=%d cmd=%s prio=%s queue_wait_ms=%d io_ms=%d "
                        "ok=false err=%s",
                        request.trace_id, request.command, request.priority.name,
                        queue_wait_ms, io_ms, e
                    )
                    request.set_exception(e)

                    # Circuit breaker: back off while the device recovers
                    self._consecutive_failures += 1
                    if self._consecutive_failures >= 2:
                        delay = min(self._recovery_delay * self._consecutive_failures, 10.0)
                        _LOGGER.warning(
                            "Circuit breaker: %d consecutive failures, waiting %.1fs for device recovery",
                            self._consecutive_failures, delay
                        )
                        await asyncio.sleep(delay)
                    continue
                finally:
                    self._current_request = None

                io_ms = int((time.monotonic() - io_start) * 1000)
                _LOGGER.debug(
                    "cmd id=%d cmd=%s prio=%s queue_wait_ms=%d io_ms=%d "
                    "high_pending=%d ok=true",
                    request.trace_id, request.command, request.priority.name,
                    queue_wait_ms, io_ms, self._high_queue.qsize()
                )

                # Warn if HIGH waited too long
                if request.priority == Priority.HIGH and queue_wait_ms > 1000:
                    _LOGGER.warning(
                        "cmd id=%d HIGH command waited %dms in queue",
                        request.trace_id, queue_wait_ms
                    )

                self._consecutive_failures = 0
                request.set_result(None)

            except asyncio.CancelledError:
                if request and not request.future.done():
                    request.future.cancel()
                raise

            except Exception as e:
                _LOGGER.exception("Scheduler worker error: %s", e)
                if request:
                    request.set_exception(e)


class PollScheduler:
    """Periodic readiness and staleness loop over a :class:`ZoneStateStore`.

    Each iteration either re-queries every zone (after ``request_resync``)
    or runs a normal ``tick``: publish readiness, then send refresh frames
    for zones older than the refresh threshold. Errors are logged and the
    loop re-arms after ``interval`` seconds regardless.
    """

    def __init__(
        self,
        store: ZoneStateStore,
        send: Callable[[str], Awaitable[None]],
        bulk_frames: Callable[[], List[str]],
        refresh_frames: Callable[[int], List[str]],
        interval: float,
        refresh_threshold: float,
        readiness_threshold: float,
        is_connected: Callable[[], bool] = lambda: True,
        on_readiness: Optional[Callable[[Readiness], None]] = None,
    ) -> None:
        if refresh_threshold >= readiness_threshold:
            raise ValueError("Refresh threshold must be below readiness threshold")

        self.store = store
        self.interval = interval
        self.refresh_threshold = refresh_threshold
        self.readiness_threshold = readiness_threshold

        self._send = send
        self._bulk_frames = bulk_frames
        self._refresh_frames = refresh_frames
        self._is_connected = is_connected
        self._on_readiness = on_readiness

        self._readiness = Readiness.NOT_READY
        self._resync_pending = False
        self._wake = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def readiness(self) -> Readiness:
        return self._readiness

    async def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    def request_resync(self) -> None:
        """Re-query every zone on the next iteration, without waiting out the interval."""
        self._resync_pending = True
        self._wake.set()

    def link_lost(self) -> None:
        """Readiness drops immediately when the link goes down."""
        self._publish(Readiness.NOT_READY)

    def check_ready(self) -> None:
        """Promote to READY once every zone is fresh (called after each applied frame)."""
        if self._readiness is Readiness.NOT_READY and self.store.all_fresh(
            self.readiness_threshold
        ):
            self._publish(Readiness.READY)

    def _publish(self, readiness: Readiness) -> None:
        if readiness is self._readiness:
            return
        self._readiness = readiness
        _LOGGER.info("Readiness changed to %s", readiness.name)
        if self._on_readiness is not None:
            try:
                self._on_readiness(readiness)
            except Exception:
                _LOGGER.exception("Error in readiness listener")

    async def tick(self) -> None:
        """One poll iteration: publish readiness, refresh stale zones."""
        if self.store.all_fresh(self.readiness_threshold):
            self._publish(Readiness.READY)
        else:
            self._publish(Readiness.NOT_READY)

        if not self._is_connected():
            _LOGGER.debug("Poll tick skipped - not connected")
            return

        frames: List[str] = []
        for zone in self.store.stale_zones(self.refresh_threshold):
            for frame in self._refresh_frames(zone):
                if frame not in frames:
                    frames.append(frame)

        if frames:
            _LOGGER.debug("Refreshing %d stale frame(s)", len(frames))
        await self._send_all(frames)

    async def resync(self) -> None:
        """Query every configured zone."""
        self._resync_pending = False
        _LOGGER.debug("Resynchronising all zones")
        await self._send_all(self._bulk_frames())

    async def _send_all(self, frames: List[str]) -> None:
        for frame in frames:
            try:
                await self._send(frame)
            except BridgeError as err:
                # next tick retries
                _LOGGER.warning("Poll query %s failed: %s", frame, err)

    async def _loop(self) -> None:
        while True:
            try:
                if self._resync_pending:
                    await self.resync()
                else:
                    await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception:
                _LOGGER.exception("Error in poll loop")

            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
            self._wake.clear()
