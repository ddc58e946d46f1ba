import asyncio

import pytest

from conftest import wait_until
from zonebridge.exceptions import BridgeConnectionError
from zonebridge.models import Readiness
from zonebridge.scheduler import CommandScheduler, PollScheduler
from zonebridge.store import ZoneStateStore


# ============================================================================
# COMMAND SCHEDULER
# ============================================================================


def test_high_priority_preempts_low():
    async def scenario():
        sent = []
        gate = asyncio.Event()

        async def execute(frame):
            if frame == "low-1":
                await gate.wait()
            sent.append(frame)

        scheduler = CommandScheduler(execute)
        await scheduler.start()
        first = asyncio.create_task(scheduler.submit_low("low-1"))
        await asyncio.sleep(0.01)
        second = asyncio.create_task(scheduler.submit_low("low-2"))
        third = asyncio.create_task(scheduler.submit_high("high-1"))
        await asyncio.sleep(0.01)
        assert scheduler.current_command == "low-1"
        assert scheduler.high_queue_size == 1
        assert scheduler.low_queue_size == 1

        gate.set()
        await asyncio.gather(first, second, third)
        await scheduler.stop()
        return sent

    assert asyncio.run(scenario()) == ["low-1", "high-1", "low-2"]


def test_send_failure_reaches_the_caller():
    async def scenario():
        sent = []

        async def execute(frame):
            if frame == "bad":
                raise BridgeConnectionError("link down")
            sent.append(frame)

        scheduler = CommandScheduler(execute, recovery_delay=0.01)
        await scheduler.start()
        with pytest.raises(BridgeConnectionError):
            await scheduler.submit_high("bad")
        with pytest.raises(BridgeConnectionError):
            await scheduler.submit_high("bad")
        await scheduler.submit_high("good")
        await scheduler.stop()
        return sent

    assert asyncio.run(scenario()) == ["good"]


def test_stop_cancels_waiting_commands():
    async def scenario():
        gate = asyncio.Event()

        async def execute(frame):
            await gate.wait()

        scheduler = CommandScheduler(execute)
        await scheduler.start()
        running = asyncio.create_task(scheduler.submit_low("first"))
        await asyncio.sleep(0.01)
        waiting = asyncio.create_task(scheduler.submit_low("second"))
        await asyncio.sleep(0.01)

        await scheduler.stop()
        await asyncio.sleep(0.01)
        return running, waiting

    running, waiting = asyncio.run(scenario())
    assert running.cancelled()
    assert waiting.cancelled()


# ============================================================================
# POLL SCHEDULER
# ============================================================================


class Recorder:
    def __init__(self, fail=()):
        self.sent = []
        self.fail = set(fail)
        self.readiness = []

    async def send(self, frame):
        if frame in self.fail:
            raise BridgeConnectionError("no route")
        self.sent.append(frame)

    def on_readiness(self, readiness):
        self.readiness.append(readiness)


def make_poller(clock, recorder, connected=True, **kwargs):
    store = ZoneStateStore(capacity=16, configured_count=4, first_index=1, clock=clock)
    kwargs.setdefault("interval", 20)
    kwargs.setdefault("refresh_threshold", 90)
    kwargs.setdefault("readiness_threshold", 180)
    poller = PollScheduler(
        store,
        send=recorder.send,
        bulk_frames=lambda: ["all"],
        refresh_frames=lambda zone: [f"block-{(zone - 1) // 2}"],
        is_connected=lambda: connected,
        on_readiness=recorder.on_readiness,
        **kwargs,
    )
    return store, poller


def test_thresholds_must_be_ordered(clock):
    async def scenario():
        with pytest.raises(ValueError):
            make_poller(clock, Recorder(), refresh_threshold=180, readiness_threshold=180)

    asyncio.run(scenario())


def test_tick_refreshes_stale_zones_once_per_frame(clock):
    async def scenario():
        recorder = Recorder()
        store, poller = make_poller(clock, recorder)
        await poller.tick()
        first = list(recorder.sent)

        store.touch(1)
        store.touch(2)
        recorder.sent.clear()
        await poller.tick()
        return first, recorder.sent

    first, second = asyncio.run(scenario())
    assert first == ["block-0", "block-1"]
    assert second == ["block-1"]


def test_readiness_follows_zone_age(clock):
    async def scenario():
        recorder = Recorder()
        store, poller = make_poller(clock, recorder)
        await poller.tick()
        assert poller.readiness is Readiness.NOT_READY

        for zone in store.zone_ids():
            store.touch(zone)
        await poller.tick()
        assert poller.readiness is Readiness.READY
        assert recorder.sent == ["block-0", "block-1"]

        clock.advance(100)
        await poller.tick()
        assert poller.readiness is Readiness.READY

        clock.advance(100)
        await poller.tick()
        assert poller.readiness is Readiness.NOT_READY
        return recorder.readiness

    assert asyncio.run(scenario()) == [Readiness.READY, Readiness.NOT_READY]


def test_check_ready_only_promotes(clock):
    async def scenario():
        recorder = Recorder()
        store, poller = make_poller(clock, recorder)
        for zone in store.zone_ids():
            store.touch(zone)
        poller.check_ready()
        assert poller.readiness is Readiness.READY

        clock.advance(500)
        poller.check_ready()
        assert poller.readiness is Readiness.READY

        poller.link_lost()
        assert poller.readiness is Readiness.NOT_READY
        return recorder.readiness

    assert asyncio.run(scenario()) == [Readiness.READY, Readiness.NOT_READY]


def test_tick_without_link_sends_nothing(clock):
    async def scenario():
        recorder = Recorder()
        store, poller = make_poller(clock, recorder, connected=False)
        for zone in store.zone_ids():
            store.touch(zone)
        await poller.tick()
        return poller.readiness, recorder.sent

    readiness, sent = asyncio.run(scenario())
    assert readiness is Readiness.READY
    assert sent == []


def test_failed_query_does_not_stop_the_tick(clock):
    async def scenario():
        recorder = Recorder(fail={"block-0"})
        _, poller = make_poller(clock, recorder)
        await poller.tick()
        return recorder.sent

    assert asyncio.run(scenario()) == ["block-1"]


def test_resync_wakes_the_loop(clock):
    async def scenario():
        recorder = Recorder()
        _, poller = make_poller(clock, recorder, interval=60)
        await poller.start()
        await wait_until(lambda: recorder.sent == ["block-0", "block-1"])

        poller.request_resync()
        await wait_until(lambda: "all" in recorder.sent, timeout=1.0)
        await poller.stop()
        return recorder.sent

    assert asyncio.run(scenario()) == ["block-0", "block-1", "all"]
