import asyncio

import pytest

from miband_hr_bridge.ble.advert import Reading
from miband_hr_bridge.config import MonitorCfg
from miband_hr_bridge.errors import StoreInvariantViolation
from miband_hr_bridge.staleness import Freshness
from miband_hr_bridge.store import LiveValueStore


class FakeClock:
    def __init__(self, t=100.0):
        self.t = t

    def __call__(self):
        return self.t


def reading(value, at, name="Mi Smart Band 4", rssi=-60):
    return Reading(value=value, device_name=name, rssi=rssi, observed_at=at)


def test_initial_snapshot():
    clock = FakeClock()
    store = LiveValueStore(clock=clock)
    snap = store.snapshot()
    assert snap.value == 0
    assert snap.device_name is None
    assert snap.rssi is None
    assert snap.history == ()
    assert snap.generation == 0
    assert snap.fresh


def test_update_sets_current_and_generation():
    clock = FakeClock()
    store = LiveValueStore(clock=clock)
    assert store.update(reading(72, clock())) == 1
    assert store.update(reading(74, clock(), rssi=-55)) == 2
    snap = store.snapshot()
    assert snap.value == 74
    assert snap.rssi == -55
    assert snap.device_name == "Mi Smart Band 4"
    assert snap.generation == 2
    assert store.generation == 2


def test_history_in_arrival_order():
    clock = FakeClock()
    store = LiveValueStore(clock=clock)
    values = [60 + i for i in range(60)]
    for v in values:
        store.update(reading(v, clock()))
    assert list(store.snapshot().history) == values


def test_history_evicts_oldest_past_capacity():
    clock = FakeClock()
    store = LiveValueStore(clock=clock)
    for v in range(1, 62):
        store.update(reading(v, clock()))
    hist = store.snapshot().history
    assert len(hist) == 60
    assert list(hist) == list(range(2, 62))


def test_history_capacity_from_config():
    clock = FakeClock()
    store = LiveValueStore(MonitorCfg(history_size=3), clock=clock)
    for v in (1, 2, 3, 4, 5):
        store.update(reading(v, clock()))
    assert store.snapshot().history == (3, 4, 5)


def test_snapshot_is_a_copy():
    clock = FakeClock()
    store = LiveValueStore(clock=clock)
    store.update(reading(70, clock()))
    before = store.snapshot()
    store.update(reading(71, clock()))
    assert before.history == (70,)
    assert before.value == 70
    assert before.generation == 1


def test_elapsed_and_freshness():
    clock = FakeClock(100.0)
    store = LiveValueStore(clock=clock)
    store.update(reading(72, clock()))
    assert store.snapshot().elapsed_secs == 0

    clock.t = 105.5
    snap = store.snapshot()
    assert snap.elapsed_secs == 5
    assert snap.freshness is Freshness.FRESH

    clock.t = 109.0
    assert store.snapshot().fresh

    clock.t = 110.0
    snap = store.snapshot()
    assert snap.elapsed_secs == 10
    assert not snap.fresh

    store.update(reading(73, clock()))
    assert store.snapshot().elapsed_secs == 0
    assert store.snapshot().fresh


def test_stale_threshold_from_config():
    clock = FakeClock(0.0)
    store = LiveValueStore(MonitorCfg(stale_after_s=2.0), clock=clock)
    store.update(reading(72, clock()))
    clock.t = 2.0
    assert store.snapshot().freshness is Freshness.STALE


def test_to_dict_shape():
    clock = FakeClock(0.0)
    store = LiveValueStore(clock=clock)
    store.update(reading(72, clock()))
    clock.t = 3.2
    assert store.snapshot().to_dict() == {
        "value": 72,
        "device_name": "Mi Smart Band 4",
        "rssi": -60,
        "elapsed_secs": 3,
        "history": [72],
        "fresh": True,
        "generation": 1,
    }


def test_backwards_reading_is_an_invariant_violation():
    clock = FakeClock(50.0)
    store = LiveValueStore(clock=clock)
    store.update(reading(72, 50.0))
    with pytest.raises(StoreInvariantViolation):
        store.update(reading(73, 49.0))
    snap = store.snapshot()
    assert snap.generation == 1
    assert snap.history == (72,)


def test_lock_timeout_is_an_invariant_violation():
    store = LiveValueStore(MonitorCfg(lock_timeout_s=0.01), clock=FakeClock())
    store._lock.acquire()
    try:
        with pytest.raises(StoreInvariantViolation):
            store.snapshot()
        with pytest.raises(StoreInvariantViolation):
            store.update(reading(72, 100.0))
    finally:
        store._lock.release()
    assert store.generation == 0


def test_wait_returns_immediately_when_behind():
    async def scenario():
        clock = FakeClock()
        store = LiveValueStore(clock=clock)
        for v in (70, 71, 72):
            store.update(reading(v, clock()))
        # a slow consumer only sees the latest value, not a backlog
        return await store.wait_for_change(0)

    snap = asyncio.run(scenario())
    assert snap.generation == 3
    assert snap.value == 72


def test_wait_blocks_until_next_update():
    async def scenario():
        clock = FakeClock()
        store = LiveValueStore(clock=clock)
        store.update(reading(70, clock()))
        task = asyncio.create_task(store.wait_for_change(1))
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert not task.done()
        store.update(reading(80, clock()))
        return await asyncio.wait_for(task, timeout=1.0)

    snap = asyncio.run(scenario())
    assert snap.generation == 2
    assert snap.value == 80


def test_all_pending_waiters_see_the_same_update():
    async def scenario():
        clock = FakeClock()
        store = LiveValueStore(clock=clock)
        waiters = [asyncio.create_task(store.wait_for_change(0)) for _ in range(5)]
        await asyncio.sleep(0)
        store.update(reading(72, clock()))
        # a second commit before the waiters get to run must not leak into their result
        store.update(reading(90, clock()))
        return await asyncio.wait_for(asyncio.gather(*waiters), timeout=1.0)

    snaps = asyncio.run(scenario())
    assert {s.generation for s in snaps} == {1}
    assert {s.value for s in snaps} == {72}
    assert all(s.history == (72,) for s in snaps)


def test_waiter_ahead_of_store_waits_past_its_generation():
    async def scenario():
        clock = FakeClock()
        store = LiveValueStore(clock=clock)
        task = asyncio.create_task(store.wait_for_change(2))
        await asyncio.sleep(0)
        store.update(reading(70, clock()))
        await asyncio.sleep(0)
        store.update(reading(71, clock()))
        await asyncio.sleep(0)
        assert not task.done()
        store.update(reading(72, clock()))
        return await asyncio.wait_for(task, timeout=1.0)

    snap = asyncio.run(scenario())
    assert snap.generation == 3
    assert snap.value == 72


def test_cancelled_waiter_leaves_store_usable():
    async def scenario():
        clock = FakeClock()
        store = LiveValueStore(clock=clock)
        task = asyncio.create_task(store.wait_for_change(0))
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        store.update(reading(72, clock()))
        return await asyncio.wait_for(store.wait_for_change(0), timeout=1.0)

    snap = asyncio.run(scenario())
    assert snap.value == 72
