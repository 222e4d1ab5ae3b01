from __future__ import annotations
import asyncio, threading, time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Optional, Tuple, Dict, Any
from .ble.advert import Reading
from .config import MonitorCfg
from .errors import StoreInvariantViolation
from .staleness import Freshness, classify

@dataclass(frozen=True)
class Snapshot:
    """Immutable copy of the live state as seen by one reader."""
    value: int
    device_name: Optional[str]
    rssi: Optional[int]
    elapsed_s: float
    history: Tuple[int, ...]
    generation: int
    freshness: Freshness

    @property
    def fresh(self) -> bool:
        return self.freshness is Freshness.FRESH

    @property
    def elapsed_secs(self) -> int:
        return int(self.elapsed_s)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value": self.value,
            "device_name": self.device_name,
            "rssi": self.rssi,
            "elapsed_secs": self.elapsed_secs,
            "history": list(self.history),
            "fresh": self.fresh,
            "generation": self.generation,
        }

@dataclass(frozen=True)
class _Frame:
    # committed state; elapsed time is only computed when a reader renders it
    current: Optional[Reading]
    history: Tuple[int, ...]
    last_update: float
    generation: int

class _Broadcast:
    """Wake-up shared by every task waiting for the next generation.

    Fired exactly once, carrying the frame of the update that fired it, then
    replaced by a fresh instance for the following generation.
    """
    __slots__ = ("event", "frame")

    def __init__(self):
        self.event = asyncio.Event()
        self.frame: Optional[_Frame] = None

    def fire(self, frame: _Frame):
        self.frame = frame
        self.event.set()

class LiveValueStore:
    """Current reading, bounded history and a generation counter.

    Single writer (the ingestion task calls update()), any number of readers
    (snapshot() / wait_for_change()). update() must run on the event loop
    thread that owns the waiting tasks.
    """
    def __init__(self, cfg: Optional[MonitorCfg] = None, clock: Callable[[], float] = time.monotonic):
        self.cfg = cfg or MonitorCfg()
        self._clock = clock
        self._lock = threading.Lock()
        self._current: Optional[Reading] = None
        self._history: Deque[int] = deque(maxlen=self.cfg.history_size)
        # elapsed time before the first reading counts from store creation
        self._last_update: float = clock()
        self._generation = 0
        self._pending = _Broadcast()

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def last_update(self) -> float:
        return self._last_update

    @property
    def capacity(self) -> int:
        return self.cfg.history_size

    def _acquire(self):
        if not self._lock.acquire(timeout=self.cfg.lock_timeout_s):
            raise StoreInvariantViolation(
                f"store lock not acquired within {self.cfg.lock_timeout_s}s"
            )

    def _frame_locked(self) -> _Frame:
        return _Frame(
            current=self._current,
            history=tuple(self._history),
            last_update=self._last_update,
            generation=self._generation,
        )

    def _render(self, frame: _Frame) -> Snapshot:
        elapsed = max(0.0, self._clock() - frame.last_update)
        cur = frame.current
        return Snapshot(
            value=cur.value if cur else 0,
            device_name=cur.device_name if cur else None,
            rssi=cur.rssi if cur else None,
            elapsed_s=elapsed,
            history=frame.history,
            generation=frame.generation,
            freshness=classify(elapsed, self.cfg.stale_after_s),
        )

    def update(self, reading: Reading) -> int:
        """Commit `reading` and wake every waiter. Returns the new generation."""
        self._acquire()
        try:
            if reading.observed_at < self._last_update:
                raise StoreInvariantViolation(
                    f"reading observed at {reading.observed_at:.3f} precedes last update {self._last_update:.3f}"
                )
            self._current = reading
            self._history.append(reading.value)  # deque(maxlen) evicts the oldest
            self._last_update = reading.observed_at
            self._generation += 1
            frame = self._frame_locked()
            waiters, self._pending = self._pending, _Broadcast()
        finally:
            self._lock.release()
        waiters.fire(frame)
        return frame.generation

    def snapshot(self) -> Snapshot:
        self._acquire()
        try:
            frame = self._frame_locked()
        finally:
            self._lock.release()
        return self._render(frame)

    async def wait_for_change(self, last_seen_generation: int) -> Snapshot:
        """Return the first snapshot whose generation exceeds `last_seen_generation`.

        Returns immediately if the store is already past it. Updates that land
        between two calls are coalesced: only the latest one is ever returned.
        No timeout; cancel the awaiting task to give up.
        """
        while True:
            self._acquire()
            try:
                if self._generation > last_seen_generation:
                    frame = self._frame_locked()
                    return self._render(frame)
                pending = self._pending
            finally:
                self._lock.release()
            await pending.event.wait()
            if pending.frame.generation > last_seen_generation:
                return self._render(pending.frame)
