from __future__ import annotations
import asyncio, time
from collections import Counter
from typing import AsyncIterable, Callable, Optional
from .config import AppCfg, load_config
from .logs import NdjsonLogger
from .store import LiveValueStore
from .ble.advert import AdvertRecord, check_advertisement, decode_advertisement, NO_MANUFACTURER_DATA, WRONG_COMPANY
from .ble.scanner import BandScanner
from .errors import AdapterUnavailable, BackgroundTaskFailed
from .server import create_app, serve_app

class Bridge:
    """Wires the scanner, the advertisement filter and the live-value store.

    `ingest()` is the only caller of `store.update()`; the HTTP layer and any
    other consumer only read through the shared `store` handle.
    """
    def __init__(self, cfg: AppCfg, *, logger: Optional[NdjsonLogger] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.cfg = cfg
        self.clock = clock
        self.logger = logger or NdjsonLogger(
            cfg.logging.dir, cfg.logging.file_prefix,
            dual_file=cfg.logging.dual_file, debug_subdir=cfg.logging.debug_subdir,
            mode=cfg.logging.mode, verbose_whitelist=cfg.logging.verbose_whitelist,
        )
        self.store = LiveValueStore(cfg.monitor, clock=clock)
        self.scanner = BandScanner(cfg.scanner.adapter, cfg.scanner.scan_off_first,
                                   company_id=cfg.target.company_id)
        self.accepted = 0
        self.rejected: Counter = Counter()
        self._tasks = []

    def handle_record(self, rec: AdvertRecord) -> bool:
        """Filter one advertisement and commit it if it is a reading. Returns True on accept."""
        reason = check_advertisement(rec, self.cfg.target)
        if reason is not None:
            self.rejected[reason] += 1
            # Only the target's own broken packets are worth a debug line
            if reason not in (NO_MANUFACTURER_DATA, WRONG_COMPANY):
                self.logger.write({"type": "debug", "msg": "rejected",
                                   "data": {"reason": reason, "name": rec.device_name}})
            return False
        reading = decode_advertisement(rec, self.cfg.target, self.clock())
        gen = self.store.update(reading)
        self.accepted += 1
        self.logger.write({"type": "event", "msg": "reading", "data": {
            "value": reading.value, "name": reading.device_name,
            "rssi": reading.rssi, "generation": gen,
        }})
        if self.cfg.logging.echo:
            print(f"{reading.device_name} ({reading.rssi}dBm) heart rate: {reading.value}")
        return True

    async def ingest(self, records: AsyncIterable[AdvertRecord]):
        async for rec in records:
            self.handle_record(rec)

    def status_record(self) -> dict:
        snap = self.store.snapshot()
        return {"type": "status", "msg": "alive", "data": {
            "generation": snap.generation,
            "value": snap.value,
            "elapsed_secs": snap.elapsed_secs,
            "freshness": snap.freshness.value,
            "accepted": self.accepted,
            "rejected": dict(self.rejected),
        }}

    async def _status_task(self):
        while True:
            await asyncio.sleep(self.cfg.monitor.status_interval_s)
            self.logger.write(self.status_record())

    async def start(self):
        self.logger.write({"type": "event", "msg": "started", "data": {
            "adapter": self.cfg.scanner.adapter,
            "target": self.cfg.target.device_name,
            "company_id": f"0x{self.cfg.target.company_id:04X}",
        }})
        self._tasks.append(asyncio.create_task(self._status_task(), name="status"))
        if self.cfg.server.enabled:
            app = create_app(self.store)
            self._tasks.append(asyncio.create_task(serve_app(app, self.cfg.server), name="server"))

    async def run_until_failure(self, records: AsyncIterable[AdvertRecord]):
        """Ingest `records` while watching the tasks started by start().

        Returns when the record stream ends. A background task that ends
        first is logged as error/task_failed and raised as BackgroundTaskFailed;
        errors from ingestion itself propagate unchanged.
        """
        ingest = asyncio.create_task(self.ingest(records), name="ingest")
        try:
            done, _ = await asyncio.wait([ingest, *self._tasks], return_when=asyncio.FIRST_COMPLETED)
            if ingest in done:
                ingest.result()
                return
            # background tasks loop forever; any one finishing is a failure
            failed = next(iter(done))
            cause = None if failed.cancelled() else failed.exception()
            self.logger.write({"type": "error", "msg": "task_failed", "data": {
                "task": failed.get_name(), "error": repr(cause),
            }})
            raise BackgroundTaskFailed(failed.get_name(), cause) from cause
        finally:
            if not ingest.done():
                ingest.cancel()
                await asyncio.gather(ingest, return_exceptions=True)

    async def stop(self):
        for t in self._tasks:
            t.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        self.logger.write({"type": "event", "msg": "stopped",
                           "data": {"accepted": self.accepted, "rejected": dict(self.rejected)}})
        self.logger.close()

async def run(config_path: str):
    cfg = load_config(config_path)
    br = Bridge(cfg)
    await br.start()
    try:
        await br.run_until_failure(br.scanner.records())
    except AdapterUnavailable as e:
        br.logger.write({"type": "error", "msg": "adapter_unavailable",
                         "data": {"adapter": e.adapter, "reason": e.reason}})
        raise
    except asyncio.CancelledError:
        pass
    finally:
        await br.stop()
