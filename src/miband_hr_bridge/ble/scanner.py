from __future__ import annotations
import asyncio
from typing import AsyncIterator, Dict, List, Optional, Tuple
from bleak import BleakScanner
from bleak.exc import BleakError
from .advert import AdvertRecord, record_from_bleak
from .util import bluez_scan_off
from ..errors import AdapterUnavailable

class BandScanner:
    """Passive advertisement listener.

    `records()` yields one AdvertRecord per advertisement report for as long
    as the caller keeps iterating. It is not restartable: call it again to
    open a new scan.
    """
    def __init__(self, adapter: str = "hci0", scan_off_first: bool = True,
                 company_id: Optional[int] = None):
        self.adapter = adapter
        self.scan_off_first = scan_off_first
        self.company_id = company_id
        self.reports = 0

    async def records(self) -> AsyncIterator[AdvertRecord]:
        if self.scan_off_first:
            await bluez_scan_off()
        scanner = BleakScanner(adapter=self.adapter)
        try:
            await scanner.start()
        except (BleakError, OSError) as e:
            raise AdapterUnavailable(self.adapter, str(e)) from e
        try:
            async for device, adv in scanner.advertisement_data():
                self.reports += 1
                yield record_from_bleak(device, adv, self.company_id)
        finally:
            await scanner.stop()

async def scan_with_meta(adapter: Optional[str], duration: float = 6.0) -> List[Tuple[str, AdvertRecord]]:
    """Listen for `duration` seconds and return (address, record) pairs, strongest first."""
    latest: Dict[str, AdvertRecord] = {}

    def cb(device, adv):
        latest[device.address] = record_from_bleak(device, adv)

    scanner = BleakScanner(detection_callback=cb, adapter=adapter)
    try:
        await scanner.start()
    except (BleakError, OSError) as e:
        raise AdapterUnavailable(adapter or "default", str(e)) from e
    try:
        await asyncio.sleep(duration)
    finally:
        await scanner.stop()

    out = list(latest.items())
    out.sort(key=lambda t: t[1].rssi if t[1].rssi is not None else -999, reverse=True)
    return out
