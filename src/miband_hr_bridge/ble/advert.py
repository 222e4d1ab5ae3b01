from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Any
from ..config import TargetCfg

# Rejection reasons reported by check_advertisement()
NO_MANUFACTURER_DATA = "no_manufacturer_data"
WRONG_COMPANY = "wrong_company"
WRONG_NAME = "wrong_name"
SHORT_PAYLOAD = "short_payload"
NO_READING = "no_reading"

@dataclass(frozen=True)
class ManufacturerData:
    company_id: int
    payload: bytes

@dataclass(frozen=True)
class AdvertRecord:
    manufacturer_data: Optional[ManufacturerData] = None
    device_name: Optional[str] = None
    rssi: Optional[int] = None

@dataclass(frozen=True)
class Reading:
    value: int
    device_name: Optional[str]
    rssi: Optional[int]
    observed_at: float  # monotonic seconds

def check_advertisement(record: AdvertRecord, target: TargetCfg) -> Optional[str]:
    """Return why `record` is not a usable reading from `target`, or None if it is.

    Every field of the record may be absent; nothing here raises.
    """
    mfg = record.manufacturer_data
    if mfg is None:
        return NO_MANUFACTURER_DATA
    if mfg.company_id != target.company_id:
        return WRONG_COMPANY
    if record.device_name != target.device_name:
        return WRONG_NAME
    payload = mfg.payload or b""
    if target.value_offset < 0 or len(payload) <= target.value_offset:
        return SHORT_PAYLOAD
    if target.no_reading_value is not None and payload[target.value_offset] == target.no_reading_value:
        return NO_READING
    return None

def decode_advertisement(record: AdvertRecord, target: TargetCfg, now: float) -> Optional[Reading]:
    if check_advertisement(record, target) is not None:
        return None
    value = record.manufacturer_data.payload[target.value_offset]
    return Reading(value=value, device_name=record.device_name, rssi=record.rssi, observed_at=now)

def record_from_bleak(device: Any, adv: Any, company_id: Optional[int] = None) -> AdvertRecord:
    """Build an AdvertRecord from bleak's (BLEDevice, AdvertisementData) pair.

    BlueZ accumulates manufacturer entries per address, so several company ids
    can be present; the one matching `company_id` wins, otherwise the first.
    """
    mfg_map = getattr(adv, "manufacturer_data", None) or {}
    mfg = None
    if company_id is not None and company_id in mfg_map:
        mfg = ManufacturerData(company_id=int(company_id), payload=bytes(mfg_map[company_id]))
    else:
        for cid, payload in mfg_map.items():
            mfg = ManufacturerData(company_id=int(cid), payload=bytes(payload))
            break
    name = getattr(adv, "local_name", None) or getattr(device, "name", None)
    rssi = getattr(adv, "rssi", None)
    return AdvertRecord(manufacturer_data=mfg, device_name=name, rssi=rssi)
