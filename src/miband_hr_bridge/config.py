from __future__ import annotations
import yaml
from dataclasses import dataclass, field
from typing import Optional, List, Any, Dict

@dataclass
class TargetCfg:
    # Xiaomi (Anhui Huami) Bluetooth SIG company identifier
    company_id: int = 0x0157
    # Matched exactly against the advertised local name
    device_name: str = "Mi Smart Band 4"
    # Heart-rate byte position inside the manufacturer payload
    value_offset: int = 3
    # Byte the band broadcasts when it has no measurement this cycle.
    # Readings equal to it are dropped; set to null to store every byte as-is.
    no_reading_value: Optional[int] = 0xFF

@dataclass
class MonitorCfg:
    history_size: int = 60
    stale_after_s: float = 10.0
    # Upper bound on waiting for the store lock; exceeding it is a defect, not contention
    lock_timeout_s: float = 1.0
    # Period of the "alive" status record
    status_interval_s: float = 5.0

@dataclass
class ScannerCfg:
    adapter: str = "hci0"
    # Stop any lingering bluetoothctl discovery before starting our own scan
    scan_off_first: bool = True

@dataclass
class ServerCfg:
    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 8080

@dataclass
class LoggingCfg:
    dir: str = "./logs"
    file_prefix: str = "hr_bridge"
    # 'regular' drops debug records unless whitelisted; 'verbose' emits everything.
    mode: str = "regular"
    # Message names emitted even in regular mode, e.g. ["rejected"].
    verbose_whitelist: Optional[List[str]] = None
    # Compact main log in `dir` plus full debug log in `dir/debug`.
    dual_file: bool = True
    debug_subdir: Optional[str] = "debug"
    # Also print each accepted reading to stdout
    echo: bool = True

@dataclass
class AppCfg:
    target: TargetCfg = field(default_factory=TargetCfg)
    monitor: MonitorCfg = field(default_factory=MonitorCfg)
    scanner: ScannerCfg = field(default_factory=ScannerCfg)
    server: ServerCfg = field(default_factory=ServerCfg)
    logging: LoggingCfg = field(default_factory=LoggingCfg)

def _as_float(d: Dict[str, Any], key: str, default: float) -> float:
    v = d.get(key, default)
    try:
        return float(v)
    except (TypeError, ValueError):
        return default

def _as_int(d: Dict[str, Any], key: str, default: int) -> int:
    v = d.get(key, default)
    if v is None:
        return default
    try:
        # accept hex strings such as "0x0157" as well as plain ints
        return int(v, 0) if isinstance(v, str) else int(v)
    except (TypeError, ValueError):
        return default

def _as_bool(d: Dict[str, Any], key: str, default: bool) -> bool:
    v = d.get(key, default)
    if isinstance(v, str):
        s = v.strip().lower()
        if s in ("1", "true", "yes", "on"):
            return True
        if s in ("0", "false", "no", "off"):
            return False
        raise ValueError(f"{key} must be a boolean, got {v!r}")
    return default if v is None else bool(v)

def load_config(path: str) -> AppCfg:
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    return config_from_dict(raw)

def config_from_dict(raw: Dict[str, Any]) -> AppCfg:
    # Coerce numeric fields so YAML/env strings don't leak through as str
    tgt_raw = dict(raw.get("target") or {})
    target = TargetCfg(
        company_id=_as_int(tgt_raw, "company_id", TargetCfg.company_id),
        device_name=str(tgt_raw.get("device_name") or TargetCfg.device_name),
        value_offset=_as_int(tgt_raw, "value_offset", TargetCfg.value_offset),
        # explicit null disables the no-reading filter
        no_reading_value=(None if "no_reading_value" in tgt_raw and tgt_raw["no_reading_value"] is None
                          else _as_int(tgt_raw, "no_reading_value", TargetCfg.no_reading_value)),
    )
    if target.value_offset < 0:
        raise ValueError(f"target.value_offset must be >= 0, got {tgt_raw.get('value_offset')!r}")

    mon_raw = dict(raw.get("monitor") or {})
    monitor = MonitorCfg(
        history_size=_as_int(mon_raw, "history_size", MonitorCfg.history_size),
        stale_after_s=_as_float(mon_raw, "stale_after_s", MonitorCfg.stale_after_s),
        lock_timeout_s=_as_float(mon_raw, "lock_timeout_s", MonitorCfg.lock_timeout_s),
        status_interval_s=_as_float(mon_raw, "status_interval_s", MonitorCfg.status_interval_s),
    )
    if monitor.history_size < 1:
        raise ValueError(f"monitor.history_size must be >= 1, got {mon_raw.get('history_size')!r}")

    srv_raw = dict(raw.get("server") or {})
    server = ServerCfg(
        enabled=_as_bool(srv_raw, "enabled", ServerCfg.enabled),
        host=str(srv_raw.get("host", ServerCfg.host)),
        port=_as_int(srv_raw, "port", ServerCfg.port),
    )

    scanner = ScannerCfg(**(raw.get("scanner") or {}))
    log = LoggingCfg(**(raw.get("logging") or {}))
    return AppCfg(target=target, monitor=monitor, scanner=scanner, server=server, logging=log)
