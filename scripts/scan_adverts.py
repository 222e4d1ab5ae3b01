#!/usr/bin/env python3
"""List nearby advertisers with their manufacturer data.

Useful for confirming the band's advertised name, company id and where the
heart-rate byte sits before writing a config file.
"""
import argparse
import asyncio
import sys

from miband_hr_bridge.ble.scanner import scan_with_meta
from miband_hr_bridge.errors import AdapterUnavailable

async def main():
    ap = argparse.ArgumentParser(description="Discover BLE advertisers (with manufacturer data)")
    ap.add_argument("--adapter", default=None)
    ap.add_argument("--name", default=None)
    ap.add_argument("--scan", type=float, default=6.0)
    args = ap.parse_args()

    print(f"[i] Scanning ~{int(args.scan)} s…\n")
    try:
        rows = await scan_with_meta(args.adapter, args.scan)
    except AdapterUnavailable as e:
        raise SystemExit(f"[err] {e}")

    if args.name:
        rows = [r for r in rows if args.name.lower() in (r[1].device_name or "").lower()]
        if not rows:
            print("[!] No matching device.", file=sys.stderr)

    for addr, rec in rows[:20]:
        rssi = rec.rssi if rec.rssi is not None else -999
        line = f"  RSSI {rssi:>4} | {rec.device_name or '(no name)'} [{addr}]"
        mfg = rec.manufacturer_data
        if mfg:
            line += f"  mfg=0x{mfg.company_id:04X} {mfg.payload.hex(' ')}"
        print(line)

if __name__ == "__main__":
    asyncio.run(main())
