from __future__ import annotations
import asyncio
from asyncio.subprocess import PIPE

async def bluez_scan_off(timeout_s: int = 1) -> int:
    """Best-effort: stop any bluetoothctl discovery to avoid BlueZ InProgress.

    Returns the bluetoothctl exit code, or -1 when bluetoothctl could not be run
    (non-BlueZ hosts); callers carry on either way.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            "bluetoothctl", "--timeout", str(timeout_s), "scan", "off", stdout=PIPE, stderr=PIPE
        )
    except OSError:
        return -1
    await proc.communicate()
    return proc.returncode or 0
