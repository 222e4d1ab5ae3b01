import asyncio
import json
from pathlib import Path

import pytest

from miband_hr_bridge import cli
from miband_hr_bridge.ble.scanner import BandScanner
from miband_hr_bridge.bridge import run
from miband_hr_bridge.errors import AdapterUnavailable


def write_config(tmp_path: Path) -> Path:
    p = tmp_path / "cfg.yaml"
    p.write_text(
        "server:\n"
        "  enabled: false\n"
        "logging:\n"
        f"  dir: {tmp_path / 'logs'}\n"
        "  mode: verbose\n"
        "  dual_file: false\n"
        "  echo: false\n",
        encoding="utf-8",
    )
    return p


async def no_adapter(self):
    raise AdapterUnavailable(self.adapter, "No Bluetooth adapters found.")
    yield  # makes this an async generator like the real records()


def log_msgs(tmp_path: Path):
    # the run file and its daily alias hold the same lines; read one of them
    files = sorted((tmp_path / "logs").glob("hr_bridge_*.ndjson"))
    assert files
    text = files[0].read_text(encoding="utf-8")
    return [json.loads(l) for l in text.splitlines() if l.strip()]


def test_run_logs_and_reraises_adapter_unavailable(tmp_path, monkeypatch):
    monkeypatch.setattr(BandScanner, "records", no_adapter)
    cfg_path = write_config(tmp_path)

    with pytest.raises(AdapterUnavailable) as ei:
        asyncio.run(run(str(cfg_path)))
    assert ei.value.adapter == "hci0"

    entries = log_msgs(tmp_path)
    msgs = [e["msg"] for e in entries]
    assert msgs[0] == "started"
    assert msgs[-2:] == ["adapter_unavailable", "stopped"]
    err = entries[-2]
    assert err["type"] == "error"
    assert err["data"] == {"adapter": "hci0", "reason": "No Bluetooth adapters found."}


def test_main_exits_with_status_2_without_adapter(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(BandScanner, "records", no_adapter)
    cfg_path = write_config(tmp_path)

    with pytest.raises(SystemExit) as ei:
        cli.main(["--config", str(cfg_path)])
    assert ei.value.code == 2
    assert "No Bluetooth adapters found." in capsys.readouterr().err


def test_main_requires_config():
    with pytest.raises(SystemExit) as ei:
        cli.main([])
    assert ei.value.code == 2
