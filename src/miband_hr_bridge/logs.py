from __future__ import annotations
import os, json, time, pathlib, uuid
from typing import Optional, IO, Iterable

class NdjsonLogger:
    """Append-only NDJSON event log, one file per run plus a daily alias.

    Records are dicts shaped {"type", "msg", "data"}; the logger stamps
    `hms`, `seq`, `schema`, `session_id` and `pid` on each one.
    """
    def __init__(self, directory: str, file_prefix: str, *, dual_file: bool = False,
                 debug_subdir: Optional[str] = None, mode: Optional[str] = None,
                 verbose_whitelist: Optional[Iterable[str]] = None):
        self.dir = pathlib.Path(directory)
        self.dir.mkdir(parents=True, exist_ok=True)
        self.prefix = file_prefix
        self.dual_file = bool(dual_file)
        self.debug_subdir = debug_subdir or "debug"
        self._debug_dir: Optional[pathlib.Path] = None
        self.seq = 0
        self._fh: Optional[IO[str]] = None
        self._rot_day: Optional[str] = None
        self._path: Optional[pathlib.Path] = None
        self._debug_fh: Optional[IO[str]] = None
        self._debug_path: Optional[pathlib.Path] = None
        # 'regular' drops debug records unless their msg is whitelisted; 'verbose' keeps all.
        # Explicit arguments win over the LOG_MODE / LOG_VERBOSE_WHITELIST env vars.
        self.mode: str = mode or os.getenv("LOG_MODE", "regular")
        if verbose_whitelist is None:
            wl = os.getenv("LOG_VERBOSE_WHITELIST", "")
            verbose_whitelist = [s.strip() for s in wl.split(",") if s.strip()]
        self.verbose_whitelist = set(verbose_whitelist)
        self.session_id: str = os.getenv("SESSION_ID") or uuid.uuid4().hex[:12]
        self.pid: int = os.getpid()
        self.rotate()

    @property
    def path(self) -> Optional[pathlib.Path]:
        return self._path

    @property
    def debug_path(self) -> Optional[pathlib.Path]:
        return self._debug_path

    def close(self):
        for fh in (self._fh, self._debug_fh):
            if fh:
                fh.close()
        self._fh = None
        self._debug_fh = None

    def rotate(self):
        self.close()

        # Time-coded filename, e.g. hr_bridge_YYYYMMDD_HHMMSS.ndjson
        stamp = time.strftime("%Y%m%d_%H%M%S", time.localtime())
        day = stamp[:8]
        path = self.dir / f"{self.prefix}_{stamp}.ndjson"
        self._fh = open(path, "a", buffering=1, encoding="utf-8")
        self._path = path
        if self.dual_file:
            self._debug_dir = self.dir / self.debug_subdir
            self._debug_dir.mkdir(parents=True, exist_ok=True)
            dpath = self._debug_dir / f"{self.prefix}_debug_{stamp}.ndjson"
            self._debug_fh = open(dpath, "a", buffering=1, encoding="utf-8")
            self._debug_path = dpath
        self._rot_day = day

        # Daily alias (prefix_YYYYMMDD.ndjson) so followers can tail a stable name
        self._link_alias(path, self.dir / f"{self.prefix}_{day}.ndjson")
        if self.dual_file and self._debug_path:
            self._link_alias(self._debug_path, self._debug_dir / f"{self.prefix}_debug_{day}.ndjson")

    @staticmethod
    def _link_alias(target: pathlib.Path, alias: pathlib.Path):
        if alias == target:
            return
        try:
            if alias.exists() or alias.is_symlink():
                alias.unlink()
            # hardlink when on the same filesystem; symlink otherwise
            try:
                os.link(target, alias)
            except OSError:
                os.symlink(str(target), alias)
        except OSError:
            # alias is a convenience; the run file is authoritative
            pass

    def _suppressed(self, obj: dict) -> bool:
        if self.mode != "regular":
            return False
        typ = obj.get("type")
        msg = obj.get("msg")
        data = obj.get("data") if isinstance(obj.get("data"), dict) else {}

        # Heartbeats before the first reading carry nothing new
        if typ == "status" and msg == "alive" and data.get("generation") == 0:
            return True
        if typ == "debug" and msg not in self.verbose_whitelist:
            return True
        return False

    def write(self, obj: dict):
        suppressed = self._suppressed(obj)

        self.seq += 1
        now = time.time()
        lt = time.localtime(now)
        msec = int((now % 1.0) * 1000)
        obj.setdefault("hms", time.strftime("%H:%M:%S", lt) + f".{msec:03d}")
        obj.setdefault("seq", self.seq)
        obj.setdefault("schema", "v1")
        obj.setdefault("session_id", self.session_id)
        obj.setdefault("pid", self.pid)
        if time.strftime("%Y%m%d", lt) != self._rot_day:
            self.rotate()

        line = json.dumps(obj) + "\n"
        # The debug file gets everything, including records filtered from the main log
        if self.dual_file and self._debug_fh:
            self._debug_fh.write(line)
        if not suppressed and self._fh:
            self._fh.write(line)
