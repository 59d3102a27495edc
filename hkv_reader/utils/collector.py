# hkv_reader/utils/collector.py
"""
Background collector handling.

The collector is wmbusmeters running inside a detached GNU screen session,
piped through ``python -m hkv_reader.collect`` which maintains the reading
log. Everything here shells out; the rest of the program only sees the
``Collector`` protocol so it can run against a fake in tests.
"""
from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Protocol
import logging
import shlex
import subprocess
import sys
import time

from ..core.normalize import padded_id

_LOG = logging.getLogger(__name__)

@dataclass(frozen=True)
class CollectorResult:
    ok: bool
    message: str

class Collector(Protocol):
    def is_running(self) -> bool: ...
    def start(self, id_filter: Iterable[str]) -> CollectorResult: ...
    def stop(self) -> CollectorResult: ...
    def attach_command(self) -> list[str]: ...

Runner = Callable[..., subprocess.CompletedProcess]

def _default_runner(cmd: list[str], **kw) -> subprocess.CompletedProcess:
    return subprocess.run(cmd, capture_output=True, text=True, check=False, **kw)

class ScreenCollector:
    """wmbusmeters inside `screen -dmS <session>`."""

    def __init__(self,
                 session_name: str,
                 command: str,
                 data_file: Path,
                 start_delay: float = 2.0,
                 stop_delay: float = 1.0,
                 runner: Runner | None = None,
                 sleep: Callable[[float], None] = time.sleep,
                 python: str | None = None):
        self.session_name = session_name
        self.command = command
        self.data_file = Path(data_file)
        self.start_delay = start_delay
        self.stop_delay = stop_delay
        self._run = runner or _default_runner
        self._sleep = sleep
        self._python = python or sys.executable

    def _call(self, cmd: list[str]) -> subprocess.CompletedProcess | None:
        _LOG.debug("exec: %s", shlex.join(cmd))
        try:
            return self._run(cmd)
        except FileNotFoundError as e:
            _LOG.debug("exec failed: %s", e)
            return None

    def session_pid(self) -> int | None:
        """PID of the screen process owning our session, None if there is none."""
        proc = self._call(["screen", "-list"])
        if proc is None:
            return None
        # session lines look like "\t12345.hkv-collector\t(Detached)"
        for line in (proc.stdout or "").splitlines():
            token = line.strip().split("\t", 1)[0]
            pid, _, name = token.partition(".")
            if name == self.session_name and pid.isdigit():
                return int(pid)
        return None

    def is_running(self) -> bool:
        return self.session_pid() is not None

    def _window_sessions(self, screen_pid: int) -> list[int]:
        # each screen window runs in its own session led by the window shell
        proc = self._call(["pgrep", "-P", str(screen_pid)])
        if proc is None:
            return []
        return [int(p) for p in (proc.stdout or "").split() if p.isdigit()]

    def pipeline_command(self, id_filter: Iterable[str]) -> str:
        ids = ",".join(padded_id(i) for i in id_filter)
        sink = [self._python, "-m", "hkv_reader.collect",
                "--data-file", str(self.data_file), "--ids", ids]
        return f"{self.command} | {shlex.join(sink)}"

    def start(self, id_filter: Iterable[str]) -> CollectorResult:
        ids = list(id_filter)
        if not ids:
            return CollectorResult(False, "No valid IDs found in ID list, collector not started")
        if self.is_running():
            return CollectorResult(True, f"Collector already running (screen: {self.session_name})")

        cmd = ["screen", "-dmS", self.session_name, "sh", "-c", self.pipeline_command(ids)]
        proc = self._call(cmd)
        if proc is None:
            return CollectorResult(False, "screen not found, cannot start collector")
        if proc.returncode != 0:
            return CollectorResult(False, f"screen failed ({proc.returncode}): {(proc.stderr or '').strip()}")

        self._sleep(self.start_delay)
        if self.is_running():
            return CollectorResult(True, f"Collector running (screen: {self.session_name})")
        return CollectorResult(False, "Collector session exited right after start")

    def stop(self) -> CollectorResult:
        screen_pid = self.session_pid()
        if screen_pid is None:
            return CollectorResult(False, "No collector running (session not found)")
        sessions = self._window_sessions(screen_pid)
        self._call(["screen", "-S", self.session_name, "-X", "quit"])
        # a wmbusmeters left behind keeps the radio stick busy
        for sid in sessions:
            self._call(["pkill", "-TERM", "-s", str(sid)])
        self._sleep(self.stop_delay)
        if self.is_running():
            return CollectorResult(
                False, f"Could not stop session, try manually: screen -S {self.session_name} -X quit")
        return CollectorResult(True, "Collector stopped")

    def attach_command(self) -> list[str]:
        return ["screen", "-r", self.session_name]
