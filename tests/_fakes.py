from __future__ import annotations
from pathlib import Path

from hkv_reader.utils.collector import CollectorResult

def write_lines(path: Path, lines) -> Path:
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path

class FakeCollector:
    def __init__(self, running: bool = False, start_ok: bool = True):
        self.running = running
        self.start_ok = start_ok
        self.started_with: list[list[str]] = []
        self.stop_calls = 0

    def is_running(self) -> bool:
        return self.running

    def start(self, id_filter):
        ids = list(id_filter)
        self.started_with.append(ids)
        if not ids or not self.start_ok:
            return CollectorResult(False, "not started")
        self.running = True
        return CollectorResult(True, "Collector running")

    def stop(self):
        self.stop_calls += 1
        if not self.running:
            return CollectorResult(False, "No collector running")
        self.running = False
        return CollectorResult(True, "Collector stopped")

    def attach_command(self):
        return []

class ScriptedKeys:
    """Key source for RefreshLoop: each wait() pops the next scripted answer."""

    def __init__(self, script):
        self.script = list(script)
        self.waits = 0

    def wait(self, timeout):
        self.waits += 1
        if not self.script:
            return "q"
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item
