# hkv_reader/core/refresh.py
"""
Live view: render, wait up to the refresh interval for one key, repeat.

Enter (or an empty line when stdin is not a terminal) refreshes at once,
any other key stops the loop. Stopping, Ctrl+C and SIGTERM all leave through
the same finalizer, which shuts down the collector only if this process
started it.
"""
from __future__ import annotations
from typing import Callable, TextIO
import contextlib
import logging
import os
import select
import signal
import sys
import threading
import time

from ..utils.collector import Collector

_LOG = logging.getLogger(__name__)

REFRESH_KEYS = ("", "\n", "\r")
CLEAR = "\x1b[2J\x1b[H"

class KeyReader(contextlib.AbstractContextManager):
    """Single-key reader for POSIX terminals; line-wise for pipes."""

    def __init__(self, stream: TextIO | None = None):
        self._stream = stream if stream is not None else sys.stdin
        self._fd: int | None = None
        self._old_termios = None
        self._tty = False
        self._eof = False
        self._pending = b""

    def __enter__(self) -> "KeyReader":
        try:
            self._fd = self._stream.fileno()
        except (AttributeError, OSError, ValueError):
            self._fd = None
            self._eof = True
            return self
        if os.isatty(self._fd):
            import termios
            import tty
            self._old_termios = termios.tcgetattr(self._fd)
            tty.setcbreak(self._fd)
            self._tty = True
        return self

    def __exit__(self, *_exc) -> None:
        if self._tty and self._old_termios is not None:
            import termios
            termios.tcsetattr(self._fd, termios.TCSADRAIN, self._old_termios)
        self._tty = False
        return None

    def _next_line(self) -> str | None:
        if b"\n" in self._pending:
            raw, self._pending = self._pending.split(b"\n", 1)
        elif self._eof and self._pending:
            raw, self._pending = self._pending, b""
        else:
            return None
        return raw.decode("utf-8", errors="replace").strip() or "\n"

    def wait(self, timeout: float) -> str | None:
        """Key pressed within ``timeout`` seconds, or None."""
        deadline = time.monotonic() + timeout
        while True:
            # lines already read from a pipe are not visible to select()
            line = None if self._tty else self._next_line()
            if line is not None:
                return line
            remaining = max(0.0, deadline - time.monotonic())
            if self._eof or self._fd is None:
                _sleep(remaining)
                return None
            ready, _, _ = select.select([self._fd], [], [], remaining)
            if not ready:
                return None
            raw = os.read(self._fd, 1 if self._tty else 4096)
            if not raw:
                _LOG.debug("stdin closed, falling back to timed refresh")
                self._eof = True
                continue
            if self._tty:
                return raw.decode("utf-8", errors="replace")
            self._pending += raw

def _sleep(seconds: float) -> None:
    threading.Event().wait(seconds)

_HELD_SIGNALS = {signal.SIGINT, signal.SIGTERM}

@contextlib.contextmanager
def _signals_held():
    """Defer Ctrl+C and SIGTERM until the block is done; they are delivered afterwards."""
    previous = signal.pthread_sigmask(signal.SIG_BLOCK, _HELD_SIGNALS)
    try:
        yield
    finally:
        signal.pthread_sigmask(signal.SIG_SETMASK, previous)

class CollectorGuard(contextlib.AbstractContextManager):
    """Stops a collector this process started; runs at most once."""

    def __init__(self, collector: Collector, started_here: bool, out: TextIO | None = None):
        self.collector = collector
        self.started_here = started_here
        self.out = out if out is not None else sys.stdout
        self.released = False

    def release(self) -> None:
        if self.released:
            return
        self.released = True
        if not self.started_here:
            _LOG.debug("collector was running before, leaving it alone")
            return
        print("Stopping auto-started collector...", file=self.out)
        with _signals_held():
            res = self.collector.stop()
        print(f"[{'OK' if res.ok else 'WARN'}] {res.message}", file=self.out, flush=True)

    def __exit__(self, *_exc) -> None:
        self.release()
        return None

class _Terminated(Exception):
    pass

@contextlib.contextmanager
def terminate_as_stop():
    """Turn SIGTERM into an exception so the finalizers run."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def _handler(signum, frame):
        raise _Terminated()

    previous = signal.signal(signal.SIGTERM, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGTERM, previous)

class RefreshLoop:
    def __init__(self,
                 render_once: Callable[[], str],
                 interval: int,
                 keys: KeyReader,
                 out: TextIO | None = None,
                 clear_screen: bool = False):
        self.render_once = render_once
        self.interval = interval
        self.keys = keys
        self.out = out if out is not None else sys.stdout
        self.clear_screen = clear_screen
        self.cycles = 0

    def _show(self, text: str) -> None:
        if self.clear_screen:
            self.out.write(CLEAR)
        self.out.write(text)
        self.out.flush()
        self.cycles += 1

    def _countdown(self) -> bool:
        """True: render again, False: stop."""
        remaining = self.interval
        while remaining > 0:
            self.out.write(f"\rNext refresh in {remaining}s  (Enter = now, any other key = exit): ")
            self.out.flush()
            key = self.keys.wait(1.0)
            if key is None:
                remaining -= 1
                continue
            if key in REFRESH_KEYS:
                self.out.write("\nRefreshing now...\x1b[K\n")
                return True
            self.out.write("\nExiting loop mode...\n")
            return False
        self.out.write("\n")
        return True

    def run(self) -> int:
        while True:
            self._show(self.render_once())
            if not self._countdown():
                return 0

def run_loop(loop: RefreshLoop, guard: CollectorGuard) -> int:
    """Run ``loop`` with ``guard`` released on every way out."""
    try:
        with terminate_as_stop(), guard:
            return loop.run()
    except KeyboardInterrupt:
        print("\nInterrupted", file=loop.out)
        return 0
    except _Terminated:
        print("\nTerminated", file=loop.out)
        return 0
