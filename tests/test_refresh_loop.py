import io
import os
import signal
import unittest

from hkv_reader.core.refresh import CollectorGuard, KeyReader, RefreshLoop, run_loop

from _fakes import FakeCollector, ScriptedKeys


class _Renderer:
    def __init__(self, fail_on=None):
        self.calls = 0
        self.fail_on = fail_on

    def __call__(self):
        self.calls += 1
        if self.fail_on is not None and self.calls == self.fail_on:
            raise self.fail_on_exc
        return f"table #{self.calls}\n"


class RefreshLoopTests(unittest.TestCase):
    def _loop(self, keys, renderer=None, interval=3):
        out = io.StringIO()
        renderer = renderer or _Renderer()
        return RefreshLoop(renderer, interval, keys, out=out), renderer, out

    def test_timeout_refreshes_after_interval(self):
        keys = ScriptedKeys([None, None, None, "q"])
        loop, renderer, out = self._loop(keys, interval=3)
        self.assertEqual(0, loop.run())
        self.assertEqual(2, renderer.calls)
        self.assertEqual(4, keys.waits)
        self.assertIn("Next refresh in 3s", out.getvalue())
        self.assertIn("Next refresh in 1s", out.getvalue())

    def test_enter_refreshes_immediately(self):
        keys = ScriptedKeys(["\n", "", "x"])
        loop, renderer, out = self._loop(keys, interval=15)
        loop.run()
        self.assertEqual(3, renderer.calls)
        self.assertEqual(3, keys.waits)
        self.assertIn("Refreshing now...", out.getvalue())
        self.assertTrue(out.getvalue().rstrip().endswith("Exiting loop mode..."))

    def test_other_key_stops(self):
        loop, renderer, _ = self._loop(ScriptedKeys(["q"]))
        self.assertEqual(0, loop.run())
        self.assertEqual(1, renderer.calls)


class KeyReaderTests(unittest.TestCase):
    def _pipe(self, data: bytes, close: bool = True):
        r, w = os.pipe()
        os.write(w, data)
        if close:
            os.close(w)
        else:
            self.addCleanup(os.close, w)
        stream = os.fdopen(r, "r")
        self.addCleanup(stream.close)
        return stream

    def test_lines_from_one_write_are_all_seen(self):
        with KeyReader(self._pipe(b"\nq\n")) as keys:
            self.assertEqual("\n", keys.wait(0.2))
            self.assertEqual("q", keys.wait(0.2))

    def test_enter_and_other_key(self):
        with KeyReader(self._pipe(b"\n", close=False)) as keys:
            self.assertEqual("\n", keys.wait(0.2))
            self.assertIsNone(keys.wait(0.05))      # nothing more written yet
        with KeyReader(self._pipe(b"x\n", close=False)) as keys:
            self.assertEqual("x", keys.wait(0.2))

    def test_eof_falls_back_to_timed_wait(self):
        with KeyReader(self._pipe(b"")) as keys:
            self.assertIsNone(keys.wait(0.05))
            self.assertIsNone(keys.wait(0.05))

    def test_last_line_without_newline_before_eof(self):
        with KeyReader(self._pipe(b"q")) as keys:
            self.assertEqual("q", keys.wait(0.2))
            self.assertIsNone(keys.wait(0.05))

    def test_piped_enter_then_key_drives_the_loop(self):
        with KeyReader(self._pipe(b"\nq\n")) as keys:
            renderer = _Renderer()
            loop = RefreshLoop(renderer, 5, keys, out=io.StringIO())
            self.assertEqual(0, loop.run())
        self.assertEqual(2, renderer.calls)


class CleanupTests(unittest.TestCase):
    def test_collector_started_here_is_stopped_on_key_exit(self):
        collector = FakeCollector(running=True)
        out = io.StringIO()
        loop = RefreshLoop(_Renderer(), 5, ScriptedKeys(["q"]), out=out)
        self.assertEqual(0, run_loop(loop, CollectorGuard(collector, started_here=True, out=out)))
        self.assertEqual(1, collector.stop_calls)
        self.assertFalse(collector.running)

    def test_preexisting_collector_is_left_alone(self):
        collector = FakeCollector(running=True)
        out = io.StringIO()
        loop = RefreshLoop(_Renderer(), 5, ScriptedKeys(["q"]), out=out)
        run_loop(loop, CollectorGuard(collector, started_here=False, out=out))
        self.assertEqual(0, collector.stop_calls)
        self.assertTrue(collector.running)

    def test_interrupt_during_wait_cleans_up_once(self):
        collector = FakeCollector(running=True)
        out = io.StringIO()
        guard = CollectorGuard(collector, started_here=True, out=out)
        loop = RefreshLoop(_Renderer(), 5, ScriptedKeys([None, KeyboardInterrupt()]), out=out)
        self.assertEqual(0, run_loop(loop, guard))
        guard.release()
        self.assertEqual(1, collector.stop_calls)
        self.assertIn("Interrupted", out.getvalue())

    def test_interrupt_during_render_cleans_up(self):
        collector = FakeCollector(running=True)
        out = io.StringIO()
        renderer = _Renderer(fail_on=2)
        renderer.fail_on_exc = KeyboardInterrupt()
        loop = RefreshLoop(renderer, 5, ScriptedKeys(["\n"]), out=out)
        run_loop(loop, CollectorGuard(collector, started_here=True, out=out))
        self.assertEqual(1, collector.stop_calls)

    def test_sigterm_runs_cleanup(self):
        collector = FakeCollector(running=True)
        out = io.StringIO()

        class _TermKeys:
            def wait(self, timeout):
                os.kill(os.getpid(), signal.SIGTERM)
                return None

        before = signal.getsignal(signal.SIGTERM)
        loop = RefreshLoop(_Renderer(), 5, _TermKeys(), out=out)
        self.assertEqual(0, run_loop(loop, CollectorGuard(collector, started_here=True, out=out)))
        self.assertEqual(1, collector.stop_calls)
        self.assertIn("Terminated", out.getvalue())
        self.assertEqual(before, signal.getsignal(signal.SIGTERM))

    def test_signals_stay_handled_while_collector_stops(self):
        seen = {}

        class _RecordingCollector(FakeCollector):
            def stop(self):
                seen["handler"] = signal.getsignal(signal.SIGTERM)
                seen["blocked"] = signal.pthread_sigmask(signal.SIG_BLOCK, [])
                return super().stop()

        collector = _RecordingCollector(running=True)
        out = io.StringIO()
        before = signal.getsignal(signal.SIGTERM)
        loop = RefreshLoop(_Renderer(), 5, ScriptedKeys(["q"]), out=out)
        run_loop(loop, CollectorGuard(collector, started_here=True, out=out))

        self.assertNotIn(seen["handler"], (signal.SIG_DFL, before))
        self.assertIn(signal.SIGTERM, seen["blocked"])
        self.assertIn(signal.SIGINT, seen["blocked"])
        self.assertNotIn(signal.SIGTERM, signal.pthread_sigmask(signal.SIG_BLOCK, []))
        self.assertEqual(before, signal.getsignal(signal.SIGTERM))


if __name__ == "__main__":
    unittest.main()
