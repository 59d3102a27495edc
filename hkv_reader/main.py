# hkv_reader/main.py
from __future__ import annotations
from pathlib import Path
import argparse
import logging
import os
import sys

from hkv_reader.core.errors import ConfigError
from hkv_reader.core.pipeline import export_view, render_view
from hkv_reader.core.refresh import CLEAR, CollectorGuard, KeyReader, RefreshLoop, run_loop
from hkv_reader.core.settings import AppSettings, build_settings, load_config
from hkv_reader.loaders import registry_loader
from hkv_reader.utils.collector import Collector, ScreenCollector

PROG = "hkv-reader"
START_HINT = f"{PROG} -col"

EPILOG = f"""\
Examples:
  {PROG} -l 10 -s date          loop view, starts the collector if needed
  {PROG} -col                   start collector and attach to its screen session
  {PROG} -col -l 5 -s unit      collector + loop view
  {PROG} -kill-col              stop collector
  {PROG} -f ids.lst -e          one-time view of a custom ID list, exported to a file
"""

def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog=PROG,
        description="Show the latest wmbusmeters readings of known heat cost allocators (HKV).",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    ap.add_argument("-col", "--collect", action="store_true",
                    help="start collector (attach to screen when given alone)")
    ap.add_argument("-kill-col", "--kill-collector", dest="kill_collector", action="store_true",
                    help="stop collector")
    ap.add_argument("-f", "--id-file", dest="id_file", type=Path, help="custom ID list file")
    ap.add_argument("-s", "--sort", help="id|unit|name|factor|class|previous|current|date")
    ap.add_argument("-l", "--loop", nargs="?", type=int, const=True, metavar="SECONDS",
                    help="loop mode (default interval from config), auto-starts collector")
    ap.add_argument("-e", "--export", action="store_true", help="export current view to a file")
    ap.add_argument("-c", "--clear", action="store_true", help="delete raw data file (asks first)")
    ap.add_argument("--config", type=Path, help="YAML file merged over the defaults")
    ap.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return ap

def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

def make_collector(settings: AppSettings) -> ScreenCollector:
    c = settings.collector
    return ScreenCollector(
        session_name=c.session_name,
        command=c.command,
        data_file=settings.data_file,
        start_delay=c.start_delay,
        stop_delay=c.stop_delay,
    )

def clear_data_file(settings: AppSettings, ask=input) -> None:
    path = settings.data_file
    if not path.is_file():
        print("[INFO] No raw data file present.")
        return
    answer = ask(f"Delete file {path} ? (y/N) ")
    if answer.strip().lower() == "y":
        path.unlink(missing_ok=True)
        print("→ Deleted.")
    else:
        print("→ Cancelled.")

def ensure_collector(settings: AppSettings, collector: Collector) -> bool:
    """Start the collector unless it runs already. Returns True if we started it."""
    if collector.is_running():
        return False
    ids = [d.id for d in registry_loader.load(settings.registry_path,
                                              header_labels=settings.header_labels,
                                              name_placeholder=settings.name_placeholder)]
    print(f"Starting collector in screen session: {settings.collector.session_name}")
    res = collector.start(ids)
    print(f"[{'OK' if res.ok else 'WARN'}] {res.message}")
    return res.ok

def show(text: str, settings: AppSettings) -> None:
    if settings.clear_screen and sys.stdout.isatty():
        sys.stdout.write(CLEAR)
    sys.stdout.write(text)
    sys.stdout.flush()

def run(settings: AppSettings, collector: Collector) -> int:
    if settings.clear_data:
        clear_data_file(settings)

    if settings.kill_collector:
        res = collector.stop()
        print(f"[{'OK' if res.ok else 'INFO'}] {res.message}")
        return 0

    started_here = False
    if settings.collect:
        started_here = ensure_collector(settings, collector)
        if settings.attach_only:
            if not collector.is_running():
                return 1
            print("Opening collector session (live output)...", flush=True)
            cmd = collector.attach_command()
            if cmd:
                os.execvp(cmd[0], cmd)
            return 0

    if settings.loop:
        guard = CollectorGuard(collector, started_here)
        with KeyReader() as keys:
            loop = RefreshLoop(
                lambda: render_view(settings, collector.is_running(), START_HINT),
                settings.loop_interval,
                keys,
                clear_screen=settings.clear_screen and sys.stdout.isatty(),
            )
            return run_loop(loop, guard)

    running = collector.is_running()
    show(render_view(settings, running, START_HINT), settings)
    if settings.export:
        written = export_view(settings, collector.is_running(), START_HINT)
        for path in written:
            print(f"Output saved to: {path}")
    return 0

def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)
    try:
        cfg = load_config(args.config)
        settings = build_settings(cfg, args)
        if settings.verbose and not args.verbose:
            logging.getLogger().setLevel(logging.DEBUG)
        return run(settings, make_collector(settings))
    except ConfigError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        print("Use -h for help", file=sys.stderr)
        return 1
    except FileNotFoundError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 0

if __name__ == "__main__":
    sys.exit(main())
