# hkv_reader/collect.py
"""
Filter run inside the collector session:

    wmbusmeters --format=json ... | python -m hkv_reader.collect --data-file F --ids 00445566,...

Keeps telegrams of the listed devices and stores the newest one per device.
"""
from __future__ import annotations
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, TextIO
import argparse
import json
import sys

from .core.normalize import canonical_id
from .utils.store import write_latest

def _now() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")

def accept(line: str, wanted: set[str]) -> str | None:
    """Canonical id of a wmbusmeters JSON line if it belongs to a wanted device."""
    if not line.lstrip().startswith("{"):
        return None
    try:
        obj = json.loads(line)
    except ValueError:
        return None
    if not isinstance(obj, dict) or not isinstance(obj.get("id"), (str, int)):
        return None
    cid = canonical_id(obj["id"])
    return cid if cid in wanted else None

def run(stream: Iterable[str], data_file: Path, ids: Iterable[str],
        out: TextIO | None = None, clock: Callable[[], str] = _now) -> int:
    wanted = {canonical_id(i) for i in ids if canonical_id(i)}
    stored = 0
    for line in stream:
        line = line.strip()
        cid = accept(line, wanted)
        if cid is None:
            continue
        full_line = f"{clock()} {line}"
        write_latest(data_file, cid, full_line)
        stored += 1
        if out is not None:
            print(full_line, file=out)
            print("", file=out, flush=True)
    return stored

def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(prog="hkv_reader.collect",
                                 description="Store the newest wmbusmeters reading per HKV id.")
    ap.add_argument("--data-file", required=True, type=Path)
    ap.add_argument("--ids", required=True, help="comma separated device ids")
    args = ap.parse_args(argv)

    ids = [i for i in args.ids.split(",") if i.strip()]
    print("wmbusmeters collector running...")
    print("Stop: Ctrl+C | Detach: Ctrl+A D")
    print(f"\nHKV IDs: {', '.join(ids)}\n", flush=True)
    try:
        run(sys.stdin, args.data_file, ids, out=sys.stdout)
    except KeyboardInterrupt:
        pass
    return 0

if __name__ == "__main__":
    sys.exit(main())
