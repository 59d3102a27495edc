# hkv_reader/utils/store.py
from __future__ import annotations
from pathlib import Path
import json
import os
import tempfile

from ..core.normalize import TIMESTAMP_LEN, canonical_id

def _line_id(line: str) -> str | None:
    try:
        obj = json.loads(line[TIMESTAMP_LEN + 1:])
    except ValueError:
        return None
    if not isinstance(obj, dict) or "id" not in obj:
        return None
    return canonical_id(obj["id"])

def write_latest(path: Path, device_id: str, line: str) -> None:
    """
    Replace every earlier line of ``device_id`` with ``line`` (last value wins).
    The new file is written next to the old one and moved over it, so readers
    see either the old or the new content.
    """
    path = Path(path)
    cid = canonical_id(device_id)
    kept: list[str] = []
    if path.is_file():
        text = path.read_bytes().decode("utf-8", errors="replace")
        kept = [ln for ln in text.splitlines() if ln and _line_id(ln) != cid]
    kept.append(line.rstrip("\r\n"))

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=path.name + ".", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write("\n".join(kept) + "\n")
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise
