# hkv_reader/loaders/readings_loader.py
from __future__ import annotations
from pathlib import Path
import json
import logging

from ..core.model import Reading
from ..core.normalize import TIMESTAMP_LEN, canonical_id, is_timestamp, to_counter

_LOG = logging.getLogger(__name__)

def parse_line(line: str) -> Reading | None:
    """
    '<YYYY-MM-DD HH:MM:SS> <json>' -> Reading.
    Returns None for anything that is not a complete observation (partial
    append, bad timestamp, broken JSON, missing id).
    """
    line = line.rstrip("\r\n")
    if not line:
        return None
    ts = line[:TIMESTAMP_LEN]
    if not is_timestamp(ts):
        _LOG.debug("readings: bad timestamp prefix: %r", line[:40])
        return None
    try:
        obj = json.loads(line[TIMESTAMP_LEN + 1:])
    except ValueError:
        _LOG.debug("readings: undecodable json at %s", ts)
        return None
    if not isinstance(obj, dict):
        return None

    raw_id = obj.get("id")
    if not isinstance(raw_id, (str, int)) or isinstance(raw_id, bool):
        return None
    cid = canonical_id(raw_id)
    if not cid:
        return None

    return Reading(
        id=cid,
        previous=to_counter(obj.get("prev_hca", 0)),
        current=to_counter(obj.get("current_hca", 0)),
        observed_at=ts,
    )

def reduce_lines(lines) -> dict[str, Reading]:
    """Last line in file order wins for every canonical id."""
    latest: dict[str, Reading] = {}
    for line in lines:
        reading = parse_line(line)
        if reading is not None:
            latest[reading.id] = reading
    return latest

def load(path: Path) -> dict[str, Reading]:
    """Missing or empty log is valid and yields an empty mapping."""
    path = Path(path)
    # read in one go; the collector may replace the file while we look at it
    try:
        raw = path.read_bytes()
    except (FileNotFoundError, IsADirectoryError):
        _LOG.debug("readings: %s not present", path)
        return {}
    text = raw.decode("utf-8", errors="replace")
    latest = reduce_lines(text.splitlines())
    _LOG.debug("readings: %d device(s) with values in %s", len(latest), path)
    return latest
