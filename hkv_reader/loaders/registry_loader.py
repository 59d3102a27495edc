# hkv_reader/loaders/registry_loader.py
from __future__ import annotations
from pathlib import Path
from typing import Iterable
import logging
import shlex

from ..core.model import DeviceRecord, PLACEHOLDER
from ..core.normalize import canonical_id, is_valid_registry_id

_LOG = logging.getLogger(__name__)

MIN_FIELDS = 5                      # id unit name factor class [comment...]
DEFAULT_HEADER_LABELS: tuple[str, ...] = ("ID",)
DEFAULT_NAME_PLACEHOLDER = "unknown"

def _split_fields(line: str) -> list[str]:
    """
    Whitespace split that keeps double-quoted names ("Kitchen Meter") together.
    Apostrophes and backslashes are plain text (Kid's room).
    """
    lex = shlex.shlex(line, posix=True)
    lex.whitespace_split = True
    lex.quotes = '"'
    lex.escape = ""
    lex.commenters = ""
    try:
        return list(lex)
    except ValueError:
        # unbalanced quote
        return line.split()

def _is_skipped(line: str, header_labels: Iterable[str]) -> bool:
    stripped = line.strip()
    if not stripped or stripped.startswith("#"):
        return True
    first = stripped.split(None, 1)[0]
    return first in header_labels

def parse_line(line: str,
               header_labels: Iterable[str] = DEFAULT_HEADER_LABELS,
               name_placeholder: str = DEFAULT_NAME_PLACEHOLDER) -> DeviceRecord | None:
    """Parse one registry line; None for comments, headers and malformed lines."""
    if _is_skipped(line, header_labels):
        return None

    fields = _split_fields(line)
    if len(fields) < MIN_FIELDS:
        _LOG.debug("registry: too few fields (%d): %r", len(fields), line)
        return None

    raw_id, unit, name, factor, dev_class = (f.strip() for f in fields[:MIN_FIELDS])
    cid = canonical_id(raw_id)
    if not is_valid_registry_id(cid):
        _LOG.debug("registry: invalid id %r", raw_id)
        return None

    return DeviceRecord(
        id=cid,
        raw_id=raw_id,
        unit=unit,
        name=name or name_placeholder,
        factor=factor or PLACEHOLDER,
        device_class=dev_class or PLACEHOLDER,
    )

def load(path: Path,
         header_labels: Iterable[str] = DEFAULT_HEADER_LABELS,
         name_placeholder: str = DEFAULT_NAME_PLACEHOLDER) -> list[DeviceRecord]:
    """
    Read the operator-maintained device list.
    Raises FileNotFoundError when the file is missing; an empty file yields [].
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"ID list not found: {path}")

    labels = tuple(header_labels)
    records: list[DeviceRecord] = []
    with path.open("r", encoding="utf-8", errors="replace") as f:
        for line in f:
            rec = parse_line(line, labels, name_placeholder)
            if rec is not None:
                records.append(rec)
    _LOG.debug("registry: %d device(s) from %s", len(records), path)
    return records
