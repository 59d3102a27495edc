# hkv_reader/core/normalize.py
from __future__ import annotations
import math
import re

TIMESTAMP_LEN = 19
_TIMESTAMP_RE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2} [0-9]{2}:[0-9]{2}:[0-9]{2}")
_REGISTRY_ID_RE = re.compile(r"[0-9]{6,8}")
_WS_RE = re.compile(r"\s+")
_DIGITS_RE = re.compile(r"[0-9]+")

def canonical_id(raw) -> str:
    """Strip whitespace and leading zeros: '00445566' -> '445566'."""
    return _WS_RE.sub("", str(raw)).lstrip("0")

def is_valid_registry_id(cid: str) -> bool:
    return bool(_REGISTRY_ID_RE.fullmatch(cid))

def padded_id(cid: str, width: int = 8) -> str:
    """Form used by wmbusmeters telegrams and the collector filter."""
    return cid.zfill(width)

def is_timestamp(text: str) -> bool:
    return bool(_TIMESTAMP_RE.fullmatch(text))

def sort_timestamp(ts: str) -> str:
    if not is_timestamp(ts):
        return "0" * 14
    return ts[0:4] + ts[5:7] + ts[8:10] + ts[11:13] + ts[14:16] + ts[17:19]

def to_counter(value) -> int:
    """Counter coercion for current_hca / prev_hca; anything unusable counts as 0."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else 0
    if isinstance(value, str) and _DIGITS_RE.fullmatch(value.strip()):
        return int(value.strip())
    return 0

def to_number(text: str) -> float:
    # same as `sort -n`: non-numeric fields sort as zero
    try:
        value = float(text)
    except (TypeError, ValueError):
        return 0.0
    return value if math.isfinite(value) else 0.0
