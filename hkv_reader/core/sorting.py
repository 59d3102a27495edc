# hkv_reader/core/sorting.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Iterable

from .errors import ConfigError
from .model import JoinedRow
from .normalize import to_number

@dataclass(frozen=True)
class SortPolicy:
    mode: str
    field: Callable[[JoinedRow], str]
    numeric: bool = False
    descending: bool = False

    def key(self, row: JoinedRow):
        value = self.field(row)
        return to_number(value) if self.numeric else value

SORT_MODES: dict[str, SortPolicy] = {
    "id":       SortPolicy("id",       lambda r: r.device.id),
    "unit":     SortPolicy("unit",     lambda r: r.device.unit),
    "name":     SortPolicy("name",     lambda r: r.device.name),
    "factor":   SortPolicy("factor",   lambda r: r.device.factor,  numeric=True, descending=True),
    "class":    SortPolicy("class",    lambda r: r.device.device_class),
    "previous": SortPolicy("previous", lambda r: r.previous_text,  numeric=True, descending=True),
    "current":  SortPolicy("current",  lambda r: r.current_text,   numeric=True, descending=True),
    "date":     SortPolicy("date",     lambda r: r.sort_timestamp, numeric=True, descending=True),
}
SORT_MODES["curr"] = SORT_MODES["current"]

def resolve_sort_mode(mode: str) -> SortPolicy:
    key = str(mode or "").strip().lower()
    policy = SORT_MODES.get(key)
    if policy is None:
        valid = "|".join(k for k in SORT_MODES if k != "curr")
        raise ConfigError(f"Invalid sort mode: {mode!r} (expected {valid})")
    return policy

def sort_rows(rows: Iterable[JoinedRow], policy: SortPolicy) -> list[JoinedRow]:
    # sorted() is stable for reverse=True too: ties keep registry order
    return sorted(rows, key=policy.key, reverse=policy.descending)
