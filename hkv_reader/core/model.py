# hkv_reader/core/model.py
from __future__ import annotations
from dataclasses import dataclass

from .normalize import sort_timestamp

PLACEHOLDER = "---"
EMPTY_SORT_TIMESTAMP = "00000000000000"

@dataclass(frozen=True)
class DeviceRecord:
    id: str                   # canonical id (leading zeros stripped), join key
    raw_id: str               # id token as written in the registry
    unit: str
    name: str                 # "unknown" when blank
    factor: str               # "---" when blank
    device_class: str         # "---" when blank

@dataclass(frozen=True)
class Reading:
    id: str                   # canonical id
    previous: int             # prev_hca
    current: int              # current_hca
    observed_at: str          # "YYYY-MM-DD HH:MM:SS"

@dataclass(frozen=True)
class JoinedRow:
    device: DeviceRecord
    reading: Reading | None = None

    @property
    def has_reading(self) -> bool:
        return self.reading is not None

    @property
    def previous_text(self) -> str:
        return PLACEHOLDER if self.reading is None else str(self.reading.previous)

    @property
    def current_text(self) -> str:
        return PLACEHOLDER if self.reading is None else str(self.reading.current)

    @property
    def observed_text(self) -> str:
        return PLACEHOLDER if self.reading is None else self.reading.observed_at

    @property
    def sort_timestamp(self) -> str:
        if self.reading is None:
            return EMPTY_SORT_TIMESTAMP
        return sort_timestamp(self.reading.observed_at)

@dataclass(frozen=True)
class TableData:
    rows: tuple[JoinedRow, ...]
    total_known: int
    with_values: int
