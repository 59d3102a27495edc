# hkv_reader/core/reconcile.py
from __future__ import annotations
from typing import Mapping, Sequence

from .model import DeviceRecord, JoinedRow, Reading, TableData

def join(registry: Sequence[DeviceRecord], readings: Mapping[str, Reading]) -> TableData:
    """
    One JoinedRow per registered device, in registry order.
    Readings for ids that are not registered are ignored.
    """
    rows = tuple(JoinedRow(device=dev, reading=readings.get(dev.id)) for dev in registry)
    with_values = sum(1 for r in rows if r.has_reading)
    return TableData(rows=rows, total_known=len(registry), with_values=with_values)
