# hkv_reader/core/pipeline.py
from __future__ import annotations
from pathlib import Path
import logging

from ..loaders import readings_loader, registry_loader
from .model import TableData
from .reconcile import join
from .render import render
from .reports import report_base, write_report
from .settings import AppSettings

_LOG = logging.getLogger(__name__)

def build_table(settings: AppSettings) -> TableData:
    """
    One render cycle's data: registry and readings are both fully loaded
    (last-write-wins resolved) before the join.
    """
    registry = registry_loader.load(settings.registry_path,
                                    header_labels=settings.header_labels,
                                    name_placeholder=settings.name_placeholder)
    readings = readings_loader.load(settings.data_file)
    table = join(registry, readings)
    _LOG.debug("table: %d known, %d with values", table.total_known, table.with_values)
    return table

def render_view(settings: AppSettings, collector_running: bool, start_hint: str = "hkv-reader -col") -> str:
    table = build_table(settings)
    return render(
        table,
        settings.sort_policy,
        collector_running=collector_running,
        loop_enabled=settings.loop,
        loop_interval=settings.loop_interval,
        layout=settings.layout,
        session_name=settings.collector.session_name,
        start_hint=start_hint,
    )

def export_view(settings: AppSettings, collector_running: bool,
                start_hint: str = "hkv-reader -col") -> list[Path]:
    """Rebuild the table from disk (new data may have arrived) and write the report."""
    table = build_table(settings)
    rendered = render(
        table,
        settings.sort_policy,
        collector_running=collector_running,
        loop_enabled=False,
        loop_interval=settings.loop_interval,
        layout=settings.layout,
        session_name=settings.collector.session_name,
        start_hint=start_hint,
    )
    return write_report(
        table,
        settings.sort_policy,
        rendered,
        report_base(settings.export_dir),
        fmt=settings.export_format,
        mat_variable=settings.mat_variable,
    )
