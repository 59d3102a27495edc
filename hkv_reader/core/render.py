# hkv_reader/core/render.py
from __future__ import annotations
from dataclasses import dataclass

from .model import JoinedRow, TableData
from .sorting import SortPolicy, resolve_sort_mode, sort_rows

HEADER = ("ID", "Unit", "Name", "Factor", "Class", "previous", "current", "last update")

@dataclass(frozen=True)
class TableLayout:
    id: int = 8
    unit: int = 4
    name: int = 30
    factor: int = 6
    class_: int = 5
    previous: int = 8
    current: int = 7
    date: int = 19
    rule_width: int = 120
    rule_char: str = "─"

    @property
    def rule(self) -> str:
        return self.rule_char * self.rule_width

def _format_row(layout: TableLayout, cells: tuple[str, ...]) -> str:
    cid, unit, name, factor, dev_class, prev, curr, date = cells
    return (
        f"{cid:>{layout.id}} | {unit:<{layout.unit}} | {name[:layout.name]:<{layout.name}} | "
        f"{factor:>{layout.factor}} | {dev_class:<{layout.class_}} | "
        f"{prev:>{layout.previous}} | {curr:>{layout.current}} | {date:<{layout.date}}"
    )

def row_cells(row: JoinedRow) -> tuple[str, ...]:
    d = row.device
    return (d.id, d.unit, d.name, d.factor, d.device_class,
            row.previous_text, row.current_text, row.observed_text)

def status_line(collector_running: bool, loop_enabled: bool, loop_interval: int,
                session_name: str = "hkv-collector", start_hint: str = "hkv-reader -col") -> str:
    if not collector_running:
        return f"Collector status: NOT running   → Start: {start_hint}"
    line = f"Collector status: running   (live log: screen -r {session_name})"
    if loop_enabled:
        line += f" | Refresh every {loop_interval} seconds"
    return line

def render_table(table: TableData, policy: SortPolicy, layout: TableLayout | None = None) -> list[str]:
    """Header, rule, sorted rows, rule and the two summary lines."""
    layout = layout or TableLayout()
    lines = [_format_row(layout, HEADER), layout.rule]
    lines.extend(_format_row(layout, row_cells(r)) for r in sort_rows(table.rows, policy))
    lines.append(layout.rule)
    lines.append(f"Total known HKVs     : {table.total_known}")
    lines.append(f"HKVs with values     : {table.with_values} / {table.total_known}")
    return lines

def render(table: TableData,
           sort_mode: str | SortPolicy,
           collector_running: bool,
           loop_enabled: bool = False,
           loop_interval: int = 15,
           layout: TableLayout | None = None,
           session_name: str = "hkv-collector",
           start_hint: str = "hkv-reader -col") -> str:
    """
    Full screen text: status line, blank line, table.
    Raises ConfigError for an unknown sort mode before anything is formatted.
    """
    policy = sort_mode if isinstance(sort_mode, SortPolicy) else resolve_sort_mode(sort_mode)
    lines = [status_line(collector_running, loop_enabled, loop_interval, session_name, start_hint), ""]
    lines.extend(render_table(table, policy, layout))
    return "\n".join(lines) + "\n"
