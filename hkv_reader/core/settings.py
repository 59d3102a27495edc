# hkv_reader/core/settings.py
from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Mapping
import os
import yaml

from .errors import ConfigError
from .render import TableLayout
from .sorting import SortPolicy, resolve_sort_mode

DEFAULT_CONFIG = Path(__file__).resolve().parent.parent / "config.yaml"
ExportFormat = Literal["txt", "csv", "mat", "all"]
_EXPORT_FORMATS = ("txt", "csv", "mat", "all")

def _deep_merge(base: dict, override: Mapping) -> dict:
    out = dict(base)
    for k, v in (override or {}).items():
        if isinstance(v, Mapping) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out

def load_config(cfg_path: Path | None = None) -> dict:
    """Packaged defaults, with an optional user file merged on top."""
    with DEFAULT_CONFIG.open("r", encoding="utf-8") as f:
        cfg = yaml.safe_load(f) or {}
    if cfg_path is not None:
        cfg_path = Path(cfg_path)
        if not cfg_path.is_file():
            raise ConfigError(f"Config file not found: {cfg_path}")
        with cfg_path.open("r", encoding="utf-8") as f:
            user = yaml.safe_load(f) or {}
        if not isinstance(user, Mapping):
            raise ConfigError(f"Config file must contain a mapping: {cfg_path}")
        cfg = _deep_merge(cfg, user)
    return cfg

@dataclass(frozen=True)
class CollectorSettings:
    session_name: str = "hkv-collector"
    command: str = "wmbusmeters --format=json /dev/ttyUSB0:cul:t1 MyHCA bfw240radio ANYID NOKEY"
    attach_when_alone: bool = True
    start_delay: float = 2.0
    stop_delay: float = 1.0

@dataclass(frozen=True)
class AppSettings:
    registry_path: Path
    data_file: Path
    sort_mode: str = "id"
    loop: bool = False
    loop_interval: int = 15
    collect: bool = False
    kill_collector: bool = False
    export: bool = False
    clear_data: bool = False
    clear_screen: bool = True
    export_dir: Path = Path(".")
    export_format: ExportFormat = "txt"
    mat_variable: str = "hkv_status"
    header_labels: tuple[str, ...] = ("ID",)
    name_placeholder: str = "unknown"
    layout: TableLayout = field(default_factory=TableLayout)
    collector: CollectorSettings = field(default_factory=CollectorSettings)
    verbose: bool = False

    @property
    def sort_policy(self) -> SortPolicy:
        return resolve_sort_mode(self.sort_mode)

    @property
    def attach_only(self) -> bool:
        """-col as the only action: start if needed, then attach to the session."""
        return (self.collect and self.collector.attach_when_alone
                and not (self.loop or self.export or self.clear_data))

def _layout_from_config(tbl: Mapping) -> TableLayout:
    widths = tbl.get("widths", {}) or {}
    base = TableLayout()
    try:
        return TableLayout(
            id=int(widths.get("id", base.id)),
            unit=int(widths.get("unit", base.unit)),
            name=int(widths.get("name", base.name)),
            factor=int(widths.get("factor", base.factor)),
            class_=int(widths.get("class", base.class_)),
            previous=int(widths.get("previous", base.previous)),
            current=int(widths.get("current", base.current)),
            date=int(widths.get("date", base.date)),
            rule_width=int(tbl.get("rule_width", base.rule_width)),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid table width: {e}") from e

def _interval(value: Any) -> int:
    try:
        sec = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Loop interval must be a whole number of seconds, got {value!r}") from None
    if sec < 1:
        raise ConfigError(f"Loop interval must be at least 1 second, got {sec}")
    return sec

def build_settings(cfg: Mapping, args: Any = None, env: Mapping[str, str] | None = None) -> AppSettings:
    """
    Merge config.yaml values, command line arguments and environment into one
    immutable AppSettings. Validates sort mode, loop interval and export format.
    """
    env = os.environ if env is None else env
    reg = cfg.get("registry", {}) or {}
    data = cfg.get("data", {}) or {}
    view = cfg.get("view", {}) or {}
    col = cfg.get("collector", {}) or {}
    exp = cfg.get("export", {}) or {}
    log = cfg.get("logging", {}) or {}

    def arg(name: str, default=None):
        value = getattr(args, name, None) if args is not None else None
        return default if value is None else value

    data_dir = Path(env.get("DATA_DIR") or data.get("dir", "/var/tmp"))
    loop_arg = arg("loop")
    loop = loop_arg is not None
    interval = _interval(view.get("loop_interval", 15))
    if isinstance(loop_arg, int) and not isinstance(loop_arg, bool):
        interval = _interval(loop_arg)

    sort_mode = str(arg("sort", view.get("sort", "id"))).strip().lower()
    resolve_sort_mode(sort_mode)

    export_format = str(exp.get("format", "txt")).strip().lower()
    if export_format not in _EXPORT_FORMATS:
        raise ConfigError(f"Invalid export format: {export_format!r} (expected {'|'.join(_EXPORT_FORMATS)})")

    collector = CollectorSettings(
        session_name=str(col.get("session_name", "hkv-collector")),
        command=str(col.get("command", CollectorSettings.command)),
        attach_when_alone=bool(col.get("attach_when_alone", True)),
        start_delay=float(col.get("start_delay", 2.0)),
        stop_delay=float(col.get("stop_delay", 1.0)),
    )

    return AppSettings(
        registry_path=Path(arg("id_file", reg.get("path", "HKV_ID_list.lst"))),
        data_file=data_dir / str(data.get("file", "hkvs_current.jsonl")),
        sort_mode=sort_mode,
        loop=loop,
        loop_interval=interval,
        # loop mode always needs a running collector
        collect=bool(arg("collect", False)) or loop,
        kill_collector=bool(arg("kill_collector", False)),
        export=bool(arg("export", False)),
        clear_data=bool(arg("clear", False)),
        clear_screen=bool(view.get("clear_screen", True)),
        export_dir=Path(str(exp.get("dir", "."))),
        export_format=export_format,
        mat_variable=str(exp.get("mat_variable", "hkv_status")),
        header_labels=tuple(str(h) for h in (reg.get("header_labels") or ["ID"])),
        name_placeholder=str(reg.get("name_placeholder") or "unknown"),
        layout=_layout_from_config(cfg.get("table", {}) or {}),
        collector=collector,
        verbose=bool(arg("verbose", False)) or bool(log.get("verbose", False)),
    )
