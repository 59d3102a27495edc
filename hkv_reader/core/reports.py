# hkv_reader/core/reports.py
from __future__ import annotations
from datetime import datetime
from pathlib import Path
from typing import Literal
import numpy as np
import pandas as pd
from scipy.io import savemat

from .model import TableData
from .sorting import SortPolicy, sort_rows

ReportFormat = Literal["txt", "csv", "mat", "all"]

COLUMNS = ["id", "unit", "name", "factor", "class", "previous", "current", "last_update"]

def report_base(out_dir: Path, now: datetime | None = None) -> Path:
    """<dir>/hkv_status_YYYY-MM-DD_HHMM (no extension)."""
    now = now or datetime.now()
    return Path(out_dir) / f"hkv_status_{now.strftime('%Y-%m-%d_%H%M')}"

def build_dataframe(table: TableData, policy: SortPolicy) -> pd.DataFrame:
    """Sorted rows of the current view; devices without reading have NA counters."""
    rows = []
    for r in sort_rows(table.rows, policy):
        d = r.device
        rows.append({
            "id": d.id,
            "unit": d.unit,
            "name": d.name,
            "factor": d.factor,
            "class": d.device_class,
            "previous": r.reading.previous if r.reading else pd.NA,
            "current": r.reading.current if r.reading else pd.NA,
            "last_update": r.reading.observed_at if r.reading else "",
        })
    df = pd.DataFrame(rows, columns=COLUMNS)
    df["previous"] = df["previous"].astype("Int64")
    df["current"] = df["current"].astype("Int64")
    return df

def _write_txt(text: str, out_txt: Path, title: str) -> Path:
    out_txt.parent.mkdir(parents=True, exist_ok=True)
    out_txt.write_text(text, encoding="utf-8")
    print(f"[OK] wrote report: {title} → {out_txt}")
    return out_txt

def _write_csv(df_out: pd.DataFrame, out_csv: Path, title: str) -> Path:
    out_csv.parent.mkdir(parents=True, exist_ok=True)
    df_out.to_csv(out_csv, index=False, encoding="utf-8")
    print(f"[OK] wrote report: {title} → {out_csv}")
    return out_csv

def _to_mat_cellstr(seq: list[str]) -> np.ndarray:
    """Make a MATLAB column cell array from a list of strings."""
    arr = np.empty((len(seq), 1), dtype=object)
    arr[:, 0] = [("" if s is None else str(s)) for s in seq]
    return arr

def _write_mat(df_out: pd.DataFrame, table: TableData, out_mat: Path, varname: str, title: str) -> Path:
    """
    MATLAB struct with one field per column. Strings become Nx1 cell arrays,
    counters Nx1 double with NaN for devices without a reading.
    """
    out_mat.parent.mkdir(parents=True, exist_ok=True)

    def numcol(name: str) -> np.ndarray:
        return df_out[name].astype("Float64").to_numpy(dtype=float, na_value=np.nan).reshape(-1, 1)

    mat_struct = {name: _to_mat_cellstr(df_out[name].astype(str).tolist())
                  for name in ("id", "unit", "name", "factor", "class", "last_update")}
    mat_struct["previous"] = numcol("previous")
    mat_struct["current"] = numcol("current")
    mat_struct["total_known"] = float(table.total_known)
    mat_struct["with_values"] = float(table.with_values)

    savemat(out_mat, {varname: mat_struct})
    print(f"[OK] wrote report: {title} → {out_mat}")
    return out_mat

def write_report(table: TableData,
                 policy: SortPolicy,
                 rendered: str,
                 out_base: Path,
                 fmt: ReportFormat = "txt",
                 mat_variable: str = "hkv_status",
                 title: str = "HKV status") -> list[Path]:
    """
    Write the current view in the requested format(s).
    - out_base is a *base path without extension* (see report_base)
    - fmt: "txt" (the rendered table) | "csv" | "mat" | "all"
    """
    written: list[Path] = []
    if fmt in ("txt", "all"):
        written.append(_write_txt(rendered, out_base.with_suffix(".txt"), title))
    if fmt in ("csv", "mat", "all"):
        df_out = build_dataframe(table, policy)
        if fmt in ("csv", "all"):
            written.append(_write_csv(df_out, out_base.with_suffix(".csv"), title))
        if fmt in ("mat", "all"):
            written.append(_write_mat(df_out, table, out_base.with_suffix(".mat"), mat_variable, title))
    return written
