"""Merge per-level left, right and whole-cord tables into one tidy table.

SCT column names drift between versions, so each table is normalized
before merging:

  1. The level column is the first of LEVEL_CANDIDATES present, renamed to
     ``level``.
  2. The value column is the first column naming a volume, else a sum, else
     the last non-level column.  CSA comes from the whole-cord table: a
     ``csa`` column, else a ``mean ... area`` column.
  3. Left and right values are stacked long-form and pivoted to one row per
     level.  A side missing for a level stays missing here.
  4. CSA is joined on level; every level seen in any input gets a row.
  5. ``volume_mm3_total`` treats missing sides as 0.  ``asymmetry_index`` is
     (right - left) / total, left missing where total == 0.

Output columns are OUTPUT_COLUMNS, sorted by numeric level and rounded to
ROUND_DECIMALS.
"""

import os
from pathlib import Path

import numpy as np
import pandas as pd

from hemicord.errors import MissingLevelColumn, MissingValueColumn
from hemicord.utils import ROUND_DECIMALS

LEVEL_COLUMN = "level"
LEVEL_CANDIDATES = ["level", "VertLevel", "Label", "label"]

VOLUME_KEYWORDS = ("volume",)
SUM_KEYWORDS = ("sum", "nb_vox")

OUTPUT_COLUMNS = [
    "subject",
    "level",
    "CSA_mm2",
    "volume_mm3_left",
    "volume_mm3_right",
    "volume_mm3_total",
    "asymmetry_index",
]


# ---------------------------------------------------------------------------
# Column normalization
# ---------------------------------------------------------------------------
def normalize_level_column(df, table="table"):
    """Return a copy of df with its level column renamed to 'level'.

    Level values are coerced to integers; a value that is not a whole
    number is an error rather than a silently dropped row.
    """
    found = next((c for c in LEVEL_CANDIDATES if c in df.columns), None)
    if found is None:
        raise MissingLevelColumn(
            f"{table}: missing level column '{LEVEL_COLUMN}' "
            f"(also tried {', '.join(LEVEL_CANDIDATES[1:])}); "
            f"columns are {list(df.columns)}",
            {"table": table, "columns": list(df.columns)},
        )
    out = df.rename(columns={found: LEVEL_COLUMN})

    raw = out[LEVEL_COLUMN]
    levels = pd.to_numeric(raw.astype(str).str.strip(), errors="coerce")
    bad = levels.isna() | (levels % 1 != 0)
    if bad.any():
        raise ValueError(
            f"{table}: non-integer level values {sorted(set(raw[bad].astype(str)))}"
        )
    out[LEVEL_COLUMN] = levels.astype(np.int64)
    return out


def _first_matching(columns, predicate):
    return next((c for c in columns if predicate(c.lower())), None)


def pick_value_column(df, table="table"):
    """Pick the volume-like value column of a per-level table."""
    columns = [c for c in df.columns if c != LEVEL_COLUMN]
    if not columns:
        raise MissingValueColumn(
            f"{table}: missing value column (no volume, sum or other "
            f"non-level column); columns are {list(df.columns)}",
            {"table": table, "columns": list(df.columns)},
        )
    col = _first_matching(columns, lambda c: any(k in c for k in VOLUME_KEYWORDS))
    if col is None:
        col = _first_matching(columns, lambda c: any(k in c for k in SUM_KEYWORDS))
    if col is None:
        col = columns[-1]
    return col


def pick_csa_column(df, table="whole-cord table"):
    """Pick the cross-sectional-area column of the whole-cord table."""
    columns = [c for c in df.columns if c != LEVEL_COLUMN]
    col = _first_matching(columns, lambda c: "csa" in c)
    if col is None:
        col = _first_matching(columns,
                              lambda c: "area" in c and c.startswith("mean"))
    if col is None:
        raise MissingValueColumn(
            f"{table}: missing CSA column (no 'csa' or 'MEAN(area)'-like "
            f"column); columns are {list(df.columns)}",
            {"table": table, "columns": list(df.columns)},
        )
    return col


# ---------------------------------------------------------------------------
# Reshape + join
# ---------------------------------------------------------------------------
def _select(df, value_col, table):
    out = df[[LEVEL_COLUMN, value_col]].rename(columns={value_col: "value"})
    out["value"] = pd.to_numeric(out["value"], errors="coerce")
    dupes = out[LEVEL_COLUMN][out[LEVEL_COLUMN].duplicated()]
    if len(dupes):
        raise ValueError(f"{table}: duplicate levels {sorted(set(dupes))}")
    return out


def pivot_sides(left, right):
    """Stack normalized left/right tables and pivot to one row per level.

    Returns a frame with columns level, volume_mm3_left, volume_mm3_right.
    """
    L = _select(left, pick_value_column(left, "left table"), "left table")
    R = _select(right, pick_value_column(right, "right table"), "right table")
    L["side"] = "L"
    R["side"] = "R"
    long = pd.concat([L, R], ignore_index=True)

    wide = long.pivot(index=LEVEL_COLUMN, columns="side", values="value")
    wide = wide.reindex(columns=["L", "R"])
    wide.columns.name = None
    wide = wide.rename(columns={"L": "volume_mm3_left", "R": "volume_mm3_right"})
    return wide.reset_index()


def join_csa(wide, cord):
    """Join whole-cord CSA onto the pivoted table by level."""
    csa = _select(cord, pick_csa_column(cord), "whole-cord table")
    csa = csa.rename(columns={"value": "CSA_mm2"})
    return wide.merge(csa, on=LEVEL_COLUMN, how="outer")


def add_derived(df):
    """Add volume_mm3_total and asymmetry_index columns."""
    out = df.copy()
    left = out["volume_mm3_left"]
    right = out["volume_mm3_right"]
    out["volume_mm3_total"] = left.fillna(0) + right.fillna(0)
    denom = out["volume_mm3_total"].where(out["volume_mm3_total"] != 0)
    out["asymmetry_index"] = (right - left) / denom
    return out


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------
def merge_metrics(subject, left, right, cord, decimals=ROUND_DECIMALS):
    """Merge the three raw per-level tables into the final metrics table."""
    left = normalize_level_column(left, "left table")
    right = normalize_level_column(right, "right table")
    cord = normalize_level_column(cord, "whole-cord table")

    merged = add_derived(join_csa(pivot_sides(left, right), cord))

    merged.insert(0, "subject", subject)
    merged = merged.sort_values(LEVEL_COLUMN, kind="mergesort")
    merged = merged.reset_index(drop=True)[OUTPUT_COLUMNS]

    numeric = merged.select_dtypes(include="number").columns
    merged[numeric] = merged[numeric].round(decimals)
    return merged


def write_metrics(df, path):
    """Write the metrics table; the file appears only once fully written."""
    path = Path(path)
    tmp = path.with_name(path.name + ".partial")
    df.to_csv(tmp, index=False)
    os.replace(tmp, path)
    print(f"Wrote clean summary table -> {path}")
    return path
