"""Per-level shape statistics via the Spinal Cord Toolbox.

Wraps ``sct_process_segmentation -perlevel 1`` and runs it once per mask
(left hemicord, right hemicord, whole cord).  Calls are synchronous; any
non-zero exit or missing output CSV is fatal for the run.

Levels are addressed either by a disc label file (``-discfile``, newer SCT)
or by a vertebral-body label map (``-vertfile``).  The disc mode is
preferred when the installed SCT supports it.
"""

import shutil
import subprocess
from pathlib import Path

import pandas as pd

from hemicord.errors import ExternalToolFailure, InputNotFound

PROCESS_SEG = "sct_process_segmentation"


# ---------------------------------------------------------------------------
# Command execution
# ---------------------------------------------------------------------------
def run_command(cmd):
    """Run ``cmd`` and return its CompletedProcess; raise on failure."""
    cmd = [str(c) for c in cmd]
    print(f"  $ {' '.join(cmd)}")
    try:
        result = subprocess.run(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )
    except FileNotFoundError:
        raise ExternalToolFailure(f"Command not found: {cmd[0]}",
                                  {"cmd": cmd}) from None
    if result.returncode != 0:
        output = "\n".join(p for p in (result.stdout, result.stderr) if p).strip()
        raise ExternalToolFailure(
            f"{cmd[0]} exited with code {result.returncode}",
            {"cmd": cmd, "returncode": result.returncode, "output": output},
        )
    return result


def check_tools(names):
    """Raise ExternalToolFailure if any executable in ``names`` is not on PATH."""
    missing = [n for n in names if shutil.which(n) is None]
    if missing:
        raise ExternalToolFailure(
            f"Required tool(s) not found in PATH: {', '.join(missing)}",
            {"missing": missing},
        )


def supports_discfile():
    """True if the installed sct_process_segmentation accepts -discfile."""
    try:
        result = subprocess.run(
            [PROCESS_SEG, "-h"],
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
        )
    except FileNotFoundError:
        raise ExternalToolFailure(f"Command not found: {PROCESS_SEG}",
                                  {"cmd": [PROCESS_SEG, "-h"]}) from None
    return "-discfile" in (result.stdout or "")


# ---------------------------------------------------------------------------
# Argument building
# ---------------------------------------------------------------------------
def format_levels(levels):
    """(low, high) -> 'low:high'; None -> None."""
    if levels is None:
        return None
    low, high = levels
    return f"{low}:{high}"


def level_reference_args(disc_labels=None, level_map=None, discfile_ok=None):
    """Build the level-addressing arguments.

    Prefers ``-discfile <disc_labels>``; falls back to ``-vertfile
    <level_map>`` when no disc file is given or SCT lacks -discfile.
    ``discfile_ok`` is probed with supports_discfile() when left as None.
    """
    for path in (disc_labels, level_map):
        if path is not None and not Path(path).exists():
            raise InputNotFound(f"Level reference not found: {path}",
                                {"path": str(path)})

    if disc_labels is not None:
        if discfile_ok is None:
            discfile_ok = supports_discfile()
        if discfile_ok:
            return ["-discfile", str(disc_labels)]
        if level_map is None:
            raise ExternalToolFailure(
                f"{PROCESS_SEG} does not support -discfile and no "
                "vertebral level map was given",
                {"disc_labels": str(disc_labels)},
            )
        print("NOTE: -discfile not available in your SCT; "
              "falling back to -vertfile (deprecated).")

    if level_map is None:
        raise ValueError("Per-level metrics need a disc label file or a level map")
    return ["-vertfile", str(level_map)]


# ---------------------------------------------------------------------------
# Per-level statistics
# ---------------------------------------------------------------------------
def process_segmentation(mask_path, out_csv, ref_args, levels=None):
    """Run per-level statistics on one mask and load the resulting CSV."""
    cmd = [PROCESS_SEG, "-i", mask_path, "-perlevel", "1", *ref_args]
    vert = format_levels(levels)
    if vert is not None:
        cmd += ["-vert", vert]
    cmd += ["-o", out_csv]

    run_command(cmd)

    out_csv = Path(out_csv)
    if not out_csv.exists():
        raise ExternalToolFailure(
            f"{PROCESS_SEG} reported success but wrote no table: {out_csv}",
            {"cmd": [str(c) for c in cmd]},
        )
    df = pd.read_csv(out_csv)
    print(f"  -> {out_csv.name}: {len(df)} rows, columns {list(df.columns)}")
    return df


def aggregate_per_level(mask_paths, csv_paths, ref_args, levels=None):
    """Run statistics for the left, right and whole-cord masks, in that order.

    ``mask_paths`` and ``csv_paths`` are dicts keyed by "left", "right"
    and "cord".  Returns (left_df, right_df, cord_df).
    """
    tables = []
    for key, label in (("left", "LEFT"), ("right", "RIGHT"), ("cord", "whole cord")):
        print(f"==> Per-level metrics ({label})")
        tables.append(process_segmentation(mask_paths[key], csv_paths[key],
                                           ref_args, levels))
    return tuple(tables)
