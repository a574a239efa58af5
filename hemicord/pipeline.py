"""Per-level left/right hemicord volumes and asymmetry for one subject.

Runs the hemicord stages in sequence on an RPI cord segmentation:
  1. Coverage     classify the mask as Sagittal or Axial
  2. Hemicords    atlas split (Sagittal) or midline split (Axial)
  3. Validation   subset / partition checks on the hemicord masks
  4. Metrics      sct_process_segmentation per level for left, right, cord
  5. Merge        one tidy table with CSA, volumes and asymmetry index

Produces, in --out-dir:
  - <id>_hemi_left.nii.gz, <id>_hemi_right.nii.gz
  - <id>_left_hemivol_perlevel.csv, <id>_right_hemivol_perlevel.csv,
    <id>_csa_perlevel.csv
  - <id>_metrics_perlevel.csv

Usage:
    python -m hemicord.pipeline --seg sub01_sc.nii.gz \\
        --disc-labels sub01_sc_labeled_discs.nii.gz \\
        --level-map sub01_sc_labeled.nii.gz --atlas-dir label/atlas
"""

import argparse
import re
import sys
from pathlib import Path

import pandas as pd

from hemicord.atlas import ATLAS_PREFIX, INFO_LABEL_NAME, load_info_label
from hemicord.coverage import classify, count_covered_slices
from hemicord.errors import HemicordError, InputNotFound
from hemicord.hemispheres import (
    SideResources,
    Strategy,
    build_hemicords,
    strategy_for_mode,
)
from hemicord.merge import merge_metrics, write_metrics
from hemicord.midline import MIDLINE_METHODS
from hemicord.profiling import step
from hemicord.sct import aggregate_per_level, check_tools, level_reference_args
from hemicord.utils import (
    DEFAULT_LEVELS,
    MIN_SLICES,
    REQUIRED_TOOLS,
    load_mask,
    output_paths,
    save_mask,
)
from hemicord.validation import run_mask_checks


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------
def parse_levels(text):
    """'low:high' -> (low, high); 'n' -> (n, n); '' -> None (all levels)."""
    text = (text or "").strip()
    if not text:
        return None
    parts = text.split(":")
    if len(parts) == 1:
        parts = parts * 2
    if len(parts) != 2:
        raise ValueError(f"Level range must look like 'low:high', got '{text}'")
    low, high = (int(p) for p in parts)
    if low > high:
        raise ValueError(f"Level range low > high: '{text}'")
    return low, high


def sanitize_subject_id(subject):
    """Replace each run of characters outside [A-Za-z0-9._-] with '_'."""
    return re.sub(r"[^A-Za-z0-9._-]+", "_", subject)


def _subject_from_path(path):
    name = Path(path).name
    for suffix in (".nii.gz", ".nii"):
        if name.endswith(suffix):
            return name[: -len(suffix)]
    return Path(path).stem


def parse_args(argv=None):
    """Parse CLI arguments for the hemicord pipeline."""
    parser = argparse.ArgumentParser(
        description="Per-level left/right hemicord volumes and asymmetry."
    )
    parser.add_argument("--seg", required=True,
                        help="Binary cord segmentation (NIfTI, RPI)")
    parser.add_argument("--subject", help="Subject ID (default: from --seg name)")
    parser.add_argument("--out-dir", help="Output directory (default: ./<id>)")

    ref = parser.add_argument_group("level reference (at least one)")
    ref.add_argument("--disc-labels", help="Disc label file (-discfile)")
    ref.add_argument("--level-map", help="Vertebral level map (-vertfile)")
    parser.add_argument(
        "--levels", type=parse_levels, default=DEFAULT_LEVELS,
        help=f"Inclusive level range low:high, '' for all (default: {DEFAULT_LEVELS})",
    )

    parser.add_argument(
        "--strategy", choices=["auto"] + [s.value for s in Strategy],
        default="auto",
        help="Hemicord strategy; auto picks from coverage (default: auto)",
    )
    parser.add_argument("--min-slices", type=int, default=MIN_SLICES,
                        help=f"Slices needed for Sagittal mode (default: {MIN_SLICES})")
    parser.add_argument("--midline", choices=sorted(MIDLINE_METHODS),
                        default="slice",
                        help="Midline split configuration (default: slice)")
    parser.add_argument("--atlas-dir",
                        help="Directory with warped atlas tracts and info_label.txt")
    parser.add_argument("--atlas-catalog",
                        help=f"Label catalog (default: <atlas-dir>/{INFO_LABEL_NAME})")
    parser.add_argument("--atlas-prefix", default=ATLAS_PREFIX,
                        help=f"Atlas tract filename prefix (default: {ATLAS_PREFIX})")
    parser.add_argument("--qc-figure", action="store_true",
                        help="Also save a PNG overlay of the hemicord masks")

    args = parser.parse_args(argv)

    if args.disc_labels is None and args.level_map is None:
        parser.error("one of --disc-labels or --level-map is required")
    if args.min_slices < 0:
        parser.error("--min-slices must be >= 0")

    if args.subject is None:
        args.subject = _subject_from_path(args.seg)
    args.safe_id = sanitize_subject_id(args.subject)
    if args.out_dir is None:
        args.out_dir = str(Path.cwd() / args.safe_id)

    return args


# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------
def _side_resources(strategy, args):
    resources = SideResources(atlas_prefix=args.atlas_prefix,
                              midline_method=args.midline)
    if strategy == Strategy.ATLAS:
        if args.atlas_dir is None:
            raise ValueError("--atlas-dir is required for the atlas strategy")
        catalog_path = args.atlas_catalog or Path(args.atlas_dir) / INFO_LABEL_NAME
        resources.catalog = load_info_label(catalog_path)
        resources.atlas_dir = args.atlas_dir
    return resources


def _check_inputs(args, paths):
    """Fail fast on missing inputs or tools; return the level-reference args.

    Also removes a metrics table left by an earlier run, so a failed rerun
    cannot be mistaken for a fresh result.
    """
    for path in (args.seg, args.disc_labels, args.level_map):
        if path is not None and not Path(path).exists():
            raise InputNotFound(f"Input not found: {path}", {"path": str(path)})
    check_tools(REQUIRED_TOOLS)
    ref_args = level_reference_args(args.disc_labels, args.level_map)

    stale = paths["metrics_csv"]
    if stale.exists():
        print(f"Removing previous table {stale}")
        stale.unlink()
    return ref_args


def _save_qc_figure(left, right, cord, subject, path):
    from hemicord.figures import plot_hemicords

    try:
        plot_hemicords(left, right, cord, subject, path)
    except Exception as e:
        print(f"  WARNING: QC figure failed: {e}")


def run_subject(args):
    """Run every stage for one subject.  Returns the merged metrics table."""
    out_dir = Path(args.out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    paths = output_paths(out_dir, args.safe_id)

    print("=" * 60)
    print(f"  Hemicord metrics: {args.subject}")
    print(f"  Sanitized ID:     {args.safe_id}")
    print(f"  Output:           {out_dir}")
    print("=" * 60)

    with step("Check inputs"):
        ref_args = _check_inputs(args, paths)
        print(f"Level reference: {' '.join(ref_args)}")

    with step("Load segmentation"):
        cord = load_mask(args.seg)
        print(f"Shape: {cord.shape}  spacing: {cord.spacing}  "
              f"voxels: {cord.n_voxels}")

    with step("Classify coverage"):
        mode = classify(cord, args.min_slices)
        strategy = strategy_for_mode(mode, args.strategy)
        if (strategy == Strategy.ATLAS and args.strategy == "auto"
                and args.atlas_dir is None):
            print("WARNING: no --atlas-dir given; using the midline split")
            strategy = Strategy.MIDLINE
        print(f"Covered axial slices: {count_covered_slices(cord)} "
              f"(threshold {args.min_slices}) -> {mode.value} mode, "
              f"{strategy.value} strategy")

    with step("Build hemicords"):
        resources = _side_resources(strategy, args)
        left, right = build_hemicords(strategy, cord, resources)
        del resources

    with step("Validate hemicords"):
        run_mask_checks(strategy, left, right, cord)

    print()
    save_mask(left, paths["left_mask"])
    save_mask(right, paths["right_mask"])
    if args.qc_figure:
        _save_qc_figure(left, right, cord, args.subject, paths["qc_figure"])
    del left, right, cord

    with step("Per-level metrics"):
        tables = aggregate_per_level(
            {"left": paths["left_mask"], "right": paths["right_mask"],
             "cord": args.seg},
            {"left": paths["left_csv"], "right": paths["right_csv"],
             "cord": paths["csa_csv"]},
            ref_args, args.levels,
        )

    with step("Merge tables"):
        metrics = merge_metrics(args.subject, *tables)
        write_metrics(metrics, paths["metrics_csv"])

    with pd.option_context("display.width", 120, "display.max_columns", None):
        print(metrics.to_string(index=False))
    return metrics


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
def main(argv=None):
    """Run the hemicord pipeline; exit 1 with a FATAL line on any pipeline error."""
    args = parse_args(argv)

    try:
        with step("Pipeline total"):
            run_subject(args)
    except HemicordError as e:
        print(f"\nFATAL: {e.stage or 'pipeline'}: {e.message}")
        output = e.details.get("output")
        if output:
            print(output)
        sys.exit(1)
    except Exception as e:
        stage = getattr(e, "stage", None) or "pipeline"
        print(f"\nFATAL: {stage}: {type(e).__name__}: {e}")
        sys.exit(1)

    print("==> Done.")


if __name__ == "__main__":
    main()
