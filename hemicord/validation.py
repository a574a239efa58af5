"""Quality checks on hemicord masks before per-level statistics.

Checks:
  H1 [CRITICAL]  left and right are subsets of the cord mask
  H2 [CRITICAL]  midline split only: left/right are disjoint and cover the cord
  H3 [INFO]      atlas split only: overlap and uncovered cord voxels

CRITICAL failures raise ValueError: they indicate a bug in mask construction,
not bad input.
"""

import numpy as np

from hemicord.hemispheres import Strategy
from hemicord.utils import mask_volume_mm3


def _fg(mask):
    return np.asarray(mask.data) != 0


def check_subset(part, cord, name):
    """H1: every voxel of ``part`` lies inside ``cord``.  Returns n outside."""
    n_outside = int(np.count_nonzero(_fg(part) & ~_fg(cord)))
    if n_outside:
        print(f"H1 [CRITICAL FAIL]: {n_outside} {name} voxels outside the cord mask")
        raise ValueError(f"{name} hemicord extends outside the cord mask "
                         f"({n_outside} voxels)")
    print(f"H1 [OK]: {name} hemicord inside cord mask")
    return n_outside


def check_partition(left, right, cord):
    """H2: left & right == empty and left | right == cord."""
    lf, rf, cf = _fg(left), _fg(right), _fg(cord)
    n_overlap = int(np.count_nonzero(lf & rf))
    n_missing = int(np.count_nonzero(cf & ~(lf | rf)))
    if n_overlap or n_missing:
        print(f"H2 [CRITICAL FAIL]: overlap={n_overlap} uncovered={n_missing}")
        raise ValueError(f"Midline split is not a partition of the cord "
                         f"(overlap={n_overlap}, uncovered={n_missing})")
    print("H2 [OK]: left/right disjoint and exhaustive")


def report_atlas_coverage(left, right, cord):
    """H3: report overlap and cord voxels claimed by neither side."""
    lf, rf, cf = _fg(left), _fg(right), _fg(cord)
    n_overlap = int(np.count_nonzero(lf & rf))
    n_missing = int(np.count_nonzero(cf & ~(lf | rf)))
    print(f"H3 [INFO]: atlas overlap={n_overlap} voxels, "
          f"uncovered cord={n_missing} voxels")
    return n_overlap, n_missing


def print_hemicord_volumes(left, right, cord):
    """Print voxel counts and volumes for each mask."""
    print("\n" + "=" * 60)
    print("Hemicord Volumes")
    print("=" * 60)
    for name, mask in (("Left", left), ("Right", right), ("Whole cord", cord)):
        print(f"  {name:<11s} {mask.n_voxels:>10d} voxels  "
              f"{mask_volume_mm3(mask):>10.1f} mm^3")


def run_mask_checks(strategy, left, right, cord):
    """Run all checks applicable to ``strategy``."""
    print_hemicord_volumes(left, right, cord)

    print("\n" + "=" * 60)
    print("Hemicord Validation")
    print("=" * 60)
    check_subset(left, cord, "left")
    check_subset(right, cord, "right")
    if Strategy(strategy) == Strategy.MIDLINE:
        check_partition(left, right, cord)
    else:
        report_atlas_coverage(left, right, cord)
