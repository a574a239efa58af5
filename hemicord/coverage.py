"""Select the processing mode from the craniocaudal extent of the cord.

A segmentation that spans fewer than ``min_slices`` axial slices is treated
as a local axial stack (no reliable vertebral correspondence, midline split
only).  Anything longer gets the full atlas-based per-level analysis.
"""

from enum import Enum

import numpy as np

from hemicord.utils import MIN_SLICES


class Mode(str, Enum):
    SAGITTAL = "sagittal"
    AXIAL = "axial"


def count_covered_slices(mask):
    """Number of axial (axis 2) slices holding at least one foreground voxel."""
    data = np.asarray(mask.data) != 0
    return int(np.count_nonzero(data.any(axis=(0, 1))))


def classify(mask, min_slices=MIN_SLICES):
    """Return Mode.AXIAL if fewer than min_slices slices carry cord, else SAGITTAL.

    Pure function of the mask contents and threshold.  An all-background
    mask covers 0 slices and is therefore AXIAL.
    """
    if min_slices < 0:
        raise ValueError(f"min_slices must be >= 0, got {min_slices}")
    n = count_covered_slices(mask)
    if n < min_slices:
        return Mode.AXIAL
    return Mode.SAGITTAL
