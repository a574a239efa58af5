"""Shared utilities for the hemicord pipeline.

Provides the VolumeMask container, NIfTI load/save helpers, run defaults,
and output path helpers used by all pipeline steps.
"""

from dataclasses import dataclass, replace
from pathlib import Path

import nibabel as nib
import numpy as np

from hemicord.errors import InputNotFound

# ---------------------------------------------------------------------------
# Run defaults
# ---------------------------------------------------------------------------
MIN_SLICES = 5          # axial slices with cord needed for Sagittal mode
BIN_THRESHOLD = 0.5     # atlas accumulator binarization (strictly greater)
ROUND_DECIMALS = 3      # output table precision
DEFAULT_LEVELS = "2:8"  # C2-C8; "" means all detected levels

REQUIRED_TOOLS = ("sct_process_segmentation",)


# ---------------------------------------------------------------------------
# VolumeMask
# ---------------------------------------------------------------------------
@dataclass(frozen=True, eq=False)
class VolumeMask:
    """3-D voxel grid in RPI orientation with spacing and affine.

    Axis 0 runs right->left, axis 1 posterior->anterior, axis 2
    inferior->superior.  ``data`` is bool for binary masks and an integer
    array for label maps.  Orientation is assumed canonical on arrival.
    """

    data: np.ndarray
    spacing: tuple = (1.0, 1.0, 1.0)
    affine: np.ndarray = None
    header: object = None

    def __post_init__(self):
        if self.data.ndim != 3:
            raise ValueError(f"VolumeMask needs a 3-D array, got {self.data.ndim}-D")
        if self.affine is None:
            object.__setattr__(self, "affine", np.diag([*self.spacing, 1.0]))

    @property
    def shape(self):
        return self.data.shape

    @property
    def n_voxels(self):
        return int(np.count_nonzero(self.data))

    def with_data(self, data):
        """Return a new mask sharing this grid's geometry."""
        return replace(self, data=data)

    def empty_like(self):
        return self.with_data(np.zeros(self.shape, dtype=bool))


def voxel_volume_mm3(mask):
    """Volume of one voxel in mm^3."""
    dx, dy, dz = mask.spacing
    return float(dx * dy * dz)


def mask_volume_mm3(mask):
    """Foreground volume of a mask in mm^3."""
    return mask.n_voxels * voxel_volume_mm3(mask)


# ---------------------------------------------------------------------------
# NIfTI I/O
# ---------------------------------------------------------------------------
def _load_image(path):
    path = Path(path)
    if not path.exists():
        raise InputNotFound(f"Input not found: {path}", {"path": str(path)})
    print(f"Loading {path}")
    img = nib.load(str(path))
    if len(img.shape) > 3:
        raise ValueError(f"{path}: expected a 3-D volume, got shape {img.shape}")
    return img


def load_mask(path, threshold=0.0):
    """Load a NIfTI file as a binary VolumeMask (voxels > threshold)."""
    img = _load_image(path)
    data = np.asarray(img.dataobj, dtype=np.float32) > threshold
    spacing = tuple(float(z) for z in img.header.get_zooms()[:3])
    return VolumeMask(data, spacing, img.affine.copy(), img.header)


def load_float(path):
    """Load a continuous-valued volume (e.g. a warped atlas tract) as float32."""
    img = _load_image(path)
    return np.asarray(img.dataobj, dtype=np.float32)


def save_mask(mask, path):
    """Save a binary VolumeMask as uint8 NIfTI with the source geometry."""
    data = mask.data.astype(np.uint8)
    img = nib.Nifti1Image(data, mask.affine, mask.header)
    img.header.set_data_dtype(np.uint8)
    path = Path(path)
    nib.save(img, str(path))
    print(f"Saved {path}  shape={data.shape}  voxels={int(data.sum())}")
    return path


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------
def output_paths(out_dir, safe_id):
    """Return the per-subject output file layout."""
    out_dir = Path(out_dir)
    return {
        "left_mask": out_dir / f"{safe_id}_hemi_left.nii.gz",
        "right_mask": out_dir / f"{safe_id}_hemi_right.nii.gz",
        "left_csv": out_dir / f"{safe_id}_left_hemivol_perlevel.csv",
        "right_csv": out_dir / f"{safe_id}_right_hemivol_perlevel.csv",
        "csa_csv": out_dir / f"{safe_id}_csa_perlevel.csv",
        "metrics_csv": out_dir / f"{safe_id}_metrics_perlevel.csv",
        "qc_figure": out_dir / f"{safe_id}_hemicord_qc.png",
    }
