"""Model-free left/right split of the cord segmentation at a midline.

Two configurations are supported:

  - ``slice``:  per axial slice, the midline is the centre of mass of the
    cord along axis 0, rounded to the nearest voxel index.
  - ``global``: one midline for the whole volume, halfway between the
    minimum and maximum axis-0 index of any cord voxel, rounded.

Convention (RPI, axis 0 increases right->left): voxels with index below the
midline are anatomical right, voxels at or above it are anatomical left.
The midline voxel therefore always belongs to the left hemicord.  Both
configurations produce an exact partition: left | right == cord and
left & right is empty.
"""

import numpy as np
from scipy.ndimage import center_of_mass


def _split_at(fg, mid):
    """Partition fg given a midline index broadcastable against axis 0."""
    x = np.arange(fg.shape[0]).reshape(-1, 1, 1)
    left = fg & (x >= mid)
    right = fg & ~left
    return left, right


def slice_midlines(fg):
    """Per-slice centre-of-mass midline along axis 0.

    Returns an int array of length nz; slices without cord get -1 (unused,
    they hold no voxels to assign).
    """
    nz = fg.shape[2]
    mids = np.full(nz, -1, dtype=np.int64)
    for k in range(nz):
        sl = fg[:, :, k]
        if sl.any():
            mids[k] = int(np.round(center_of_mass(sl)[0]))
    return mids


def split_per_slice(cord):
    """Split each axial slice at its own centre of mass.  Returns (left, right)."""
    fg = np.asarray(cord.data) != 0
    mids = slice_midlines(fg)
    left, right = _split_at(fg, mids.reshape(1, 1, -1))
    return cord.with_data(left), cord.with_data(right)


def global_midline(fg):
    """Rounded midpoint of the axis-0 extent of fg, or None if fg is empty."""
    xs = np.nonzero(fg.any(axis=(1, 2)))[0]
    if len(xs) == 0:
        return None
    return int(np.round((xs.min() + xs.max()) / 2.0))


def split_global_midpoint(cord):
    """Split the whole volume at a single midline.  Returns (left, right)."""
    fg = np.asarray(cord.data) != 0
    mid = global_midline(fg)
    if mid is None:
        return cord.empty_like(), cord.empty_like()
    left, right = _split_at(fg, mid)
    return cord.with_data(left), cord.with_data(right)


MIDLINE_METHODS = {
    "slice": split_per_slice,
    "global": split_global_midpoint,
}


def split_midline(cord, method="slice"):
    """Split the cord with the named midline configuration."""
    try:
        splitter = MIDLINE_METHODS[method]
    except KeyError:
        raise ValueError(
            f"Unknown midline method '{method}'; expected one of "
            f"{sorted(MIDLINE_METHODS)}"
        ) from None
    return splitter(cord)
