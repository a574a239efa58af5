"""Diagnostic overlay of the hemicord masks.

One figure, three panels: axial slice at the cord's mid level, coronal
slice through the cord centre, and the per-slice left/right voxel counts
along the craniocaudal axis.
"""

import matplotlib
matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.colors import ListedColormap

# 0: background, 1: right, 2: left, 3: both (atlas overlap)
HEMI_COLORS = [
    (0.0, 0.0, 0.0, 0.0),
    (0.9, 0.2, 0.2, 0.8),
    (0.2, 0.4, 0.9, 0.8),
    (0.9, 0.9, 0.1, 0.9),
]
_HEMI_CMAP = ListedColormap(HEMI_COLORS)


def _label_volume(left, right):
    lf = np.asarray(left.data) != 0
    rf = np.asarray(right.data) != 0
    return rf.astype(np.uint8) + 2 * lf.astype(np.uint8)


def plot_hemicords(left, right, cord, subject, out_path):
    """Save a 3-panel QC figure to ``out_path``.  Returns the path."""
    cf = np.asarray(cord.data) != 0
    labels = _label_volume(left, right)

    z_covered = np.nonzero(cf.any(axis=(0, 1)))[0]
    y_covered = np.nonzero(cf.any(axis=(0, 2)))[0]
    k = int(z_covered[len(z_covered) // 2]) if len(z_covered) else cf.shape[2] // 2
    j = int(y_covered[len(y_covered) // 2]) if len(y_covered) else cf.shape[1] // 2

    fig, axes = plt.subplots(1, 3, figsize=(15, 5))

    ax = axes[0]
    ax.imshow(cf[:, :, k].T.astype(np.uint8), cmap="gray", origin="lower", vmin=0, vmax=1)
    ax.imshow(labels[:, :, k].T, cmap=_HEMI_CMAP, origin="lower",
              vmin=-0.5, vmax=3.5, interpolation="nearest")
    ax.set_title(f"Axial z={k}")
    ax.set_xlabel("x (R -> L)")

    ax = axes[1]
    ax.imshow(cf[:, j, :].T.astype(np.uint8), cmap="gray", origin="lower", vmin=0, vmax=1,
              aspect="auto")
    ax.imshow(labels[:, j, :].T, cmap=_HEMI_CMAP, origin="lower",
              vmin=-0.5, vmax=3.5, interpolation="nearest", aspect="auto")
    ax.set_title(f"Coronal y={j}")
    ax.set_xlabel("x (R -> L)")
    ax.set_ylabel("z (I -> S)")

    ax = axes[2]
    z = np.arange(cf.shape[2])
    ax.plot((labels & 2).astype(bool).sum(axis=(0, 1)), z, color=HEMI_COLORS[2][:3],
            label="left")
    ax.plot((labels & 1).astype(bool).sum(axis=(0, 1)), z, color=HEMI_COLORS[1][:3],
            label="right")
    ax.set_xlabel("voxels per slice")
    ax.set_ylabel("z")
    ax.legend(loc="best")
    ax.set_title("Per-slice hemicord size")

    fig.suptitle(f"{subject}: hemicord masks")
    fig.tight_layout()
    fig.savefig(str(out_path), dpi=100)
    plt.close(fig)
    print(f"Saved {out_path}")
    return out_path
