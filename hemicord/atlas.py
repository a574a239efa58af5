"""Atlas-based left/right hemicord masks.

Reads the atlas label catalog (``info_label.txt``), splits tract IDs into
left and right by name, sums each side's warped tract volumes, binarizes
the sums at 0.5 and intersects them with the subject's cord segmentation.

The two hemicord masks are each a subset of the cord but are not forced to
be disjoint: atlas tracts do not perfectly partition the cord after warping.

Catalog format (comma separated, ``#`` lines ignored):

    # Keyword=IndivLabels
    # ID, name, file
    0, left fasciculus gracilis, PAM50_atlas_00.nii.gz
    1, left fasciculus cuneatus, PAM50_atlas_01.nii.gz
"""

import re
from dataclasses import dataclass
from functools import reduce
from pathlib import Path

import numpy as np

from hemicord.errors import (
    EmptyIDSet,
    InputNotFound,
    MissingFileForID,
    NoFilesFound,
)
from hemicord.utils import BIN_THRESHOLD, load_float

ATLAS_PREFIX = "PAM50_atlas_"
ATLAS_SUFFIX = ".nii.gz"
INFO_LABEL_NAME = "info_label.txt"

# "left"/"right" as a separate token: not preceded or followed by a letter
_SIDE_PATTERNS = {
    "left": re.compile(r"(?<![a-z])left(?![a-z])", re.IGNORECASE),
    "right": re.compile(r"(?<![a-z])right(?![a-z])", re.IGNORECASE),
}


# ---------------------------------------------------------------------------
# Label catalog
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class AtlasTract:
    tract_id: int
    name: str
    file: str
    side: str  # "left" | "right" | "neither"


def side_of(name):
    """Side tag for a tract name; 'neither' when no side token is present.

    A name carrying both tokens is tagged 'left' only.
    """
    for side, pattern in _SIDE_PATTERNS.items():
        if pattern.search(name):
            return side
    return "neither"


def parse_info_label(text):
    """Parse catalog text into an ordered {id: AtlasTract} mapping.

    Rows need at least three comma-separated fields.  Non-digit characters
    are stripped from the ID field; rows whose ID is then empty are skipped.
    """
    catalog = {}
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        fields = [f.strip() for f in line.split(",")]
        if len(fields) < 3:
            continue
        digits = re.sub(r"[^0-9]", "", fields[0])
        if not digits:
            continue
        tract_id = int(digits)
        name = fields[1]
        if tract_id in catalog:
            print(f"WARNING: duplicate atlas ID {tract_id} on line {lineno}; "
                  f"keeping '{catalog[tract_id].name}'")
            continue
        catalog[tract_id] = AtlasTract(tract_id, name, fields[2], side_of(name))
    return catalog


def load_info_label(path):
    """Read and parse an info_label.txt catalog."""
    path = Path(path)
    if not path.exists():
        raise InputNotFound(f"Atlas label catalog not found: {path}",
                            {"path": str(path)})
    print(f"Loading {path}")
    return parse_info_label(path.read_text())


def partition_sides(catalog):
    """Split catalog IDs into (left_ids, right_ids), preserving catalog order."""
    left = [t.tract_id for t in catalog.values() if t.side == "left"]
    right = [t.tract_id for t in catalog.values() if t.side == "right"]
    return left, right


# ---------------------------------------------------------------------------
# Tract volume accumulation
# ---------------------------------------------------------------------------
def resolve_atlas_file(atlas_dir, tract_id, prefix=ATLAS_PREFIX):
    """Locate the warped volume for one ID: zero-padded name first, then plain."""
    atlas_dir = Path(atlas_dir)
    candidates = [
        atlas_dir / f"{prefix}{tract_id:02d}{ATLAS_SUFFIX}",
        atlas_dir / f"{prefix}{tract_id}{ATLAS_SUFFIX}",
    ]
    for path in candidates:
        if path.exists():
            return path
    raise MissingFileForID(
        f"Atlas file for ID {tract_id} not found "
        f"(looked for {candidates[0].name} and {candidates[1].name})",
        {"tract_id": tract_id, "candidates": [str(c) for c in candidates]},
    )


def _add_tract(acc, volume):
    """Fold step: the first volume initializes the accumulator."""
    if acc is None:
        return volume.astype(np.float32, copy=True)
    if volume.shape != acc.shape:
        raise ValueError(f"Atlas volume shape {volume.shape} != {acc.shape}")
    return acc + volume


def sum_side_masks(ids, atlas_dir, side, prefix=ATLAS_PREFIX, loader=load_float):
    """Voxelwise sum of the atlas volumes for one side.

    IDs without a backing file are skipped with a warning.  Raises EmptyIDSet
    if ``ids`` is empty and NoFilesFound if none of the IDs had a file.
    """
    if not ids:
        raise EmptyIDSet(f"No {side} tract IDs in atlas catalog", {"side": side})

    paths = []
    for tract_id in ids:
        try:
            paths.append(resolve_atlas_file(atlas_dir, tract_id, prefix))
        except MissingFileForID as e:
            print(f"WARNING: {e.message}. Skipping.")

    if not paths:
        raise NoFilesFound(
            f"No atlas files found for any {side} ID in {atlas_dir}",
            {"side": side, "ids": list(ids)},
        )

    print(f"  {side}: summing {len(paths)} of {len(ids)} tract volumes")
    return reduce(_add_tract, (loader(p) for p in paths), None)


# ---------------------------------------------------------------------------
# Hemicord construction
# ---------------------------------------------------------------------------
def build_atlas_hemicords(cord, catalog, atlas_dir, prefix=ATLAS_PREFIX,
                          threshold=BIN_THRESHOLD, loader=load_float):
    """Build (left, right) hemicord VolumeMasks from warped atlas tracts.

    Each side is summed, binarized (sum > threshold) and intersected with
    the cord mask, so both outputs are subsets of ``cord``.
    """
    atlas_dir = Path(atlas_dir)
    if not atlas_dir.is_dir():
        raise InputNotFound(f"Atlas directory not found: {atlas_dir}",
                            {"path": str(atlas_dir)})

    left_ids, right_ids = partition_sides(catalog)
    print(f"Left IDs:  {' '.join(str(i) for i in left_ids)}")
    print(f"Right IDs: {' '.join(str(i) for i in right_ids)}")

    cord_fg = np.asarray(cord.data) != 0
    masks = []
    for side, ids in (("left", left_ids), ("right", right_ids)):
        summed = sum_side_masks(ids, atlas_dir, side, prefix, loader)
        if summed.shape != cord_fg.shape:
            raise ValueError(
                f"{side} atlas sum shape {summed.shape} != cord shape {cord_fg.shape}"
            )
        masks.append(cord.with_data((summed > threshold) & cord_fg))

    return masks[0], masks[1]
