"""Pick and run a hemicord strategy.

The coverage mode selects the strategy: Sagittal runs the atlas split,
Axial runs the midline split.  Both strategies share one signature,
``(cord, resources) -> (left, right)``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from hemicord.atlas import ATLAS_PREFIX, build_atlas_hemicords
from hemicord.coverage import Mode
from hemicord.midline import split_midline


class Strategy(str, Enum):
    ATLAS = "atlas"
    MIDLINE = "midline"


@dataclass
class SideResources:
    """Inputs a strategy may need beyond the cord mask."""

    catalog: Optional[dict] = None
    atlas_dir: Optional[str] = None
    atlas_prefix: str = ATLAS_PREFIX
    midline_method: str = "slice"


def strategy_for_mode(mode, requested="auto"):
    """Resolve the strategy for a coverage mode.

    ``requested`` may be "auto", "atlas" or "midline".  Forcing the atlas
    split on an Axial-mode mask is rejected: there is no reliable level
    correspondence to register against.
    """
    if requested == "auto":
        return Strategy.ATLAS if mode == Mode.SAGITTAL else Strategy.MIDLINE
    strategy = Strategy(requested)
    if strategy == Strategy.ATLAS and mode == Mode.AXIAL:
        raise ValueError("Atlas strategy requires Sagittal coverage; "
                         "mask was classified Axial")
    return strategy


def _atlas(cord, resources):
    if resources.catalog is None or resources.atlas_dir is None:
        raise ValueError("Atlas strategy needs a label catalog and atlas directory")
    return build_atlas_hemicords(cord, resources.catalog, resources.atlas_dir,
                                 prefix=resources.atlas_prefix)


def _midline(cord, resources):
    return split_midline(cord, resources.midline_method)


_STRATEGIES = {
    Strategy.ATLAS: _atlas,
    Strategy.MIDLINE: _midline,
}


def build_hemicords(strategy, cord, resources=None):
    """Run ``strategy`` on ``cord``.  Returns (left, right) VolumeMasks."""
    resources = resources or SideResources()
    return _STRATEGIES[Strategy(strategy)](cord, resources)
