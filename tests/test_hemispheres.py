"""Tests for hemicord/hemispheres.py — strategy selection and dispatch."""

import numpy as np
import pytest

from hemicord.coverage import Mode
from hemicord.hemispheres import (
    SideResources,
    Strategy,
    build_hemicords,
    strategy_for_mode,
)
from hemicord.midline import split_global_midpoint


class TestStrategyForMode:
    def test_auto(self):
        assert strategy_for_mode(Mode.SAGITTAL) == Strategy.ATLAS
        assert strategy_for_mode(Mode.AXIAL) == Strategy.MIDLINE

    def test_forced_midline(self):
        assert strategy_for_mode(Mode.SAGITTAL, "midline") == Strategy.MIDLINE

    def test_forced_atlas_on_axial_rejected(self):
        with pytest.raises(ValueError):
            strategy_for_mode(Mode.AXIAL, "atlas")

    def test_unknown_rejected(self):
        with pytest.raises(ValueError):
            strategy_for_mode(Mode.SAGITTAL, "octant")


class TestBuildHemicords:
    def test_midline_default_resources(self, make_cord):
        cord = make_cord()
        left, right = build_hemicords(Strategy.MIDLINE, cord)
        assert left.n_voxels + right.n_voxels == cord.n_voxels

    def test_midline_method_forwarded(self, make_cord):
        cord = make_cord(center=(9, 10))
        left, _ = build_hemicords("midline", cord,
                                  SideResources(midline_method="global"))
        expected, _ = split_global_midpoint(cord)
        np.testing.assert_array_equal(left.data, expected.data)

    def test_atlas_needs_resources(self, make_cord):
        with pytest.raises(ValueError):
            build_hemicords(Strategy.ATLAS, make_cord())
