"""Tests for hemicord/utils.py, profiling.py and figures.py."""

import numpy as np
import pytest

from hemicord.errors import ExternalToolFailure, InputNotFound
from hemicord.figures import plot_hemicords
from hemicord.midline import split_per_slice
from hemicord.profiling import step
from hemicord.utils import (
    VolumeMask,
    load_mask,
    mask_volume_mm3,
    output_paths,
    save_mask,
    voxel_volume_mm3,
)


# ---------------------------------------------------------------------------
# VolumeMask
# ---------------------------------------------------------------------------
class TestVolumeMask:
    def test_default_affine_from_spacing(self):
        mask = VolumeMask(np.zeros((2, 2, 2), dtype=bool), (0.5, 0.5, 2.0))
        np.testing.assert_array_equal(np.diag(mask.affine), [0.5, 0.5, 2.0, 1.0])

    def test_rejects_non_3d(self):
        with pytest.raises(ValueError):
            VolumeMask(np.zeros((2, 2), dtype=bool))

    def test_with_data_keeps_geometry(self):
        mask = VolumeMask(np.zeros((2, 2, 2), dtype=bool), (1.0, 2.0, 3.0))
        other = mask.with_data(np.ones((2, 2, 2), dtype=bool))
        assert other.spacing == (1.0, 2.0, 3.0)
        assert other.n_voxels == 8
        assert mask.n_voxels == 0

    def test_volumes(self):
        data = np.zeros((4, 4, 4), dtype=bool)
        data[:2, :2, :2] = True
        mask = VolumeMask(data, (0.5, 0.5, 3.0))
        assert voxel_volume_mm3(mask) == pytest.approx(0.75)
        assert mask_volume_mm3(mask) == pytest.approx(6.0)


# ---------------------------------------------------------------------------
# NIfTI I/O
# ---------------------------------------------------------------------------
class TestNiftiIO:
    def test_load_mask_binarizes(self, tmp_path, write_nifti):
        data = np.zeros((3, 3, 3))
        data[1, 1, 1] = 0.7
        data[0, 0, 0] = -1.0
        path = write_nifti(tmp_path / "m.nii.gz", data, spacing=(0.5, 0.5, 2.0))
        mask = load_mask(path)
        assert mask.data.dtype == bool
        assert mask.n_voxels == 1
        assert mask.spacing == (0.5, 0.5, 2.0)

    def test_missing_raises(self, tmp_path):
        with pytest.raises(InputNotFound):
            load_mask(tmp_path / "missing.nii.gz")

    def test_save_roundtrip_geometry(self, tmp_path, write_nifti, make_cord):
        src = write_nifti(tmp_path / "seg.nii.gz", make_cord().data,
                          spacing=(0.8, 0.8, 3.0))
        cord = load_mask(src)
        left, _ = split_per_slice(cord)
        out = save_mask(left, tmp_path / "left.nii.gz")
        back = load_mask(out)
        np.testing.assert_array_equal(back.data, left.data)
        np.testing.assert_allclose(back.affine, cord.affine)

    def test_output_paths(self, tmp_path):
        paths = output_paths(tmp_path, "sub01")
        assert paths["metrics_csv"].name == "sub01_metrics_perlevel.csv"
        assert paths["left_mask"].name == "sub01_hemi_left.nii.gz"


# ---------------------------------------------------------------------------
# profiling.step
# ---------------------------------------------------------------------------
class TestStep:
    def test_prints_summary(self, capsys):
        with step("demo"):
            pass
        assert "[demo]" in capsys.readouterr().out

    def test_tags_innermost_stage(self):
        with pytest.raises(ExternalToolFailure) as exc:
            with step("outer"):
                with step("inner"):
                    raise ExternalToolFailure("boom")
        assert exc.value.stage == "inner"

    def test_other_errors_propagate(self, capsys):
        with pytest.raises(KeyError):
            with step("fails"):
                raise KeyError("x")
        assert "[fails] FAILED" in capsys.readouterr().out

    def test_tags_plain_exceptions(self):
        with pytest.raises(ValueError) as exc:
            with step("outer"):
                with step("inner"):
                    raise ValueError("bad level")
        assert exc.value.stage == "inner"


# ---------------------------------------------------------------------------
# figures.plot_hemicords
# ---------------------------------------------------------------------------
class TestPlotHemicords:
    def test_writes_png(self, tmp_path, make_cord):
        cord = make_cord(z_range=(4, 16))
        left, right = split_per_slice(cord)
        out = plot_hemicords(left, right, cord, "sub01", tmp_path / "qc.png")
        assert out.exists()
        assert out.stat().st_size > 0
