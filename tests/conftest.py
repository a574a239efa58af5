"""Shared fixtures for the test suite."""

import nibabel as nib
import numpy as np
import pandas as pd
import pytest

from hemicord.utils import VolumeMask


def _make_cord(shape=(20, 20, 20), center=(10, 10), radius=4, z_range=None,
               spacing=(1.0, 1.0, 1.0)):
    """Build a binary VolumeMask holding a cylinder along axis 2."""
    nx, ny, nz = shape
    z0, z1 = z_range if z_range is not None else (0, nz)
    x, y = np.meshgrid(np.arange(nx), np.arange(ny), indexing="ij")
    disk = (x - center[0]) ** 2 + (y - center[1]) ** 2 <= radius ** 2
    data = np.zeros(shape, dtype=bool)
    data[:, :, z0:z1] = disk[:, :, None]
    return VolumeMask(data, tuple(float(s) for s in spacing))


def _write_nifti(path, data, spacing=(1.0, 1.0, 1.0)):
    """Write ``data`` as a NIfTI file with a diagonal affine."""
    affine = np.diag([*spacing, 1.0])
    img = nib.Nifti1Image(np.asarray(data, dtype=np.float32), affine)
    nib.save(img, str(path))
    return path


def _sct_table(levels, values, value_col="MEAN(area)", level_col="VertLevel"):
    """Build a per-level frame shaped like sct_process_segmentation output."""
    return pd.DataFrame({
        "Timestamp": ["2024-01-01"] * len(levels),
        "Filename": ["mask.nii.gz"] * len(levels),
        level_col: levels,
        value_col: values,
    })


@pytest.fixture
def make_cord():
    """Factory fixture that returns the _make_cord helper."""
    return _make_cord


@pytest.fixture
def write_nifti():
    """Factory fixture that returns the _write_nifti helper."""
    return _write_nifti


@pytest.fixture
def sct_table():
    """Factory fixture that returns the _sct_table helper."""
    return _sct_table
