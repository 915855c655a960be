import pytest
import numpy as np
import nibabel as nib


@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture
def impulse_volume():
    """Returns a 41x41x41 volume with a unit impulse at the center voxel."""
    vol = np.zeros((41, 41, 41), dtype=np.float64)
    vol[20, 20, 20] = 1.0
    return vol


@pytest.fixture
def rician_phantom(rng):
    """Returns a 16x16x16 cube phantom (clean, noisy) with Rician noise sigma 5."""
    clean = np.zeros((16, 16, 16), dtype=np.float64)
    clean[4:12, 4:12, 4:12] = 100.0
    sigma_n = 5.0
    noise_re = rng.normal(0.0, sigma_n, clean.shape)
    noise_im = rng.normal(0.0, sigma_n, clean.shape)
    noisy = np.abs(clean + noise_re + 1j * noise_im)
    return clean, noisy


@pytest.fixture
def phantom_nifti(rician_phantom, tmp_path):
    """Writes the noisy phantom to a float32 NIfTI file and returns its path."""
    _, noisy = rician_phantom
    nii = nib.Nifti1Image(noisy.astype(np.float32), np.eye(4))
    nii_path = tmp_path / "phantom.nii.gz"
    nib.save(nii, str(nii_path))
    return str(nii_path)
