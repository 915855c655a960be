import pytest
import numpy as np

from ricedeconv.utils import (
    check_volumes,
    face_neighbors,
    line_neighbors,
    signal_mask_otsu,
    airspace_noise_est,
    residual_maps,
)


def test_check_volumes_returns_shape():
    a = np.zeros((3, 4, 5))
    assert check_volumes(a, a.copy()) == (3, 4, 5)


def test_check_volumes_errors():
    with pytest.raises(ValueError):
        check_volumes()
    with pytest.raises(TypeError):
        check_volumes([[[0.0]]])
    with pytest.raises(ValueError, match="3D"):
        check_volumes(np.zeros((4, 4)))
    with pytest.raises(ValueError, match="mismatch"):
        check_volumes(np.zeros((4, 4, 4)), np.zeros((4, 4, 5)))
    with pytest.raises(ValueError, match="at least 3"):
        check_volumes(np.zeros((4, 4, 2)))


def test_face_neighbors():
    vol = np.arange(4 * 5 * 6, dtype=np.float64).reshape(4, 5, 6)
    right, left, up, down, inward, outward = face_neighbors(vol)

    assert right.shape == (2, 3, 4)
    assert right[0, 0, 0] == vol[1, 2, 1]
    assert left[0, 0, 0] == vol[1, 0, 1]
    assert up[0, 0, 0] == vol[0, 1, 1]
    assert down[0, 0, 0] == vol[2, 1, 1]
    assert inward[0, 0, 0] == vol[1, 1, 0]
    assert outward[0, 0, 0] == vol[1, 1, 2]


def test_line_neighbors_match_face_neighbors():
    vol = np.arange(4 * 5 * 6, dtype=np.float64).reshape(4, 5, 6)
    faces = face_neighbors(vol)
    j, k = 2, 3
    for line, face in zip(line_neighbors(vol, j, k), faces):
        np.testing.assert_array_equal(line, face[:, j - 1, k - 1])


def test_signal_mask_otsu(rician_phantom):
    clean, noisy = rician_phantom
    signal_mask, thresh, coverage = signal_mask_otsu(noisy)

    assert signal_mask.dtype == bool
    assert signal_mask[clean > 0].all()
    assert 0.0 < thresh < 100.0
    assert coverage == pytest.approx(100.0 * signal_mask.sum() / signal_mask.size)


def test_airspace_noise_est(rician_phantom):
    _, noisy = rician_phantom
    sigma_n = airspace_noise_est(noisy)
    assert 0.0 < sigma_n < 20.0


def test_residual_maps(rician_phantom):
    clean, noisy = rician_phantom
    signal_mask = clean > 0
    residual, sigmamap, snrmap = residual_maps(noisy, clean, signal_mask)

    assert residual.shape == sigmamap.shape == snrmap.shape == noisy.shape
    assert (residual[~signal_mask] == 0).all()
    assert (snrmap[~signal_mask] == 0).all()
    assert (sigmamap >= 0).all()
    # Rician residual about a bright cube is close to Gaussian with sigma 5
    assert np.median(sigmamap[6:10, 6:10, 6:10]) == pytest.approx(5.0, rel=0.5)


def test_airspace_noise_est_zero_background(rician_phantom):
    clean, noisy = rician_phantom
    masked = np.where(clean > 0, noisy, 0.0)
    with pytest.raises(ValueError, match="-n"):
        airspace_noise_est(masked)
