import numpy as np
from scipy.ndimage import median_filter
import skimage.filters as skf


def check_volumes(*volumes: np.ndarray) -> tuple[int, int, int]:
    """
    Validate that all volumes are float64 3D arrays of identical shape with
    at least one interior voxel along every axis.

    volumes: one or more 3D numpy arrays

    Returns: shared volume shape (M, N, P)
    """

    if len(volumes) == 0:
        raise ValueError("At least one volume is required")

    for vol in volumes:
        if not isinstance(vol, np.ndarray):
            raise TypeError(f"Volumes must be numpy arrays, got {type(vol).__name__}")
        if vol.dtype != np.float64:
            raise TypeError(f"Volumes must be float64, got {vol.dtype}")

    shape = volumes[0].shape
    if len(shape) != 3:
        raise ValueError(f"Volumes must be 3D, got shape {shape}")

    for vol in volumes[1:]:
        if vol.shape != shape:
            raise ValueError(f"Volume shape mismatch: {vol.shape} != {shape}")

    if min(shape) < 3:
        raise ValueError(f"Every volume extent must be at least 3, got shape {shape}")

    return shape


def face_neighbors(vol: np.ndarray) -> tuple[np.ndarray, ...]:
    """
    Six face-adjacent neighbor views of the volume interior [1:-1, 1:-1, 1:-1].

    Order: right (j+1), left (j-1), up (i-1), down (i+1), in (k-1), out (k+1)

    vol: 3D array, extent >= 3 along every axis

    Returns: tuple of six views with the interior shape
    """

    c = slice(1, -1)
    return (
        vol[c, 2:, c],
        vol[c, :-2, c],
        vol[:-2, c, c],
        vol[2:, c, c],
        vol[c, c, :-2],
        vol[c, c, 2:],
    )


def signal_mask_otsu(img: np.ndarray, nclasses: int=4) -> tuple[np.ndarray, float, float]:
    """
    Foreground mask from the lowest of the multilevel Otsu thresholds.
    Used on the raw image to isolate air space for noise estimation and on the
    deconvolved image to restrict the residual maps to tissue.

    img: magnitude image (3D array), zero voxels are left out of the threshold fit
    nclasses: number of Otsu classes

    Returns: signal_mask, mask_thresh, percent_coverage
    """

    otsu_thresh = skf.threshold_multiotsu(img[img > 0].ravel(), classes=nclasses)
    mask_thresh = float(otsu_thresh[0])

    signal_mask = img >= mask_thresh
    percent_coverage = 100.0 * np.sum(signal_mask) / signal_mask.size

    return signal_mask, mask_thresh, percent_coverage


def airspace_noise_est(img_noisy: np.ndarray) -> float:
    """
    Fallback Rician sigma for the deconvolution when none is given on the command line.
    Air space magnitudes are Rayleigh distributed with median sigma * sqrt(2 log 2).

    img_noisy: observed magnitude image (3D array)

    Returns: estimated noise sigma (> 0)
    """

    signal_mask, mask_thresh, percent_coverage = signal_mask_otsu(img_noisy)
    print(f"Airspace mask threshold {mask_thresh:0.2f}, coverage {percent_coverage:0.2f} %")

    air = img_noisy[~signal_mask]
    if air.size == 0:
        raise ValueError("No air space voxels for noise estimation, pass sigma_noise (-n) explicitly")

    # Masked or skull-stripped images have an exactly zero background
    median_air = float(np.median(air))
    if median_air <= 0:
        raise ValueError("Air space median is zero (masked background?), pass sigma_noise (-n) explicitly")

    return float(median_air / np.sqrt(2 * np.log(2)))


def residual_maps(
        img_noisy: np.ndarray,
        img_denoised: np.ndarray,
        signal_mask: np.ndarray,
        ksize: int=5) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Residual, local noise sigma and SNR maps from the noisy and deconvolved images.
    Local sigma uses the high SNR (Gaussian) MAD approximation within the signal mask.

    img_noisy: input noisy image (3D array)
    img_denoised: deconvolved image (3D array)
    signal_mask: boolean signal mask (3D array)
    ksize: median filter kernel size

    Returns: img_residual, img_sigmamap, img_snrmap
    """

    # Signed residual within signal mask
    img_residual = (img_noisy - img_denoised) * signal_mask

    # Median of absolute residuals scaled to sigma for Gaussian white noise
    img_sigmamap = median_filter(np.abs(img_residual), size=ksize) / 0.6745
    img_snrmap = img_denoised / (img_sigmamap + 0.1) * signal_mask

    return img_residual, img_sigmamap, img_snrmap


def line_neighbors(vol: np.ndarray, j: int, k: int) -> tuple[np.ndarray, ...]:
    """
    Six face-adjacent neighbor lines of the interior first-axis scan line at (j, k).

    Order matches face_neighbors: right, left, up, down, in, out

    vol: 3D array
    j, k: interior indices along the second and third axes
    """

    return (
        vol[1:-1, j + 1, k],
        vol[1:-1, j - 1, k],
        vol[:-2, j, k],
        vol[2:, j, k],
        vol[1:-1, j, k - 1],
        vol[1:-1, j, k + 1],
    )
