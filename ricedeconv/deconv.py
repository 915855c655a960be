"""
Total variation regularized deconvolution of 3D Rician (magnitude MRI) data

Gradient descent on the Rician negative log-likelihood plus a TV penalty,
with a Gaussian point spread function applied by the recursive blur and a
semi-implicit update coupling neighbor diffusivities.

  Getreuer, P., Tong, M. & Vese, L. A.
  A variational model for the restoration of MR images corrupted by blur and Rician noise.
  Proc. ISVC, Part I, LNCS 6938, 686-698 (2011).
"""

from dataclasses import dataclass

import numpy as np

from .besselratio import approx_i1_i0
from .gaussian import GAUSSIAN_NUMSTEPS, gaussian_blur, recursive_coefficients
from .utils import check_volumes, face_neighbors, line_neighbors

MAX_ITERATIONS = 10
DT = 1.0e-4
EPSILON = 1.0e-10


@dataclass(frozen=True)
class DeconvConfig:
    iterations: int = MAX_ITERATIONS
    dt: float = DT
    epsilon: float = EPSILON
    gaussian_steps: int = GAUSSIAN_NUMSTEPS
    # Compute the residual with the raw r instead of the I1/I0 approximation
    reference_compatible: bool = True

    def __post_init__(self):
        if self.iterations < 0:
            raise ValueError(f"iterations must be non-negative, got {self.iterations}")
        if not self.dt > 0:
            raise ValueError(f"dt must be positive, got {self.dt}")
        if not self.epsilon > 0:
            raise ValueError(f"epsilon must be positive, got {self.epsilon}")
        if self.gaussian_steps < 1:
            raise ValueError(f"gaussian_steps must be at least 1, got {self.gaussian_steps}")


def diffusivity(u: np.ndarray, g: np.ndarray, epsilon: float=EPSILON) -> None:
    """
    Approximate g = 1/|grad u| over interior voxels from the six face differences.
    Boundary voxels of g are not written.
    """

    center = u[1:-1, 1:-1, 1:-1]

    denom = np.full(center.shape, epsilon)
    for nbr in face_neighbors(u):
        denom += (center - nbr) ** 2

    g[1:-1, 1:-1, 1:-1] = 1.0 / np.sqrt(denom)


def rician_residual(conv: np.ndarray, f: np.ndarray, sigma_noise: float, reference_compatible: bool=True) -> None:
    """
    Replace the blurred estimate in conv by the Rician data fidelity residual, in place.

    conv: blurred current estimate K*u
    f: observed noisy image
    sigma_noise: Rician noise sigma
    reference_compatible: subtract f * r with r = K*u f / sigma^2 when True,
        otherwise f * I1(r)/I0(r) using the rational approximation
    """

    sigma2 = sigma_noise * sigma_noise
    r = conv * f / sigma2

    if reference_compatible:
        conv -= f * r
    else:
        conv -= f * approx_i1_i0(r)


def semi_implicit_update(u: np.ndarray, g: np.ndarray, conv: np.ndarray, gamma: float, dt: float=DT) -> None:
    """
    Semi-implicit update of the interior of u, in place.

    Sweep order is fixed: k outer, j middle, both ascending. Each first-axis
    scan line is updated as a unit. Its own first-axis neighbors (up, down) are
    the values before this line was written, while the lines at j-1 and k-1
    already hold this sweep's values and those at j+1 and k+1 do not.
    Changing the order changes the result.
    """

    _, N, P = u.shape

    for k in range(1, P - 1):
        for j in range(1, N - 1):
            u_nbrs = line_neighbors(u, j, k)
            g_nbrs = line_neighbors(g, j, k)

            flux = u_nbrs[0] * g_nbrs[0]
            weight = g_nbrs[0].copy()
            for u_n, g_n in zip(u_nbrs[1:], g_nbrs[1:]):
                flux += u_n * g_n
                weight += g_n

            numer = u[1:-1, j, k] + dt * (flux - gamma * conv[1:-1, j, k])
            denom = 1.0 + dt * weight
            u[1:-1, j, k] = numer / denom


def _check_scalar(name: str, value: float, allow_zero: bool=False):
    if not np.isfinite(value):
        raise ValueError(f"{name} must be finite, got {value}")
    if value < 0 or (value == 0 and not allow_zero):
        bound = "non-negative" if allow_zero else "positive"
        raise ValueError(f"{name} must be {bound}, got {value}")


def rician_deconv3(
        u: np.ndarray,
        f: np.ndarray,
        g: np.ndarray,
        conv: np.ndarray,
        sigma_blur: float,
        sigma_noise: float,
        lam: float,
        config: DeconvConfig=None) -> None:
    """
    Rician deconvolution of a 3D volume with TV regularization.

    u: current estimate (float64 3D), updated in place and holds the result on return
    f: observed noisy volume, read only
    g: scratch volume for the diffusivity field, undefined on return
    conv: scratch volume for the blurred residual, undefined on return
    sigma_blur: Gaussian point spread function sigma in voxels (> 0)
    sigma_noise: Rician noise sigma (> 0)
    lam: fidelity weight (>= 0)
    config: algorithm constants, DeconvConfig() if None

    Runs exactly config.iterations iterations with no convergence test.
    All preconditions are checked before any volume is modified.
    """

    if config is None:
        config = DeconvConfig()

    check_volumes(u, f, g, conv)

    for name, vol in (("u", u), ("g", g), ("conv", conv)):
        if not vol.flags.writeable:
            raise ValueError(f"Volume {name} must be writeable")

    named = (("u", u), ("f", f), ("g", g), ("conv", conv))
    for a in range(len(named)):
        for b in range(a + 1, len(named)):
            if np.may_share_memory(named[a][1], named[b][1]):
                raise ValueError(f"Volumes {named[a][0]} and {named[b][0]} must not share memory")

    recursive_coefficients(sigma_blur, config.gaussian_steps)
    _check_scalar("sigma_noise", sigma_noise)
    _check_scalar("lambda", lam, allow_zero=True)

    gamma = lam / (sigma_noise * sigma_noise)

    for _ in range(config.iterations):

        diffusivity(u, g, config.epsilon)

        conv[...] = u
        gaussian_blur(conv, sigma_blur, config.gaussian_steps)
        rician_residual(conv, f, sigma_noise, config.reference_compatible)
        gaussian_blur(conv, sigma_blur, config.gaussian_steps)

        semi_implicit_update(u, g, conv, gamma, config.dt)


def deconvolve_array(
        img: np.ndarray,
        sigma_blur: float,
        sigma_noise: float,
        lam: float,
        config: DeconvConfig=None) -> np.ndarray:
    """
    Allocate working volumes and run rician_deconv3 starting from u = f.

    img: observed noisy 3D volume (any real dtype)

    Returns: deconvolved volume as a new float64 array
    """

    f = np.ascontiguousarray(img, dtype=np.float64)
    u = f.copy()
    g = np.zeros_like(f)
    conv = np.zeros_like(f)

    rician_deconv3(u, f, g, conv, sigma_blur, sigma_noise, lam, config)

    return u
